"""
Registry mapping each WarningKind to the one rule class that emits it.

Built-in rules add themselves at import time through @register_rule.
A caller can register its own Rule subclass for a kind that is not taken,
or build a private RuleRegistry in tests.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from planscope.detector.rules.base import Rule
    from planscope.parser.models import WarningKind

T = TypeVar("T", bound="Rule")


class RuleRegistry:
    """
    Centralized registry for all warning rules, keyed by WarningKind.

    Rules register themselves using the @register_rule decorator.
    The detector queries the registry to get available rules.

    Example:
        @register_rule
        class DiskSort(Rule):
            kind = WarningKind.DISK_SORT
            ...

        rules = get_registry().filter(exclude={WarningKind.OVER_FILTERING})
    """

    def __init__(self) -> None:
        self._rules: dict[WarningKind, type[Rule]] = {}

    def register(self, rule_cls: type[T]) -> type[T]:
        """
        Register a rule class.

        Raises:
            ValueError: If a rule for the same kind is already registered
        """
        kind = rule_cls.kind

        if kind in self._rules:
            existing = self._rules[kind]
            raise ValueError(
                f"Rule '{kind.value}' already registered by {existing.__module__}.{existing.__name__}. "
                f"Cannot register {rule_cls.__module__}.{rule_cls.__name__}"
            )

        self._rules[kind] = rule_cls
        return rule_cls

    def all(self) -> list[type[Rule]]:
        """All rule classes, in registration order."""
        return list(self._rules.values())

    def filter(
        self,
        include: set[WarningKind] | None = None,
        exclude: set[WarningKind] | frozenset[WarningKind] | None = None,
    ) -> list[type[Rule]]:
        """
        Rule classes narrowed by kind, in registration order.

        Args:
            include: If provided, only include these kinds
            exclude: If provided, exclude these kinds
        """
        rules = self.all()

        if include is not None:
            rules = [r for r in rules if r.kind in include]

        if exclude is not None:
            rules = [r for r in rules if r.kind not in exclude]

        return rules

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, kind: WarningKind) -> bool:
        return kind in self._rules


# Global registry instance
_global_registry = RuleRegistry()


def get_registry() -> RuleRegistry:
    """Get the global rule registry."""
    return _global_registry


def register_rule(rule_cls: type[T]) -> type[T]:
    """Decorator to register a rule with the global registry."""
    return _global_registry.register(rule_cls)
