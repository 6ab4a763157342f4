"""
phaseorder Position Rules

Declarative placement directives and their resolution to 1-based slots.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from phaseorder.core.enums import RuleKind, RULE_KIND_RANK
from phaseorder.errors.exceptions import OutOfRangeError, InvalidOffsetError


@dataclass(frozen=True)
class PositionRule:
    """
    One of First, Last, Nth(k) or LastMinusN(k).

    ``value`` is the slot for NTH and the offset from the end for
    LAST_MINUS_N; it is None for the anchors.
    """
    kind: RuleKind
    value: Optional[int] = None

    # ==================== Constructors ====================

    @classmethod
    def first(cls) -> "PositionRule":
        return cls(RuleKind.FIRST)

    @classmethod
    def last(cls) -> "PositionRule":
        return cls(RuleKind.LAST)

    @classmethod
    def nth(cls, value: int) -> "PositionRule":
        return cls(RuleKind.NTH, value)

    @classmethod
    def last_minus_n(cls, value: int) -> "PositionRule":
        return cls(RuleKind.LAST_MINUS_N, value)

    # ==================== Predicates ====================

    @property
    def is_first(self) -> bool:
        return self.kind == RuleKind.FIRST

    @property
    def is_last(self) -> bool:
        return self.kind == RuleKind.LAST

    @property
    def is_anchor(self) -> bool:
        return self.kind in (RuleKind.FIRST, RuleKind.LAST)

    @property
    def rank(self) -> int:
        """Tie-break rank among rules resolving to the same slot."""
        return RULE_KIND_RANK[self.kind]

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position_rule": self.kind.value,
            "position_value": self.value,
        }

    @classmethod
    def from_storage(cls, rule: Any, value: Any = None) -> "PositionRule":
        """
        Build a rule from the stored column pair.

        Raises:
            ValueError: unknown rule name or missing/non-integer value
        """
        try:
            kind = RuleKind(str(rule).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown position rule: {rule!r}")

        if kind in (RuleKind.FIRST, RuleKind.LAST):
            return cls(kind)

        message = f"Rule '{kind.value}' requires an integer value, got {value!r}"
        if isinstance(value, bool) or value is None:
            raise ValueError(message)
        if isinstance(value, float):
            if not value.is_integer():
                raise ValueError(message)
            return cls(kind, int(value))
        try:
            return cls(kind, int(value))
        except (TypeError, ValueError):
            raise ValueError(message)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PositionRule":
        return cls.from_storage(data.get("position_rule"), data.get("position_value"))

    def label(self) -> str:
        """Short display form, e.g. ``Nth(3)``."""
        if self.kind == RuleKind.FIRST:
            return "First"
        if self.kind == RuleKind.LAST:
            return "Last"
        if self.kind == RuleKind.NTH:
            return f"Nth({self.value})"
        return f"LastMinusN({self.value})"

    def __str__(self) -> str:
        return self.label()


def resolve(rule: PositionRule, total_count: int) -> int:
    """
    Resolve a rule to a 1-based index in [1, total_count].

    Args:
        rule: Rule to resolve
        total_count: Number of phases in the plan

    Returns:
        Resolved index

    Raises:
        OutOfRangeError: Nth outside 1..total_count, or an empty plan
        InvalidOffsetError: negative LastMinusN offset
    """
    if total_count < 1:
        raise OutOfRangeError(
            f"Cannot resolve {rule.label()} in an empty plan",
            rule=rule, total_count=total_count,
        )

    if rule.kind == RuleKind.FIRST:
        return 1

    if rule.kind == RuleKind.LAST:
        return total_count

    if rule.kind == RuleKind.NTH:
        if rule.value is None or rule.value < 1 or rule.value > total_count:
            raise OutOfRangeError(
                f"{rule.label()} is outside 1..{total_count}",
                rule=rule, total_count=total_count,
            )
        return rule.value

    if rule.kind == RuleKind.LAST_MINUS_N:
        if rule.value is None or rule.value < 0:
            raise InvalidOffsetError(
                f"{rule.label()} has a negative offset",
                rule=rule, total_count=total_count,
            )
        # Slot 1 belongs to First.
        floor = min(2, total_count)
        return min(max(total_count - rule.value, floor), total_count)

    raise OutOfRangeError(f"Unsupported rule kind: {rule.kind}", rule=rule)


def fallback_key(rule: PositionRule, total_count: int, incoming_index: int) -> Tuple[int, int]:
    """
    Best-effort sort key for a rule that failed to resolve.

    Returns:
        (raw_key, requested_value) - an out-of-range Nth saturates to the
        nearest end but keeps its requested value so that several
        overflowing phases stay in numeric order.
    """
    total_count = max(total_count, 1)
    if rule.kind == RuleKind.NTH and rule.value is not None:
        if rule.value < 1:
            return 1, rule.value
        return total_count, rule.value
    if rule.kind == RuleKind.LAST_MINUS_N:
        return max(total_count - 1, 1), 0
    return incoming_index, 0
