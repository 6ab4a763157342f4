"""
planning/naming.py - Default names and position options for new phases
"""

from __future__ import annotations
from typing import Iterable, List, Union

from phaseorder.core.records import name_key

PositionOption = Union[str, int]

DEFAULT_PHASE_NAME = "New Phase"


def unique_phase_name(existing_names: Iterable[str], base: str = DEFAULT_PHASE_NAME) -> str:
    """
    First of ``base``, ``base 1``, ``base 2``... not already used.

    Comparison is case-insensitive.
    """
    taken = {name_key(n) for n in existing_names}
    candidate = base
    counter = 1
    while name_key(candidate) in taken:
        candidate = f"{base} {counter}"
        counter += 1
    return candidate


def available_positions(total: int) -> List[PositionOption]:
    """Order options for a plan of ``total`` phases: First, 2..N-1, Last."""
    if total <= 1:
        return ["First"]
    return ["First"] + list(range(2, total)) + ["Last"]


def option_to_index(option: PositionOption, total: int) -> int:
    """
    Convert a position option to a 1-based index.

    Raises:
        ValueError: unparseable option
    """
    if isinstance(option, str):
        text = option.strip().lower()
        if text == "first":
            return 1
        if text == "last":
            return total
        return int(text)
    return int(option)
