"""
Pure predicates over resolved cards.

Used by callers assembling manabases: whether a land can be found by
fetch-land effects, and whether a card fits the selected colors.
"""

from collections.abc import Iterable
from typing import Protocol, TypeVar

from manabase.models.card import COLORLESS

BASIC_LAND_TYPES = ("Plains", "Island", "Swamp", "Mountain", "Forest")
ALL_COLORS = frozenset({"W", "U", "B", "R", "G"})


class _TypedCard(Protocol):
    type_line: str
    color_identity: list[str]


T = TypeVar("T", bound=_TypedCard)


def is_fetchable(card: _TypedCard) -> bool:
    """True if the type line contains one of the five basic land types."""
    type_line = card.type_line or ""
    return any(basic in type_line for basic in BASIC_LAND_TYPES)


def is_land(card: _TypedCard) -> bool:
    return "land" in (card.type_line or "").lower()


def passes_color_filter(card: _TypedCard, colors: Iterable[str]) -> bool:
    """
    Whether a card belongs in a manabase of the selected colors.

    - Lands with an empty identity fit any deck.
    - Colorless cards fit only when "C" is selected or all five colors are.
    - Everything else needs its identity to be a subset of the selection.
    """
    selected = set(colors)
    identity = list(card.color_identity or [])

    if is_land(card) and not identity:
        return True
    if not identity or COLORLESS in identity:
        return COLORLESS in selected or ALL_COLORS <= selected
    return all(color in selected for color in identity)


def split_lands(cards: Iterable[T]) -> tuple[list[T], list[T]]:
    """Partition cards into (lands, nonlands), preserving order."""
    lands: list[T] = []
    nonlands: list[T] = []
    for card in cards:
        (lands if is_land(card) else nonlands).append(card)
    return lands, nonlands
