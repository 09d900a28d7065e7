"""
Printing deduplication.

Reduces the bulk catalog (hundreds of thousands of printings) to one
representative printing per card.

Grouping: oracle_id, else lowercased name, else the printing's own id.

Representative choice (each step only breaks ties left by the previous):
1. Newest released_at (missing date counts as oldest)
2. Not a Secret Lair printing
3. Not promo / full art / borderless
4. Higher numeric collector number (non-numeric counts as 0)

Remaining ties fall back to printing id, so the choice never depends on
input order.
"""

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date

from manabase.models.card import CardPrinting, primary_image

logger = logging.getLogger(__name__)

EXCLUDED_LAYOUT_MARKERS = ("token", "art_series")

_LEADING_DIGITS = re.compile(r"\s*([+-]?\d+)")


@dataclass
class DedupGroup:
    """All printings sharing one group key."""

    key: str
    members: list[CardPrinting] = field(default_factory=list)


@dataclass
class DedupResult:
    """
    Output of deduplicate().

    Attributes:
        representatives: One printing per non-empty group
        prints_by_key: Every printing of each group, in input order
        total: Number of printings scanned
    """

    representatives: list[CardPrinting]
    prints_by_key: dict[str, list[CardPrinting]]
    total: int


def group_key(printing: CardPrinting) -> str:
    """oracle_id, else lowercased name, else printing id."""
    if printing.oracle_id:
        return printing.oracle_id
    if printing.name:
        return printing.name.lower()
    return printing.id


def is_displayable(printing: CardPrinting) -> bool:
    """False for tokens, art series cards and printings without an image."""
    layout = printing.layout or ""
    if any(marker in layout for marker in EXCLUDED_LAYOUT_MARKERS):
        return False
    return primary_image(printing) is not None


def is_secret_lair(printing: CardPrinting) -> bool:
    return printing.set.lower() == "sld" or "secret lair" in printing.set_name.lower()


def is_promo_variant(printing: CardPrinting) -> bool:
    return printing.promo or printing.full_art or printing.border_color == "borderless"


def collector_number_value(printing: CardPrinting) -> int:
    """Leading integer of the collector number ("123a" -> 123), else 0."""
    match = _LEADING_DIGITS.match(printing.collector_number or "")
    return int(match.group(1)) if match else 0


def preference_key(printing: CardPrinting) -> tuple[int, bool, bool, int, str]:
    """Sort key; the smallest key is the preferred printing."""
    released = printing.released_at or date.min
    return (
        -released.toordinal(),
        is_secret_lair(printing),
        is_promo_variant(printing),
        -collector_number_value(printing),
        printing.id,
    )


def select_representative(members: Iterable[CardPrinting]) -> CardPrinting | None:
    """
    Choose the preferred displayable printing of a group.

    Returns:
        The representative, or None when no member is displayable
    """
    candidates = [p for p in members if is_displayable(p)]
    if not candidates:
        return None
    return min(candidates, key=preference_key)


def group_printings(printings: Iterable[CardPrinting]) -> dict[str, DedupGroup]:
    """Group printings by group_key(); groups keep input order."""
    groups: dict[str, DedupGroup] = {}
    for printing in printings:
        key = group_key(printing)
        if not key:
            continue
        group = groups.get(key)
        if group is None:
            group = groups[key] = DedupGroup(key=key)
        group.members.append(printing)
    return groups


def deduplicate(printings: Iterable[CardPrinting]) -> DedupResult:
    """Reduce a catalog to one representative printing per card."""
    printings = list(printings)
    groups = group_printings(printings)

    representatives: list[CardPrinting] = []
    for group in groups.values():
        chosen = select_representative(group.members)
        if chosen is not None:
            representatives.append(chosen)

    logger.info(
        "Deduplicated %d printings -> %d unique cards",
        len(printings),
        len(representatives),
    )

    return DedupResult(
        representatives=representatives,
        prints_by_key={key: group.members for key, group in groups.items()},
        total=len(printings),
    )
