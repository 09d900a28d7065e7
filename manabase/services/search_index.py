"""
Card name search over the deduplicated bulk catalog.

Built once per bulk snapshot; never rebuilt per query.

Matching order for search():
1. Exact case-insensitive name -> that card alone
2. Fuzzy match (rapidfuzz WRatio: edit-distance tolerant, position
   independent) ranked by score
3. Plain substring match, appended to catch what the fuzzy pass misses

Results are merged without duplicates (by oracle_id or id) and capped.
"""

import logging
from collections import defaultdict
from collections.abc import Iterable

from rapidfuzz import fuzz, process, utils

from manabase.models.card import CanonicalCard, CardPrinting, PrintSummary
from manabase.models.failure import InvalidCardNameError, NotFoundError
from manabase.services.card_resolver import normalize_card
from manabase.services.dedup import deduplicate, group_key

logger = logging.getLogger(__name__)

DEFAULT_RESULT_LIMIT = 20
DEFAULT_SCORE_CUTOFF = 80.0
DEFAULT_MIN_QUERY_LENGTH = 3


def _identity(printing: CardPrinting) -> str:
    return printing.oracle_id or printing.id


class CardSearchIndex:
    """
    Exact and approximate name lookup over one representative per card.

    Use CardSearchIndex.build() to construct from a bulk catalog.
    """

    def __init__(
        self,
        printings: list[CardPrinting],
        representatives: list[CardPrinting],
        result_limit: int = DEFAULT_RESULT_LIMIT,
        score_cutoff: float = DEFAULT_SCORE_CUTOFF,
        min_query_length: int = DEFAULT_MIN_QUERY_LENGTH,
    ) -> None:
        self.result_limit = result_limit
        self.score_cutoff = score_cutoff
        self.min_query_length = min_query_length

        self._printings = printings
        self._cards = representatives
        self._names = [card.name.lower() for card in representatives]

        self._by_name: dict[str, list[int]] = defaultdict(list)
        for i, name in enumerate(self._names):
            self._by_name[name].append(i)

        # Positions into the full catalog, for exact-lookup print lists
        self._positions_by_key: dict[str, list[int]] = defaultdict(list)
        self._positions_by_name: dict[str, list[int]] = defaultdict(list)
        for pos, printing in enumerate(printings):
            self._positions_by_key[group_key(printing)].append(pos)
            if printing.name:
                self._positions_by_name[printing.name.lower()].append(pos)

    @classmethod
    def build(
        cls,
        printings: Iterable[CardPrinting],
        result_limit: int = DEFAULT_RESULT_LIMIT,
        score_cutoff: float = DEFAULT_SCORE_CUTOFF,
        min_query_length: int = DEFAULT_MIN_QUERY_LENGTH,
    ) -> "CardSearchIndex":
        """Deduplicate a catalog and index the representatives."""
        printings = list(printings)
        result = deduplicate(printings)
        index = cls(
            printings,
            result.representatives,
            result_limit=result_limit,
            score_cutoff=score_cutoff,
            min_query_length=min_query_length,
        )
        logger.info(
            "Search index built: %d cards from %d printings",
            index.size,
            index.total_printings,
        )
        return index

    @property
    def size(self) -> int:
        return len(self._cards)

    @property
    def total_printings(self) -> int:
        return len(self._printings)

    def _exact(self, name: str) -> list[CardPrinting]:
        return [self._cards[i] for i in self._by_name.get(name.strip().lower(), [])]

    def _fuzzy(self, query: str) -> list[CardPrinting]:
        if len(query) < self.min_query_length:
            return []
        matches = process.extract(
            query.lower(),
            self._names,
            scorer=fuzz.WRatio,
            processor=utils.default_process,
            limit=self.result_limit,
            score_cutoff=self.score_cutoff,
        )
        return [self._cards[i] for _name, _score, i in matches]

    def _substring(self, query: str) -> list[CardPrinting]:
        needle = query.lower()
        return [card for card, name in zip(self._cards, self._names) if needle in name]

    def search(self, query: str) -> list[CanonicalCard]:
        """
        Ranked name search, most relevant first.

        Returns:
            Up to result_limit cards; a single card on an exact name match;
            an empty list for a blank query
        """
        query = (query or "").strip()
        if not query:
            return []

        exact = self._exact(query)
        if exact:
            logger.debug("Exact match for %r", query)
            return [normalize_card(exact[0])]

        seen: set[str] = set()
        combined: list[CardPrinting] = []
        for printing in [*self._fuzzy(query), *self._substring(query)]:
            identity = _identity(printing)
            if identity in seen:
                continue
            seen.add(identity)
            combined.append(printing)
            if len(combined) >= self.result_limit:
                break

        logger.debug("Search %r -> %d results", query, len(combined))
        return [normalize_card(p) for p in combined]

    def lookup_exact(self, name: str) -> CanonicalCard:
        """
        The exact-name match, with every known printing attached.

        Raises:
            InvalidCardNameError: name is blank
            NotFoundError: no card has this exact name
        """
        if not name or not name.strip():
            raise InvalidCardNameError(name)

        exact = self._exact(name)
        if not exact:
            raise NotFoundError(name.strip())

        card = exact[0]
        positions = set(self._positions_by_key.get(group_key(card), []))
        positions.update(self._positions_by_name.get(card.name.lower(), []))
        prints = [PrintSummary.from_printing(self._printings[pos]) for pos in sorted(positions)]

        return normalize_card(card).model_copy(update={"prints": prints})
