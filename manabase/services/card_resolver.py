"""
Card Resolver.

Turns a free-text card name into one CanonicalCard, hiding cache and
upstream details from callers.

Resolution order:
1. Cache (memory, then disk) on the lowercased, trimmed name
2. Scryfall fuzzy name lookup -> normalize -> store in both tiers

INVARIANTS:
1. "Not found" never raises: the caller gets CanonicalCard.stub(name)
2. Blank names are rejected before any I/O (InvalidCardNameError)
3. Cached cards are replaced by re-resolution, never patched
4. Batch resolution is sequential and preserves input order
"""

import logging
from datetime import timedelta
from typing import Any

from pydantic import ValidationError

from manabase.models.card import (
    COLORLESS,
    CanonicalCard,
    CanonicalFace,
    CardPrinting,
    MultiFacedCard,
    PrintSummary,
    parse_printing,
    primary_image,
)
from manabase.models.failure import InvalidCardNameError, UpstreamError
from manabase.services.cache import Cache, normalize_key, sanitize_key
from manabase.services.card_rules import is_fetchable
from manabase.services.scryfall_client import ScryfallClient

logger = logging.getLogger(__name__)

# Layouts whose faces are rendered (and priced) as separate card images
MULTI_FACE_LAYOUTS = frozenset({"modal_dfc", "transform", "double_faced_token"})

_COLOR_ORDER = "WUBRGC"


def parse_price(value: str | None) -> float | None:
    """Parse a Scryfall decimal string; None for missing or unparsable."""
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _ordered_colors(colors: set[str]) -> list[str]:
    def rank(color: str) -> tuple[int, str]:
        index = _COLOR_ORDER.find(color)
        return (index if index >= 0 else len(_COLOR_ORDER), color)

    return sorted(colors, key=rank)


def normalize_card(printing: CardPrinting) -> CanonicalCard:
    """
    Build a CanonicalCard from one printing.

    Rules:
    - price: prices.usd, else prices.usd_foil, else None
    - multi-faced layouts (modal_dfc, transform, double_faced_token) with
      more than one face get card_faces and an empty identity becomes the
      union of the faces'
    - a printing without a top-level image uses its first face's image,
      whatever the layout
    - an identity still empty on a nonland becomes ["C"]; lands keep []
    """
    price = parse_price(printing.prices.usd)
    if price is None:
        price = parse_price(printing.prices.usd_foil)

    image = (printing.image_uris or {}).get("normal")
    color_identity = list(printing.color_identity)
    card_faces: list[CanonicalFace] | None = None

    if (
        isinstance(printing, MultiFacedCard)
        and len(printing.faces) > 1
        and printing.layout in MULTI_FACE_LAYOUTS
    ):
        card_faces = [
            CanonicalFace(
                name=face.name,
                type_line=face.type_line,
                oracle_text=face.oracle_text,
                image_uris=face.image_uris,
                colors=list(face.colors),
                color_identity=list(face.color_identity),
            )
            for face in printing.faces
        ]
        if not color_identity:
            merged: set[str] = set()
            for face in printing.faces:
                merged.update(face.color_identity)
            color_identity = _ordered_colors(merged)

    if not image and isinstance(printing, MultiFacedCard) and printing.faces:
        image = (printing.faces[0].image_uris or {}).get("normal")

    if not color_identity and "land" not in printing.type_line.lower():
        color_identity = [COLORLESS]

    card = CanonicalCard(
        name=printing.name,
        id=printing.id or None,
        oracle_id=printing.oracle_id,
        type_line=printing.type_line,
        layout=printing.layout,
        scryfall_uri=printing.scryfall_uri,
        prints_search_uri=printing.prints_search_uri,
        image=image,
        price=price,
        lowest_price=price,
        color_identity=color_identity,
        colors=list(printing.colors),
        card_faces=card_faces,
        prices=printing.prices.as_dict(),
        set=printing.set or None,
        collector_number=printing.collector_number or None,
    )
    return card.model_copy(update={"fetchable": is_fetchable(card)})


def _cheapest_price(printing: CardPrinting) -> float | None:
    candidates = [
        p
        for p in (parse_price(printing.prices.usd), parse_price(printing.prices.usd_foil))
        if p is not None
    ]
    return min(candidates) if candidates else None


class CardResolver:
    """
    Resolves card names to CanonicalCards through cache and upstream.

    Args:
        client: Shared rate-limited Scryfall client
        card_cache: Cache of normalized cards keyed by normalized name
        prints_cache: Cache of raw printing lists (TTL-bounded)
        price_cache: Optional price map keyed by printing ID; every
            upstream resolution records its price here for later refresh
        prints_ttl: Max age of a cached printing list
    """

    def __init__(
        self,
        client: ScryfallClient,
        card_cache: Cache,
        prints_cache: Cache | None = None,
        price_cache: Cache | None = None,
        prints_ttl: timedelta = timedelta(hours=24),
    ) -> None:
        self.client = client
        self.card_cache = card_cache
        self.prints_cache = prints_cache or Cache(name="prints")
        self.price_cache = price_cache
        self.prints_ttl = prints_ttl

    def cached(self, name: str) -> CanonicalCard | None:
        """Cached card for name, or None. Never touches the network."""
        key = normalize_key(name)
        entry = self.card_cache.get(key)
        if entry is None:
            return None
        try:
            return CanonicalCard.model_validate(entry.data)
        except ValidationError:
            logger.warning("Discarding malformed cached card for %r", key)
            return None

    async def resolve(self, name: str) -> CanonicalCard:
        """
        Resolve one card name.

        Returns:
            The canonical card, or a stub with missing=True when the
            upstream lookup fails for any reason

        Raises:
            InvalidCardNameError: name is empty or whitespace
        """
        if not name or not name.strip():
            raise InvalidCardNameError(name)

        card = self.cached(name)
        if card is not None:
            return card

        try:
            raw = await self.client.get_named(name.strip(), fuzzy=True)
        except UpstreamError as e:
            logger.warning("Could not resolve card %r: %s", name, e.detail)
            return CanonicalCard.stub(name)

        card = normalize_card(parse_printing(raw))
        self._store(normalize_key(name), card)
        logger.info(
            "Resolved %r -> %r [%s] identity=%s",
            name,
            card.name,
            card.layout,
            ",".join(card.color_identity) or "none",
        )
        return card

    async def resolve_batch(self, names: list[str]) -> list[CanonicalCard]:
        """
        Resolve names one after another, preserving order.

        Every name yields exactly one element: a card or a stub. Requests
        are issued one at a time.
        """
        results: list[CanonicalCard] = []
        for name in names:
            try:
                results.append(await self.resolve(name))
            except InvalidCardNameError:
                results.append(CanonicalCard.stub(name))
        return results

    async def resolve_with_prints(self, name: str) -> CanonicalCard:
        """
        Resolve a card and price it across every known printing.

        lowest_price becomes the minimum usd/usd_foil over all printings.
        When that beats the primary lookup's price, the cheapest
        printing's image becomes the display image.
        """
        card = await self.resolve(name)
        if card.missing:
            return card

        printings = await self._printings_for(card)
        if printings is None:
            return card

        lowest: float | None = None
        cheapest: CardPrinting | None = None
        for printing in printings:
            price = _cheapest_price(printing)
            if price is not None and (lowest is None or price < lowest):
                lowest = price
                cheapest = printing

        update: dict[str, Any] = {
            "prints": [PrintSummary.from_printing(p) for p in printings],
        }
        if lowest is not None:
            update["lowest_price"] = lowest
            if cheapest is not None and (card.price is None or lowest < card.price):
                update["image"] = primary_image(cheapest, "normal", "large", "small") or card.image

        return card.model_copy(update=update)

    async def refresh(self, card_key: str, card_id: str) -> CanonicalCard:
        """
        Re-resolve a cached card from its printing ID.

        Overwrites the card's cache entry and its price entry.

        Raises:
            UpstreamError: The card could not be fetched
        """
        raw = await self.client.get_card(card_id)
        card = normalize_card(parse_printing(raw))
        self._store(card_key, card)
        return card

    def _store(self, key: str, card: CanonicalCard) -> None:
        self.card_cache.set(key, card.model_dump(mode="json"))
        if self.price_cache is not None and card.id:
            self.price_cache.set(
                card.id,
                {"name": card.name, "card_key": key, "price": card.price},
            )

    async def _printings_for(self, card: CanonicalCard) -> list[CardPrinting] | None:
        key = f"prints_{sanitize_key(card.name)}"
        entry = self.prints_cache.get_fresh(key, self.prints_ttl)

        if entry is not None and isinstance(entry.data, list):
            raw_prints = entry.data
        else:
            try:
                raw_prints = await self._fetch_printings(card)
            except UpstreamError as e:
                logger.warning("Could not fetch printings for %r: %s", card.name, e.detail)
                return None
            self.prints_cache.set(key, raw_prints)

        return [parse_printing(p) for p in raw_prints if isinstance(p, dict)]

    async def _fetch_printings(self, card: CanonicalCard) -> list[dict[str, Any]]:
        if card.prints_search_uri:
            return await self.client.get_prints(card.prints_search_uri)
        result = await self.client.search(
            f'!"{card.name}" unique:prints include:extras', follow_pages=True
        )
        return list(result.get("data", []))
