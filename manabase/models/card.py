"""
Card models.

Two layers live here:

- CardPrinting: one physical printing as delivered by Scryfall. Raw JSON
  is converted exactly once, by parse_printing(), into either a
  SingleFacedCard or a MultiFacedCard. Nothing downstream inspects raw
  dicts or asks whether "card_faces" is present.
- CanonicalCard: the de-duplicated, enriched record served to callers and
  persisted in the card cache. It round-trips through JSON unchanged.

INVARIANTS:
- Printings sharing an oracle_id are the same rules object; only set,
  collector number, prices, images and release date differ.
- CanonicalCard.color_identity is never empty for a nonland card.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

COLORLESS = "C"


def _str_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, list | tuple):
        return ()
    return tuple(str(v) for v in value)


def _opt_str(value: Any) -> str | None:
    return None if value is None else str(value)


def _image_uris(value: Any) -> dict[str, str] | None:
    if not isinstance(value, dict):
        return None
    return {str(k): str(v) for k, v in value.items() if v is not None}


def _parse_date(value: Any) -> date | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


@dataclass(frozen=True, slots=True)
class Prices:
    """Scryfall USD prices, kept as the decimal strings Scryfall sends."""

    usd: str | None = None
    usd_foil: str | None = None
    usd_etched: str | None = None

    @classmethod
    def from_raw(cls, raw: Any) -> "Prices":
        if not isinstance(raw, dict):
            return cls()
        return cls(
            usd=_opt_str(raw.get("usd")),
            usd_foil=_opt_str(raw.get("usd_foil")),
            usd_etched=_opt_str(raw.get("usd_etched")),
        )

    def as_dict(self) -> dict[str, str | None]:
        return {"usd": self.usd, "usd_foil": self.usd_foil, "usd_etched": self.usd_etched}


@dataclass(frozen=True, slots=True)
class CardFace:
    """One face of a multi-faced card."""

    name: str
    type_line: str = ""
    oracle_text: str = ""
    image_uris: dict[str, str] | None = None
    colors: tuple[str, ...] = ()
    color_identity: tuple[str, ...] = ()

    @classmethod
    def from_raw(cls, raw: dict[str, Any]) -> "CardFace":
        return cls(
            name=str(raw.get("name", "")),
            type_line=str(raw.get("type_line") or ""),
            oracle_text=str(raw.get("oracle_text") or ""),
            image_uris=_image_uris(raw.get("image_uris")),
            colors=_str_tuple(raw.get("colors")),
            color_identity=_str_tuple(raw.get("color_identity")),
        )


@dataclass(frozen=True, slots=True)
class SingleFacedCard:
    """
    A printing with one face (or faces that share a single image).

    Attributes:
        id: Scryfall printing ID (unique per printing)
        oracle_id: Shared across reprints of the same card text
        released_at: Release date, None when unknown
        image_uris: Top-level image URLs, None when Scryfall has none
    """

    id: str
    name: str
    oracle_id: str | None = None
    layout: str = "normal"
    type_line: str = ""
    set: str = ""
    set_name: str = ""
    collector_number: str = ""
    released_at: date | None = None
    color_identity: tuple[str, ...] = ()
    colors: tuple[str, ...] = ()
    prices: Prices = field(default_factory=Prices)
    image_uris: dict[str, str] | None = None
    promo: bool = False
    full_art: bool = False
    border_color: str = "black"
    scryfall_uri: str | None = None
    prints_search_uri: str | None = None


@dataclass(frozen=True, slots=True)
class MultiFacedCard(SingleFacedCard):
    """A printing with two or more faces (transform, modal DFC, split...)."""

    faces: tuple[CardFace, ...] = ()


CardPrinting = SingleFacedCard | MultiFacedCard


def parse_printing(raw: dict[str, Any]) -> CardPrinting:
    """
    Convert one raw Scryfall card object into a CardPrinting.

    This is the only place raw card JSON is interpreted. Records with a
    "card_faces" list of more than one face become MultiFacedCard.

    Args:
        raw: Card object from the API or the bulk snapshot

    Returns:
        SingleFacedCard or MultiFacedCard
    """
    common: dict[str, Any] = {
        "id": str(raw.get("id") or ""),
        "name": str(raw.get("name") or ""),
        "oracle_id": _opt_str(raw.get("oracle_id")),
        "layout": str(raw.get("layout") or "normal"),
        "type_line": str(raw.get("type_line") or ""),
        "set": str(raw.get("set") or ""),
        "set_name": str(raw.get("set_name") or ""),
        "collector_number": str(raw.get("collector_number") or ""),
        "released_at": _parse_date(raw.get("released_at")),
        "color_identity": _str_tuple(raw.get("color_identity")),
        "colors": _str_tuple(raw.get("colors")),
        "prices": Prices.from_raw(raw.get("prices")),
        "image_uris": _image_uris(raw.get("image_uris")),
        "promo": bool(raw.get("promo", False)),
        "full_art": bool(raw.get("full_art", False)),
        "border_color": str(raw.get("border_color") or "black"),
        "scryfall_uri": _opt_str(raw.get("scryfall_uri")),
        "prints_search_uri": _opt_str(raw.get("prints_search_uri")),
    }

    faces = raw.get("card_faces")
    if isinstance(faces, list) and len(faces) > 1:
        parsed_faces = tuple(CardFace.from_raw(f) for f in faces if isinstance(f, dict))
        # Multi-faced cards carry no top-level type_line in some layouts
        if not common["type_line"]:
            common["type_line"] = " // ".join(f.type_line for f in parsed_faces)
        return MultiFacedCard(faces=parsed_faces, **common)

    return SingleFacedCard(**common)


def primary_image(printing: CardPrinting, *sizes: str) -> str | None:
    """
    Best image URL for a printing.

    Checks top-level image_uris for each requested size (default
    "normal" then "small"), then the first face's "normal" image.
    """
    sizes = sizes or ("normal", "small")
    if printing.image_uris:
        for size in sizes:
            if printing.image_uris.get(size):
                return printing.image_uris[size]
    if isinstance(printing, MultiFacedCard) and printing.faces:
        first = printing.faces[0].image_uris or {}
        return first.get("normal")
    return None


# =============================================================================
# CANONICAL (SERVED) MODELS
# =============================================================================


class PrintSummary(BaseModel):
    """Lightweight summary of one printing."""

    model_config = ConfigDict(frozen=True)

    set: str
    set_name: str = ""
    collector_number: str = ""
    prices: dict[str, str | None] = Field(default_factory=dict)
    released_at: str | None = None

    @classmethod
    def from_printing(cls, printing: CardPrinting) -> "PrintSummary":
        return cls(
            set=printing.set,
            set_name=printing.set_name,
            collector_number=printing.collector_number,
            prices=printing.prices.as_dict(),
            released_at=printing.released_at.isoformat() if printing.released_at else None,
        )


class CanonicalFace(BaseModel):
    """Per-face data of a multi-faced canonical card."""

    model_config = ConfigDict(frozen=True)

    name: str
    type_line: str = ""
    oracle_text: str = ""
    image_uris: dict[str, str] | None = None
    colors: list[str] = Field(default_factory=list)
    color_identity: list[str] = Field(default_factory=list)


class CanonicalCard(BaseModel):
    """
    De-duplicated, enriched card served to API consumers.

    A stub ({name, missing: True}) stands in for cards that could not be
    resolved so callers can skip them without special error handling.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    missing: bool = False
    id: str | None = None
    oracle_id: str | None = None
    type_line: str = ""
    layout: str | None = None
    scryfall_uri: str | None = None
    prints_search_uri: str | None = None
    image: str | None = None
    price: float | None = None
    lowest_price: float | None = None
    color_identity: list[str] = Field(default_factory=list)
    colors: list[str] = Field(default_factory=list)
    card_faces: list[CanonicalFace] | None = None
    prices: dict[str, str | None] | None = None
    prints: list[PrintSummary] = Field(default_factory=list)
    set: str | None = None
    collector_number: str | None = None
    fetchable: bool = False

    @classmethod
    def stub(cls, name: str) -> "CanonicalCard":
        """Placeholder for a card that could not be resolved."""
        return cls(name=name, missing=True)
