from manabase.models.card import (
    COLORLESS,
    CanonicalCard,
    CanonicalFace,
    CardFace,
    CardPrinting,
    MultiFacedCard,
    Prices,
    PrintSummary,
    SingleFacedCard,
    parse_printing,
    primary_image,
)
from manabase.models.failure import (
    CacheReadError,
    CacheWriteError,
    FailureDetail,
    FailureKind,
    IndexNotReadyError,
    InvalidCardNameError,
    KnownError,
    NotFoundError,
    UpstreamError,
)

__all__ = [
    # Cards
    "COLORLESS",
    "CanonicalCard",
    "CanonicalFace",
    "CardFace",
    "CardPrinting",
    "MultiFacedCard",
    "Prices",
    "PrintSummary",
    "SingleFacedCard",
    "parse_printing",
    "primary_image",
    # Failures
    "CacheReadError",
    "CacheWriteError",
    "FailureDetail",
    "FailureKind",
    "IndexNotReadyError",
    "InvalidCardNameError",
    "KnownError",
    "NotFoundError",
    "UpstreamError",
]
