"""
Cards: identity, model and extraction.

Components:
- fingerprint: whitespace/case-insensitive content addressing
- models: Card, BasicContent, ClozeContent, ClozeRange, EnhancementStatus
- cloze: bracketed span discovery and masking
- parser: block segmentation and card extraction
"""

from recall.cards.cloze import find_cloze_ranges, first_cloze_range, mask_cloze_text
from recall.cards.fingerprint import fingerprint, normalize_text
from recall.cards.models import (
    BasicContent,
    Card,
    CardContent,
    CardKind,
    ClozeContent,
    ClozeRange,
    EnhancementStatus,
)
from recall.cards.parser import (
    cards_from_file,
    cards_from_text,
    extract_card,
    parse_sections,
    segment_blocks,
)

__all__ = [
    "BasicContent",
    "Card",
    "CardContent",
    "CardKind",
    "ClozeContent",
    "ClozeRange",
    "EnhancementStatus",
    "cards_from_file",
    "cards_from_text",
    "extract_card",
    "find_cloze_ranges",
    "fingerprint",
    "first_cloze_range",
    "mask_cloze_text",
    "normalize_text",
    "parse_sections",
    "segment_blocks",
]
