"""Localize rendered site pages from structured per-locale content exports."""

from .builder import build_translation_map
from .structures import ContentNode, ContentTree, FragmentPair, TranslationMap
from .translator import MarkupTranslator, TranslationResult, apply_translations

__version__ = "0.1.0"

__all__ = [
    "ContentNode",
    "ContentTree",
    "FragmentPair",
    "MarkupTranslator",
    "TranslationMap",
    "TranslationResult",
    "apply_translations",
    "build_translation_map",
]
