from .diacritics import DiacriticClassifier, is_long_vowel, is_vowel, remove_diacritics
from .html_view import render_annotation_html
from .settings import AnnotateConfig, config_from_settings
from .stress_engine import (
    LineAnnotation,
    StressEngine,
    StressMarker,
    Token,
    annotate,
    apply_stress,
    find_stress_vowel_ordinal,
    tokenize,
)

__all__ = [
    "AnnotateConfig",
    "DiacriticClassifier",
    "LineAnnotation",
    "StressEngine",
    "StressMarker",
    "Token",
    "annotate",
    "apply_stress",
    "config_from_settings",
    "find_stress_vowel_ordinal",
    "is_long_vowel",
    "is_vowel",
    "remove_diacritics",
    "render_annotation_html",
    "tokenize",
]
