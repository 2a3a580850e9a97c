import json
import os
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional, Sequence, Tuple

from .diacritics import CAESURA_MARKS

LINE_POLICIES = ("caesura", "odd", "even", "all")
WORD_SCOPES = ("all", "first")
MARKER_NAMES = ("span", "brackets")

SETTINGS_ENV_VAR = "ICTUS_SETTINGS_PATH"
DEBUG_ENV_VAR = "ICTUS_DEBUG"
DEFAULT_SETTINGS_FILENAMES = ["settings.json"]
TRUE_STRINGS = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AnnotateConfig:
    line_policy: str = "caesura"
    word_scope: str = "all"
    marker: str = "span"
    stress_class: str = "stressed"
    caesura_marks: Tuple[str, ...] = CAESURA_MARKS
    strip_caesura: bool = False
    circumflex_long: bool = False

    def __post_init__(self) -> None:
        if self.line_policy not in LINE_POLICIES:
            raise ValueError("unknown line_policy {!r}; expected one of {}".format(self.line_policy, ", ".join(LINE_POLICIES)))
        if self.word_scope not in WORD_SCOPES:
            raise ValueError("unknown word_scope {!r}; expected one of {}".format(self.word_scope, ", ".join(WORD_SCOPES)))
        if self.marker not in MARKER_NAMES:
            raise ValueError("unknown marker {!r}; expected one of {}".format(self.marker, ", ".join(MARKER_NAMES)))


def _flag(value: object) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    return bool(value)


def _choice(settings: Mapping, key: str, allowed: Sequence[str], default: str, logger: Callable[[str], None]) -> str:
    raw = settings.get(key, default)
    value = str(raw or default).strip().lower()
    if value not in allowed:
        logger("settings: {}={!r} not recognized, using {!r}".format(key, raw, default))
        return default
    return value


def config_from_settings(settings: Optional[Mapping], logger: Optional[Callable[[str], None]] = None) -> AnnotateConfig:
    log = logger or (lambda _m: None)
    if not isinstance(settings, Mapping):
        settings = {}

    marks_raw = settings.get("caesura_marks", CAESURA_MARKS)
    caesura_marks: Tuple[str, ...]
    if isinstance(marks_raw, str):
        caesura_marks = tuple(ch for ch in marks_raw if not ch.isspace())
    elif isinstance(marks_raw, Sequence):
        caesura_marks = tuple(str(item) for item in marks_raw if str(item).strip())
    else:
        caesura_marks = CAESURA_MARKS
    if not caesura_marks:
        caesura_marks = CAESURA_MARKS

    return AnnotateConfig(
        line_policy=_choice(settings, "line_policy", LINE_POLICIES, "caesura", log),
        word_scope=_choice(settings, "word_scope", WORD_SCOPES, "all", log),
        marker=_choice(settings, "marker", MARKER_NAMES, "span", log),
        stress_class=str(settings.get("stress_class", "stressed") or "stressed").strip(),
        caesura_marks=caesura_marks,
        strip_caesura=_flag(settings.get("strip_caesura", False)),
        circumflex_long=_flag(settings.get("circumflex_long", False)),
    )


def resolve_settings_path(path: str = "", environ: Optional[Mapping[str, str]] = None) -> str:
    env = os.environ if environ is None else environ
    path = os.path.expanduser(str(path or "").strip())
    if path and os.path.exists(path):
        return path
    env_path = str(env.get(SETTINGS_ENV_VAR, "") or "").strip()
    if env_path and os.path.exists(os.path.expanduser(env_path)):
        return os.path.expanduser(env_path)
    home = os.path.expanduser("~")
    for name in DEFAULT_SETTINGS_FILENAMES:
        candidate = os.path.join(home, ".ictus", name)
        if os.path.exists(candidate):
            return candidate
    return ""


def load_settings(path: str) -> Dict[str, object]:
    """Read a JSON settings object; a missing or malformed file yields {}."""
    path = str(path or "").strip()
    if not path or not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as fh:
            raw = json.load(fh)
    except (OSError, ValueError):
        return {}
    if not isinstance(raw, dict):
        return {}
    return raw


def debug_enabled(settings: Mapping, environ: Optional[Mapping[str, str]] = None) -> bool:
    env = os.environ if environ is None else environ
    if _flag(settings.get("debug_log", False)):
        return True
    return str(env.get(DEBUG_ENV_VAR, "") or "").strip().lower() in TRUE_STRINGS
