import unicodedata
from typing import FrozenSet, Iterable, List, Tuple

BASE_VOWELS = frozenset("aeiouy")

# Precomposed (NFC) vowels with a macron. Only these carry length.
LONG_VOWELS: FrozenSet[str] = frozenset("ĀāĒēĪīŌōŪūȲȳ")

# Some editions mark length with a circumflex instead.
CIRCUMFLEX_VOWELS: FrozenSet[str] = frozenset("ÂâÊêÎîÔôÛûŶŷ")

# Breve vowels. "Ўў" is the Cyrillic short u that some keyboards produce for y̆.
SHORT_VOWELS: FrozenSet[str] = frozenset("ĂăĔĕĬĭŎŏŬŭЎў")

CAESURA_MARKS: Tuple[str, ...] = ("|", "‖", "¦")

# Letters whose base form after stripping must be Latin.
LATIN_FOLDS = str.maketrans({"Ў": "Y", "ў": "y"})

LONG = "long"
SHORT = "short"
VOWEL = "vowel"
OTHER = "other"

QUANTITY_LETTERS = {
    LONG: "L",
    SHORT: "S",
    VOWEL: "V",
}


def canonicalize(text: str) -> str:
    return unicodedata.normalize("NFC", text)


def remove_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", canonicalize(text).translate(LATIN_FOLDS))
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return unicodedata.normalize("NFC", stripped)


def is_combining(ch: str) -> bool:
    return unicodedata.category(ch).startswith("M")


def graphemes(text: str) -> List[str]:
    """Split text into base characters with their trailing combining marks.

    Only combining marks are folded; this is not full UAX #29 segmentation,
    but it keeps "y" + U+0306 together, which is what vowel scanning needs.
    """
    out: List[str] = []
    for ch in text:
        if out and is_combining(ch):
            out[-1] += ch
        else:
            out.append(ch)
    return out


def has_caesura(line: str, caesura_marks: Iterable[str] = CAESURA_MARKS) -> bool:
    return any(mark in line for mark in caesura_marks)


def strip_caesura_marks(line: str, caesura_marks: Iterable[str] = CAESURA_MARKS) -> str:
    for mark in caesura_marks:
        line = line.replace(mark, "")
    return line


def normalize_line(
    line: str,
    strip_caesura: bool = False,
    caesura_marks: Iterable[str] = CAESURA_MARKS,
) -> str:
    line = canonicalize(line).strip()
    if strip_caesura:
        line = strip_caesura_marks(line, caesura_marks)
    return line


def split_lines(text: str) -> List[str]:
    return text.split("\n")


class DiacriticClassifier:
    """Classifies single characters (or grapheme clusters) by vowel quantity.

    The character sets are fixed at construction; build one per configuration
    and hand it to the engine rather than mutating module state.
    """

    def __init__(
        self,
        long_vowels: Iterable[str] = LONG_VOWELS,
        short_vowels: Iterable[str] = SHORT_VOWELS,
    ) -> None:
        self._long_vowels = frozenset(canonicalize(ch) for ch in long_vowels)
        self._short_vowels = frozenset(canonicalize(ch) for ch in short_vowels)

    @classmethod
    def with_circumflex(cls) -> "DiacriticClassifier":
        return cls(long_vowels=LONG_VOWELS | CIRCUMFLEX_VOWELS)

    @property
    def long_vowels(self) -> FrozenSet[str]:
        return self._long_vowels

    def is_vowel(self, ch: str) -> bool:
        if not ch:
            return False
        if canonicalize(ch) in self._short_vowels:
            return True
        base = remove_diacritics(ch)
        return len(base) == 1 and base.lower() in BASE_VOWELS

    def is_long_vowel(self, ch: str) -> bool:
        return canonicalize(ch) in self._long_vowels

    def is_short_vowel(self, ch: str) -> bool:
        return canonicalize(ch) in self._short_vowels

    def classify(self, ch: str) -> str:
        if self.is_long_vowel(ch):
            return LONG
        if self.is_short_vowel(ch):
            return SHORT
        if self.is_vowel(ch):
            return VOWEL
        return OTHER

    def quantity_pattern(self, word: str) -> str:
        letters = []
        for cluster in graphemes(canonicalize(word)):
            kind = self.classify(cluster)
            if kind != OTHER:
                letters.append(QUANTITY_LETTERS[kind])
        return "".join(letters)


DEFAULT_CLASSIFIER = DiacriticClassifier()


def is_vowel(ch: str) -> bool:
    return DEFAULT_CLASSIFIER.is_vowel(ch)


def is_long_vowel(ch: str) -> bool:
    return DEFAULT_CLASSIFIER.is_long_vowel(ch)
