import unicodedata
from dataclasses import dataclass, field
from html import escape
from typing import Callable, Iterable, List, Optional, Tuple

from .diacritics import (
    CAESURA_MARKS,
    DEFAULT_CLASSIFIER,
    DiacriticClassifier,
    graphemes,
    has_caesura,
    is_combining,
    normalize_line,
    remove_diacritics,
    split_lines,
)
from .settings import AnnotateConfig


@dataclass(frozen=True)
class Token:
    text: str
    is_word: bool


@dataclass(frozen=True)
class StressMarker:
    opening: str
    closing: str

    def wrap(self, ch: str) -> str:
        return self.opening + ch + self.closing


def span_marker(stress_class: str = "stressed") -> StressMarker:
    return StressMarker('<span class="{}">'.format(escape(stress_class, quote=True)), "</span>")


BRACKET_MARKER = StressMarker("[", "]")
DEFAULT_MARKER = span_marker()


def marker_for_config(config: AnnotateConfig) -> StressMarker:
    if config.marker == "brackets":
        return BRACKET_MARKER
    return span_marker(config.stress_class or "stressed")


@dataclass
class LineAnnotation:
    line_no: int
    reference_text: str
    source_text: str
    plain_text: str
    annotated_text: str
    stressed: bool
    stress_spans: List[Tuple[int, int]] = field(default_factory=list)
    quantity_patterns: List[str] = field(default_factory=list)
    unmatched_words: List[str] = field(default_factory=list)
    vowel_mismatches: List[str] = field(default_factory=list)


def _is_letter(ch: str) -> bool:
    return unicodedata.category(ch).startswith("L")


def tokenize(line: str) -> List[Token]:
    tokens: List[Token] = []
    buf: List[str] = []
    in_word = False
    for ch in line:
        # Combining marks belong to the letter they follow.
        ch_is_word = _is_letter(ch) or (in_word and is_combining(ch))
        if buf and ch_is_word != in_word:
            tokens.append(Token("".join(buf), in_word))
            buf = []
        buf.append(ch)
        in_word = ch_is_word
    if buf:
        tokens.append(Token("".join(buf), in_word))
    return tokens


def word_tokens(tokens: Iterable[Token]) -> List[str]:
    return [t.text for t in tokens if t.is_word]


def find_stress_vowel_ordinal(reference_word: str, classifier: Optional[DiacriticClassifier] = None) -> Optional[int]:
    cls = classifier or DEFAULT_CLASSIFIER
    vowels_seen = 0
    for cluster in graphemes(reference_word):
        if not cls.is_vowel(cluster):
            continue
        if cls.is_long_vowel(cluster):
            return vowels_seen
        vowels_seen += 1
    return None


def locate_vowel(word: str, ordinal: Optional[int], classifier: Optional[DiacriticClassifier] = None) -> Optional[Tuple[int, int]]:
    if ordinal is None or ordinal < 0:
        return None
    cls = classifier or DEFAULT_CLASSIFIER
    vowels_seen = 0
    pos = 0
    for cluster in graphemes(word):
        start = pos
        pos += len(cluster)
        if not cls.is_vowel(cluster):
            continue
        if vowels_seen == ordinal:
            return start, pos
        vowels_seen += 1
    return None


def apply_stress(
    plain_word: str,
    ordinal: Optional[int],
    marker: StressMarker = DEFAULT_MARKER,
    classifier: Optional[DiacriticClassifier] = None,
) -> str:
    span = locate_vowel(plain_word, ordinal, classifier)
    if span is None:
        return plain_word
    start, end = span
    return plain_word[:start] + marker.wrap(plain_word[start:end]) + plain_word[end:]


def should_stress_line(
    reference_line: str,
    line_no: int,
    policy: str = "caesura",
    caesura_marks: Iterable[str] = CAESURA_MARKS,
) -> bool:
    if policy == "all":
        return True
    if policy == "odd":
        return line_no % 2 == 0
    if policy == "even":
        return line_no % 2 == 1
    return not has_caesura(reference_line, caesura_marks)


class StressEngine:
    def __init__(
        self,
        config: Optional[AnnotateConfig] = None,
        classifier: Optional[DiacriticClassifier] = None,
        logger: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._config = config or AnnotateConfig()
        if classifier is not None:
            self._classifier = classifier
        elif self._config.circumflex_long:
            self._classifier = DiacriticClassifier.with_circumflex()
        else:
            self._classifier = DEFAULT_CLASSIFIER
        self._marker = marker_for_config(self._config)
        self._logger = logger or (lambda _m: None)

    @property
    def config(self) -> AnnotateConfig:
        return self._config

    @property
    def classifier(self) -> DiacriticClassifier:
        return self._classifier

    @property
    def marker(self) -> StressMarker:
        return self._marker

    def tokenize(self, line: str) -> List[Token]:
        return tokenize(line)

    def annotate_line(self, reference_line: Optional[str], input_line: Optional[str], line_no: int = 0) -> LineAnnotation:
        cfg = self._config
        ref = normalize_line(reference_line or "")
        src = normalize_line(input_line or "")

        if not ref or not src:
            if src:
                self._logger("line {}: no reference line, passing input through".format(line_no))
            plain = remove_diacritics(src)
            return LineAnnotation(
                line_no=line_no,
                reference_text=ref,
                source_text=src,
                plain_text=plain,
                annotated_text=plain,
                stressed=False,
            )

        stressed = should_stress_line(ref, line_no, cfg.line_policy, cfg.caesura_marks)
        if cfg.strip_caesura:
            # Exemption is decided on the raw line, before the glyphs go.
            ref = normalize_line(ref, strip_caesura=True, caesura_marks=cfg.caesura_marks)
            src = normalize_line(src, strip_caesura=True, caesura_marks=cfg.caesura_marks)

        ref_words = word_tokens(self.tokenize(ref))
        input_tokens = self.tokenize(src)

        plain_parts: List[str] = []
        annotated_parts: List[str] = []
        spans: List[Tuple[int, int]] = []
        unmatched: List[str] = []
        mismatches: List[str] = []
        offset = 0
        ref_idx = 0
        word_idx = 0

        for token in input_tokens:
            plain = remove_diacritics(token.text)
            annotated = plain
            if token.is_word:
                ref_word = ref_words[ref_idx] if ref_idx < len(ref_words) else None
                ref_idx += 1
                in_scope = cfg.word_scope == "all" or word_idx == 0
                word_idx += 1
                if ref_word is None:
                    unmatched.append(plain)
                elif stressed and in_scope:
                    ordinal = find_stress_vowel_ordinal(ref_word, self._classifier)
                    span = locate_vowel(plain, ordinal, self._classifier)
                    if span is not None:
                        start, end = span
                        annotated = apply_stress(plain, ordinal, self._marker, self._classifier)
                        spans.append((offset + start, offset + end))
                    elif ordinal is not None:
                        mismatches.append(plain)
                        self._logger(
                            "line {}: {!r} has no vowel #{} to match {!r}".format(line_no, plain, ordinal + 1, ref_word)
                        )
            plain_parts.append(plain)
            annotated_parts.append(annotated)
            offset += len(plain)

        if unmatched:
            self._logger(
                "line {}: reference has {} words, input has {}".format(line_no, len(ref_words), word_idx)
            )

        return LineAnnotation(
            line_no=line_no,
            reference_text=ref,
            source_text=src,
            plain_text="".join(plain_parts),
            annotated_text="".join(annotated_parts),
            stressed=stressed,
            stress_spans=spans,
            quantity_patterns=[self._classifier.quantity_pattern(w) for w in ref_words],
            unmatched_words=unmatched,
            vowel_mismatches=mismatches,
        )

    def annotate_lines(self, reference_text: str, input_text: str) -> List[LineAnnotation]:
        ref_lines = split_lines(reference_text or "")
        input_lines = split_lines(input_text or "")
        out: List[LineAnnotation] = []
        for idx in range(max(len(ref_lines), len(input_lines))):
            ref = ref_lines[idx] if idx < len(ref_lines) else None
            src = input_lines[idx] if idx < len(input_lines) else None
            out.append(self.annotate_line(ref, src, line_no=idx))
        return out

    def annotate(self, reference_text: str, input_text: str) -> str:
        return "\n".join(a.annotated_text for a in self.annotate_lines(reference_text, input_text))


def annotate(reference_text: str, input_text: str, config: Optional[AnnotateConfig] = None) -> str:
    return StressEngine(config=config).annotate(reference_text, input_text)
