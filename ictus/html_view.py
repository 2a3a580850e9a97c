from html import escape
from typing import Iterable, List

from .stress_engine import LineAnnotation

QUANTITY_GLYPHS = {
    "L": "¯",
    "S": "˘",
    "V": "×",
}


def quantity_to_glyphs(pattern: str) -> str:
    return " ".join(QUANTITY_GLYPHS.get(ch, "?") for ch in pattern)


def _stressed_line_html(annotation: LineAnnotation, stress_class: str) -> str:
    text = annotation.plain_text
    parts: List[str] = []
    pos = 0
    for start, end in sorted(annotation.stress_spans):
        if start < pos or end > len(text):
            continue
        parts.append(escape(text[pos:start]))
        parts.append("<span class='{}'>{}</span>".format(escape(stress_class), escape(text[start:end])))
        pos = end
    parts.append(escape(text[pos:]))
    return "".join(parts)


def render_annotation_html(
    annotations: Iterable[LineAnnotation],
    show_reference: bool = False,
    show_quantities: bool = False,
    stress_class: str = "stressed",
) -> str:
    rows: List[str] = []
    for a in annotations:
        row_class = "line" if a.stressed else "line exempt"
        ref_html = ""
        if show_reference and a.reference_text:
            ref_html = "<div class='ref'>{}</div>".format(escape(a.reference_text))
        qty_html = ""
        if show_quantities and a.quantity_patterns:
            glyphs = " · ".join(quantity_to_glyphs(p) for p in a.quantity_patterns if p)
            qty_html = "<div class='qty'>{}</div>".format(escape(glyphs))
        body = _stressed_line_html(a, stress_class) or "&nbsp;"
        rows.append(
            f"<div class='{row_class}' data-line='{int(a.line_no)}'>"
            f"{ref_html}"
            f"<div class='text'>{body}</div>"
            f"{qty_html}"
            "</div>"
        )

    cls = escape(stress_class)
    return (
        "<div id='ictus'>"
        "<style>"
        "#ictus { font-family: Georgia, 'Iowan Old Style', serif; line-height: 1.5; }"
        "#ictus .line { padding: 0.05rem 0.4rem; }"
        "#ictus .exempt { opacity: 0.72; padding-left: 1.6rem; }"
        "#ictus .ref, #ictus .qty {"
        "  font-size: 0.78rem;"
        "  opacity: 0.7;"
        "}"
        "#ictus .qty { font-family: Menlo, Monaco, monospace; letter-spacing: 0.06rem; }"
        f"#ictus .{cls} {{ font-weight: 700; text-decoration: underline; }}"
        "</style>"
        + "".join(rows)
        + "</div>"
    )
