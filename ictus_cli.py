#!/usr/bin/env python3
"""Command line and stdin-JSON front end for the ictus stress engine.

Usage:
    ictus --reference REF.txt --input PLAIN.txt [--format text|html|json]
    echo '{"reference": "...", "input": "..."}' | ictus
    ictus --persistent   # newline-delimited JSON requests, one reply per line
"""
import argparse
import json
import os
import sys
import time
from dataclasses import asdict
from typing import Callable, Dict, List, Optional, Tuple

from ictus.html_view import render_annotation_html
from ictus.settings import (
    LINE_POLICIES,
    MARKER_NAMES,
    WORD_SCOPES,
    config_from_settings,
    debug_enabled,
    load_settings,
    resolve_settings_path,
)
from ictus.stress_engine import LineAnnotation, StressEngine

MISSING_INPUT_MESSAGE = "both the reference text and the input text are required"
LOG_ROTATE_BYTES = 1024 * 1024


def _log_line(msg: str, path: str = "") -> None:
    line = "[ictus] {} {}".format(time.strftime("%Y-%m-%d %H:%M:%S"), msg)
    try:
        sys.stderr.write(line + "\n")
    except (OSError, ValueError):
        pass
    if not path:
        return
    try:
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        if os.path.exists(path) and os.path.getsize(path) > LOG_ROTATE_BYTES:
            with open(path, "w", encoding="utf-8") as fh:
                fh.write("")
        with open(path, "a", encoding="utf-8") as fh:
            fh.write(line + "\n")
    except OSError:
        # A broken log file must not abort annotation.
        return


def _make_logger(settings: Dict[str, object]) -> Callable[[str], None]:
    if not debug_enabled(settings):
        return lambda _m: None
    path = os.path.expanduser(str(settings.get("debug_log_file", "") or "").strip())
    return lambda msg: _log_line(msg, path)


def _char_to_byte_index(text: str, char_idx: int) -> int:
    if char_idx <= 0:
        return 0
    if char_idx >= len(text):
        return len(text.encode("utf-8"))
    return len(text[:char_idx].encode("utf-8"))


def _byte_spans(text: str, spans: List[Tuple[int, int]]) -> List[List[int]]:
    return [[_char_to_byte_index(text, s), _char_to_byte_index(text, e)] for s, e in spans]


def _result_for(a: LineAnnotation) -> dict:
    return {
        "lnum": int(a.line_no),
        "reference": a.reference_text,
        "text": a.source_text,
        "plain": a.plain_text,
        "annotated": a.annotated_text,
        "stressed": bool(a.stressed),
        "stress_spans": _byte_spans(a.plain_text, a.stress_spans),
        "char_spans": [[s, e] for s, e in a.stress_spans],
        "quantity_patterns": list(a.quantity_patterns),
        "unmatched_words": list(a.unmatched_words),
        "vowel_mismatches": list(a.vowel_mismatches),
    }


def _eval_summary(annotations: List[LineAnnotation]) -> dict:
    paired = [a for a in annotations if a.reference_text and a.source_text]
    return {
        "line_count": len(annotations),
        "paired_line_count": len(paired),
        "stressed_line_count": sum(1 for a in paired if a.stressed),
        "exempt_line_count": sum(1 for a in paired if not a.stressed),
        "stressed_word_count": sum(len(a.stress_spans) for a in annotations),
        "unmatched_word_count": sum(len(a.unmatched_words) for a in annotations),
        "vowel_mismatch_count": sum(len(a.vowel_mismatches) for a in annotations),
    }


def handle_request(req: dict, base_settings: Optional[Dict[str, object]] = None) -> dict:
    settings: Dict[str, object] = dict(base_settings or {})
    req_cfg = req.get("config")
    if isinstance(req_cfg, dict):
        settings.update(req_cfg)
    reference = req.get("reference")
    text = req.get("input")
    reference = reference if isinstance(reference, str) else ""
    text = text if isinstance(text, str) else ""

    payload: dict = {}
    if "id" in req:
        payload["id"] = req["id"]

    if not reference.strip() or not text.strip():
        payload.update({"output": "", "results": [], "eval": _eval_summary([]), "error": "missing_input"})
        return payload

    logger = _make_logger(settings)
    config = config_from_settings(settings, logger=logger)
    engine = StressEngine(config=config, logger=logger)
    annotations = engine.annotate_lines(reference, text)

    summary = _eval_summary(annotations)
    summary["config"] = asdict(config)
    payload.update(
        {
            "output": "\n".join(a.annotated_text for a in annotations),
            "results": [_result_for(a) for a in annotations],
            "eval": summary,
        }
    )
    return payload


def _write_json_line(payload: dict) -> None:
    sys.stdout.write(json.dumps(payload, ensure_ascii=True) + "\n")
    sys.stdout.flush()


def run_persistent(base_settings: Optional[Dict[str, object]] = None) -> int:
    for raw in sys.stdin:
        raw = raw.strip()
        if not raw:
            continue
        try:
            req = json.loads(raw)
        except ValueError:
            _write_json_line({"error": "invalid_json"})
            continue
        if not isinstance(req, dict):
            _write_json_line({"error": "invalid_request"})
            continue
        if req.get("shutdown"):
            break
        _write_json_line(handle_request(req, base_settings))
    return 0


def _read_stdin_json() -> dict:
    raw = sys.stdin.read()
    if not raw.strip():
        return {}
    return json.loads(raw)


def _read_text(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8") as fh:
        return fh.read()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ictus",
        description="Mark metrical stress on plain verse using a macron-marked reference text.",
    )
    parser.add_argument("--reference", "-r", default="", help="Reference text with macrons/breves")
    parser.add_argument("--input", "-i", default="", help="Plain text to annotate ('-' reads stdin)")
    parser.add_argument("--format", choices=["text", "html", "json"], default="text")
    parser.add_argument("--marker", choices=MARKER_NAMES, default=None)
    parser.add_argument("--line-policy", choices=LINE_POLICIES, default=None)
    parser.add_argument("--word-scope", choices=WORD_SCOPES, default=None)
    parser.add_argument("--strip-caesura", action="store_true", default=None)
    parser.add_argument("--circumflex-long", action="store_true", default=None,
                        help="Treat circumflexed vowels as long")
    parser.add_argument("--show-reference", action="store_true", help="HTML: show the reference line above each line")
    parser.add_argument("--show-quantities", action="store_true", help="HTML: show vowel quantities per line")
    parser.add_argument("--config", default="", help="JSON settings file (default: $ICTUS_SETTINGS_PATH or ~/.ictus/settings.json)")
    parser.add_argument("--output", "-o", default="", help="Write the result to a file instead of stdout")
    parser.add_argument("--persistent", action="store_true", help="Serve newline-delimited JSON requests on stdin")
    return parser


def _settings_with_flags(settings: Dict[str, object], args: argparse.Namespace) -> Dict[str, object]:
    out = dict(settings)
    flags = {
        "marker": args.marker,
        "line_policy": args.line_policy,
        "word_scope": args.word_scope,
        "strip_caesura": args.strip_caesura,
        "circumflex_long": args.circumflex_long,
    }
    for key, value in flags.items():
        if value is not None:
            out[key] = value
    return out


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = _settings_with_flags(load_settings(resolve_settings_path(args.config)), args)

    if args.persistent:
        return run_persistent(settings)

    if not args.reference and not args.input:
        try:
            req = _read_stdin_json()
        except ValueError:
            _write_json_line({"error": "invalid_json"})
            return 1
        if not isinstance(req, dict):
            _write_json_line({"error": "invalid_request"})
            return 1
        _write_json_line(handle_request(req, settings))
        return 0

    try:
        reference = _read_text(args.reference) if args.reference else ""
        text = _read_text(args.input) if args.input else ""
    except OSError as exc:
        sys.stderr.write("error: {}\n".format(exc))
        return 1
    if not reference.strip() or not text.strip():
        sys.stderr.write("error: {}\n".format(MISSING_INPUT_MESSAGE))
        return 2

    logger = _make_logger(settings)
    config = config_from_settings(settings, logger=logger)
    engine = StressEngine(config=config, logger=logger)
    annotations = engine.annotate_lines(reference, text)

    if args.format == "html":
        rendered = render_annotation_html(
            annotations,
            show_reference=args.show_reference,
            show_quantities=args.show_quantities,
            stress_class=config.stress_class,
        )
    elif args.format == "json":
        summary = _eval_summary(annotations)
        summary["config"] = asdict(config)
        rendered = json.dumps(
            {
                "output": "\n".join(a.annotated_text for a in annotations),
                "results": [_result_for(a) for a in annotations],
                "eval": summary,
            },
            ensure_ascii=False,
            indent=2,
        )
    else:
        rendered = "\n".join(a.annotated_text for a in annotations)

    if args.output:
        try:
            with open(args.output, "w", encoding="utf-8") as fh:
                fh.write(rendered + "\n")
        except OSError as exc:
            sys.stderr.write("error: {}\n".format(exc))
            return 1
    else:
        sys.stdout.write(rendered + "\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
