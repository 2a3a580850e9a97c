"""Tests for ictus_cli: file mode, single JSON request mode, and helpers."""
import io
import json
import os
import sys
import tempfile
import unittest
from unittest.mock import patch

import ictus_cli

REF = "Ārma virūmque canō\nĪtaliam ‖ fātō"
PLAIN = "Arma virumque cano\nItaliam fato"


def _run_main(argv, stdin_text: str = ""):
    old_stdin, old_stdout, old_stderr = sys.stdin, sys.stdout, sys.stderr
    sys.stdin = io.StringIO(stdin_text)
    out = io.StringIO()
    err = io.StringIO()
    sys.stdout = out
    sys.stderr = err
    try:
        with patch.dict(os.environ, {"ICTUS_SETTINGS_PATH": "", "ICTUS_DEBUG": ""}):
            code = ictus_cli.main(argv)
    finally:
        sys.stdin, sys.stdout, sys.stderr = old_stdin, old_stdout, old_stderr
    return code, out.getvalue(), err.getvalue()


class FileModeTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.ref_path = os.path.join(self._tmp.name, "ref.txt")
        self.plain_path = os.path.join(self._tmp.name, "plain.txt")
        with open(self.ref_path, "w", encoding="utf-8") as fh:
            fh.write(REF)
        with open(self.plain_path, "w", encoding="utf-8") as fh:
            fh.write(PLAIN)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_text_output(self) -> None:
        code, out, _ = _run_main(["-r", self.ref_path, "-i", self.plain_path, "--marker", "brackets"])
        self.assertEqual(code, 0)
        self.assertEqual(out, "[A]rma vir[u]mque can[o]\nItaliam fato\n")

    def test_default_marker_is_span(self) -> None:
        code, out, _ = _run_main(["-r", self.ref_path, "-i", self.plain_path])
        self.assertEqual(code, 0)
        self.assertIn('<span class="stressed">A</span>rma', out)

    def test_input_from_stdin(self) -> None:
        code, out, _ = _run_main(["-r", self.ref_path, "-i", "-", "--marker", "brackets"], stdin_text=PLAIN)
        self.assertEqual(code, 0)
        self.assertTrue(out.startswith("[A]rma"))

    def test_line_policy_flag(self) -> None:
        code, out, _ = _run_main(
            ["-r", self.ref_path, "-i", self.plain_path, "--marker", "brackets", "--line-policy", "all"]
        )
        self.assertEqual(code, 0)
        self.assertEqual(out.splitlines()[1], "[I]taliam f[a]to")

    def test_html_output(self) -> None:
        code, out, _ = _run_main(["-r", self.ref_path, "-i", self.plain_path, "--format", "html", "--show-reference"])
        self.assertEqual(code, 0)
        self.assertIn("<div id='ictus'>", out)
        self.assertIn("class='line exempt'", out)

    def test_json_output(self) -> None:
        code, out, _ = _run_main(["-r", self.ref_path, "-i", self.plain_path, "--format", "json"])
        self.assertEqual(code, 0)
        payload = json.loads(out)
        self.assertEqual(len(payload["results"]), 2)
        self.assertEqual(payload["eval"]["exempt_line_count"], 1)
        self.assertEqual(payload["eval"]["stressed_word_count"], 3)

    def test_output_file(self) -> None:
        target = os.path.join(self._tmp.name, "out", "result.txt")
        os.makedirs(os.path.dirname(target))
        code, out, _ = _run_main(["-r", self.ref_path, "-i", self.plain_path, "--marker", "brackets", "-o", target])
        self.assertEqual(code, 0)
        self.assertEqual(out, "")
        with open(target, "r", encoding="utf-8") as fh:
            self.assertEqual(fh.read().splitlines()[0], "[A]rma vir[u]mque can[o]")

    def test_missing_input_is_reported(self) -> None:
        code, out, err = _run_main(["-r", self.ref_path])
        self.assertEqual(code, 2)
        self.assertEqual(out, "")
        self.assertIn("required", err)

    def test_empty_reference_file_is_reported(self) -> None:
        empty = os.path.join(self._tmp.name, "empty.txt")
        with open(empty, "w", encoding="utf-8") as fh:
            fh.write("  \n")
        code, _, err = _run_main(["-r", empty, "-i", self.plain_path])
        self.assertEqual(code, 2)
        self.assertIn("required", err)

    def test_unreadable_file(self) -> None:
        code, _, err = _run_main(["-r", os.path.join(self._tmp.name, "nope.txt"), "-i", self.plain_path])
        self.assertEqual(code, 1)
        self.assertIn("error:", err)

    def test_config_file_is_applied(self) -> None:
        cfg_path = os.path.join(self._tmp.name, "settings.json")
        with open(cfg_path, "w", encoding="utf-8") as fh:
            json.dump({"marker": "brackets", "word_scope": "first"}, fh)
        code, out, _ = _run_main(["-r", self.ref_path, "-i", self.plain_path, "--config", cfg_path])
        self.assertEqual(code, 0)
        self.assertEqual(out.splitlines()[0], "[A]rma virumque cano")

    def test_debug_log_goes_to_stderr(self) -> None:
        cfg_path = os.path.join(self._tmp.name, "settings.json")
        with open(cfg_path, "w", encoding="utf-8") as fh:
            json.dump({"debug_log": True}, fh)
        code, _, err = _run_main(["-r", self.ref_path, "-i", self.plain_path, "--config", cfg_path], stdin_text="")
        self.assertEqual(code, 0)
        self.assertEqual(err, "")
        extra = os.path.join(self._tmp.name, "extra.txt")
        with open(extra, "w", encoding="utf-8") as fh:
            fh.write("Arma virumque cano Troiae")
        code, _, err = _run_main(["-r", self.ref_path, "-i", extra, "--config", cfg_path])
        self.assertEqual(code, 0)
        self.assertIn("[ictus]", err)
        self.assertIn("reference has 3 words, input has 4", err)


class RequestModeTests(unittest.TestCase):
    def test_single_request(self) -> None:
        req = {"reference": REF, "input": PLAIN, "config": {"marker": "brackets"}}
        code, out, _ = _run_main([], stdin_text=json.dumps(req))
        self.assertEqual(code, 0)
        payload = json.loads(out)
        self.assertNotIn("error", payload)
        self.assertEqual(payload["output"], "[A]rma vir[u]mque can[o]\nItaliam fato")
        first = payload["results"][0]
        for key in ("lnum", "reference", "text", "plain", "annotated", "stressed", "stress_spans", "quantity_patterns"):
            self.assertIn(key, first)
        self.assertEqual(first["char_spans"], [[0, 1], [8, 9], [17, 18]])
        self.assertEqual(first["quantity_patterns"], ["LV", "VLVV", "VL"])

    def test_missing_input_error(self) -> None:
        code, out, _ = _run_main([], stdin_text=json.dumps({"reference": REF, "input": ""}))
        self.assertEqual(code, 0)
        payload = json.loads(out)
        self.assertEqual(payload["error"], "missing_input")
        self.assertEqual(payload["results"], [])

    def test_invalid_json(self) -> None:
        code, out, _ = _run_main([], stdin_text="{nope")
        self.assertEqual(code, 1)
        self.assertEqual(json.loads(out)["error"], "invalid_json")

    def test_non_object_request(self) -> None:
        code, out, _ = _run_main([], stdin_text="[1, 2]")
        self.assertEqual(code, 1)
        self.assertEqual(json.loads(out)["error"], "invalid_request")

    def test_empty_stdin_is_missing_input(self) -> None:
        code, out, _ = _run_main([], stdin_text="")
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out)["error"], "missing_input")


class HelperTests(unittest.TestCase):
    def test_char_to_byte_index(self) -> None:
        text = "ārma cano"
        self.assertEqual(ictus_cli._char_to_byte_index(text, 0), 0)
        self.assertEqual(ictus_cli._char_to_byte_index(text, 1), 2)
        self.assertEqual(ictus_cli._char_to_byte_index(text, len(text)), len(text.encode("utf-8")))

    def test_byte_spans_after_multibyte_prefix(self) -> None:
        text = "— arma"
        self.assertEqual(ictus_cli._byte_spans(text, [(2, 3)]), [[4, 5]])

    def test_request_flags_override_file_settings(self) -> None:
        payload = ictus_cli.handle_request(
            {"id": 3, "reference": "ārma", "input": "arma", "config": {"marker": "brackets"}},
            base_settings={"marker": "span"},
        )
        self.assertEqual(payload["id"], 3)
        self.assertEqual(payload["output"], "[a]rma")
        self.assertEqual(payload["eval"]["config"]["marker"], "brackets")


if __name__ == "__main__":
    unittest.main()
