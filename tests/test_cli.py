import io
import json
import logging

import pytest

import main
from llmbench.core.models import DiffSegment, SegmentType


def _write_comparison(tmp_path, comparison):
    path = tmp_path / "saved.json"
    path.write_text(json.dumps(comparison.to_dict()), encoding="utf-8")
    return path


def test_parse_export_arguments():
    args = main.parse_arguments(["--log-level", "INFO", "export", "c.json", "-f", "md", "-o", "out.md"])

    assert args.command is main.Command.EXPORT
    assert args.comparison_path == "c.json"
    assert args.export_format == "md"
    assert args.output_path == "out.md"
    assert args.log_level == "INFO"


def test_parse_defaults_to_viewer():
    args = main.parse_arguments([])
    assert args.command is main.Command.VIEW
    assert args.comparison_path is None


def test_verbose_switches_to_debug():
    assert main.parse_arguments(["-v", "diff", "a", "b"]).log_level == "DEBUG"


def test_pdf_export_requires_output():
    with pytest.raises(SystemExit):
        main.parse_arguments(["export", "c.json", "--format", "pdf"])


def test_export_text_to_stdout(tmp_path, comparison):
    path = _write_comparison(tmp_path, comparison)
    out = io.StringIO()

    code = main.run_export(main.parse_arguments(["export", str(path), "-f", "txt"]), out)

    assert code == 0
    assert "LLMBENCH COMPARISON LOG" in out.getvalue()
    assert "the dog sat" in out.getvalue()


def test_export_json_into_directory(tmp_path, comparison):
    path = _write_comparison(tmp_path, comparison)
    target = tmp_path / "exports"
    target.mkdir()
    out = io.StringIO()

    code = main.run_export(main.parse_arguments(["export", str(path), "-o", str(target)]), out)

    written = target / "cats-and-dogs.json"
    assert code == 0
    assert out.getvalue().strip() == str(written)
    assert json.loads(written.read_text(encoding="utf-8"))["wordCountA"] == 6


def test_export_of_unreadable_file_fails(tmp_path, caplog):
    bad = tmp_path / "bad.json"
    bad.write_text("{", encoding="utf-8")

    code = main.run_export(main.parse_arguments(["export", str(bad)]), io.StringIO())

    assert code == 1
    assert "Could not read" in caplog.text


def test_diff_without_colors(tmp_path):
    left = tmp_path / "a.txt"
    right = tmp_path / "b.txt"
    left.write_text("the cat sat\non the mat", encoding="utf-8")
    right.write_text("the dog sat\non the mat", encoding="utf-8")
    out = io.StringIO()

    code = main.run_diff(main.parse_arguments(["diff", str(left), str(right), "--no-color"]), out)

    lines = out.getvalue().splitlines()
    assert code == 0
    assert lines == [
        f"--- A: {left} (1 removed)",
        "   1 | the [-cat-] sat",
        "   2 | on the mat",
        f"+++ B: {right} (1 added)",
        "   1 | the {+dog+} sat",
        "   2 | on the mat",
    ]


def test_diff_of_identical_files(tmp_path):
    left = tmp_path / "a.txt"
    left.write_text("same", encoding="utf-8")
    out = io.StringIO()

    assert main.run_diff(main.parse_arguments(["diff", str(left), str(left)]), out) == 0
    assert out.getvalue() == "Texts are identical.\n"


def test_diff_of_missing_file_fails(tmp_path):
    args = main.parse_arguments(["diff", str(tmp_path / "x.txt"), str(tmp_path / "y.txt")])
    assert main.run_diff(args, io.StringIO()) == 1


def test_format_segments_colors():
    segments = [DiffSegment("a ", SegmentType.COMMON), DiffSegment("b", SegmentType.ADDED)]
    assert main.format_segments(segments) == "a \033[32mb\033[0m"


def test_setup_logging_writes_log_file(tmp_path):
    log_file = tmp_path / "logs" / "llmbench.log"
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        logger = main.setup_logging("INFO", log_file)
        logger.info("hello log")
        for handler in logger.handlers:
            handler.flush()
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)

    content = log_file.read_text(encoding="utf-8")
    assert "| INFO     | root | hello log" in content
    assert logging.getLogger("urllib3").level == logging.WARNING
