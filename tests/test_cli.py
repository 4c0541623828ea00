"""Tests for the command-line entry point (model backend patched out)."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from src.cli import _build_arg_parser, _parse_reference_time, main

SENTENCE = "Alex to confirm data source access by Feb 10. This is critical for the launch."
TASK = {
    "title": "Confirm data source access",
    "owner": "Alex",
    "dueDate": "Feb 10",
    "priority": "P0",
    "sourceQuote": SENTENCE,
}


class TestArgParser:
    def test_defaults(self) -> None:
        args = _build_arg_parser().parse_args(["notes.txt"])
        assert args.input_type == "text"
        assert args.reference_time is None
        assert args.no_minutes is False
        assert args.workers is None

    def test_rejects_unknown_type(self) -> None:
        with pytest.raises(SystemExit):
            _build_arg_parser().parse_args(["notes.xlsx", "--type", "xlsx"])

    def test_reference_time_parsing(self) -> None:
        parsed = _parse_reference_time("2024-01-01T00:00:00Z")
        assert parsed.isoformat() == "2024-01-01T00:00:00+00:00"
        assert _parse_reference_time("2024-01-01T09:30").tzinfo is not None


class TestMain:
    def test_writes_json_result(self, tmp_path: Path, scripted_model) -> None:
        source = tmp_path / "notes.txt"
        source.write_text(SENTENCE, encoding="utf-8")
        output = tmp_path / "result.json"
        model = scripted_model(candidates=[{"tasks": [TASK]}], validation=[{"tasks": [TASK]}])

        with patch("src.cli.build_model", return_value=model):
            code = main(
                [
                    str(source),
                    "--reference-time",
                    "2024-01-01T00:00:00Z",
                    "--timezone",
                    "UTC",
                    "--output",
                    str(output),
                    "--no-minutes",
                ]
            )

        assert code == 0
        result = json.loads(output.read_text(encoding="utf-8"))
        assert len(result["tasks"]) == 1
        assert result["tasks"][0]["due_date_iso"] == "2024-02-10T00:00:00Z"
        assert result["tasks"][0]["run_id"]
        assert result["meeting_minutes"] is None
        assert model.calls("minutes") == []

    def test_prints_to_stdout(self, tmp_path: Path, scripted_model, capsys: pytest.CaptureFixture[str]) -> None:
        source = tmp_path / "notes.txt"
        source.write_text(SENTENCE, encoding="utf-8")

        with patch("src.cli.build_model", return_value=scripted_model()):
            code = main([str(source), "--reference-time", "2024-01-01T00:00:00Z"])

        assert code == 0
        assert json.loads(capsys.readouterr().out)["tasks"] == []

    def test_extraction_error_exit_code(self, tmp_path: Path, scripted_model, capsys: pytest.CaptureFixture[str]) -> None:
        source = tmp_path / "empty.txt"
        source.write_text("   ", encoding="utf-8")

        with patch("src.cli.build_model", return_value=scripted_model()):
            code = main([str(source)])

        assert code == 1
        assert "[parse]" in capsys.readouterr().err

    def test_unknown_provider_exit_code(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        source = tmp_path / "notes.txt"
        source.write_text(SENTENCE, encoding="utf-8")

        with patch("src.cli.build_model", side_effect=ValueError("Unknown llm_provider: 'watson'")):
            code = main([str(source)])

        assert code == 1
        assert "ERROR: Unknown llm_provider" in capsys.readouterr().err

    def test_missing_file(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("src.cli.build_model"):
            code = main([str(tmp_path / "missing.txt")])
        assert code == 1
        assert "Could not read input" in capsys.readouterr().err
