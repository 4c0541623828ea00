"""Command-line entry point: run one extraction and print the result as JSON."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import uuid
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path

from src.config import get_settings
from src.errors import ExtractionError
from src.extraction.extractor import ExtractionService
from src.extraction.models import RunInput
from src.llm.providers import build_model
from src.pipeline_config import InputType, PipelineConfig


def _build_arg_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="python -m src.cli",
        description=(
            "Task Extraction\n\n"
            "Extracts action items, a stakeholder summary and meeting minutes from\n"
            "a text, PDF, Word or email document using the configured model backend."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("path", help="Input file, or '-' to read from stdin.")
    parser.add_argument(
        "--type",
        dest="input_type",
        choices=[t.value for t in InputType],
        default=InputType.TEXT.value,
        help="Kind of input (default: text).",
    )
    parser.add_argument(
        "--reference-time",
        metavar="ISO",
        default=None,
        help="Instant relative dates are resolved from (default: now, UTC).",
    )
    parser.add_argument(
        "--timezone",
        default=None,
        help="IANA timezone for date phrases (default: DEFAULT_TIMEZONE setting).",
    )
    parser.add_argument("--source-name", default=None, help="Label for the source document.")
    parser.add_argument(
        "--output",
        metavar="FILE",
        default=None,
        help="Write the JSON result here instead of stdout.",
    )
    parser.add_argument(
        "--no-minutes",
        action="store_true",
        default=False,
        help="Skip the meeting-minutes model call.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Concurrent candidate-extraction calls (default: EXTRACTION_WORKERS setting).",
    )
    return parser


def _parse_reference_time(value: str | None) -> datetime:
    if not value:
        return datetime.now(UTC)
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _read_input(path: str, input_type: InputType) -> tuple[str | None, bytes | None]:
    raw = sys.stdin.buffer.read() if path == "-" else Path(path).read_bytes()
    if input_type == InputType.TEXT:
        return raw.decode("utf-8", errors="replace"), None
    return None, raw


def main(argv: list[str] | None = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)
    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        reference_time = _parse_reference_time(args.reference_time)
    except ValueError as exc:
        parser.error(f"Invalid --reference-time: {exc}")

    input_type = InputType(args.input_type)
    try:
        text, data = _read_input(args.path, input_type)
    except OSError as exc:
        print(f"ERROR: Could not read input: {exc}", file=sys.stderr)
        return 1

    config = PipelineConfig.from_settings(settings)
    if args.no_minutes:
        config = replace(config, extract_meeting_minutes=False)
    if args.workers is not None:
        config = replace(config, extraction_workers=max(1, args.workers))

    try:
        model = build_model(settings)
    except ValueError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    service = ExtractionService(model, config)
    run = RunInput(
        input_type=input_type,
        text=text,
        data=data,
        reference_time=reference_time,
        timezone=args.timezone or settings.default_timezone,
        source_name=args.source_name or (None if args.path == "-" else Path(args.path).name),
        run_id=uuid.uuid4().hex,
    )

    try:
        result = service.process_run(run)
    except ExtractionError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    payload = json.dumps(result.to_dict(), indent=2, ensure_ascii=False)
    if args.output:
        Path(args.output).write_text(payload + "\n", encoding="utf-8")
    else:
        print(payload)
    return 0


if __name__ == "__main__":
    sys.exit(main())
