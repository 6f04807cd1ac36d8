from __future__ import annotations

import argparse
import json
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from statement_review import __version__ as TOOL_VERSION
from statement_review.batches import BATCHES_FILE_ENV, get_batch_info, starter_batches_payload
from statement_review.contracts import build_contract
from statement_review.errors import ConfigurationError, SchemaError, TransportError
from statement_review.export import write_csv_outputs, write_review_workbook
from statement_review.schema import BUILTIN_LAYOUTS, resolve_layout
from statement_review.service import (
    ReviewData,
    batches_envelope,
    build_envelope,
    error_envelope,
    extract_workbook_bytes,
    layout_from_env,
    load_review_data,
)
from statement_review.storage import StorageSettings, document_link_builder
from statement_review.workbook import WORKBOOK_FORMATS

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_CONFIG_ERROR = 3
EXIT_TRANSPORT_ERROR = 4

OUTPUT_FORMATS = ("json", "csv", "xlsx")


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class StatementReviewArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def emit_verbose(message: str, args: argparse.Namespace) -> None:
    if getattr(args, "verbose", False) and not getattr(args, "quiet", False):
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def timestamp_token() -> str:
    override = os.environ.get("STATEMENT_REVIEW_OUTPUT_STAMP")
    if override:
        return override
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def default_output_dir(stem: str) -> Path:
    return Path.cwd() / "statement-review-output" / f"{stem}-{timestamp_token()}"


def determine_output_dir(args: argparse.Namespace, stem: str) -> Path:
    if getattr(args, "out_dir", None):
        return Path(args.out_dir)
    return default_output_dir(stem)


def write_text(path: Path, payload: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(payload, encoding="utf-8")


def write_json(path: Path, payload: Any) -> None:
    write_text(path, json_dumps(payload))


def refuse_overwrite(*paths: Path) -> None:
    for path in paths:
        if path.exists():
            raise CliError(f"Refusing to overwrite existing output: {path}", EXIT_COMMAND_ERROR)


def remove_generated_at(value: Any) -> Any:
    if isinstance(value, dict):
        result = {}
        for key, item in value.items():
            if key == "generated_at":
                result[key] = "1970-01-01T00:00:00Z"
            else:
                result[key] = remove_generated_at(item)
        return result
    if isinstance(value, list):
        return [remove_generated_at(item) for item in value]
    return value


def normalize_payload_for_cli(payload: Any) -> Any:
    if os.environ.get("STATEMENT_REVIEW_OUTPUT_STAMP"):
        return remove_generated_at(payload)
    return payload


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, ConfigurationError):
        return EXIT_CONFIG_ERROR
    if isinstance(exc, TransportError):
        return EXIT_TRANSPORT_ERROR
    if isinstance(exc, FileNotFoundError):
        return EXIT_COMMAND_ERROR
    if isinstance(exc, ValueError):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


def render_review_text(review: ReviewData) -> str:
    lines = [
        "statement-review",
        f"Source: {review.source or '[unknown]'}",
        f"Sheet: {review.sheet_name or '[none]'}",
        f"Layout: {review.layout.name}",
        f"MP records: {len(review.mp)}",
        f"KYM records: {len(review.kym)}",
    ]
    if review.batch:
        lines.insert(2, f"Batch: {review.batch}")
    lines.extend(f"Warning: {warning}" for warning in review.warnings)
    return "\n".join(lines)


def render_layout_text(name: str) -> str:
    layout = BUILTIN_LAYOUTS[name]
    lines = [f"Layout: {layout.name}", f"  {layout.description}", "  MP columns:"]
    lines.extend(f"    {index:>3}  {field}" for field, index in layout.mp.to_dict().items())
    lines.append("  KYM columns:")
    lines.extend(f"    {index:>3}  {field}" for field, index in layout.kym.to_dict().items())
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = StatementReviewArgumentParser(
        prog="statement-review",
        description="Normalize statement-review workbooks into MP and KYM records.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_output_options(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--layout", help=f"Column layout: {', '.join(sorted(BUILTIN_LAYOUTS))} or a .json layout file")
        sub.add_argument("-o", "--out", dest="out_dir", help="Output directory")
        sub.add_argument("--output", help="Explicit output path (json or xlsx formats)")
        sub.add_argument("--format", choices=OUTPUT_FORMATS, default="json", help="Output format for written results")
        sub.add_argument("--no-write", dest="no_write", action="store_true", help="Extract without writing output files")
        sub.add_argument("--json", action="store_true", help="Write the JSON envelope to stdout")
        sub.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
        sub.add_argument("-v", "--verbose", action="store_true", help="More human logs")

    extract = subparsers.add_parser("extract", help="Extract MP and KYM records from a local workbook.")
    extract.add_argument("input", help="Input workbook path (.xlsx/.xlsm)")
    extract.add_argument("--sheet", dest="sheet_name", help="Worksheet name (default: first sheet, or the batch's sheet)")
    extract.add_argument("--batch", help="Batch name selecting the worksheet and document path prefix")
    add_output_options(extract)

    fetch = subparsers.add_parser("fetch", help="Download the configured workbook from blob storage and extract it.")
    fetch.add_argument("--batch", help="Batch name (default: first configured batch)")
    add_output_options(fetch)

    batches = subparsers.add_parser("batches", help="List configured batches.")
    batches.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    layouts = subparsers.add_parser("layouts", help="List built-in column layouts or show one.")
    layouts.add_argument("name", nargs="?", help="Layout name")
    layouts.add_argument("--json", action="store_true", help="Write machine JSON to stdout")

    config = subparsers.add_parser("config", help="Generate configuration.")
    config_subparsers = config.add_subparsers(dest="config_command", required=True)
    config_init = config_subparsers.add_parser("init", help="Write a starter batch file.")
    config_init.add_argument("--path", default="review-batches.json", help="Batch file output path")

    subparsers.add_parser("version", help="Print version")
    return parser


def maybe_emit_json_stdout(payload: Any, enabled: bool) -> None:
    if enabled:
        print(json_dumps(payload))


def output_paths(args: argparse.Namespace, stem: str) -> list[Path]:
    out_dir = determine_output_dir(args, stem)
    if args.format == "csv":
        if args.output:
            raise CliError("--output is not supported with --format csv; use --out.", EXIT_COMMAND_ERROR)
        return [out_dir / "mp.csv", out_dir / "kym.csv"]
    default_name = "review.xlsx" if args.format == "xlsx" else "review.json"
    return [Path(args.output) if args.output else out_dir / default_name]


def write_outputs(args: argparse.Namespace, review: ReviewData, envelope: dict[str, Any], stem: str) -> list[Path]:
    paths = output_paths(args, stem)
    refuse_overwrite(*paths)
    if args.format == "csv":
        written = write_csv_outputs(review.mp, review.kym, paths[0].parent)
        return [written["mp"], written["kym"]]
    if args.format == "xlsx":
        return [write_review_workbook(review.mp, review.kym, paths[0])]
    write_json(paths[0], envelope)
    return paths


def finish_review(args: argparse.Namespace, review: ReviewData, *, command: str, stem: str) -> int:
    envelope = normalize_payload_for_cli(build_envelope(review, command=command))
    emit_verbose(f"Layout: {review.layout.name} ({review.layout.description})", args)
    emit_verbose(f"Available sheets: {review.sheet_names}", args)
    emit_verbose(f"Rows read: {review.rows_total}; skipped without case id: {review.rows_skipped}", args)

    written: list[Path] = []
    if not args.no_write:
        written = write_outputs(args, review, envelope, stem)

    if args.json:
        maybe_emit_json_stdout(envelope, True)
    else:
        emit_human(render_review_text(review), quiet=args.quiet)
        for path in written:
            emit_human(f"Output written: {path}", quiet=args.quiet)
    return EXIT_SUCCESS


def fail_review(args: argparse.Namespace, exc: Exception, *, command: str) -> int:
    if args.json:
        maybe_emit_json_stdout(
            normalize_payload_for_cli(error_envelope(str(exc), command=command, batch=getattr(args, "batch", None))),
            True,
        )
    eprint(str(exc))
    return classify_exception(exc)


def run_extract(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    if not input_path.exists():
        eprint(f"File not found: {input_path}")
        return EXIT_COMMAND_ERROR

    try:
        suffix = input_path.suffix.lower()
        if suffix not in WORKBOOK_FORMATS:
            raise CliError(
                f"Unsupported file type '{suffix or '[missing extension]'}'. "
                f"Supported: {', '.join(sorted(WORKBOOK_FORMATS))}",
                EXIT_COMMAND_ERROR,
            )
        layout = layout_from_env(args.layout)
        sheet_name = args.sheet_name
        link_builder = None
        if args.batch:
            info = get_batch_info(args.batch)
            sheet_name = sheet_name or info.sheet_name
            try:
                link_builder = document_link_builder(StorageSettings.from_env(), info.pdf_path_prefix)
            except ConfigurationError:
                emit_verbose("Storage settings missing; document links left empty.", args)
        review = extract_workbook_bytes(
            input_path.read_bytes(),
            sheet_name=sheet_name,
            layout=layout,
            link_builder=link_builder,
            source=input_path.name,
            batch=args.batch,
        )
        return finish_review(args, review, command="extract", stem=input_path.stem)
    except Exception as exc:
        return fail_review(args, exc, command="extract")


def run_fetch(args: argparse.Namespace) -> int:
    try:
        review = load_review_data(args.batch, layout=args.layout)
        stem = Path(review.source).stem or "review"
        return finish_review(args, review, command="fetch", stem=stem)
    except Exception as exc:
        return fail_review(args, exc, command="fetch")


def run_batches(args: argparse.Namespace) -> int:
    payload = batches_envelope()
    if args.json:
        maybe_emit_json_stdout(payload, True)
        return EXIT_SUCCESS if payload["success"] else EXIT_CONFIG_ERROR
    if not payload["success"]:
        eprint(payload["error"])
        return EXIT_CONFIG_ERROR
    for name in payload["batches"]:
        marker = " (default)" if name == payload["default"] else ""
        print(f"{name}{marker}")
    return EXIT_SUCCESS


def run_layouts(args: argparse.Namespace) -> int:
    if args.name:
        try:
            layout = resolve_layout(args.name)
        except SchemaError as exc:
            eprint(str(exc))
            return EXIT_CONFIG_ERROR
        if args.json:
            maybe_emit_json_stdout({"contract": build_contract("statement_review.layouts"), **layout.to_dict()}, True)
        elif args.name in BUILTIN_LAYOUTS:
            print(render_layout_text(layout.name))
        else:
            print(json_dumps(layout.to_dict()))
        return EXIT_SUCCESS

    if args.json:
        payload = {
            "contract": build_contract("statement_review.layouts"),
            "layouts": [BUILTIN_LAYOUTS[name].to_dict() for name in sorted(BUILTIN_LAYOUTS)],
        }
        maybe_emit_json_stdout(payload, True)
    else:
        for name in sorted(BUILTIN_LAYOUTS):
            print(f"{name}: {BUILTIN_LAYOUTS[name].description}")
    return EXIT_SUCCESS


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing config: {config_path}")
        return EXIT_COMMAND_ERROR
    write_json(config_path, starter_batches_payload())
    emit_human(f"Config written: {config_path}")
    emit_human(f"Point {BATCHES_FILE_ENV} at it to use these batches.")
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.command == "extract":
            return run_extract(args)
        if args.command == "fetch":
            return run_fetch(args)
        if args.command == "batches":
            return run_batches(args)
        if args.command == "layouts":
            return run_layouts(args)
        if args.command == "config":
            if args.config_command == "init":
                return run_config_init(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())
