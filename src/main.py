# src/main.py - v3
"""CLI entry point: run documents through a pipeline and browse run history.

Usage:
    visiontester run <file> [--pipeline direct|ocr] [--model M] [--schema FILE | --schema-id ID]
    visiontester history [--model M] [--pipeline P] [--status S] [--limit N]
    visiontester show <run_id> [--save-document PATH]
    visiontester delete <run_id>
    visiontester cleanup [--keep N]
    visiontester compare <left_run_id> <right_run_id>
    visiontester models [--kind vision|ocr|parse]
    visiontester health [--retry]
    visiontester schemas list|show|add|remove|select
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any

from visiontester.version import __version__

logger = logging.getLogger(__name__)

PIPELINES = {"direct": "direct-multimodal", "ocr": "ocr-then-parse"}
EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_ERROR
    if args.command == "run" and args.ocr_model and args.pipeline != "ocr":
        parser.error("--ocr-model only applies to --pipeline ocr")

    from visiontester.config.settings import ConfigurationError, load_settings
    from visiontester.logging.logger import setup_logging

    try:
        settings = load_settings()
    except (ConfigurationError, ValueError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_ERROR

    setup_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return EXIT_INTERRUPTED
    except Exception as exc:
        logger.exception("Fatal error: %s", exc)
        return EXIT_ERROR


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="visiontester",
        description=f"visiontester v{__version__} - vision model extraction test bench",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- run ---
    p_run = subparsers.add_parser("run", help="Run a document through a pipeline")
    p_run.add_argument("file", type=Path, help="Image or PDF to process")
    p_run.add_argument(
        "-p", "--pipeline", choices=sorted(PIPELINES), default="direct",
        help="direct (one vision turn) or ocr (OCR then parse) (default: direct)",
    )
    p_run.add_argument("-m", "--model", default=None, help="Vision or parse model")
    p_run.add_argument("--ocr-model", default=None, help="OCR model (ocr pipeline)")
    schema_source = p_run.add_mutually_exclusive_group()
    schema_source.add_argument(
        "-s", "--schema", type=Path, default=None,
        help="JSON Schema file describing the expected output",
    )
    schema_source.add_argument(
        "--schema-id", default=None,
        help="Schema from the library (default: the selected schema, if any)",
    )
    p_run.add_argument("--temperature", type=float, default=None)
    p_run.add_argument("--max-tokens", type=int, default=None)
    p_run.add_argument("--num-ctx", type=int, default=None)
    p_run.add_argument(
        "--json", dest="as_json", action="store_true",
        help="Print the full run record as JSON",
    )
    p_run.set_defaults(func=_cmd_run)

    # --- history ---
    p_history = subparsers.add_parser("history", help="List recorded runs")
    p_history.add_argument("--model", default=None)
    p_history.add_argument(
        "--pipeline", choices=sorted(PIPELINES.values()), default=None,
    )
    p_history.add_argument(
        "--status", choices=["pending", "success", "error", "cancelled"], default=None,
    )
    p_history.add_argument("-n", "--limit", type=int, default=20)
    p_history.set_defaults(func=_cmd_history)

    # --- show ---
    p_show = subparsers.add_parser("show", help="Show one run as JSON")
    p_show.add_argument("run_id")
    p_show.add_argument(
        "--save-document", type=Path, default=None, metavar="PATH",
        help="Write the retained input document to PATH (LEDGER_RETAIN_DOCUMENTS)",
    )
    p_show.set_defaults(func=_cmd_show)

    # --- delete ---
    p_delete = subparsers.add_parser("delete", help="Delete a run")
    p_delete.add_argument("run_id")
    p_delete.set_defaults(func=_cmd_delete)

    # --- cleanup ---
    p_cleanup = subparsers.add_parser("cleanup", help="Delete the oldest runs")
    p_cleanup.add_argument(
        "--keep", type=int, default=None,
        help="Number of runs to keep (default: LEDGER_KEEP_RUNS)",
    )
    p_cleanup.set_defaults(func=_cmd_cleanup)

    # --- compare ---
    p_compare = subparsers.add_parser("compare", help="Diff the parsed output of two runs")
    p_compare.add_argument("left")
    p_compare.add_argument("right")
    p_compare.set_defaults(func=_cmd_compare)

    # --- models ---
    p_models = subparsers.add_parser("models", help="List installed models")
    p_models.add_argument("--kind", choices=["vision", "ocr", "parse"], default=None)
    p_models.set_defaults(func=_cmd_models)

    # --- health ---
    p_health = subparsers.add_parser("health", help="Check the inference server")
    p_health.add_argument(
        "--retry", action="store_true",
        help="Retry with exponential backoff (1s, 2s, 4s)",
    )
    p_health.set_defaults(func=_cmd_health)

    # --- schemas ---
    p_schemas = subparsers.add_parser("schemas", help="Manage the schema library")
    schema_commands = p_schemas.add_subparsers(dest="schema_command", required=True)

    p_list = schema_commands.add_parser("list", help="List built-in and added schemas")
    p_list.set_defaults(func=_cmd_schemas_list)

    p_sshow = schema_commands.add_parser("show", help="Print a schema as sent to the model")
    p_sshow.add_argument("schema_id")
    p_sshow.set_defaults(func=_cmd_schemas_show)

    p_add = schema_commands.add_parser("add", help="Add a JSON Schema file")
    p_add.add_argument("file", type=Path)
    p_add.add_argument("--name", default=None, help="Display name (default: file name)")
    p_add.add_argument("--id", dest="schema_id", default=None, help="Id (default: from name)")
    p_add.set_defaults(func=_cmd_schemas_add)

    p_remove = schema_commands.add_parser("remove", help="Remove an added schema")
    p_remove.add_argument("schema_id")
    p_remove.set_defaults(func=_cmd_schemas_remove)

    p_select = schema_commands.add_parser(
        "select", help="Set the schema used when a run names none",
    )
    select_target = p_select.add_mutually_exclusive_group(required=True)
    select_target.add_argument("schema_id", nargs="?", default=None)
    select_target.add_argument("--clear", action="store_true", help="Clear the selection")
    p_select.set_defaults(func=_cmd_schemas_select)

    return parser


# --- Commands ---


async def _cmd_run(args: argparse.Namespace, settings: Any) -> int:
    """Execute one pipeline run."""
    from visiontester.core.errors import ErrorKind, PipelineError
    from visiontester.llm.ollama_transport import OllamaTransport
    from visiontester.pipeline.orchestrator import PipelineOrchestrator
    from visiontester.schema.library import SchemaLibraryError
    from visiontester.storage.ledger_factory import create_ledger
    from visiontester.utils.documents import load_document

    try:
        document = load_document(
            args.file,
            max_size=settings.max_file_size_bytes,
            warn_size=settings.warn_file_size_bytes,
        )
    except (FileNotFoundError, ValueError) as e:
        logger.error("%s", e)
        return EXIT_ERROR

    try:
        schema, schema_id = _resolve_schema(args, settings)
    except SchemaLibraryError as e:
        logger.error("%s", e)
        return EXIT_ERROR

    pipeline = PIPELINES[args.pipeline]
    parameters = settings.default_parameters(
        pipeline, output_schema=schema, schema_id=schema_id,
    )
    overrides = {
        k: v for k, v in (
            ("temperature", args.temperature),
            ("max_tokens", args.max_tokens),
            ("num_ctx", args.num_ctx),
        ) if v is not None
    }
    if overrides:
        parameters = type(parameters).model_validate({**parameters.model_dump(), **overrides})

    transport = OllamaTransport(
        host=settings.ollama_base_url, timeout=settings.request_timeout_s,
    )
    ledger = create_ledger(settings)
    orchestrator = PipelineOrchestrator(settings, transport, ledger)
    _install_cancel_handler(orchestrator.cancel)

    try:
        if pipeline == "ocr-then-parse":
            record = await orchestrator.run_ocr_then_parse(
                document, parameters, ocr_model=args.ocr_model, parse_model=args.model,
            )
        else:
            record = await orchestrator.run_direct(document, parameters, model=args.model)
    except PipelineError as e:
        print(f"Error: {e}", file=sys.stderr)
        if e.details:
            logger.debug("Details: %s", e.details)
        if e.run is not None:
            print(f"Run {e.run.id} recorded as {e.run.status}", file=sys.stderr)
        if e.kind == ErrorKind.REQUEST_CANCELLED:
            return EXIT_INTERRUPTED
        return EXIT_ERROR
    finally:
        ledger.close()

    if args.as_json:
        print(record.model_dump_json(indent=2))
    else:
        _print_run(record)
    return EXIT_OK


async def _cmd_history(args: argparse.Namespace, settings: Any) -> int:
    from visiontester.storage.ledger_factory import create_ledger
    from visiontester.utils.formatters import format_duration

    ledger = create_ledger(settings)
    try:
        runs = await ledger.list_runs(
            model_name=args.model,
            pipeline=args.pipeline,
            status=args.status,
            limit=args.limit,
        )
    finally:
        ledger.close()

    if not runs:
        print("No runs recorded.")
        return EXIT_OK
    for run in runs:
        valid = {True: "valid", False: "invalid", None: "-"}[run.output.is_valid]
        print(
            f"{run.id}  {run.created_at:%Y-%m-%d %H:%M}  {run.status:<9}  "
            f"{run.pipeline:<17}  {run.model_name:<20}  "
            f"{format_duration(run.duration_ms):>8}  {valid:<7}  {run.input.file_name}"
        )
    return EXIT_OK


async def _cmd_show(args: argparse.Namespace, settings: Any) -> int:
    from visiontester.storage.ledger_factory import create_ledger

    ledger = create_ledger(settings)
    try:
        record = await ledger.get(args.run_id)
        stored = None
        if record is not None and args.save_document is not None and record.input.file_ref:
            stored = await ledger.get_file(record.input.file_ref)
    finally:
        ledger.close()
    if record is None:
        logger.error("Run not found: %s", args.run_id)
        return EXIT_ERROR
    print(record.model_dump_json(indent=2))

    if args.save_document is not None:
        if stored is None:
            logger.error("Run %s has no retained document", args.run_id)
            return EXIT_ERROR
        from visiontester.utils.base64 import decode_content

        args.save_document.write_bytes(decode_content(stored.content))
        print(f"Saved {stored.file_name} to {args.save_document}", file=sys.stderr)
    return EXIT_OK


async def _cmd_delete(args: argparse.Namespace, settings: Any) -> int:
    from visiontester.storage.ledger_factory import create_ledger

    ledger = create_ledger(settings)
    try:
        deleted = await ledger.delete(args.run_id)
    finally:
        ledger.close()
    if not deleted:
        logger.error("Run not found: %s", args.run_id)
        return EXIT_ERROR
    print(f"Deleted {args.run_id}")
    return EXIT_OK


async def _cmd_cleanup(args: argparse.Namespace, settings: Any) -> int:
    from visiontester.storage.ledger_factory import create_ledger

    keep = args.keep if args.keep is not None else settings.ledger_keep_runs
    ledger = create_ledger(settings)
    try:
        removed = await ledger.cleanup(keep_count=keep)
    finally:
        ledger.close()
    print(f"Removed {removed} runs (kept at most {keep})")
    return EXIT_OK


async def _cmd_compare(args: argparse.Namespace, settings: Any) -> int:
    from visiontester.comparison.json_diff import diff_outputs
    from visiontester.storage.ledger_factory import create_ledger

    ledger = create_ledger(settings)
    try:
        left = await ledger.get(args.left)
        right = await ledger.get(args.right)
    finally:
        ledger.close()
    for run_id, record in ((args.left, left), (args.right, right)):
        if record is None:
            logger.error("Run not found: %s", run_id)
            return EXIT_ERROR

    result = diff_outputs(left, right)  # type: ignore[arg-type]
    if not result.has_differences:
        print("No differences.")
        return EXIT_OK
    for label, fields in (
        ("+", result.added_fields),
        ("-", result.removed_fields),
        ("~", result.modified_fields),
    ):
        for field in fields:
            print(f"{label} {field}")
    return EXIT_OK


async def _cmd_models(args: argparse.Namespace, settings: Any) -> int:
    from visiontester.llm.base_transport import TransportError
    from visiontester.llm.model_catalog import ModelCatalog
    from visiontester.llm.ollama_transport import OllamaTransport
    from visiontester.utils.formatters import format_file_size

    transport = OllamaTransport(
        host=settings.ollama_base_url, timeout=settings.request_timeout_s,
    )
    catalog = ModelCatalog(transport, ttl_s=settings.model_cache_ttl_s)
    try:
        models = await catalog.list_models(kind=args.kind)
    except TransportError as e:
        logger.error("Failed to fetch models: %s", e)
        return EXIT_ERROR

    if not models:
        print("No models found.")
        return EXIT_OK
    for m in models:
        print(
            f"{m.name:<32}  {format_file_size(m.size):>10}  "
            f"{m.family or '-':<12}  {m.parameter_size or '-'}"
        )
    return EXIT_OK


async def _cmd_health(args: argparse.Namespace, settings: Any) -> int:
    from visiontester.llm.health import check_health_with_retry, ping

    host = settings.ollama_base_url
    if args.retry:
        result = await check_health_with_retry(host, timeout_s=settings.health_check_timeout_s)
    else:
        result = await ping(host, timeout_s=settings.health_check_timeout_s)

    if result.success:
        print(f"{host}: {result.status}")
        return EXIT_OK
    if result.error is not None:
        print(f"{host}: {result.error.message} [{result.error.code}]")
        print(result.error.format_guidance())
    return EXIT_ERROR


async def _cmd_schemas_list(args: argparse.Namespace, settings: Any) -> int:
    from visiontester.schema.library import SchemaLibrary

    library = SchemaLibrary(settings.schema_library_file)
    selected = library.selected_id
    for entry in library.list_schemas():
        marker = "*" if entry.id == selected else " "
        origin = "built-in" if entry.builtin else "added"
        print(f"{marker} {entry.id:<24}  {origin:<8}  {entry.name}")
    return EXIT_OK


async def _cmd_schemas_show(args: argparse.Namespace, settings: Any) -> int:
    from visiontester.schema.cleaner import clean_schema
    from visiontester.schema.library import SchemaLibrary

    entry = SchemaLibrary(settings.schema_library_file).get(args.schema_id)
    if entry is None:
        logger.error("Schema not found: %s", args.schema_id)
        return EXIT_ERROR
    print(json.dumps(clean_schema(entry.definition), indent=2, ensure_ascii=False))
    return EXIT_OK


async def _cmd_schemas_add(args: argparse.Namespace, settings: Any) -> int:
    from visiontester.schema.library import SchemaLibrary, SchemaLibraryError

    library = SchemaLibrary(settings.schema_library_file)
    try:
        entry = library.add_from_file(args.file, name=args.name, schema_id=args.schema_id)
    except SchemaLibraryError as e:
        logger.error("%s", e)
        return EXIT_ERROR
    print(f"Added {entry.id} ({entry.name})")
    return EXIT_OK


async def _cmd_schemas_remove(args: argparse.Namespace, settings: Any) -> int:
    from visiontester.schema.library import SchemaLibrary, SchemaLibraryError

    library = SchemaLibrary(settings.schema_library_file)
    try:
        removed = library.remove(args.schema_id)
    except SchemaLibraryError as e:
        logger.error("%s", e)
        return EXIT_ERROR
    if not removed:
        logger.error("Schema not found: %s", args.schema_id)
        return EXIT_ERROR
    print(f"Removed {args.schema_id}")
    return EXIT_OK


async def _cmd_schemas_select(args: argparse.Namespace, settings: Any) -> int:
    from visiontester.schema.library import SchemaLibrary, SchemaLibraryError

    library = SchemaLibrary(settings.schema_library_file)
    try:
        entry = library.select(None if args.clear else args.schema_id)
    except SchemaLibraryError as e:
        logger.error("%s", e)
        return EXIT_ERROR
    print(f"Selected {entry.id}" if entry is not None else "Selection cleared")
    return EXIT_OK


# --- Helpers ---


def _resolve_schema(
    args: argparse.Namespace, settings: Any,
) -> tuple[dict[str, Any] | None, str | None]:
    """Output schema and its id for a run: --schema FILE, --schema-id, or the selection.

    Raises:
        SchemaLibraryError: If the file is unreadable or the id is unknown.
    """
    from visiontester.schema.library import SchemaLibrary, SchemaLibraryError

    if args.schema is not None:
        try:
            schema = json.loads(args.schema.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise SchemaLibraryError(f"Cannot read schema {args.schema}: {e}") from e
        return schema, args.schema.stem

    library = SchemaLibrary(settings.schema_library_file)
    if args.schema_id is not None:
        entry = library.require(args.schema_id)
    else:
        entry = library.selected()
    if entry is None:
        return None, None
    logger.info("Using schema %s (%s)", entry.id, entry.name)
    return entry.definition, entry.id


def _install_cancel_handler(cancel: Any) -> None:
    """Route Ctrl-C to the orchestrator so the run is recorded as cancelled."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel)
    except (NotImplementedError, RuntimeError):
        # Windows event loops: KeyboardInterrupt cancels the task instead.
        logger.debug("SIGINT handler not supported on this event loop")


def _print_run(record: Any) -> None:
    """Print a human-readable summary of a RunRecord."""
    from visiontester.schema.validator import group_by_field
    from visiontester.utils.formatters import format_duration

    out = record.output
    print(f"\nRun {record.id}: {record.status}")
    print(f"  Pipeline:   {record.pipeline}")
    model = record.model_name
    if record.ocr_model:
        model = f"{record.ocr_model} -> {model}"
    print(f"  Model:      {model}")
    print(f"  Duration:   {format_duration(record.duration_ms)}")
    print(f"  Tokens:     {out.prompt_tokens or 0} prompt / {out.completion_tokens or 0} completion")
    print(f"  Valid:      {out.is_valid}")
    if out.error:
        print(f"  Error:      {out.error}")
    for field, messages in group_by_field(out.validation_errors).items():
        print(f"    - {field}: {messages}")
    print()
    if out.parsed is not None:
        print(json.dumps(out.parsed, indent=2, ensure_ascii=False))
    else:
        print(out.raw)


if __name__ == "__main__":
    sys.exit(main())
