"""Command line entry point: index the corpus, upload files, ask questions."""

import argparse
import json
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from lawbot.config import Settings, configure_logging
from lawbot.errors import (
    ConfigurationError,
    IngestionInProgress,
    InvalidInput,
    PartialIngestionFailure,
    UpstreamUnavailable,
)
from lawbot.rag.formatter import parse_assistant_content, render_markdown
from lawbot.service import LegalAssistant

logger = logging.getLogger(__name__)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def cmd_index(assistant: LegalAssistant, args: argparse.Namespace) -> int:
    report = assistant.run_ingestion(clear_existing=args.clear)
    _print_json(
        {
            **report.to_summary(),
            "errors": report.errors,
            "skippedSources": report.skipped_sources,
            "droppedFiles": report.dropped_files,
        }
    )
    if args.strict:
        report.raise_for_errors()
    return 0


def cmd_upload(assistant: LegalAssistant, args: argparse.Namespace) -> int:
    files = [(Path(p).name, Path(p).read_bytes()) for p in args.files]
    report = assistant.upload_files(files)
    _print_json(
        {
            "fileCount": report.file_count,
            "uploadedChunks": report.uploaded_chunks,
            "errors": report.errors,
        }
    )
    return 1 if report.errors else 0


def cmd_ask(assistant: LegalAssistant, args: argparse.Namespace) -> int:
    result = assistant.answer_legal_question(args.question)
    print(render_markdown(parse_assistant_content(result.answer)))
    if result.sources:
        print("\nSources:")
        for src in result.sources:
            label = " - ".join(p for p in (src.act, src.section and f"Section {src.section}", src.title) if p)
            print(f"  [{src.id}] {label}")
    return 0


def cmd_status(assistant: LegalAssistant, args: argparse.Namespace) -> int:
    status = assistant.index_status()
    _print_json(status)
    return 0 if status.get("configured") else 1


def cmd_check_env(assistant: LegalAssistant, args: argparse.Namespace) -> int:
    report = assistant.health()
    _print_json(report.model_dump())
    return 0 if report.status == "healthy" else 1


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="lawbot", description="Indian legal statute assistant.")
    ap.add_argument("--log-level", default=None, help="Override LOG_LEVEL (DEBUG, INFO, ...)")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("index", help="Index the statute dataset into the vector index")
    p.add_argument("--clear", action="store_true", help="Delete all existing vectors first")
    p.add_argument("--strict", action="store_true", help="Exit non-zero if any batch failed")
    p.set_defaults(func=cmd_index)

    p = sub.add_parser("upload", help="Chunk and index text or PDF files")
    p.add_argument("files", nargs="+", help="Files to upload")
    p.set_defaults(func=cmd_upload)

    p = sub.add_parser("ask", help="Ask a legal question")
    p.add_argument("question")
    p.set_defaults(func=cmd_ask)

    p = sub.add_parser("status", help="Show vector index status")
    p.set_defaults(func=cmd_status)

    p = sub.add_parser("check-env", help="Validate configuration and connectivity")
    p.set_defaults(func=cmd_check_env)
    return ap


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    load_dotenv()
    settings = Settings.from_env()
    configure_logging(settings, args.log_level)

    assistant = LegalAssistant(settings)
    try:
        return args.func(assistant, args)
    except ConfigurationError as e:
        logger.error(str(e))
        for item in e.missing:
            print(f"  - {item}")
        return 1
    except PartialIngestionFailure as e:
        logger.error(str(e))
        return 1
    except (UpstreamUnavailable, InvalidInput, IngestionInProgress, OSError) as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
