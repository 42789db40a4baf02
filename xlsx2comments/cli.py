from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

import xlsx2comments
from xlsx2comments.exceptions import ContainerError, UnsupportedFormatError
from xlsx2comments.extractors.data_types import CommentReport
from xlsx2comments.extractors.serialization import serialize_extraction
from xlsx2comments.report import write_report
from xlsx2comments.translation import (
    SUPPORTED_LANGUAGES,
    TranslationConfig,
    build_translator,
    translate_comments,
)
from xlsx2comments.translation.config import DEFAULT_API_KEY_ENV


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="xlsx2comments",
        description="Extract comments and notes from an Excel workbook (one line per comment, or JSON with --json).",
    )
    parser.add_argument(
        "path",
        type=Path,
        help="Path to the .xlsx workbook.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit structured JSON instead of one line per comment.",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Also write a styled summary workbook to this path.",
    )
    parser.add_argument(
        "--translate",
        metavar="LANG",
        help=(
            "Translate comments to this language code (e.g. "
            + ", ".join(SUPPORTED_LANGUAGES)
            + "). Needs GEMINI_API_KEY; without it comments are kept as-is."
        ),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log extraction progress to stderr.",
    )
    return parser


def _translate(report: CommentReport, language: str) -> None:
    config = TranslationConfig.from_env(language)
    if not config.enabled:
        print(
            f"xlsx2comments: warning: {DEFAULT_API_KEY_ENV} is not set; comments are not translated",
            file=sys.stderr,
        )
        return
    report.comments = translate_comments(report.comments, build_translator(config))


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    try:
        args, unknown = parser.parse_known_args(argv)
    except SystemExit as exc:
        code = exc.code if isinstance(exc.code, int) else 1
        return code

    if unknown:
        unknown_str = " ".join(unknown)
        print(
            f"xlsx2comments: warning: unsupported arguments: {unknown_str}",
            file=sys.stderr,
        )
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        results = list(xlsx2comments.read_file(args.path))
        if not results:
            raise RuntimeError(f"No extraction results for {args.path}")
        report = results[0]

        if report.nothing_found:
            print(f"xlsx2comments: no comments found in {args.path}", file=sys.stderr)
        elif args.translate:
            _translate(report, args.translate)

        if args.output and not report.nothing_found:
            args.output.write_bytes(write_report(report.comments))

        if args.json:
            json.dump(serialize_extraction(report), sys.stdout, ensure_ascii=False)
            sys.stdout.write("\n")
        elif not report.nothing_found:
            sys.stdout.write(report.get_full_text())
            sys.stdout.write("\n")
        return 0
    except UnsupportedFormatError as exc:
        print(f"xlsx2comments: unsupported format: {exc}", file=sys.stderr)
        return 1
    except ContainerError as exc:
        print(f"xlsx2comments: cannot read workbook: {exc}", file=sys.stderr)
        return 1
    except Exception as exc:
        print(f"xlsx2comments: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
