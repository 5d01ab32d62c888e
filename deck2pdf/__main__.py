"""CLI entry point: python -m deck2pdf <command> ..."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path

from . import config
from .exporter import ExportOptions, export_pdf
from .extract import extract_diagrams
from .parser import parse_deck_file

logger = logging.getLogger("deck2pdf")

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"


def _configure_logging(verbose: bool, log_file: str | None) -> None:
    root = logging.getLogger("deck2pdf")
    root.setLevel(logging.DEBUG)
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console.setFormatter(logging.Formatter("%(levelname)s [%(name)s] %(message)s"))
    root.addHandler(console)
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(file_handler)


def _require_file(path_str: str) -> Path:
    path = Path(path_str)
    if not path.is_file():
        print(f"Error: {path} not found.", file=sys.stderr)
        sys.exit(1)
    return path


def _cmd_parse(args: argparse.Namespace) -> int:
    deck_path = _require_file(args.deck)
    t0 = time.monotonic()
    deck = parse_deck_file(deck_path)
    logger.info("Parsed %s in %.3fs: %d slide(s)", deck_path, time.monotonic() - t0, len(deck.slides))
    print(json.dumps(deck.to_dict(), ensure_ascii=False, indent=2))
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    from .server import serve

    deck_path = _require_file(args.deck)
    serve(
        deck_path,
        host=args.host,
        port=args.port,
        diagrams_dir=Path(args.diagrams_dir) if args.diagrams_dir else None,
        render_endpoint=args.render_endpoint,
    )
    return 0


def _cmd_export(args: argparse.Namespace) -> int:
    if args.slides is not None and args.slides < 1:
        print("Error: --slides must be >= 1.", file=sys.stderr)
        sys.exit(1)
    deck_path = _require_file(args.deck) if args.url is None else Path(args.deck)

    options = ExportOptions(
        deck_path=deck_path,
        output_path=Path(args.output) if args.output else config.OUTPUT_PATH,
        url=args.url,
        host=args.host,
        port=args.port,
        diagrams_dir=Path(args.diagrams_dir) if args.diagrams_dir else None,
        max_slides=args.slides,
        wait_for_diagrams=not args.no_wait_diagrams,
    )
    logger.info("Export options: %s", options)
    try:
        output = export_pdf(options)
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    print(f"\nDone! Output: {output}")
    return 0


def _cmd_extract(args: argparse.Namespace) -> int:
    deck_path = _require_file(args.deck)
    out_dir = Path(args.out_dir) if args.out_dir else config.DIAGRAMS_DIR
    text = deck_path.read_text(encoding="utf-8")
    rewritten, written = extract_diagrams(text, out_dir)
    print(f"Extracted {len(written)} diagram(s) to {out_dir}")
    if args.rewrite is not None:
        target = Path(args.rewrite) if args.rewrite else deck_path
        target.write_text(rewritten, encoding="utf-8")
        print(f"Updated {target}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deck2pdf",
        description="View a Markdown slide deck in the browser and export it to PDF.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log debug output to stderr")
    parser.add_argument("--log-file", help="Also write a debug log to this file")
    sub = parser.add_subparsers(dest="command", required=True)

    p_parse = sub.add_parser("parse", help="Print the parsed deck as JSON")
    p_parse.add_argument("deck", help="Path to the Markdown deck")
    p_parse.set_defaults(func=_cmd_parse)

    p_serve = sub.add_parser("serve", help="Serve the interactive presentation")
    p_serve.add_argument("deck", help="Path to the Markdown deck")
    p_serve.add_argument("--host", default=config.HOST, help=f"Bind address (default: {config.HOST})")
    p_serve.add_argument("--port", type=int, default=config.PORT, help=f"Port (default: {config.PORT})")
    p_serve.add_argument("--diagrams-dir", help=f"Directory of .puml files (default: {config.DIAGRAMS_DIR})")
    p_serve.add_argument("--render-endpoint",
                         help=f"Kroki-compatible diagram endpoint (default: {config.RENDER_ENDPOINT})")
    p_serve.set_defaults(func=_cmd_serve)

    p_export = sub.add_parser("export", help="Export the presentation to PDF")
    p_export.add_argument("deck", help="Path to the Markdown deck")
    p_export.add_argument("output", nargs="?", help=f"Output PDF path (default: {config.OUTPUT_PATH})")
    p_export.add_argument("--slides", "-s", type=int, default=None, metavar="N",
                          help="Export only the first N slides")
    p_export.add_argument("--url", help="Use an already running server instead of starting one")
    p_export.add_argument("--host", default=config.HOST, help=f"Content server address (default: {config.HOST})")
    p_export.add_argument("--port", type=int, default=config.PORT,
                          help=f"Content server port (default: {config.PORT})")
    p_export.add_argument("--no-wait-diagrams", action="store_true",
                          help="Capture slides without waiting for diagrams to load")
    p_export.add_argument("--diagrams-dir", help="Directory of .puml files")
    p_export.set_defaults(func=_cmd_export)

    p_extract = sub.add_parser("extract", help="Move inline diagrams into .puml files")
    p_extract.add_argument("deck", help="Path to the Markdown deck")
    p_extract.add_argument("--out-dir", help=f"Where to write .puml files (default: {config.DIAGRAMS_DIR})")
    p_extract.add_argument("--rewrite", nargs="?", const="", default=None, metavar="OUTPUT",
                           help="Write the deck with @ref: pointers (in place unless OUTPUT is given)")
    p_extract.set_defaults(func=_cmd_extract)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose, args.log_file)
    logger.info("CLI arguments: %s", vars(args))
    try:
        return args.func(args)
    except Exception:
        logger.exception("Command %s failed", args.command)
        raise


if __name__ == "__main__":
    sys.exit(main())
