"""DevNotes entry point — CLI argument parsing, backend setup, and dispatch."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from devnotes.config import ConfigError, DevNotesConfig, history_path, load_config, validate_config
from devnotes.news import CATEGORIES


def _get_version() -> str:
    """Return the installed package version, or fall back to 'unknown'."""
    from importlib.metadata import PackageNotFoundError, version

    try:
        return f"devnotes {version('devnotes')}"
    except PackageNotFoundError:
        return "devnotes (unknown version — not installed as package)"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="devnotes",
        description="DevNotes — DevOps assistant with remote, local, and offline answers",
    )
    parser.add_argument("prompt", nargs="?", help="Question to ask the assistant")
    parser.add_argument("--version", "-V", action="version", version=_get_version())
    parser.add_argument("--config", "-c", help="Path to config.toml file")
    parser.add_argument(
        "--remote",
        help="Base URL of the notes API server or Ollama (e.g., http://localhost:3001)",
    )
    parser.add_argument("--remote-model", help="Model name for the remote server")
    parser.add_argument(
        "--no-local",
        action="store_true",
        help="Never use the in-process model (remote, then static answers)",
    )
    parser.add_argument(
        "--wait-model",
        action="store_true",
        help="Wait for the in-process model to finish loading before answering",
    )
    parser.add_argument("--review", metavar="FILE", help="Review a code file ('-' for stdin)")
    parser.add_argument("--context", default="", help="Extra context for --review")
    parser.add_argument("--status", action="store_true", help="Show backend availability")
    parser.add_argument("--news", action="store_true", help="Show DevOps headlines")
    parser.add_argument(
        "--category",
        default="all",
        choices=[cid for cid, _ in CATEGORIES],
        help="News category filter",
    )
    parser.add_argument("--search", default="", help="News search filter")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--log-file",
        metavar="PATH",
        help="Write all log messages (DEBUG level) to a file.",
    )
    return parser


def main() -> None:
    args = build_parser().parse_args()

    # Setup logging
    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(name)s: %(message)s")

    if args.log_file:
        file_handler = logging.FileHandler(args.log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logging.getLogger().addHandler(file_handler)
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = load_config(args.config)
        # Override config with CLI args
        if args.remote:
            config.remote.url = args.remote
        if args.remote_model:
            config.remote.model = args.remote_model
        if args.no_local:
            config.local.enabled = False
        validate_config(config)
    except ConfigError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)

    if not (args.prompt or args.review or args.status or args.news):
        build_parser().print_usage(sys.stderr)
        sys.exit(1)

    sys.exit(asyncio.run(_run(args, config)))


async def _run(args: argparse.Namespace, config: DevNotesConfig) -> int:
    from devnotes.headless import format_status, run_headless, run_news, run_review
    from devnotes.history import HistoryStore
    from devnotes.inference.engine import Provider
    from devnotes.news import NewsClient
    from devnotes.resolver import ProviderResolver
    from devnotes.session import AssistantSession

    if args.news:
        return await run_news(NewsClient(config.news), args.category, args.search)

    # Single-shot runs only load the model when --wait-model asks for it
    resolver = ProviderResolver.from_config(config, local_auto_load=False)
    history = None
    if config.history.enabled:
        history = HistoryStore(history_path(config.history), config.history.max_entries)
    session = AssistantSession(resolver, history=history)

    try:
        local = resolver.backends.get(Provider.LOCAL_MODEL)
        if args.wait_model and local is not None:
            print(f"Loading model: {config.local.hf_file}...", file=sys.stderr)
            local.ensure_started()
            if not await local.wait_loaded():
                print("Model unavailable, using lightweight answers.", file=sys.stderr)

        if args.status:
            print(format_status(await resolver.probe()))
            return 0
        if args.review:
            if args.review == "-":
                code = sys.stdin.read()
            else:
                try:
                    code = Path(args.review).read_text(encoding="utf-8")
                except OSError as exc:
                    print(f"Error: cannot read {args.review}: {exc}", file=sys.stderr)
                    return 1
            return await run_review(session, code, args.context)
        return await run_headless(session, args.prompt)
    finally:
        await resolver.close()


if __name__ == "__main__":
    main()
