"""
One-shot research session from the command line.

    python -m research_digest "rust borrow checker" --pages 2 --threshold 60
"""

import argparse
import asyncio
import sys

from .config.settings import get_settings, get_version
from .errors import ConfigurationError
from .logging_config import configure_logging, get_logger
from .web_search.orchestrator import QueryOrchestrator

logger = get_logger("research_digest.cli")


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="research_digest",
        description="Search the web and print a relevance-ranked digest"
    )
    parser.add_argument("queries", nargs="+", help="One or more search queries")
    parser.add_argument(
        "--pages",
        type=int,
        default=settings.research.pages,
        help=f"Result pages per query (default: {settings.research.pages})"
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=settings.research.relevancy_threshold,
        help="Minimum relevance percentage 0-100 "
             f"(default: {settings.research.relevancy_threshold})"
    )
    parser.add_argument(
        "--budget",
        type=int,
        default=None,
        help="Token budget of the digest (default: share of the summary context window)"
    )
    parser.add_argument("--prompt", type=str, default="", help="Prompt recorded on the trace")
    parser.add_argument("--reason", type=str, default="", help="Reason recorded on the trace")
    parser.add_argument("--version", action="version", version=f"%(prog)s {get_version()}")
    return parser


async def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings)

    try:
        orchestrator = QueryOrchestrator.from_settings(settings)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e.message}")
        return 2

    orchestrator.threshold = args.threshold
    prompt = args.prompt or " ".join(args.queries)

    trace = await orchestrator.run_queries(args.queries, prompt, args.reason, args.pages)
    print(await orchestrator.summarize_trace(trace, args.budget))
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
