"""Command line entry point: build one project timeline and log a summary.

Usage:
    python -m analyzer.main 42 --start 2021-03-01T00:00:00Z --end 2021-04-01T00:00:00Z

Server URL and access token come from GITLAB_URL / GITLAB_ACCESS_TOKEN.
"""

import argparse
import asyncio
import logging
import sys

from analyzer.config import settings
from analyzer.services.gitlab import GitLabAPIError, GitLabReadOperations, close_gitlab_client
from analyzer.services.gitlab.helpers import parse_gitlab_datetime
from analyzer.services.timeline import (
    FailurePolicy,
    InvalidWindowError,
    Timeline,
    TimelineBuilder,
)


def setup_logging() -> None:
    """Configure application logging."""
    # Format: timestamp - level - logger name - message
    log_format = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
    date_format = "%H:%M:%S"

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format=log_format,
        datefmt=date_format,
        stream=sys.stdout,
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("hpack").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build a GitLab project timeline")
    parser.add_argument("project_id", help="Numeric project id or namespace/project path")
    parser.add_argument("--start", required=True, type=parse_gitlab_datetime)
    parser.add_argument("--end", required=True, type=parse_gitlab_datetime)
    parser.add_argument(
        "--partial",
        action="store_true",
        help="Skip merge requests and commits whose enrichment fails",
    )
    parser.add_argument("--max-concurrency", type=int, default=None)
    return parser.parse_args(argv)


def log_summary(timeline: Timeline) -> None:
    for mr in timeline.merge_requests:
        logger.info(
            f"  !{mr.iid} {mr.merge_request.title} "
            f"({len(mr.commits)} commits, {len(mr.changes)} files)"
        )
    logger.info(f"  {len(timeline.orphan_commits)} commits outside merge requests")
    for failure in timeline.failures:
        logger.warning(f"  skipped {failure.kind} {failure.key}: {failure.error.message}")


async def run(args: argparse.Namespace) -> int:
    if not settings.gitlab_configured:
        logger.error("GITLAB_ACCESS_TOKEN is not set")
        return 1

    project_id: int | str = int(args.project_id) if args.project_id.isdigit() else args.project_id
    builder = TimelineBuilder(
        max_concurrency=args.max_concurrency,
        failure_policy=FailurePolicy.PARTIAL if args.partial else None,
    )
    source = GitLabReadOperations(settings.gitlab_url, settings.gitlab_access_token)

    try:
        timeline = await builder.build(source, project_id, args.start, args.end)
    except InvalidWindowError as e:
        logger.error(str(e))
        return 1
    except GitLabAPIError as e:
        logger.error(f"Timeline build failed: {e.message}")
        return 1
    finally:
        await close_gitlab_client()

    log_summary(timeline)
    return 0


def main(argv: list[str] | None = None) -> int:
    setup_logging()
    return asyncio.run(run(parse_args(argv)))


if __name__ == "__main__":
    sys.exit(main())
