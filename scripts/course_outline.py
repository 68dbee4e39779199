#!/usr/bin/env python3
"""
course_outline.py - Print a course's modules, lessons and quizzes.

Loads the hierarchy from the content service and, when a learner is given,
shows which lessons and quizzes are locked, unlocked or completed.

Usage:
  python scripts/course_outline.py --course 65f0c2
  python scripts/course_outline.py --course 65f0c2 --user 64aa91 --config config/console.yaml
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from flockdesk.classroom import HierarchyCoordinator
from flockdesk.errors import FlockdeskError
from flockdesk.service import ContentServiceClient
from flockdesk.utils import load_settings
from flockdesk.viewer import render_outline

logger = logging.getLogger(__name__)


async def show_outline(args, settings) -> int:
    async with ContentServiceClient(
        settings.api_base_url,
        token=settings.api_token,
        timeout=settings.request_timeout,
    ) as service:
        coordinator = HierarchyCoordinator(service)
        try:
            hierarchy = await coordinator.load_hierarchy(args.course)
            progression = None
            if args.user:
                await coordinator.sync_completions(args.user)
                progression = coordinator.annotate_progression(args.user)
        except FlockdeskError as exc:
            logger.error(str(exc))
            return 1
        finally:
            await coordinator.aclose()

    for line in render_outline(hierarchy, progression):
        print(line)

    if progression:
        counts = progression.view.counts()
        logger.info(
            f"{counts['completed']} completed, {counts['unlocked']} unlocked, {counts['locked']} locked"
        )
        next_id = progression.view.next_accessible()
        if next_id:
            logger.info(f"Next up: {next_id}")
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Print a course outline with learner progression",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("--course", required=True, help="Course id")
    parser.add_argument("--user", default=None, help="Learner id to show progression for")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Settings YAML (default: config/console.yaml)"
    )
    args = parser.parse_args()

    settings = load_settings(args.config)
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s"
    )
    sys.exit(asyncio.run(show_outline(args, settings)))


if __name__ == "__main__":
    main()
