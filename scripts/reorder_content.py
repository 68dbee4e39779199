#!/usr/bin/env python3
"""
reorder_content.py - Reorder the modules of a course or the lessons of a module.

The full new order is given on the command line; the change is applied
optimistically and rolled back if the content service rejects it.

Usage:
  python scripts/reorder_content.py --course 65f0c2 --modules m3 m1 m2
  python scripts/reorder_content.py --course 65f0c2 --module m1 --lessons l2 l1 l3
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from flockdesk.classroom import HierarchyCoordinator
from flockdesk.errors import FlockdeskError, ReorderFailed
from flockdesk.schemas import ReorderScope
from flockdesk.service import ContentServiceClient
from flockdesk.utils import load_settings

logger = logging.getLogger(__name__)


async def reorder(args, settings) -> int:
    async with ContentServiceClient(
        settings.api_base_url,
        token=settings.api_token,
        timeout=settings.request_timeout,
    ) as service:
        coordinator = HierarchyCoordinator(service)
        try:
            await coordinator.load_hierarchy(args.course)
            if args.modules:
                outcome = await coordinator.reorder_modules(args.course, args.modules)
                store = coordinator.controller.store_for(ReorderScope.MODULES, args.course)
            else:
                outcome = await coordinator.reorder_lessons(args.module, args.lessons)
                store = coordinator.controller.store_for(ReorderScope.LESSONS, args.module)
            logger.info(f"Reorder {outcome.value}")
            await coordinator.controller.wait_reconciled()
        except ReorderFailed as exc:
            logger.error(f"{exc} (order restored)")
            return 1
        except FlockdeskError as exc:
            logger.error(str(exc))
            return 1
        finally:
            await coordinator.aclose()

    for entity in store.entities():
        print(f"{entity.order}. {entity.title} [{entity.id}]")
    return 0


def main():
    parser = argparse.ArgumentParser(
        description="Reorder course modules or module lessons",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("--course", required=True, help="Course id")
    parser.add_argument("--config", type=Path, default=None, help="Settings YAML")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--modules", nargs="+", help="All module ids of the course, in new order")
    group.add_argument("--lessons", nargs="+", help="All lesson ids of --module, in new order")
    parser.add_argument("--module", default=None, help="Module whose lessons are reordered")
    args = parser.parse_args()

    if args.lessons and not args.module:
        parser.error("--lessons requires --module")

    settings = load_settings(args.config)
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s"
    )
    sys.exit(asyncio.run(reorder(args, settings)))


if __name__ == "__main__":
    main()
