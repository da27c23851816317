# jobs/watch_approval.py

"""
Follow a teen signup approval from the command line until the parent
decides (or the request expires).

    python -m jobs.watch_approval --parent-email p@x.com
    python -m jobs.watch_approval --resume      # every outstanding marker
"""

import argparse
import asyncio
from typing import Optional

from core.config import settings
from core.logging_config import logger
from core.supabase_client import get_supabase_client, get_realtime_client
from services.approval_store import ApprovalStore, TEEN_SIGNUPS
from services.markers import PendingMarkerStore
from services.status_watch import ApprovalContext, ApprovalKey, StatusController


async def watch(key: ApprovalKey, timeout: Optional[float] = None, markers: Optional[PendingMarkerStore] = None):
    client = get_supabase_client()
    if not client:
        raise RuntimeError("Supabase not configured")

    realtime = await get_realtime_client()
    context = ApprovalContext(
        store=ApprovalStore(TEEN_SIGNUPS, client=client),
        realtime_client=realtime,
        markers=markers or PendingMarkerStore(),
    )

    controller = StatusController(key, context)
    try:
        await controller.start()
        try:
            await controller.wait(timeout)
        except asyncio.TimeoutError:
            logger.info(f"Still {controller.status or 'unknown'} after {timeout}s, giving up for now")
    finally:
        await controller.stop()

    return controller.status


async def resume(timeout: Optional[float] = None):
    markers = PendingMarkerStore()
    outstanding = markers.all()
    if not outstanding:
        logger.info("No outstanding approval requests")
        return {}

    keys = {
        contact: ApprovalKey(record_id=info.get("record_id"), contact=contact)
        for contact, info in outstanding.items()
    }
    results = await asyncio.gather(*(watch(key, timeout, markers) for key in keys.values()))
    return dict(zip(keys, results))


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Watch a parent approval request")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--token", help="approval token")
    group.add_argument("--id", dest="record_id", help="pending signup id")
    group.add_argument("--parent-email", help="parent email on the request")
    group.add_argument("--resume", action="store_true", help="watch every locally recorded request")
    parser.add_argument("--birthdate", help="teen birthdate (YYYY-MM-DD), narrows a parent-email lookup")
    parser.add_argument("--timeout", type=float, default=None, help="seconds to wait before giving up")
    return parser.parse_args(argv)


def run(argv=None):
    """CLI entry point; the poll interval comes from STATUS_POLL_INTERVAL_SECONDS."""
    args = parse_args(argv)

    if args.resume:
        results = asyncio.run(resume(args.timeout))
        for contact, status in results.items():
            print(f"{contact}: {status}")
        return results

    extra = {"date_of_birth": args.birthdate} if args.birthdate else {}
    key = ApprovalKey(
        token=args.token,
        record_id=args.record_id,
        contact=args.parent_email.strip().lower() if args.parent_email else None,
        extra_filters=extra,
    )
    status = asyncio.run(watch(key, args.timeout))
    print(f"{key.describe()}: {status}")
    return status


if __name__ == "__main__":
    logger.info(f"Polling every {settings.STATUS_POLL_INTERVAL_SECONDS}s when realtime is unavailable")
    run()
