"""Command line timer client for the Timetrack API.

Usage:
    python scripts/timer_cli.py --api-url http://localhost:8000 status
    python scripts/timer_cli.py start <project-id> [--task-id ID] [--description TEXT]
    python scripts/timer_cli.py pause|resume|stop
    python scripts/timer_cli.py watch
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import httpx

from timetrack.client.factory import create_timer
from timetrack.client.gateway import HttpTimerGateway
from timetrack.errors import TimerError
from timetrack.models.time_entry import TimerStatus
from timetrack.utils.clock import format_elapsed


async def show_status(gateway: HttpTimerGateway) -> int:
    try:
        active = await gateway.get_active()
    except TimerError as e:
        print(f"Error: {e}")
        return 1

    if active.status is TimerStatus.IDLE:
        print("idle")
        return 0

    entry = active.entry
    print(f"{active.status.value} {format_elapsed(active.elapsed_seconds)} project={entry.project_id}")
    if entry.description:
        print(f"  {entry.description}")
    return 0


async def run_action(gateway: HttpTimerGateway, args) -> int:
    if args.command == "start":
        result = await gateway.start(args.project_id, args.task_id, args.description)
    else:
        result = await getattr(gateway, args.command)()

    if not result.ok:
        print(f"Error ({result.error.value}): {result.message}")
        return 1
    print(f"{args.command}: entry {result.entry.id}")
    return 0


async def watch(gateway: HttpTimerGateway) -> None:
    """Follow the active timer locally, with reminders and the hard cap."""
    client = create_timer(gateway)
    machine = client.machine
    await machine.hydrate()
    try:
        while True:
            print(f"\r{machine.status.value:8} {machine.display_time}", end="", flush=True)
            await asyncio.sleep(1)
    finally:
        machine.close()
        await machine.drain()
        print()


async def main(args) -> int:
    async with httpx.AsyncClient(base_url=args.api_url, timeout=10.0) as http:
        gateway = HttpTimerGateway(http)
        if args.command == "status":
            return await show_status(gateway)
        if args.command == "watch":
            return await watch(gateway)
        return await run_action(gateway, args)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Timetrack timer client")
    parser.add_argument("--api-url", default="http://localhost:8000", help="Timetrack API base URL")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log notifications and requests")
    sub = parser.add_subparsers(dest="command", required=True)

    start = sub.add_parser("start", help="Start a timer")
    start.add_argument("project_id")
    start.add_argument("--task-id")
    start.add_argument("--description")

    for name in ("stop", "pause", "resume", "status", "watch"):
        sub.add_parser(name)

    return parser.parse_args(argv)


if __name__ == "__main__":
    args = parse_args()
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)
    try:
        sys.exit(asyncio.run(main(args)))
    except KeyboardInterrupt:
        sys.exit(0)
