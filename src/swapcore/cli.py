"""Operator command line for the settlement core.

Usage:
    swapcore init-db
    swapcore credit <owner> <asset> <amount>
    swapcore balance <owner> [--asset APT]
    swapcore swap-details <initiator> <swap_id>
    swapcore pool-info <admin> <asset_x> <asset_y>
    swapcore venues
    swapcore events [--registry NAME] [--type TYPE] [--limit N]
    swapcore audit
    swapcore settings

Amounts are base-unit integers.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from dotenv import load_dotenv

from swapcore.assets import TokenPair
from swapcore.config import get_settings
from swapcore.core import SettlementCore, create_core
from swapcore.errors import SettlementError
from swapcore.fixed_point import format_amount, format_bps
from swapcore.ledger.database import close_db, init_db

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="swapcore", description="Settlement core operator tool")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create the ledger tables")

    credit = commands.add_parser("credit", help="Fund an account")
    credit.add_argument("owner")
    credit.add_argument("asset")
    credit.add_argument("amount", type=int)

    balance = commands.add_parser("balance", help="Show account balances")
    balance.add_argument("owner")
    balance.add_argument("--asset", help="Only show this asset")

    swap = commands.add_parser("swap-details", help="Show an atomic swap")
    swap.add_argument("initiator")
    swap.add_argument("swap_id", type=int)

    pool = commands.add_parser("pool-info", help="Show an escrow pool")
    pool.add_argument("admin")
    pool.add_argument("asset_x")
    pool.add_argument("asset_y")

    commands.add_parser("venues", help="List aggregator venues")

    events = commands.add_parser("events", help="Read the event log")
    events.add_argument("--registry", help="Filter by registry name")
    events.add_argument("--type", dest="event_type", help="Filter by event type")
    events.add_argument("--limit", type=int, default=50)

    commands.add_parser("audit", help="Check custody invariants")
    commands.add_parser("settings", help="Print effective settings")
    return parser


async def run_command(args: argparse.Namespace, core: SettlementCore) -> int:
    """Execute one parsed command; returns the process exit code."""
    if args.command == "init-db":
        print("Database initialized")

    elif args.command == "credit":
        new_balance = await core.credit(args.owner, args.asset, args.amount)
        print(f"Credited {args.amount} {args.asset.upper()} to {args.owner}")
        print(f"New balance: {new_balance} ({format_amount(new_balance)})")

    elif args.command == "balance":
        if args.asset:
            balances = {args.asset.upper(): await core.balance_of(args.owner, args.asset)}
        else:
            balances = await core.balances(args.owner)
        if not balances:
            print(f"{args.owner} has no balances")
        for asset, amount in balances.items():
            print(f"{asset:<10} {amount:>24} ({format_amount(amount)})")

    elif args.command == "swap-details":
        details = await core.swaps.get_swap_details(args.initiator, args.swap_id)
        print(json.dumps(details.model_dump(mode="json"), indent=2))

    elif args.command == "pool-info":
        pair = TokenPair.of(args.asset_x, args.asset_y)
        info = await core.pools.get_pool_info(args.admin, pair=pair)
        print(json.dumps(info.model_dump(mode="json"), indent=2))

    elif args.command == "venues":
        for venue in await core.aggregator.get_supported_venues():
            state = "enabled" if venue.enabled else "disabled"
            print(
                f"{venue.id:>3}  {venue.name:<12} {state:<9} "
                f"volume={venue.total_volume} swaps={venue.swap_count}"
            )
        stats = await core.aggregator.get_aggregator_stats()
        print(
            f"Total volume {stats.total_volume}, {stats.total_swaps} swaps, "
            f"fees {stats.fees_collected} ({format_bps(core.settings.aggregator_fee_bps)}%)"
        )

    elif args.command == "events":
        events = await core.list_events(args.registry, args.event_type, limit=args.limit)
        for event in events:
            print(
                f"{event.id:>6} {event.timestamp} {event.registry} "
                f"{event.event_type} {json.dumps(event.payload)}"
            )

    elif args.command == "audit":
        violations = await core.audit()
        if violations:
            for violation in violations:
                print(f"VIOLATION: {violation}")
            return 1
        print("Custody audit passed")

    elif args.command == "settings":
        print(json.dumps(core.settings.get_safe_dict(), indent=2))

    return 0


async def _main(args: argparse.Namespace) -> int:
    core = create_core()
    try:
        await init_db()
        return await run_command(args, core)
    except SettlementError as e:
        logger.debug(f"{args.command} failed", exc_info=True)
        print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
        return 2
    finally:
        await close_db()


def main(argv: Optional[list[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    return asyncio.run(_main(args))


if __name__ == "__main__":
    sys.exit(main())
