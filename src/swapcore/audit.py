"""Read-only custody audit over stored records.

Checks the invariants every committed state must satisfy and reports each
violation as a line of text. An empty list means the ledger is consistent.
"""

import logging

from swapcore.ledger.repository import LedgerRepository

logger = logging.getLogger(__name__)


async def audit_custody(repo: LedgerRepository) -> list[str]:
    """Return a description of every custody invariant that does not hold."""
    violations: list[str] = []

    for balance in await repo.list_balances():
        if balance.amount < 0:
            violations.append(
                f"balance {balance.owner}/{balance.asset} is negative: {balance.amount}"
            )

    for swap in await repo.list_swaps():
        label = f"swap {swap.initiator}#{swap.swap_id}"
        if swap.completed and swap.cancelled:
            violations.append(f"{label} is both completed and cancelled")
        if swap.is_terminal:
            if swap.held_x or swap.held_y:
                violations.append(
                    f"{label} is terminal but still holds ({swap.held_x}, {swap.held_y})"
                )
        elif swap.held_x != swap.amount_x:
            violations.append(
                f"{label} holds {swap.held_x} {swap.asset_x}, expected {swap.amount_x}"
            )

    for pool in await repo.list_pools():
        label = f"pool {pool.admin}:{pool.asset_x}/{pool.asset_y}"
        if pool.fees_collected_x > pool.reserve_x:
            violations.append(
                f"{label} fees_x {pool.fees_collected_x} exceed reserve {pool.reserve_x}"
            )
        if pool.fees_collected_y > pool.reserve_y:
            violations.append(
                f"{label} fees_y {pool.fees_collected_y} exceed reserve {pool.reserve_y}"
            )
        if pool.reserve_x == 0 or pool.reserve_y == 0:
            violations.append(f"{label} has an empty reserve ({pool.reserve_x}, {pool.reserve_y})")

    for registry in await repo.list_registries():
        label = f"aggregator {registry.admin}"
        venue_volume = sum(venue.total_volume for venue in registry.venues)
        venue_swaps = sum(venue.swap_count for venue in registry.venues)
        if venue_volume != registry.total_volume:
            violations.append(
                f"{label} total_volume {registry.total_volume} != venue sum {venue_volume}"
            )
        if venue_swaps != registry.total_swaps:
            violations.append(
                f"{label} total_swaps {registry.total_swaps} != venue sum {venue_swaps}"
            )
        ids = [venue.venue_id for venue in registry.venues]
        if ids != list(range(1, len(ids) + 1)):
            violations.append(f"{label} venue ids are not 1..{len(ids)}: {ids}")

    for violation in violations:
        logger.warning(f"Custody audit: {violation}")
    if not violations:
        logger.info("Custody audit passed")
    return violations
