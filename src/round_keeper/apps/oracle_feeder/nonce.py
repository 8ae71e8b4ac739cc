"""Nonce selection for the feeder's price pushes."""

import logging

logger = logging.getLogger(__name__)


def resolve_nonce(pending: int, confirmed: int, max_gap: int) -> int:
    """Choose the nonce for the next transaction.

    Use the pending count normally. When the pending count runs more than
    ``max_gap`` ahead of the confirmed count, the queued transactions are
    assumed stuck and the next push reuses the confirmed nonce so that it
    replaces the oldest one.

    Args:
        pending: Transaction count including the mempool.
        confirmed: Transaction count at the latest block.
        max_gap: Largest tolerated difference between the two.

    Returns:
        The nonce to sign with.

    """
    if pending > confirmed + max_gap:
        logger.warning(
            "Nonce gap too large (pending=%d confirmed=%d), resetting to %d",
            pending,
            confirmed,
            confirmed,
        )
        return confirmed
    return pending
