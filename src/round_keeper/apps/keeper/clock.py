"""Read-only view of wall-clock time and round state."""

from collections.abc import Callable

from round_keeper.apps.keeper.protocols import ChainStateReader
from round_keeper.clients.chain.models import GenesisFlags, RoundState
from round_keeper.core.timestamps import now_seconds


class RoundClock:
    """Combine the local clock with contract reads.

    Every method is a fresh point-in-time read; nothing is cached, so two
    reads in the same tick may disagree and callers must not assume
    otherwise.

    Args:
        reader: Prediction contract reader.
        time_source: Callable returning Unix seconds, injectable for tests.

    """

    def __init__(
        self,
        reader: ChainStateReader,
        time_source: Callable[[], int] = now_seconds,
    ) -> None:
        """Store the reader and time source."""
        self._reader = reader
        self._time_source = time_source

    def now(self) -> int:
        """Return the current Unix time in seconds."""
        return self._time_source()

    async def current_epoch(self) -> int:
        """Return the contract's current epoch."""
        return await self._reader.get_current_epoch()

    async def round(self, epoch: int) -> RoundState:
        """Return a snapshot of ``epoch``."""
        return await self._reader.get_round(epoch)

    async def genesis_flags(self) -> GenesisFlags:
        """Return the genesis flags."""
        return await self._reader.get_genesis_flags()

    async def is_paused(self) -> bool:
        """Return whether the contract is paused."""
        return await self._reader.is_paused()
