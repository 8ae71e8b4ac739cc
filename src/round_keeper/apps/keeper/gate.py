"""In-memory run state and the execution gate that guards it.

The gate is the only writer of ``SchedulerRunState``. It enforces two
rules: at most one transaction in flight process-wide, and at most one
terminal outcome per epoch. State is never persisted; after a restart the
contract itself rejects any work that was already done.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


def _empty_attempts() -> dict[int, int]:
    """Create an empty attempt-time map."""
    return {}


@dataclass
class SchedulerRunState:
    """Process-local bookkeeping for the keeper.

    Args:
        last_handled_epoch: Highest epoch with a terminal outcome (executed
            or deliberately skipped). Never decreases.
        tx_pending: ``True`` exactly while a submission is in flight.
        last_attempted: Unix time of the most recent failed attempt per epoch.

    """

    last_handled_epoch: int = 0
    tx_pending: bool = False
    last_attempted: dict[int, int] = field(default_factory=_empty_attempts)


class GateDenial(Enum):
    """Why the gate refused to let an epoch through."""

    TX_PENDING = "tx_pending"
    ALREADY_HANDLED = "already_handled"
    COOLDOWN = "cooldown"


@dataclass(frozen=True)
class GateVerdict:
    """Result of ``ExecutionGate.try_enter``."""

    granted: bool
    denial: GateDenial | None = None

    def __bool__(self) -> bool:
        """Allow ``if gate.try_enter(...)`` checks."""
        return self.granted


_GRANTED = GateVerdict(granted=True)


class ExecutionGate:
    """Guard submissions against overlap, repeats, and rapid retries.

    Args:
        cooldown_seconds: Minimum seconds between attempts on one epoch.
        state: Existing run state to wrap (a fresh one by default).

    """

    def __init__(self, cooldown_seconds: int, state: SchedulerRunState | None = None) -> None:
        """Initialize the gate."""
        self._cooldown = cooldown_seconds
        self._state = state or SchedulerRunState()

    @property
    def state(self) -> SchedulerRunState:
        """Return the wrapped run state (read it, do not mutate it)."""
        return self._state

    @property
    def tx_pending(self) -> bool:
        """Return whether a submission is in flight."""
        return self._state.tx_pending

    @property
    def last_handled_epoch(self) -> int:
        """Return the highest epoch with a terminal outcome."""
        return self._state.last_handled_epoch

    def is_handled(self, epoch: int) -> bool:
        """Return whether ``epoch`` already has a terminal outcome."""
        return epoch <= self._state.last_handled_epoch

    def try_acquire(self) -> bool:
        """Claim the in-flight slot for a submission that has no epoch.

        Returns:
            ``True`` if the slot was free and is now held.

        """
        if self._state.tx_pending:
            return False
        self._state.tx_pending = True
        return True

    def try_enter(self, epoch: int, now: int) -> GateVerdict:
        """Check every admission rule and claim the in-flight slot if they pass.

        Args:
            epoch: Round about to be submitted.
            now: Current Unix time in seconds.

        Returns:
            A granted verdict (the slot is now held) or a denial with its reason.

        """
        if self._state.tx_pending:
            return GateVerdict(granted=False, denial=GateDenial.TX_PENDING)
        if self.is_handled(epoch):
            return GateVerdict(granted=False, denial=GateDenial.ALREADY_HANDLED)
        last = self._state.last_attempted.get(epoch)
        if last is not None and now - last < self._cooldown:
            return GateVerdict(granted=False, denial=GateDenial.COOLDOWN)
        self._state.tx_pending = True
        return _GRANTED

    def record_success(self, epoch: int) -> None:
        """Mark ``epoch`` terminal after a confirmed submission and free the slot."""
        self._advance(epoch)
        self._state.tx_pending = False

    def record_failure(self, epoch: int, now: int) -> None:
        """Free the slot and start the retry cooldown for ``epoch``."""
        self._state.last_attempted[epoch] = now
        self._state.tx_pending = False

    def mark_missed(self, epoch: int) -> None:
        """Mark ``epoch`` terminal without a submission."""
        self._advance(epoch)

    def _advance(self, epoch: int) -> None:
        """Raise the high-water mark and forget cooldowns at or below it."""
        state = self._state
        state.last_handled_epoch = max(state.last_handled_epoch, epoch)
        for stale in [e for e in state.last_attempted if e <= state.last_handled_epoch]:
            del state.last_attempted[stale]

    def release(self) -> None:
        """Free the in-flight slot unconditionally."""
        if self._state.tx_pending:
            logger.debug("Releasing in-flight slot")
        self._state.tx_pending = False
