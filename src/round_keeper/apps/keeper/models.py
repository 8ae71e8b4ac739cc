"""Data models for the round keeper.

Define the configuration knobs that select between contract variants
(window anchor, price precondition, round call, scan set), the immutable
``WindowDecision`` produced on every evaluation, and the keeper's
configuration object.
"""

from dataclasses import dataclass
from enum import Enum

_DEFAULT_POLL_INTERVAL = 1.0
_DEFAULT_BUFFER_SECONDS = 30
_DEFAULT_SCAN_LOOKBACK = 3
_DEFAULT_RETRY_COOLDOWN = 5
_DEFAULT_MONITOR_INTERVAL = 10


class WindowAnchor(Enum):
    """Round timestamp the execution window is measured from."""

    LOCK = "lock"
    CLOSE = "close"


class PriceCondition(Enum):
    """Precondition on the round's price data before it may be executed."""

    ORACLE_CALLED = "oracle_called"
    CLOSE_SET = "close_set"
    NONE = "none"


class RoundCall(Enum):
    """Contract call used to advance a round inside its window."""

    EXECUTE = "execute"
    LOCK = "lock"


class ScanMode(Enum):
    """Which epochs around the current one are evaluated each tick.

    - ``CURRENT``: the current epoch only.
    - ``TRAILING``: ``current - lookback`` up to ``current``, oldest first.
    - ``AROUND``: current, next, previous.
    - ``WIDE``: current, next, then ``current - 1`` down to ``current - lookback``.
    """

    CURRENT = "current"
    TRAILING = "trailing"
    AROUND = "around"
    WIDE = "wide"

    def epochs(self, current: int, lookback: int = _DEFAULT_SCAN_LOOKBACK) -> list[int]:
        """Return the scan set for ``current`` in evaluation order.

        Epochs below 1 are dropped; the current epoch is always included
        when it is positive.
        """
        match self:
            case ScanMode.CURRENT:
                candidates = [current]
            case ScanMode.TRAILING:
                candidates = list(range(current - lookback, current + 1))
            case ScanMode.AROUND:
                candidates = [current, current + 1, current - 1]
            case ScanMode.WIDE:
                candidates = [current, current + 1] + [current - i for i in range(1, lookback + 1)]
        return [epoch for epoch in candidates if epoch > 0]


class DecisionKind(Enum):
    """What the keeper should do about one round right now."""

    SKIP = "skip"
    BOOTSTRAP_START = "bootstrap_start"
    BOOTSTRAP_LOCK = "bootstrap_lock"
    EXECUTE = "execute"
    LOCK = "lock"
    MARK_MISSED = "mark_missed"


@dataclass(frozen=True)
class WindowDecision:
    """Outcome of evaluating the window policy once.

    Args:
        kind: Selected action.
        epoch: Round the action applies to (``None`` for skips and genesis).
        reason: Short explanation for logs.

    """

    kind: DecisionKind
    epoch: int | None = None
    reason: str = ""

    @property
    def submits(self) -> bool:
        """Return whether acting on this decision sends a transaction."""
        return self.kind not in (DecisionKind.SKIP, DecisionKind.MARK_MISSED)

    @classmethod
    def skip(cls, reason: str = "", epoch: int | None = None) -> "WindowDecision":
        """Build a no-op decision."""
        return cls(DecisionKind.SKIP, epoch, reason)


class KeeperPhase(Enum):
    """Where the scheduler is within a tick."""

    IDLE = "idle"
    BOOTSTRAPPING = "bootstrapping"
    SCANNING = "scanning"
    SUBMITTING = "submitting"


@dataclass(frozen=True)
class KeeperConfig:
    """Configuration for the round keeper loop.

    Args:
        poll_interval_seconds: Seconds between ticks.
        buffer_seconds: Length of the execution window after the anchor.
            Must match the contract's own ``bufferSeconds``.
        safe_delay_seconds: Offset after the anchor before the window opens.
        window_anchor: Timestamp the window is measured from.
        price_condition: Price precondition for executing a round.
        round_call: Contract call made inside the window.
        scan_mode: Which epochs are evaluated each tick.
        scan_lookback: How far back ``TRAILING`` and ``WIDE`` scans reach.
        retry_cooldown_seconds: Minimum seconds between attempts on one epoch.
        recovery_enabled: Try ``unpause`` when the contract is paused and
            epochs stop advancing.
        monitor_interval_seconds: Seconds between monitor log lines
            (``0`` disables the monitor).

    """

    poll_interval_seconds: float = _DEFAULT_POLL_INTERVAL
    buffer_seconds: int = _DEFAULT_BUFFER_SECONDS
    safe_delay_seconds: int = 0
    window_anchor: WindowAnchor = WindowAnchor.LOCK
    price_condition: PriceCondition = PriceCondition.ORACLE_CALLED
    round_call: RoundCall = RoundCall.EXECUTE
    scan_mode: ScanMode = ScanMode.WIDE
    scan_lookback: int = _DEFAULT_SCAN_LOOKBACK
    retry_cooldown_seconds: int = _DEFAULT_RETRY_COOLDOWN
    recovery_enabled: bool = False
    monitor_interval_seconds: int = _DEFAULT_MONITOR_INTERVAL

    def __post_init__(self) -> None:
        """Validate interval and lookback values."""
        if self.poll_interval_seconds <= 0:
            msg = f"poll_interval_seconds must be positive, got {self.poll_interval_seconds}"
            raise ValueError(msg)
        if self.scan_lookback < 0:
            msg = f"scan_lookback must be non-negative, got {self.scan_lookback}"
            raise ValueError(msg)
        if self.retry_cooldown_seconds < 0:
            msg = f"retry_cooldown_seconds must be non-negative, got {self.retry_cooldown_seconds}"
            raise ValueError(msg)
