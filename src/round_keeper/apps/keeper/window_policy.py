"""Pure decision logic for when a round may be advanced.

Map ``(now, round snapshot, configured offsets)`` to a single
``WindowDecision`` without touching the chain or the clock. The execution
window is ``[anchor + safe_delay, anchor + buffer]`` and both ends are
inclusive: the contract accepts the call at exactly ``anchor + buffer`` and
rejects it one second later.
"""

from dataclasses import dataclass

from round_keeper.apps.keeper.models import (
    DecisionKind,
    KeeperConfig,
    PriceCondition,
    RoundCall,
    WindowAnchor,
    WindowDecision,
)
from round_keeper.clients.chain.models import GenesisFlags, RoundState


@dataclass(frozen=True)
class WindowPolicy:
    """Decide which action, if any, a round needs at a given moment.

    Args:
        buffer_seconds: Window length after the anchor timestamp.
        safe_delay_seconds: Offset after the anchor before the window opens.
        anchor: Which round timestamp the window is measured from.
        price_condition: What must be true of the round's price data.
        round_call: Whether an open window yields ``EXECUTE`` or ``LOCK``.

    Raises:
        ValueError: If the offsets describe an empty or negative window.

    """

    buffer_seconds: int
    safe_delay_seconds: int = 0
    anchor: WindowAnchor = WindowAnchor.LOCK
    price_condition: PriceCondition = PriceCondition.ORACLE_CALLED
    round_call: RoundCall = RoundCall.EXECUTE

    def __post_init__(self) -> None:
        """Validate the offsets."""
        if self.buffer_seconds <= 0:
            msg = f"buffer_seconds must be positive, got {self.buffer_seconds}"
            raise ValueError(msg)
        if self.safe_delay_seconds < 0:
            msg = f"safe_delay_seconds must be non-negative, got {self.safe_delay_seconds}"
            raise ValueError(msg)
        if self.safe_delay_seconds > self.buffer_seconds:
            msg = (
                f"safe_delay_seconds ({self.safe_delay_seconds}) exceeds "
                f"buffer_seconds ({self.buffer_seconds}); the window would never open"
            )
            raise ValueError(msg)

    @classmethod
    def from_config(cls, config: KeeperConfig) -> "WindowPolicy":
        """Build the policy from the keeper configuration."""
        return cls(
            buffer_seconds=config.buffer_seconds,
            safe_delay_seconds=config.safe_delay_seconds,
            anchor=config.window_anchor,
            price_condition=config.price_condition,
            round_call=config.round_call,
        )

    def reference_timestamp(self, state: RoundState) -> int:
        """Return the anchor timestamp, or ``0`` while it is not meaningful."""
        if state.lock_timestamp <= 0:
            return 0
        if self.anchor is WindowAnchor.CLOSE:
            return state.close_timestamp
        return state.lock_timestamp

    def window(self, state: RoundState) -> tuple[int, int] | None:
        """Return the inclusive ``(start, end)`` window, or ``None`` if unset."""
        reference = self.reference_timestamp(state)
        if reference <= 0:
            return None
        return reference + self.safe_delay_seconds, reference + self.buffer_seconds

    def price_ready(self, state: RoundState) -> bool:
        """Return whether the configured price precondition holds."""
        match self.price_condition:
            case PriceCondition.ORACLE_CALLED:
                return state.oracle_called
            case PriceCondition.CLOSE_SET:
                return state.close_timestamp > 0
            case PriceCondition.NONE:
                return True

    def decide(self, now: int, state: RoundState) -> WindowDecision:
        """Evaluate one round.

        Args:
            now: Current Unix time in seconds.
            state: Snapshot of the round.

        Returns:
            ``EXECUTE``/``LOCK`` inside an open window with the price
            precondition met, ``MARK_MISSED`` once the window has closed,
            and ``SKIP`` otherwise.

        """
        bounds = self.window(state)
        if bounds is None:
            return WindowDecision.skip("round not locked yet", state.epoch)
        start, end = bounds

        if now > end:
            return WindowDecision(
                DecisionKind.MARK_MISSED,
                state.epoch,
                f"window closed {now - end}s ago",
            )
        if now < start:
            return WindowDecision.skip(f"window opens in {start - now}s", state.epoch)
        if not self.price_ready(state):
            return WindowDecision.skip(
                f"waiting for price ({self.price_condition.value})", state.epoch
            )

        kind = DecisionKind.LOCK if self.round_call is RoundCall.LOCK else DecisionKind.EXECUTE
        return WindowDecision(kind, state.epoch, f"{end - now}s left in window")

    def push_window_open(self, now: int, state: RoundState, lead_seconds: int) -> bool:
        """Return whether a price push is useful for ``state`` right now.

        The push window runs from ``lead_seconds`` before the round's lock
        time until the end of its execution buffer, and only while no price
        has been attached to the round yet.
        """
        if state.lock_timestamp <= 0 or state.oracle_called:
            return False
        return state.lock_timestamp - lead_seconds <= now <= state.lock_timestamp + self.buffer_seconds


def decide_genesis(now: int, flags: GenesisFlags, current: RoundState | None) -> WindowDecision:
    """Select the single missing genesis step.

    Genesis strictly serialises: the lock step is only considered once the
    start step is confirmed on chain, and only after the current round's
    lock time has been reached.

    Args:
        now: Current Unix time in seconds.
        flags: Genesis one-time flags.
        current: Snapshot of the current round (needed for the lock step).

    Returns:
        ``BOOTSTRAP_START``, ``BOOTSTRAP_LOCK``, or ``SKIP``.

    """
    if not flags.start_done:
        return WindowDecision(DecisionKind.BOOTSTRAP_START, reason="genesis start pending")
    if flags.lock_done:
        return WindowDecision.skip("genesis complete")
    if current is None or current.lock_timestamp <= 0:
        return WindowDecision.skip("genesis round has no lock time yet")
    if now < current.lock_timestamp:
        return WindowDecision.skip(
            f"genesis lock opens in {current.lock_timestamp - now}s", current.epoch
        )
    return WindowDecision(DecisionKind.BOOTSTRAP_LOCK, current.epoch, "genesis lock due")
