"""Polling scheduler that advances prediction rounds on chain.

Drive the round lifecycle on a fixed cadence. Each tick either performs the
single missing genesis step, or scans a small set of epochs around the
current one and submits at most one execute/lock call for the first round
whose window is open. Missed windows are recorded and never retried.

Safety guardrails:
- Ticks never overlap (an ``asyncio.Lock`` plus the gate's in-flight flag).
- Any exception inside a tick is logged and the in-flight flag is cleared.
- Failed submissions leave the epoch eligible again after a cooldown.
- SIGINT/SIGTERM stop scheduling new ticks; an in-flight submission finishes.
"""

import asyncio
import logging
import signal
from collections.abc import Awaitable, Callable
from typing import Any

from round_keeper.apps.keeper.actions import Unpause, action_for
from round_keeper.apps.keeper.clock import RoundClock
from round_keeper.apps.keeper.gate import ExecutionGate
from round_keeper.apps.keeper.models import (
    DecisionKind,
    KeeperConfig,
    KeeperPhase,
    WindowDecision,
)
from round_keeper.apps.keeper.protocols import ChainStateReader, OracleReader
from round_keeper.apps.keeper.submitter import TransactionFailedError, TxSubmitter
from round_keeper.apps.keeper.window_policy import WindowPolicy, decide_genesis
from round_keeper.clients.chain.exceptions import ChainError
from round_keeper.clients.chain.models import GenesisFlags
from round_keeper.core.timestamps import format_timestamp

logger = logging.getLogger(__name__)

_SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def _log_task_exception(task: asyncio.Task[Any]) -> None:
    """Log unhandled exceptions from background tasks.

    Attach as a ``done_callback`` so that a crashed monitor task is
    surfaced in the logs rather than silently swallowed.

    Args:
        task: The completed asyncio task.

    """
    if not task.cancelled() and task.exception() is not None:
        logger.error(
            "Background task %s failed: %s",
            task.get_name(),
            task.exception(),
            exc_info=task.exception(),
        )


class RoundKeeper:
    """Operator loop for a prediction round contract.

    Args:
        reader: Prediction contract reader.
        submitter: Transaction submitter bound to the prediction contract.
        config: Keeper configuration.
        oracle: Optional oracle reader, used only for monitor output.
        signer_address: Address of the operator wallet, for the startup check.
        clock: Round clock (built from ``reader`` by default).
        gate: Execution gate (a fresh one by default).
        sleep: Awaitable sleep between ticks, injectable for tests.

    """

    def __init__(  # noqa: PLR0913
        self,
        reader: ChainStateReader,
        submitter: TxSubmitter,
        config: KeeperConfig,
        *,
        oracle: OracleReader | None = None,
        signer_address: str | None = None,
        clock: RoundClock | None = None,
        gate: ExecutionGate | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the keeper."""
        self._reader = reader
        self._submitter = submitter
        self._config = config
        self._oracle = oracle
        self._signer_address = signer_address
        self._clock = clock or RoundClock(reader)
        self._gate = gate or ExecutionGate(config.retry_cooldown_seconds)
        self._policy = WindowPolicy.from_config(config)
        self._sleep = sleep
        self._tick_lock = asyncio.Lock()
        self._phase = KeeperPhase.IDLE
        self._previous_epoch: int | None = None
        self._shutdown = False

    @property
    def gate(self) -> ExecutionGate:
        """Return the execution gate holding the run state."""
        return self._gate

    @property
    def phase(self) -> KeeperPhase:
        """Return the current tick phase."""
        return self._phase

    @property
    def signer_address(self) -> str | None:
        """Return the operator wallet address, if known."""
        return self._signer_address

    async def run(self, *, max_ticks: int | None = None) -> None:
        """Tick until a shutdown signal arrives or ``max_ticks`` is reached.

        Args:
            max_ticks: Stop after this many ticks (``None`` for unlimited).

        """
        loop = asyncio.get_running_loop()
        for sig in _SHUTDOWN_SIGNALS:
            loop.add_signal_handler(sig, self._handle_shutdown)

        logger.info(
            "Starting round keeper (interval=%.1fs buffer=%ds safe_delay=%ds anchor=%s scan=%s)",
            self._config.poll_interval_seconds,
            self._config.buffer_seconds,
            self._config.safe_delay_seconds,
            self._config.window_anchor.value,
            self._config.scan_mode.value,
        )
        await self.check_configuration()

        monitor_task: asyncio.Task[None] | None = None
        if self._config.monitor_interval_seconds > 0:
            monitor_task = asyncio.create_task(self._monitor_loop(), name="monitor")
            monitor_task.add_done_callback(_log_task_exception)

        tick_count = 0
        try:
            while not self._shutdown:
                await self.tick()
                tick_count += 1
                if max_ticks is not None and tick_count >= max_ticks:
                    break
                await self._sleep(self._config.poll_interval_seconds)
        finally:
            if monitor_task is not None:
                monitor_task.cancel()
            for sig in _SHUTDOWN_SIGNALS:
                loop.remove_signal_handler(sig)
            logger.info(
                "Round keeper stopped after %d ticks (last handled epoch %d)",
                tick_count,
                self._gate.last_handled_epoch,
            )

    def _handle_shutdown(self) -> None:
        """Set the shutdown flag for graceful exit on SIGINT/SIGTERM."""
        logger.info("Shutdown signal received")
        self._shutdown = True

    async def check_configuration(self) -> None:
        """Log operator and contract-parameter sanity checks.

        A buffer mismatch only warns: the contract enforces its own value,
        and the keeper keeps using the local one.
        """
        try:
            operator = await self._reader.get_operator_address()
            if self._signer_address is not None and operator.lower() != self._signer_address.lower():
                logger.error("Wallet %s is not operator (%s)", self._signer_address, operator)
            else:
                logger.info("Operator: %s", operator)

            contract_buffer = await self._reader.get_buffer_seconds()
            if contract_buffer != self._config.buffer_seconds:
                logger.warning(
                    "BUFFER_SECONDS mismatch: local=%d contract=%d (using local value)",
                    self._config.buffer_seconds,
                    contract_buffer,
                )
            interval = await self._reader.get_interval_seconds()
            allowance = await self._reader.get_oracle_update_allowance()
            logger.info(
                "Contract interval=%ds buffer=%ds oracle_update_allowance=%ds",
                interval,
                contract_buffer,
                allowance,
            )
        except ChainError as exc:
            logger.error("Configuration check failed: %s", exc)

    async def tick(self) -> WindowDecision:
        """Run one scheduling step.

        Returns:
            The decision that was acted on, or a skip decision when nothing
            was submitted (including when the tick was suppressed because
            another one is still running).

        """
        if self._tick_lock.locked() or self._gate.tx_pending:
            logger.debug("Previous tick still in progress, skipping")
            return WindowDecision.skip("tick already in progress")

        async with self._tick_lock:
            try:
                return await self._run_tick()
            except Exception:
                logger.exception("Tick failed")
                return WindowDecision.skip("tick failed")
            finally:
                self._gate.release()
                self._phase = KeeperPhase.IDLE

    async def _run_tick(self) -> WindowDecision:
        self._phase = KeeperPhase.BOOTSTRAPPING
        flags = await self._clock.genesis_flags()
        if not flags.complete:
            return await self._bootstrap(flags)

        self._phase = KeeperPhase.SCANNING
        current = await self._clock.current_epoch()
        decision = await self._scan(current)
        if not decision.submits:
            await self._check_progress(current)
        self._previous_epoch = current
        return decision

    async def _bootstrap(self, flags: GenesisFlags) -> WindowDecision:
        """Perform the one missing genesis step, never both in one tick."""
        current_round = None
        if flags.start_done:
            current_round = await self._clock.round(await self._clock.current_epoch())

        decision = decide_genesis(self._clock.now(), flags, current_round)
        logger.debug(
            "Genesis - StartOnce: %s, LockOnce: %s -> %s",
            flags.start_done,
            flags.lock_done,
            decision.kind.value,
        )
        if not decision.submits:
            if current_round is not None:
                logger.debug(
                    "Waiting for genesis lock window: now=%s lock=%s",
                    format_timestamp(self._clock.now()),
                    format_timestamp(current_round.lock_timestamp),
                )
            return decision

        if not self._gate.try_acquire():
            return WindowDecision.skip("submission in flight")

        action = action_for(decision)
        call = action.to_call()
        self._phase = KeeperPhase.SUBMITTING
        logger.info("Submitting %s", call.function_name)
        try:
            receipt = await self._submitter.submit(call)
        except TransactionFailedError as exc:
            logger.warning("%s failed, retrying on a later tick: %s", call.function_name, exc)
            return decision
        finally:
            self._gate.release()
        logger.info("%s confirmed (%s)", call.function_name, receipt.tx_hash)
        return decision

    async def _scan(self, current: int) -> WindowDecision:
        """Evaluate the scan set and submit for the first open window."""
        for epoch in self._config.scan_mode.epochs(current, self._config.scan_lookback):
            if self._gate.is_handled(epoch):
                continue

            state = await self._clock.round(epoch)
            now = self._clock.now()
            decision = self._policy.decide(now, state)
            logger.debug(
                "Checking epoch %d: now=%s lock=%s close=%s oracle_called=%s -> %s (%s)",
                epoch,
                format_timestamp(now),
                format_timestamp(state.lock_timestamp),
                format_timestamp(state.close_timestamp),
                state.oracle_called,
                decision.kind.value,
                decision.reason,
            )

            if decision.kind is DecisionKind.MARK_MISSED:
                self._gate.mark_missed(epoch)
                logger.info("Missed epoch %d (%s), marking handled", epoch, decision.reason)
                continue
            if not decision.submits:
                continue

            verdict = self._gate.try_enter(epoch, now)
            if not verdict:
                logger.debug(
                    "Gate denied epoch %d: %s",
                    epoch,
                    verdict.denial.value if verdict.denial else "unknown",
                )
                continue

            await self._submit_round(epoch, decision)
            return decision

        return WindowDecision.skip("no round ready", current)

    async def _submit_round(self, epoch: int, decision: WindowDecision) -> bool:
        """Submit the round call for ``epoch`` and record the outcome in the gate."""
        action = action_for(decision)
        self._phase = KeeperPhase.SUBMITTING
        logger.info("Executing epoch %d (%s)", epoch, decision.reason)
        try:
            receipt = await self._submitter.submit(action.to_call())
        except TransactionFailedError as exc:
            self._gate.record_failure(epoch, self._clock.now())
            logger.warning(
                "Failed epoch %d, eligible again in %ds: %s",
                epoch,
                self._config.retry_cooldown_seconds,
                exc,
            )
            return False
        self._gate.record_success(epoch)
        logger.info("Success: epoch %d (%s)", epoch, receipt.tx_hash)
        return True

    async def _check_progress(self, current: int) -> None:
        """Warn when epochs stop advancing and, if enabled, try to recover."""
        last_handled = self._gate.last_handled_epoch
        if current > last_handled:
            return
        logger.warning(
            "Epoch not advancing (current: %d, last handled: %d)", current, last_handled
        )
        stalled_for_full_tick = self._previous_epoch == current
        if self._config.recovery_enabled and stalled_for_full_tick:
            await self._recover(current)

    async def _recover(self, current: int) -> None:
        """Unpause a paused contract so genesis can be re-run.

        The contract resets both genesis flags on unpause, so the following
        ticks bootstrap a fresh round sequence through the normal path.
        """
        if not await self._clock.is_paused():
            return
        logger.error(
            "Contract is paused and epoch %d is not advancing; "
            "operator and contract are out of sync, attempting unpause",
            current,
        )
        if not self._gate.try_acquire():
            return
        call = Unpause().to_call()
        self._phase = KeeperPhase.SUBMITTING
        try:
            receipt = await self._submitter.submit(call)
        except TransactionFailedError as exc:
            logger.error("Unpause failed: %s", exc)
            return
        finally:
            self._gate.release()
        logger.error("Contract unpaused (%s); genesis will restart on the next tick", receipt.tx_hash)

    async def _monitor_loop(self) -> None:
        """Periodically log a one-line status summary."""
        while True:
            await asyncio.sleep(self._config.monitor_interval_seconds)
            try:
                await self.log_status()
            except Exception:
                logger.exception("Monitor error")

    async def log_status(self) -> None:
        """Log contract, round, and oracle status in one line."""
        epoch = await self._reader.get_current_epoch()
        oracle_round_id = await self._reader.get_oracle_latest_round_id()
        paused = await self._reader.is_paused()
        flags = await self._reader.get_genesis_flags()
        allowance = await self._reader.get_oracle_update_allowance()
        current = await self._reader.get_round(epoch)

        oracle_summary = "n/a"
        if self._oracle is not None:
            data = await self._oracle.get_latest_round_data()
            oracle_summary = (
                f"roundId={data.round_id} price={data.answer} "
                f"updated={format_timestamp(data.updated_at)}"
            )

        logger.info(
            "Monitor - epoch=%d oracle_round_id=%d paused=%s genesis_start=%s genesis_lock=%s "
            "allowance=%ds oracle={%s} round={lock=%s oracle_called=%s} last_handled=%d",
            epoch,
            oracle_round_id,
            paused,
            flags.start_done,
            flags.lock_done,
            allowance,
            oracle_summary,
            format_timestamp(current.lock_timestamp),
            current.oracle_called,
            self._gate.last_handled_epoch,
        )
