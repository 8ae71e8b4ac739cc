"""Tests for the round keeper scheduler."""

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from round_keeper.apps.keeper.clock import RoundClock
from round_keeper.apps.keeper.gate import ExecutionGate, SchedulerRunState
from round_keeper.apps.keeper.models import DecisionKind, KeeperConfig, KeeperPhase, ScanMode
from round_keeper.apps.keeper.scheduler import RoundKeeper
from round_keeper.apps.keeper.submitter import TransactionFailedError
from round_keeper.clients.chain.exceptions import ChainRPCError
from round_keeper.clients.chain.models import (
    ConfirmedReceipt,
    ContractCall,
    GenesisFlags,
    OracleRoundData,
    RoundState,
)

_OPERATOR = "0x00000000000000000000000000000000000000AA"
_LOCK_TS = 1_000
_BUFFER = 30
_COOLDOWN = 5
_RECEIPT = ConfirmedReceipt(tx_hash="0xfeed", block_number=50, gas_used=100_000, status=1)


class _FakeChain:
    """In-memory prediction contract with scripted state."""

    def __init__(
        self,
        *,
        epoch: int = 1,
        flags: tuple[bool, bool] = (True, True),
        rounds: dict[int, RoundState] | None = None,
        paused: bool = False,
    ) -> None:
        self.epoch = epoch
        self.flags = GenesisFlags(start_done=flags[0], lock_done=flags[1])
        self.rounds = rounds or {}
        self.paused = paused
        self.now = 0
        self.operator = _OPERATOR
        self.buffer_seconds = _BUFFER
        self.round_requests: list[int] = []

    async def get_current_epoch(self) -> int:
        return self.epoch

    async def get_round(self, epoch: int) -> RoundState:
        self.round_requests.append(epoch)
        return self.rounds.get(epoch, RoundState(epoch=epoch))

    async def get_genesis_flags(self) -> GenesisFlags:
        return self.flags

    async def is_paused(self) -> bool:
        return self.paused

    async def get_operator_address(self) -> str:
        return self.operator

    async def get_buffer_seconds(self) -> int:
        return self.buffer_seconds

    async def get_interval_seconds(self) -> int:
        return 300

    async def get_oracle_update_allowance(self) -> int:
        return 300

    async def get_oracle_latest_round_id(self) -> int:
        return 9


def _locked_round(epoch: int, lock: int = _LOCK_TS, *, oracle_called: bool = True) -> RoundState:
    """Create a round that has a lock time set."""
    return RoundState(
        epoch=epoch,
        start_timestamp=lock - 300,
        lock_timestamp=lock,
        close_timestamp=lock + 300,
        oracle_called=oracle_called,
    )


def _make_submitter(side_effect: object = None) -> MagicMock:
    """Create a submitter mock that confirms every call by default."""
    submitter = MagicMock()
    submitter.submit = AsyncMock(return_value=_RECEIPT, side_effect=side_effect)
    return submitter


def _make_keeper(
    chain: _FakeChain,
    submitter: MagicMock,
    *,
    state: SchedulerRunState | None = None,
    **config_overrides: object,
) -> RoundKeeper:
    """Create a keeper wired to the fake chain and a controllable clock.

    Args:
        chain: Fake contract; its ``now`` attribute drives the clock.
        submitter: Submitter mock.
        state: Initial run state for the gate.
        config_overrides: KeeperConfig field overrides.

    Returns:
        RoundKeeper ready to tick.

    """
    settings: dict[str, object] = {
        "buffer_seconds": _BUFFER,
        "retry_cooldown_seconds": _COOLDOWN,
        "monitor_interval_seconds": 0,
    }
    settings.update(config_overrides)
    config = KeeperConfig(**settings)  # type: ignore[arg-type]
    return RoundKeeper(
        chain,
        submitter,
        config,
        signer_address=_OPERATOR,
        clock=RoundClock(chain, time_source=lambda: chain.now),
        gate=ExecutionGate(_COOLDOWN, state),
        sleep=AsyncMock(),
    )


def _submitted(submitter: MagicMock) -> list[str]:
    """Return the function names passed to ``submit`` so far."""
    return [c.args[0].function_name for c in submitter.submit.await_args_list]


class TestGenesis:
    """Test suite for the genesis bootstrap path."""

    @pytest.mark.asyncio
    async def test_start_then_lock(self) -> None:
        """Test genesis performs start, then lock on a later tick, never both."""
        chain = _FakeChain(epoch=0, flags=(False, False))
        submitter = _make_submitter()
        keeper = _make_keeper(chain, submitter)

        decision = await keeper.tick()
        assert decision.kind is DecisionKind.BOOTSTRAP_START
        assert _submitted(submitter) == ["genesisStartRound"]

        chain.flags = GenesisFlags(start_done=True, lock_done=False)
        chain.epoch = 1
        chain.rounds[1] = _locked_round(1)
        chain.now = _LOCK_TS

        decision = await keeper.tick()
        assert decision.kind is DecisionKind.BOOTSTRAP_LOCK
        assert _submitted(submitter) == ["genesisStartRound", "genesisLockRound"]
        assert not keeper.gate.tx_pending

    @pytest.mark.asyncio
    async def test_lock_waits_for_lock_time(self) -> None:
        """Test the genesis lock is not sent before the round's lock time."""
        chain = _FakeChain(epoch=1, flags=(True, False), rounds={1: _locked_round(1)})
        chain.now = _LOCK_TS - 1
        submitter = _make_submitter()
        keeper = _make_keeper(chain, submitter)

        decision = await keeper.tick()

        assert decision.kind is DecisionKind.SKIP
        submitter.submit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_genesis_does_not_scan(self) -> None:
        """Test no epochs are scanned while genesis is incomplete."""
        chain = _FakeChain(epoch=0, flags=(False, False))
        keeper = _make_keeper(chain, _make_submitter())
        await keeper.tick()
        assert chain.round_requests == []

    @pytest.mark.asyncio
    async def test_failed_genesis_releases_slot(self) -> None:
        """Test a failed genesis step leaves the keeper free to retry."""
        chain = _FakeChain(epoch=0, flags=(False, False))
        submitter = _make_submitter(TransactionFailedError(ContractCall("genesisStartRound"), 5))
        keeper = _make_keeper(chain, submitter)
        await keeper.tick()
        assert not keeper.gate.tx_pending
        await keeper.tick()
        assert submitter.submit.await_count == 2  # noqa: PLR2004


class TestScanning:
    """Test suite for the normal round scan."""

    @pytest.mark.asyncio
    async def test_executes_round_in_window(self) -> None:
        """Test an open window with price data executes and records the epoch."""
        chain = _FakeChain(epoch=6, rounds={6: _locked_round(6)})
        chain.now = _LOCK_TS + 5
        submitter = _make_submitter()
        keeper = _make_keeper(chain, submitter)

        decision = await keeper.tick()

        assert decision.kind is DecisionKind.EXECUTE
        assert decision.epoch == 6  # noqa: PLR2004
        assert _submitted(submitter) == ["executeRound"]
        assert keeper.gate.last_handled_epoch == 6  # noqa: PLR2004
        assert keeper.phase is KeeperPhase.IDLE

    @pytest.mark.asyncio
    async def test_handled_epochs_are_not_evaluated(self) -> None:
        """Test only epochs above the last handled one are read."""
        chain = _FakeChain(epoch=6, rounds={6: _locked_round(6)})
        chain.now = _LOCK_TS + 5
        submitter = _make_submitter()
        keeper = _make_keeper(
            chain,
            submitter,
            state=SchedulerRunState(last_handled_epoch=5),
            scan_mode=ScanMode.TRAILING,
            scan_lookback=3,
        )

        decision = await keeper.tick()

        assert chain.round_requests == [6]
        assert decision.epoch == 6  # noqa: PLR2004

    @pytest.mark.asyncio
    async def test_same_epoch_is_not_submitted_twice(self) -> None:
        """Test repeated ticks over an executed epoch do nothing."""
        chain = _FakeChain(epoch=6, rounds={6: _locked_round(6)})
        chain.now = _LOCK_TS + 5
        submitter = _make_submitter()
        keeper = _make_keeper(chain, submitter)

        await keeper.tick()
        chain.now += 1
        second = await keeper.tick()

        assert second.kind is DecisionKind.SKIP
        submitter.submit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missed_window_is_marked_handled(self) -> None:
        """Test a closed window is recorded without a transaction."""
        chain = _FakeChain(epoch=6, rounds={6: _locked_round(6)})
        chain.now = _LOCK_TS + _BUFFER + 1
        submitter = _make_submitter()
        keeper = _make_keeper(chain, submitter)

        decision = await keeper.tick()

        assert decision.kind is DecisionKind.SKIP
        submitter.submit.assert_not_awaited()
        assert keeper.gate.last_handled_epoch == 6  # noqa: PLR2004

    @pytest.mark.asyncio
    async def test_waits_for_oracle(self) -> None:
        """Test an open window without price data is left for a later tick."""
        chain = _FakeChain(epoch=6, rounds={6: _locked_round(6, oracle_called=False)})
        chain.now = _LOCK_TS + 5
        submitter = _make_submitter()
        keeper = _make_keeper(chain, submitter)

        await keeper.tick()

        submitter.submit.assert_not_awaited()
        assert keeper.gate.last_handled_epoch == 0

    @pytest.mark.asyncio
    async def test_failure_then_cooldown_then_retry(self) -> None:
        """Test a failed execute is retried only after the cooldown."""
        chain = _FakeChain(epoch=6, rounds={6: _locked_round(6)})
        chain.now = _LOCK_TS + 2
        submitter = _make_submitter(
            [TransactionFailedError(ContractCall("executeRound"), 3), _RECEIPT]
        )
        keeper = _make_keeper(chain, submitter)

        await keeper.tick()
        assert keeper.gate.last_handled_epoch == 0
        assert keeper.gate.state.last_attempted[6] == _LOCK_TS + 2

        chain.now = _LOCK_TS + 2 + _COOLDOWN - 1
        await keeper.tick()
        assert submitter.submit.await_count == 1

        chain.now = _LOCK_TS + 2 + _COOLDOWN
        await keeper.tick()
        assert submitter.submit.await_count == 2  # noqa: PLR2004
        assert keeper.gate.last_handled_epoch == 6  # noqa: PLR2004


class TestTickSafety:
    """Test suite for tick re-entrancy and error containment."""

    @pytest.mark.asyncio
    async def test_pending_transaction_makes_tick_a_no_op(self) -> None:
        """Test a tick does nothing while a submission is in flight."""
        chain = _FakeChain(epoch=6, rounds={6: _locked_round(6)})
        chain.now = _LOCK_TS + 5
        submitter = _make_submitter()
        keeper = _make_keeper(chain, submitter)
        assert keeper.gate.try_acquire()

        decision = await keeper.tick()

        assert decision.kind is DecisionKind.SKIP
        assert chain.round_requests == []
        submitter.submit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_read_error_is_contained(self) -> None:
        """Test an RPC failure ends the tick quietly."""
        chain = _FakeChain(epoch=6)
        chain.get_current_epoch = AsyncMock(side_effect=ChainRPCError("down"))  # type: ignore[method-assign]
        keeper = _make_keeper(chain, _make_submitter())

        decision = await keeper.tick()

        assert decision.kind is DecisionKind.SKIP
        assert decision.reason == "tick failed"

    @pytest.mark.asyncio
    async def test_unexpected_submit_error_clears_pending(self) -> None:
        """Test an unexpected error mid-submission still frees the slot."""
        chain = _FakeChain(epoch=6, rounds={6: _locked_round(6)})
        chain.now = _LOCK_TS + 5
        keeper = _make_keeper(chain, _make_submitter(RuntimeError("boom")))

        decision = await keeper.tick()

        assert decision.kind is DecisionKind.SKIP
        assert not keeper.gate.tx_pending
        assert keeper.phase is KeeperPhase.IDLE


class TestRecovery:
    """Test suite for stall detection and unpause recovery."""

    @pytest.mark.asyncio
    async def test_stall_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test a non-advancing epoch is reported."""
        chain = _FakeChain(epoch=6)
        keeper = _make_keeper(chain, _make_submitter(), state=SchedulerRunState(last_handled_epoch=6))
        with caplog.at_level(logging.WARNING):
            await keeper.tick()
        assert "Epoch not advancing (current: 6, last handled: 6)" in caplog.text

    @pytest.mark.asyncio
    async def test_unpause_after_full_stalled_tick(self) -> None:
        """Test recovery unpauses a paused contract on the second stalled tick."""
        chain = _FakeChain(epoch=6, paused=True)
        submitter = _make_submitter()
        keeper = _make_keeper(
            chain,
            submitter,
            state=SchedulerRunState(last_handled_epoch=6),
            recovery_enabled=True,
        )

        await keeper.tick()
        submitter.submit.assert_not_awaited()
        await keeper.tick()

        assert _submitted(submitter) == ["unpause"]
        assert not keeper.gate.tx_pending

    @pytest.mark.asyncio
    async def test_no_recovery_when_disabled(self) -> None:
        """Test a stalled paused contract is left alone by default."""
        chain = _FakeChain(epoch=6, paused=True)
        submitter = _make_submitter()
        keeper = _make_keeper(chain, submitter, state=SchedulerRunState(last_handled_epoch=6))
        for _ in range(3):
            await keeper.tick()
        submitter.submit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_unpause_when_running(self) -> None:
        """Test recovery does nothing if the contract is not paused."""
        chain = _FakeChain(epoch=6, paused=False)
        submitter = _make_submitter()
        keeper = _make_keeper(
            chain, submitter, state=SchedulerRunState(last_handled_epoch=6), recovery_enabled=True
        )
        for _ in range(3):
            await keeper.tick()
        submitter.submit.assert_not_awaited()


class TestStartupAndMonitor:
    """Test suite for configuration checks, status logging and the run loop."""

    @pytest.mark.asyncio
    async def test_operator_mismatch_is_error(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test a non-operator wallet is reported at ERROR."""
        chain = _FakeChain()
        chain.operator = "0x00000000000000000000000000000000000000BB"
        keeper = _make_keeper(chain, _make_submitter())
        with caplog.at_level(logging.INFO):
            await keeper.check_configuration()
        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert any("is not operator" in r.getMessage() for r in errors)

    @pytest.mark.asyncio
    async def test_buffer_mismatch_is_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test a contract buffer differing from the local value warns."""
        chain = _FakeChain()
        chain.buffer_seconds = 60
        keeper = _make_keeper(chain, _make_submitter())
        with caplog.at_level(logging.INFO):
            await keeper.check_configuration()
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert any("BUFFER_SECONDS mismatch: local=30 contract=60" in r.getMessage() for r in warnings)

    @pytest.mark.asyncio
    async def test_check_configuration_survives_rpc_errors(self) -> None:
        """Test a failing read during startup checks does not raise."""
        chain = _FakeChain()
        chain.get_operator_address = AsyncMock(side_effect=ChainRPCError("down"))  # type: ignore[method-assign]
        keeper = _make_keeper(chain, _make_submitter())
        await keeper.check_configuration()

    @pytest.mark.asyncio
    async def test_log_status_includes_oracle(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test the monitor line reports contract and oracle state."""
        chain = _FakeChain(epoch=6, rounds={6: _locked_round(6)})
        oracle = MagicMock()
        oracle.get_latest_round_data = AsyncMock(
            return_value=OracleRoundData(round_id=12, answer=650, started_at=1, updated_at=2, answered_in_round=12)
        )
        keeper = RoundKeeper(chain, _make_submitter(), KeeperConfig(), oracle=oracle)
        with caplog.at_level(logging.INFO):
            await keeper.log_status()
        assert "epoch=6" in caplog.text
        assert "roundId=12 price=650" in caplog.text

    @pytest.mark.asyncio
    async def test_monitor_survives_unexpected_errors(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test a malformed read is logged and the monitor keeps reporting."""
        keeper = _make_keeper(_FakeChain(), _make_submitter(), monitor_interval_seconds=10)
        log_status = AsyncMock(side_effect=[ValueError("short round tuple"), None])
        keeper.log_status = log_status  # type: ignore[method-assign]
        sleep = AsyncMock(side_effect=[None, None, asyncio.CancelledError()])

        with (
            patch("round_keeper.apps.keeper.scheduler.asyncio.sleep", new=sleep),
            caplog.at_level(logging.ERROR),
            pytest.raises(asyncio.CancelledError),
        ):
            await keeper._monitor_loop()  # pyright: ignore[reportPrivateUsage]

        assert log_status.await_count == 2  # noqa: PLR2004
        assert "Monitor error" in caplog.text
        assert "short round tuple" in caplog.text

    @pytest.mark.asyncio
    async def test_run_stops_after_max_ticks(self) -> None:
        """Test the loop ticks the requested number of times and sleeps between ticks."""
        chain = _FakeChain(epoch=6)
        keeper = _make_keeper(chain, _make_submitter(), poll_interval_seconds=0.5)
        sleep = AsyncMock()
        keeper._sleep = sleep  # pyright: ignore[reportPrivateUsage]

        await keeper.run(max_ticks=3)

        assert [c.args[0] for c in sleep.await_args_list] == [0.5, 0.5]
