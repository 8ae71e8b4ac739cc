"""Tests for chain data models."""

from decimal import Decimal

import pytest

from round_keeper.clients.chain.models import (
    ConfirmedReceipt,
    ContractCall,
    DynamicFee,
    FixedGasPrice,
    GenesisFlags,
    OracleRoundData,
    RoundState,
    gwei_to_wei,
)

_EPOCH = 42
_LOCK_TS = 1_700_000_300
_CLOSE_TS = 1_700_000_600
_ONE_GWEI = 10**9


def _make_round_tuple(*, oracle_called: bool = True) -> tuple[int | bool, ...]:
    """Create a raw ``rounds(epoch)`` tuple as returned by the contract."""
    return (
        _EPOCH,
        1_700_000_000,
        _LOCK_TS,
        _CLOSE_TS,
        3_000_000_000_000,
        3_010_000_000_000,
        7,
        8,
        10**18,
        6 * 10**17,
        4 * 10**17,
        0,
        0,
        oracle_called,
    )


class TestGweiToWei:
    """Test suite for gwei_to_wei."""

    @pytest.mark.parametrize(
        ("gwei", "expected"),
        [(1, _ONE_GWEI), ("1000", 1000 * _ONE_GWEI), (Decimal("0.5"), _ONE_GWEI // 2)],
    )
    def test_conversion(self, gwei: Decimal | int | str, expected: int) -> None:
        """Test integer, string and fractional gwei amounts."""
        assert gwei_to_wei(gwei) == expected


class TestRoundState:
    """Test suite for RoundState."""

    def test_from_contract_maps_fields(self) -> None:
        """Test the 14-field tuple maps onto the snapshot."""
        state = RoundState.from_contract(_make_round_tuple())
        assert state.epoch == _EPOCH
        assert state.lock_timestamp == _LOCK_TS
        assert state.close_timestamp == _CLOSE_TS
        assert state.lock_oracle_id == 7  # noqa: PLR2004
        assert state.close_oracle_id == 8  # noqa: PLR2004
        assert state.oracle_called is True

    def test_from_contract_oracle_not_called(self) -> None:
        """Test the oracleCalled flag is read from the last field."""
        state = RoundState.from_contract(_make_round_tuple(oracle_called=False))
        assert state.oracle_called is False

    def test_from_contract_short_tuple_raises(self) -> None:
        """Test a truncated tuple is rejected."""
        with pytest.raises(ValueError, match="Expected 14 round fields"):
            RoundState.from_contract((1, 2, 3))

    def test_defaults_mean_unset(self) -> None:
        """Test a bare snapshot has zeroed timestamps."""
        state = RoundState(epoch=1)
        assert state.lock_timestamp == 0
        assert state.oracle_called is False


class TestGenesisFlags:
    """Test suite for GenesisFlags."""

    @pytest.mark.parametrize(
        ("start", "lock", "complete"),
        [(False, False, False), (True, False, False), (True, True, True)],
    )
    def test_complete(self, start: bool, lock: bool, complete: bool) -> None:  # noqa: FBT001
        """Test genesis is complete only when both flags are set."""
        assert GenesisFlags(start_done=start, lock_done=lock).complete is complete


class TestOracleRoundData:
    """Test suite for OracleRoundData."""

    def test_from_contract(self) -> None:
        """Test the latestRoundData tuple mapping."""
        data = OracleRoundData.from_contract((5, 6_500_000_000_000, 100, 200, 5))
        assert data.round_id == 5  # noqa: PLR2004
        assert data.answer == 6_500_000_000_000  # noqa: PLR2004
        assert data.updated_at == 200  # noqa: PLR2004


class TestFees:
    """Test suite for fee specifications."""

    def test_fixed_bump(self) -> None:
        """Test a 15% bump on a fixed gas price."""
        fee = FixedGasPrice(1000 * _ONE_GWEI).bumped(Decimal(15))
        assert fee.gas_price_wei == 1150 * _ONE_GWEI

    def test_bump_always_increases(self) -> None:
        """Test a bump on a tiny value still raises it."""
        assert FixedGasPrice(1).bumped(Decimal(1)).gas_price_wei == 2  # noqa: PLR2004
        assert FixedGasPrice(10).bumped(Decimal(0)).gas_price_wei == 11  # noqa: PLR2004

    def test_dynamic_bump(self) -> None:
        """Test both the cap and the tip are bumped."""
        fee = DynamicFee(100 * _ONE_GWEI, 2 * _ONE_GWEI).bumped(Decimal(10))
        assert fee.max_fee_per_gas_wei == 110 * _ONE_GWEI
        assert fee.max_priority_fee_per_gas_wei == 2_200_000_000  # noqa: PLR2004

    def test_dynamic_tip_above_cap_raises(self) -> None:
        """Test an inconsistent EIP-1559 fee is rejected."""
        with pytest.raises(ValueError, match="priority fee"):
            DynamicFee(max_fee_per_gas_wei=1, max_priority_fee_per_gas_wei=2)

    def test_str_in_gwei(self) -> None:
        """Test fee rendering for logs."""
        assert str(FixedGasPrice(1000 * _ONE_GWEI)) == "gasPrice=1000 gwei"


class TestContractCall:
    """Test suite for ContractCall."""

    def test_str_without_args(self) -> None:
        """Test rendering a call without arguments."""
        assert str(ContractCall("executeRound")) == "executeRound()"

    def test_str_with_args(self) -> None:
        """Test rendering a call with arguments."""
        assert str(ContractCall("updatePrice", (123,))) == "updatePrice(123)"


class TestConfirmedReceipt:
    """Test suite for ConfirmedReceipt."""

    def test_status_one_succeeded(self) -> None:
        """Test status 1 means success and 0 means reverted."""
        assert ConfirmedReceipt("0x1", 10, 21000, 1).succeeded
        assert not ConfirmedReceipt("0x1", 10, 21000, 0).succeeded
