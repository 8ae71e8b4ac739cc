"""CLI command for running the round keeper.

Load settings, connect to the RPC endpoint, check the operator wallet,
and run the scheduler until interrupted.
"""

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from round_keeper.apps.cli._helpers import configure_logging, fail, load_config
from round_keeper.apps.keeper.scheduler import RoundKeeper
from round_keeper.apps.keeper.settings import KeeperSettings, load_keeper_settings
from round_keeper.apps.keeper.submitter import TxSubmitter
from round_keeper.clients.chain import (
    ChainError,
    ContractTransactionSender,
    OracleContractClient,
    PredictionContractClient,
    connect,
)
from round_keeper.core.config import ConfigError


def build_keeper(settings: KeeperSettings) -> RoundKeeper:
    """Connect to the chain and wire a ``RoundKeeper`` from ``settings``.

    Raises:
        ChainError: If the RPC endpoint is unreachable.
        ValueError: If the operator key or an address is malformed.

    """
    w3 = connect(settings.chain.rpc_url, timeout=settings.chain.request_timeout_seconds)
    reader = PredictionContractClient(w3, settings.prediction_address)
    sender = ContractTransactionSender.for_prediction(
        w3,
        settings.prediction_address,
        settings.operator_key,
        receipt_timeout=settings.chain.receipt_timeout_seconds,
    )
    oracle = (
        OracleContractClient(w3, settings.oracle_address) if settings.oracle_address else None
    )
    submitter = TxSubmitter(sender, settings.submitter, label="keeper")
    return RoundKeeper(
        reader,
        submitter,
        settings.keeper,
        oracle=oracle,
        signer_address=sender.signer_address,
    )


def keeper(
    config_dir: Annotated[
        Path | None, typer.Option(help="Directory containing settings.yaml")
    ] = None,
    max_ticks: Annotated[
        int | None, typer.Option(help="Stop after this many ticks (default: run forever)")
    ] = None,
    verbose: Annotated[  # noqa: FBT002
        bool, typer.Option("--verbose", "-v", help="Enable debug logging")
    ] = False,
) -> None:
    """Run the prediction round keeper.

    Bootstrap genesis if needed, then execute each round inside its
    window. Stop with Ctrl+C; an in-flight transaction is allowed to
    finish first.
    """
    configure_logging(verbose=verbose)

    try:
        settings = load_keeper_settings(load_config(config_dir))
    except ConfigError as exc:
        fail(str(exc))

    try:
        round_keeper = build_keeper(settings)
    except (ChainError, ValueError) as exc:
        fail(f"could not start keeper: {exc}")

    config = settings.keeper
    typer.echo("Round keeper")
    typer.echo(f"  Prediction: {settings.prediction_address}")
    typer.echo(f"  Operator:   {round_keeper.signer_address}")
    typer.echo(
        f"  Window:     {config.window_anchor.value} + [{config.safe_delay_seconds}s, "
        f"{config.buffer_seconds}s], price={config.price_condition.value}, "
        f"call={config.round_call.value}"
    )
    typer.echo(f"  Interval:   {config.poll_interval_seconds:.1f}s, scan={config.scan_mode.value}")
    typer.echo(f"  Fee:        {settings.submitter.fee}, gas_limit={settings.submitter.gas_limit}")

    asyncio.run(round_keeper.run(max_ticks=max_ticks))
