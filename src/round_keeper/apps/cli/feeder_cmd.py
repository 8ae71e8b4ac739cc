"""CLI command for running the oracle price feeder."""

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from round_keeper.apps.cli._helpers import configure_logging, fail, load_config
from round_keeper.apps.keeper.submitter import TxSubmitter
from round_keeper.apps.oracle_feeder.feeder import PriceFeeder
from round_keeper.apps.oracle_feeder.settings import FeederSettings, load_feeder_settings
from round_keeper.clients.binance import BinanceClient
from round_keeper.clients.chain import (
    ChainError,
    ContractTransactionSender,
    OracleContractClient,
    PredictionContractClient,
    connect,
)
from round_keeper.core.config import ConfigError


async def _run_feeder(
    settings: FeederSettings,
    sender: ContractTransactionSender,
    w3: object,
    max_ticks: int | None,
) -> None:
    """Run the feeder with a Binance client scoped to the event loop."""
    oracle = OracleContractClient(w3, settings.oracle_address)
    prediction = (
        PredictionContractClient(w3, settings.prediction_address)
        if settings.prediction_address
        else None
    )
    submitter = TxSubmitter(sender, settings.submitter, label="feeder")
    async with BinanceClient(base_url=settings.price_api_url) as source:
        feeder = PriceFeeder(
            source,
            submitter,
            settings.feeder,
            oracle=oracle,
            prediction=prediction,
        )
        await feeder.run(max_ticks=max_ticks)


def feeder(
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
    """Run the oracle price feeder.

    Fetch the spot price on a fixed interval and push it to the oracle
    contract. Stop with Ctrl+C.
    """
    configure_logging(verbose=verbose)

    try:
        settings = load_feeder_settings(load_config(config_dir))
    except ConfigError as exc:
        fail(str(exc))

    try:
        w3 = connect(settings.chain.rpc_url, timeout=settings.chain.request_timeout_seconds)
        sender = ContractTransactionSender.for_oracle(
            w3,
            settings.oracle_address,
            settings.private_key,
            receipt_timeout=settings.chain.receipt_timeout_seconds,
        )
    except (ChainError, ValueError) as exc:
        fail(f"could not start feeder: {exc}")

    config = settings.feeder
    typer.echo("Oracle feeder")
    typer.echo(f"  Oracle:   {settings.oracle_address}")
    typer.echo(f"  Signer:   {sender.signer_address}")
    typer.echo(f"  Price:    {config.asset} ({config.symbol}) from {settings.price_api_url}")
    typer.echo(f"  Interval: {config.interval_seconds:.1f}s, decimals={config.price_decimals}")
    if config.window_gated:
        typer.echo(f"  Gated:    {config.push_lead_seconds}s before lock")

    asyncio.run(_run_feeder(settings, sender, w3, max_ticks))
