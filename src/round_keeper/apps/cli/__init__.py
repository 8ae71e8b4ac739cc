"""CLI subpackage for the round keeper agents.

Create one single-command Typer application per agent.
"""

import typer

from round_keeper.apps.cli.feeder_cmd import feeder
from round_keeper.apps.cli.keeper_cmd import keeper

keeper_app = typer.Typer(help="Prediction round keeper")
keeper_app.command()(keeper)

feeder_app = typer.Typer(help="Oracle price feeder")
feeder_app.command()(feeder)

__all__ = ["feeder_app", "keeper_app"]
