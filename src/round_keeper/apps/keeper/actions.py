"""Typed contract actions the keeper and feeder can submit.

Each action is a small frozen value object that knows which contract
function it maps to. The submitter only ever sees the resulting
``ContractCall``, so deciding what to do stays separate from building the
transaction.
"""

from dataclasses import dataclass

from round_keeper.apps.keeper.models import DecisionKind, WindowDecision
from round_keeper.clients.chain.models import ContractCall


@dataclass(frozen=True)
class GenesisStartRound:
    """Open the very first round."""

    def to_call(self) -> ContractCall:
        """Return the ``genesisStartRound()`` call."""
        return ContractCall("genesisStartRound")


@dataclass(frozen=True)
class GenesisLockRound:
    """Lock the first round and open the second."""

    def to_call(self) -> ContractCall:
        """Return the ``genesisLockRound()`` call."""
        return ContractCall("genesisLockRound")


@dataclass(frozen=True)
class ExecuteRound:
    """Settle the previous round, lock ``epoch`` and start the next one."""

    epoch: int

    def to_call(self) -> ContractCall:
        """Return the ``executeRound()`` call (the contract infers the epoch)."""
        return ContractCall("executeRound")


@dataclass(frozen=True)
class LockRound:
    """Lock ``epoch`` on deployments with a separate lock call."""

    epoch: int

    def to_call(self) -> ContractCall:
        """Return the ``lockRound()`` call."""
        return ContractCall("lockRound")


@dataclass(frozen=True)
class Unpause:
    """Unpause the contract, which also resets both genesis flags."""

    def to_call(self) -> ContractCall:
        """Return the ``unpause()`` call."""
        return ContractCall("unpause")


@dataclass(frozen=True)
class UpdatePrice:
    """Push a scaled integer price to the oracle."""

    price: int

    def to_call(self) -> ContractCall:
        """Return the ``updatePrice(price)`` call."""
        return ContractCall("updatePrice", (self.price,))


type RoundAction = GenesisStartRound | GenesisLockRound | ExecuteRound | LockRound | Unpause


def action_for(decision: WindowDecision) -> RoundAction:
    """Translate a submitting decision into its contract action.

    Raises:
        ValueError: If the decision does not submit anything.

    """
    match decision.kind:
        case DecisionKind.BOOTSTRAP_START:
            return GenesisStartRound()
        case DecisionKind.BOOTSTRAP_LOCK:
            return GenesisLockRound()
        case DecisionKind.EXECUTE if decision.epoch is not None:
            return ExecuteRound(decision.epoch)
        case DecisionKind.LOCK if decision.epoch is not None:
            return LockRound(decision.epoch)
        case _:
            msg = f"Decision {decision.kind.value} has no contract action"
            raise ValueError(msg)
