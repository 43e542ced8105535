"""Provisioning reconciliation state machine.

Each (creator, index) pair moves ABSENT -> DEPLOYED_UNREGISTERED -> REGISTERED.
REGISTERED is terminal. The registry observes fresh ledger state inside its
transaction, classifies it here, and performs exactly the transitions needed
to reach REGISTERED.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ProvisioningState(str, Enum):
    ABSENT = "absent"
    DEPLOYED_UNREGISTERED = "deployed_unregistered"
    REGISTERED = "registered"


@dataclass(frozen=True)
class Observation:
    creator: str
    index: int
    predicted: str
    code_present: bool
    registered: bool


@dataclass(frozen=True)
class ReconcileOutcome:
    address: str
    index: int
    initial_state: ProvisioningState
    deployed: bool
    registered: bool


def classify(observation: Observation) -> ProvisioningState:
    if observation.registered:
        return ProvisioningState.REGISTERED
    if observation.code_present:
        return ProvisioningState.DEPLOYED_UNREGISTERED
    return ProvisioningState.ABSENT
