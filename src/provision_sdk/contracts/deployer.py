"""Deterministic account deployer bound once to its provisioning registry."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from provision_sdk.contracts.base import LedgerContract
from provision_sdk.crypto.create2 import compute_salt, predict_address_for_code
from provision_sdk.errors import AlreadyBoundError, NotAuthorizedError
from provision_sdk.identity import same_identity, to_identity
from provision_sdk.ledger import LedgerProtocol

LOGGER = logging.getLogger("provision_sdk.deployer")

REGISTRY_BOUND_EVENT = "RegistryBound"


@dataclass(frozen=True)
class Unbound:
    pass


@dataclass(frozen=True)
class Bound:
    registry: str


Binding = Union[Unbound, Bound]


def bind_transition(current: Binding, registry: str) -> Binding:
    """One-way latch: Unbound -> Bound; rebinding to the same registry is a no-op."""
    target = to_identity(registry)
    if isinstance(current, Unbound):
        return Bound(registry=target)
    if same_identity(current.registry, target):
        return current
    raise AlreadyBoundError(f"deployer already bound to {current.registry}, refusing {target}")


class AccountDeployer(LedgerContract):
    RUNTIME_CODE = b"provision_sdk:AccountDeployer"

    @classmethod
    def create(cls, ledger: LedgerProtocol, address: str, *, owner: str) -> "AccountDeployer":
        deployer = cls(ledger, address)
        with ledger.transaction():
            ledger.install_code(deployer.address, cls.RUNTIME_CODE)
            deployer._store(("owner",), to_identity(owner))
            deployer._store(("binding",), Unbound())
        return deployer

    @property
    def binding(self) -> Binding:
        return self._load(("binding",), Unbound())

    @property
    def bound_registry(self) -> str | None:
        binding = self.binding
        return binding.registry if isinstance(binding, Bound) else None

    def bind(self, registry: str, *, caller: str) -> str:
        with self.ledger.transaction():
            self._require_owner(caller)
            current = self.binding
            updated = bind_transition(current, registry)
            if updated != current:
                self._store(("binding",), updated)
                self._emit(REGISTRY_BOUND_EVENT, registry=updated.registry)
                LOGGER.info("deployer %s bound to registry %s", self.address, updated.registry)
        return updated.registry

    def compute_salt(self, creator: str, index: int) -> bytes:
        return compute_salt(creator, index)

    def predict(self, salt: bytes, init_code: bytes) -> str:
        # Always derived from this deployer's own address.
        return predict_address_for_code(self.address, salt, init_code)

    def deploy(self, salt: bytes, init_code: bytes, *, caller: str) -> str:
        with self.ledger.transaction():
            registry = self.bound_registry
            if registry is None or not same_identity(caller, registry):
                raise NotAuthorizedError(f"{caller} may not deploy through {self.address}")
            address = self.ledger.create2(self.address, salt, init_code)
        LOGGER.info("deployer %s created %s", self.address, address)
        return address
