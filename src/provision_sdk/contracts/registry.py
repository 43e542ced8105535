"""Provisioning registry: authorization and bookkeeping for account creation.

The registry decides *who* may provision and *what* has been provisioned; the
bound ``AccountDeployer`` performs the raw deterministic creation. Each
creator's primary account lives at issuance index 0.
"""

from __future__ import annotations

import logging

from provision_sdk.contracts.base import LedgerContract
from provision_sdk.contracts.deployer import AccountDeployer
from provision_sdk.crypto.create2 import compute_salt
from provision_sdk.errors import (
    AddressDerivationMismatchError,
    LimitExceededError,
    NotAuthorizedError,
)
from provision_sdk.identity import ZERO_ADDRESS, same_identity, to_identity
from provision_sdk.ledger import LedgerProtocol
from provision_sdk.reconcile import Observation, ProvisioningState, ReconcileOutcome, classify
from provision_sdk.schemas import ProvisioningRecord

LOGGER = logging.getLogger("provision_sdk.registry")

DEFAULT_ACCOUNT_LIMIT = 100
ACCOUNT_PROVISIONED_EVENT = "AccountProvisioned"
AUTHORIZED_CALLER_UPDATED_EVENT = "AuthorizedCallerUpdated"
ACCOUNT_LIMIT_UPDATED_EVENT = "AccountLimitUpdated"


class ProvisioningRegistry(LedgerContract):
    RUNTIME_CODE = b"provision_sdk:ProvisioningRegistry"

    def __init__(self, ledger: LedgerProtocol, address: str, deployer: AccountDeployer) -> None:
        super().__init__(ledger, address)
        self.deployer = deployer

    @classmethod
    def create(
        cls,
        ledger: LedgerProtocol,
        address: str,
        *,
        admin: str,
        deployer: AccountDeployer,
        account_init_code: bytes,
        account_limit: int = DEFAULT_ACCOUNT_LIMIT,
    ) -> "ProvisioningRegistry":
        if not account_init_code:
            raise ValueError("account_init_code must not be empty")
        if account_limit < 0:
            raise ValueError("account_limit must be >= 0")
        registry = cls(ledger, address, deployer)
        with ledger.transaction():
            ledger.install_code(registry.address, cls.RUNTIME_CODE)
            registry._store(("owner",), to_identity(admin))
            registry._store(("deployer",), deployer.address)
            registry._store(("init_code",), bytes(account_init_code))
            registry._store(("account_limit",), int(account_limit))
        return registry

    # -- read-only views -------------------------------------------------

    @property
    def account_limit(self) -> int:
        return self._load(("account_limit",), 0)

    @property
    def account_init_code(self) -> bytes:
        return self._load(("init_code",), b"")

    def next_index_of(self, creator: str) -> int:
        return self._load(("next_index", to_identity(creator)), 0)

    def predict_address(self, creator: str, index: int) -> str:
        return self.deployer.predict(compute_salt(creator, index), self.account_init_code)

    def record_of(self, creator: str) -> ProvisioningRecord | None:
        return self._load(("record", to_identity(creator)))

    def primary_of(self, creator: str) -> str:
        record = self.record_of(creator)
        return record.primary_address if record is not None else ZERO_ADDRESS

    def is_provisioned(self, address: str) -> bool:
        return bool(self._load(("registered", to_identity(address)), False))

    def is_authorized_caller(self, identity: str) -> bool:
        return bool(self._load(("authorized", to_identity(identity)), False))

    # -- admin -----------------------------------------------------------

    def set_authorized_caller(self, identity: str, enabled: bool, *, caller: str) -> None:
        target = to_identity(identity)
        with self.ledger.transaction():
            self._require_owner(caller)
            if self.is_authorized_caller(target) == bool(enabled):
                return
            self._store(("authorized", target), bool(enabled))
            self._emit(AUTHORIZED_CALLER_UPDATED_EVENT, identity=target, enabled=bool(enabled))
        LOGGER.info("registry %s authorized caller %s enabled=%s", self.address, target, enabled)

    def set_account_limit(self, limit: int, *, caller: str) -> None:
        if limit < 0:
            raise ValueError("account_limit must be >= 0")
        with self.ledger.transaction():
            self._require_owner(caller)
            self._store(("account_limit",), int(limit))
            self._emit(ACCOUNT_LIMIT_UPDATED_EVENT, limit=int(limit))

    # -- provisioning ----------------------------------------------------

    def provision_self(self, *, caller: str) -> str:
        return self._provision(to_identity(caller)).address

    def provision_for(self, creator: str, *, caller: str) -> str:
        with self.ledger.transaction():
            if not self.is_authorized_caller(caller):
                raise NotAuthorizedError(f"{caller} may not provision on behalf of others")
            return self._provision(to_identity(creator)).address

    def _observe(self, creator: str) -> Observation:
        index = self.next_index_of(creator)
        primary = self.primary_of(creator)
        if primary != ZERO_ADDRESS and self.is_provisioned(primary):
            return Observation(
                creator=creator,
                index=index,
                predicted=primary,
                code_present=self.ledger.get_code(primary) != b"",
                registered=True,
            )
        predicted = self.predict_address(creator, index)
        return Observation(
            creator=creator,
            index=index,
            predicted=predicted,
            code_present=self.ledger.get_code(predicted) != b"",
            registered=self.is_provisioned(predicted),
        )

    def _provision(self, creator: str) -> ReconcileOutcome:
        with self.ledger.transaction():
            # Re-read at execution time; never trust an earlier observation.
            observation = self._observe(creator)
            state = classify(observation)
            if state is not ProvisioningState.REGISTERED and observation.index >= self.account_limit:
                raise LimitExceededError(
                    f"creator {creator} reached account limit {self.account_limit}"
                )
            LOGGER.info(
                "reconcile creator=%s index=%s predicted=%s state=%s",
                creator,
                observation.index,
                observation.predicted,
                state.value,
            )

            if state is ProvisioningState.REGISTERED:
                return ReconcileOutcome(
                    address=observation.predicted,
                    index=observation.index,
                    initial_state=state,
                    deployed=False,
                    registered=False,
                )

            deployed = False
            if state is ProvisioningState.ABSENT:
                salt = compute_salt(creator, observation.index)
                actual = self.deployer.deploy(salt, self.account_init_code, caller=self.address)
                if not same_identity(actual, observation.predicted):
                    raise AddressDerivationMismatchError(
                        f"deployer created {actual} but {observation.predicted} was predicted",
                        predicted=observation.predicted,
                        actual=actual,
                    )
                deployed = True

            self._register(creator, observation.predicted, observation.index, deployed=deployed)
            return ReconcileOutcome(
                address=observation.predicted,
                index=observation.index,
                initial_state=state,
                deployed=deployed,
                registered=True,
            )

    def _register(self, creator: str, account: str, index: int, *, deployed: bool) -> None:
        if self.record_of(creator) is None:
            self._store(
                ("record", creator),
                ProvisioningRecord(creator=creator, primary_address=account, is_registered=True),
            )
        self._store(("registered", account), True)
        self._store(("next_index", creator), index + 1)
        self._emit(
            ACCOUNT_PROVISIONED_EVENT,
            creator=creator,
            account=account,
            index=index,
            deployed=deployed,
        )
