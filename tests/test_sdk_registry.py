from __future__ import annotations

import threading

import pytest

from provision_sdk.contracts.deployer import AccountDeployer
from provision_sdk.contracts.registry import ProvisioningRegistry
from provision_sdk.crypto.create2 import build_init_code, compute_salt
from provision_sdk.errors import (
    AddressDerivationMismatchError,
    LimitExceededError,
    NotAuthorizedError,
)
from provision_sdk.identity import ZERO_ADDRESS, to_identity
from provision_sdk.ledger import InMemoryLedger
from provision_sdk.reconcile import Observation, ProvisioningState, classify

ADMIN = to_identity("0x" + "a1" * 20)
PAYMASTER = to_identity("0x" + "a2" * 20)
CREATOR = to_identity("0x" + "c1" * 20)
OTHER_CREATOR = to_identity("0x" + "c2" * 20)
STRANGER = to_identity("0x" + "e1" * 20)
DEPLOYER = to_identity("0x" + "d0" * 20)
REGISTRY = to_identity("0x" + "f0" * 20)
ENTRY_POINT = "0x0000000071727De22E5E9d8BAf0edAc6f37da032"
INIT_CODE = build_init_code(b"\x60\x80\x60\x40\x52\x34\x80\x15", ["address"], [ENTRY_POINT])


def _system(*, account_limit: int = 100) -> tuple[InMemoryLedger, AccountDeployer, ProvisioningRegistry]:
    ledger = InMemoryLedger()
    deployer = AccountDeployer.create(ledger, DEPLOYER, owner=ADMIN)
    registry = ProvisioningRegistry.create(
        ledger,
        REGISTRY,
        admin=ADMIN,
        deployer=deployer,
        account_init_code=INIT_CODE,
        account_limit=account_limit,
    )
    deployer.bind(registry.address, caller=ADMIN)
    registry.set_authorized_caller(PAYMASTER, True, caller=ADMIN)
    return ledger, deployer, registry


def test_provision_for_deploys_and_registers_primary() -> None:
    ledger, _, registry = _system()
    predicted = registry.predict_address(CREATOR, 0)
    assert registry.next_index_of(CREATOR) == 0
    assert ledger.get_code(predicted) == b""

    account = registry.provision_for(CREATOR, caller=PAYMASTER)

    assert account == predicted
    assert registry.next_index_of(CREATOR) == 1
    assert registry.is_provisioned(account) is True
    assert registry.primary_of(CREATOR) == account
    assert ledger.get_code(account) == INIT_CODE
    record = registry.record_of(CREATOR)
    assert record is not None
    assert record.primary_address == account
    assert record.is_registered is True

    events = ledger.events("AccountProvisioned")
    assert len(events) == 1
    assert events[0].args == {"creator": CREATOR, "account": account, "index": 0, "deployed": True}


def test_second_provision_returns_same_address_without_redeploy() -> None:
    ledger, _, registry = _system()
    first = registry.provision_for(CREATOR, caller=PAYMASTER)
    second = registry.provision_for(CREATOR, caller=PAYMASTER)

    assert first == second
    assert registry.next_index_of(CREATOR) == 1
    assert len(ledger.events("ContractCreated")) == 1
    assert len(ledger.events("AccountProvisioned")) == 1


def test_existing_unregistered_contract_is_registered_without_creation() -> None:
    ledger, deployer, registry = _system()
    # Deployed out of band at the address (CREATOR, 0) will resolve to.
    out_of_band = ledger.create2(deployer.address, compute_salt(CREATOR, 0), INIT_CODE)
    assert registry.is_provisioned(out_of_band) is False
    assert len(ledger.events("ContractCreated")) == 1

    account = registry.provision_for(CREATOR, caller=PAYMASTER)

    assert account == out_of_band
    assert registry.primary_of(CREATOR) == out_of_band
    assert registry.is_provisioned(out_of_band) is True
    assert registry.next_index_of(CREATOR) == 1
    assert len(ledger.events("ContractCreated")) == 1
    assert ledger.events("AccountProvisioned")[0].args["deployed"] is False


def test_provision_self_needs_no_authorization() -> None:
    _, _, registry = _system()
    account = registry.provision_self(caller=STRANGER)
    assert account == registry.predict_address(STRANGER, 0)
    assert registry.primary_of(STRANGER) == account


def test_provision_for_requires_authorized_caller() -> None:
    ledger, _, registry = _system()
    with pytest.raises(NotAuthorizedError):
        registry.provision_for(CREATOR, caller=STRANGER)
    with pytest.raises(NotAuthorizedError):
        registry.provision_for(CREATOR, caller=CREATOR)
    assert registry.next_index_of(CREATOR) == 0
    assert ledger.events("ContractCreated") == []


def test_limit_exceeded_leaves_state_unchanged() -> None:
    ledger, _, registry = _system(account_limit=1)
    registry.provision_for(CREATOR, caller=PAYMASTER)
    registry.set_account_limit(0, caller=ADMIN)
    events_before = ledger.events()

    with pytest.raises(LimitExceededError):
        registry.provision_for(OTHER_CREATOR, caller=PAYMASTER)

    assert registry.next_index_of(OTHER_CREATOR) == 0
    assert registry.primary_of(OTHER_CREATOR) == ZERO_ADDRESS
    assert ledger.get_code(registry.predict_address(OTHER_CREATOR, 0)) == b""
    assert ledger.events() == events_before


def test_retry_at_limit_returns_existing_primary() -> None:
    ledger, _, registry = _system(account_limit=1)
    first = registry.provision_for(CREATOR, caller=PAYMASTER)
    assert registry.next_index_of(CREATOR) == registry.account_limit

    assert registry.provision_for(CREATOR, caller=PAYMASTER) == first
    assert registry.provision_self(caller=CREATOR) == first
    assert registry.next_index_of(CREATOR) == 1
    assert len(ledger.events("AccountProvisioned")) == 1


def test_retry_after_limit_is_lowered_returns_existing_primary() -> None:
    ledger, _, registry = _system()
    first = registry.provision_for(CREATOR, caller=PAYMASTER)
    registry.set_account_limit(0, caller=ADMIN)

    assert registry.provision_for(CREATOR, caller=PAYMASTER) == first
    assert len(ledger.events("ContractCreated")) == 1
    with pytest.raises(LimitExceededError):
        registry.provision_for(OTHER_CREATOR, caller=PAYMASTER)


def test_zero_limit_blocks_first_provision() -> None:
    ledger, _, registry = _system(account_limit=0)
    with pytest.raises(LimitExceededError):
        registry.provision_for(CREATOR, caller=PAYMASTER)
    assert registry.primary_of(CREATOR) == ZERO_ADDRESS
    assert ledger.get_code(registry.predict_address(CREATOR, 0)) == b""


def test_index_advances_by_one_per_creator() -> None:
    _, _, registry = _system()
    registry.provision_for(CREATOR, caller=PAYMASTER)
    assert registry.next_index_of(CREATOR) == 1
    assert registry.next_index_of(OTHER_CREATOR) == 0
    registry.provision_for(OTHER_CREATOR, caller=PAYMASTER)
    registry.provision_for(CREATOR, caller=PAYMASTER)
    assert registry.next_index_of(CREATOR) == 1
    assert registry.next_index_of(OTHER_CREATOR) == 1
    assert registry.primary_of(CREATOR) != registry.primary_of(OTHER_CREATOR)


def test_address_derivation_mismatch_aborts_and_rolls_back(monkeypatch) -> None:
    ledger, deployer, registry = _system()
    real_address = registry.predict_address(CREATOR, 0)
    bogus = to_identity("0x" + "99" * 20)
    monkeypatch.setattr(registry, "predict_address", lambda creator, index: bogus)

    with pytest.raises(AddressDerivationMismatchError) as excinfo:
        registry.provision_for(CREATOR, caller=PAYMASTER)

    assert excinfo.value.predicted == bogus
    assert excinfo.value.actual == real_address
    assert ledger.get_code(real_address) == b""
    assert ledger.events("ContractCreated") == []
    assert registry.next_index_of(CREATOR) == 0
    assert registry.is_provisioned(bogus) is False
    assert deployer.bound_registry == registry.address


def test_set_authorized_caller_is_idempotent_and_admin_gated() -> None:
    ledger, _, registry = _system()
    updates_before = len(ledger.events("AuthorizedCallerUpdated"))
    registry.set_authorized_caller(PAYMASTER, True, caller=ADMIN)
    assert len(ledger.events("AuthorizedCallerUpdated")) == updates_before
    assert registry.is_authorized_caller(PAYMASTER) is True

    with pytest.raises(NotAuthorizedError):
        registry.set_authorized_caller(STRANGER, True, caller=PAYMASTER)

    registry.set_authorized_caller(PAYMASTER, False, caller=ADMIN)
    assert registry.is_authorized_caller(PAYMASTER) is False
    with pytest.raises(NotAuthorizedError):
        registry.provision_for(CREATOR, caller=PAYMASTER)


def test_set_account_limit_is_admin_gated() -> None:
    _, _, registry = _system(account_limit=0)
    with pytest.raises(NotAuthorizedError):
        registry.set_account_limit(5, caller=PAYMASTER)
    registry.set_account_limit(5, caller=ADMIN)
    assert registry.account_limit == 5
    assert registry.provision_for(CREATOR, caller=PAYMASTER) == registry.predict_address(CREATOR, 0)


def test_concurrent_provisioning_for_same_creator_deploys_once() -> None:
    ledger, _, registry = _system()
    results: list[str] = []
    errors: list[BaseException] = []

    def worker() -> None:
        try:
            results.append(registry.provision_for(CREATOR, caller=PAYMASTER))
        except BaseException as exc:  # pragma: no cover
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert len(set(results)) == 1
    assert len(ledger.events("ContractCreated")) == 1
    assert registry.next_index_of(CREATOR) == 1


def test_predict_address_is_stable_before_and_after_deployment() -> None:
    _, _, registry = _system()
    before = registry.predict_address(CREATOR, 0)
    registry.provision_for(CREATOR, caller=PAYMASTER)
    after = registry.predict_address(CREATOR, 0)
    assert before == after


def test_classify_covers_every_observation() -> None:
    def observe(code_present: bool, registered: bool) -> Observation:
        return Observation(
            creator=CREATOR,
            index=0,
            predicted=ZERO_ADDRESS,
            code_present=code_present,
            registered=registered,
        )

    assert classify(observe(False, False)) is ProvisioningState.ABSENT
    assert classify(observe(True, False)) is ProvisioningState.DEPLOYED_UNREGISTERED
    assert classify(observe(True, True)) is ProvisioningState.REGISTERED
    assert classify(observe(False, True)) is ProvisioningState.REGISTERED
