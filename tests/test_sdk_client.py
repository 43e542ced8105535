from __future__ import annotations

import types

import pytest

from provision_sdk.client import LedgerClient
from provision_sdk.crypto.create2 import compute_salt, predict_address_for_code
from provision_sdk.errors import (
    AddressDerivationMismatchError,
    LedgerUnavailableError,
    SDKTimeoutError,
)
from provision_sdk.identity import to_identity

ACCOUNT = to_identity("0x" + "c1" * 20)
DEPLOYER = to_identity("0x" + "d0" * 20)
FACTORY = to_identity("0x" + "f0" * 20)
INIT_CODE = b"\x60\x80\x60\x40"


def _fake_web3(get_code) -> types.SimpleNamespace:
    return types.SimpleNamespace(eth=types.SimpleNamespace(get_code=get_code))


def test_client_requires_rpc_url(monkeypatch) -> None:
    monkeypatch.delenv("PROVISION_RPC_URL", raising=False)
    with pytest.raises(LedgerUnavailableError):
        LedgerClient()


def test_client_reads_rpc_url_from_env(monkeypatch) -> None:
    monkeypatch.setenv("PROVISION_RPC_URL", " http://localhost:8545 ")
    client = LedgerClient()
    assert client.rpc_url == "http://localhost:8545"


def test_get_code_and_is_deployed(monkeypatch) -> None:
    client = LedgerClient(rpc_url="http://localhost:8545")
    codes = {ACCOUNT: b"\x60\x80"}
    monkeypatch.setattr(client, "_web3", _fake_web3(lambda address: codes.get(address, b"")))

    assert client.get_code(ACCOUNT.lower()) == b"\x60\x80"
    assert client.is_deployed(ACCOUNT) is True
    assert client.is_deployed(DEPLOYER) is False


def test_get_code_wraps_transport_errors(monkeypatch) -> None:
    client = LedgerClient(rpc_url="http://localhost:8545")

    def boom(address):  # noqa: ANN001
        raise ConnectionError("connection refused")

    monkeypatch.setattr(client, "_web3", _fake_web3(boom))
    with pytest.raises(LedgerUnavailableError):
        client.get_code(ACCOUNT)


def test_wait_for_code_success(monkeypatch) -> None:
    client = LedgerClient(rpc_url="http://localhost:8545")
    states = iter([b"", b"", b"\x60\x80"])
    monkeypatch.setattr(client, "get_code", lambda address: next(states))
    assert client.wait_for_code(ACCOUNT, timeout=2, interval=0.01) == b"\x60\x80"


def test_wait_for_code_timeout(monkeypatch) -> None:
    client = LedgerClient(rpc_url="http://localhost:8545")
    monkeypatch.setattr(client, "get_code", lambda address: b"")
    with pytest.raises(SDKTimeoutError):
        client.wait_for_code(ACCOUNT, timeout=0.05, interval=0.01)


def test_check_prediction_agrees_with_factory(monkeypatch) -> None:
    client = LedgerClient(rpc_url="http://localhost:8545")
    expected = predict_address_for_code(DEPLOYER, compute_salt(ACCOUNT, 0), INIT_CODE)
    monkeypatch.setattr(client, "factory_address_of", lambda factory, creator, index: expected)

    result = client.check_prediction(
        factory=FACTORY,
        deployer=DEPLOYER,
        creator=ACCOUNT,
        index=0,
        init_code=INIT_CODE,
    )
    assert result == expected


def test_check_prediction_raises_on_divergence(monkeypatch) -> None:
    client = LedgerClient(rpc_url="http://localhost:8545")
    # A factory that answers with the caller's own address instead of CREATE2 algebra.
    monkeypatch.setattr(client, "factory_address_of", lambda factory, creator, index: DEPLOYER)

    with pytest.raises(AddressDerivationMismatchError) as excinfo:
        client.check_prediction(
            factory=FACTORY,
            deployer=DEPLOYER,
            creator=ACCOUNT,
            index=0,
            init_code=INIT_CODE,
        )
    assert excinfo.value.actual == DEPLOYER
