"""Read-only ledger client over JSON-RPC."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass

from provision_sdk.crypto.create2 import compute_salt, predict_address_for_code
from provision_sdk.errors import (
    AddressDerivationMismatchError,
    LedgerUnavailableError,
    SDKTimeoutError,
)
from provision_sdk.identity import same_identity, to_identity

RPC_URL_ENV_VAR = "PROVISION_RPC_URL"

FACTORY_GET_ADDRESS_ABI = [
    {
        "type": "function",
        "name": "getAddress",
        "stateMutability": "view",
        "inputs": [
            {"name": "creator", "type": "address"},
            {"name": "index", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "address"}],
    }
]


@dataclass
class LedgerClient:
    rpc_url: str | None = None
    timeout: float = 10.0
    retries: int = 2

    def __post_init__(self) -> None:
        try:
            import requests
            from requests.adapters import HTTPAdapter
            from urllib3.util.retry import Retry
            from web3 import Web3
        except Exception as exc:  # pragma: no cover
            raise LedgerUnavailableError(f"web3 stack unavailable: {exc}") from exc

        if self.rpc_url is None:
            env_rpc_url = os.getenv(RPC_URL_ENV_VAR)
            self.rpc_url = env_rpc_url.strip() or None if env_rpc_url else None
        if not self.rpc_url:
            raise LedgerUnavailableError(f"rpc_url not set; pass it or set {RPC_URL_ENV_VAR}")

        self._session = requests.Session()
        retry = Retry(
            total=max(0, int(self.retries)),
            connect=max(0, int(self.retries)),
            read=max(0, int(self.retries)),
            status=max(0, int(self.retries)),
            status_forcelist=(429, 500, 502, 503, 504),
            backoff_factor=0.2,
            allowed_methods=("POST",),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self._session.mount("http://", adapter)
        self._session.mount("https://", adapter)
        self._web3 = Web3(
            Web3.HTTPProvider(
                self.rpc_url,
                request_kwargs={"timeout": self.timeout},
                session=self._session,
            )
        )

    def get_code(self, address: str) -> bytes:
        try:
            return bytes(self._web3.eth.get_code(to_identity(address)))
        except Exception as exc:
            raise LedgerUnavailableError(f"get_code failed for {address}: {exc}") from exc

    def is_deployed(self, address: str) -> bool:
        return len(self.get_code(address)) > 0

    def wait_for_code(self, address: str, *, timeout: float, interval: float = 2.0) -> bytes:
        deadline = time.time() + timeout
        while time.time() < deadline:
            code = self.get_code(address)
            if code:
                return code
            time.sleep(max(0.1, interval))
        raise SDKTimeoutError(f"timed out waiting for code at {address}")

    def factory_address_of(self, factory: str, creator: str, index: int) -> str:
        contract = self._web3.eth.contract(address=to_identity(factory), abi=FACTORY_GET_ADDRESS_ABI)
        try:
            reported = contract.functions.getAddress(to_identity(creator), int(index)).call()
        except Exception as exc:
            raise LedgerUnavailableError(f"getAddress call failed on {factory}: {exc}") from exc
        return to_identity(reported)

    def check_prediction(
        self,
        *,
        factory: str,
        deployer: str,
        creator: str,
        index: int,
        init_code: bytes,
    ) -> str:
        """Compare the local CREATE2 derivation with the factory's own answer."""
        predicted = predict_address_for_code(deployer, compute_salt(creator, index), init_code)
        reported = self.factory_address_of(factory, creator, index)
        if not same_identity(predicted, reported):
            raise AddressDerivationMismatchError(
                f"factory {factory} reports {reported}, local derivation gives {predicted}",
                predicted=predicted,
                actual=reported,
            )
        return predicted


__all__ = ["LedgerClient", "RPC_URL_ENV_VAR"]
