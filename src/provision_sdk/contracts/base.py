"""Shared plumbing for ledger-resident contracts."""

from __future__ import annotations

from typing import Any, Hashable

from provision_sdk.errors import NotAuthorizedError
from provision_sdk.identity import same_identity, to_identity
from provision_sdk.ledger import LedgerProtocol
from provision_sdk.schemas import LedgerEvent


class LedgerContract:
    """A view over one contract address; all state lives in the ledger."""

    RUNTIME_CODE = b""

    def __init__(self, ledger: LedgerProtocol, address: str) -> None:
        self.ledger = ledger
        self.address = to_identity(address)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(address={self.address})"

    def _load(self, key: Hashable, default: Any = None) -> Any:
        return self.ledger.sload(self.address, key, default)

    def _store(self, key: Hashable, value: Any) -> None:
        self.ledger.sstore(self.address, key, value)

    def _emit(self, name: str, **args: Any) -> LedgerEvent:
        return self.ledger.emit(self.address, name, **args)

    @property
    def owner(self) -> str:
        return self._load(("owner",))

    def _require_owner(self, caller: str) -> None:
        if not same_identity(caller, self.owner):
            raise NotAuthorizedError(f"{caller} is not the owner of {self.address}")
