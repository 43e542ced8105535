"""Single-writer in-process ledger.

Holds contract code, contract storage and the event log. Every mutation runs
inside ``transaction()``: a re-entrant lock orders writers globally. Writes made
inside a frame are journaled with their previous value, and an exception
unwinds the journal back to the frame mark, matching a reverted call on chain.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from typing import Any, ContextManager, Hashable, Iterator, Protocol

from provision_sdk.crypto.create2 import init_code_hash, predict_address
from provision_sdk.errors import DeploymentCollisionError
from provision_sdk.identity import to_identity
from provision_sdk.schemas import LedgerEvent

LOGGER = logging.getLogger("provision_sdk.ledger")

CONTRACT_CREATED_EVENT = "ContractCreated"

_MISSING = object()


class LedgerProtocol(Protocol):
    def get_code(self, address: str) -> bytes: ...

    def install_code(self, address: str, code: bytes) -> str: ...

    def create2(self, deployer: str, salt: bytes, init_code: bytes) -> str: ...

    def sload(self, contract: str, key: Hashable, default: Any = None) -> Any: ...

    def sstore(self, contract: str, key: Hashable, value: Any) -> None: ...

    def emit(self, emitter: str, name: str, **args: Any) -> LedgerEvent: ...

    def transaction(self) -> ContextManager[None]: ...


class InMemoryLedger:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._code: dict[str, bytes] = {}
        self._storage: dict[tuple[str, Hashable], Any] = {}
        self._events: list[LedgerEvent] = []
        self._journal: list[tuple[dict[Any, Any], Hashable, Any]] = []
        self._depth = 0

    @contextlib.contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            mark = len(self._journal)
            event_count = len(self._events)
            self._depth += 1
            try:
                yield
            except BaseException:
                self._undo(mark)
                del self._events[event_count:]
                LOGGER.debug("transaction reverted; restored %s events", event_count)
                raise
            finally:
                self._depth -= 1
                if self._depth == 0:
                    self._journal.clear()

    def _undo(self, mark: int) -> None:
        while len(self._journal) > mark:
            table, key, previous = self._journal.pop()
            if previous is _MISSING:
                table.pop(key, None)
            else:
                table[key] = previous

    def _write(self, table: dict[Any, Any], key: Hashable, value: Any) -> None:
        if self._depth:
            self._journal.append((table, key, table.get(key, _MISSING)))
        table[key] = value

    def get_code(self, address: str) -> bytes:
        with self._lock:
            return self._code.get(to_identity(address), b"")

    def has_code(self, address: str) -> bool:
        return bool(self.get_code(address))

    def install_code(self, address: str, code: bytes) -> str:
        """Place code at a fixed address, as a genesis allocation would."""
        if not code:
            raise ValueError("code must not be empty")
        target = to_identity(address)
        with self._lock:
            if target in self._code:
                raise DeploymentCollisionError(f"address already holds code: {target}")
            self._write(self._code, target, bytes(code))
        return target

    def create2(self, deployer: str, salt: bytes, init_code: bytes) -> str:
        if not init_code:
            raise ValueError("init_code must not be empty")
        target = predict_address(deployer, salt, init_code_hash(init_code))
        with self.transaction():
            existing = self._code.get(target)
            if existing is not None:
                detail = "same init code" if existing == bytes(init_code) else "different code"
                raise DeploymentCollisionError(
                    f"create2 target {target} already occupied ({detail})"
                )
            self._write(self._code, target, bytes(init_code))
            self.emit(
                to_identity(deployer),
                CONTRACT_CREATED_EVENT,
                address=target,
                salt="0x" + bytes(salt).hex(),
            )
        LOGGER.debug("create2 deployer=%s address=%s", deployer, target)
        return target

    def sload(self, contract: str, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            return self._storage.get((to_identity(contract), key), default)

    def sstore(self, contract: str, key: Hashable, value: Any) -> None:
        slot = (to_identity(contract), key)
        with self._lock:
            self._write(self._storage, slot, value)

    def emit(self, emitter: str, name: str, **args: Any) -> LedgerEvent:
        with self._lock:
            event = LedgerEvent(
                emitter=to_identity(emitter),
                name=name,
                args=args,
                sequence=len(self._events),
            )
            self._events.append(event)
        return event

    def events(self, name: str | None = None, *, emitter: str | None = None) -> list[LedgerEvent]:
        with self._lock:
            selected = list(self._events)
        if name is not None:
            selected = [item for item in selected if item.name == name]
        if emitter is not None:
            target = to_identity(emitter)
            selected = [item for item in selected if item.emitter == target]
        return selected
