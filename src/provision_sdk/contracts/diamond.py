"""Facet registry: function selector routing behind one stable address."""

from __future__ import annotations

import logging
from typing import Mapping, Sequence

from pydantic import ValidationError

from provision_sdk.contracts.base import LedgerContract
from provision_sdk.crypto.selectors import DIAMOND_CUT_SELECTOR, normalize_selector
from provision_sdk.errors import CutRejectedError, ProvisionSDKError
from provision_sdk.identity import ZERO_ADDRESS, is_zero, same_identity, to_identity
from provision_sdk.ledger import LedgerProtocol
from provision_sdk.schemas import CutAction, FacetCut, SelectorRoute

LOGGER = logging.getLogger("provision_sdk.diamond")

DIAMOND_CUT_EVENT = "DiamondCut"


def _coerce_cut(operation: FacetCut | Mapping) -> FacetCut:
    if isinstance(operation, FacetCut):
        cut = operation
    else:
        try:
            cut = FacetCut.model_validate(dict(operation))
        except ValidationError as exc:
            raise CutRejectedError(f"malformed cut operation: {exc}") from exc
    try:
        selectors = [normalize_selector(item) for item in cut.selectors]
        module = to_identity(cut.module)
    except ProvisionSDKError as exc:
        raise CutRejectedError(str(exc)) from exc
    return FacetCut(module=module, action=cut.action, selectors=selectors)


class FacetRegistry(LedgerContract):
    RUNTIME_CODE = b"provision_sdk:FacetRegistry"

    @classmethod
    def create(
        cls,
        ledger: LedgerProtocol,
        address: str,
        *,
        owner: str,
        cut_module: str,
    ) -> "FacetRegistry":
        registry = cls(ledger, address)
        with ledger.transaction():
            if not ledger.get_code(cut_module):
                raise CutRejectedError(f"cut module has no code: {cut_module}")
            ledger.install_code(registry.address, cls.RUNTIME_CODE)
            registry._store(("owner",), to_identity(owner))
            registry._write_table({DIAMOND_CUT_SELECTOR: to_identity(cut_module)})
        return registry

    def _table(self) -> dict[str, str]:
        order: tuple[str, ...] = self._load(("selectors",), ())
        return {selector: self._load(("route", selector)) for selector in order}

    def _write_table(self, table: dict[str, str]) -> None:
        previous: tuple[str, ...] = self._load(("selectors",), ())
        for selector in previous:
            if selector not in table:
                self._store(("route", selector), None)
        for selector, module in table.items():
            self._store(("route", selector), module)
        self._store(("selectors",), tuple(table))

    def route_of(self, selector: str | bytes) -> str:
        module = self._load(("route", normalize_selector(selector)))
        return module if module else ZERO_ADDRESS

    def all_routes(self) -> list[SelectorRoute]:
        return [
            SelectorRoute(selector=selector, module=module)
            for selector, module in self._table().items()
        ]

    def modules(self) -> list[str]:
        seen: list[str] = []
        for module in self._table().values():
            if module not in seen:
                seen.append(module)
        return seen

    def selectors_of(self, module: str) -> list[str]:
        target = to_identity(module)
        return [selector for selector, routed in self._table().items() if routed == target]

    def _validate(self, table: dict[str, str], cut: FacetCut) -> None:
        """Apply one cut to the staged table, raising before anything is written."""
        if cut.action is not CutAction.REMOVE:
            if is_zero(cut.module):
                raise CutRejectedError(f"{cut.action.name} requires a module address")
            if not self.ledger.get_code(cut.module):
                raise CutRejectedError(f"module has no code: {cut.module}")
        for selector in cut.selectors:
            if selector == DIAMOND_CUT_SELECTOR:
                raise CutRejectedError("the cut selector cannot be modified")
            current = table.get(selector)
            if cut.action is CutAction.ADD:
                if current is not None:
                    raise CutRejectedError(f"selector {selector} already routed to {current}")
                table[selector] = cut.module
            elif cut.action is CutAction.REPLACE:
                if current is None:
                    raise CutRejectedError(f"selector {selector} is not routed")
                if same_identity(current, cut.module):
                    raise CutRejectedError(f"selector {selector} already routed to {cut.module}")
                table[selector] = cut.module
            else:
                if current is None:
                    raise CutRejectedError(f"selector {selector} is not routed")
                del table[selector]

    def cut(self, operations: Sequence[FacetCut | Mapping], *, caller: str) -> list[FacetCut]:
        with self.ledger.transaction():
            self._require_owner(caller)
            cuts = [_coerce_cut(item) for item in operations]
            if not cuts:
                raise CutRejectedError("cut batch is empty")

            staged = self._table()
            for cut in cuts:
                self._validate(staged, cut)

            self._write_table(staged)
            self._emit(
                DIAMOND_CUT_EVENT,
                cuts=[
                    {"module": cut.module, "action": cut.action.name, "selectors": list(cut.selectors)}
                    for cut in cuts
                ],
            )
        LOGGER.info("facet registry %s applied %s cut operations", self.address, len(cuts))
        return cuts
