"""Selector migration between facet modules.

Builds the minimal cut set that moves a module's selectors onto a facet
registry and submits it as one atomic ``cut``: either every selector moves or
the previous routing stays intact.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from provision_sdk.contracts.diamond import FacetRegistry
from provision_sdk.crypto.selectors import DIAMOND_CUT_SELECTOR, normalize_selector
from provision_sdk.identity import ZERO_ADDRESS, to_identity
from provision_sdk.schemas import CutAction, FacetCut

LOGGER = logging.getLogger("provision_sdk.migrator")


@dataclass
class SelectorMigrator:
    registry: FacetRegistry

    def plan(
        self,
        module: str,
        selectors: Iterable[str],
        *,
        previous_module: str | None = None,
        only: Iterable[str] | None = None,
    ) -> list[FacetCut]:
        target = to_identity(module)
        candidates = [normalize_selector(item) for item in selectors]
        candidates = [item for item in dict.fromkeys(candidates) if item != DIAMOND_CUT_SELECTOR]
        if only is not None:
            wanted = {normalize_selector(item) for item in only}
            candidates = [item for item in candidates if item in wanted]

        routes = {route.selector: route.module for route in self.registry.all_routes()}
        to_add: list[str] = []
        to_replace: list[str] = []
        for selector in candidates:
            current = routes.get(selector, ZERO_ADDRESS)
            if current == ZERO_ADDRESS:
                to_add.append(selector)
            elif current != target:
                to_replace.append(selector)

        to_remove: list[str] = []
        if previous_module is not None and only is None:
            previous = to_identity(previous_module)
            exposed = set(candidates)
            to_remove = [
                selector
                for selector, routed in routes.items()
                if routed == previous and selector not in exposed and selector != DIAMOND_CUT_SELECTOR
            ]

        cuts: list[FacetCut] = []
        if to_add:
            cuts.append(FacetCut(module=target, action=CutAction.ADD, selectors=to_add))
        if to_replace:
            cuts.append(FacetCut(module=target, action=CutAction.REPLACE, selectors=to_replace))
        if to_remove:
            cuts.append(FacetCut(module=ZERO_ADDRESS, action=CutAction.REMOVE, selectors=to_remove))
        LOGGER.info(
            "migration plan module=%s add=%s replace=%s remove=%s",
            target,
            len(to_add),
            len(to_replace),
            len(to_remove),
        )
        return cuts

    def migrate(
        self,
        module: str,
        selectors: Iterable[str],
        *,
        caller: str,
        previous_module: str | None = None,
        only: Iterable[str] | None = None,
    ) -> list[FacetCut]:
        cuts = self.plan(module, selectors, previous_module=previous_module, only=only)
        if not cuts:
            LOGGER.info("module %s already fully routed; nothing to migrate", module)
            return []
        return self.registry.cut(cuts, caller=caller)
