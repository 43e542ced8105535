"""Function selector helpers for facet routing."""

from __future__ import annotations

import re

from provision_sdk.crypto.create2 import keccak
from provision_sdk.errors import InvalidInputLengthError

SELECTOR_LENGTH = 4
DIAMOND_CUT_SIGNATURE = "diamondCut((address,uint8,bytes4[])[],address,bytes)"
DIAMOND_CUT_SELECTOR = "0x1f931c1c"

_SELECTOR_RE = re.compile(r"^0x[0-9a-f]{8}$")


def function_selector(signature: str) -> str:
    return "0x" + keccak(signature.encode("ascii"))[:SELECTOR_LENGTH].hex()


def normalize_selector(value: str | bytes) -> str:
    if isinstance(value, (bytes, bytearray)):
        if len(value) != SELECTOR_LENGTH:
            raise InvalidInputLengthError(f"selector must be {SELECTOR_LENGTH} bytes")
        return "0x" + bytes(value).hex()
    lowered = value.strip().lower()
    if not lowered.startswith("0x"):
        lowered = "0x" + lowered
    if not _SELECTOR_RE.match(lowered):
        raise InvalidInputLengthError(f"selector must be {SELECTOR_LENGTH} bytes: {value!r}")
    return lowered


def _canonical_type(param: dict) -> str:
    kind = str(param.get("type", ""))
    if kind.startswith("tuple"):
        inner = ",".join(_canonical_type(item) for item in param.get("components", []))
        return f"({inner}){kind[len('tuple'):]}"
    return kind


def selectors_from_abi(abi: list[dict] | dict) -> list[str]:
    """Return the unique selectors of every function in an ABI.

    Accepts either a bare ABI list or a compiler artifact with an ``abi`` key.
    The diamond cut selector is dropped, it is never a migration target.
    """
    entries = abi.get("abi") if isinstance(abi, dict) else abi
    if not isinstance(entries, list):
        raise ValueError("abi must be a list of entries")

    seen: list[str] = []
    for entry in entries:
        if not isinstance(entry, dict) or entry.get("type") != "function":
            continue
        params = ",".join(_canonical_type(item) for item in entry.get("inputs") or [])
        selector = function_selector(f"{entry['name']}({params})")
        if selector != DIAMOND_CUT_SELECTOR and selector not in seen:
            seen.append(selector)
    return seen
