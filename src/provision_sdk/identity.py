"""Account identity normalization.

Identities are 20-byte addresses. Every public entry point accepts either a
``0x``-prefixed hex string (any case) or raw bytes and works on the EIP-55
checksum form, so equality is byte-exact regardless of input casing.
"""

from __future__ import annotations

from web3 import Web3

from provision_sdk.errors import InvalidInputLengthError

ADDRESS_LENGTH = 20
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def identity_bytes(value: str | bytes) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        text = value[2:] if value[:2].lower() == "0x" else value
        try:
            raw = bytes.fromhex(text)
        except ValueError as exc:
            raise InvalidInputLengthError(f"identity is not valid hex: {value!r}") from exc
    else:
        raise InvalidInputLengthError("identity must be str or bytes")
    if len(raw) != ADDRESS_LENGTH:
        raise InvalidInputLengthError(
            f"identity must be {ADDRESS_LENGTH} bytes, got {len(raw)}"
        )
    return raw


def to_identity(value: str | bytes) -> str:
    return Web3.to_checksum_address("0x" + identity_bytes(value).hex())


def is_zero(value: str | bytes) -> bool:
    return identity_bytes(value) == bytes(ADDRESS_LENGTH)


def same_identity(left: str | bytes, right: str | bytes) -> bool:
    return identity_bytes(left) == identity_bytes(right)
