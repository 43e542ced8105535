"""Deterministic (CREATE2) address derivation.

address = last20(keccak256(0xff || deployer || salt || keccak256(init_code)))
salt    = keccak256(abi.encode(address creator, uint256 index))

These functions are the single derivation used both by the in-process
contracts and by off-chain tooling; the two must agree bit for bit.
"""

from __future__ import annotations

from typing import Sequence

from eth_abi import encode
from web3 import Web3

from provision_sdk.errors import InvalidInputLengthError
from provision_sdk.identity import identity_bytes, to_identity

CREATE2_PREFIX = b"\xff"
WORD_LENGTH = 32
MAX_UINT256 = 2**256 - 1


def _word(value: bytes | str, field_name: str) -> bytes:
    if isinstance(value, str):
        text = value[2:] if value[:2].lower() == "0x" else value
        try:
            value = bytes.fromhex(text)
        except ValueError as exc:
            raise InvalidInputLengthError(f"{field_name} is not valid hex") from exc
    if not isinstance(value, (bytes, bytearray)) or len(value) != WORD_LENGTH:
        raise InvalidInputLengthError(f"{field_name} must be {WORD_LENGTH} bytes")
    return bytes(value)


def keccak(data: bytes) -> bytes:
    return bytes(Web3.keccak(primitive=bytes(data)))


def init_code_hash(init_code: bytes) -> bytes:
    return keccak(init_code)


def build_init_code(
    creation_bytecode: bytes | str,
    arg_types: Sequence[str] = (),
    args: Sequence[object] = (),
) -> bytes:
    if isinstance(creation_bytecode, str):
        text = creation_bytecode[2:] if creation_bytecode[:2].lower() == "0x" else creation_bytecode
        creation_bytecode = bytes.fromhex(text)
    if len(arg_types) != len(args):
        raise ValueError("arg_types and args must have the same length")
    if not arg_types:
        return bytes(creation_bytecode)
    return bytes(creation_bytecode) + encode(list(arg_types), list(args))


def compute_salt(creator: str | bytes, index: int) -> bytes:
    if isinstance(index, bool) or not isinstance(index, int):
        raise ValueError("index must be an integer")
    if index < 0 or index > MAX_UINT256:
        raise ValueError("index must fit in uint256")
    return keccak(encode(["address", "uint256"], [to_identity(creator), index]))


def predict_address(
    deployer: str | bytes,
    salt: bytes | str,
    code_hash: bytes | str,
) -> str:
    payload = (
        CREATE2_PREFIX
        + identity_bytes(deployer)
        + _word(salt, "salt")
        + _word(code_hash, "init_code_hash")
    )
    return to_identity(keccak(payload)[-20:])


def predict_address_for_code(deployer: str | bytes, salt: bytes | str, init_code: bytes) -> str:
    return predict_address(deployer, salt, init_code_hash(init_code))
