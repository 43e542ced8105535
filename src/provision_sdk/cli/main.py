"""Command-line interface for provision-sdk."""

from __future__ import annotations

import argparse
import json
import logging
import re
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from pathlib import Path
from typing import Sequence

from provision_sdk.cli.config import CLIConfig, ConfigError, load_cli_config
from provision_sdk.client import LedgerClient
from provision_sdk.crypto.create2 import compute_salt, init_code_hash, predict_address
from provision_sdk.crypto.selectors import DIAMOND_CUT_SELECTOR, selectors_from_abi
from provision_sdk.errors import LedgerUnavailableError, ProvisionSDKError, SDKTimeoutError
from provision_sdk.identity import to_identity

EXIT_SUCCESS = 0
EXIT_VALIDATION_ERROR = 1
EXIT_NETWORK_ERROR = 2
EXIT_TIMEOUT = 3

_SENSITIVE_QUERY_KEYS = ("apikey", "api_key", "key", "token", "secret")


def _sdk_version() -> str:
    try:
        return pkg_version("provision-sdk")
    except PackageNotFoundError:
        return "0.0.0+local"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="provision")
    parser.add_argument(
        "--version",
        action="version",
        version=f"provision-sdk {_sdk_version()}",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to CLI config TOML (default: ~/.provision_sdk/config.toml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override log level (DEBUG, INFO, WARNING, ERROR)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    version = sub.add_parser("version", help="Show CLI version")
    version.add_argument("--json", action="store_true")

    salt = sub.add_parser("salt", help="Compute the CREATE2 salt for (creator, index)")
    salt.add_argument("--creator", required=True)
    salt.add_argument("--index", type=int, default=0)
    salt.add_argument("--json", action="store_true")

    predict = sub.add_parser("predict", help="Predict a CREATE2 deployment address offline")
    predict.add_argument("--deployer", required=True, help="Address performing the creation")
    predict.add_argument("--creator", default=None, help="Creator EOA (salt derived with --index)")
    predict.add_argument("--index", type=int, default=0)
    predict.add_argument("--salt", default=None, help="Explicit 32-byte salt as hex")
    code_group = predict.add_mutually_exclusive_group(required=True)
    code_group.add_argument("--init-code", default=None, help="Init code (bytecode+args) as hex")
    code_group.add_argument("--init-code-hash", default=None, help="keccak256 of init code as hex")
    predict.add_argument("--json", action="store_true")

    selectors = sub.add_parser("selectors", help="List function selectors from an ABI/artifact")
    selectors.add_argument("abi_json", help="Path to ABI JSON or compiler artifact")
    selectors.add_argument("--json", action="store_true")

    code = sub.add_parser("code", help="Check whether code is deployed at an address")
    code.add_argument("address")
    code.add_argument("--rpc-url", default=None, help="JSON-RPC endpoint (default from config)")
    code.add_argument("--wait", type=float, default=None, help="Seconds to wait for code")
    code.add_argument("--interval", type=float, default=2.0)
    code.add_argument("--json", action="store_true")

    return parser


def _sanitize_error_text(value: str) -> str:
    keys = "|".join(_SENSITIVE_QUERY_KEYS)
    redacted = re.sub(rf"(?i)([?&](?:{keys})=)([^&\s]+)", r"\1[REDACTED]", value)
    redacted = re.sub(r"(?i)(/v[23]/)([0-9a-z_-]{16,})", r"\1[REDACTED]", redacted)
    return redacted


def _print_error(stderr, prefix: str, message: str, *, code: int) -> int:
    print(f"{prefix}: {_sanitize_error_text(message)}", file=stderr)
    return code


def _hex_bytes(value: str, field_name: str) -> bytes:
    text = value[2:] if value[:2].lower() == "0x" else value
    try:
        return bytes.fromhex(text)
    except ValueError as exc:
        raise ProvisionSDKError(f"{field_name} is not valid hex") from exc


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _run_version(*, as_json: bool, stdout) -> int:
    payload = {"cli": "provision-sdk", "sdk_version": _sdk_version()}
    if as_json:
        print(json.dumps(payload, sort_keys=True), file=stdout)
    else:
        print(f"provision-sdk {payload['sdk_version']}", file=stdout)
    return EXIT_SUCCESS


def _run_salt(*, args, stdout, stderr) -> int:
    try:
        creator = to_identity(args.creator)
        salt = compute_salt(creator, args.index)
    except (ProvisionSDKError, ValueError) as exc:
        return _print_error(stderr, "validation error", str(exc), code=EXIT_VALIDATION_ERROR)

    payload = {"creator": creator, "index": args.index, "salt": "0x" + salt.hex()}
    if args.json:
        print(json.dumps(payload, sort_keys=True), file=stdout)
    else:
        print(f"salt: {payload['salt']}", file=stdout)
    return EXIT_SUCCESS


def _run_predict(*, args, stdout, stderr) -> int:
    try:
        if args.salt is not None:
            salt = _hex_bytes(args.salt, "salt")
        elif args.creator is not None:
            salt = compute_salt(args.creator, args.index)
        else:
            raise ProvisionSDKError("either --salt or --creator is required")

        if args.init_code is not None:
            code_hash = init_code_hash(_hex_bytes(args.init_code, "init_code"))
        else:
            code_hash = _hex_bytes(args.init_code_hash, "init_code_hash")
        address = predict_address(args.deployer, salt, code_hash)
    except (ProvisionSDKError, ValueError) as exc:
        return _print_error(stderr, "validation error", str(exc), code=EXIT_VALIDATION_ERROR)

    payload = {
        "deployer": to_identity(args.deployer),
        "salt": "0x" + salt.hex(),
        "init_code_hash": "0x" + code_hash.hex(),
        "address": address,
    }
    if args.json:
        print(json.dumps(payload, sort_keys=True), file=stdout)
    else:
        print(f"address: {address}", file=stdout)
        print(f"salt: {payload['salt']}", file=stdout)
        print(f"init_code_hash: {payload['init_code_hash']}", file=stdout)
    return EXIT_SUCCESS


def _run_selectors(*, args, stdout, stderr) -> int:
    try:
        abi = json.loads(Path(args.abi_json).read_text(encoding="utf-8"))
        selectors = selectors_from_abi(abi)
    except (OSError, ValueError, KeyError) as exc:
        return _print_error(stderr, "validation error", str(exc), code=EXIT_VALIDATION_ERROR)

    if args.json:
        payload = {"selectors": selectors, "excluded": [DIAMOND_CUT_SELECTOR]}
        print(json.dumps(payload, sort_keys=True), file=stdout)
    else:
        for selector in selectors:
            print(selector, file=stdout)
    return EXIT_SUCCESS


def _run_code(*, args, config: CLIConfig, stdout, stderr) -> int:
    rpc_url = args.rpc_url or config.rpc_url
    try:
        address = to_identity(args.address)
    except ProvisionSDKError as exc:
        return _print_error(stderr, "validation error", str(exc), code=EXIT_VALIDATION_ERROR)

    try:
        client = LedgerClient(
            rpc_url=rpc_url,
            timeout=config.request_timeout,
            retries=config.retries,
        )
        if args.wait is not None:
            code = client.wait_for_code(address, timeout=args.wait, interval=args.interval)
        else:
            code = client.get_code(address)
    except SDKTimeoutError as exc:
        return _print_error(stderr, "timeout", str(exc), code=EXIT_TIMEOUT)
    except LedgerUnavailableError as exc:
        return _print_error(stderr, "ledger error", str(exc), code=EXIT_NETWORK_ERROR)

    payload = {"address": address, "deployed": bool(code), "code_size": len(code)}
    if args.json:
        print(json.dumps(payload, sort_keys=True), file=stdout)
    else:
        print(f"address: {address}", file=stdout)
        print(f"deployed: {str(payload['deployed']).lower()}", file=stdout)
        print(f"code_size: {payload['code_size']}", file=stdout)
    return EXIT_SUCCESS


def main(argv: Sequence[str] | None = None, *, stdout=sys.stdout, stderr=sys.stderr) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_cli_config(args.config)
    except ConfigError as exc:
        return _print_error(stderr, "config error", str(exc), code=EXIT_VALIDATION_ERROR)

    try:
        _configure_logging(args.log_level or config.log_level)
    except ValueError as exc:
        return _print_error(stderr, "config error", str(exc), code=EXIT_VALIDATION_ERROR)

    if args.command == "version":
        return _run_version(as_json=args.json, stdout=stdout)

    if args.command == "salt":
        return _run_salt(args=args, stdout=stdout, stderr=stderr)

    if args.command == "predict":
        return _run_predict(args=args, stdout=stdout, stderr=stderr)

    if args.command == "selectors":
        return _run_selectors(args=args, stdout=stdout, stderr=stderr)

    if args.command == "code":
        return _run_code(args=args, config=config, stdout=stdout, stderr=stderr)

    print("unknown command", file=stderr)
    return EXIT_VALIDATION_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
