"""provision-sdk public surface."""

from provision_sdk.client import LedgerClient
from provision_sdk.contracts.deployer import AccountDeployer, Bound, Unbound, bind_transition
from provision_sdk.contracts.diamond import FacetRegistry
from provision_sdk.contracts.registry import DEFAULT_ACCOUNT_LIMIT, ProvisioningRegistry
from provision_sdk.crypto.create2 import (
    build_init_code,
    compute_salt,
    init_code_hash,
    predict_address,
    predict_address_for_code,
)
from provision_sdk.crypto.selectors import (
    DIAMOND_CUT_SELECTOR,
    function_selector,
    selectors_from_abi,
)
from provision_sdk.errors import (
    AddressDerivationMismatchError,
    AlreadyBoundError,
    CutRejectedError,
    DeploymentCollisionError,
    InvalidInputLengthError,
    LedgerUnavailableError,
    LimitExceededError,
    NotAuthorizedError,
    ProvisionSDKError,
    SDKTimeoutError,
)
from provision_sdk.identity import ZERO_ADDRESS, to_identity
from provision_sdk.ledger import InMemoryLedger, LedgerProtocol
from provision_sdk.migrator import SelectorMigrator
from provision_sdk.reconcile import ProvisioningState, classify
from provision_sdk.schemas import (
    CutAction,
    FacetCut,
    LedgerEvent,
    ProvisioningRecord,
    SelectorRoute,
)

__all__ = [
    "ProvisionSDKError",
    "InvalidInputLengthError",
    "NotAuthorizedError",
    "LimitExceededError",
    "AddressDerivationMismatchError",
    "AlreadyBoundError",
    "DeploymentCollisionError",
    "CutRejectedError",
    "LedgerUnavailableError",
    "SDKTimeoutError",
    "ZERO_ADDRESS",
    "to_identity",
    "compute_salt",
    "init_code_hash",
    "build_init_code",
    "predict_address",
    "predict_address_for_code",
    "DIAMOND_CUT_SELECTOR",
    "function_selector",
    "selectors_from_abi",
    "LedgerProtocol",
    "InMemoryLedger",
    "LedgerClient",
    "AccountDeployer",
    "Bound",
    "Unbound",
    "bind_transition",
    "ProvisioningRegistry",
    "DEFAULT_ACCOUNT_LIMIT",
    "ProvisioningState",
    "classify",
    "FacetRegistry",
    "SelectorMigrator",
    "CutAction",
    "FacetCut",
    "LedgerEvent",
    "ProvisioningRecord",
    "SelectorRoute",
]
