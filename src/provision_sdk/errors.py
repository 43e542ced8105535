"""SDK error types."""

from __future__ import annotations


class ProvisionSDKError(RuntimeError):
    """Base SDK error."""


class InvalidInputLengthError(ProvisionSDKError, ValueError):
    """A byte-string input does not have the required length."""


class NotAuthorizedError(ProvisionSDKError):
    """Caller lacks the role required for the operation."""


class LimitExceededError(ProvisionSDKError):
    """Creator has exhausted its issuance quota."""


class AddressDerivationMismatchError(ProvisionSDKError):
    """Deployed address differs from the predicted CREATE2 address."""

    def __init__(self, message: str, *, predicted: str, actual: str) -> None:
        super().__init__(message)
        self.predicted = predicted
        self.actual = actual


class AlreadyBoundError(ProvisionSDKError):
    """Deployer is already bound to a different registry."""


class DeploymentCollisionError(ProvisionSDKError):
    """Target address of a deterministic creation already holds code."""


class CutRejectedError(ProvisionSDKError):
    """A facet cut batch failed validation; nothing was applied."""


class LedgerUnavailableError(ProvisionSDKError):
    """Ledger RPC endpoint could not be reached."""


class SDKTimeoutError(ProvisionSDKError):
    """Timed out waiting for ledger state."""
