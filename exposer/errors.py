"""Exception classes for exposer."""

from typing import Optional

from kubernetes.client.rest import ApiException


class ExposeError(Exception):
    """Base exception for exposer errors."""

    pass


class ConfigurationError(ExposeError):
    """Raised when the controller cannot be configured.

    Invalid exposer kinds, unparsable URL templates, strategies that do not
    fit the detected cluster type and undetectable domains all end up here.
    These are fatal at startup.
    """

    pass


class ValidationError(ExposeError):
    """Raised when a single service cannot be exposed as declared."""

    pass


class RemoteAPIError(ExposeError):
    """Raised when a Kubernetes API call fails."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

    @classmethod
    def wrap(cls, message: str, exc: ApiException) -> "RemoteAPIError":
        return cls(f"{message}: {exc.status} {exc.reason}", status=exc.status)


class PatchError(ExposeError):
    """Raised when a patch between two resource versions cannot be built."""

    pass


def is_not_found(exc: ApiException) -> bool:
    return exc.status == 404
