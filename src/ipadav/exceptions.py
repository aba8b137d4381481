"""Exceptions for ipadav."""

from __future__ import annotations

from http import HTTPStatus
from typing import ClassVar

__all__ = [
    "ClientRequestError",
    "DirectoryConnectionError",
    "InvalidEntryError",
    "IpaDavError",
    "PermissionDeniedError",
    "PrincipalNotFoundError",
    "UnknownPropertyError",
]


class IpaDavError(Exception):
    """Base class for all ipadav exceptions."""


class ClientRequestError(IpaDavError):
    """An error that should be reported back to the protocol client.

    The protocol server maps these onto its own error responses using the
    ``status_code`` and ``error`` class attributes.
    """

    error: ClassVar[str] = "invalid_request"
    """Machine-readable code for the error."""

    status_code: ClassVar[int] = HTTPStatus.BAD_REQUEST
    """HTTP status code that best describes the error."""


class UnknownPropertyError(ClientRequestError):
    """A search used a property that has no directory attribute mapping."""

    error = "bad_request"

    def __init__(self, prop: str) -> None:
        super().__init__(f"Unknown property: {prop}")
        self.property = prop


class PermissionDeniedError(ClientRequestError):
    """The client attempted to modify directory-backed data."""

    error = "permission_denied"
    status_code = HTTPStatus.FORBIDDEN


class PrincipalNotFoundError(ClientRequestError):
    """A principal path resolved to neither a user nor a group."""

    error = "not_found"
    status_code = HTTPStatus.NOT_FOUND

    def __init__(self, name: str) -> None:
        super().__init__("Principal not found")
        self.name = name


class InvalidEntryError(IpaDavError):
    """A directory entry is missing an attribute required for its type."""

    def __init__(self, message: str, dn: str) -> None:
        super().__init__(f"{message} ({dn})")
        self.dn = dn


class DirectoryConnectionError(IpaDavError):
    """Connecting or binding to the directory server failed.

    This is only raised during startup. A process that sees it must not
    continue with a partially initialized directory connection.
    """
