"""Enums used in ipadav models."""

from __future__ import annotations

from enum import Enum

__all__ = [
    "FilterTest",
    "LoginState",
]


class FilterTest(Enum):
    """How multiple search conditions are combined."""

    allof = "allof"
    """All conditions must match (LDAP ``&``)."""

    anyof = "anyof"
    """At least one condition must match (LDAP ``|``)."""


class LoginState(Enum):
    """Stages of the login check.

    A login passes through these in order. Failing any gate moves it to
    ``failed`` and ends the check.
    """

    unauthenticated = "unauthenticated"
    realm_checked = "realm_checked"
    authorized = "authorized"
    provisioned = "provisioned"
    failed = "failed"
