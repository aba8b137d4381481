"""Models for directory entries and the principals derived from them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Self

from bonsai.utils import escape_attribute_value

from ..constants import (
    DISPLAYNAME_PROPERTY,
    EMAIL_ADDRESS_PROPERTY,
    GROUP_CONTAINER,
    PRINCIPAL_PREFIX,
    USER_CONTAINER,
)
from ..exceptions import InvalidEntryError

__all__ = [
    "DirectoryEntry",
    "Group",
    "Principal",
    "User",
]


@dataclass(frozen=True, slots=True)
class DirectoryEntry:
    """One entry returned by a directory search.

    Attribute names are stored lowercased so that lookups do not depend on
    the capitalization used by the server.
    """

    dn: str
    """Distinguished name of the entry."""

    attributes: dict[str, list[str]] = field(default_factory=dict)
    """Attribute values, keyed by lowercased attribute name."""

    def first(self, attribute: str) -> str | None:
        """Return the first value of an attribute, or `None` if absent."""
        values = self.attributes.get(attribute.lower())
        return values[0] if values else None

    def values(self, attribute: str) -> list[str]:
        """Return all values of an attribute."""
        return self.attributes.get(attribute.lower(), [])

    def require(self, attribute: str) -> str:
        """Return the first value of an attribute that must be present.

        Raises
        ------
        InvalidEntryError
            Raised if the attribute is missing or empty.
        """
        value = self.first(attribute)
        if not value:
            raise InvalidEntryError(f"Entry has no {attribute}", self.dn)
        return value


@dataclass(frozen=True, slots=True)
class Principal:
    """A user, group, or proxy principal as seen by the protocol server."""

    uri: str
    """Principal path, such as ``principals/someuser``."""

    display_name: str | None = None
    """Human-readable name."""

    email: str | None = None
    """Email address, only set for users."""

    def to_dict(self) -> dict[str, str]:
        """Convert to the property mapping used by the protocol server."""
        result = {"uri": self.uri}
        if self.display_name is not None:
            result[DISPLAYNAME_PROPERTY] = self.display_name
        if self.email is not None:
            result[EMAIL_ADDRESS_PROPERTY] = self.email
        return result


@dataclass(frozen=True, slots=True)
class User:
    """A directory user."""

    uid: str
    """Login name."""

    display_name: str
    """Full name, falling back to the login name."""

    email: str
    """Email address. Entries without one are not users."""

    @classmethod
    def from_entry(cls, entry: DirectoryEntry) -> Self:
        """Construct a user from a directory entry.

        Raises
        ------
        InvalidEntryError
            Raised if the entry has no ``uid`` or no ``mail``.
        """
        uid = entry.require("uid")
        email = entry.require("mail")
        display_name = entry.first("displayName") or uid
        return cls(uid=uid, display_name=display_name, email=email)

    @staticmethod
    def relative_dn(uid: str) -> str:
        """Return the escaped DN of a user relative to the base DN.

        For example, ``joe`` becomes ``uid=joe,cn=users,cn=accounts``.
        """
        return f"uid={escape_attribute_value(uid)},{USER_CONTAINER}"

    @property
    def principal_uri(self) -> str:
        return PRINCIPAL_PREFIX + self.uid

    def to_principal(self) -> Principal:
        return Principal(
            uri=self.principal_uri,
            display_name=self.display_name,
            email=self.email,
        )


@dataclass(frozen=True, slots=True)
class Group:
    """A directory group."""

    name: str
    """Group name (``cn``)."""

    description: str
    """Description, falling back to the group name."""

    @classmethod
    def from_entry(cls, entry: DirectoryEntry) -> Self:
        """Construct a group from a directory entry.

        Raises
        ------
        InvalidEntryError
            Raised if the entry has no ``cn``.
        """
        name = entry.require("cn")
        description = entry.first("description") or name
        return cls(name=name, description=description)

    @staticmethod
    def relative_dn(name: str) -> str:
        """Return the escaped DN of a group relative to the base DN."""
        return f"cn={escape_attribute_value(name)},{GROUP_CONTAINER}"

    @property
    def principal_uri(self) -> str:
        return PRINCIPAL_PREFIX + self.name

    def to_principal(self) -> Principal:
        return Principal(uri=self.principal_uri, display_name=self.description)
