"""Storage layer for directory users."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from structlog.stdlib import BoundLogger

from ..constants import (
    GROUP_CONTAINER,
    GROUP_OBJECT_CLASS,
    PRINCIPAL_PREFIX,
    USER_ATTRIBUTES,
    USER_CONTAINER,
    USER_FIELD_MAP,
    USER_OBJECT_CLASS,
)
from ..exceptions import InvalidEntryError
from ..filters import Present, build_filter, member_of_filter, principal_filter
from ..models.directory import User
from ..models.enums import FilterTest
from .directory import DirectoryConnection

__all__ = ["UserStore"]


class UserStore:
    """Look up users in the directory.

    Every lookup is restricted to members of the allowed groups passed to
    it, and that restriction is part of the directory query itself. An empty
    list of allowed groups means no restriction.

    Parameters
    ----------
    directory
        Directory connection.
    logger
        Logger for debug messages and errors.
    """

    def __init__(
        self, directory: DirectoryConnection, logger: BoundLogger
    ) -> None:
        self._directory = directory
        self._logger = logger

    async def search(
        self,
        search_properties: Mapping[str, str] | None = None,
        test: FilterTest | str | None = FilterTest.allof,
        allowed_groups: Sequence[str] = (),
    ) -> list[User]:
        """Find users matching protocol property searches.

        Parameters
        ----------
        search_properties
            Protocol properties and the values to search for.
        test
            Whether all or any of the search properties must match.
        allowed_groups
            Only consider members of these groups.

        Returns
        -------
        list of User
            Matching users. Malformed entries are logged and skipped.

        Raises
        ------
        UnknownPropertyError
            Raised if a search property cannot be mapped to an attribute.
        """
        search = self._build_filter(search_properties, test, allowed_groups)
        entries = await self._directory.search(
            USER_CONTAINER, search, USER_ATTRIBUTES
        )
        users = []
        for entry in entries:
            try:
                users.append(User.from_entry(entry))
            except InvalidEntryError as e:
                msg = "Invalid LDAP user entry, ignoring"
                self._logger.warning(msg, error=str(e), dn=entry.dn)
        return users

    async def get(
        self,
        uid: str,
        search_properties: Mapping[str, str] | None = None,
        test: FilterTest | str | None = FilterTest.allof,
        allowed_groups: Sequence[str] = (),
    ) -> User | None:
        """Get a single user.

        Parameters
        ----------
        uid
            Login name of the user.
        search_properties
            Protocol properties the user must also match.
        test
            Whether all or any of the search properties must match.
        allowed_groups
            Only consider members of these groups.

        Returns
        -------
        User or None
            The user, or `None` if there is no such user or the user does not
            pass the filters.

        Raises
        ------
        InvalidEntryError
            Raised if the entry exists but is not a valid user.
        UnknownPropertyError
            Raised if a search property cannot be mapped to an attribute.
        """
        search = self._build_filter(search_properties, test, allowed_groups)
        entry = await self._directory.read_one(
            User.relative_dn(uid), search, USER_ATTRIBUTES
        )
        if not entry:
            return None
        return User.from_entry(entry)

    async def get_group_principals(
        self, user: User, allowed_groups: Sequence[str] = ()
    ) -> list[str]:
        """Get the principal URIs of the groups of a user.

        Only groups that are themselves allowed groups or nested inside one
        are returned, and nothing is returned if the user is not a member of
        an allowed group.

        Parameters
        ----------
        user
            The user.
        allowed_groups
            Only consider these groups and the groups nested in them.

        Returns
        -------
        list of str
            Group principal URIs.
        """
        search = build_filter(
            FilterTest.allof,
            ["objectClass", USER_OBJECT_CLASS],
            Present("mail"),
            member_of_filter(self._directory, allowed_groups),
        )
        entry = await self._directory.read_one(
            User.relative_dn(user.uid), search, ["uid", "memberOf"]
        )
        if not entry:
            return []

        search = build_filter(
            FilterTest.allof,
            ["objectClass", GROUP_OBJECT_CLASS],
            member_of_filter(
                self._directory, allowed_groups, include_self=True
            ),
        )
        group_entries = await self._directory.search(
            GROUP_CONTAINER, search, ["cn"]
        )
        visible = {_normalize_dn(g.dn): g for g in group_entries}

        principals = []
        for group_dn in entry.values("memberOf"):
            group_entry = visible.get(_normalize_dn(group_dn))
            if group_entry:
                name = group_entry.first("cn")
                if name:
                    principals.append(PRINCIPAL_PREFIX + name)
        self._logger.debug(
            "Found group principals for user",
            user=user.uid,
            principals=principals,
        )
        return principals

    def _build_filter(
        self,
        search_properties: Mapping[str, str] | None,
        test: FilterTest | str | None,
        allowed_groups: Sequence[str],
    ) -> str:
        return build_filter(
            FilterTest.allof,
            ["objectClass", USER_OBJECT_CLASS],
            Present("mail"),
            member_of_filter(self._directory, allowed_groups),
            principal_filter(search_properties or {}, USER_FIELD_MAP, test),
        )


def _normalize_dn(dn: str) -> str:
    return ",".join(c.strip() for c in dn.lower().split(","))
