"""Storage layer for directory groups."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from structlog.stdlib import BoundLogger

from ..constants import (
    GROUP_ATTRIBUTES,
    GROUP_CONTAINER,
    GROUP_FIELD_MAP,
    GROUP_OBJECT_CLASS,
    PRINCIPAL_PREFIX,
    USER_CONTAINER,
    USER_OBJECT_CLASS,
)
from ..exceptions import InvalidEntryError
from ..filters import build_filter, member_of_filter, principal_filter
from ..models.directory import Group
from ..models.enums import FilterTest
from .directory import DirectoryConnection

__all__ = ["GroupStore"]


class GroupStore:
    """Look up groups in the directory.

    A group is visible if it is one of the allowed groups or is nested
    (directly or indirectly) inside one of them. An empty list of allowed
    groups means every group is visible.

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
        test: FilterTest | str | None = FilterTest.anyof,
        allowed_groups: Sequence[str] = (),
    ) -> list[Group]:
        """Find groups matching protocol property searches.

        Parameters
        ----------
        search_properties
            Protocol properties and the values to search for.
        test
            Whether all or any of the search properties must match.
        allowed_groups
            Only consider these groups and the groups nested in them.

        Returns
        -------
        list of Group
            Matching groups. Malformed entries are logged and skipped.

        Raises
        ------
        UnknownPropertyError
            Raised if a search property cannot be mapped to an attribute.
        """
        search = self._build_filter(search_properties, test, allowed_groups)
        entries = await self._directory.search(
            GROUP_CONTAINER, search, GROUP_ATTRIBUTES
        )
        groups = []
        for entry in entries:
            try:
                groups.append(Group.from_entry(entry))
            except InvalidEntryError as e:
                msg = "Invalid LDAP group entry, ignoring"
                self._logger.warning(msg, error=str(e), dn=entry.dn)
        return groups

    async def get(
        self,
        name: str,
        search_properties: Mapping[str, str] | None = None,
        test: FilterTest | str | None = FilterTest.anyof,
        allowed_groups: Sequence[str] = (),
    ) -> Group | None:
        """Get a single group.

        Parameters
        ----------
        name
            Name of the group.
        search_properties
            Protocol properties the group must also match.
        test
            Whether all or any of the search properties must match.
        allowed_groups
            Only consider these groups and the groups nested in them.

        Returns
        -------
        Group or None
            The group, or `None` if there is no such group or it does not
            pass the filters.

        Raises
        ------
        InvalidEntryError
            Raised if the entry exists but is not a valid group.
        UnknownPropertyError
            Raised if a search property cannot be mapped to an attribute.
        """
        search = self._build_filter(search_properties, test, allowed_groups)
        entry = await self._directory.read_one(
            Group.relative_dn(name), search, GROUP_ATTRIBUTES
        )
        if not entry:
            return None
        return Group.from_entry(entry)

    async def get_member_principals(
        self, group: Group, allowed_groups: Sequence[str] = ()
    ) -> list[str]:
        """Get the principal URIs of the users in a group.

        Parameters
        ----------
        group
            The group.
        allowed_groups
            Only consider users that are members of these groups.

        Returns
        -------
        list of str
            User principal URIs.
        """
        group_dn = self._directory.resolve_dn(Group.relative_dn(group.name))
        search = build_filter(
            FilterTest.allof,
            ["objectClass", USER_OBJECT_CLASS, "memberOf", group_dn],
            member_of_filter(self._directory, allowed_groups),
        )
        entries = await self._directory.search(USER_CONTAINER, search, ["uid"])
        principals = [
            PRINCIPAL_PREFIX + uid
            for uid in (e.first("uid") for e in entries)
            if uid
        ]
        self._logger.debug(
            "Found member principals for group",
            group=group.name,
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
            ["objectClass", GROUP_OBJECT_CLASS],
            member_of_filter(
                self._directory, allowed_groups, include_self=True
            ),
            principal_filter(search_properties or {}, GROUP_FIELD_MAP, test),
        )
