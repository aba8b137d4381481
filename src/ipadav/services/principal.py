"""Principal lookups backed by the directory."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, NoReturn
from urllib.parse import urlsplit

from structlog.stdlib import BoundLogger

from ..constants import EMAIL_ADDRESS_PROPERTY, PRINCIPAL_ROOT, PROXY_CHILDREN
from ..exceptions import PermissionDeniedError, PrincipalNotFoundError
from ..models.directory import Principal
from ..models.enums import FilterTest
from ..storage.group import GroupStore
from ..storage.user import UserStore

__all__ = ["PrincipalService"]


def _split_path(path: str) -> list[str]:
    """Split a path on ``/``, discarding empty segments.

    For example, ``/one//two/`` becomes ``["one", "two"]``.
    """
    return [p for p in path.split("/") if p]


class PrincipalService:
    """Present directory users and groups as protocol principals.

    Users and groups share one namespace under ``principals/``. If a user and
    a group have the same name, only the user is visible, in listings,
    searches, and single lookups alike. Each principal also has two proxy
    children, ``calendar-proxy-read`` and ``calendar-proxy-write``.

    Only members of the allowed groups, plus the allowed groups and the
    groups nested in them, are visible. Principals are read-only.

    Parameters
    ----------
    user_store
        Storage for directory users.
    group_store
        Storage for directory groups.
    allowed_groups
        Groups that determine which principals are visible.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        user_store: UserStore,
        group_store: GroupStore,
        allowed_groups: Sequence[str],
        logger: BoundLogger,
    ) -> None:
        self._users = user_store
        self._groups = group_store
        self._logger = logger
        self.set_allowed_groups(allowed_groups)

    def set_allowed_groups(self, allowed_groups: Sequence[str]) -> None:
        """Change the groups that determine which principals are visible."""
        self._allowed_groups = list(allowed_groups)
        if not self._allowed_groups:
            self._logger.warning(
                "No allowed groups set, all users and groups are visible"
            )

    async def get_principals_by_prefix(
        self, prefix_path: str
    ) -> list[dict[str, str]]:
        """List the principals under a path.

        Parameters
        ----------
        prefix_path
            ``principals`` to list every user and group, or
            ``principals/<name>`` to list the proxy principals of one user or
            group.

        Returns
        -------
        list of dict
            Principal property mappings, each with at least a ``uri`` key.
        """
        parts = _split_path(prefix_path)
        if not parts or parts[0] != PRINCIPAL_ROOT:
            return []
        if len(parts) == 1:
            principals = await self._get_principals()
        elif len(parts) == 2:
            principals = await self._get_principal_children(parts[1])
        else:
            return []
        return [p.to_dict() for p in principals]

    async def get_principal_by_path(self, path: str) -> dict[str, str] | None:
        """Get a single principal.

        Parameters
        ----------
        path
            ``principals/<name>`` for a user or group, or
            ``principals/<name>/<proxy>`` for one of its proxy principals.

        Returns
        -------
        dict or None
            Principal property mapping, or `None` if there is no such
            principal or it is not visible.
        """
        parts = _split_path(path)
        if not parts or parts[0] != PRINCIPAL_ROOT:
            return None
        if len(parts) == 2:
            principal = await self._get_principal(parts[1])
        elif len(parts) == 3:
            principal = await self._get_principal_child(parts[1], parts[2])
        else:
            return None
        return principal.to_dict() if principal else None

    async def search_principals(
        self,
        prefix_path: str,
        search_properties: Mapping[str, str],
        test: FilterTest | str | None = FilterTest.allof,
    ) -> list[str]:
        """Search for principals by property.

        The search is a case-insensitive substring match on each property.

        Parameters
        ----------
        prefix_path
            Where to search, as for `get_principals_by_prefix`.
        search_properties
            Protocol property names and the values to search for.
        test
            ``allof`` if every property must match, ``anyof`` if any may.

        Returns
        -------
        list of str
            URIs of the matching principals.

        Raises
        ------
        UnknownPropertyError
            Raised if a property cannot be searched.
        """
        parts = _split_path(prefix_path)
        if not parts or parts[0] != PRINCIPAL_ROOT:
            return []
        if len(parts) == 1:
            principals = await self._get_principals(search_properties, test)
        elif len(parts) == 2:
            principals = await self._get_principal_children(
                parts[1], search_properties, test
            )
        else:
            return []
        return [p.uri for p in principals]

    async def find_by_uri(self, uri: str, principal_prefix: str) -> str | None:
        """Find a principal by URI.

        ``mailto:`` URIs are looked up by the email address of users. Any
        other URI is treated as a principal path that must lie directly under
        ``principal_prefix``.

        Parameters
        ----------
        uri
            URI to look up.
        principal_prefix
            Principal collection to search, normally ``principals``.

        Returns
        -------
        str or None
            Principal URI, or `None` if no visible principal matches.
        """
        parsed = urlsplit(uri)
        prefix_parts = _split_path(principal_prefix)
        if not parsed.path:
            return None

        if parsed.scheme == "mailto":
            if prefix_parts != [PRINCIPAL_ROOT]:
                return None
            address = parsed.path
            search = {EMAIL_ADDRESS_PROPERTY: address}
            for principal in await self._get_principals(search):
                email = principal.email
                if email and email.lower() == address.lower():
                    return principal.uri
            return None

        path_parts = _split_path(parsed.path)
        if path_parts[:-1] != prefix_parts:
            return None
        path = "/".join(path_parts)
        if await self.get_principal_by_path(path):
            return path
        return None

    async def get_group_member_set(self, principal: str) -> list[str]:
        """Get the members of a group principal.

        Parameters
        ----------
        principal
            Principal path, ``principals/<name>``.

        Returns
        -------
        list of str
            URIs of the visible user principals in the group. Empty for a
            group outside the allowed groups, a user principal, or any other
            kind of path.

        Raises
        ------
        PrincipalNotFoundError
            Raised if the name is neither a user nor a group in the directory.
        """
        parts = _split_path(principal)
        if len(parts) != 2 or parts[0] != PRINCIPAL_ROOT:
            return []
        name = parts[1]
        if await self._users.get(name):
            return []
        group = await self._groups.get(name)
        if not group:
            raise PrincipalNotFoundError(name)
        return await self._groups.get_member_principals(
            group, self._allowed_groups
        )

    async def get_group_membership(self, principal: str) -> list[str]:
        """Get the groups of a user principal.

        Parameters
        ----------
        principal
            Principal path, ``principals/<name>``.

        Returns
        -------
        list of str
            URIs of the visible groups the user belongs to. Empty for a
            user outside the allowed groups, a group principal, or any other
            kind of path.

        Raises
        ------
        PrincipalNotFoundError
            Raised if the name is neither a user nor a group in the directory.
        """
        parts = _split_path(principal)
        if len(parts) != 2 or parts[0] != PRINCIPAL_ROOT:
            return []
        name = parts[1]
        user = await self._users.get(name)
        if user:
            return await self._users.get_group_principals(
                user, self._allowed_groups
            )
        if await self._groups.get(name):
            return []
        raise PrincipalNotFoundError(name)

    def update_principal(self, path: str, mutations: Any) -> NoReturn:
        """Reject any change to a principal.

        Raises
        ------
        PermissionDeniedError
            Always raised.
        """
        self._logger.info("Rejected principal update", principal=path)
        msg = "Permission denied to modify LDAP-backed principal"
        raise PermissionDeniedError(msg)

    def set_group_member_set(
        self, principal: str, members: Sequence[str]
    ) -> NoReturn:
        """Reject any change to group membership.

        Raises
        ------
        PermissionDeniedError
            Always raised.
        """
        self._logger.info("Rejected group member update", principal=principal)
        msg = "Permission denied to modify LDAP-backed principal"
        raise PermissionDeniedError(msg)

    async def _get_principals(
        self,
        search_properties: Mapping[str, str] | None = None,
        test: FilterTest | str | None = FilterTest.anyof,
    ) -> list[Principal]:
        """List every visible user and group matching a search.

        Groups are collected first and then overwritten by users of the same
        name.
        """
        principals: dict[str, Principal] = {}
        groups = await self._groups.search(
            search_properties, test, self._allowed_groups
        )
        for group in groups:
            principals[group.name] = group.to_principal()
        users = await self._users.search(
            search_properties, test, self._allowed_groups
        )
        for user in users:
            principals[user.uid] = user.to_principal()
        return list(principals.values())

    async def _get_principal(
        self,
        name: str,
        search_properties: Mapping[str, str] | None = None,
        test: FilterTest | str | None = FilterTest.anyof,
    ) -> Principal | None:
        user = await self._users.get(
            name, search_properties, test, self._allowed_groups
        )
        if user:
            return user.to_principal()
        group = await self._groups.get(
            name, search_properties, test, self._allowed_groups
        )
        return group.to_principal() if group else None

    async def _get_principal_children(
        self,
        name: str,
        search_properties: Mapping[str, str] | None = None,
        test: FilterTest | str | None = FilterTest.anyof,
    ) -> list[Principal]:
        parent = await self._get_principal(name, search_properties, test)
        if not parent:
            return []
        return [Principal(uri=f"{parent.uri}/{c}") for c in PROXY_CHILDREN]

    async def _get_principal_child(
        self,
        name: str,
        child: str,
        search_properties: Mapping[str, str] | None = None,
        test: FilterTest | str | None = FilterTest.anyof,
    ) -> Principal | None:
        if child not in PROXY_CHILDREN:
            return None
        parent = await self._get_principal(name, search_properties, test)
        if not parent:
            return None
        return Principal(uri=f"{parent.uri}/{child}")
