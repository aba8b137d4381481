"""Directory (LDAP) connection for ipadav."""

from __future__ import annotations

import asyncio
from typing import Any, Self

import bonsai
from bonsai import LDAPClient, LDAPSearchScope
from structlog.stdlib import BoundLogger

from ..config import DirectoryConfig
from ..constants import LDAP_TIMEOUT
from ..exceptions import DirectoryConnectionError
from ..models.directory import DirectoryEntry

__all__ = ["DirectoryConnection", "base_dn_from_realm"]

_MATCH_ALL = "(objectClass=*)"


def base_dn_from_realm(realm: str) -> str:
    """Guess the base DN from a Kerberos realm.

    For example, ``IPA.EXAMPLE.COM`` becomes ``dc=ipa,dc=example,dc=com``.
    """
    return ",".join(f"dc={c}" for c in realm.lower().split("."))


class DirectoryConnection:
    """A single bound session to the directory server.

    All searches are relative to the base DN. The connection is meant to be
    created once per process and shared by every store. Operations are
    serialized, since the underlying connection cannot run several requests
    at once.

    Query failures are not raised. They are logged and reported as an empty
    result, which callers treat the same as an entry that does not exist or
    that the current allowed groups do not permit.

    Parameters
    ----------
    conn
        Bound bonsai connection.
    base_dn
        Base DN of the directory.
    realm
        Kerberos realm of the identity domain.
    logger
        Logger for debug messages and errors.
    """

    def __init__(
        self,
        conn: bonsai.LDAPConnection,
        *,
        base_dn: str,
        realm: str,
        logger: BoundLogger,
    ) -> None:
        self._conn = conn
        self._base_dn = base_dn
        self._realm = realm
        self._logger = logger
        self._lock = asyncio.Lock()

    @classmethod
    async def connect(
        cls, client: LDAPClient, config: DirectoryConfig, logger: BoundLogger
    ) -> Self:
        """Open and bind a connection, discovering the base DN if needed.

        Parameters
        ----------
        client
            bonsai client with the server URL and credentials set.
        config
            Directory configuration.
        logger
            Logger to use.

        Returns
        -------
        DirectoryConnection
            The bound connection.

        Raises
        ------
        DirectoryConnectionError
            Raised if the connection or bind failed.
        """
        logger = logger.bind(ldap_url=str(config.url))
        try:
            conn = await client.connect(is_async=True, timeout=LDAP_TIMEOUT)
        except (bonsai.LDAPError, TimeoutError) as e:
            logger.exception("Cannot connect to LDAP server", error=str(e))
            msg = f"Cannot connect to LDAP server {config.url}: {e!s}"
            raise DirectoryConnectionError(msg) from e
        realm = config.resolved_realm
        base_dn = config.base_dn
        if not base_dn:
            base_dn = await cls._discover_base_dn(conn, realm, logger)
        logger.info("Connected to LDAP server", base_dn=base_dn, realm=realm)
        return cls(conn, base_dn=base_dn, realm=realm, logger=logger)

    @staticmethod
    async def _discover_base_dn(
        conn: bonsai.LDAPConnection, realm: str, logger: BoundLogger
    ) -> str:
        """Read the base DN from the root DSE, falling back on the realm."""
        try:
            results = await conn.search(
                base="",
                scope=LDAPSearchScope.BASE,
                filter_exp=_MATCH_ALL,
                attrlist=["defaultNamingContext"],
                timeout=LDAP_TIMEOUT,
            )
        except (bonsai.LDAPError, TimeoutError) as e:
            logger.warning("Cannot read root DSE", error=str(e))
            results = []
        if len(results) == 1:
            contexts = _to_entry(results[0]).values("defaultNamingContext")
            if len(contexts) == 1:
                return contexts[0]
        base_dn = base_dn_from_realm(realm)
        logger.debug("Guessed base DN from realm", base_dn=base_dn)
        return base_dn

    @property
    def base_dn(self) -> str:
        """Base DN under which all searches run."""
        return self._base_dn

    @property
    def realm(self) -> str:
        """Kerberos realm of the identity domain."""
        return self._realm

    def resolve_dn(self, *components: str) -> str:
        """Turn DN components relative to the base DN into a full DN.

        For example, ``resolve_dn("uid=joe", "cn=users,cn=accounts")`` returns
        ``uid=joe,cn=users,cn=accounts,dc=example,dc=com``.
        """
        return ",".join([*components, self._base_dn])

    async def search(
        self,
        container: str | None = None,
        filter_exp: str | None = None,
        attributes: list[str] | None = None,
    ) -> list[DirectoryEntry]:
        """Search a subtree of the directory.

        Parameters
        ----------
        container
            Container relative to the base DN, such as
            ``cn=users,cn=accounts``. Searches the whole directory if not
            given.
        filter_exp
            Search filter. An empty filter matches every entry.
        attributes
            Attributes to retrieve.

        Returns
        -------
        list of DirectoryEntry
            Matching entries, empty if nothing matched or the search failed.
        """
        base = self.resolve_dn(container) if container else self._base_dn
        return await self._query(
            base, LDAPSearchScope.SUB, filter_exp, attributes
        )

    async def read_one(
        self,
        relative_dn: str | None = None,
        filter_exp: str | None = None,
        attributes: list[str] | None = None,
    ) -> DirectoryEntry | None:
        """Read a single entry if it matches a filter.

        Parameters
        ----------
        relative_dn
            DN of the entry relative to the base DN.
        filter_exp
            Filter the entry must match. An empty filter matches any entry.
        attributes
            Attributes to retrieve.

        Returns
        -------
        DirectoryEntry or None
            The entry, or `None` if it does not exist, does not match the
            filter, or the read failed.
        """
        base = self.resolve_dn(relative_dn) if relative_dn else self._base_dn
        results = await self._query(
            base, LDAPSearchScope.BASE, filter_exp, attributes
        )
        return results[0] if results else None

    async def aclose(self) -> None:
        """Close the connection.

        The object must not be used after this has been called.
        """
        async with self._lock:
            self._conn.close()

    async def _query(
        self,
        base: str,
        scope: LDAPSearchScope,
        filter_exp: str | None,
        attributes: list[str] | None,
    ) -> list[DirectoryEntry]:
        filter_exp = filter_exp or _MATCH_ALL
        attrlist = attributes or []
        logger = self._logger.bind(
            ldap_attrs=attrlist, ldap_base=base, ldap_search=filter_exp
        )
        try:
            async with self._lock:
                logger.debug("Querying LDAP")
                results = await self._conn.search(
                    base=base,
                    scope=scope,
                    filter_exp=filter_exp,
                    attrlist=attrlist,
                    timeout=LDAP_TIMEOUT,
                )
        except bonsai.NoSuchObjectError:
            logger.debug("LDAP entry does not exist")
            return []
        except (bonsai.LDAPError, TimeoutError) as e:
            logger.error("Cannot query LDAP", error=str(e))
            return []
        entries = [_to_entry(r) for r in results]
        logger.debug("LDAP entries found", count=len(entries))
        return entries


def _to_entry(result: Any) -> DirectoryEntry:
    """Convert a bonsai search result to a `DirectoryEntry`."""
    attributes = {}
    for key, values in result.items():
        if key.lower() == "dn":
            continue
        attributes[key.lower()] = [
            v.decode() if isinstance(v, bytes) else str(v) for v in values
        ]
    return DirectoryEntry(dn=str(result.dn), attributes=attributes)
