"""Tests for the directory connection."""

from __future__ import annotations

from unittest.mock import AsyncMock, Mock

import bonsai
import pytest
from structlog.stdlib import BoundLogger

from ipadav.constants import LDAP_TIMEOUT
from ipadav.exceptions import DirectoryConnectionError
from ipadav.storage.directory import DirectoryConnection, base_dn_from_realm

from ..support.config import configure
from ..support.ldap import MockLDAP, user_dn


def _client(mock_ldap: MockLDAP) -> Mock:
    client = Mock(spec=bonsai.LDAPClient)
    client.connect = AsyncMock(return_value=mock_ldap)
    return client


def test_base_dn_from_realm() -> None:
    assert base_dn_from_realm("IPA.EXAMPLE.COM") == "dc=ipa,dc=example,dc=com"
    assert base_dn_from_realm("EXAMPLE") == "dc=example"


@pytest.mark.asyncio
async def test_connect(logger: BoundLogger) -> None:
    config = configure("base")
    mock_ldap = MockLDAP()
    client = _client(mock_ldap)

    directory = await DirectoryConnection.connect(
        client, config.directory, logger
    )
    client.connect.assert_awaited_once_with(
        is_async=True, timeout=LDAP_TIMEOUT
    )
    assert directory.base_dn == "dc=example,dc=com"
    assert directory.realm == "EXAMPLE.COM"
    assert mock_ldap.queries == []

    await directory.aclose()
    assert mock_ldap.close_called


@pytest.mark.asyncio
async def test_discover_base_dn(logger: BoundLogger) -> None:
    config = configure("discover")
    mock_ldap = MockLDAP()
    mock_ldap.root_dse = {"defaultNamingContext": ["dc=ipa,dc=example,dc=org"]}

    directory = await DirectoryConnection.connect(
        _client(mock_ldap), config.directory, logger
    )
    assert directory.base_dn == "dc=ipa,dc=example,dc=org"
    assert directory.realm == "EXAMPLE.COM"
    assert mock_ldap.queries == [
        ("", bonsai.LDAPSearchScope.BASE, "(objectClass=*)")
    ]

    # Without a root DSE, the base DN is derived from the realm.
    mock_ldap = MockLDAP()
    directory = await DirectoryConnection.connect(
        _client(mock_ldap), config.directory, logger
    )
    assert directory.base_dn == "dc=example,dc=com"

    # Same if the root DSE cannot be read.
    mock_ldap = MockLDAP()
    mock_ldap.fail_queries = True
    directory = await DirectoryConnection.connect(
        _client(mock_ldap), config.directory, logger
    )
    assert directory.base_dn == "dc=example,dc=com"


@pytest.mark.asyncio
async def test_connect_failure(logger: BoundLogger) -> None:
    config = configure("base")
    client = Mock(spec=bonsai.LDAPClient)
    client.connect = AsyncMock(side_effect=bonsai.LDAPError("Can't bind"))

    with pytest.raises(DirectoryConnectionError) as excinfo:
        await DirectoryConnection.connect(client, config.directory, logger)
    assert "ldap://ipa.example.com" in str(excinfo.value)

    client.connect = AsyncMock(side_effect=TimeoutError())
    with pytest.raises(DirectoryConnectionError):
        await DirectoryConnection.connect(client, config.directory, logger)


@pytest.mark.asyncio
async def test_search(
    directory: DirectoryConnection, mock_ldap: MockLDAP
) -> None:
    assert directory.resolve_dn("uid=leo", "cn=users,cn=accounts") == (
        user_dn("leo")
    )

    entries = await directory.search(
        "cn=users,cn=accounts", "(mail=leo@example.com)", ["uid", "mail"]
    )
    assert len(entries) == 1
    assert entries[0].dn == user_dn("leo")
    assert entries[0].attributes == {
        "uid": ["leo"],
        "mail": ["leo@example.com"],
    }
    assert mock_ldap.queries[-1] == (
        "cn=users,cn=accounts,dc=example,dc=com",
        bonsai.LDAPSearchScope.SUB,
        "(mail=leo@example.com)",
    )

    # No container searches the whole tree, and no filter matches everything.
    entries = await directory.search()
    assert len(entries) == 9
    assert mock_ldap.queries[-1] == (
        "dc=example,dc=com",
        bonsai.LDAPSearchScope.SUB,
        "(objectClass=*)",
    )

    assert await directory.search("cn=users,cn=accounts", "(uid=nobody)") == []


@pytest.mark.asyncio
async def test_read_one(
    directory: DirectoryConnection, mock_ldap: MockLDAP
) -> None:
    entry = await directory.read_one(
        "uid=benedict,cn=users,cn=accounts", "(objectClass=person)", ["mail"]
    )
    assert entry
    assert entry.first("mail") == "benedict@example.com"
    assert entry.first("uid") is None
    assert mock_ldap.queries[-1][1] == bonsai.LDAPSearchScope.BASE

    # Entries that do not match the filter are not returned.
    entry = await directory.read_one(
        "uid=benedict,cn=users,cn=accounts", "(objectClass=groupofnames)"
    )
    assert entry is None

    # Nonexistent entries are not an error.
    assert await directory.read_one("uid=nobody,cn=users,cn=accounts") is None


@pytest.mark.asyncio
async def test_query_failure(
    directory: DirectoryConnection, mock_ldap: MockLDAP
) -> None:
    mock_ldap.fail_queries = True
    assert await directory.search("cn=users,cn=accounts") == []
    assert await directory.read_one("uid=leo,cn=users,cn=accounts") is None
