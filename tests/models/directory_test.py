"""Tests for directory entry models."""

from __future__ import annotations

import pytest

from ipadav.constants import DISPLAYNAME_PROPERTY, EMAIL_ADDRESS_PROPERTY
from ipadav.exceptions import InvalidEntryError
from ipadav.models.directory import DirectoryEntry, Group, Principal, User


def test_user_from_entry() -> None:
    entry = DirectoryEntry(
        dn="uid=joe,cn=users,cn=accounts,dc=example,dc=com",
        attributes={
            "uid": ["joe"],
            "displayname": ["Joe User"],
            "mail": ["joe@example.com", "joe.user@example.com"],
        },
    )
    user = User.from_entry(entry)
    assert user == User(
        uid="joe", display_name="Joe User", email="joe@example.com"
    )
    assert user.principal_uri == "principals/joe"
    assert user.to_principal().to_dict() == {
        "uri": "principals/joe",
        DISPLAYNAME_PROPERTY: "Joe User",
        EMAIL_ADDRESS_PROPERTY: "joe@example.com",
    }

    # The display name falls back on the username.
    del entry.attributes["displayname"]
    assert User.from_entry(entry).display_name == "joe"


def test_user_invalid() -> None:
    dn = "uid=joe,cn=users,cn=accounts,dc=example,dc=com"
    entry = DirectoryEntry(dn=dn, attributes={"uid": ["joe"]})
    with pytest.raises(InvalidEntryError) as excinfo:
        User.from_entry(entry)
    assert str(excinfo.value) == f"Entry has no mail ({dn})"
    assert excinfo.value.dn == dn

    entry = DirectoryEntry(dn=dn, attributes={"mail": ["joe@example.com"]})
    with pytest.raises(InvalidEntryError):
        User.from_entry(entry)


def test_group_from_entry() -> None:
    entry = DirectoryEntry(
        dn="cn=staff,cn=groups,cn=accounts,dc=example,dc=com",
        attributes={"cn": ["staff"], "description": ["All staff"]},
    )
    group = Group.from_entry(entry)
    assert group == Group(name="staff", description="All staff")
    assert group.to_principal() == Principal(
        uri="principals/staff", display_name="All staff"
    )
    assert group.to_principal().to_dict() == {
        "uri": "principals/staff",
        DISPLAYNAME_PROPERTY: "All staff",
    }

    entry = DirectoryEntry(dn=entry.dn, attributes={"cn": ["staff"]})
    assert Group.from_entry(entry).description == "staff"

    with pytest.raises(InvalidEntryError):
        Group.from_entry(DirectoryEntry(dn=entry.dn))


def test_relative_dn() -> None:
    assert User.relative_dn("joe") == "uid=joe,cn=users,cn=accounts"
    assert Group.relative_dn("staff") == "cn=staff,cn=groups,cn=accounts"

    # Values that would change the DN structure are escaped.
    dn = User.relative_dn("joe,cn=admins")
    assert dn.endswith(",cn=users,cn=accounts")
    assert not dn.startswith("uid=joe,cn=admins,")


def test_entry_access() -> None:
    entry = DirectoryEntry(
        dn="cn=x", attributes={"memberof": ["cn=a", "cn=b"]}
    )
    assert entry.first("memberOf") == "cn=a"
    assert entry.values("MEMBEROF") == ["cn=a", "cn=b"]
    assert entry.first("mail") is None
    assert entry.values("mail") == []
    assert Principal(uri="principals/x/calendar-proxy-read").to_dict() == {
        "uri": "principals/x/calendar-proxy-read"
    }
