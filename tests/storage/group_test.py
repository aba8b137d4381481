"""Tests for the group storage layer."""

from __future__ import annotations

import pytest

from ipadav.constants import DISPLAYNAME_PROPERTY, EMAIL_ADDRESS_PROPERTY
from ipadav.exceptions import UnknownPropertyError
from ipadav.factory import Factory
from ipadav.models.directory import Group


@pytest.mark.asyncio
async def test_search(factory: Factory) -> None:
    group_store = factory.create_group_store()
    allowed = ["dav-access"]

    groups = await group_store.search(allowed_groups=allowed)
    assert groups == [
        Group(name="dav-access", description="DAV access"),
        Group(name="accounting", description="Accounting"),
        Group(name="human-resources", description="Human Resources"),
    ]

    search = {DISPLAYNAME_PROPERTY: "HUMAN"}
    groups = await group_store.search(search, allowed_groups=allowed)
    assert [g.name for g in groups] == ["human-resources"]

    # Groups have no email addresses.
    search = {EMAIL_ADDRESS_PROPERTY: "example.com"}
    assert await group_store.search(search, allowed_groups=allowed) == []

    # A nested allowed group only shows itself.
    groups = await group_store.search(allowed_groups=["accounting"])
    assert [g.name for g in groups] == ["accounting"]

    groups = await group_store.search()
    assert [g.name for g in groups] == [
        "dav-access",
        "accounting",
        "human-resources",
        "admins",
    ]
    assert groups[3].description == "admins"

    with pytest.raises(UnknownPropertyError):
        await group_store.search({"{DAV:}owner": "x"})


@pytest.mark.asyncio
async def test_get(factory: Factory) -> None:
    group_store = factory.create_group_store()
    allowed = ["dav-access"]

    group = await group_store.get("accounting", allowed_groups=allowed)
    assert group == Group(name="accounting", description="Accounting")
    assert await group_store.get("dav-access", allowed_groups=allowed)
    assert await group_store.get("admins", allowed_groups=allowed) is None
    assert await group_store.get("benedict", allowed_groups=allowed) is None
    assert await group_store.get("admins") == Group(
        name="admins", description="admins"
    )

    search = {DISPLAYNAME_PROPERTY: "count"}
    assert await group_store.get("accounting", search, "anyof", allowed)
    group = await group_store.get("dav-access", search, "anyof", allowed)
    assert group is None


@pytest.mark.asyncio
async def test_get_member_principals(factory: Factory) -> None:
    group_store = factory.create_group_store()
    accounting = await group_store.get("accounting")
    dav_access = await group_store.get("dav-access")
    admins = await group_store.get("admins")
    assert accounting
    assert dav_access
    assert admins

    members = await group_store.get_member_principals(
        accounting, ["dav-access"]
    )
    assert members == ["principals/benedict", "principals/michael"]

    members = await group_store.get_member_principals(
        dav_access, ["dav-access"]
    )
    assert members == [
        "principals/benedict",
        "principals/leo",
        "principals/michael",
        "principals/nomail",
    ]

    # Members must also belong to the allowed groups.
    members = await group_store.get_member_principals(
        dav_access, ["human-resources"]
    )
    assert members == ["principals/leo"]
    members = await group_store.get_member_principals(admins, ["dav-access"])
    assert members == []
    members = await group_store.get_member_principals(admins)
    assert members == ["principals/outsider"]
