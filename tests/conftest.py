"""Test fixtures."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator

import pytest
import pytest_asyncio
import structlog
from structlog.stdlib import BoundLogger

from ipadav.config import Config
from ipadav.factory import Factory
from ipadav.storage.directory import DirectoryConnection

from .support.config import configure
from .support.ldap import MockLDAP, patch_ldap
from .support.provisioning import MockAddressBookBackend, MockCalendarBackend


@pytest.fixture(autouse=True)
def environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Clear environment variables that would override test settings."""
    for variable in (
        "IPADAV_CONFIG_PATH",
        "IPADAV_LDAP_PASSWORD",
        "IPADAV_LDAP_URL",
        "IPADAV_LOG_LEVEL",
        "IPADAV_LOG_PROFILE",
    ):
        monkeypatch.delenv(variable, raising=False)


@pytest.fixture
def config() -> Config:
    """Set up and return the default test configuration."""
    return configure("base")


@pytest.fixture
def logger(config: Config) -> BoundLogger:
    return structlog.get_logger("ipadav")


@pytest.fixture
def mock_ldap() -> Iterator[MockLDAP]:
    """Replace the bonsai LDAP API with a mock holding the test directory."""
    for mock in patch_ldap():
        mock.add_test_directory()
        yield mock


@pytest_asyncio.fixture
async def factory(
    config: Config, mock_ldap: MockLDAP
) -> AsyncIterator[Factory]:
    """Return a component factory connected to the mock directory."""
    async with Factory.standalone(config) as factory:
        yield factory


@pytest.fixture
def directory(factory: Factory) -> DirectoryConnection:
    return factory.directory


@pytest.fixture
def calendar_backend() -> MockCalendarBackend:
    return MockCalendarBackend()


@pytest.fixture
def address_book_backend() -> MockAddressBookBackend:
    return MockAddressBookBackend()
