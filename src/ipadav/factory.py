"""Create ipadav components."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import aclosing, asynccontextmanager
from dataclasses import dataclass
from typing import Self

import structlog
from bonsai import LDAPClient
from structlog.stdlib import BoundLogger

from .config import Config
from .services.auth import AuthService
from .services.principal import PrincipalService
from .services.provisioning import (
    AddressBookBackend,
    CalendarBackend,
    ProvisioningService,
)
from .storage.directory import DirectoryConnection
from .storage.group import GroupStore
from .storage.user import UserStore

__all__ = ["Factory", "ProcessContext"]


@dataclass(frozen=True, slots=True)
class ProcessContext:
    """Per-process application context.

    Holds the directory connection, which is opened once per process and
    shared by every component.
    """

    config: Config
    """ipadav's configuration."""

    directory: DirectoryConnection
    """Bound connection to the directory server."""

    @classmethod
    async def from_config(cls, config: Config) -> Self:
        """Create a new process context from the ipadav configuration.

        Parameters
        ----------
        config
            The ipadav configuration.

        Returns
        -------
        ProcessContext
            Shared context for an ipadav process.

        Raises
        ------
        DirectoryConnectionError
            Raised if the directory server cannot be reached or the bind
            failed.
        """
        logger = structlog.get_logger("ipadav")
        ldap_config = config.directory
        client = LDAPClient(str(ldap_config.url), tls=ldap_config.start_tls)
        if ldap_config.user_dn and ldap_config.password:
            client.set_credentials(
                "SIMPLE",
                user=ldap_config.user_dn,
                password=ldap_config.password.get_secret_value(),
            )
        elif ldap_config.use_kerberos:
            client.set_credentials("GSSAPI")
        directory = await DirectoryConnection.connect(
            client, ldap_config, logger
        )
        return cls(config=config, directory=directory)

    async def aclose(self) -> None:
        """Clean up a process context.

        Called during shutdown, or before recreating the process context using
        a different configuration.
        """
        await self.directory.aclose()


class Factory:
    """Build ipadav components.

    Uses the contents of a `ProcessContext` to construct the components of the
    application on demand.

    Parameters
    ----------
    context
        Shared process context.
    logger
        Logger to use for errors.
    """

    @classmethod
    async def create(cls, config: Config) -> Self:
        """Create a component factory.

        If an async context manager can be used, call `standalone` rather than
        this method.

        Parameters
        ----------
        config
            ipadav configuration.

        Returns
        -------
        Factory
            Newly-created factory. The caller must call `aclose` on the
            returned object during shutdown.
        """
        logger = structlog.get_logger("ipadav")
        context = await ProcessContext.from_config(config)
        return cls(context, logger)

    @classmethod
    @asynccontextmanager
    async def standalone(cls, config: Config) -> AsyncIterator[Self]:
        """Async context manager for ipadav components.

        Parameters
        ----------
        config
            ipadav configuration.

        Yields
        ------
        Factory
            The factory. Must be used as an async context manager.

        Examples
        --------
        .. code-block:: python

           async with Factory.standalone(config) as factory:
               principal_service = factory.create_principal_service()
               principals = await principal_service.get_principals_by_prefix(
                   "principals"
               )
        """
        factory = await cls.create(config)
        async with aclosing(factory):
            yield factory

    def __init__(self, context: ProcessContext, logger: BoundLogger) -> None:
        self._context = context
        self._logger = logger

    @property
    def directory(self) -> DirectoryConnection:
        """Underlying directory connection, mainly for tests."""
        return self._context.directory

    async def aclose(self) -> None:
        """Shut down the factory.

        After this method is called, the factory object is no longer valid and
        must not be used.
        """
        await self._context.aclose()

    def create_auth_service(
        self, provisioning: ProvisioningService | None = None
    ) -> AuthService:
        """Create the service that checks logins.

        Parameters
        ----------
        provisioning
            Service to create default collections on login, if any.

        Returns
        -------
        AuthService
            Newly-created login service.
        """
        return AuthService(
            directory=self._context.directory,
            user_store=self.create_user_store(),
            provisioning=provisioning,
            allowed_groups=self._context.config.allowed_groups,
            logger=self._logger,
        )

    def create_group_store(self) -> GroupStore:
        """Create the storage layer for directory groups."""
        return GroupStore(self._context.directory, self._logger)

    def create_principal_service(self) -> PrincipalService:
        """Create the service that presents principals.

        Returns
        -------
        PrincipalService
            Newly-created principal service.
        """
        return PrincipalService(
            user_store=self.create_user_store(),
            group_store=self.create_group_store(),
            allowed_groups=self._context.config.allowed_groups,
            logger=self._logger,
        )

    def create_provisioning_service(
        self,
        calendar_backend: CalendarBackend,
        address_book_backend: AddressBookBackend,
    ) -> ProvisioningService:
        """Create the service that creates default collections.

        Parameters
        ----------
        calendar_backend
            Calendar storage of the DAV server.
        address_book_backend
            Address book storage of the DAV server.

        Returns
        -------
        ProvisioningService
            Newly-created provisioning service.
        """
        config = self._context.config
        return ProvisioningService(
            calendar_backend=calendar_backend,
            address_book_backend=address_book_backend,
            default_calendar=config.default_calendar,
            default_address_book=config.default_address_book,
            logger=self._logger,
        )

    def create_user_store(self) -> UserStore:
        """Create the storage layer for directory users."""
        return UserStore(self._context.directory, self._logger)

    def set_logger(self, logger: BoundLogger) -> None:
        """Replace the internal logger.

        Parameters
        ----------
        logger
            New logger.
        """
        self._logger = logger
