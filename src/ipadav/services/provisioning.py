"""Default collections for users on first login."""

from __future__ import annotations

from abc import ABCMeta, abstractmethod
from collections.abc import Mapping

from structlog.stdlib import BoundLogger

from ..config import CollectionConfig
from ..constants import DISPLAYNAME_PROPERTY

__all__ = [
    "AddressBookBackend",
    "CalendarBackend",
    "ProvisioningService",
]


class CalendarBackend(metaclass=ABCMeta):
    """Interface to the calendar storage of the DAV server."""

    @abstractmethod
    async def get_calendars_for_user(self, principal_uri: str) -> list[str]:
        """List the calendars owned by a principal.

        Parameters
        ----------
        principal_uri
            Principal URI, such as ``principals/joe``.

        Returns
        -------
        list of str
            Names of the calendars of that principal.
        """

    @abstractmethod
    async def create_calendar(
        self, principal_uri: str, name: str, properties: Mapping[str, str]
    ) -> None:
        """Create a calendar for a principal.

        Parameters
        ----------
        principal_uri
            Principal URI of the owner.
        name
            Last path component of the new calendar.
        properties
            Initial DAV properties of the calendar.
        """


class AddressBookBackend(metaclass=ABCMeta):
    """Interface to the address book storage of the DAV server."""

    @abstractmethod
    async def get_address_books_for_user(
        self, principal_uri: str
    ) -> list[str]:
        """List the address books owned by a principal.

        Parameters
        ----------
        principal_uri
            Principal URI, such as ``principals/joe``.

        Returns
        -------
        list of str
            Names of the address books of that principal.
        """

    @abstractmethod
    async def create_address_book(
        self, principal_uri: str, name: str, properties: Mapping[str, str]
    ) -> None:
        """Create an address book for a principal.

        Parameters
        ----------
        principal_uri
            Principal URI of the owner.
        name
            Last path component of the new address book.
        properties
            Initial DAV properties of the address book.
        """


class ProvisioningService:
    """Create a default calendar and address book for new users.

    A collection is only created when the user has none of that kind, so
    running this on every login is harmless.

    Parameters
    ----------
    calendar_backend
        Calendar storage.
    address_book_backend
        Address book storage.
    default_calendar
        Name and description of the calendar to create.
    default_address_book
        Name and description of the address book to create.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        calendar_backend: CalendarBackend,
        address_book_backend: AddressBookBackend,
        default_calendar: CollectionConfig,
        default_address_book: CollectionConfig,
        logger: BoundLogger,
    ) -> None:
        self._calendars = calendar_backend
        self._address_books = address_book_backend
        self._default_calendar = default_calendar
        self._default_address_book = default_address_book
        self._logger = logger

    async def ensure_defaults(self, principal_uri: str) -> None:
        """Create the default collections of a principal if it has none.

        Parameters
        ----------
        principal_uri
            Principal URI of the user, such as ``principals/joe``.
        """
        logger = self._logger.bind(principal=principal_uri)

        if not await self._calendars.get_calendars_for_user(principal_uri):
            config = self._default_calendar
            properties = {DISPLAYNAME_PROPERTY: config.description}
            await self._calendars.create_calendar(
                principal_uri, config.name, properties
            )
            logger.info("Created default calendar", calendar=config.name)

        books = await self._address_books.get_address_books_for_user(
            principal_uri
        )
        if not books:
            config = self._default_address_book
            properties = {DISPLAYNAME_PROPERTY: config.description}
            await self._address_books.create_address_book(
                principal_uri, config.name, properties
            )
            logger.info(
                "Created default address book", address_book=config.name
            )
