"""Configuration for ipadav.

ipadav is configured by a YAML file whose keys use camel case. A few settings,
mostly secrets, may instead be injected via environment variables. Only the
settings with explicit ``validation_alias`` settings support configuration via
environment variable.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Annotated, Self, override

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    UrlConstraints,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_core import Url
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)
from safir.logging import LogLevel, Profile, configure_logging

LdapDsn = Annotated[
    Url, UrlConstraints(allowed_schemes=["ldap", "ldaps"], host_required=True)
]
"""DSN for connecting to an LDAP server."""

__all__ = [
    "CamelCaseSettings",
    "CollectionConfig",
    "Config",
    "DirectoryConfig",
    "EnvFirstSettings",
    "LdapDsn",
]


class CamelCaseSettings(BaseSettings):
    """Base class for Pydantic settings supporting camel-case.

    This base class also forbids all extra attributes. It should be used as
    the base class (possibly indirectly) for all ipadav configuration models
    that support environment variable overrides.
    """

    model_config = SettingsConfigDict(
        alias_generator=to_camel, extra="forbid", populate_by_name=True
    )


class EnvFirstSettings(CamelCaseSettings):
    """Base class for Pydantic settings with environment overrides.

    Classes that inherit from this base class will prioritize environment
    variables over arguments to the class constructor.
    """

    @override
    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Override the sources of settings.

        Deactivate :file:`.env` and secret file support. Allow environment
        variables to override init parameters, since init parameters come
        from the YAML configuration file and we want environment variables to
        take precedent.
        """
        return (env_settings, init_settings)


class DirectoryConfig(EnvFirstSettings):
    """Configuration for the FreeIPA directory server."""

    url: LdapDsn = Field(
        ...,
        title="LDAP server URL",
        description="URL of the LDAP server of the identity domain",
        validation_alias=AliasChoices("IPADAV_LDAP_URL", "url"),
    )

    domain: str | None = Field(
        None,
        title="Identity domain",
        description=(
            "DNS domain of the identity domain. Only used to derive the"
            " Kerberos realm if ``realm`` is not set."
        ),
    )

    realm: str | None = Field(
        None,
        title="Kerberos realm",
        description=(
            "Kerberos realm of the identity domain. Logins from principals in"
            " any other realm are rejected. Defaults to ``domain`` in upper"
            " case."
        ),
    )

    base_dn: str | None = Field(
        None,
        title="Base DN",
        description=(
            "Base DN of the directory. If not set, it is read from the"
            " ``defaultNamingContext`` attribute of the root DSE, or, failing"
            " that, derived from the realm."
        ),
    )

    start_tls: bool = Field(
        True,
        title="Whether to use STARTTLS",
        description="Upgrade ``ldap`` connections to TLS with STARTTLS",
    )

    use_kerberos: bool = Field(
        True,
        title="Whether to bind with GSS-API",
        description=(
            "If set to true, authenticate to LDAP with Kerberos GSS-API using"
            " the credentials in the environment. If ``user_dn`` and"
            " ``password`` are both set, simple binds take precedence."
        ),
    )

    user_dn: str | None = Field(
        None,
        title="Simple bind DN for LDAP queries",
        description=(
            "DN of user to bind as with simple bind when querying the LDAP"
            " server. If neither this nor ``use_kerberos`` are set, ipadav"
            " will do an anonymous bind."
        ),
    )

    password: SecretStr | None = Field(
        None,
        title="Simple bind password",
        description=(
            "Password for simple bind authentication to the LDAP server."
            " Only used if ``user_dn`` is set."
        ),
        validation_alias="IPADAV_LDAP_PASSWORD",
    )

    @field_validator("realm", "domain", "base_dn", mode="before")
    @classmethod
    def _validate_optional_string(cls, v: str | None) -> str | None:
        return v or None

    @model_validator(mode="after")
    def _validate_realm(self) -> Self:
        if not self.realm and not self.domain:
            raise ValueError("One of realm or domain must be set")
        return self

    @property
    def resolved_realm(self) -> str:
        """Kerberos realm, derived from the domain if not set explicitly."""
        if self.realm:
            return self.realm
        # The model validator guarantees one of them is set, but mypy can't
        # tell.
        if not self.domain:
            raise RuntimeError("Neither realm nor domain is set")
        return self.domain.upper()


class CollectionConfig(BaseModel):
    """Name and description of a collection created on first login."""

    model_config = ConfigDict(
        alias_generator=to_camel, extra="forbid", populate_by_name=True
    )

    name: str = Field(
        "personal",
        title="Collection name",
        description="Last path component of the collection URI",
        min_length=1,
    )

    description: str = Field(
        "Personal",
        title="Collection description",
        description="Display name of the collection",
    )

    @field_validator("name")
    @classmethod
    def _validate_name(cls, v: str) -> str:
        if not re.match(r"^[^/]+$", v):
            raise ValueError(f"invalid collection name {v}")
        return v


class Config(EnvFirstSettings):
    """Configuration for ipadav."""

    log_level: LogLevel = Field(
        LogLevel.INFO,
        title="Logging level",
        description="Python logging level",
        validation_alias=AliasChoices("IPADAV_LOG_LEVEL", "logLevel"),
    )

    profile: Profile = Field(
        Profile.production,
        title="Logging profile",
        description=(
            "Logging profile, either ``production`` for JSON logs or"
            " ``development`` for human-readable logs"
        ),
        validation_alias=AliasChoices("IPADAV_LOG_PROFILE", "profile"),
    )

    directory: DirectoryConfig = Field(
        ...,
        title="Directory configuration",
        description="How to connect to the FreeIPA directory",
    )

    allowed_groups: list[str] = Field(
        [],
        title="Allowed groups",
        description=(
            "Only members of these groups (directly or through nested groups)"
            " may log in, and only they and the groups nested in these groups"
            " are visible as principals. If empty, every user and group is"
            " visible, which is expensive and rarely desirable."
        ),
    )

    default_calendar: CollectionConfig = Field(
        CollectionConfig(),
        title="Default calendar",
        description="Calendar created for a user on first login",
    )

    default_address_book: CollectionConfig = Field(
        CollectionConfig(),
        title="Default address book",
        description="Address book created for a user on first login",
    )

    @classmethod
    def from_file(cls, path: Path) -> Self:
        """Construct a Config object from a configuration file.

        Parameters
        ----------
        path
            Path to the configuration file in YAML.

        Returns
        -------
        Config
            The corresponding `Config` object.
        """
        with path.open("r") as f:
            return cls.model_validate(yaml.safe_load(f))

    def configure_logging(self) -> None:
        """Configure logging based on the ipadav configuration."""
        configure_logging(
            name="ipadav", profile=self.profile, log_level=self.log_level
        )
