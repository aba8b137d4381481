"""Test configuration parsing."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError
from safir.logging import LogLevel, Profile

from ipadav.config import Config
from ipadav.constants import CONFIG_PATH
from ipadav.dependencies.config import ConfigDependency

from .support.config import config_path


def parse_config(path: Path) -> Config:
    """Parse the configuration file and see if any exceptions are thrown.

    Parameters
    ----------
    path
        The path to the configuration file to test.
    """
    with path.open("r") as f:
        return Config.model_validate(yaml.safe_load(f))


def test_config_defaults() -> None:
    config = parse_config(config_path("base"))
    assert str(config.directory.url) == "ldap://ipa.example.com/"
    assert config.directory.realm == "EXAMPLE.COM"
    assert config.directory.resolved_realm == "EXAMPLE.COM"
    assert config.directory.base_dn == "dc=example,dc=com"
    assert config.directory.start_tls
    assert not config.directory.use_kerberos
    assert config.directory.user_dn is None
    assert config.directory.password is None
    assert config.allowed_groups == ["dav-access"]
    assert config.default_calendar.name == "personal"
    assert config.default_calendar.description == "Personal"
    assert config.default_address_book.name == "personal"
    assert config.log_level == LogLevel.INFO
    assert config.profile == Profile.production


def test_config_full() -> None:
    config = parse_config(config_path("simple-bind"))
    assert config.log_level == LogLevel.DEBUG
    assert config.directory.use_kerberos
    assert config.directory.user_dn == (
        "uid=ipadav,cn=sysaccounts,cn=etc,dc=example,dc=com"
    )
    assert config.allowed_groups == ["dav-access", "admins"]
    assert config.default_calendar.name == "default"
    assert config.default_calendar.description == "My Calendar"
    assert config.default_address_book.name == "contacts"
    assert config.default_address_book.description == "My Contacts"


def test_config_realm_from_domain() -> None:
    config = parse_config(config_path("discover"))
    assert config.directory.realm is None
    assert config.directory.domain == "example.com"
    assert config.directory.resolved_realm == "EXAMPLE.COM"
    assert config.directory.base_dn is None
    assert not config.directory.start_tls
    assert config.allowed_groups == ["dav-access"]

    config = parse_config(config_path("open"))
    assert config.allowed_groups == []


def test_config_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("IPADAV_LDAP_PASSWORD", "some-password")
    monkeypatch.setenv("IPADAV_LOG_LEVEL", "WARNING")
    monkeypatch.setenv("IPADAV_LOG_PROFILE", "development")
    config = Config.from_file(config_path("simple-bind"))
    assert config.directory.password
    assert config.directory.password.get_secret_value() == "some-password"
    assert config.log_level == LogLevel.WARNING
    assert config.profile == Profile.development


def test_config_invalid() -> None:
    with pytest.raises(ValidationError, match="One of realm or domain"):
        parse_config(config_path("no-realm"))
    with pytest.raises(ValidationError, match="invalid collection name"):
        parse_config(config_path("bad-collection"))
    with pytest.raises(ValidationError, match="logLevel"):
        parse_config(config_path("bad-log-level"))
    with pytest.raises(ValidationError):
        parse_config(config_path("bad-url"))


def test_config_dependency(monkeypatch: pytest.MonkeyPatch) -> None:
    dependency = ConfigDependency()
    assert dependency.config_path == Path(CONFIG_PATH)

    monkeypatch.setenv("IPADAV_CONFIG_PATH", str(config_path("base")))
    assert dependency.config_path == config_path("base")
    config = dependency.config()
    assert config.allowed_groups == ["dav-access"]
    assert dependency.config() is config

    config = dependency.set_config_path(config_path("open"))
    assert dependency.config_path == config_path("open")
    assert dependency.config() is config
    assert config.allowed_groups == []

    # A bad file leaves the previous configuration in place.
    with pytest.raises(ValidationError):
        dependency.set_config_path(config_path("no-realm"))
    assert dependency.config() is config

    dependency.clear()
    assert dependency.config_path == config_path("base")
    assert dependency.config().allowed_groups == ["dav-access"]
