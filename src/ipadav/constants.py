"""Constants for ipadav."""

__all__ = [
    "CONFIG_PATH",
    "CONFIG_PATH_ENV",
    "DISPLAYNAME_PROPERTY",
    "EMAIL_ADDRESS_PROPERTY",
    "GROUP_ATTRIBUTES",
    "GROUP_CONTAINER",
    "GROUP_FIELD_MAP",
    "GROUP_OBJECT_CLASS",
    "LDAP_TIMEOUT",
    "PRINCIPAL_PREFIX",
    "PRINCIPAL_ROOT",
    "PROXY_CHILDREN",
    "USER_ATTRIBUTES",
    "USER_CONTAINER",
    "USER_FIELD_MAP",
    "USER_OBJECT_CLASS",
]

CONFIG_PATH = "/etc/ipadav/ipadav.yaml"
"""Default configuration path."""

CONFIG_PATH_ENV = "IPADAV_CONFIG_PATH"
"""Environment variable that overrides the default configuration path."""

LDAP_TIMEOUT = 5.0
"""Timeout (in seconds) for LDAP connections and queries."""

DISPLAYNAME_PROPERTY = "{DAV:}displayname"
"""Protocol property holding the display name of a principal."""

EMAIL_ADDRESS_PROPERTY = "{http://sabredav.org/ns}email-address"
"""Protocol property holding the email address of a principal."""

PRINCIPAL_ROOT = "principals"
"""First path segment of every principal path."""

PRINCIPAL_PREFIX = f"{PRINCIPAL_ROOT}/"
"""Prefix of the URI of every user and group principal."""

PROXY_CHILDREN = ("calendar-proxy-read", "calendar-proxy-write")
"""Names of the synthetic proxy principals beneath each principal."""

USER_CONTAINER = "cn=users,cn=accounts"
"""Container of user entries, relative to the base DN."""

USER_OBJECT_CLASS = "person"
"""Object class that every user entry carries."""

USER_ATTRIBUTES = ["uid", "displayName", "mail"]
"""Attributes retrieved for user entries."""

USER_FIELD_MAP = {
    DISPLAYNAME_PROPERTY: "displayname",
    EMAIL_ADDRESS_PROPERTY: "mail",
}
"""Mapping of searchable protocol properties to user attributes."""

GROUP_CONTAINER = "cn=groups,cn=accounts"
"""Container of group entries, relative to the base DN."""

GROUP_OBJECT_CLASS = "groupofnames"
"""Object class that every group entry carries."""

GROUP_ATTRIBUTES = ["cn", "description"]
"""Attributes retrieved for group entries."""

GROUP_FIELD_MAP = {
    DISPLAYNAME_PROPERTY: "description",
    EMAIL_ADDRESS_PROPERTY: "mail",
}
"""Mapping of searchable protocol properties to group attributes."""
