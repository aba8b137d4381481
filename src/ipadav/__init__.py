"""FreeIPA directory integration for CalDAV and CardDAV servers."""

from importlib.metadata import PackageNotFoundError, version

__version__: str
"""The version string of ipadav (PEP 440 / SemVer compatible)."""

try:
    __version__ = version("ipadav")
except PackageNotFoundError:
    # package is not installed
    __version__ = "0.0.0"
