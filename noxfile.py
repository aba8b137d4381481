"""nox configuration for ipadav."""

import nox
from nox_uv import session

nox.options.sessions = ["typing", "test-coverage", "coverage-report"]
nox.options.default_venv_backend = "uv"
nox.options.reuse_existing_virtualenvs = True

# Paths checked by mypy, relative to the project root.
TYPED_PATHS = ["noxfile.py", "src", "tests"]


def _pytest(session: nox.Session, *args: str) -> None:
    session.run("pytest", *args, *session.posargs)


@session(uv_groups=["dev"])
def test(session: nox.Session) -> None:
    """Run the test suite."""
    _pytest(session)


@session(name="test-coverage", uv_groups=["dev"])
def test_coverage(session: nox.Session) -> None:
    """Run the test suite, recording branch coverage of the package."""
    _pytest(session, "--cov=ipadav", "--cov-branch", "--cov-report=")


@session(name="coverage-report", uv_groups=["dev"])
def coverage_report(session: nox.Session) -> None:
    """Report the coverage recorded by ``test-coverage``."""
    session.run("coverage", "report", "--show-missing", *session.posargs)


@session(uv_groups=["dev", "typing"])
def typing(session: nox.Session) -> None:
    """Type-check the package, its tests, and this file."""
    session.run(
        "mypy", *session.posargs, *TYPED_PATHS, env={"MYPYPATH": "src"}
    )
