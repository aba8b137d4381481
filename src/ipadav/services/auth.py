"""Login checks for externally authenticated users."""

from __future__ import annotations

from collections.abc import Sequence
from typing import NamedTuple

from structlog.stdlib import BoundLogger

from ..constants import PRINCIPAL_PREFIX
from ..models.enums import LoginState
from ..storage.directory import DirectoryConnection
from ..storage.user import UserStore
from .provisioning import ProvisioningService

__all__ = ["AuthResult", "AuthService"]


class AuthResult(NamedTuple):
    """Outcome of a login check."""

    success: bool
    """Whether the login is allowed."""

    detail: str
    """Principal URI on success, otherwise a reason for the failure."""


class AuthService:
    """Decide whether an authenticated identity may use the DAV server.

    Authentication itself happens in front of the DAV server (for example
    with Kerberos in the web server), which passes on the identity it
    established. This service only checks that the identity belongs to the
    right realm and that the user is a member of one of the allowed groups,
    and then creates the user's default collections.

    The same failure is returned whether the user does not exist or is not
    in an allowed group.

    Parameters
    ----------
    directory
        Directory connection, used for the configured realm.
    user_store
        Storage for directory users.
    provisioning
        Creates default collections on login. If not given, nothing is
        created.
    allowed_groups
        Only members of these groups may log in.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        directory: DirectoryConnection,
        user_store: UserStore,
        provisioning: ProvisioningService | None,
        allowed_groups: Sequence[str],
        logger: BoundLogger,
    ) -> None:
        self._directory = directory
        self._users = user_store
        self._provisioning = provisioning
        self._logger = logger
        self.set_allowed_groups(allowed_groups)

    def set_allowed_groups(self, allowed_groups: Sequence[str]) -> None:
        """Change the groups whose members may log in."""
        self._allowed_groups = list(allowed_groups)
        if not self._allowed_groups:
            self._logger.warning(
                "No allowed groups set, all users with email may log in"
            )

    async def check(self, identity: str | None) -> AuthResult:
        """Check whether an identity may log in.

        Parameters
        ----------
        identity
            Identity from the authenticating front end, either ``user`` or
            ``user@REALM``. `None` if the front end did not provide one.

        Returns
        -------
        AuthResult
            On success, the principal URI of the user. On failure, a reason
            suitable for logging.
        """
        logger = self._logger.bind(identity=identity)
        state = LoginState.unauthenticated

        if not identity:
            return self._fail(logger, state, "REMOTE_USER variable not set")

        name, separator, realm = identity.partition("@")
        if separator and realm != self._directory.realm:
            msg = f"REMOTE_USER has unknown realm: {realm}"
            return self._fail(logger, state, msg)
        state = LoginState.realm_checked

        user = await self._users.get(name, allowed_groups=self._allowed_groups)
        if not user:
            msg = f"user {name} failed group authorization"
            return self._fail(logger, state, msg)
        state = LoginState.authorized
        principal = PRINCIPAL_PREFIX + user.uid

        if self._provisioning:
            await self._provisioning.ensure_defaults(principal)
            state = LoginState.provisioned

        logger.info(
            "Login allowed", principal=principal, login_state=state.value
        )
        return AuthResult(success=True, detail=principal)

    def challenge(self) -> None:
        """Do nothing, since authentication is done by the front end."""

    def _fail(
        self, logger: BoundLogger, state: LoginState, reason: str
    ) -> AuthResult:
        logger.warning(
            "Login denied",
            reason=reason,
            failed_at=state.value,
            login_state=LoginState.failed.value,
        )
        return AuthResult(success=False, detail=reason)
