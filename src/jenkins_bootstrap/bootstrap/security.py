"""Security bootstrap state machine and the generated script workspace.

    unauthenticated
      -> login-attempted           first login, failure tolerated (no session yet)
      -> security-script-executed  matrix authorization + administrator accounts
      -> authenticated             second login, must succeed
      -> service-restarted         new authorization is only live after a restart
      -> post-restart-ready        readiness gate passed again
"""

from __future__ import annotations

import tempfile
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any

from ..errors import PreconditionError
from ..shared.logging import get_logger
from .admin import AdminClient, CommandResult
from .templates import TemplateRenderer

logger = get_logger(__name__)

SECURITY_SCRIPT = "security.gv"
CREDENTIALS_SCRIPT = "credentials.gv"
CONFIGURATION_SCRIPT = "configuration.gv"
USER_TOKEN_SCRIPT = "get_user_token.gv"

SCRIPT_NAMES = (SECURITY_SCRIPT, CREDENTIALS_SCRIPT, CONFIGURATION_SCRIPT, USER_TOKEN_SCRIPT)


class SecurityState(Enum):
    """Progress through the security bootstrap."""

    UNAUTHENTICATED = "unauthenticated"
    LOGIN_ATTEMPTED = "login-attempted"
    SECURITY_SCRIPT_EXECUTED = "security-script-executed"
    AUTHENTICATED = "authenticated"
    SERVICE_RESTARTED = "service-restarted"
    POST_RESTART_READY = "post-restart-ready"


class SecurityBootstrap:
    """Drive the server from open to secured, one transition at a time."""

    def __init__(self, client: AdminClient, credentials: list[str]):
        self.client = client
        self.credentials = credentials
        self.state = SecurityState.UNAUTHENTICATED

    def _expect(self, state: SecurityState, action: str) -> None:
        if self.state is not state:
            raise PreconditionError(
                f"Cannot {action} in state '{self.state.value}', expected '{state.value}'"
            )

    def first_login(self) -> CommandResult:
        """Log in before security exists. Callers tolerate the failure."""
        self._expect(SecurityState.UNAUTHENTICATED, "attempt first login")
        # The attempt itself is the transition, whatever its outcome
        self.state = SecurityState.LOGIN_ATTEMPTED
        return self.client.login(self.credentials)

    def apply_security_script(self, script: Path) -> CommandResult:
        self._expect(SecurityState.LOGIN_ATTEMPTED, "apply security script")
        result = self.client.groovy(script)
        self.state = SecurityState.SECURITY_SCRIPT_EXECUTED
        logger.info("security script applied")
        return result

    def second_login(self) -> CommandResult:
        self._expect(SecurityState.SECURITY_SCRIPT_EXECUTED, "attempt second login")
        result = self.client.login(self.credentials)
        self.state = SecurityState.AUTHENTICATED
        return result

    def restart(self, restart_service: Callable[[], None]) -> None:
        self._expect(SecurityState.AUTHENTICATED, "restart")
        restart_service()
        self.state = SecurityState.SERVICE_RESTARTED

    def confirm_ready(self, wait_ready: Callable[[], Any]) -> None:
        self._expect(SecurityState.SERVICE_RESTARTED, "confirm readiness")
        wait_ready()
        self.state = SecurityState.POST_RESTART_READY


@contextmanager
def script_workspace(
    renderer: TemplateRenderer,
    context: dict[str, Any],
    names: tuple[str, ...] = SCRIPT_NAMES,
) -> Iterator[Path]:
    """Render the administrative scripts into a private temporary directory.

    The directory and everything in it is removed on exit, including when
    rendering or a script run failed.
    """
    with tempfile.TemporaryDirectory(prefix="jenkins-bootstrap-") as tmp:
        script_dir = Path(tmp)
        for name in names:
            renderer.render_to(f"{name}.j2", script_dir / name, context, mode=0o600)
        logger.debug("scripts rendered", script_dir=str(script_dir), scripts=list(names))
        yield script_dir
    logger.debug("script workspace removed", script_dir=str(script_dir))
