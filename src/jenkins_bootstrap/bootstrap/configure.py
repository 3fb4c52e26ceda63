"""Configuration scripts run after the secured restart."""

from __future__ import annotations

from pathlib import Path

from ..shared.logging import get_logger
from .admin import AdminClient
from .security import CONFIGURATION_SCRIPT, CREDENTIALS_SCRIPT, USER_TOKEN_SCRIPT

logger = get_logger(__name__)


def apply_scripts(
    client: AdminClient,
    script_dir: Path,
    names: tuple[str, ...] = (CREDENTIALS_SCRIPT, CONFIGURATION_SCRIPT),
) -> None:
    """Run scripts in order; the first failure raises CommandError."""
    for name in names:
        client.groovy(script_dir / name)
        logger.info("script applied", script=name)


def capture_user_token(client: AdminClient, script_dir: Path, credentials: list[str]) -> str:
    """Run the token script and return its output, trimmed.

    The output is not validated; an empty token is returned as "".
    """
    result = client.groovy(script_dir / USER_TOKEN_SCRIPT, *credentials)
    return result.stdout.strip()
