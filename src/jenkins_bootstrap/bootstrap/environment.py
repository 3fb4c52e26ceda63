"""Host preparation before Jenkins is started.

All operations overwrite what is already there, so running them again on a
prepared host is harmless.
"""

from __future__ import annotations

import os
import zipfile
from pathlib import Path

from ..config import BootstrapConfig
from ..errors import BootstrapError
from ..shared.logging import get_logger
from .templates import TemplateRenderer

logger = get_logger(__name__)

CLI_JAR_MEMBER = "WEB-INF/jenkins-cli.jar"
WIZARD_STATE_FILE = "jenkins.install.UpgradeWizard.state"


def ensure_aux_dir(aux_dir: Path) -> Path:
    """Create the directory holding the client jar and helper files."""
    aux_dir.mkdir(mode=0o755, parents=True, exist_ok=True)
    return aux_dir


def _copy_member(war_path: Path, member: str, out_path: Path) -> None:
    try:
        with zipfile.ZipFile(war_path) as war, war.open(member) as src:
            with open(out_path, "wb") as out:
                while chunk := src.read(1024 * 1024):
                    out.write(chunk)
    except KeyError as e:
        raise BootstrapError(f"{war_path} has no {member}") from e
    except zipfile.BadZipFile as e:
        raise BootstrapError(f"{war_path} is not a valid archive: {e}") from e


def extract_cli_jar(war_path: Path, dest_dir: Path) -> Path:
    """Copy WEB-INF/jenkins-cli.jar out of the WAR, flattened into dest_dir.

    Raises:
        BootstrapError: if the WAR is missing, corrupt, or has no client jar.
    """
    if not war_path.is_file():
        raise BootstrapError(f"Jenkins WAR not found: {war_path}")

    dest_dir.mkdir(parents=True, exist_ok=True)
    dest = dest_dir / Path(CLI_JAR_MEMBER).name
    tmp = dest.with_name(f".{dest.name}.tmp")

    try:
        _copy_member(war_path, CLI_JAR_MEMBER, tmp)
        os.replace(tmp, dest)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise

    logger.info("extracted cli client", jar=str(dest))
    return dest


def write_sysconfig(renderer: TemplateRenderer, config: BootstrapConfig) -> Path:
    """Render the service startup settings read by the init script."""
    return renderer.render_to("sysconfig.j2", config.sysconfig_path, config.template_context())


def write_wizard_state(renderer: TemplateRenderer, config: BootstrapConfig) -> Path:
    """Mark the setup wizard as done so Jenkins boots straight to a usable state."""
    return renderer.render_to(
        f"{WIZARD_STATE_FILE}.j2",
        config.home / WIZARD_STATE_FILE,
        config.template_context(),
        owner=config.file_owner,
    )
