"""Artifacts written once the administrator token is known."""

from __future__ import annotations

from pathlib import Path

from ..config import BootstrapConfig
from .templates import TemplateRenderer

JOBS_INI = "jenkins_jobs.ini"
KILL_SWITCH = "slave-to-master-security-kill-switch"


def write_jobs_ini(renderer: TemplateRenderer, config: BootstrapConfig, user_token: str) -> Path:
    """Write the jenkins-job-builder settings, readable by the service account only."""
    return renderer.render_to(
        f"{JOBS_INI}.j2",
        config.home / JOBS_INI,
        config.template_context(user_token=user_token),
        owner=config.file_owner,
        mode=0o640,
    )


def write_kill_switch(renderer: TemplateRenderer, config: BootstrapConfig) -> Path:
    """Enable or disable agent-to-controller access control."""
    return renderer.render_to(
        f"{KILL_SWITCH}.j2",
        config.home / "secrets" / KILL_SWITCH,
        config.template_context(),
        owner=config.file_owner,
    )
