"""The Jenkins provisioning sequence.

Milestones, in the order they are reached:

    aux-dir, cli-extracted, wizard-state, service-started, ready,
    plugins-provisioned, login-attempted, security-applied, authenticated,
    restarted, post-restart-ready, configuration-applied, user-token, jobs-ini,
    kill-switch, stopped

A restart drops `ready`; only the second readiness gate restores the right
to run administrative scripts.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from ..errors import BootstrapError, CommandError
from ..shared.logging import get_logger
from . import configure, environment, finalize
from .orchestrator import RunContext, ScopedSteps, Step
from .security import SECURITY_SCRIPT, script_workspace

logger = get_logger(__name__)


def _service_managed(ctx: RunContext) -> bool:
    return not ctx.config.container_mode


def _container_managed(ctx: RunContext) -> bool:
    return ctx.config.container_mode


def _script_dir(ctx: RunContext) -> Path:
    if ctx.script_dir is None:
        raise BootstrapError("Script workspace is not open")
    return ctx.script_dir


# Environment preparation


def create_aux_dir(ctx: RunContext) -> None:
    environment.ensure_aux_dir(ctx.config.aux_dir)


def extract_cli(ctx: RunContext) -> None:
    environment.extract_cli_jar(ctx.config.war_path, ctx.config.cli_jar_dir)


def write_sysconfig(ctx: RunContext) -> None:
    environment.write_sysconfig(ctx.renderer, ctx.config)


def write_wizard_state(ctx: RunContext) -> None:
    environment.write_wizard_state(ctx.renderer, ctx.config)


# Service control


def start_service(ctx: RunContext) -> None:
    success, msg = ctx.service.start()
    if not success:
        raise CommandError(msg)


def start_container(ctx: RunContext) -> None:
    success, msg = ctx.launcher.start()
    if not success:
        raise CommandError(msg)


def restart_service(ctx: RunContext) -> None:
    """Perform every pending restart as one restart."""
    reasons = ctx.restart.clear()
    if ctx.config.container_mode:
        logger.warning("no service manager in container mode, restart skipped", reasons=reasons)
    else:
        success, msg = ctx.service.restart()
        if not success:
            raise CommandError(msg)
        logger.info("service restarted", reasons=reasons)
    ctx.milestones.discard("ready")


def stop_service(ctx: RunContext) -> None:
    dropped = ctx.restart.clear()
    if dropped:
        logger.info("pending restart dropped, stopping instead", reasons=dropped)
    success, msg = ctx.service.stop()
    if not success:
        raise CommandError(msg)


# Readiness


def wait_ready(ctx: RunContext) -> None:
    cfg = ctx.config
    ctx.gate.ensure_port_open(cfg.listen_address, cfg.port)
    ctx.gate.ensure_ready(ctx.gate.url_for(cfg.listen_address, cfg.port))


# Plugins


def provision_plugins(ctx: RunContext) -> None:
    ctx.provisioner.provision_sync(ctx.config.plugins)


# Security bootstrap


@contextmanager
def open_script_workspace(ctx: RunContext) -> Iterator[Path]:
    with script_workspace(ctx.renderer, ctx.config.template_context()) as script_dir:
        ctx.script_dir = script_dir
        try:
            yield script_dir
        finally:
            ctx.script_dir = None


def first_login(ctx: RunContext) -> None:
    ctx.security.first_login()


def apply_security(ctx: RunContext) -> None:
    ctx.security.apply_security_script(_script_dir(ctx) / SECURITY_SCRIPT)


def second_login(ctx: RunContext) -> None:
    ctx.security.second_login()


def restart_after_security(ctx: RunContext) -> None:
    ctx.security.restart(lambda: restart_service(ctx))


def wait_ready_after_restart(ctx: RunContext) -> None:
    ctx.security.confirm_ready(lambda: wait_ready(ctx))


# Configuration application


def apply_configuration(ctx: RunContext) -> None:
    configure.apply_scripts(ctx.client, _script_dir(ctx))


def capture_user_token(ctx: RunContext) -> None:
    ctx.user_token = configure.capture_user_token(
        ctx.client, _script_dir(ctx), ctx.config.admin_credentials
    )
    logger.info("user token captured", empty=not ctx.user_token)


# Finalization


def write_jobs_ini(ctx: RunContext) -> None:
    finalize.write_jobs_ini(ctx.renderer, ctx.config, ctx.user_token or "")


def write_kill_switch(ctx: RunContext) -> None:
    finalize.write_kill_switch(ctx.renderer, ctx.config)


def default_steps() -> list[Step | ScopedSteps]:
    """The full bootstrap sequence."""
    return [
        Step("create-aux-dir", create_aux_dir, provides="aux-dir"),
        Step("extract-cli", extract_cli, frozenset({"aux-dir"}), "cli-extracted"),
        Step("write-sysconfig", write_sysconfig, when=_service_managed),
        Step("write-wizard-state", write_wizard_state, provides="wizard-state"),
        Step(
            "start-service",
            start_service,
            frozenset({"wizard-state"}),
            "service-started",
            when=_service_managed,
        ),
        Step(
            "start-container",
            start_container,
            frozenset({"wizard-state"}),
            "service-started",
            when=_container_managed,
        ),
        Step("wait-ready", wait_ready, frozenset({"service-started"}), "ready"),
        Step("provision-plugins", provision_plugins, frozenset({"ready"}), "plugins-provisioned"),
        ScopedSteps(
            "admin-scripts",
            open_script_workspace,
            (
                Step(
                    "login-first-attempt",
                    first_login,
                    frozenset({"ready", "cli-extracted"}),
                    "login-attempted",
                    ignore_errors=True,
                ),
                Step(
                    "apply-security",
                    apply_security,
                    frozenset({"login-attempted"}),
                    "security-applied",
                ),
                Step(
                    "login-second-attempt",
                    second_login,
                    frozenset({"security-applied"}),
                    "authenticated",
                ),
                Step(
                    "restart-service",
                    restart_after_security,
                    frozenset({"authenticated", "plugins-provisioned"}),
                    "restarted",
                ),
                Step(
                    "wait-ready-after-restart",
                    wait_ready_after_restart,
                    frozenset({"restarted"}),
                    "post-restart-ready",
                ),
                Step(
                    "apply-configuration",
                    apply_configuration,
                    frozenset({"post-restart-ready"}),
                    "configuration-applied",
                ),
                Step(
                    "capture-user-token",
                    capture_user_token,
                    frozenset({"configuration-applied"}),
                    "user-token",
                ),
            ),
        ),
        Step("write-jobs-ini", write_jobs_ini, frozenset({"user-token"}), "jobs-ini"),
        Step("write-kill-switch", write_kill_switch, provides="kill-switch"),
        Step(
            "stop-service",
            stop_service,
            frozenset({"jobs-ini", "kill-switch"}),
            "stopped",
            when=_service_managed,
        ),
    ]
