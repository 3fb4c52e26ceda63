"""Ordered step execution with declared preconditions.

Each Step names the milestones it needs and the milestone it provides, so the
dependency graph is spelled out instead of implied by list position. A
ScopedSteps group holds a resource (the generated script directory) open for
its steps and always releases it, whether the steps passed or not.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from pathlib import Path

import httpx

from ..config import BootstrapConfig
from ..errors import BootstrapError, PreconditionError
from ..shared.logging import get_logger
from .admin import AdminClient
from .plugins import PluginProvisioner
from .readiness import ReadinessGate
from .security import SecurityBootstrap
from .service import ContainerLauncher, RestartNotifier, ServiceManager
from .templates import TemplateRenderer

logger = get_logger(__name__)


@dataclass
class RunContext:
    """Collaborators and state threaded through every step."""

    config: BootstrapConfig
    service: ServiceManager
    launcher: ContainerLauncher
    client: AdminClient
    gate: ReadinessGate
    renderer: TemplateRenderer
    provisioner: PluginProvisioner
    security: SecurityBootstrap
    restart: RestartNotifier
    milestones: set[str] = field(default_factory=set)
    script_dir: Path | None = None
    user_token: str | None = None

    @classmethod
    def create(
        cls,
        config: BootstrapConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> RunContext:
        """Build the default collaborators for a config."""
        restart = RestartNotifier()
        client = AdminClient(config.cli_jar, config.base_url, java_bin=config.java_bin)
        return cls(
            config=config,
            service=ServiceManager(config.service_name),
            launcher=ContainerLauncher(config),
            client=client,
            gate=ReadinessGate(
                retries=config.conn_retries,
                delay=config.conn_delay,
                transport=transport,
            ),
            renderer=TemplateRenderer(config.templates_dir),
            provisioner=PluginProvisioner(
                config.plugins_dir,
                config.updates_url,
                owner=config.file_owner,
                job_retries=config.job_retries,
                job_delay=config.job_delay,
                job_timeout=config.job_timeout,
                restart=restart,
                transport=transport,
            ),
            security=SecurityBootstrap(client, config.admin_credentials),
            restart=restart,
        )


@dataclass(frozen=True)
class Step:
    """One provisioning step."""

    name: str
    action: Callable[[RunContext], None]
    requires: frozenset[str] = frozenset()
    provides: str | None = None
    # A failing ignore_errors step is logged and the run carries on
    ignore_errors: bool = False
    when: Callable[[RunContext], bool] | None = None


@dataclass(frozen=True)
class ScopedSteps:
    """Steps that share a resource acquired before the first and released after the last."""

    name: str
    resource: Callable[[RunContext], AbstractContextManager]
    steps: tuple[Step, ...]


@dataclass
class BootstrapResult:
    """Result of a bootstrap run."""

    success: bool = False
    executed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    ignored: list[tuple[str, str]] = field(default_factory=list)
    user_token: str | None = None
    restart_pending: bool = False
    failed_step: str | None = None
    error: BootstrapError | None = None


class Orchestrator:
    """Run steps in order, stopping at the first fatal failure."""

    def __init__(
        self,
        steps: Sequence[Step | ScopedSteps],
        on_step: Callable[[str, str], None] | None = None,
    ):
        """Initialize orchestrator.

        Args:
            steps: Steps and scoped groups, in execution order.
            on_step: Optional callback called with (step name, status) where
                     status is one of started, done, skipped, ignored.
        """
        self.steps = list(steps)
        self.on_step = on_step

    def _notify(self, name: str, status: str) -> None:
        if self.on_step:
            self.on_step(name, status)

    @staticmethod
    def _call(step: Step, ctx: RunContext) -> None:
        try:
            step.action(ctx)
        except OSError as e:
            raise BootstrapError.from_os_error(e, step=step.name) from e

    def _run_step(self, step: Step, ctx: RunContext, result: BootstrapResult) -> None:
        if step.when is not None and not step.when(ctx):
            logger.info("step skipped", step=step.name)
            result.skipped.append(step.name)
            self._notify(step.name, "skipped")
            return

        missing = step.requires - ctx.milestones
        if missing:
            raise PreconditionError(
                f"requires {', '.join(sorted(missing))}",
                step=step.name,
            )

        logger.info("step started", step=step.name)
        self._notify(step.name, "started")
        try:
            self._call(step, ctx)
        except BootstrapError as e:
            if not step.ignore_errors:
                if e.step is None:
                    e.step = step.name
                raise
            logger.warning("step failed, ignoring", step=step.name, error=e.message)
            result.ignored.append((step.name, e.message))
            self._notify(step.name, "ignored")
        else:
            self._notify(step.name, "done")

        if step.provides:
            ctx.milestones.add(step.provides)
        result.executed.append(step.name)

    def run(self, ctx: RunContext) -> BootstrapResult:
        """Execute every step.

        Returns:
            BootstrapResult; on a fatal failure success is False and
            failed_step/error describe it.
        """
        result = BootstrapResult()
        try:
            for item in self.steps:
                if isinstance(item, ScopedSteps):
                    try:
                        with item.resource(ctx):
                            for step in item.steps:
                                self._run_step(step, ctx, result)
                    except BootstrapError as e:
                        # Raised while acquiring or releasing the resource
                        if e.step is None:
                            e.step = item.name
                        raise
                    except OSError as e:
                        raise BootstrapError.from_os_error(e, step=item.name) from e
                else:
                    self._run_step(item, ctx, result)
        except BootstrapError as e:
            logger.error("bootstrap aborted", step=e.step, error=e.message, output=e.output)
            result.failed_step = e.step
            result.error = e
        else:
            result.success = True
            logger.info("bootstrap complete", steps=len(result.executed))

        result.user_token = ctx.user_token
        result.restart_pending = ctx.restart.pending
        return result
