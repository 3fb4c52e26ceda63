"""CLI main entry point."""

import json
import sys
from typing import Any

import click

from .bootstrap import (
    Orchestrator,
    PluginProvisioner,
    ProbeResult,
    ReadinessGate,
    RestartNotifier,
    RunContext,
    default_steps,
)
from .config import BootstrapConfig, load_config
from .errors import BootstrapError, ConfigError
from .shared.logging import configure_logging


def _load(ctx: click.Context, **overrides: Any) -> BootstrapConfig:
    """Load config for a command, exiting with status 1 when it is invalid."""
    try:
        return load_config(ctx.obj["config_path"], overrides)
    except ConfigError as e:
        click.echo(f"✗ Configuration: {e.message}", err=True)
        sys.exit(1)


def _fail(error: BootstrapError) -> None:
    """Report a fatal error with the failing step and the tool's own output."""
    click.echo(f"✗ {error}", err=True)
    if error.output:
        click.echo(error.output, err=True)
    sys.exit(1)


def network_options(f):
    """Options shared by every command that talks to Jenkins."""
    f = click.option("--port", type=int, default=None, help="Jenkins HTTP port")(f)
    f = click.option("--listen-address", default=None, help="Jenkins listen address")(f)
    f = click.option("--retries", type=int, default=None, help="Readiness probe retries")(f)
    f = click.option("--delay", type=float, default=None, help="Seconds between probes")(f)
    return f


@click.group()
@click.option("-c", "--config", type=click.Path(), help="Config file path")
@click.option("-v", "--verbose", count=True, help="Increase verbosity")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON")
@click.option("--log-file", type=click.Path(), help="Write logs to a file")
@click.pass_context
def cli(
    ctx: click.Context,
    config: str | None,
    verbose: int,
    json_logs: bool,
    log_file: str | None,
) -> None:
    """Provision a freshly installed Jenkins server."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    level = "debug" if verbose >= 2 else "info" if verbose == 1 else "warning"
    configure_logging(level, log_file=log_file, json_output=json_logs)


@cli.command()
@network_options
@click.option(
    "--container-mode/--service-mode",
    default=None,
    help="Launch the WAR directly instead of going through systemd",
)
@click.option("--templates-dir", type=click.Path(exists=True, file_okay=False), default=None)
@click.pass_context
def run(
    ctx: click.Context,
    port: int | None,
    listen_address: str | None,
    retries: int | None,
    delay: float | None,
    container_mode: bool | None,
    templates_dir: str | None,
) -> None:
    """Run the full bootstrap sequence.

    Examples:

        # Service-managed host, settings from /etc/jenkins-bootstrap/config.yaml
        jenkins-bootstrap run

        # Inside a container image build
        jenkins-bootstrap -c bootstrap.yaml run --container-mode
    """
    config = _load(
        ctx,
        port=port,
        listen_address=listen_address,
        conn_retries=retries,
        conn_delay=delay,
        container_mode=container_mode,
        templates_dir=templates_dir,
    )

    click.echo("\nJenkins Bootstrap\n")

    def on_step(name: str, status: str) -> None:
        if status == "done":
            click.echo(f"  ✓ {name}")
        elif status == "skipped":
            click.echo(f"  - {name} (skipped)")
        elif status == "ignored":
            click.echo(f"  ⚠ {name} (failed, ignored)")

    orchestrator = Orchestrator(default_steps(), on_step=on_step)
    result = orchestrator.run(RunContext.create(config))

    if not result.success:
        _fail(result.error)

    click.echo("\n" + "=" * 50)
    click.echo("✓ Bootstrap complete!")
    click.echo(f"\n  Steps run: {len(result.executed)}")
    if result.ignored:
        click.echo(f"  Ignored failures: {', '.join(name for name, _ in result.ignored)}")
    click.echo(f"  Jenkins home: {config.home}")
    click.echo("=" * 50 + "\n")


@cli.command()
@network_options
@click.pass_context
def wait(
    ctx: click.Context,
    port: int | None,
    listen_address: str | None,
    retries: int | None,
    delay: float | None,
) -> None:
    """Wait until Jenkins is ready to accept administrative commands."""
    config = _load(
        ctx,
        port=port,
        listen_address=listen_address,
        conn_retries=retries,
        conn_delay=delay,
    )
    gate = ReadinessGate(retries=config.conn_retries, delay=config.conn_delay)
    url = gate.url_for(config.listen_address, config.port)

    def on_attempt(attempt: int, max_attempts: int, probe: ProbeResult) -> None:
        click.echo(f"  Attempt {attempt}/{max_attempts}: {probe.describe()}")

    result = gate.wait_until_ready_sync(url, on_attempt)
    if not result.ready:
        click.echo(f"✗ {result.error}", err=True)
        sys.exit(1)
    click.echo(
        f"✓ Jenkins ready (HTTP {result.status}) after {result.attempts} probe(s), "
        f"{result.elapsed_seconds:.1f}s"
    )


@cli.command()
@click.option(
    "--plugin",
    "plugin_specs",
    multiple=True,
    metavar="ID=VERSION",
    help="Plugin to install (repeatable); replaces the configured set",
)
@click.pass_context
def plugins(ctx: click.Context, plugin_specs: tuple[str, ...]) -> None:
    """Download and pin plugins without running the rest of the sequence."""
    overrides: dict[str, Any] = {}
    if plugin_specs:
        declared = {}
        for spec in plugin_specs:
            plugin_id, sep, version = spec.partition("=")
            if not sep or not plugin_id or not version:
                raise click.BadParameter(f"expected ID=VERSION, got '{spec}'", param_hint="--plugin")
            declared[plugin_id] = version
        overrides["plugins"] = declared
    config = _load(ctx, **overrides)

    restart = RestartNotifier()
    provisioner = PluginProvisioner(
        config.plugins_dir,
        config.updates_url,
        owner=config.file_owner,
        job_retries=config.job_retries,
        job_delay=config.job_delay,
        job_timeout=config.job_timeout,
        restart=restart,
    )
    try:
        result = provisioner.provision_sync(config.plugins)
    except BootstrapError as e:
        if e.step is None:
            e.step = "provision-plugins"
        _fail(e)

    for path in result.pinned:
        click.echo(f"  ✓ {path.name}")
    if restart.pending:
        click.echo("\nRestart Jenkins to load the new plugins.")


@cli.group()
def config() -> None:
    """Inspect configuration."""
    pass


@config.command("show")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def config_show(ctx: click.Context, json_output: bool) -> None:
    """Show the effective configuration and where each value came from."""
    loaded = _load(ctx)
    items = loaded.public_items()

    if json_output:
        click.echo(json.dumps(dict(items), indent=2, default=str))
        return

    for key, value in items:
        click.echo(f"{key}: {value}  ({loaded.get_source(key)})")


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
