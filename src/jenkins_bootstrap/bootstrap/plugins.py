"""Plugin download and pinning.

Jenkins ships bundled plugins that win over anything in $JENKINS_HOME/plugins
on the next restart, so a newer download would silently be replaced by the
bundled version. Creating <id>.jpi.pinned stops that overwrite. Pinning does
not hide newer versions: the plugin manager still offers updates in the UI.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from pathlib import Path

import httpx

from ..errors import BootstrapError
from ..shared.logging import get_logger
from .jobs import JobSet
from .service import RestartNotifier
from .templates import chown

logger = get_logger(__name__)


def plugin_url(updates_url: str, plugin_id: str, version: str) -> str:
    """Download URL for a plugin version on the update host."""
    return f"{updates_url.rstrip('/')}/download/plugins/{plugin_id}/{version}/{plugin_id}.hpi"


@dataclass
class PluginProvisionResult:
    """What a provisioning run produced."""

    downloaded: list[Path] = field(default_factory=list)
    pinned: list[Path] = field(default_factory=list)


class PluginProvisioner:
    """Download and pin a declared set of plugins."""

    def __init__(
        self,
        plugins_dir: Path,
        updates_url: str,
        owner: str | None = None,
        job_retries: int = 50,
        job_delay: float = 5.0,
        job_timeout: float = 300.0,
        restart: RestartNotifier | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize provisioner.

        Args:
            plugins_dir: $JENKINS_HOME/plugins.
            updates_url: Update host root, e.g. https://updates.jenkins.io
            owner: Account that should own written files (applied as root only).
            job_retries: Polls allowed when joining a job set.
            job_delay: Seconds between polls.
            job_timeout: Per-job timeout in seconds.
            restart: Notifier that receives deferred restart requests.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self.plugins_dir = plugins_dir
        self.updates_url = updates_url
        self.owner = owner
        self.job_retries = job_retries
        self.job_delay = job_delay
        self.job_timeout = job_timeout
        self.restart = restart if restart is not None else RestartNotifier()
        self.transport = transport

    def plugin_path(self, plugin_id: str) -> Path:
        return self.plugins_dir / f"{plugin_id}.jpi"

    def pin_path(self, plugin_id: str) -> Path:
        return self.plugins_dir / f"{plugin_id}.jpi.pinned"

    async def _download(self, client: httpx.AsyncClient, plugin_id: str, version: str) -> Path:
        url = plugin_url(self.updates_url, plugin_id, version)
        dest = self.plugin_path(plugin_id)
        tmp = dest.with_name(f".{dest.name}.part")

        try:
            async with client.stream("GET", url) as response:
                response.raise_for_status()
                f = await asyncio.to_thread(open, tmp, "wb")
                try:
                    async for chunk in response.aiter_bytes():
                        await asyncio.to_thread(f.write, chunk)
                finally:
                    await asyncio.to_thread(f.close)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise

        os.replace(tmp, dest)
        chown(dest, self.owner)
        logger.info("plugin downloaded", plugin=plugin_id, version=version)
        return dest

    async def _pin(self, plugin_id: str) -> Path:
        marker = self.pin_path(plugin_id)
        marker.touch()
        chown(marker, self.owner)
        return marker

    async def provision(self, plugins: dict[str, str]) -> PluginProvisionResult:
        """Download every declared plugin, then pin them all.

        A restart is requested after each phase but never performed here.

        Raises:
            RetryExhaustedError: if jobs outlive the join budget.
            JobFailedError: if a download or pin failed.
            BootstrapError: if the plugins directory cannot be created.
        """
        result = PluginProvisionResult()
        if not plugins:
            logger.info("no plugins declared")
            return result

        try:
            self.plugins_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BootstrapError.from_os_error(e) from e

        async with httpx.AsyncClient(
            timeout=self.job_timeout, follow_redirects=True, transport=self.transport
        ) as client:
            downloads = JobSet("download", timeout=self.job_timeout)
            for plugin_id, version in plugins.items():
                downloads.dispatch(plugin_id, self._download(client, plugin_id, version))
            await downloads.join(self.job_retries, self.job_delay)
            result.downloaded = [job.result() for job in downloads.jobs]
        self.restart.notify("plugins downloaded")

        pins = JobSet("pin", timeout=self.job_timeout)
        for plugin_id in plugins:
            pins.dispatch(plugin_id, self._pin(plugin_id))
        await pins.join(self.job_retries, self.job_delay)
        result.pinned = [job.result() for job in pins.jobs]
        self.restart.notify("plugins pinned")

        return result

    def provision_sync(self, plugins: dict[str, str]) -> PluginProvisionResult:
        """Synchronous wrapper for provision."""
        return asyncio.run(self.provision(plugins))
