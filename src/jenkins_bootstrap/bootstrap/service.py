"""Service lifecycle control for the Jenkins server.

Service-managed hosts go through systemctl. Container images have no
service manager, so the WAR is launched directly in daemon mode.
"""

from __future__ import annotations

import shlex
import subprocess
from dataclasses import dataclass, field

from ..config import BootstrapConfig
from ..shared.logging import get_logger

logger = get_logger(__name__)


class ServiceManager:
    """Start, stop and restart the Jenkins unit via systemctl."""

    def __init__(self, service_name: str = "jenkins", timeout: float = 300.0):
        """Initialize service manager.

        Args:
            service_name: systemd unit name.
            timeout: Seconds to wait for a systemctl call.
        """
        self.service_name = service_name
        self.timeout = timeout

    def _systemctl(self, action: str) -> tuple[bool, str]:
        try:
            result = subprocess.run(
                ["systemctl", action, self.service_name],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            return False, "systemctl not found. Is this a systemd host?"
        except subprocess.TimeoutExpired:
            return False, f"systemctl {action} {self.service_name} timed out"

        if result.returncode != 0:
            return False, result.stderr.strip() or f"systemctl {action} exited {result.returncode}"
        return True, f"Service {self.service_name} {action} ok"

    def start(self) -> tuple[bool, str]:
        """Enable and start the service."""
        success, msg = self._systemctl("enable")
        if not success:
            return False, f"Failed to enable: {msg}"
        return self._systemctl("start")

    def stop(self) -> tuple[bool, str]:
        return self._systemctl("stop")

    def restart(self) -> tuple[bool, str]:
        return self._systemctl("restart")


class ContainerLauncher:
    """Launch the WAR in daemon mode as the service account."""

    def __init__(self, config: BootstrapConfig):
        self.config = config

    def command(self) -> list[str]:
        """Build the `su - <user> -c <java ...>` invocation."""
        cfg = self.config
        java = [
            cfg.java_bin,
            *shlex.split(cfg.java_options),
            f"-DJENKINS_HOME={cfg.home}",
            "-Djenkins.install.runSetupWizard=false",
            "-jar",
            str(cfg.war_path),
            f"--webroot={cfg.webroot}",
            f"--httpPort={cfg.port}",
            f"--httpListenAddress={cfg.listen_address}",
            "--ajp13Port=-1",
            "--daemon",
            f"--debug={cfg.debug_level}",
            f"--handlerCountMax={cfg.handler_max}",
            f"--handlerCountMaxIdle={cfg.handler_idle}",
        ]
        return ["su", "-", cfg.user, "-c", shlex.join(java)]

    def start(self) -> tuple[bool, str]:
        """Launch Jenkins; --daemon forks, so this returns once detached."""
        try:
            result = subprocess.run(self.command(), capture_output=True, text=True)
        except FileNotFoundError as e:
            return False, str(e)

        if result.returncode != 0:
            return False, result.stderr.strip() or f"Launcher exited {result.returncode}"
        return True, "Jenkins launched in daemon mode"


@dataclass
class RestartNotifier:
    """Deferred restart requests, coalesced into a single restart."""

    reasons: list[str] = field(default_factory=list)

    @property
    def pending(self) -> bool:
        return bool(self.reasons)

    def notify(self, reason: str) -> None:
        logger.debug("restart requested", reason=reason)
        self.reasons.append(reason)

    def clear(self) -> list[str]:
        """Drop pending requests and return what they were."""
        reasons, self.reasons = self.reasons, []
        return reasons
