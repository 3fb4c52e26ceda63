"""Administrative client wrapper.

Runs jenkins-cli.jar against the server:
    <java> -jar <cli-jar> -s <base-url> <subcommand> [args]
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from pathlib import Path

from ..errors import CommandError
from ..shared.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CommandResult:
    """Outcome of one client invocation."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class AdminClient:
    """Issue login and groovy commands through jenkins-cli.jar."""

    def __init__(
        self,
        cli_jar: Path,
        base_url: str,
        java_bin: str = "java",
        timeout: float = 600.0,
    ):
        """Initialize client.

        Args:
            cli_jar: Path to the extracted jenkins-cli.jar.
            base_url: Server root URL, e.g. http://127.0.0.1:8080/
            java_bin: Java executable.
            timeout: Seconds allowed per invocation.
        """
        self.cli_jar = cli_jar
        self.base_url = base_url
        self.java_bin = java_bin
        self.timeout = timeout

    def build_command(self, subcommand: str, *args: str) -> list[str]:
        return [self.java_bin, "-jar", str(self.cli_jar), "-s", self.base_url, subcommand, *args]

    def run(self, subcommand: str, *args: str, check: bool = True) -> CommandResult:
        """Run a client subcommand.

        Args:
            subcommand: Client subcommand (login, groovy, ...).
            *args: Subcommand arguments.
            check: Raise CommandError on a non-zero exit.

        Returns:
            CommandResult with captured output.

        Raises:
            CommandError: if check is set and the command failed.
        """
        cmd = self.build_command(subcommand, *args)
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except FileNotFoundError as e:
            raise CommandError(f"Cannot execute {self.java_bin}: {e}") from e
        except subprocess.TimeoutExpired as e:
            raise CommandError(f"{subcommand} timed out after {self.timeout}s") from e

        result = CommandResult(cmd, proc.returncode, proc.stdout or "", proc.stderr or "")
        logger.debug("admin command finished", subcommand=subcommand, returncode=result.returncode)

        if check and not result.ok:
            raise CommandError(
                f"{subcommand} exited with status {result.returncode}",
                output=result.stderr.strip() or result.stdout.strip(),
                returncode=result.returncode,
            )
        return result

    def login(self, credentials: list[str], check: bool = True) -> CommandResult:
        return self.run("login", *credentials, check=check)

    def groovy(self, script: Path, *args: str) -> CommandResult:
        """Execute a Groovy script on the server."""
        return self.run("groovy", str(script), *args)
