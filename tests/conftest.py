"""Shared test fixtures for jenkins-bootstrap tests.

This module provides:
- bootstrap_config: a BootstrapConfig rooted in a temporary directory
- war_file: a minimal WAR containing WEB-INF/jenkins-cli.jar
- script_templates: operator templates for the Groovy scripts
- FakeJenkins: an httpx handler serving /cli/ and plugin downloads
- FakeCommands: a subprocess.run stand-in for java/systemctl/su
"""

import subprocess
import zipfile
from dataclasses import dataclass, field
from pathlib import Path

import httpx
import pytest

from jenkins_bootstrap.config import BootstrapConfig

SCRIPT_TEMPLATES = {
    "security.gv.j2": "// security for {{ admin_username }}\n",
    "credentials.gv.j2": "// credentials\n",
    "configuration.gv.j2": "// configuration at {{ base_url }}\n",
    "get_user_token.gv.j2": "// token for {{ admin_username }}\n",
}


@pytest.fixture
def script_templates(tmp_path: Path) -> Path:
    """Directory with the four administrative script templates."""
    templates = tmp_path / "templates"
    templates.mkdir()
    for name, body in SCRIPT_TEMPLATES.items():
        (templates / name).write_text(body)
    return templates


@pytest.fixture
def war_file(tmp_path: Path) -> Path:
    """A WAR with a fake client jar inside."""
    war = tmp_path / "jenkins.war"
    with zipfile.ZipFile(war, "w") as zf:
        zf.writestr("WEB-INF/jenkins-cli.jar", b"cli-jar-bytes")
        zf.writestr("WEB-INF/web.xml", "<web-app/>")
    return war


@pytest.fixture
def bootstrap_config(tmp_path: Path, war_file: Path, script_templates: Path) -> BootstrapConfig:
    """Config with every path inside tmp_path and fast retry budgets."""
    return BootstrapConfig(
        home=tmp_path / "jenkins_home",
        aux_dir=tmp_path / "opt" / "jenkins",
        cli_jar_dir=tmp_path / "opt" / "jenkins",
        war_path=war_file,
        webroot=tmp_path / "war",
        sysconfig_path=tmp_path / "sysconfig" / "jenkins",
        templates_dir=script_templates,
        file_owner=None,
        admin_username="admin",
        admin_password="s3cret",
        plugins={"git": "4.2.1", "credentials": "2.3.0"},
        updates_url="https://updates.example.org",
        conn_retries=3,
        conn_delay=0.01,
        job_retries=50,
        job_delay=0.01,
        job_timeout=5.0,
    )


@dataclass
class FakeJenkins:
    """httpx handler for the readiness endpoint and the plugin update host."""

    cli_statuses: list[int] = field(default_factory=lambda: [200])
    missing_plugins: set[str] = field(default_factory=set)
    requests: list[str] = field(default_factory=list)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(str(request.url))
        if request.url.path == "/cli/":
            status = self.cli_statuses.pop(0) if len(self.cli_statuses) > 1 else self.cli_statuses[0]
            return httpx.Response(status, text="cli")
        if request.url.path.startswith("/download/plugins/"):
            plugin_id = request.url.path.split("/")[3]
            if plugin_id in self.missing_plugins:
                return httpx.Response(404, text="not found")
            return httpx.Response(200, content=f"{request.url.path}".encode())
        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def fake_jenkins() -> FakeJenkins:
    return FakeJenkins()


@dataclass
class FakeCommands:
    """Records commands and answers like java -jar jenkins-cli.jar, systemctl and su."""

    login_returncodes: list[int] = field(default_factory=lambda: [1, 0])
    script_results: dict[str, tuple[int, str]] = field(default_factory=dict)
    failing_systemctl: set[str] = field(default_factory=set)
    calls: list[list[str]] = field(default_factory=list)
    scripts_seen: list[Path] = field(default_factory=list)

    def __call__(self, cmd, **kwargs) -> subprocess.CompletedProcess:
        self.calls.append(list(cmd))
        if cmd[0] == "systemctl":
            if cmd[1] in self.failing_systemctl:
                return subprocess.CompletedProcess(cmd, 1, "", f"{cmd[1]} failed")
            return subprocess.CompletedProcess(cmd, 0, "", "")
        if cmd[0] == "su":
            return subprocess.CompletedProcess(cmd, 0, "", "")

        subcommand = cmd[5]
        if subcommand == "login":
            rc = self.login_returncodes.pop(0)
            return subprocess.CompletedProcess(cmd, rc, "", "bad credentials" if rc else "")
        if subcommand == "groovy":
            script = Path(cmd[6])
            assert script.exists(), f"{script} was not rendered"
            self.scripts_seen.append(script)
            rc, stdout = self.script_results.get(script.name, (0, ""))
            return subprocess.CompletedProcess(cmd, rc, stdout, "script error" if rc else "")
        raise AssertionError(f"unexpected command {cmd}")

    def subcommands(self) -> list[str]:
        """Client subcommands and scripts in call order."""
        names = []
        for cmd in self.calls:
            if cmd[0] == "systemctl":
                names.append(f"systemctl {cmd[1]}")
            elif cmd[0] == "su":
                names.append("su")
            elif cmd[5] == "groovy":
                names.append(f"groovy {Path(cmd[6]).name}")
            else:
                names.append(cmd[5])
        return names


@pytest.fixture
def fake_commands() -> FakeCommands:
    return FakeCommands()
