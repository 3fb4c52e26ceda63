"""Bootstrap package for provisioning a Jenkins server.

This package provides the `jenkins-bootstrap run` sequence which:
1. Prepares the host and extracts the CLI client
2. Starts Jenkins and waits for it to become ready
3. Downloads and pins plugins
4. Secures the server and restarts it
5. Applies credentials/configuration scripts and captures an API token
6. Writes derived configuration and stops the service
"""

from .admin import AdminClient, CommandResult
from .jobs import JobHandle, JobSet
from .orchestrator import BootstrapResult, Orchestrator, RunContext, ScopedSteps, Step
from .plugins import PluginProvisioner, PluginProvisionResult, plugin_url
from .readiness import ProbeResult, ReadinessGate, ReadinessResult, is_ready
from .security import SCRIPT_NAMES, SecurityBootstrap, SecurityState, script_workspace
from .service import ContainerLauncher, RestartNotifier, ServiceManager
from .steps import default_steps
from .templates import TemplateRenderer

__all__ = [
    # Administrative client
    "AdminClient",
    "CommandResult",
    # Async jobs
    "JobHandle",
    "JobSet",
    # Orchestration
    "BootstrapResult",
    "Orchestrator",
    "RunContext",
    "ScopedSteps",
    "Step",
    "default_steps",
    # Plugins
    "PluginProvisioner",
    "PluginProvisionResult",
    "plugin_url",
    # Readiness
    "ProbeResult",
    "ReadinessGate",
    "ReadinessResult",
    "is_ready",
    # Security
    "SCRIPT_NAMES",
    "SecurityBootstrap",
    "SecurityState",
    "script_workspace",
    # Service control
    "ContainerLauncher",
    "RestartNotifier",
    "ServiceManager",
    # Templates
    "TemplateRenderer",
]
