"""jenkins-bootstrap - Provision a freshly installed Jenkins server."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("jenkins-bootstrap")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"  # Fallback for editable installs without metadata

from .main import main

__all__ = ["main", "__version__"]
