"""Template rendering for generated scripts and configuration files.

Operator templates (templates_dir) take precedence over the templates
bundled with the package.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Any

import jinja2

from ..errors import TemplateError


class TemplateRenderer:
    """Render jinja2 templates to files."""

    def __init__(self, templates_dir: Path | None = None):
        """Initialize renderer.

        Args:
            templates_dir: Directory with operator-supplied templates.
        """
        loaders: list[jinja2.BaseLoader] = []
        if templates_dir is not None:
            loaders.append(jinja2.FileSystemLoader(str(templates_dir)))
        loaders.append(jinja2.PackageLoader("jenkins_bootstrap", "templates"))

        self.env = jinja2.Environment(
            loader=jinja2.ChoiceLoader(loaders),
            undefined=jinja2.StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )

    def render(self, name: str, context: dict[str, Any]) -> str:
        """Render a template to a string.

        Raises:
            TemplateError: if the template is missing or uses an undefined variable.
        """
        try:
            return self.env.get_template(name).render(**context)
        except jinja2.TemplateNotFound as e:
            raise TemplateError(f"Template not found: {name}", template=name) from e
        except jinja2.UndefinedError as e:
            raise TemplateError(f"{name}: {e.message}", template=name) from e
        except jinja2.TemplateSyntaxError as e:
            raise TemplateError(f"{name}:{e.lineno}: {e.message}", template=name) from e

    def render_to(
        self,
        name: str,
        dest: Path,
        context: dict[str, Any],
        owner: str | None = None,
        mode: int | None = None,
    ) -> Path:
        """Render a template and write it to dest, replacing any existing file."""
        content = self.render(name, context)
        dest.parent.mkdir(parents=True, exist_ok=True)

        tmp = dest.with_name(f".{dest.name}.tmp")
        tmp.unlink(missing_ok=True)
        try:
            # Never wider than the target mode, not even before the chmod
            fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o666 if mode is None else mode)
            with os.fdopen(fd, "w") as f:
                f.write(content)
            if mode is not None:
                os.chmod(tmp, mode)
            os.replace(tmp, dest)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise

        chown(dest, owner)
        return dest


def chown(path: Path, owner: str | None) -> None:
    """Hand a file to the service account when running as root."""
    if owner and os.geteuid() == 0:
        shutil.chown(path, user=owner)
