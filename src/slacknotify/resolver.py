"""
Template resolution for Slack notification messages.

Decides which template renders a notification and where it is loaded from:
- the built-in message bundled with the package, or
- an operator template looked up in an external directory first, with the
  built-in bundle behind it for names the directory does not provide.

Resolution never fails. An unusable external directory falls back to the
built-in message with a logged warning.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional, Tuple, Union

import structlog
from jinja2 import Environment, FileSystemLoader

from slacknotify.messages import job_display_name, node_fields, status_label


logger = structlog.get_logger()

BUILTIN_TEMPLATE_NAME = "slack-incoming-message.j2"
BUILTIN_TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

RDECK_BASE_PLACEHOLDER = "${rdeck.base}"
RDECK_BASE_ENV_PLACEHOLDER = "$RDECK_BASE"
RDECK_BASE_ENV_VAR = "RDECK_BASE"


@dataclass(frozen=True)
class TemplateSource:
    """Ordered template lookup locations; earlier entries win on name collision."""

    search_path: Tuple[Path, ...]

    @property
    def loader(self) -> FileSystemLoader:
        return FileSystemLoader([str(path) for path in self.search_path])

    @property
    def is_builtin_only(self) -> bool:
        return self.search_path == (BUILTIN_TEMPLATE_DIR,)


@dataclass(frozen=True)
class ResolvedTemplate:
    """Template source plus the template name to render from it."""

    source: TemplateSource
    name: str


BUILTIN_SOURCE = TemplateSource(search_path=(BUILTIN_TEMPLATE_DIR,))


def builtin_template() -> ResolvedTemplate:
    """Return the built-in message template."""
    return ResolvedTemplate(source=BUILTIN_SOURCE, name=BUILTIN_TEMPLATE_NAME)


def expand_template_dir(
    template_dir: Optional[str],
    rdeck_base: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Compute the effective external template directory.

    A blank setting defaults to <rdeck_base>/libext/templates. Otherwise
    ${rdeck.base} is replaced with rdeck_base and $RDECK_BASE with the
    RDECK_BASE environment variable (or rdeck_base when that is unset).

    Args:
        template_dir: Configured directory string, possibly with placeholders.
        rdeck_base: Base install path. Defaults to ".".
        environ: Environment mapping. Defaults to os.environ.

    Returns:
        Directory path string.

    Example:
        >>> expand_template_dir("", rdeck_base="/var/lib/rundeck")
        '/var/lib/rundeck/libext/templates'
    """
    base = rdeck_base or "."
    if template_dir is None or not template_dir.strip():
        return os.path.join(base, "libext", "templates")

    if environ is None:
        environ = os.environ
    base_env = environ.get(RDECK_BASE_ENV_VAR)
    if base_env is None or not base_env.strip():
        base_env = base

    return (
        template_dir
        .replace(RDECK_BASE_PLACEHOLDER, base)
        .replace(RDECK_BASE_ENV_PLACEHOLDER, base_env)
    )


def _external_source(directory: Union[str, Path]) -> TemplateSource:
    """Build a source searching directory before the built-in bundle."""
    path = Path(directory)
    if not path.exists():
        raise FileNotFoundError(f"Template directory does not exist: {path}")
    if not path.is_dir():
        raise NotADirectoryError(f"Template path is not a directory: {path}")
    if not os.access(path, os.R_OK | os.X_OK):
        raise PermissionError(f"Template directory is not readable: {path}")
    return TemplateSource(search_path=(path.resolve(), BUILTIN_TEMPLATE_DIR))


def resolve_template(
    template_name: Optional[str],
    template_dir: Optional[str],
    rdeck_base: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ResolvedTemplate:
    """
    Decide which template to render and where to load it from.

    Args:
        template_name: Custom template name. None or empty selects the built-in.
        template_dir: Custom template directory setting (placeholders allowed).
        rdeck_base: Base install path used for ${rdeck.base}.
        environ: Environment mapping used for $RDECK_BASE.

    Returns:
        ResolvedTemplate; always usable, never raises.
    """
    try:
        if not template_name:
            return builtin_template()

        directory = expand_template_dir(template_dir, rdeck_base=rdeck_base, environ=environ)
        try:
            source = _external_source(directory)
        except OSError as exc:
            logger.warning(
                "Could not use external template path, falling back to built-in",
                template_dir=directory,
                error=str(exc),
            )
            return builtin_template()

        logger.info(
            "Using external template dir",
            template_dir=directory,
            template=template_name,
        )
        return ResolvedTemplate(source=source, name=template_name)

    except Exception as exc:
        logger.error(
            "Unexpected error resolving templates, falling back to built-in",
            error=str(exc),
        )
        return builtin_template()


def build_environment(source: TemplateSource) -> Environment:
    """
    Create a Jinja2 environment for one render.

    Message helpers are registered as globals and filters so that
    operator templates can reuse the built-in wording.
    """
    env = Environment(
        loader=source.loader,
        keep_trailing_newline=True,
        # Templates are reloaded per call; nothing is cached across notifications
        cache_size=0,
    )
    env.policies["json.dumps_kwargs"] = {
        "sort_keys": False,
        "separators": (",", ":"),
        "ensure_ascii": False,
    }
    env.globals["status_label"] = status_label
    env.globals["node_fields"] = node_fields
    env.globals["job_display_name"] = job_display_name
    env.filters["status_label"] = status_label
    return env


def search_path_strings(source: TemplateSource) -> List[str]:
    """Search path as strings, for logging."""
    return [str(path) for path in source.search_path]
