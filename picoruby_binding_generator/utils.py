#!/usr/bin/env python3
"""
Shared plumbing for the PicoRuby binding generator:
- logging setup for the CLI
- the layered Jinja2 renderer (user templates over package templates)
- camel_to_snake, used for runtime method names and as a template filter
- write_text: atomic, dry-run aware, skips files whose content is unchanged
"""

from __future__ import annotations

import os
import re
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import logging

from jinja2 import (
    ChoiceLoader,
    Environment,
    FileSystemLoader,
    PackageLoader,
    StrictUndefined,
    TemplateNotFound,
)

logger = logging.getLogger(__name__)

PACKAGE = "picoruby_binding_generator"
DEFAULT_LOG_FORMAT = "%(levelname)s: %(message)s"


def configure_logging(
    level: Union[int, str] = logging.INFO,
    *,
    to_file: Optional[Union[str, Path]] = None,
    fmt: Optional[str] = None,
) -> None:
    """
    Replace the root handlers with a stderr handler (plus a file handler when
    `to_file` is given), all at `level`.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(fmt or DEFAULT_LOG_FORMAT)

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if to_file:
        handlers.append(logging.FileHandler(str(to_file), mode="w"))

    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(level)
    for h in handlers:
        h.setLevel(level)
        h.setFormatter(formatter)
        root.addHandler(h)
    logging.getLogger(PACKAGE).setLevel(level)


# ----------------------------------------
# Naming helpers
# ----------------------------------------

def camel_to_snake(name: str) -> str:
    """
    'wasPressed' -> 'was_pressed', 'getIMUData' -> 'get_imu_data'
    """
    s = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    s = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s)
    return s.lower()


# ----------------------------------------
# Jinja environment
# ----------------------------------------

class TemplateRenderer:
    """
    Jinja2 environment over two layers, first match wins:
    - templates_dir: user-provided directory
    - picoruby_binding_generator/templates
    """

    def __init__(self, templates_dir: Optional[Path] = None) -> None:
        loaders: List[Any] = []
        if templates_dir:
            p = Path(templates_dir)
            if p.is_dir():
                loaders.append(FileSystemLoader(str(p)))
            else:
                logger.warning("Templates directory %s does not exist; using package templates", p)
        loaders.append(PackageLoader(PACKAGE, "templates"))

        self.env = Environment(
            loader=ChoiceLoader(loaders),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            autoescape=False,
        )
        self.env.filters["to_snake"] = camel_to_snake

    def render(self, template_name: str, context: Dict[str, Any]) -> str:
        try:
            template = self.env.get_template(template_name)
        except TemplateNotFound as e:
            raise RuntimeError(f"Template not found: {template_name}") from e
        return template.render(**context)


# ----------------------------------------
# File output
# ----------------------------------------

def _unchanged(path: Path, content: str) -> bool:
    try:
        existing = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return False
    return existing.replace("\r\n", "\n") == content


def write_text(path: Path, content: str, dry_run: bool = False) -> bool:
    """
    Write `content` (Unix newlines) to `path` through a temporary file in the
    same directory. Returns False when nothing was written: dry run, or the
    file already holds exactly this content.
    """
    if dry_run:
        logger.info("[dry-run] write %s", path)
        return False

    content = content.replace("\r\n", "\n")
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if _unchanged(path, content):
        logger.debug("[skip] %s (unchanged)", path)
        return False

    fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(content)
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, path)
    except BaseException:
        os.unlink(tmp_path)
        raise
    logger.info("[write] %s", path)
    return True


__all__ = [
    "TemplateRenderer",
    "camel_to_snake",
    "configure_logging",
    "write_text",
]
