#!/usr/bin/env python3
"""
Utilities for templating (Jinja2), logging and file I/O for the op binding generator.

This module provides:
- Layered Jinja2 environment creation with user templates and package templates.
- A `pyrepr` template filter for emitting Python literals into generated source.
- Production-grade file writing helpers (atomic writes, newline normalization, idempotency).
- Small naming/spelling helpers shared by the parser, emitters and manifest.

The goal is to keep the rest of the codebase focused on signature analysis and emission logic.
"""

from __future__ import annotations

import keyword
import os
import re
import sys
import tempfile
import typing
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO, Union
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

def configure_logging(
    level: Optional[Union[int, str]] = None,
    *,
    to_file: Optional[Union[str, Path]] = None,
    fmt: Optional[str] = None,
    stream: Optional[TextIO] = None,
    propagate_package_loggers: bool = True,
) -> None:
    """
    Configure project-wide logging with consistent formatting and optional file output.

    Parameters:
    - level: int or name (e.g., 'INFO', 'DEBUG'). Defaults to INFO.
    - to_file: path to a log file; if provided, logs are also written there.
    - fmt: logging format string. Defaults to '%(levelname)s: %(message)s'.
    - stream: stream for console logs (defaults to sys.stderr).
    - propagate_package_loggers: whether the 'op_binding_generator' logger propagates to root.
    """
    if level is None:
        resolved_level = logging.INFO
    elif isinstance(level, str):
        resolved_level = getattr(logging, level.upper(), logging.INFO)
    else:
        resolved_level = int(level)

    log_format = fmt or "%(levelname)s: %(message)s"
    stream = stream or sys.stderr

    # Reset root handlers for deterministic setup
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)
    root.setLevel(resolved_level)

    handlers: List[logging.Handler] = []

    stream_handler = logging.StreamHandler(stream)
    stream_handler.setLevel(resolved_level)
    stream_handler.setFormatter(logging.Formatter(log_format))
    handlers.append(stream_handler)

    if to_file:
        file_handler = logging.FileHandler(str(to_file), mode="w")
        file_handler.setLevel(resolved_level)
        file_handler.setFormatter(logging.Formatter(log_format))
        handlers.append(file_handler)

    for h in handlers:
        root.addHandler(h)

    pkg_logger = logging.getLogger("op_binding_generator")
    pkg_logger.setLevel(resolved_level)
    pkg_logger.propagate = propagate_package_loggers

    # Ensure our module-level logger picks up new config
    global logger
    logger = logging.getLogger(__name__)


# ----------------------------------------
# Naming helpers
# ----------------------------------------

_NON_IDENT = re.compile(r"[^0-9a-zA-Z_]")

def sanitize_identifier(name: str) -> str:
    """
    Turn an arbitrary dotted/dashed name into a valid Python identifier.
    'pkg.sub-mod' -> 'pkg_sub_mod', 'class' -> 'class_'
    """
    ident = _NON_IDENT.sub("_", name or "")
    if not ident:
        return "_"
    if ident[0].isdigit():
        ident = f"_{ident}"
    if keyword.iskeyword(ident):
        return f"{ident}_"
    return ident

def type_spelling(annotation: Any) -> str:
    """
    Human-friendly spelling of a type annotation, used for diagnostics and manifests.
    """
    if annotation is None or annotation is type(None):
        return "None"
    if isinstance(annotation, type) and not typing.get_args(annotation):
        if annotation.__module__ == "builtins":
            return annotation.__qualname__
        return f"{annotation.__module__}.{annotation.__qualname__}"
    return repr(annotation).replace("typing.", "")


# ----------------------------------------
# Jinja environment helpers
# ----------------------------------------

class TemplateRenderer:
    """
    A thin wrapper over a Jinja2 Environment with layered loaders and a `pyrepr` filter.
    - templates_dir: user-provided templates directory (highest precedence)
    - package templates: op_binding_generator/templates
    """

    def __init__(self, templates_dir: Optional[Path] = None) -> None:
        loaders: List[Any] = []

        # 1) User-provided directory
        if templates_dir:
            p = Path(templates_dir)
            if p.is_dir():
                loaders.append(FileSystemLoader(str(p)))
            else:
                logger.warning("Templates directory %s does not exist; using package templates", p)

        # 2) Package templates (installed alongside this module)
        loaders.append(PackageLoader("op_binding_generator", "templates"))

        self.env = Environment(
            loader=ChoiceLoader(loaders),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            autoescape=False,
        )

        self._register_filters()

    # ---- Filters registration ----

    def _register_filters(self) -> None:
        self.env.filters["pyrepr"] = repr

    # ---- Rendering ----

    def render(self, template_name: str, context: Dict[str, Any]) -> str:
        try:
            template = self.env.get_template(template_name)
        except TemplateNotFound as e:
            raise RuntimeError(f"Template not found: {template_name}") from e
        return template.render(**context)


# ----------------------------------------
# File I/O helpers
# ----------------------------------------

def ensure_dir(p: Path) -> None:
    """
    Ensure directory exists (mkdir -p).
    """
    Path(p).mkdir(parents=True, exist_ok=True)

def normalize_newlines(text: str) -> str:
    """
    Normalize to Unix newlines for reproducible diffs.
    """
    return text.replace("\r\n", "\n").replace("\r", "\n")

def _read_text_if_exists(path: Path, encoding: str = "utf-8") -> Optional[str]:
    try:
        with open(path, "r", encoding=encoding, newline="") as f:
            return f.read()
    except FileNotFoundError:
        return None

def atomic_write_text(
    path: Path,
    content: str,
    encoding: str = "utf-8",
    make_parents: bool = True,
    mode: Optional[int] = 0o644,
    log: bool = True,
    only_if_changed: bool = True,
) -> bool:
    """
    Write text atomically to the given path:
    - Optionally avoid writing if the content is unchanged.
    - Write to a temp file in the same directory and os.replace to final path.
    - Set POSIX file mode if provided.

    Returns True if a write occurred, False if skipped due to idempotency.
    """
    content = normalize_newlines(content)
    if make_parents:
        ensure_dir(path.parent)

    if only_if_changed:
        old = _read_text_if_exists(path, encoding=encoding)
        if old is not None and normalize_newlines(old) == content:
            if log:
                logger.debug(f"[skip] {path} (unchanged)")
            return False

    tmp_path = None
    try:
        fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
        with os.fdopen(fd, "w", encoding=encoding, newline="\n") as f:
            f.write(content)
        if mode is not None:
            os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
        tmp_path = None
        if log:
            logger.info(f"[write] {path}")
        return True
    finally:
        # Cleanup temp if an exception occurred before replace
        if tmp_path and os.path.exists(tmp_path):
            os.remove(tmp_path)

def write_text(
    path: Path,
    content: str,
    encoding: str = "utf-8",
    dry_run: bool = False,
    log: bool = True,
) -> None:
    """
    Convenience wrapper over atomic_write_text with optional dry-run support.
    """
    if dry_run:
        if log:
            logger.info(f"[dry-run] write {path}")
        return
    atomic_write_text(path, content, encoding=encoding, log=log)


__all__ = [
    "TemplateRenderer",
    "configure_logging",
    "sanitize_identifier",
    "type_spelling",
    "ensure_dir",
    "normalize_newlines",
    "atomic_write_text",
    "write_text",
]
