#!/usr/bin/env python3
"""
Op adapter generator (offline entrypoint)

This entrypoint wires together:
- Discovery: importing source modules and collecting their ``@op`` classes
- Emitting (Jinja2-based): one standalone adapter module per source module

Outputs:
- <output_dir>/<module>_ops.py
- <optional> <output_dir>/manifest.json (for introspection)

Usage (example):
  python -m op_binding_generator.generate_bindings \
    --module myext.ops \
    --module myext.fs_ops \
    --output-dir src/generated

Notes:
- Source modules are imported, so their own imports must resolve.
- Use --path to make a source tree importable without installing it.
"""

from __future__ import annotations

import argparse
import importlib
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Type
import logging

from jinja2 import TemplateError

logger = logging.getLogger(__name__)

from .models import GenerationContext, OpGenerationError
from .utils import TemplateRenderer, configure_logging
from .manifest import emit_manifest
from .ops import collect_ops
from .runtime import GeneratedOp
from .emitters.module_emitter import ModuleEmitter, ModuleEmitterConfig


# --------------------------
# Helpers
# --------------------------

def discover_ops(module_names: List[str]) -> Dict[str, List[Type[GeneratedOp]]]:
    """
    Import each module (de-duplicated, order preserved) and collect its ops.
    """
    seen: set[str] = set()
    result: Dict[str, List[Type[GeneratedOp]]] = {}
    for name in module_names:
        if name in seen:
            continue
        seen.add(name)
        module = importlib.import_module(name)
        result[name] = collect_ops(module)
    return result


# --------------------------
# CLI
# --------------------------

def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Generate op adapter modules from @op-annotated functions")

    p.add_argument(
        "--module",
        action="append",
        default=[],
        help="Dotted name of a module defining ops (repeatable).",
    )
    p.add_argument(
        "--path",
        action="append",
        default=[],
        help="Directory prepended to sys.path before importing modules (repeatable).",
    )
    p.add_argument(
        "--output-dir",
        default="generated",
        help="Output directory for generated adapter modules.",
    )
    p.add_argument(
        "--templates-dir",
        default=None,
        help="Optional templates directory. If omitted, package templates are used.",
    )
    p.add_argument(
        "--no-manifest",
        action="store_true",
        help="Do not emit the JSON manifest alongside generated sources.",
    )
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Run discovery and report ops without writing files.",
    )
    p.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for DEBUG)."
    )
    p.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Decrease verbosity (-q for WARNING, -qq for ERROR)."
    )
    p.add_argument(
        "--log-level",
        choices=["CRITICAL","ERROR","WARNING","INFO","DEBUG","NOTSET","critical","error","warning","info","debug","notset"],
        default=None,
        help="Explicit log level (overrides -v/-q)."
    )
    p.add_argument(
        "--log-format",
        default="%(levelname)s: %(message)s",
        help="Logging format string."
    )
    p.add_argument(
        "--log-file",
        default=None,
        help="Optional file to write logs to."
    )

    return p.parse_args(argv)


# --------------------------
# Main
# --------------------------

def main(argv: Optional[Sequence[str]] = None) -> int:
    ns = parse_args(argv)

    # Configure logging as early as possible
    if ns.log_level:
        level = getattr(logging, str(ns.log_level).upper(), logging.INFO)
    elif ns.verbose >= 1:
        level = logging.DEBUG
    elif ns.quiet >= 2:
        level = logging.ERROR
    elif ns.quiet == 1:
        level = logging.WARNING
    else:
        level = logging.INFO

    configure_logging(level=level, to_file=ns.log_file, fmt=ns.log_format)

    ctx = GenerationContext(
        output_dir=Path(ns.output_dir).resolve(),
        templates_dir=Path(ns.templates_dir).resolve() if ns.templates_dir else None,
        modules=list(ns.module),
        dry_run=ns.dry_run,
    )

    try:
        renderer = TemplateRenderer(ctx.templates_dir)
    except (OSError, ValueError):
        logger.exception("Failed to initialize templating")
        return 1

    if not ctx.modules:
        logger.error("No modules given. Provide --module.")
        return 2

    for extra in reversed(ns.path):
        sys.path.insert(0, str(Path(extra).resolve()))

    try:
        ops_by_module = discover_ops(ctx.modules)
    except (ImportError, OpGenerationError):
        logger.exception("Failed to collect ops")
        return 3

    logger.info("Discovered %d op(s) in %d module(s)", sum(len(v) for v in ops_by_module.values()), len(ops_by_module))
    for module_name, ops in ops_by_module.items():
        for op_cls in ops:
            logger.debug(
                "Op %s.%s: async=%s unstable=%s v8=%s",
                module_name,
                op_cls.name(),
                op_cls.is_async,
                op_cls.is_unstable,
                op_cls.is_v8,
            )

    if ctx.dry_run:
        logger.info("Dry-run complete (no files written).")
        return 0

    try:
        emitter = ModuleEmitter(ctx=ctx, renderer=renderer, config=ModuleEmitterConfig())
        emitter.emit(ops_by_module)
    except (OSError, RuntimeError, TemplateError):
        logger.exception("Failed to generate files")
        return 4

    if not ns.no_manifest:
        try:
            emit_manifest(ctx, ops_by_module)
        except (OSError, TypeError, ValueError):
            logger.exception("Failed to emit generation manifest")
            return 5

    return 0


if __name__ == "__main__":
    sys.exit(main())
