#!/usr/bin/env python3
"""
Emitter module for writing standalone op adapter modules.

This module takes the ops collected from source modules and uses the
Jinja2-based renderer to emit, per source module:

- <output_dir>/<module>_ops.py: the rendered op factories plus the bindings
  that rebuild each op class against the original function at import time

Design goals:
- Same templates as in-process generation, so both paths emit identical trampolines.
- Production-grade file writing (atomic, idempotent).
- Configurable template names.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Type
import logging

from ..models import GenerationContext, MacroArgs
from ..runtime import GeneratedOp
from ..utils import TemplateRenderer, ensure_dir, sanitize_identifier, write_text
from .trampoline_emitter import TrampolineEmitter, TrampolineEmitterConfig

logger = logging.getLogger(__name__)


# --------------------------
# Configuration
# --------------------------

@dataclass(frozen=True)
class ModuleEmitterConfig:
    """
    Configuration for the adapter module emitter.
    """
    module_template: str = "ops_module.py.j2"
    module_suffix: str = "_ops"
    trampolines: TrampolineEmitterConfig = TrampolineEmitterConfig()


# --------------------------
# Emitter
# --------------------------

class ModuleEmitter:
    """
    Emit standalone adapter modules from collected op classes.

    Usage:
        emitter = ModuleEmitter(ctx, renderer, config)
        paths = emitter.emit({"pkg.ops": [op_add, op_read]})
    """

    def __init__(self, ctx: GenerationContext, renderer: TemplateRenderer, config: Optional[ModuleEmitterConfig] = None) -> None:
        self.ctx = ctx
        self.renderer = renderer
        self.config = config or ModuleEmitterConfig()
        self.trampolines = TrampolineEmitter(renderer, self.config.trampolines)

    # ---- Public API ----

    def emit(self, ops_by_module: Dict[str, Sequence[Type[GeneratedOp]]]) -> List[Path]:
        """
        Generate one adapter module per source module. Returns the output paths.
        """
        ensure_dir(self.ctx.output_dir)
        paths: List[Path] = []
        for module_name, ops in ops_by_module.items():
            if not ops:
                logger.warning("Module %s defines no ops; skipping", module_name)
                continue
            paths.append(self._emit_module(module_name, ops))
        logger.info("Generation complete under: %s", self.ctx.output_dir)
        return paths

    def output_path(self, module_name: str) -> Path:
        return self.ctx.output_dir / f"{sanitize_identifier(module_name)}{self.config.module_suffix}.py"

    def render_module(self, module_name: str, ops: Sequence[Type[GeneratedOp]]) -> str:
        op_contexts = []
        for op_cls in ops:
            margs = MacroArgs(is_unstable=op_cls.is_unstable, is_v8=op_cls.is_v8)
            op_contexts.append(
                {
                    "name": op_cls.name(),
                    "is_unstable": op_cls.is_unstable,
                    "is_v8": op_cls.is_v8,
                    "source": self.trampolines.render_op(op_cls.descriptor, margs).rstrip("\n"),
                }
            )
        context = {"source_module": module_name, "ops": op_contexts}
        return self.renderer.render(self.config.module_template, context)

    # ---- Internals ----

    def _emit_module(self, module_name: str, ops: Sequence[Type[GeneratedOp]]) -> Path:
        content = self.render_module(module_name, ops)
        path = self.output_path(module_name)
        try:
            write_text(path, content, dry_run=self.ctx.dry_run)
        except OSError:
            logger.exception("Failed to write adapter module for %s to %s", module_name, path)
            raise
        logger.debug("Module %s: %d op(s) -> %s", module_name, len(ops), path)
        return path


__all__ = [
    "ModuleEmitterConfig",
    "ModuleEmitter",
]
