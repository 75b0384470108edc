import sys
import os
import platform
import shlex
from datetime import datetime, timezone
from importlib import metadata as importlib_metadata

import json
from typing import Dict, Sequence, Type
from .models import GenerationContext
from .runtime import GeneratedOp
from .utils import write_text

import logging
logger = logging.getLogger(__name__)

def _generator_version() -> str:
    try:
        return importlib_metadata.version("op-binding-generator")
    except importlib_metadata.PackageNotFoundError:
        from . import __version__
        return __version__

def op_entry(op_cls: Type[GeneratedOp]) -> Dict:
    """
    Manifest entry for one op: its declaration flags plus the analyzed signature.
    """
    decl = op_cls.decl() if not op_cls.descriptor.type_params else None
    return {
        "name": op_cls.name(),
        "decl": decl.to_dict() if decl else None,
        "is_async": op_cls.is_async,
        "is_unstable": op_cls.is_unstable,
        "is_v8": op_cls.is_v8,
        "descriptor": op_cls.descriptor.to_dict(),
    }

def build_manifest(ctx: GenerationContext, ops_by_module: Dict[str, Sequence[Type[GeneratedOp]]]) -> Dict:
    argv = list(getattr(sys, "argv", []) or [])
    command_line = " ".join(shlex.quote(a) for a in argv) if argv else ""

    env_info = {
        "python_version": sys.version,
        "python_executable": sys.executable,
        "platform": platform.platform(),
        "system": platform.system(),
        "machine": platform.machine(),
        "cwd": os.getcwd(),
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
    }

    return {
        "generator": {
            "name": "op-binding-generator",
            "version": _generator_version(),
        },
        "invocation": {
            "argv": argv,
            "command_line": command_line,
        },
        "environment": env_info,
        "output_dir": str(ctx.output_dir),
        "op_count": sum(len(ops) for ops in ops_by_module.values()),
        "modules": {
            module_name: [op_entry(op_cls) for op_cls in ops]
            for module_name, ops in ops_by_module.items()
        },
    }

def emit_manifest(ctx: GenerationContext, ops_by_module: Dict[str, Sequence[Type[GeneratedOp]]]) -> None:
    """
    Emit a JSON manifest of the generation run: generator metadata, full command
    line, and one entry per op. Useful for debugging and testing.
    """
    manifest = build_manifest(ctx, ops_by_module)
    manifest_path = ctx.output_dir / "manifest.json"
    content = json.dumps(manifest, indent=2)
    write_text(manifest_path, content, dry_run=ctx.dry_run)
