"""
Op binding generator.

Turns annotated Python functions into ops callable from a host script engine:
the ``@op`` annotation analyzes a function's signature once and generates a
trampoline that decodes dynamic arguments, binds ambient context, invokes the
function and encodes its outcome (synchronously or as a scheduled
computation). ``generate_bindings`` does the same offline and writes
standalone adapter modules.
"""

__version__ = "0.1.0"

from .host import FunctionCallbackArguments, HandleScope, ReturnValue, SerializationError, Serializer
from .models import MacroArgs, OpDecl, OpGenerationError
from .ops import OpGenerator, collect_ops, op
from .results import Err, Ok, Result
from .runtime import GeneratedOp, OpCtx
from .serde import JsonSerializer
from .state import BorrowError, OpState, StateCell

__all__ = [
    "__version__",
    "op",
    "OpGenerator",
    "collect_ops",
    "GeneratedOp",
    "OpCtx",
    "OpDecl",
    "MacroArgs",
    "OpGenerationError",
    "Ok",
    "Err",
    "Result",
    "OpState",
    "StateCell",
    "BorrowError",
    "HandleScope",
    "FunctionCallbackArguments",
    "ReturnValue",
    "Serializer",
    "SerializationError",
    "JsonSerializer",
]
