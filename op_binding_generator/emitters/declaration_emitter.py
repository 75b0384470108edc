"""
Declaration emitter: packages a generated op into an inert OpDecl.
"""

from __future__ import annotations

from typing import Any, Sequence
import logging

from ..models import OpDecl

logger = logging.getLogger(__name__)


def build_op_decl(op_cls: Any, type_args: Sequence[Any] = ()) -> OpDecl:
    """
    OpDecl for a generated op class. The name is the function's own identifier;
    flags come from the @op options and the async verdict.
    """
    decl = OpDecl(
        name=op_cls.name(),
        v8_fn_ptr=op_cls.v8_fn_ptr(*type_args),
        enabled=True,
        is_async=op_cls.is_async,
        is_unstable=op_cls.is_unstable,
        is_v8=op_cls.is_v8,
    )
    logger.debug("Declared op %s", decl.to_dict())
    return decl


__all__ = ["build_op_decl"]
