"""gridfn -- the function execution pipeline of a spreadsheet formula engine.

Public API::

    from gridfn import build_registry, Payload

    registry = build_registry()
    registry.invoke("SUM", [2, 3])          # Payload(value=5)
"""

__version__ = "0.1.0"

from gridfn.arguments import ArgumentSpec, FunctionDeclaration, FunctionDescriptor, arg
from gridfn.errors import (
    BadExpressionError,
    ErrorKind,
    EvaluationError,
    InvalidFunctionNameError,
    NotAvailableError,
    UnknownFunctionError,
)
from gridfn.loader import build_registry
from gridfn.registry import FunctionRegistry
from gridfn.values import EvalContext, MappingEvalContext, Payload

__all__ = [
    "ArgumentSpec",
    "BadExpressionError",
    "ErrorKind",
    "EvalContext",
    "EvaluationError",
    "FunctionDeclaration",
    "FunctionDescriptor",
    "FunctionRegistry",
    "InvalidFunctionNameError",
    "MappingEvalContext",
    "NotAvailableError",
    "Payload",
    "UnknownFunctionError",
    "__version__",
    "arg",
    "build_registry",
]
