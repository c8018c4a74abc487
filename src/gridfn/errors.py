"""Error types for function registration and evaluation.

Two families live here:

- ``RegistrationError`` subclasses are raised while building the registry
  and propagate to the startup routine.
- ``EvaluationError`` subclasses are user-facing spreadsheet errors
  (``#N/A``, ``#REF``, ...).  Leaf functions raise them freely; the error
  handling stage of the pipeline turns them into payloads.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Recognized evaluation error discriminants."""

    bad_expression = "#BAD_EXPR"
    circular_dependency = "#CYCLE"
    generic = "#ERROR"
    not_available = "#N/A"
    invalid_reference = "#REF"
    unknown_function = "#NAME?"
    division_by_zero = "#DIV/0!"
    spill_blocked = "#SPILL!"
    null = "#NULL!"


ERROR_KINDS: frozenset[str] = frozenset(kind.value for kind in ErrorKind)


def is_error_kind(value: object) -> bool:
    """Return True if *value* is a string naming a recognized error kind."""
    return isinstance(value, str) and value in ERROR_KINDS


# ---------------------------------------------------------------------------
# Registration-time errors
# ---------------------------------------------------------------------------


class RegistrationError(Exception):
    """Base class for errors raised while registering functions."""


class InvalidFunctionNameError(RegistrationError):
    """Function name does not match the canonical name pattern.

    Attributes:
        func_name: The rejected (uppercased) name.
    """

    def __init__(self, func_name: str) -> None:
        self.func_name = func_name
        super().__init__(
            f"Invalid function name {func_name}. Function names can exclusively "
            "contain alphanumerical values separated by dots (.) or underscore (_)"
        )


class DuplicateFunctionError(RegistrationError):
    """A function is already registered under this canonical name."""

    def __init__(self, func_name: str) -> None:
        self.func_name = func_name
        super().__init__(f"Function {func_name} is already registered")


class RegistryFrozenError(RegistrationError):
    """Registration attempted after the registry was frozen."""

    def __init__(self, func_name: str) -> None:
        self.func_name = func_name
        super().__init__(
            f"Cannot register {func_name}: the function registry is frozen"
        )


class ArgumentDefinitionError(RegistrationError):
    """Malformed or inconsistent argument metadata.

    Attributes:
        func_name: The function being declared, if known.
    """

    def __init__(self, message: str, func_name: str | None = None) -> None:
        self.func_name = func_name
        super().__init__(message)


class ConfigError(Exception):
    """Invalid value in ``gridfn.yaml``."""


# ---------------------------------------------------------------------------
# Evaluation errors (user-facing)
# ---------------------------------------------------------------------------


class EvaluationError(Exception):
    """A user-facing spreadsheet error.

    Attributes:
        value: The error kind shown in the cell (e.g. ``"#N/A"``).
        message: Human-readable description.  May contain the
            ``[[FUNCTION_NAME]]`` placeholder until the pipeline fills it in.
    """

    kind: ErrorKind = ErrorKind.generic

    def __init__(self, message: str = "", value: ErrorKind | str | None = None) -> None:
        self.value = ErrorKind(value).value if value is not None else self.kind.value
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.value!r}, {self.message!r})"


class BadExpressionError(EvaluationError):
    kind = ErrorKind.bad_expression


class InvalidReferenceError(EvaluationError):
    kind = ErrorKind.invalid_reference


class NotAvailableError(EvaluationError):
    kind = ErrorKind.not_available


class UnknownFunctionError(EvaluationError):
    """No function registered under the requested name."""

    kind = ErrorKind.unknown_function

    def __init__(self, func_name: str) -> None:
        self.func_name = func_name
        super().__init__(f"Unknown function: {func_name!r}")


class DivisionByZeroError(EvaluationError):
    kind = ErrorKind.division_by_zero
