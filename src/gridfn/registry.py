"""Registry of spreadsheet functions and their wrapped callables.

A :class:`FunctionRegistry` is filled once at startup (see
:func:`gridfn.loader.build_registry`), then frozen and shared read-only by
every evaluation worker.
"""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import Any, Iterator

from gridfn.arguments import FunctionDeclaration, FunctionDescriptor, add_meta_info, validate_arguments
from gridfn.errors import (
    DuplicateFunctionError,
    InvalidFunctionNameError,
    RegistryFrozenError,
    UnknownFunctionError,
)
from gridfn.logging.events import (
    DUPLICATE_FUNCTION,
    EventLevel,
    EventType,
    emit,
    make_function_event,
)
from gridfn.pipeline import (
    IMPLEMENTATION_ERROR_MESSAGE,
    WrappedFunction,
    build_wrapped_function,
    handle_error,
)
from gridfn.values import Grid, Payload

FUNCTION_NAME_RE = re.compile(r"^[A-Z0-9_.]+$")


class FunctionRegistry:
    """Canonical function descriptors and their pipeline-wrapped callables.

    Args:
        on_duplicate: ``"error"`` to reject a second registration under the
            same name, ``"replace"`` to overwrite it (with a warning event).
        implementation_error_message: Generic text shown when a function
            fails unexpectedly.
    """

    def __init__(
        self,
        *,
        on_duplicate: str = "error",
        implementation_error_message: str | None = None,
    ) -> None:
        if on_duplicate not in ("error", "replace"):
            raise ValueError(f"on_duplicate must be 'error' or 'replace', got {on_duplicate!r}")
        self.on_duplicate = on_duplicate
        self.implementation_error_message = implementation_error_message or IMPLEMENTATION_ERROR_MESSAGE
        self._descriptors: dict[str, FunctionDescriptor] = {}
        self._mapping: dict[str, WrappedFunction] = {}
        self._frozen = False

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, name: str, declaration: FunctionDeclaration) -> WrappedFunction:
        """Register *declaration* under *name* and return its wrapped callable.

        The name is uppercased and must match ``^[A-Z0-9_.]+$``.

        Raises:
            InvalidFunctionNameError: If the name is not canonical.
            RegistryFrozenError: If :meth:`freeze` was already called.
            DuplicateFunctionError: If the name is taken and the registry
                does not replace duplicates.
            ArgumentDefinitionError: If the argument list is inconsistent.
        """
        name = name.upper()
        if not FUNCTION_NAME_RE.match(name):
            raise InvalidFunctionNameError(name)
        if self._frozen:
            raise RegistryFrozenError(name)
        if name in self._descriptors:
            if self.on_duplicate == "error":
                raise DuplicateFunctionError(name)
            emit(
                make_function_event(
                    EventType.function_replaced,
                    EventLevel.warning,
                    f"Function {name} registered twice; replacing the previous definition",
                    function_name=name,
                    category=declaration.category,
                    error_code=DUPLICATE_FUNCTION,
                ),
                function_name=name,
            )

        validate_arguments(name, declaration.args)
        descriptor = add_meta_info(name, declaration)
        wrapped = build_wrapped_function(descriptor, self.implementation_error_message)
        self._descriptors[name] = descriptor
        self._mapping[name] = wrapped
        return wrapped

    def freeze(self) -> None:
        """End the registration phase; the registry is read-only afterwards."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def mapping(self) -> MappingProxyType:
        """Read-only view of canonical name to wrapped callable."""
        return MappingProxyType(self._mapping)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, name: str) -> FunctionDescriptor:
        """Return the descriptor registered under *name*.

        Raises:
            UnknownFunctionError: If no function has that name.
        """
        key = name.upper()
        if key not in self._descriptors:
            raise UnknownFunctionError(key)
        return self._descriptors[key]

    def lookup(self, name: str) -> WrappedFunction:
        """Return the wrapped callable registered under *name*.

        Raises:
            UnknownFunctionError: If no function has that name.
        """
        key = name.upper()
        if key not in self._mapping:
            raise UnknownFunctionError(key)
        return self._mapping[key]

    def invoke(self, name: str, args: list[Any] | tuple[Any, ...], context: Any = None) -> Payload | Grid:
        """Call function *name* with *args* and an evaluation *context*.

        Never raises: an unknown name yields a ``#NAME?`` payload and every
        failure inside the call is already contained by the pipeline.
        """
        try:
            fn = self.lookup(name)
        except UnknownFunctionError as exc:
            return handle_error(exc, name.upper(), self.implementation_error_message)
        return fn(context, *args)

    def names(self, category: str | None = None) -> list[str]:
        """Sorted canonical names, optionally restricted to one category."""
        return sorted(
            name for name, descr in self._descriptors.items()
            if category is None or descr.category == category
        )

    def categories(self) -> list[str]:
        return sorted({d.category for d in self._descriptors.values() if d.category})

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.upper() in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())
