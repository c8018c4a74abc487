"""Startup routine that bulk-loads the built-in function modules."""

from __future__ import annotations

import logging
from typing import Any

from gridfn.arguments import FunctionDeclaration
from gridfn.config import load_config
from gridfn.logging.events import EventType, emit_info
from gridfn.registry import FunctionRegistry

logger = logging.getLogger(__name__)

CategoryModules = list[tuple[str, dict[str, FunctionDeclaration]]]


def export_name_to_function_name(export_name: str) -> str:
    """``FILTER_ROWS`` -> ``FILTER.ROWS``; identifiers cannot hold dots."""
    return export_name.replace("_", ".")


def load_category(
    registry: FunctionRegistry,
    category: str,
    functions: dict[str, FunctionDeclaration],
) -> list[str]:
    """Register every declaration of one function module.

    Declarations without a category get *category*.

    Returns:
        The canonical names registered.
    """
    names = []
    for export_name, declaration in functions.items():
        if declaration.category is None:
            declaration = declaration.model_copy(update={"category": category})
        name = export_name_to_function_name(export_name)
        registry.register(name, declaration)
        names.append(name.upper())
    return names


def build_registry(
    config: dict[str, Any] | None = None,
    categories: CategoryModules | None = None,
) -> FunctionRegistry:
    """Build, fill and freeze the function registry.

    Args:
        config: Merged configuration (see :func:`gridfn.config.load_config`);
            defaults when omitted.
        categories: ``(category, functions)`` pairs to load; the built-in
            modules when omitted.

    Returns:
        A frozen :class:`FunctionRegistry`.
    """
    if config is None:
        config = load_config()
    if categories is None:
        from gridfn.functions import CATEGORIES

        categories = CATEGORIES

    registry = FunctionRegistry(
        on_duplicate=config["on_duplicate_function"],
        implementation_error_message=config.get("implementation_error_message"),
    )
    disabled = {c.lower() for c in config.get("disabled_categories", [])}

    loaded: dict[str, int] = {}
    for category, functions in categories:
        if category.lower() in disabled:
            logger.debug("Skipping disabled function category %s", category)
            continue
        loaded[category] = len(load_category(registry, category, functions))

    registry.freeze()
    emit_info(
        EventType.registry_loaded,
        f"Registered {len(registry)} functions",
        {"function_count": len(registry), "categories": loaded},
    )
    return registry

