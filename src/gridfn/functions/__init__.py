"""Built-in function modules, grouped by category.

Each module exports a ``dict`` of :class:`~gridfn.arguments.FunctionDeclaration`
keyed by export identifier.  Identifiers use ``_`` where the public name has
a ``.`` (``CEILING_MATH`` is registered as ``CEILING.MATH``).
"""

from gridfn.functions.module_array import ARRAY_FUNCTIONS
from gridfn.functions.module_database import DATABASE_FUNCTIONS
from gridfn.functions.module_date import DATE_FUNCTIONS
from gridfn.functions.module_financial import FINANCIAL_FUNCTIONS
from gridfn.functions.module_logical import LOGICAL_FUNCTIONS
from gridfn.functions.module_lookup import LOOKUP_FUNCTIONS
from gridfn.functions.module_math import MATH_FUNCTIONS
from gridfn.functions.module_text import TEXT_FUNCTIONS

CATEGORIES = [
    ("Array", ARRAY_FUNCTIONS),
    ("Database", DATABASE_FUNCTIONS),
    ("Date", DATE_FUNCTIONS),
    ("Financial", FINANCIAL_FUNCTIONS),
    ("Logical", LOGICAL_FUNCTIONS),
    ("Lookup", LOOKUP_FUNCTIONS),
    ("Math", MATH_FUNCTIONS),
    ("Text", TEXT_FUNCTIONS),
]

__all__ = ["CATEGORIES"]
