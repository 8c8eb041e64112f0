"""Scalar map for the Art Blocks GraphQL schemas.

Binds GraphQL scalar names to Python types and defines how each one is
serialized onto the wire and read back. The subgraph sends ``BigInt`` as a
decimal string and ``Bytes`` as a hex string; the Hasura side passes
``jsonb``, ``timestamptz``, ``uuid`` and friends through untouched.

Example usage:
    from artblocks_gql.core.scalars import ScalarRegistry

    registry = ScalarRegistry()
    registry.python_type("BigInt")       # "BigInt"
    registry.python_type("timestamptz")  # "Any"

    # Custom handler
    class MoneyHandler:
        python_type = "Decimal"
        import_statement = "from decimal import Decimal"

        def serialize(self, value):
            return str(value)

        def deserialize(self, value):
            from decimal import Decimal
            return Decimal(value)

    registry.register("money", MoneyHandler())
"""

import re
from typing import Annotated, Any, Protocol, runtime_checkable

from pydantic import BeforeValidator

_DECIMAL_RE = re.compile(r"^-?\d+$")
_HEX_RE = re.compile(r"^0x[0-9a-fA-F]*$")

# GraphQL built-in scalars
BUILTIN_SCALARS = {
    "ID": "str",
    "String": "str",
    "Boolean": "bool",
    "Int": "int",
    "Float": "float",
}


def to_decimal_string(value: Any) -> str:
    """Coerce an int or decimal string into the BigInt wire format."""
    # bool is an int subclass; True is not a BigInt
    if isinstance(value, bool):
        raise ValueError("BigInt does not accept booleans")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and _DECIMAL_RE.match(value):
        return value
    raise ValueError(f"Invalid BigInt value: {value!r}")


def to_hex_string(value: Any) -> str:
    """Coerce bytes or a 0x-prefixed hex string into the Bytes wire format."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, str) and _HEX_RE.match(value):
        return value
    raise ValueError(f"Invalid Bytes value: {value!r}")


BigInt = Annotated[str, BeforeValidator(to_decimal_string)]
Bytes = Annotated[str, BeforeValidator(to_hex_string)]


@runtime_checkable
class ScalarHandler(Protocol):
    """Protocol for custom scalar handlers.

    Implement this protocol to define how a GraphQL scalar maps to Python.

    Attributes:
        python_type: The Python type name used in generated code
        import_statement: The import needed for this type
    """

    python_type: str
    import_statement: str

    def serialize(self, value: Any) -> Any:
        """Convert Python value to JSON-serializable format for GraphQL."""
        ...

    def deserialize(self, value: Any) -> Any:
        """Convert JSON value from GraphQL to Python type."""
        ...


class BigIntHandler:
    """Handler for BigInt/bigint scalars, carried as decimal strings."""

    python_type = "BigInt"
    import_statement = "from artblocks_gql.core.scalars import BigInt"

    def serialize(self, value: int | str) -> str:
        return to_decimal_string(value)

    def deserialize(self, value: str) -> str:
        return to_decimal_string(value)


class BytesHandler:
    """Handler for Bytes scalars, carried as 0x-prefixed hex strings."""

    python_type = "Bytes"
    import_statement = "from artblocks_gql.core.scalars import Bytes"

    def serialize(self, value: bytes | str) -> str:
        return to_hex_string(value)

    def deserialize(self, value: str) -> str:
        return to_hex_string(value)


class PassthroughHandler:
    """Handler for scalars passed through untyped (jsonb, timestamptz, uuid, ...)."""

    python_type = "Any"
    import_statement = "from typing import Any"

    def serialize(self, value: Any) -> Any:
        return value

    def deserialize(self, value: Any) -> Any:
        return value


PASSTHROUGH_SCALARS = (
    "json",
    "jsonb",
    "jsonpath",
    "numeric",
    "float8",
    "timestamp",
    "timestamptz",
    "Timestamp",
    "uuid",
    "_text",
)


class ScalarRegistry:
    """Registry for scalar handlers.

    Manages the mapping between GraphQL scalar names and their handlers.
    Built-in scalars resolve without a handler; unknown custom scalars
    resolve to ``Any``.
    """

    def __init__(self):
        self._handlers: dict[str, ScalarHandler] = {}
        self._register_defaults()

    def _register_defaults(self):
        self.register("BigInt", BigIntHandler())
        self.register("bigint", BigIntHandler())
        self.register("Bytes", BytesHandler())
        for name in PASSTHROUGH_SCALARS:
            self.register(name, PassthroughHandler())

    def register(self, scalar_name: str, handler: ScalarHandler):
        """Register a handler for a scalar type."""
        self._handlers[scalar_name] = handler

    def get(self, scalar_name: str) -> ScalarHandler | None:
        """Get the handler for a scalar type, or None if not registered."""
        return self._handlers.get(scalar_name)

    def has(self, scalar_name: str) -> bool:
        return scalar_name in self._handlers

    def python_type(self, scalar_name: str) -> str:
        """Resolve the Python type name for a scalar."""
        if scalar_name in BUILTIN_SCALARS:
            return BUILTIN_SCALARS[scalar_name]
        handler = self.get(scalar_name)
        if handler is None:
            return "Any"
        return handler.python_type

    def imports_for(self, scalar_names: set[str]) -> set[str]:
        """Import statements needed by the given scalars."""
        imports = set()
        for name in scalar_names:
            if name in BUILTIN_SCALARS:
                continue
            handler = self.get(name)
            imports.add(handler.import_statement if handler else "from typing import Any")
        return imports

    def get_all_imports(self) -> set:
        """Get all import statements needed for registered handlers."""
        return {h.import_statement for h in self._handlers.values()}
