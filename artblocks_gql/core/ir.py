"""Intermediate Representation (IR) for GraphQL schemas and documents.

This module defines dataclasses that represent GraphQL schema constructs
and executable documents (operations and fragments) in a language-agnostic
way, suitable for code generation.
"""

import re
from dataclasses import dataclass, field
from typing import Any


@dataclass
class IRField:
    """Represents a field in a GraphQL type, interface or input type."""
    name: str
    type_name: str
    is_list: bool = False
    is_optional: bool = True  # True if nullable (no ! in GraphQL)
    is_item_optional: bool = True  # nullability of list items
    type_ref: str = ""  # exact GraphQL spelling, e.g. [Foo!]!
    description: str | None = None
    arguments: list["IRArgument"] = field(default_factory=list)

    def __post_init__(self):
        if not self.type_ref:
            self.type_ref = self.type_name


@dataclass
class IRArgument:
    """Represents an argument to a field."""
    name: str
    type_name: str
    is_list: bool = False
    is_optional: bool = True
    is_item_optional: bool = True
    type_ref: str = ""
    default_value: Any = None
    description: str | None = None

    def __post_init__(self):
        if not self.type_ref:
            self.type_ref = self.type_name


@dataclass
class IREnumValue:
    """Represents a single value in a GraphQL enum."""
    name: str
    description: str | None = None


@dataclass
class IREnum:
    """Represents a GraphQL enum type."""
    name: str
    values: list[IREnumValue]
    description: str | None = None


@dataclass
class IRType:
    """Represents a GraphQL object type or input type."""
    name: str
    fields: list[IRField]
    interfaces: list[str] = field(default_factory=list)
    description: str | None = None
    is_input: bool = False

    def get_field(self, name: str) -> IRField | None:
        for ir_field in self.fields:
            if ir_field.name == name:
                return ir_field
        return None


@dataclass
class IRInterface:
    """Represents a GraphQL interface type."""
    name: str
    fields: list[IRField]
    description: str | None = None

    def get_field(self, name: str) -> IRField | None:
        for ir_field in self.fields:
            if ir_field.name == name:
                return ir_field
        return None


@dataclass
class IRScalar:
    """Represents a GraphQL scalar type."""
    name: str
    description: str | None = None


@dataclass
class IRSchema:
    """Complete intermediate representation of a GraphQL schema."""
    scalars: dict[str, IRScalar] = field(default_factory=dict)
    enums: dict[str, IREnum] = field(default_factory=dict)
    types: dict[str, IRType] = field(default_factory=dict)
    inputs: dict[str, IRType] = field(default_factory=dict)
    interfaces: dict[str, IRInterface] = field(default_factory=dict)
    # Root fields, keyed by field name
    queries: dict[str, IRField] = field(default_factory=dict)
    mutations: dict[str, IRField] = field(default_factory=dict)

    # Root type names as declared (Hasura uses query_root/mutation_root)
    query_type: str = "Query"
    mutation_type: str = "Mutation"

    dependencies: dict[str, set[str]] = field(default_factory=dict)

    def get_type_by_name(self, name: str) -> IRType | IRInterface | None:
        """Look up a type, input or interface by name."""
        if name in self.types:
            return self.types[name]
        if name in self.inputs:
            return self.inputs[name]
        if name in self.interfaces:
            return self.interfaces[name]
        return None

    def get_all_types(self) -> dict[str, IRType | IRInterface]:
        result = {}
        result.update(self.types)
        result.update(self.inputs)
        result.update(self.interfaces)
        return result

    def root_fields(self, operation_type: str) -> dict[str, IRField]:
        """Return the root fields for 'query' or 'mutation'."""
        if operation_type == "mutation":
            return self.mutations
        return self.queries

    def is_leaf(self, type_name: str) -> bool:
        """Check if a type has no subfields (scalar or enum)."""
        return (
            type_name in ("String", "Int", "Float", "Boolean", "ID")
            or type_name in self.scalars
            or type_name in self.enums
        )


@dataclass
class IRSelection:
    """A resolved field selection inside an operation or fragment.

    Fragment spreads are flattened by the parser, so a selection tree only
    ever holds concrete fields.
    """
    response_key: str  # alias if present, else field name
    field_name: str
    type_name: str
    is_list: bool = False
    is_optional: bool = True
    is_item_optional: bool = True
    selections: list["IRSelection"] = field(default_factory=list)
    # Named fragments spread directly at this level (before flattening)
    fragment_spreads: list[str] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return not self.selections


def selection_shape(selections: list[IRSelection], prefix: str = "") -> frozenset[str]:
    """Return the selected-field closure as dotted response paths."""
    paths: set[str] = set()
    for sel in selections:
        path = f"{prefix}{sel.response_key}"
        paths.add(path)
        if sel.selections:
            paths |= selection_shape(sel.selections, path + ".")
    return frozenset(paths)


@dataclass
class IRVariable:
    """Represents a variable declared by an operation."""
    name: str
    type_name: str
    is_list: bool = False
    is_optional: bool = True
    is_item_optional: bool = True
    type_ref: str = ""
    default_value: Any = None


@dataclass
class IRFragment:
    """Represents a named fragment definition."""
    name: str
    type_condition: str
    selections: list[IRSelection]
    source: str = ""
    # Fragments spread inside this one, transitively
    fragment_names: list[str] = field(default_factory=list)

    @property
    def shape(self) -> frozenset[str]:
        return selection_shape(self.selections)


@dataclass
class IROperation:
    """Represents an executable query or mutation from a document."""
    name: str
    operation_type: str  # 'query' or 'mutation'
    variables: list[IRVariable]
    selections: list[IRSelection]
    source: str = ""
    fragment_names: list[str] = field(default_factory=list)

    @property
    def snake_name(self) -> str:
        """Return the operation name in snake_case, e.g. 'insert_contracts_metadata'."""
        s1 = re.sub("(.)([A-Z][a-z]+)", r"\1_\2", self.name)
        return re.sub("([a-z0-9])([A-Z])", r"\1_\2", s1).lower()

    @property
    def upper_name(self) -> str:
        return self.snake_name.upper()


@dataclass
class IRDocumentSet:
    """All operations and fragments parsed from a set of documents."""
    operations: list[IROperation] = field(default_factory=list)
    fragments: dict[str, IRFragment] = field(default_factory=dict)
