"""Query builder for Hasura-style operations.

Constructs GraphQL mutation/query strings for Hasura tables: upserts
(``insert_<table>`` with ``on_conflict``) and filtered selects.
"""

from dataclasses import dataclass, field
from typing import Any

from .document import Fragment


@dataclass(frozen=True)
class OnConflict:
    """Hasura conflict policy for an insert.

    ``update_columns`` is kept exactly as given, including the conflict key
    itself when listed; re-writing the key with its own value is a no-op.
    """
    constraint: str
    update_columns: tuple[str, ...] = ()

    def render(self) -> str:
        columns = ", ".join(self.update_columns)
        return f"{{\n      constraint: {self.constraint},\n      update_columns: [{columns}]\n    }}"


@dataclass
class Returning:
    """What an upsert returns: plain field names or a fragment spread."""
    fields: list[str] = field(default_factory=list)
    fragment: Fragment | None = None

    def render(self) -> str:
        if self.fragment is not None:
            return f"...{self.fragment.name}"
        return " ".join(self.fields)


class UpsertMutationBuilder:
    """Builds ``insert_<table>`` upsert mutations.

    Example:
        builder = UpsertMutationBuilder("contracts_metadata")
        source = builder.build(
            "InsertContractsMetadata",
            variable="contractsMetadata",
            on_conflict=OnConflict("contracts_metadata_pkey", ("address", "bucket_name")),
            returning=Returning(fields=["address", "bucket_name"]),
        )
    """

    def __init__(self, table: str):
        self.table = table

    @property
    def field_name(self) -> str:
        return f"insert_{self.table}"

    @property
    def input_type(self) -> str:
        return f"{self.table}_insert_input"

    def build(
        self,
        operation_name: str,
        variable: str,
        on_conflict: OnConflict | None,
        returning: Returning,
    ) -> str:
        """Build the mutation string."""
        args = [f"objects: ${variable}"]
        if on_conflict is not None:
            args.append(f"on_conflict: {on_conflict.render()}")
        args_str = "\n    ".join(args)
        lines = [
            f"mutation {operation_name}(${variable}: [{self.input_type}!]!) {{",
            f"  {self.field_name}(\n    {args_str}\n  ) {{",
            f"    returning {{ {returning.render()} }}",
            "  }",
            "}",
        ]
        return "\n".join(lines)


class QueryBuilder:
    """Builds filtered select queries against Hasura tables."""

    def __init__(self, table: str):
        self.table = table

    def build_select(
        self,
        operation_name: str,
        variables: dict[str, str],
        where: dict[str, Any] | None,
        fields: list[str],
    ) -> str:
        """Build a ``<table>(where: ...)`` query.

        Args:
            operation_name: Name of the query operation
            variables: Variable name -> GraphQL type, e.g. {"ids": "[String!]"}
            where: Hasura bool expression; string values starting with ``$``
                are emitted as variable references
            fields: Field names to select
        """
        var_decls = ", ".join(f"${name}: {type_ref}" for name, type_ref in variables.items())
        header = f"query {operation_name}({var_decls})" if var_decls else f"query {operation_name}"
        args = f"(where: {self._render_value(where)})" if where else ""
        body = "\n".join(f"    {name}" for name in fields)
        return f"{header} {{\n  {self.table}{args} {{\n{body}\n  }}\n}}"

    def _render_value(self, value: Any) -> str:
        """Render a Python value as a GraphQL input literal."""
        if isinstance(value, dict):
            items = ", ".join(f"{k}: {self._render_value(v)}" for k, v in value.items())
            return f"{{{items}}}"
        if isinstance(value, list):
            return "[" + ", ".join(self._render_value(v) for v in value) + "]"
        if isinstance(value, bool):
            return "true" if value else "false"
        if value is None:
            return "null"
        if isinstance(value, str):
            if value.startswith("$"):
                return value
            return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'
        return str(value)
