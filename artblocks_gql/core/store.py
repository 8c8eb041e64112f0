"""In-memory stand-in for a Hasura endpoint.

Runs the subset of Hasura's generated API that the typed documents use:
``insert_<table>`` mutations with ``on_conflict`` upserts, and
``<table>(where: ...)`` selects. Each request is atomic: when any row in
a batch is rejected, every table is left as it was.

Example:
    hasura = LocalHasura([contracts_metadata_table()])
    executor = GraphQLExecutor("http://hasura.local/v1/graphql", transport=hasura.as_transport())
"""

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Callable

import httpx
from graphql import (
    FieldNode,
    FragmentDefinitionNode,
    FragmentSpreadNode,
    GraphQLSyntaxError,
    InlineFragmentNode,
    NonNullTypeNode,
    OperationDefinitionNode,
    SelectionSetNode,
    Undefined,
    parse,
    value_from_ast_untyped,
)

from .query_builder import OnConflict

logger = logging.getLogger(__name__)


class ConstraintViolation(Exception):
    """A row or request rejected by the store. ``code`` mirrors Hasura's error codes."""

    def __init__(self, message: str, code: str = "constraint-violation"):
        self.message = message
        self.code = code
        super().__init__(message)


@dataclass(frozen=True)
class Column:
    """A table column. ``choices`` restricts values to an enum."""
    name: str
    nullable: bool = True
    default: Any = None
    choices: tuple[str, ...] | None = None


def _not_null(value):
    return value is not None


OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "_eq": lambda v, a: _not_null(v) and v == a,
    "_neq": lambda v, a: _not_null(v) and v != a,
    "_in": lambda v, a: _not_null(v) and v in a,
    "_nin": lambda v, a: _not_null(v) and v not in a,
    "_gt": lambda v, a: _not_null(v) and v > a,
    "_gte": lambda v, a: _not_null(v) and v >= a,
    "_lt": lambda v, a: _not_null(v) and v < a,
    "_lte": lambda v, a: _not_null(v) and v <= a,
    "_is_null": lambda v, a: (v is None) == bool(a),
}


class Table:
    """An in-memory table with a primary key and one named key constraint."""

    def __init__(
        self,
        name: str,
        columns: Iterable[Column],
        primary_key: Iterable[str],
        constraint: str,
    ):
        self.name = name
        self.columns = {c.name: c for c in columns}
        self.primary_key = tuple(primary_key)
        self.constraint = constraint
        self.rows: dict[tuple, dict[str, Any]] = {}

    def _key(self, row: Mapping[str, Any]) -> tuple:
        return tuple(row.get(col) for col in self.primary_key)

    def _check_object(self, obj: Mapping[str, Any]):
        for col_name, value in obj.items():
            column = self.columns.get(col_name)
            if column is None:
                raise ConstraintViolation(
                    f"field '{col_name}' not found in type: '{self.name}_insert_input'",
                    code="validation-failed",
                )
            if column.choices is not None and value is not None and value not in column.choices:
                raise ConstraintViolation(
                    f"unexpected value '{value}' for column '{col_name}'",
                    code="validation-failed",
                )

    def _check_row(self, row: Mapping[str, Any]):
        for column in self.columns.values():
            if not column.nullable and row.get(column.name) is None:
                raise ConstraintViolation(
                    f'Not-NULL violation. null value in column "{column.name}" '
                    f'of relation "{self.name}" violates not-null constraint'
                )

    def _check_on_conflict(self, on_conflict: OnConflict):
        if on_conflict.constraint != self.constraint:
            raise ConstraintViolation(
                f"unexpected constraint '{on_conflict.constraint}' for table '{self.name}'",
                code="validation-failed",
            )
        for col_name in on_conflict.update_columns:
            if col_name not in self.columns:
                raise ConstraintViolation(
                    f"unexpected update column '{col_name}' for table '{self.name}'",
                    code="validation-failed",
                )

    def upsert(
        self,
        objects: Iterable[Mapping[str, Any]],
        on_conflict: OnConflict | None = None,
    ) -> list[dict[str, Any]]:
        """Insert rows, updating ``on_conflict.update_columns`` on key collisions.

        An update column missing from the incoming object takes the column
        default, like ``EXCLUDED.<column>`` in Postgres. Columns outside the
        update list keep their stored values. The whole batch is rejected if
        any row fails.

        Returns:
            The affected rows, in input order.
        """
        if on_conflict is not None:
            self._check_on_conflict(on_conflict)

        staged = {key: dict(row) for key, row in self.rows.items()}
        touched: list[tuple] = []
        for obj in objects:
            self._check_object(obj)
            key = self._key(obj)
            if key in staged and on_conflict is None:
                raise ConstraintViolation(
                    f"Uniqueness violation. duplicate key value violates unique "
                    f'constraint "{self.constraint}"'
                )
            if key in touched:
                raise ConstraintViolation(
                    "ON CONFLICT DO UPDATE command cannot affect row a second time"
                )
            if key in staged:
                row = staged[key]
                for col_name in on_conflict.update_columns:
                    row[col_name] = obj.get(col_name, self.columns[col_name].default)
            else:
                row = {
                    name: obj.get(name, column.default)
                    for name, column in self.columns.items()
                }
            self._check_row(row)
            staged[key] = row
            touched.append(key)

        self.rows = staged
        logger.debug("Upserted %d rows into %s", len(touched), self.name)
        return [dict(staged[key]) for key in touched]

    def select(self, where: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        """Return rows matching a Hasura bool expression, in insertion order."""
        return [dict(row) for row in self.rows.values() if self.matches(row, where or {})]

    def matches(self, row: Mapping[str, Any], where: Mapping[str, Any]) -> bool:
        for key, condition in where.items():
            if key == "_and":
                if not all(self.matches(row, c) for c in condition):
                    return False
            elif key == "_or":
                if not any(self.matches(row, c) for c in condition):
                    return False
            elif key == "_not":
                if self.matches(row, condition):
                    return False
            else:
                if key not in self.columns:
                    raise ConstraintViolation(
                        f"field '{key}' not found in type: '{self.name}_bool_exp'",
                        code="validation-failed",
                    )
                value = row.get(key)
                for op, arg in condition.items():
                    compare = OPERATORS.get(op)
                    if compare is None:
                        raise ConstraintViolation(f"unsupported operator '{op}'", code="validation-failed")
                    if not compare(value, arg):
                        return False
        return True


class LocalHasura:
    """Executes GraphQL requests against in-memory tables."""

    def __init__(self, tables: Iterable[Table]):
        self.tables = {t.name: t for t in tables}

    def execute(
        self,
        query: str,
        variables: Mapping[str, Any] | None = None,
        operation_name: str | None = None,
    ) -> dict[str, Any]:
        """Run one request and return a GraphQL response body."""
        try:
            document = parse(query)
        except GraphQLSyntaxError as e:
            return self._error(e.message, "validation-failed")

        operations = [d for d in document.definitions if isinstance(d, OperationDefinitionNode)]
        if operation_name:
            operations = [o for o in operations if o.name and o.name.value == operation_name]
        if len(operations) != 1:
            return self._error("exactly one operation has to be present", "validation-failed")
        operation = operations[0]
        fragments = {
            d.name.value: d for d in document.definitions if isinstance(d, FragmentDefinitionNode)
        }

        resolved = dict(variables or {})
        for var_def in operation.variable_definitions or ():
            name = var_def.variable.name.value
            if name in resolved:
                continue
            if var_def.default_value is not None:
                resolved[name] = value_from_ast_untyped(var_def.default_value)
            elif isinstance(var_def.type, NonNullTypeNode):
                return self._error(
                    f'expecting a value for non-nullable variable: "{name}"', "validation-failed"
                )

        snapshot = {name: dict(t.rows) for name, t in self.tables.items()}
        try:
            data = self._run(operation, fragments, resolved)
        except ConstraintViolation as e:
            for name, rows in snapshot.items():
                self.tables[name].rows = rows
            logger.debug("Request rejected: %s", e.message)
            return self._error(e.message, e.code)
        return {"data": data}

    def as_transport(self) -> httpx.MockTransport:
        """Serve this store through an httpx transport."""

        def handler(request: httpx.Request) -> httpx.Response:
            payload = json.loads(request.content)
            body = self.execute(
                payload.get("query", ""),
                payload.get("variables"),
                payload.get("operationName"),
            )
            return httpx.Response(200, json=body)

        return httpx.MockTransport(handler)

    @staticmethod
    def _error(message: str, code: str) -> dict[str, Any]:
        return {
            "errors": [{"message": message, "extensions": {"code": code, "path": "$"}}],
            "data": None,
        }

    def _run(self, operation: OperationDefinitionNode, fragments, variables) -> dict[str, Any]:
        op_type = operation.operation.value
        data: dict[str, Any] = {}
        for node in self._fields(operation.selection_set, fragments):
            key = node.alias.value if node.alias else node.name.value
            name = node.name.value
            args = {}
            for arg in node.arguments or ():
                value = value_from_ast_untyped(arg.value, variables)
                # An omitted nullable variable leaves its argument unset
                if value is not Undefined:
                    args[arg.name.value] = value
            if name == "__typename":
                data[key] = "mutation_root" if op_type == "mutation" else "query_root"
            elif op_type == "mutation" and name.startswith("insert_") and name[7:] in self.tables:
                table = self.tables[name[7:]]
                conflict = args.get("on_conflict")
                on_conflict = None
                if conflict:
                    on_conflict = OnConflict(
                        constraint=conflict["constraint"],
                        update_columns=tuple(conflict.get("update_columns") or ()),
                    )
                rows = table.upsert(args.get("objects") or [], on_conflict)
                data[key] = self._project_response(table, rows, node.selection_set, fragments)
            elif op_type == "query" and name in self.tables:
                table = self.tables[name]
                rows = table.select(args.get("where"))
                data[key] = [self._project_row(table, row, node.selection_set, fragments) for row in rows]
            else:
                root = "mutation_root" if op_type == "mutation" else "query_root"
                raise ConstraintViolation(
                    f"field '{name}' not found in type: '{root}'", code="validation-failed"
                )
        return data

    def _fields(self, selection_set: SelectionSetNode | None, fragments) -> list[FieldNode]:
        """Flatten fragment spreads into the field nodes they select."""
        nodes: list[FieldNode] = []
        if selection_set is None:
            return nodes
        for sel in selection_set.selections:
            if isinstance(sel, FieldNode):
                nodes.append(sel)
            elif isinstance(sel, FragmentSpreadNode):
                fragment = fragments.get(sel.name.value)
                if fragment is None:
                    raise ConstraintViolation(
                        f"fragment '{sel.name.value}' is not defined", code="validation-failed"
                    )
                nodes.extend(self._fields(fragment.selection_set, fragments))
            elif isinstance(sel, InlineFragmentNode):
                nodes.extend(self._fields(sel.selection_set, fragments))
        return nodes

    def _project_response(self, table: Table, rows, selection_set, fragments) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for node in self._fields(selection_set, fragments):
            key = node.alias.value if node.alias else node.name.value
            name = node.name.value
            if name == "affected_rows":
                result[key] = len(rows)
            elif name == "returning":
                result[key] = [
                    self._project_row(table, row, node.selection_set, fragments) for row in rows
                ]
            elif name == "__typename":
                result[key] = f"{table.name}_mutation_response"
            else:
                raise ConstraintViolation(
                    f"field '{name}' not found in type: '{table.name}_mutation_response'",
                    code="validation-failed",
                )
        return result

    def _project_row(self, table: Table, row, selection_set, fragments) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for node in self._fields(selection_set, fragments):
            key = node.alias.value if node.alias else node.name.value
            name = node.name.value
            if name == "__typename":
                result[key] = table.name
            elif name in table.columns:
                result[key] = row.get(name)
            else:
                raise ConstraintViolation(
                    f"field '{name}' not found in type: '{table.name}'", code="validation-failed"
                )
        return result
