"""Typed GraphQL documents and fragments.

A ``TypedDocument`` binds a literal GraphQL operation to the pydantic model
of its variables and the pydantic model of its result. The document is
parsed once, when the module defining it is imported, and never changes
afterwards.

Fragments are compared by the fields they select, not by their names:
two fragments selecting the same fields on the same type are
interchangeable and are bound to the same model class.

Example:
    CONTRACT_FIELDS = Fragment.from_source(
        "fragment ContractFields on contracts_metadata { address }",
        model=ContractFields,
    )
    GET_CONTRACT = TypedDocument.from_source(
        "query GetContract($address: String!) { "
        "contracts_metadata_by_pk(address: $address) { ...ContractFields } }",
        result_model=GetContractQuery,
        variables_model=GetContractQueryVariables,
        fragments=[CONTRACT_FIELDS],
    )
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from graphql import (
    DocumentNode,
    FieldNode,
    FragmentDefinitionNode,
    FragmentSpreadNode,
    GraphQLSyntaxError,
    InlineFragmentNode,
    NameNode,
    OperationDefinitionNode,
    SelectionSetNode,
    Visitor,
    parse,
    print_ast,
    visit,
)
from pydantic import BaseModel

ResultT = TypeVar("ResultT", bound=BaseModel)
VariablesT = TypeVar("VariablesT", bound=BaseModel)


class DocumentError(Exception):
    """Raised when a GraphQL document cannot be parsed or resolved."""


class FragmentShapeError(DocumentError):
    """Raised when a fragment is swapped for one selecting different fields."""


def _parse(source: str) -> DocumentNode:
    try:
        return parse(source)
    except GraphQLSyntaxError as e:
        raise DocumentError(f"Invalid GraphQL document: {e.message}") from e


def field_shape(
    selection_set: SelectionSetNode | None,
    fragments: Mapping[str, FragmentDefinitionNode],
    prefix: str = "",
    _stack: tuple[str, ...] = (),
) -> frozenset[str]:
    """Return the selected-field closure of a selection set as dotted paths.

    Named and inline fragment spreads are expanded in place, so the result
    depends only on which fields are selected.
    """
    paths: set[str] = set()
    if selection_set is None:
        return frozenset()
    for sel in selection_set.selections:
        if isinstance(sel, FieldNode):
            key = sel.alias.value if sel.alias else sel.name.value
            path = f"{prefix}{key}"
            paths.add(path)
            if sel.selection_set is not None:
                paths |= field_shape(sel.selection_set, fragments, path + ".", _stack)
        elif isinstance(sel, FragmentSpreadNode):
            name = sel.name.value
            if name in _stack:
                raise DocumentError(f"Fragment cycle through {name}")
            node = fragments.get(name)
            if node is None:
                raise DocumentError(f"Unknown fragment: {name}")
            paths |= field_shape(node.selection_set, fragments, prefix, _stack + (name,))
        elif isinstance(sel, InlineFragmentNode):
            paths |= field_shape(sel.selection_set, fragments, prefix, _stack)
    return frozenset(paths)


def _fragment_nodes(document: DocumentNode) -> dict[str, FragmentDefinitionNode]:
    return {
        d.name.value: d for d in document.definitions if isinstance(d, FragmentDefinitionNode)
    }


def _spread_names(selection_set: SelectionSetNode | None) -> list[str]:
    names: list[str] = []
    if selection_set is None:
        return names
    for sel in selection_set.selections:
        if isinstance(sel, FragmentSpreadNode):
            if sel.name.value not in names:
                names.append(sel.name.value)
        else:
            for name in _spread_names(sel.selection_set):
                if name not in names:
                    names.append(name)
    return names


@dataclass(frozen=True)
class Fragment:
    """A named, reusable field selection on one type."""

    name: str
    type_condition: str
    source: str
    model: type[BaseModel]
    dependencies: tuple["Fragment", ...] = ()
    node: FragmentDefinitionNode = field(default=None, compare=False, repr=False)
    shape: frozenset[str] = field(default=frozenset(), compare=False, repr=False)

    @classmethod
    def from_source(
        cls,
        source: str,
        model: type[BaseModel],
        fragments: Iterable["Fragment"] = (),
    ) -> "Fragment":
        """Build a fragment from its definition text.

        ``fragments`` supplies the definitions of any fragments spread inside it.
        """
        document = _parse(source)
        definitions = [d for d in document.definitions if isinstance(d, FragmentDefinitionNode)]
        if len(definitions) != 1 or len(document.definitions) != 1:
            raise DocumentError("Fragment source must hold exactly one fragment definition")
        node = definitions[0]
        dependencies = tuple(fragments)
        known = {f.name: f.node for f in _closure(dependencies)}
        shape = field_shape(node.selection_set, known, _stack=(node.name.value,))
        return cls(
            name=node.name.value,
            type_condition=node.type_condition.name.value,
            source=source,
            model=model,
            dependencies=dependencies,
            node=node,
            shape=shape,
        )

    def is_interchangeable(self, other: "Fragment") -> bool:
        """Check whether two fragments select the same fields on the same type."""
        return self.type_condition == other.type_condition and self.shape == other.shape

    def parse(self, data: Mapping[str, Any]) -> BaseModel:
        """Validate one selected object into the fragment's model."""
        return self.model.model_validate(data)


def _closure(fragments: Iterable[Fragment]) -> list[Fragment]:
    """Fragments plus their dependencies, deduplicated by name."""
    seen: dict[str, Fragment] = {}

    def add(fragment: Fragment):
        existing = seen.get(fragment.name)
        if existing is not None:
            if existing.source != fragment.source:
                raise DocumentError(f"Two different definitions of fragment {fragment.name}")
            return
        seen[fragment.name] = fragment
        for dep in fragment.dependencies:
            add(dep)

    for fragment in fragments:
        add(fragment)
    return list(seen.values())


def with_fragments(source: str, *fragments: Fragment) -> str:
    """Append the fragment definitions a document spreads but does not define.

    The source is returned unchanged when it needs nothing. Fragments are
    deduplicated by name; differently named fragments of the same shape
    coexist.
    """
    document = _parse(source)
    available = {f.name: f for f in _closure(fragments)}
    defined = set(_fragment_nodes(document))

    needed: list[str] = []
    pending = []
    for definition in document.definitions:
        pending.extend(_spread_names(definition.selection_set))
    while pending:
        name = pending.pop(0)
        if name in defined or name in needed:
            continue
        fragment = available.get(name)
        if fragment is None:
            raise DocumentError(f"Unknown fragment: {name}")
        needed.append(name)
        pending.extend(_spread_names(fragment.node.selection_set))

    if not needed:
        return source
    return "\n\n".join([source] + [available[name].source for name in needed])


def resolve_fragment(
    shape: frozenset[str],
    type_name: str,
    fragments: Iterable[Fragment],
) -> Fragment | None:
    """Find a fragment selecting exactly ``shape`` on ``type_name``, whatever its name."""
    for fragment in fragments:
        if fragment.type_condition == type_name and fragment.shape == shape:
            return fragment
    return None


class _RenameSpreads(Visitor):
    def __init__(self, old: str, new: str):
        super().__init__()
        self.old = old
        self.new = new

    def enter_fragment_spread(self, node, *_):
        if node.name.value == self.old:
            return FragmentSpreadNode(name=NameNode(value=self.new), directives=node.directives)
        return None


@dataclass(frozen=True)
class TypedDocument(Generic[ResultT, VariablesT]):
    """A parsed operation paired with its result and variables models."""

    source: str
    document: DocumentNode = field(compare=False, repr=False)
    operation_name: str
    operation_type: str
    result_model: type[ResultT]
    variables_model: type[VariablesT]
    fragments: tuple[Fragment, ...] = ()

    @classmethod
    def from_source(
        cls,
        source: str,
        result_model: type[ResultT],
        variables_model: type[VariablesT],
        fragments: Iterable[Fragment] = (),
    ) -> "TypedDocument[ResultT, VariablesT]":
        """Parse an operation (plus any fragments it spreads) into a typed document."""
        fragments = tuple(fragments)
        full_source = with_fragments(source, *fragments)
        document = _parse(full_source)
        operations = [d for d in document.definitions if isinstance(d, OperationDefinitionNode)]
        if len(operations) != 1:
            raise DocumentError(f"Expected exactly one operation, found {len(operations)}")
        operation = operations[0]
        if operation.name is None:
            raise DocumentError("Typed documents need a named operation")
        # Validates every spread resolves and no cycles exist
        field_shape(operation.selection_set, _fragment_nodes(document))
        return cls(
            source=full_source,
            document=document,
            operation_name=operation.name.value,
            operation_type=operation.operation.value,
            result_model=result_model,
            variables_model=variables_model,
            fragments=fragments,
        )

    @property
    def operation(self) -> OperationDefinitionNode:
        for definition in self.document.definitions:
            if isinstance(definition, OperationDefinitionNode):
                return definition
        raise DocumentError("Document has no operation")

    def serialize_variables(self, variables: VariablesT | Mapping[str, Any] | None) -> dict[str, Any]:
        """Validate variables and dump them in wire form.

        Unset fields are left out, so a column the caller never supplied is
        not sent as null.
        """
        if isinstance(variables, self.variables_model):
            model = variables
        else:
            model = self.variables_model.model_validate(variables or {})
        return model.model_dump(by_alias=True, exclude_unset=True, mode="json")

    def parse_result(self, data: Mapping[str, Any] | None) -> ResultT:
        """Validate the ``data`` payload of a response into the result model."""
        return self.result_model.model_validate(data or {})

    def selection_shape(self, path: str = "") -> frozenset[str]:
        """Field closure of the selection found at a dotted response path."""
        fragments = _fragment_nodes(self.document)
        selection_set = self.operation.selection_set
        for key in filter(None, path.split(".")):
            selection_set = self._child_selection(selection_set, key, fragments)
        return field_shape(selection_set, fragments)

    @staticmethod
    def _child_selection(selection_set, key, fragments) -> SelectionSetNode:
        for sel in selection_set.selections:
            if isinstance(sel, FieldNode):
                sel_key = sel.alias.value if sel.alias else sel.name.value
                if sel_key == key and sel.selection_set is not None:
                    return sel.selection_set
            elif isinstance(sel, FragmentSpreadNode):
                found = TypedDocument._find_in(fragments[sel.name.value].selection_set, key, fragments)
                if found is not None:
                    return found
            elif isinstance(sel, InlineFragmentNode):
                found = TypedDocument._find_in(sel.selection_set, key, fragments)
                if found is not None:
                    return found
        raise DocumentError(f"No object selection at {key}")

    @staticmethod
    def _find_in(selection_set, key, fragments):
        try:
            return TypedDocument._child_selection(selection_set, key, fragments)
        except DocumentError:
            return None

    def substitute_fragment(self, old: Fragment, new: Fragment) -> "TypedDocument[ResultT, VariablesT]":
        """Return a copy of this document spreading ``new`` wherever it spread ``old``.

        Raises FragmentShapeError unless the two fragments are interchangeable.
        """
        if not old.is_interchangeable(new):
            raise FragmentShapeError(
                f"Fragment {new.name} does not select the same fields as {old.name}"
            )
        rewritten = visit(self.document, _RenameSpreads(old.name, new.name))
        # Drop the definitions with_fragments appended; they are re-added below
        operation_only = DocumentNode(
            definitions=tuple(d for d in rewritten.definitions if isinstance(d, OperationDefinitionNode))
        )
        fragments = tuple(f for f in self.fragments if f.name != old.name) + (new,)
        return TypedDocument.from_source(
            print_ast(operation_only),
            result_model=self.result_model,
            variables_model=self.variables_model,
            fragments=fragments,
        )
