"""GraphQL schema and document parsers using graphql-core.

``SchemaParser`` reads SDL files (.graphql / .graphqls) into an IRSchema.
``DocumentParser`` reads executable documents (operations and fragments)
and resolves their selections against that schema.
"""

import logging
import os
from typing import Any

from graphql import (
    DocumentNode,
    EnumTypeDefinitionNode,
    FieldNode,
    FragmentDefinitionNode,
    FragmentSpreadNode,
    GraphQLSyntaxError,
    InlineFragmentNode,
    InputObjectTypeDefinitionNode,
    InterfaceTypeDefinitionNode,
    ListTypeNode,
    NamedTypeNode,
    NonNullTypeNode,
    ObjectTypeDefinitionNode,
    ObjectTypeExtensionNode,
    OperationDefinitionNode,
    ScalarTypeDefinitionNode,
    SchemaDefinitionNode,
    TypeNode,
    parse,
    print_ast,
    value_from_ast_untyped,
)

from .document import DocumentError
from .ir import (
    IRArgument,
    IRDocumentSet,
    IREnum,
    IREnumValue,
    IRField,
    IRFragment,
    IRInterface,
    IROperation,
    IRScalar,
    IRSchema,
    IRSelection,
    IRType,
    IRVariable,
)

logger = logging.getLogger(__name__)

SCHEMA_EXTENSIONS = (".graphqls", ".graphql")
DOCUMENT_EXTENSIONS = (".graphql", ".gql")


def collect_files(path: str, extensions: tuple[str, ...]) -> list[str]:
    """Collect files with the given extensions from a file or directory."""
    files = []
    if os.path.isfile(path):
        if path.endswith(extensions):
            files.append(path)
    else:
        for root, _, filenames in os.walk(path):
            for filename in filenames:
                if filename.endswith(extensions):
                    files.append(os.path.join(root, filename))
    return sorted(files)


def get_type_info(type_node: TypeNode) -> dict[str, Any]:
    """Extract the type name, list/nullability flags and exact spelling."""
    type_ref = print_ast(type_node)
    is_optional = True
    is_list = False
    is_item_optional = True

    # NonNull wrapper means not optional
    if isinstance(type_node, NonNullTypeNode):
        is_optional = False
        type_node = type_node.type

    if isinstance(type_node, ListTypeNode):
        is_list = True
        type_node = type_node.type
        # [Type!]
        if isinstance(type_node, NonNullTypeNode):
            is_item_optional = False
            type_node = type_node.type

    # Nested lists [[Type]] collapse to the innermost named type
    while isinstance(type_node, (ListTypeNode, NonNullTypeNode)):
        type_node = type_node.type

    assert isinstance(type_node, NamedTypeNode), f"Expected NamedTypeNode, got {type(type_node)}"

    return {
        "name": type_node.name.value,
        "is_list": is_list,
        "is_optional": is_optional,
        "is_item_optional": is_item_optional,
        "type_ref": type_ref,
    }


def node_source(node) -> str:
    """Return the exact source text of a definition node."""
    if node.loc is None:
        return print_ast(node)
    return node.loc.source.body[node.loc.start:node.loc.end]


class SchemaParser:
    """Parses GraphQL schema files into IR."""

    def __init__(self, schema_path: str):
        """Initialize a parser with a path to a schema file or directory."""
        self.schema_path = schema_path
        self.ir = IRSchema()
        self.current_file = ""
        self._root_names: dict[str, str] = {}

    def parse_all(self) -> IRSchema:
        """Parse all schema files and return the complete IR."""
        schema_files = collect_files(self.schema_path, SCHEMA_EXTENSIONS)
        for file_path in schema_files:
            self.current_file = os.path.basename(file_path)
            with open(file_path) as f:
                content = f.read()
            self.parse_source(content)
        return self.finish()

    def parse_source(self, content: str):
        """Parse one SDL source into the IR being built."""
        try:
            ast = parse(content)
        except GraphQLSyntaxError:
            logger.error("Error parsing schema file %s", self.current_file or "<string>")
            raise
        self._process_ast(ast)

    def finish(self) -> IRSchema:
        """Move root types into root-field maps and resolve dependencies."""
        self._collect_root_fields()
        self._resolve_dependencies()
        logger.debug(
            "Parsed schema: %d types, %d inputs, %d enums, %d queries, %d mutations",
            len(self.ir.types), len(self.ir.inputs), len(self.ir.enums),
            len(self.ir.queries), len(self.ir.mutations),
        )
        return self.ir

    def _collect_root_fields(self):
        query_name = self._root_names.get("query")
        mutation_name = self._root_names.get("mutation")
        if query_name is None:
            query_name = "query_root" if "query_root" in self.ir.types else "Query"
        if mutation_name is None:
            mutation_name = "mutation_root" if "mutation_root" in self.ir.types else "Mutation"
        self.ir.query_type = query_name
        self.ir.mutation_type = mutation_name

        query_root = self.ir.types.pop(query_name, None)
        if query_root:
            self.ir.queries = {f.name: f for f in query_root.fields}
        mutation_root = self.ir.types.pop(mutation_name, None)
        if mutation_root:
            self.ir.mutations = {f.name: f for f in mutation_root.fields}

    def _resolve_dependencies(self):
        """Track type dependencies, used for reachability during generation."""
        all_types = {**self.ir.types, **self.ir.inputs, **self.ir.interfaces}
        for type_name, ir_type in all_types.items():
            deps = set()
            for ir_field in ir_type.fields:
                deps.add(ir_field.type_name)
            for interface in getattr(ir_type, "interfaces", []):
                deps.add(interface)
            self.ir.dependencies[type_name] = deps

    def _process_ast(self, ast: DocumentNode):
        """Process GraphQL AST and populate IR."""
        for definition in ast.definitions:
            if isinstance(definition, SchemaDefinitionNode):
                for op_type in definition.operation_types or ():
                    self._root_names[op_type.operation.value] = op_type.type.name.value
            elif isinstance(definition, ScalarTypeDefinitionNode):
                self._process_scalar(definition)
            elif isinstance(definition, EnumTypeDefinitionNode):
                self._process_enum(definition)
            elif isinstance(definition, InterfaceTypeDefinitionNode):
                self._process_interface(definition)
            elif isinstance(definition, ObjectTypeDefinitionNode):
                self._process_object_type(definition)
            elif isinstance(definition, ObjectTypeExtensionNode):
                self._merge_extension_fields(definition.name.value, definition)
            elif isinstance(definition, InputObjectTypeDefinitionNode):
                self._process_input_type(definition)

    def _process_scalar(self, node: ScalarTypeDefinitionNode):
        name = node.name.value
        self.ir.scalars[name] = IRScalar(
            name=name,
            description=node.description.value if node.description else None,
        )

    def _process_enum(self, node: EnumTypeDefinitionNode):
        name = node.name.value
        values = [
            IREnumValue(
                name=v.name.value,
                description=v.description.value if v.description else None,
            )
            for v in node.values or ()
        ]
        self.ir.enums[name] = IREnum(
            name=name,
            values=values,
            description=node.description.value if node.description else None,
        )

    def _process_interface(self, node: InterfaceTypeDefinitionNode):
        name = node.name.value
        self.ir.interfaces[name] = IRInterface(
            name=name,
            fields=self._process_fields(node.fields),
            description=node.description.value if node.description else None,
        )

    def _process_object_type(self, node: ObjectTypeDefinitionNode):
        name = node.name.value
        fields = self._process_fields(node.fields)
        interfaces = [i.name.value for i in node.interfaces or ()]

        # The type may already exist from an earlier extension
        if name in self.ir.types:
            existing = self.ir.types[name]
            existing_names = {f.name for f in existing.fields}
            for ir_field in fields:
                if ir_field.name not in existing_names:
                    existing.fields.append(ir_field)
            existing.interfaces = interfaces
            if node.description:
                existing.description = node.description.value
        else:
            self.ir.types[name] = IRType(
                name=name,
                fields=fields,
                interfaces=interfaces,
                description=node.description.value if node.description else None,
            )

    def _process_input_type(self, node: InputObjectTypeDefinitionNode):
        name = node.name.value
        self.ir.inputs[name] = IRType(
            name=name,
            fields=self._process_fields(node.fields),
            description=node.description.value if node.description else None,
            is_input=True,
        )

    def _merge_extension_fields(self, type_name: str, node: ObjectTypeExtensionNode):
        """Merge `extend type` fields into an existing type definition."""
        extension_fields = self._process_fields(node.fields)
        if type_name in self.ir.types:
            existing_type = self.ir.types[type_name]
            existing_names = {f.name for f in existing_type.fields}
            for ir_field in extension_fields:
                if ir_field.name not in existing_names:
                    existing_type.fields.append(ir_field)
                    existing_names.add(ir_field.name)
        else:
            self.ir.types[type_name] = IRType(name=type_name, fields=extension_fields)

    def _process_fields(self, field_nodes) -> list[IRField]:
        """Process field (or input value) definitions into IRField list."""
        fields = []
        for node in field_nodes or ():
            type_info = get_type_info(node.type)
            args = []
            for arg_node in getattr(node, "arguments", None) or []:
                arg_type_info = get_type_info(arg_node.type)
                args.append(
                    IRArgument(
                        name=arg_node.name.value,
                        type_name=arg_type_info["name"],
                        is_list=arg_type_info["is_list"],
                        is_optional=arg_type_info["is_optional"],
                        is_item_optional=arg_type_info["is_item_optional"],
                        type_ref=arg_type_info["type_ref"],
                        default_value=value_from_ast_untyped(arg_node.default_value)
                        if arg_node.default_value
                        else None,
                        description=arg_node.description.value
                        if arg_node.description
                        else None,
                    )
                )
            fields.append(
                IRField(
                    name=node.name.value,
                    type_name=type_info["name"],
                    is_list=type_info["is_list"],
                    is_optional=type_info["is_optional"],
                    is_item_optional=type_info["is_item_optional"],
                    type_ref=type_info["type_ref"],
                    description=node.description.value if node.description else None,
                    arguments=args,
                )
            )
        return fields


class DocumentParser:
    """Parses executable GraphQL documents into IR, resolved against a schema.

    Fragment spreads (named and inline) are flattened into concrete field
    selections, so two fragments selecting the same fields produce the same
    selection tree regardless of their names.
    """

    def __init__(self, schema: IRSchema):
        self.schema = schema
        self._fragment_nodes: dict[str, FragmentDefinitionNode] = {}
        self._operation_nodes: list[OperationDefinitionNode] = []
        self._resolved_fragments: dict[str, IRFragment] = {}

    def parse_all(self, path: str) -> IRDocumentSet:
        """Parse every document file under path."""
        for file_path in collect_files(path, DOCUMENT_EXTENSIONS):
            with open(file_path) as f:
                self.add_source(f.read())
        return self.resolve()

    def add_source(self, content: str):
        """Add the definitions of one document source."""
        try:
            ast = parse(content)
        except GraphQLSyntaxError as e:
            raise DocumentError(f"Invalid GraphQL document: {e.message}") from e
        for definition in ast.definitions:
            if isinstance(definition, FragmentDefinitionNode):
                name = definition.name.value
                if name in self._fragment_nodes:
                    raise DocumentError(f"Duplicate fragment name: {name}")
                self._fragment_nodes[name] = definition
            elif isinstance(definition, OperationDefinitionNode):
                if definition.name is None:
                    raise DocumentError("Operations must be named")
                self._operation_nodes.append(definition)

    def resolve(self) -> IRDocumentSet:
        """Resolve all collected fragments and operations."""
        result = IRDocumentSet()
        for name in self._fragment_nodes:
            result.fragments[name] = self._resolve_fragment(name, ())
        for node in self._operation_nodes:
            result.operations.append(self._resolve_operation(node))
        return result

    def _resolve_fragment(self, name: str, stack: tuple[str, ...]) -> IRFragment:
        if name in self._resolved_fragments:
            return self._resolved_fragments[name]
        if name in stack:
            raise DocumentError(f"Fragment cycle: {' -> '.join(stack + (name,))}")
        node = self._fragment_nodes.get(name)
        if node is None:
            raise DocumentError(f"Unknown fragment: {name}")
        type_condition = node.type_condition.name.value
        if self.schema.get_type_by_name(type_condition) is None:
            raise DocumentError(f"Fragment {name} is on unknown type {type_condition}")
        selections, _ = self._resolve_selection_set(
            node.selection_set, type_condition, stack + (name,)
        )
        fragment = IRFragment(
            name=name,
            type_condition=type_condition,
            selections=selections,
            source=node_source(node),
            fragment_names=self._used_fragments(node),
        )
        self._resolved_fragments[name] = fragment
        return fragment

    def _resolve_operation(self, node: OperationDefinitionNode) -> IROperation:
        op_type = node.operation.value
        if op_type not in ("query", "mutation"):
            raise DocumentError(f"Unsupported operation type: {op_type}")
        root_type = self.schema.mutation_type if op_type == "mutation" else self.schema.query_type

        variables = []
        for var_def in node.variable_definitions or ():
            type_info = get_type_info(var_def.type)
            variables.append(
                IRVariable(
                    name=var_def.variable.name.value,
                    type_name=type_info["name"],
                    is_list=type_info["is_list"],
                    is_optional=type_info["is_optional"],
                    is_item_optional=type_info["is_item_optional"],
                    type_ref=type_info["type_ref"],
                    default_value=value_from_ast_untyped(var_def.default_value)
                    if var_def.default_value
                    else None,
                )
            )

        selections, _ = self._resolve_selection_set(node.selection_set, root_type, ())
        fragment_names = self._used_fragments(node)

        # Wire source: the operation followed by every fragment it needs
        source_parts = [node_source(node)]
        source_parts.extend(self._resolved_fragments[n].source for n in fragment_names)

        return IROperation(
            name=node.name.value,
            operation_type=op_type,
            variables=variables,
            selections=selections,
            source="\n\n".join(source_parts),
            fragment_names=fragment_names,
        )

    def _used_fragments(self, node) -> list[str]:
        """Collect fragment names spread (transitively) by a node, in first-use order."""
        names: list[str] = []

        def visit(selection_set):
            if selection_set is None:
                return
            for sel in selection_set.selections:
                if isinstance(sel, FragmentSpreadNode):
                    name = sel.name.value
                    if name not in names:
                        names.append(name)
                        visit(self._fragment_nodes[name].selection_set)
                else:
                    visit(sel.selection_set)

        visit(node.selection_set)
        return names

    def _fields_of(self, type_name: str) -> dict[str, IRField]:
        if type_name == self.schema.query_type:
            return self.schema.queries
        if type_name == self.schema.mutation_type:
            return self.schema.mutations
        type_def = self.schema.get_type_by_name(type_name)
        if type_def is None:
            raise DocumentError(f"Unknown type: {type_name}")
        return {f.name: f for f in type_def.fields}

    def _resolve_selection_set(
        self,
        selection_set,
        parent_type: str,
        stack: tuple[str, ...],
    ) -> tuple[list[IRSelection], list[str]]:
        """Resolve a selection set into concrete fields plus the spreads it used."""
        selections: list[IRSelection] = []
        spreads: list[str] = []
        fields = self._fields_of(parent_type)

        for sel in selection_set.selections:
            if isinstance(sel, FieldNode):
                selections.append(self._resolve_field(sel, parent_type, fields, stack))
            elif isinstance(sel, FragmentSpreadNode):
                name = sel.name.value
                fragment = self._resolve_fragment(name, stack)
                spreads.append(name)
                selections.extend(fragment.selections)
            elif isinstance(sel, InlineFragmentNode):
                type_name = sel.type_condition.name.value if sel.type_condition else parent_type
                inline, _ = self._resolve_selection_set(sel.selection_set, type_name, stack)
                selections.extend(inline)

        return self._merge(selections), spreads

    def _resolve_field(
        self,
        node: FieldNode,
        parent_type: str,
        fields: dict[str, IRField],
        stack: tuple[str, ...],
    ) -> IRSelection:
        field_name = node.name.value
        response_key = node.alias.value if node.alias else field_name
        if field_name == "__typename":
            return IRSelection(
                response_key=response_key,
                field_name=field_name,
                type_name="String",
                is_optional=False,
            )
        ir_field = fields.get(field_name)
        if ir_field is None:
            raise DocumentError(f"Type {parent_type} has no field {field_name}")

        nested: list[IRSelection] = []
        spreads: list[str] = []
        if node.selection_set is not None:
            if self.schema.is_leaf(ir_field.type_name):
                raise DocumentError(f"Leaf field {parent_type}.{field_name} cannot have a selection")
            nested, spreads = self._resolve_selection_set(node.selection_set, ir_field.type_name, stack)
        elif not self.schema.is_leaf(ir_field.type_name):
            raise DocumentError(f"Field {parent_type}.{field_name} needs a selection")

        return IRSelection(
            response_key=response_key,
            field_name=field_name,
            type_name=ir_field.type_name,
            is_list=ir_field.is_list,
            is_optional=ir_field.is_optional,
            is_item_optional=ir_field.is_item_optional,
            selections=nested,
            fragment_spreads=spreads,
        )

    @staticmethod
    def _merge(selections: list[IRSelection]) -> list[IRSelection]:
        """Merge selections sharing a response key, keeping first-seen order."""
        merged: dict[str, IRSelection] = {}
        for sel in selections:
            existing = merged.get(sel.response_key)
            if existing is None:
                merged[sel.response_key] = IRSelection(
                    response_key=sel.response_key,
                    field_name=sel.field_name,
                    type_name=sel.type_name,
                    is_list=sel.is_list,
                    is_optional=sel.is_optional,
                    is_item_optional=sel.is_item_optional,
                    selections=list(sel.selections),
                    fragment_spreads=list(sel.fragment_spreads),
                )
                continue
            if existing.field_name != sel.field_name:
                raise DocumentError(
                    f"Conflicting fields for response key {sel.response_key}: "
                    f"{existing.field_name} and {sel.field_name}"
                )
            existing.selections = DocumentParser._merge(existing.selections + sel.selections)
            for name in sel.fragment_spreads:
                if name not in existing.fragment_spreads:
                    existing.fragment_spreads.append(name)
        return list(merged.values())
