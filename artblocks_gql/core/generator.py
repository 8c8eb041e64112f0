"""Code generator for typed GraphQL documents.

Renders Jinja2 templates to produce one Python module from a schema IR and
a set of operation documents. Only the enums, scalars and input types an
operation actually reaches are emitted; the rest of the schema is skipped.

Supports custom templates via the template_dir parameter:
    generator = CodeGenerator(schema, documents, "out.py", template_dir="./my_templates")

Template lookup order:
1. User's template directory (if provided)
2. Package default templates
"""

import ast
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from jinja2 import ChoiceLoader, Environment, FileSystemLoader, PackageLoader, select_autoescape

from .hooks import GeneratedModule, HookRunner
from .ir import IRDocumentSet, IRFragment, IROperation, IRSchema, IRSelection, selection_shape
from .scalars import BUILTIN_SCALARS, ScalarRegistry

logger = logging.getLogger(__name__)


def snake_case(name: str) -> str:
    """Convert PascalCase or camelCase to snake_case."""
    s1 = re.sub("(.)([A-Z][a-z]+)", r"\1_\2", name)
    return re.sub("([a-z0-9])([A-Z])", r"\1_\2", s1).lower()


def pascal_case(name: str) -> str:
    """Convert snake_case or camelCase to PascalCase."""
    return "".join(word.capitalize() for word in snake_case(name).split("_") if word)


def upper_case(name: str) -> str:
    """Convert to UPPER_CASE."""
    return snake_case(name).upper()


def fragment_const(name: str) -> str:
    """Module constant name for a fragment, e.g. ``UserFields`` -> ``USER_FIELDS_FRAGMENT``."""
    const = upper_case(name)
    return const if const.endswith("_FRAGMENT") else f"{const}_FRAGMENT"


def safe_docstring(text: str) -> str:
    """Escape text for use in docstrings."""
    if not text:
        return ""
    text = text.replace("\\", "\\\\").replace('"""', '\\"\\"\\"')
    if text.endswith('"'):
        text += " "
    return text


PYTHON_KEYWORDS = {
    'False', 'None', 'True', 'and', 'as', 'assert', 'async', 'await',
    'break', 'class', 'continue', 'def', 'del', 'elif', 'else', 'except',
    'finally', 'for', 'from', 'global', 'if', 'import', 'in', 'is',
    'lambda', 'nonlocal', 'not', 'or', 'pass', 'raise', 'return', 'try',
    'while', 'with', 'yield'
}

# Names that would shadow BaseModel attributes
PYDANTIC_RESERVED = {
    'copy', 'dict', 'json', 'schema', 'construct', 'validate', 'fields',
    'model_config', 'model_fields', 'model_computed_fields',
}


def safe_field_name(name: str) -> str:
    """Turn a GraphQL name into a usable pydantic field name.

    Leading underscores are dropped (pydantic treats them as private),
    keywords and BaseModel attributes get a trailing underscore.
    """
    python_name = snake_case(name.lstrip("_")) or "field"
    if python_name in PYTHON_KEYWORDS or python_name in PYDANTIC_RESERVED:
        python_name += "_"
    if python_name[0].isdigit():
        python_name = "f_" + python_name
    return python_name


def safe_member_name(name: str) -> str:
    """Make an enum value usable as an Enum member name."""
    if name in PYTHON_KEYWORDS:
        return f"{name}_"
    if name.startswith("_"):
        return f"v{name}"
    return name


@dataclass
class FieldSpec:
    python_name: str
    wire_name: str
    annotation: str
    required: bool

    @property
    def default_expr(self) -> str:
        if self.python_name == self.wire_name:
            return "" if self.required else " = None"
        if self.required:
            return f' = Field(alias="{self.wire_name}")'
        return f' = Field(default=None, alias="{self.wire_name}")'


@dataclass
class ModelSpec:
    name: str
    fields: list[FieldSpec] = field(default_factory=list)
    description: Optional[str] = None
    extra: Optional[str] = None


@dataclass
class EnumSpec:
    name: str
    members: list[tuple[str, str]]
    description: Optional[str] = None


@dataclass
class FragmentSpec:
    const: str
    source: str
    model: str
    dependencies: list[str]


@dataclass
class DocumentSpec:
    const: str
    source: str
    result_model: str
    variables_model: str
    fragments: list[str]


class CodeGenerator:
    """Generates a typed Python module from a schema and operation documents.

    Available templates to override:
        - module.py.j2: the whole generated module

    Example:
        schema = SchemaParser("schema/").parse_all()
        documents = DocumentParser(schema).parse_all("queries/")
        CodeGenerator(schema, documents, "generated.py").generate()
    """

    def __init__(
        self,
        schema: IRSchema,
        documents: IRDocumentSet,
        output_path: str,
        template_dir: Optional[str] = None,
        scalars: Optional[ScalarRegistry] = None,
        hooks: Optional[HookRunner] = None,
    ):
        """Initialize the code generator.

        Args:
            schema: The intermediate representation of the GraphQL schema
            documents: Parsed operations and fragments to generate for
            output_path: File the generated module is written to
            template_dir: Optional directory with custom Jinja2 templates.
                          Templates here override the built-in templates.
            scalars: Scalar registry (defaults to the built-in scalar map)
            hooks: Generation hooks run before rendering, on the reachable
                   inputs, and on the rendered module
        """
        self.schema = schema
        self.documents = documents
        self.output_path = output_path
        self.template_dir = template_dir
        self.scalars = scalars or ScalarRegistry()
        self.hooks = hooks or HookRunner()

        loaders = []
        if template_dir:
            template_path = Path(template_dir)
            if template_path.is_dir():
                loaders.append(FileSystemLoader(str(template_path)))
        loaders.append(PackageLoader("artblocks_gql", "templates"))

        self.env = Environment(
            loader=ChoiceLoader(loaders),
            autoescape=select_autoescape(),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self.env.filters["repr"] = repr
        self.env.filters["safe_docstring"] = safe_docstring

        # Per-run state
        self._enums: dict[str, EnumSpec] = {}
        self._scalars_used: set[str] = set()
        self._models: list[ModelSpec] = []
        self._fragment_models: dict[str, str] = {}
        self._untyped_inputs: set[str] = set()

    # -- type mapping -----------------------------------------------------

    def python_type(self, type_name: str) -> str:
        """Map a GraphQL named type to its Python annotation name."""
        if type_name in BUILTIN_SCALARS or type_name in self.schema.scalars:
            self._scalars_used.add(type_name)
            return self.scalars.python_type(type_name)
        if type_name in self.schema.enums:
            self._add_enum(type_name)
            return pascal_case(type_name)
        if type_name in self._untyped_inputs:
            return "dict[str, Any]"
        return pascal_case(type_name)

    @staticmethod
    def annotation(base: str, is_list: bool, is_optional: bool, is_item_optional: bool) -> str:
        if is_list:
            item = f"Optional[{base}]" if is_item_optional else base
            base = f"list[{item}]"
        if is_optional:
            return f"Optional[{base}]"
        return base

    def _add_enum(self, type_name: str):
        if type_name in self._enums:
            return
        ir_enum = self.schema.enums[type_name]
        self._enums[type_name] = EnumSpec(
            name=pascal_case(type_name),
            members=[(safe_member_name(v.name), v.name) for v in ir_enum.values],
            description=ir_enum.description,
        )

    # -- inputs -----------------------------------------------------------

    def reachable_inputs(self, operations: list[IROperation], skip: Iterable[str] = ()) -> list[str]:
        """Input types reachable from the operations' variables, in discovery order.

        Types in ``skip`` are neither returned nor walked into.
        """
        skip = set(skip)
        seen: list[str] = []
        pending = [v.type_name for op in operations for v in op.variables]
        while pending:
            type_name = pending.pop(0)
            if type_name in seen or type_name in skip or type_name not in self.schema.inputs:
                continue
            seen.append(type_name)
            for ir_field in self.schema.inputs[type_name].fields:
                pending.append(ir_field.type_name)
        return seen

    def _input_model(self, type_name: str) -> ModelSpec:
        ir_type = self.schema.inputs[type_name]
        fields = []
        for ir_field in ir_type.fields:
            fields.append(
                FieldSpec(
                    python_name=safe_field_name(ir_field.name),
                    wire_name=ir_field.name,
                    annotation=self.annotation(
                        self.python_type(ir_field.type_name),
                        ir_field.is_list,
                        ir_field.is_optional,
                        ir_field.is_item_optional,
                    ),
                    required=not ir_field.is_optional,
                )
            )
        return ModelSpec(
            name=pascal_case(type_name), fields=fields, description=ir_type.description, extra="forbid"
        )

    # -- selections -------------------------------------------------------

    def _selection_models(self, class_name: str, selections: list[IRSelection]) -> ModelSpec:
        """Build the model for a selection set, emitting nested models first."""
        fields = []
        for sel in selections:
            if sel.selections:
                base = self._fragment_model_for(sel)
                if base is None:
                    base = f"{class_name}{pascal_case(sel.response_key)}"
                    self._models.append(self._selection_models(base, sel.selections))
            else:
                base = self.python_type(sel.type_name)
            fields.append(
                FieldSpec(
                    python_name=safe_field_name(sel.response_key),
                    wire_name=sel.response_key,
                    annotation=self.annotation(base, sel.is_list, sel.is_optional, sel.is_item_optional),
                    required=not sel.is_optional,
                )
            )
        return ModelSpec(name=class_name, fields=fields)

    def _fragment_model_for(self, sel: IRSelection) -> Optional[str]:
        """Reuse a fragment model when a selection has exactly a fragment's shape."""
        shape = selection_shape(sel.selections)
        for fragment in self.documents.fragments.values():
            if fragment.type_condition == sel.type_name and fragment.shape == shape:
                return self._fragment_models.get(fragment.name)
        return None

    def _ordered_fragments(self) -> list[IRFragment]:
        """Fragments with dependencies before dependents."""
        ordered: list[IRFragment] = []

        def add(fragment: IRFragment):
            if any(f.name == fragment.name for f in ordered):
                return
            for name in fragment.fragment_names:
                add(self.documents.fragments[name])
            ordered.append(fragment)

        for fragment in self.documents.fragments.values():
            add(fragment)
        return ordered

    # -- generation -------------------------------------------------------

    def build_context(self) -> dict:
        """Collect everything the module template renders."""
        self._enums = {}
        self._scalars_used = set()
        self._models = []
        self._fragment_models = {}

        operations = self.documents.operations
        reachable = self.reachable_inputs(operations)
        self._untyped_inputs = set(reachable) - set(self.hooks.select_inputs(list(reachable)))
        input_models = [
            self._input_model(name)
            for name in self.reachable_inputs(operations, skip=self._untyped_inputs)
        ]

        # Structurally identical fragments share the first one's model
        aliases: list[tuple[str, str]] = []
        fragment_specs: list[FragmentSpec] = []
        shapes: dict[tuple[str, frozenset], str] = {}
        for fragment in self._ordered_fragments():
            model_name = pascal_case(fragment.name)
            key = (fragment.type_condition, fragment.shape)
            if key in shapes:
                aliases.append((model_name, shapes[key]))
                self._fragment_models[fragment.name] = shapes[key]
            else:
                shapes[key] = model_name
                self._fragment_models[fragment.name] = model_name
                self._models.append(self._selection_models(model_name, fragment.selections))
            fragment_specs.append(
                FragmentSpec(
                    const=fragment_const(fragment.name),
                    source=fragment.source,
                    model=self._fragment_models[fragment.name],
                    dependencies=[fragment_const(n) for n in fragment.fragment_names],
                )
            )

        document_specs: list[DocumentSpec] = []
        variables_models: list[ModelSpec] = []
        for op in operations:
            suffix = "Mutation" if op.operation_type == "mutation" else "Query"
            result_name = f"{pascal_case(op.name)}{suffix}"
            self._models.append(self._selection_models(result_name, op.selections))

            variables_name = f"{result_name}Variables"
            variables_models.append(
                ModelSpec(
                    name=variables_name,
                    fields=[
                        FieldSpec(
                            python_name=safe_field_name(v.name),
                            wire_name=v.name,
                            annotation=self.annotation(
                                self.python_type(v.type_name),
                                v.is_list,
                                v.is_optional,
                                v.is_item_optional,
                            ),
                            required=not v.is_optional and v.default_value is None,
                        )
                        for v in op.variables
                    ],
                )
            )
            document_specs.append(
                DocumentSpec(
                    const=op.upper_name,
                    source=op.source,
                    result_model=result_name,
                    variables_model=variables_name,
                    fragments=[fragment_const(n) for n in op.fragment_names],
                )
            )

        return {
            "scalar_imports": sorted(self.scalars.imports_for(self._scalars_used)),
            "enums": list(self._enums.values()),
            "input_models": input_models,
            "models": self._models,
            "aliases": aliases,
            "variables_models": variables_models,
            "fragments": fragment_specs,
            "documents": document_specs,
        }

    def render(self) -> str:
        """Render the module source without writing it."""
        self.documents = self.hooks.run_pre_hooks(self.documents, self.schema)
        context = self.build_context()
        template = self.env.get_template("module.py.j2")
        content = self.hooks.run_post_hooks(
            GeneratedModule(
                filename=os.path.basename(self.output_path),
                content=template.render(context),
                operations=tuple(op.name for op in self.documents.operations),
                fragments=tuple(self.documents.fragments),
            )
        )

        # Validate Python syntax
        try:
            ast.parse(content)
        except SyntaxError as e:
            raise ValueError(
                f"Generated invalid Python for {self.output_path}: {e}\n"
                f"Template: module.py.j2"
            ) from e
        return content

    def generate(self) -> str:
        """Render the module and write it to output_path."""
        content = self.render()
        output_dir = os.path.dirname(self.output_path)
        if output_dir:
            os.makedirs(output_dir, exist_ok=True)
        with open(self.output_path, "w") as f:
            f.write(content)
        logger.info(
            "Generated %s: %d operations, %d fragments",
            self.output_path, len(self.documents.operations), len(self.documents.fragments),
        )
        return content
