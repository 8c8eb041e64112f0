"""Generation hooks for customizing code generation.

A hook takes part in any of three phases, depending on which methods it has:

* ``pre_generate(documents, schema)``: rewrite the parsed document set before
  anything is rendered (e.g. keep only some operations);
* ``select_inputs(names)``: narrow the input types the generator found
  reachable from operation variables. Inputs dropped here are typed as
  ``dict[str, Any]`` in the generated module;
* ``post_generate(module)``: rewrite the rendered module text.

Example usage:
    from artblocks_gql.core.hooks import AddHeaderHook, FilterInputsHook, HookRunner

    runner = HookRunner()
    runner.add(FilterInputsHook(exclude_suffix="_bool_exp"))
    runner.add(AddHeaderHook("# Generated from $operations. DO NOT EDIT."))
"""

from dataclasses import dataclass, field, replace
from string import Template
from typing import Iterable, Protocol, runtime_checkable

from .ir import IRDocumentSet, IRSchema


@dataclass(frozen=True)
class GeneratedModule:
    """The rendered module handed to post-generation hooks."""
    filename: str
    content: str
    operations: tuple[str, ...] = ()
    fragments: tuple[str, ...] = ()


@runtime_checkable
class PreGenerateHook(Protocol):
    """Rewrites the document set before rendering."""

    def pre_generate(self, documents: IRDocumentSet, schema: IRSchema) -> IRDocumentSet:
        ...


@runtime_checkable
class InputSelectionHook(Protocol):
    """Narrows the input types emitted as models."""

    def select_inputs(self, names: list[str]) -> list[str]:
        ...


@runtime_checkable
class PostGenerateHook(Protocol):
    """Rewrites the rendered module before it is written."""

    def post_generate(self, module: GeneratedModule) -> str:
        ...


class AddHeaderHook:
    """Put a header (e.g. a DO NOT EDIT banner) on the generated module.

    ``$filename``, ``$operations`` and ``$fragments`` in the header are
    replaced with the module's file name and comma-separated operation and
    fragment names.
    """

    def __init__(self, header: str):
        self.header = Template(header)

    def post_generate(self, module: GeneratedModule) -> str:
        header = self.header.safe_substitute(
            filename=module.filename,
            operations=", ".join(module.operations),
            fragments=", ".join(module.fragments),
        )
        separator = "\n" if header.endswith("\n") else "\n\n"
        return header + separator + module.content


class OperationFilterHook:
    """Keep only the named operations. Fragments are kept for every operation left."""

    def __init__(self, names: Iterable[str]):
        self.names = set(names)

    def pre_generate(self, documents: IRDocumentSet, schema: IRSchema) -> IRDocumentSet:
        unknown = self.names - {op.name for op in documents.operations}
        if unknown:
            raise ValueError(f"Unknown operations: {', '.join(sorted(unknown))}")
        return replace(
            documents,
            operations=[op for op in documents.operations if op.name in self.names],
        )


@dataclass
class FilterInputsHook:
    """Leave reachable input types untyped by name prefix/suffix or exact name.

    Example:
        # Hasura bool_exp inputs nest deeply; pass them as plain dicts
        hook = FilterInputsHook(exclude_suffix="_bool_exp")
    """
    exclude_prefix: str | None = None
    exclude_suffix: str | None = None
    exclude: set[str] = field(default_factory=set)

    def _keep(self, name: str) -> bool:
        if name in self.exclude:
            return False
        if self.exclude_prefix and name.startswith(self.exclude_prefix):
            return False
        if self.exclude_suffix and name.endswith(self.exclude_suffix):
            return False
        return True

    def select_inputs(self, names: list[str]) -> list[str]:
        return [name for name in names if self._keep(name)]


class HookRunner:
    """Runs hooks in registration order, each in every phase it implements."""

    def __init__(self, hooks: Iterable[object] = ()):
        self.pre_hooks: list[PreGenerateHook] = []
        self.input_hooks: list[InputSelectionHook] = []
        self.post_hooks: list[PostGenerateHook] = []
        for hook in hooks:
            self.add(hook)

    def add(self, hook: object):
        registered = False
        if isinstance(hook, PreGenerateHook):
            self.pre_hooks.append(hook)
            registered = True
        if isinstance(hook, InputSelectionHook):
            self.input_hooks.append(hook)
            registered = True
        if isinstance(hook, PostGenerateHook):
            self.post_hooks.append(hook)
            registered = True
        if not registered:
            raise TypeError(f"{type(hook).__name__} implements no generation hook")

    def run_pre_hooks(self, documents: IRDocumentSet, schema: IRSchema) -> IRDocumentSet:
        for hook in self.pre_hooks:
            documents = hook.pre_generate(documents, schema)
        return documents

    def select_inputs(self, names: list[str]) -> list[str]:
        for hook in self.input_hooks:
            names = hook.select_inputs(names)
        return names

    def run_post_hooks(self, module: GeneratedModule) -> str:
        content = module.content
        for hook in self.post_hooks:
            content = hook.post_generate(replace(module, content=content))
        return content
