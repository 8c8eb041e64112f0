"""Tests for generation hooks."""

import pytest

from artblocks_gql.core.hooks import (
    AddHeaderHook,
    FilterInputsHook,
    GeneratedModule,
    HookRunner,
    InputSelectionHook,
    OperationFilterHook,
    PostGenerateHook,
    PreGenerateHook,
)

INPUTS = [
    "contracts_metadata_insert_input",
    "contracts_metadata_on_conflict",
    "contracts_metadata_bool_exp",
    "String_comparison_exp",
]


def module(content="class Foo:\n    pass\n"):
    return GeneratedModule(
        filename="contracts_generated.py",
        content=content,
        operations=("InsertContractsMetadata", "GetUnregisteredContracts"),
        fragments=("insertContractsMetaResponseFragment",),
    )


class TestAddHeaderHook:
    """Tests for AddHeaderHook."""

    def test_adds_header(self):
        hook = AddHeaderHook("# Code generated by artblocks-gql. DO NOT EDIT.")
        result = hook.post_generate(module())
        assert result == "# Code generated by artblocks-gql. DO NOT EDIT.\n\nclass Foo:\n    pass\n"

    def test_handles_header_with_newline(self):
        hook = AddHeaderHook("# Header\n")
        assert hook.post_generate(module("code")) == "# Header\n\ncode"

    def test_substitutes_module_details(self):
        hook = AddHeaderHook("# $filename: $operations ($fragments)")
        result = hook.post_generate(module("code"))
        assert result.splitlines()[0] == (
            "# contracts_generated.py: InsertContractsMetadata, GetUnregisteredContracts "
            "(insertContractsMetaResponseFragment)"
        )

    def test_unknown_placeholders_are_kept(self):
        hook = AddHeaderHook("# costs $5 and ${unknown}")
        assert hook.post_generate(module("code")).startswith("# costs $5 and ${unknown}\n")


class TestOperationFilterHook:
    """Tests for OperationFilterHook."""

    def test_keeps_named_operations(self, document_set, schema_ir):
        result = OperationFilterHook(["InsertContractsMetadata"]).pre_generate(document_set, schema_ir)
        assert [op.name for op in result.operations] == ["InsertContractsMetadata"]
        assert set(result.fragments) == set(document_set.fragments)
        assert len(document_set.operations) == 2

    def test_unknown_operation(self, document_set, schema_ir):
        with pytest.raises(ValueError, match="Unknown operations: GetProjects"):
            OperationFilterHook(["GetProjects"]).pre_generate(document_set, schema_ir)


class TestFilterInputsHook:
    """Tests for FilterInputsHook."""

    def test_exclude_suffix(self):
        hook = FilterInputsHook(exclude_suffix="_exp")
        assert hook.select_inputs(INPUTS) == [
            "contracts_metadata_insert_input",
            "contracts_metadata_on_conflict",
        ]

    def test_exclude_prefix(self):
        hook = FilterInputsHook(exclude_prefix="contracts_metadata_")
        assert hook.select_inputs(INPUTS) == ["String_comparison_exp"]

    def test_exclude_names(self):
        hook = FilterInputsHook(exclude={"contracts_metadata_on_conflict"})
        assert "contracts_metadata_on_conflict" not in hook.select_inputs(INPUTS)
        assert len(hook.select_inputs(INPUTS)) == 3

    def test_no_filters_keeps_everything(self):
        assert FilterInputsHook().select_inputs(INPUTS) == INPUTS


class TestHookRunner:
    """Tests for HookRunner."""

    def test_post_hooks_run_in_order(self):
        runner = HookRunner([AddHeaderHook("# second"), AddHeaderHook("# first")])
        assert runner.run_post_hooks(module("code")) == "# first\n\n# second\n\ncode"

    def test_input_hooks_chain(self):
        runner = HookRunner()
        runner.add(FilterInputsHook(exclude_suffix="_bool_exp"))
        runner.add(FilterInputsHook(exclude_prefix="String_"))
        assert runner.select_inputs(INPUTS) == [
            "contracts_metadata_insert_input",
            "contracts_metadata_on_conflict",
        ]

    def test_hook_registered_for_each_phase(self, document_set, schema_ir):
        class Everything:
            def pre_generate(self, documents, schema):
                return documents

            def select_inputs(self, names):
                return names[:1]

            def post_generate(self, module):
                return module.content.upper()

        runner = HookRunner([Everything()])
        assert runner.run_pre_hooks(document_set, schema_ir) is document_set
        assert runner.select_inputs(INPUTS) == INPUTS[:1]
        assert runner.run_post_hooks(module("code")) == "CODE"

    def test_rejects_objects_without_hooks(self):
        with pytest.raises(TypeError, match="implements no generation hook"):
            HookRunner().add(object())

    def test_empty_runner_is_identity(self, document_set, schema_ir):
        runner = HookRunner()
        assert runner.run_pre_hooks(document_set, schema_ir) is document_set
        assert runner.select_inputs(INPUTS) == INPUTS
        assert runner.run_post_hooks(module("code")) == "code"


class TestHookProtocols:
    """Tests for the hook protocols."""

    def test_builtins_implement_protocols(self):
        assert isinstance(AddHeaderHook("#"), PostGenerateHook)
        assert isinstance(OperationFilterHook([]), PreGenerateHook)
        assert isinstance(FilterInputsHook(), InputSelectionHook)
        assert not isinstance(FilterInputsHook(), PostGenerateHook)
