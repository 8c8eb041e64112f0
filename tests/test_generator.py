"""Tests for the code generator."""

import ast
import asyncio
import importlib.util
import sys

import pytest
from pydantic import ValidationError

from artblocks_gql.core.executor import GraphQLExecutor
from artblocks_gql.core.generator import (
    CodeGenerator,
    fragment_const,
    pascal_case,
    safe_field_name,
    safe_member_name,
    snake_case,
    upper_case,
)
from artblocks_gql.core.hooks import AddHeaderHook, FilterInputsHook, HookRunner, OperationFilterHook
from artblocks_gql.core.parser import DocumentParser
from artblocks_gql.operations import INSERT_CONTRACTS_METADATA_SOURCE


def class_names(source):
    return [node.name for node in ast.parse(source).body if isinstance(node, ast.ClassDef)]


def load_module(path, name, monkeypatch):
    spec = importlib.util.spec_from_file_location(name, path)
    module = importlib.util.module_from_spec(spec)
    monkeypatch.setitem(sys.modules, name, module)
    spec.loader.exec_module(module)
    return module


class TestNaming:
    """Tests for name conversion helpers."""

    def test_snake_case(self):
        assert snake_case("InsertContractsMetadata") == "insert_contracts_metadata"
        assert snake_case("contractsMetadata") == "contracts_metadata"

    def test_pascal_case(self):
        assert pascal_case("contract_type_names_enum") == "ContractTypeNamesEnum"
        assert pascal_case("insertContractsMetaResponseFragment") == "InsertContractsMetaResponseFragment"
        assert pascal_case("contracts_metadata_insert_input") == "ContractsMetadataInsertInput"

    def test_upper_case(self):
        assert upper_case("ContractMetadataUpdateInfo") == "CONTRACT_METADATA_UPDATE_INFO"

    def test_safe_field_name(self):
        assert safe_field_name("from") == "from_"
        assert safe_field_name("_and") == "and_"
        assert safe_field_name("json") == "json_"
        assert safe_field_name("registryAddresses") == "registry_addresses"

    def test_safe_member_name(self):
        assert safe_member_name("None") == "None_"
        assert safe_member_name("_internal") == "v_internal"
        assert safe_member_name("GenArt721CoreV3") == "GenArt721CoreV3"

    def test_fragment_const(self):
        assert fragment_const("insertContractsMetaResponseFragment") == "INSERT_CONTRACTS_META_RESPONSE_FRAGMENT"
        assert fragment_const("ContractMetadataUpdateInfo") == "CONTRACT_METADATA_UPDATE_INFO_FRAGMENT"
        assert fragment_const("ProjectFields") == "PROJECT_FIELDS_FRAGMENT"


class TestCodeGenerator:
    """Tests for CodeGenerator over the bundled schema and documents."""

    @pytest.fixture
    def generated(self, schema_ir, document_set, tmp_path):
        output = tmp_path / "contracts_generated.py"
        content = CodeGenerator(schema_ir, document_set, str(output)).generate()
        return output, content

    def test_output_is_valid_python(self, generated):
        output, content = generated
        assert output.read_text() == content
        ast.parse(content)

    def test_identical_fragments_share_one_class(self, generated):
        _, content = generated
        classes = class_names(content)
        assert "InsertContractsMetaResponseFragment" in classes
        assert "ContractMetadataUpdateInfo" not in classes
        assert "ContractMetadataUpdateInfo = InsertContractsMetaResponseFragment" in content

    def test_only_reachable_types(self, generated):
        _, content = generated
        classes = class_names(content)
        assert "ContractsMetadataInsertInput" in classes
        assert "ContractTypeNamesEnum" in classes
        assert "ContractsMetadataBoolExp" not in classes
        assert "OrderBy" not in classes
        assert "ContractsMetadataOnConflict" not in classes

    def test_result_and_variables_models(self, generated):
        _, content = generated
        classes = class_names(content)
        assert "InsertContractsMetadataMutation" in classes
        assert "InsertContractsMetadataMutationVariables" in classes
        assert "GetUnregisteredContractsQuery" in classes
        assert "GetUnregisteredContractsQueryVariables" in classes
        assert 'contracts_metadata: list[ContractsMetadataInsertInput] = Field(alias="contractsMetadata")' in content

    def test_generated_module_runs(self, generated, hasura, monkeypatch):
        output, _ = generated
        module = load_module(output, "contracts_generated", monkeypatch)

        assert module.INSERT_CONTRACTS_METADATA.source == INSERT_CONTRACTS_METADATA_SOURCE
        assert module.INSERT_CONTRACTS_META_RESPONSE_FRAGMENT.is_interchangeable(
            module.CONTRACT_METADATA_UPDATE_INFO_FRAGMENT
        )

        async def main():
            async with GraphQLExecutor("http://hasura.local/v1/graphql", transport=hasura.as_transport()) as ex:
                return await ex.execute_document(
                    module.INSERT_CONTRACTS_METADATA,
                    module.InsertContractsMetadataMutationVariables(
                        contracts_metadata=[
                            module.ContractsMetadataInsertInput(
                                address="0xabc",
                                bucket_name="ab-media",
                                contract_type=module.ContractTypeNamesEnum.GenArt721CoreV3,
                            )
                        ]
                    ),
                )

        result = asyncio.run(main())
        (row,) = result.insert_contracts_metadata.returning
        assert isinstance(row, module.InsertContractsMetaResponseFragment)
        assert row.contract_type is module.ContractTypeNamesEnum.GenArt721CoreV3

    def test_fragment_constants_match_hand_written_module(self, generated):
        _, content = generated
        assert "INSERT_CONTRACTS_META_RESPONSE_FRAGMENT = Fragment.from_source(" in content
        assert "CONTRACT_METADATA_UPDATE_INFO_FRAGMENT = Fragment.from_source(" in content
        assert "_FRAGMENT_FRAGMENT" not in content

    def test_generated_input_rejects_unknown_columns(self, generated, monkeypatch):
        output, _ = generated
        module = load_module(output, "contracts_generated", monkeypatch)
        with pytest.raises(ValidationError, match="bucket"):
            module.ContractsMetadataInsertInput(address="0xabc", bucket="typo")

    def test_operation_filter_hook(self, schema_ir, document_set, tmp_path):
        hooks = HookRunner([OperationFilterHook(["GetUnregisteredContracts"])])
        content = CodeGenerator(schema_ir, document_set, str(tmp_path / "out.py"), hooks=hooks).render()
        classes = class_names(content)
        assert "GetUnregisteredContractsQuery" in classes
        assert "InsertContractsMetadataMutation" not in classes
        # Only the insert mutation reaches the insert input
        assert "ContractsMetadataInsertInput" not in classes
        assert "InsertContractsMetaResponseFragment" in classes

    def test_header_lists_operations(self, schema_ir, document_set, tmp_path):
        hooks = HookRunner([AddHeaderHook("# Operations: $operations")])
        content = CodeGenerator(schema_ir, document_set, str(tmp_path / "out.py"), hooks=hooks).render()
        assert content.startswith("# Operations: InsertContractsMetadata, GetUnregisteredContracts\n\n")

    def test_header_hook(self, schema_ir, document_set, tmp_path):
        hooks = HookRunner([AddHeaderHook("# Code generated by artblocks-gql. DO NOT EDIT.")])
        content = CodeGenerator(schema_ir, document_set, str(tmp_path / "out.py"), hooks=hooks).render()
        assert content.startswith("# Code generated by artblocks-gql. DO NOT EDIT.\n\n")

    def test_filtered_input_becomes_dict(self, schema_ir, document_set, tmp_path):
        hooks = HookRunner([FilterInputsHook(exclude_suffix="_insert_input")])
        content = CodeGenerator(schema_ir, document_set, str(tmp_path / "out.py"), hooks=hooks).render()
        assert "ContractsMetadataInsertInput" not in class_names(content)
        assert "list[dict[str, Any]]" in content

    def test_broken_template_is_rejected(self, schema_ir, document_set, tmp_path):
        templates = tmp_path / "templates"
        templates.mkdir()
        (templates / "module.py.j2").write_text("class Broken(\n")
        generator = CodeGenerator(
            schema_ir, document_set, str(tmp_path / "out.py"), template_dir=str(templates)
        )
        with pytest.raises(ValueError, match="Generated invalid Python"):
            generator.render()

    def test_custom_template(self, schema_ir, document_set, tmp_path):
        templates = tmp_path / "templates"
        templates.mkdir()
        (templates / "module.py.j2").write_text(
            "{% for document in documents %}{{ document.const }} = {{ document.source | repr }}\n{% endfor %}"
        )
        content = CodeGenerator(
            schema_ir, document_set, str(tmp_path / "out.py"), template_dir=str(templates)
        ).render()
        namespace = {}
        exec(content, namespace)
        assert namespace["INSERT_CONTRACTS_METADATA"] == INSERT_CONTRACTS_METADATA_SOURCE

    def test_nested_selections_get_own_models(self, schema_ir, tmp_path):
        parser = DocumentParser(schema_ir)
        parser.add_source("""
            query ByAddress($address: String!) {
              contracts_metadata_by_pk(address: $address) { address name }
            }
        """)
        content = CodeGenerator(schema_ir, parser.resolve(), str(tmp_path / "out.py")).render()
        assert "ByAddressQueryContractsMetadataByPk" in class_names(content)
        assert "contracts_metadata_by_pk: Optional[ByAddressQueryContractsMetadataByPk] = None" in content
