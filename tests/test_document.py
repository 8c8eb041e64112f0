"""Tests for fragments and typed documents."""

import pytest
from graphql import parse, print_ast
from pydantic import BaseModel, ValidationError

from artblocks_gql.core.document import (
    DocumentError,
    Fragment,
    FragmentShapeError,
    TypedDocument,
    resolve_fragment,
    with_fragments,
)
from artblocks_gql.operations import (
    CONTRACT_METADATA_UPDATE_INFO_FRAGMENT,
    INSERT_CONTRACTS_META_RESPONSE_FRAGMENT,
    INSERT_CONTRACTS_METADATA,
    INSERT_CONTRACTS_METADATA_SOURCE,
    ContractMetadataUpdateInfo,
    ContractsMetadataFields,
    ContractsMetadataInsertInput,
    ContractTypeNamesEnum,
    InsertContractsMetaResponseFragment,
    InsertContractsMetadataMutation,
    InsertContractsMetadataMutationVariables,
)

ROW = {"address": "0xabc", "bucket_name": "ab-media", "contract_type": "GenArt721CoreV3"}


class Address(BaseModel):
    address: str


ADDRESS_ONLY = Fragment.from_source(
    "fragment AddressOnly on contracts_metadata { address }",
    model=Address,
)

UPSERT_WITH_FRAGMENT = """mutation UpsertWithFragment($contractsMetadata: [contracts_metadata_insert_input!]!) {
  insert_contracts_metadata(objects: $contractsMetadata) {
    returning { ...insertContractsMetaResponseFragment }
  }
}"""


class TestFragment:
    """Tests for Fragment."""

    def test_shape(self):
        assert INSERT_CONTRACTS_META_RESPONSE_FRAGMENT.shape == frozenset(
            {"address", "bucket_name", "contract_type"}
        )
        assert INSERT_CONTRACTS_META_RESPONSE_FRAGMENT.type_condition == "contracts_metadata"

    def test_identical_fragments_are_interchangeable(self):
        first = INSERT_CONTRACTS_META_RESPONSE_FRAGMENT
        second = CONTRACT_METADATA_UPDATE_INFO_FRAGMENT
        assert first.name != second.name
        assert first.is_interchangeable(second)
        assert second.is_interchangeable(first)

    def test_identical_fragments_share_model(self):
        assert InsertContractsMetaResponseFragment is ContractMetadataUpdateInfo
        assert INSERT_CONTRACTS_META_RESPONSE_FRAGMENT.model is CONTRACT_METADATA_UPDATE_INFO_FRAGMENT.model
        first = INSERT_CONTRACTS_META_RESPONSE_FRAGMENT.parse(ROW)
        second = CONTRACT_METADATA_UPDATE_INFO_FRAGMENT.parse(ROW)
        assert first == second
        assert first.contract_type is ContractTypeNamesEnum.GenArt721CoreV3

    def test_different_shape_not_interchangeable(self):
        assert not ADDRESS_ONLY.is_interchangeable(INSERT_CONTRACTS_META_RESPONSE_FRAGMENT)

    def test_different_type_not_interchangeable(self):
        other = Fragment.from_source(
            "fragment Elsewhere on projects_metadata { address bucket_name contract_type }",
            model=ContractsMetadataFields,
        )
        assert other.shape == INSERT_CONTRACTS_META_RESPONSE_FRAGMENT.shape
        assert not other.is_interchangeable(INSERT_CONTRACTS_META_RESPONSE_FRAGMENT)

    def test_nested_spread_counts_toward_shape(self):
        outer = Fragment.from_source(
            "fragment Outer on contracts_metadata { ...AddressOnly bucket_name contract_type }",
            model=ContractsMetadataFields,
            fragments=[ADDRESS_ONLY],
        )
        assert outer.is_interchangeable(INSERT_CONTRACTS_META_RESPONSE_FRAGMENT)

    def test_missing_dependency(self):
        with pytest.raises(DocumentError, match="Unknown fragment: AddressOnly"):
            Fragment.from_source(
                "fragment Outer on contracts_metadata { ...AddressOnly }",
                model=Address,
            )

    def test_requires_one_definition(self):
        with pytest.raises(DocumentError):
            Fragment.from_source(
                "fragment A on t { a } fragment B on t { b }",
                model=Address,
            )

    def test_resolve_by_shape(self):
        shape = frozenset({"address", "bucket_name", "contract_type"})
        found = resolve_fragment(
            shape,
            "contracts_metadata",
            [ADDRESS_ONLY, CONTRACT_METADATA_UPDATE_INFO_FRAGMENT],
        )
        assert found is CONTRACT_METADATA_UPDATE_INFO_FRAGMENT
        assert resolve_fragment(frozenset({"name"}), "contracts_metadata", [ADDRESS_ONLY]) is None


class TestWithFragments:
    """Tests for with_fragments."""

    def test_no_spreads_returns_source_unchanged(self):
        assert with_fragments(INSERT_CONTRACTS_METADATA_SOURCE, ADDRESS_ONLY) == INSERT_CONTRACTS_METADATA_SOURCE

    def test_appends_needed_definitions_only(self):
        source = with_fragments(
            UPSERT_WITH_FRAGMENT,
            INSERT_CONTRACTS_META_RESPONSE_FRAGMENT,
            CONTRACT_METADATA_UPDATE_INFO_FRAGMENT,
        )
        assert source.startswith(UPSERT_WITH_FRAGMENT)
        assert "fragment insertContractsMetaResponseFragment" in source
        assert "ContractMetadataUpdateInfo" not in source

    def test_same_shape_different_names_coexist(self):
        source = """query Both {
  a: contracts_metadata { ...insertContractsMetaResponseFragment }
  b: contracts_metadata { ...ContractMetadataUpdateInfo }
}"""
        full = with_fragments(
            source,
            INSERT_CONTRACTS_META_RESPONSE_FRAGMENT,
            CONTRACT_METADATA_UPDATE_INFO_FRAGMENT,
        )
        assert full.count("fragment ") == 2

    def test_duplicates_deduplicated_by_name(self):
        full = with_fragments(
            UPSERT_WITH_FRAGMENT,
            INSERT_CONTRACTS_META_RESPONSE_FRAGMENT,
            INSERT_CONTRACTS_META_RESPONSE_FRAGMENT,
        )
        assert full.count("fragment insertContractsMetaResponseFragment") == 1

    def test_conflicting_definitions_rejected(self):
        impostor = Fragment.from_source(
            "fragment insertContractsMetaResponseFragment on contracts_metadata { address }",
            model=Address,
        )
        with pytest.raises(DocumentError, match="Two different definitions"):
            with_fragments(UPSERT_WITH_FRAGMENT, INSERT_CONTRACTS_META_RESPONSE_FRAGMENT, impostor)

    def test_unknown_spread(self):
        with pytest.raises(DocumentError, match="Unknown fragment"):
            with_fragments(UPSERT_WITH_FRAGMENT)


class TestTypedDocument:
    """Tests for TypedDocument."""

    def test_source_is_sent_verbatim(self):
        assert INSERT_CONTRACTS_METADATA.source == INSERT_CONTRACTS_METADATA_SOURCE
        assert INSERT_CONTRACTS_METADATA.operation_name == "InsertContractsMetadata"
        assert INSERT_CONTRACTS_METADATA.operation_type == "mutation"

    def test_document_is_parsed(self):
        assert print_ast(INSERT_CONTRACTS_METADATA.document) == print_ast(
            parse(INSERT_CONTRACTS_METADATA_SOURCE)
        )

    def test_serialize_variables_uses_aliases_and_drops_unset(self):
        variables = INSERT_CONTRACTS_METADATA.serialize_variables(
            InsertContractsMetadataMutationVariables(
                contracts_metadata=[ContractsMetadataInsertInput(address="0xabc", bucket_name="ab-media")]
            )
        )
        assert variables == {"contractsMetadata": [{"address": "0xabc", "bucket_name": "ab-media"}]}

    def test_serialize_variables_from_mapping(self):
        variables = INSERT_CONTRACTS_METADATA.serialize_variables({"contractsMetadata": [ROW]})
        assert variables == {"contractsMetadata": [ROW]}

    def test_explicit_null_is_sent(self):
        variables = INSERT_CONTRACTS_METADATA.serialize_variables(
            {"contractsMetadata": [{"address": "0xabc", "bucket_name": None}]}
        )
        assert variables == {"contractsMetadata": [{"address": "0xabc", "bucket_name": None}]}

    def test_variables_validated(self):
        with pytest.raises(ValidationError):
            INSERT_CONTRACTS_METADATA.serialize_variables({"contractsMetadata": []})
        with pytest.raises(ValidationError):
            INSERT_CONTRACTS_METADATA.serialize_variables(
                {"contractsMetadata": [{"address": "0xabc", "contract_type": "NotAContract"}]}
            )

    def test_parse_result(self):
        result = INSERT_CONTRACTS_METADATA.parse_result(
            {"insert_contracts_metadata": {"returning": [ROW]}}
        )
        assert isinstance(result, InsertContractsMetadataMutation)
        assert result.insert_contracts_metadata.returning[0].model_dump(mode="json") == ROW

    def test_parse_null_result(self):
        result = INSERT_CONTRACTS_METADATA.parse_result({"insert_contracts_metadata": None})
        assert result.insert_contracts_metadata is None

    def test_returning_matches_both_fragments(self):
        shape = INSERT_CONTRACTS_METADATA.selection_shape("insert_contracts_metadata.returning")
        assert shape == INSERT_CONTRACTS_META_RESPONSE_FRAGMENT.shape
        assert shape == CONTRACT_METADATA_UPDATE_INFO_FRAGMENT.shape

    def test_selection_shape_unknown_path(self):
        with pytest.raises(DocumentError):
            INSERT_CONTRACTS_METADATA.selection_shape("insert_contracts_metadata.nothing")

    def test_requires_named_operation(self):
        with pytest.raises(DocumentError, match="named operation"):
            TypedDocument.from_source(
                "{ contracts_metadata { address } }",
                result_model=Address,
                variables_model=Address,
            )

    def test_requires_one_operation(self):
        with pytest.raises(DocumentError, match="exactly one operation"):
            TypedDocument.from_source(
                "query A { a } query B { b }",
                result_model=Address,
                variables_model=Address,
            )

    def test_syntax_error(self):
        with pytest.raises(DocumentError, match="Invalid GraphQL document"):
            TypedDocument.from_source("mutation {", result_model=Address, variables_model=Address)


class TestSubstituteFragment:
    """Tests for swapping a fragment for an interchangeable one."""

    def _document(self):
        return TypedDocument.from_source(
            UPSERT_WITH_FRAGMENT,
            result_model=InsertContractsMetadataMutation,
            variables_model=InsertContractsMetadataMutationVariables,
            fragments=[INSERT_CONTRACTS_META_RESPONSE_FRAGMENT],
        )

    def test_substitute_interchangeable(self):
        document = self._document()
        swapped = document.substitute_fragment(
            INSERT_CONTRACTS_META_RESPONSE_FRAGMENT, CONTRACT_METADATA_UPDATE_INFO_FRAGMENT
        )
        assert "...ContractMetadataUpdateInfo" in swapped.source
        assert "insertContractsMetaResponseFragment" not in swapped.source
        assert swapped.result_model is document.result_model
        assert swapped.selection_shape("insert_contracts_metadata.returning") == (
            document.selection_shape("insert_contracts_metadata.returning")
        )

    def test_substitute_other_shape_rejected(self):
        with pytest.raises(FragmentShapeError):
            self._document().substitute_fragment(INSERT_CONTRACTS_META_RESPONSE_FRAGMENT, ADDRESS_ONLY)

    def test_original_unchanged(self):
        document = self._document()
        document.substitute_fragment(
            INSERT_CONTRACTS_META_RESPONSE_FRAGMENT, CONTRACT_METADATA_UPDATE_INFO_FRAGMENT
        )
        assert "...insertContractsMetaResponseFragment" in document.source
