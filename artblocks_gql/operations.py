"""Typed documents for the Art Blocks ``contracts_metadata`` table.

The mutation text below is sent byte for byte as written; the fragments are
kept alongside it because other documents spread them, and both select the
same three columns, so they share ``ContractsMetadataFields``.

Example:
    async with GraphQLExecutor(endpoint, auth=HasuraAdminSecretAuth(secret)) as executor:
        rows = await upsert_contracts_metadata(executor, [
            ContractsMetadataInsertInput(
                address="0xabc",
                bucket_name="ab-media",
                contract_type=ContractTypeNamesEnum.GenArt721CoreV3,
            )
        ])
"""

import logging
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .core.document import Fragment, TypedDocument
from .core.executor import GraphQLExecutor
from .core.query_builder import OnConflict, QueryBuilder
from .core.store import Column, Table

logger = logging.getLogger(__name__)


class ContractTypeNamesEnum(str, Enum):
    GenArt721CoreV0 = "GenArt721CoreV0"
    GenArt721CoreV1 = "GenArt721CoreV1"
    GenArt721CoreV2_ENGINE = "GenArt721CoreV2_ENGINE"
    GenArt721CoreV2_ENGINE_FLEX = "GenArt721CoreV2_ENGINE_FLEX"
    GenArt721CoreV2_PBAB = "GenArt721CoreV2_PBAB"
    GenArt721CoreV2_PRTNR = "GenArt721CoreV2_PRTNR"
    GenArt721CoreV3 = "GenArt721CoreV3"
    GenArt721CoreV3_Engine = "GenArt721CoreV3_Engine"
    GenArt721CoreV3_Engine_Flex = "GenArt721CoreV3_Engine_Flex"


class ContractsMetadataConstraint(str, Enum):
    """Unique or primary key constraints on table contracts_metadata."""

    contracts_metadata_pkey = "contracts_metadata_pkey"


class ContractsMetadataUpdateColumn(str, Enum):
    """Update columns of table contracts_metadata."""

    address = "address"
    admin = "admin"
    bucket_name = "bucket_name"
    contract_type = "contract_type"
    core_registry_address = "core_registry_address"
    core_version = "core_version"
    default_vertical_name = "default_vertical_name"
    minter_filter_address = "minter_filter_address"
    name = "name"
    render_provider_address = "render_provider_address"


class ContractsMetadataInsertInput(BaseModel):
    """Input type for inserting data into table contracts_metadata.

    Only the fields that were set are sent, so an omitted column is left
    to the server instead of being written as null. Unknown columns are
    rejected.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    address: Optional[str] = None
    admin: Optional[str] = None
    bucket_name: Optional[str] = None
    contract_type: Optional[ContractTypeNamesEnum] = None
    core_registry_address: Optional[str] = None
    core_version: Optional[str] = None
    default_vertical_name: Optional[str] = None
    minter_filter_address: Optional[str] = None
    name: Optional[str] = None
    render_provider_address: Optional[str] = None


class ContractsMetadataFields(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    address: str
    bucket_name: Optional[str] = None
    contract_type: ContractTypeNamesEnum


InsertContractsMetaResponseFragment = ContractsMetadataFields
ContractMetadataUpdateInfo = ContractsMetadataFields


class InsertContractsMetadataMutationInsertContractsMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    returning: list[ContractsMetadataFields]


class InsertContractsMetadataMutation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    insert_contracts_metadata: Optional[InsertContractsMetadataMutationInsertContractsMetadata] = None


class InsertContractsMetadataMutationVariables(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    contracts_metadata: list[ContractsMetadataInsertInput] = Field(
        alias="contractsMetadata", min_length=1
    )


class UnregisteredContract(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    address: str
    core_version: Optional[str] = None
    contract_type: ContractTypeNamesEnum


class GetUnregisteredContractsQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    contracts_metadata: list[UnregisteredContract]


class GetUnregisteredContractsQueryVariables(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    registry_addresses: list[str] = Field(alias="registryAddresses")


INSERT_CONTRACTS_META_RESPONSE_FRAGMENT = Fragment.from_source(
    """fragment insertContractsMetaResponseFragment on contracts_metadata {
  address
  bucket_name
  contract_type
}""",
    model=InsertContractsMetaResponseFragment,
)

CONTRACT_METADATA_UPDATE_INFO_FRAGMENT = Fragment.from_source(
    """fragment ContractMetadataUpdateInfo on contracts_metadata {
  address
  bucket_name
  contract_type
}""",
    model=ContractMetadataUpdateInfo,
)

# The conflict policy written into INSERT_CONTRACTS_METADATA. ``address`` is
# the key itself; columns not listed here are never changed by an upsert.
INSERT_CONTRACTS_METADATA_ON_CONFLICT = OnConflict(
    constraint=ContractsMetadataConstraint.contracts_metadata_pkey.value,
    update_columns=(
        ContractsMetadataUpdateColumn.address.value,
        ContractsMetadataUpdateColumn.bucket_name.value,
        ContractsMetadataUpdateColumn.contract_type.value,
    ),
)

INSERT_CONTRACTS_METADATA_SOURCE = """mutation InsertContractsMetadata($contractsMetadata: [contracts_metadata_insert_input!]!) {
  insert_contracts_metadata(
    objects: $contractsMetadata
    on_conflict: {
      constraint: contracts_metadata_pkey,
      update_columns: [address, bucket_name, contract_type]
    }
  ) {
    returning { address bucket_name contract_type }
  }
}"""

INSERT_CONTRACTS_METADATA: TypedDocument[
    InsertContractsMetadataMutation, InsertContractsMetadataMutationVariables
] = TypedDocument.from_source(
    INSERT_CONTRACTS_METADATA_SOURCE,
    result_model=InsertContractsMetadataMutation,
    variables_model=InsertContractsMetadataMutationVariables,
)

GET_UNREGISTERED_CONTRACTS: TypedDocument[
    GetUnregisteredContractsQuery, GetUnregisteredContractsQueryVariables
] = TypedDocument.from_source(
    QueryBuilder("contracts_metadata").build_select(
        "GetUnregisteredContracts",
        variables={"registryAddresses": "[String!]!"},
        where={
            "_or": [
                {"core_registry_address": {"_nin": "$registryAddresses"}},
                {"core_registry_address": {"_is_null": True}},
            ]
        },
        fields=["address", "core_version", "contract_type"],
    ),
    result_model=GetUnregisteredContractsQuery,
    variables_model=GetUnregisteredContractsQueryVariables,
)


async def upsert_contracts_metadata(
    executor: GraphQLExecutor,
    rows: Iterable[Union[ContractsMetadataInsertInput, Mapping[str, Any]]],
) -> list[ContractsMetadataFields]:
    """Insert or update contract rows and return what the server stored.

    Rows sharing an address with an existing row overwrite its
    ``bucket_name`` and ``contract_type``; every other column of an
    existing row is left alone.
    """
    variables = InsertContractsMetadataMutationVariables(
        contracts_metadata=[
            row if isinstance(row, ContractsMetadataInsertInput)
            else ContractsMetadataInsertInput.model_validate(row)
            for row in rows
        ]
    )
    result = await executor.execute_document(INSERT_CONTRACTS_METADATA, variables)
    if result.insert_contracts_metadata is None:
        logger.warning("insert_contracts_metadata returned null")
        return []
    logger.info("Upserted %d contracts_metadata rows", len(result.insert_contracts_metadata.returning))
    return result.insert_contracts_metadata.returning


async def get_unregistered_contracts(
    executor: GraphQLExecutor,
    registry_addresses: Iterable[str],
) -> list[UnregisteredContract]:
    """Contracts whose core registry is unknown or not in ``registry_addresses``."""
    variables = GetUnregisteredContractsQueryVariables(registry_addresses=list(registry_addresses))
    result = await executor.execute_document(GET_UNREGISTERED_CONTRACTS, variables)
    return result.contracts_metadata


def contracts_metadata_table() -> Table:
    """An empty in-memory ``contracts_metadata`` table for LocalHasura."""
    return Table(
        "contracts_metadata",
        columns=[
            Column("address", nullable=False),
            Column("name"),
            Column("bucket_name"),
            Column(
                "contract_type",
                nullable=False,
                choices=tuple(member.value for member in ContractTypeNamesEnum),
            ),
            Column("core_version"),
            Column("default_vertical_name"),
            Column("admin"),
            Column("minter_filter_address"),
            Column("render_provider_address"),
            Column("core_registry_address"),
        ],
        primary_key=["address"],
        constraint=ContractsMetadataConstraint.contracts_metadata_pkey.value,
    )
