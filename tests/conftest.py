"""Shared fixtures: the bundled schema and documents, and a local Hasura."""

import asyncio
from pathlib import Path

import pytest

import artblocks_gql
from artblocks_gql.core.executor import GraphQLExecutor
from artblocks_gql.core.parser import DocumentParser, SchemaParser
from artblocks_gql.core.store import LocalHasura
from artblocks_gql.operations import contracts_metadata_table

PACKAGE_DIR = Path(artblocks_gql.__file__).parent
SCHEMA_PATH = PACKAGE_DIR / "schema"
QUERIES_PATH = PACKAGE_DIR / "queries"
ENDPOINT = "http://hasura.local/v1/graphql"


@pytest.fixture
def schema_ir():
    return SchemaParser(str(SCHEMA_PATH)).parse_all()


@pytest.fixture
def document_set(schema_ir):
    return DocumentParser(schema_ir).parse_all(str(QUERIES_PATH))


@pytest.fixture
def hasura():
    return LocalHasura([contracts_metadata_table()])


@pytest.fixture
def run(hasura):
    """Call ``fn(executor, *args)`` on a fresh executor served by the local Hasura."""

    def runner(fn, *args):
        async def main():
            async with GraphQLExecutor(ENDPOINT, transport=hasura.as_transport()) as executor:
                return await fn(executor, *args)

        return asyncio.run(main())

    return runner
