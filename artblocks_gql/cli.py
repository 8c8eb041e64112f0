"""Command-line interface for artblocks-gql."""

import asyncio
import logging
import shutil
import tarfile
import tempfile
import zipfile
from pathlib import Path

import click
import httpx
from graphql import GraphQLSyntaxError
from pydantic import ValidationError

from .config import ADMIN_SECRET_ENV, ENDPOINT_ENV, Settings
from .core.document import DocumentError
from .core.executor import GraphQLError, GraphQLExecutor, ResponseShapeError
from .core.generator import CodeGenerator
from .core.hooks import AddHeaderHook, HookRunner, OperationFilterHook
from .core.parser import DocumentParser, SchemaParser
from .operations import (
    ContractsMetadataInsertInput,
    ContractTypeNamesEnum,
    get_unregistered_contracts,
    upsert_contracts_metadata,
)

logger = logging.getLogger(__name__)


def extract_archive(archive_path: Path) -> str:
    """Extract archive to temp directory. Returns path to extracted content."""
    temp_dir = tempfile.mkdtemp()
    if archive_path.suffix == ".zip":
        with zipfile.ZipFile(archive_path, "r") as zip_ref:
            zip_ref.extractall(temp_dir)
    elif archive_path.name.endswith((".tar.gz", ".tgz")):
        with tarfile.open(archive_path, "r:gz") as tar_ref:
            tar_ref.extractall(temp_dir, filter="data")
    else:
        shutil.rmtree(temp_dir)
        raise ValueError(f"Unsupported archive format: {archive_path.suffix}")
    return temp_dir


def _executor(ctx: click.Context) -> GraphQLExecutor:
    settings: Settings = ctx.obj
    if not settings.endpoint:
        raise click.UsageError(f"No endpoint: pass --endpoint or set {ENDPOINT_ENV}.")
    return GraphQLExecutor(settings.endpoint, auth=settings.auth(), timeout=settings.timeout)


async def _run(executor: GraphQLExecutor, coro_fn, *args):
    async with executor:
        return await coro_fn(executor, *args)


def _call(ctx: click.Context, coro_fn, *args):
    """Run one async operation, turning request failures into CLI errors."""
    try:
        return asyncio.run(_run(_executor(ctx), coro_fn, *args))
    except GraphQLError as e:
        raise click.ClickException(e.message) from e
    except ResponseShapeError as e:
        raise click.ClickException(str(e)) from e
    except httpx.HTTPError as e:
        raise click.ClickException(f"Request to {ctx.obj.endpoint} failed: {e}") from e


@click.group()
@click.version_option(package_name="artblocks-gql")
@click.option(
    "--endpoint",
    envvar=ENDPOINT_ENV,
    help=f"Hasura GraphQL endpoint URL (env: {ENDPOINT_ENV}).",
)
@click.option(
    "--admin-secret",
    envvar=ADMIN_SECRET_ENV,
    help=f"Hasura admin secret (env: {ADMIN_SECRET_ENV}).",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable debug logging.",
)
@click.pass_context
def main(ctx: click.Context, endpoint: str | None, admin_secret: str | None, verbose: bool):
    """Typed GraphQL documents for the Art Blocks Hasura API.

    Generate typed Python modules from .graphql documents, or run the
    contracts_metadata operations directly.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    settings = Settings.from_env()
    if endpoint:
        settings.endpoint = endpoint
    if admin_secret:
        settings.admin_secret = admin_secret
    ctx.obj = settings


@main.command()
@click.option(
    "--schema",
    "-s",
    required=True,
    type=click.Path(exists=True),
    help="Path to GraphQL schema file, directory, or archive (.zip, .tar.gz, .tgz).",
)
@click.option(
    "--documents",
    "-d",
    required=True,
    type=click.Path(exists=True),
    help="Path to a .graphql document file or a directory of them.",
)
@click.option(
    "--output",
    "-o",
    required=True,
    type=click.Path(),
    help="Output file for the generated module (e.g., generated.py).",
)
@click.option(
    "--header",
    default=None,
    help="Text put at the top of the generated file.",
)
@click.option(
    "--template-dir",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Directory with templates overriding the built-in module.py.j2.",
)
@click.option(
    "--operation",
    "operations",
    multiple=True,
    help="Only generate this operation. Repeat for several.",
)
def generate(
    schema: str,
    documents: str,
    output: str,
    header: str | None,
    template_dir: str | None,
    operations: tuple[str, ...],
):
    """Generate a typed Python module from a schema and operation documents.

    Examples:

        artblocks-gql generate -s ./schema -d ./queries -o ./generated.py

        artblocks-gql generate -s ./schema.tgz -d ./queries -o ./generated.py --header "# DO NOT EDIT"

        artblocks-gql generate -s ./schema -d ./queries -o ./upsert.py --operation InsertContractsMetadata
    """
    schema_path = Path(schema).resolve()
    output_path = Path(output).resolve()
    temp_dir = None

    try:
        # Handle archives
        actual_schema_path = schema_path
        if schema_path.is_file() and schema_path.name.lower().endswith(
            (".zip", ".tar.gz", ".tgz")
        ):
            click.echo(f"Extracting archive {schema_path.name}...")
            temp_dir = extract_archive(schema_path)
            actual_schema_path = Path(temp_dir)
            logger.debug("Extracted to %s", temp_dir)

        click.echo("Parsing schema...")
        try:
            ir = SchemaParser(str(actual_schema_path)).parse_all()
            click.echo("Parsing documents...")
            document_set = DocumentParser(ir).parse_all(documents)
        except GraphQLSyntaxError as e:
            raise click.ClickException(f"Invalid schema: {e.message}") from e
        except DocumentError as e:
            raise click.ClickException(str(e)) from e

        logger.debug(
            "Schema: %d types, %d inputs, %d enums; documents: %d operations, %d fragments",
            len(ir.types), len(ir.inputs), len(ir.enums),
            len(document_set.operations), len(document_set.fragments),
        )

        hooks = HookRunner()
        if operations:
            hooks.add(OperationFilterHook(operations))
        if header:
            hooks.add(AddHeaderHook(header))

        click.echo("Generating code...")
        generator = CodeGenerator(
            ir, document_set, str(output_path), template_dir=template_dir, hooks=hooks
        )
        try:
            generator.generate()
        except ValueError as e:
            raise click.ClickException(str(e)) from e

        click.echo(
            f"Done! Generated {len(generator.documents.operations)} operations and "
            f"{len(generator.documents.fragments)} fragments in {output_path}"
        )
    finally:
        # Clean up temp directory
        if temp_dir:
            shutil.rmtree(temp_dir)


@main.command("upsert-contract")
@click.option("--address", required=True, help="Core contract address (the primary key).")
@click.option(
    "--bucket-name", default=None, help="Media bucket for the contract. Cleared to null when left out."
)
@click.option(
    "--contract-type",
    type=click.Choice([member.value for member in ContractTypeNamesEnum]),
    default=None,
    help="Core contract type.",
)
@click.option("--name", default=None, help="Contract name, set only when the row is new.")
@click.pass_context
def upsert_contract(
    ctx: click.Context,
    address: str,
    bucket_name: str | None,
    contract_type: str | None,
    name: str | None,
):
    """Insert or update one contracts_metadata row.

    On an existing row, --bucket-name and --contract-type always overwrite
    the stored values. Leaving out --bucket-name clears it to null. Leaving
    out --contract-type fails, since the column may not be null. --name is
    only used when the row is new.

    Example:

        artblocks-gql upsert-contract --address 0xabc --bucket-name ab-media --contract-type GenArt721CoreV3
    """
    fields = {
        "address": address,
        "bucket_name": bucket_name,
        "contract_type": contract_type,
        "name": name,
    }
    try:
        row = ContractsMetadataInsertInput(**{k: v for k, v in fields.items() if v is not None})
    except ValidationError as e:
        raise click.BadParameter(str(e)) from e

    rows = _call(ctx, upsert_contracts_metadata, [row])
    for stored in rows:
        click.echo(f"{stored.address}\t{stored.bucket_name or '-'}\t{stored.contract_type.value}")


@main.command("unregistered-contracts")
@click.option(
    "--registry-address",
    "registry_addresses",
    multiple=True,
    help="Known core registry address. Repeat for several.",
)
@click.pass_context
def unregistered_contracts(ctx: click.Context, registry_addresses: tuple[str, ...]):
    """List contracts whose core registry is unknown or not one of the given ones.

    Example:

        artblocks-gql unregistered-contracts --registry-address 0x123 --registry-address 0x456
    """
    contracts = _call(ctx, get_unregistered_contracts, list(registry_addresses))
    for contract in contracts:
        click.echo(f"{contract.address}\t{contract.core_version or '-'}\t{contract.contract_type.value}")
    if not contracts:
        click.echo("No unregistered contracts.")


if __name__ == "__main__":
    main()
