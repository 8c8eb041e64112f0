"""GraphQL executor for running typed documents against an endpoint.

Handles HTTP communication, the GraphQL errors channel, and validation of
responses against the document's result model.
"""

import logging
from collections.abc import Mapping
from typing import Any

import httpx
from pydantic import ValidationError

from .auth import Auth, NoAuth
from .document import ResultT, TypedDocument, VariablesT

logger = logging.getLogger(__name__)


class GraphQLError(Exception):
    """Exception raised when a response carries a GraphQL errors array."""

    def __init__(self, message: str, errors: list[dict[str, Any]]):
        self.message = message
        self.errors = errors
        super().__init__(message)


class ResponseShapeError(Exception):
    """Exception raised when response data does not fit the result model."""

    def __init__(self, operation_name: str, error: ValidationError):
        self.operation_name = operation_name
        self.error = error
        super().__init__(f"Response for {operation_name} does not match its result type: {error}")


class GraphQLExecutor:
    """Executes GraphQL operations against an endpoint.

    There is no retry or backoff; every failure is raised to the caller.

    Examples:
        executor = GraphQLExecutor(url, auth=HasuraAdminSecretAuth(secret))

        async with GraphQLExecutor(url, auth=BearerAuth(jwt)) as executor:
            result = await executor.execute_document(INSERT_CONTRACTS_METADATA, variables)
    """

    def __init__(
        self,
        url: str,
        auth: Auth | None = None,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the executor.

        Args:
            url: GraphQL endpoint URL
            auth: Authentication handler (implements Auth protocol)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (e.g. httpx.MockTransport in tests)
        """
        self.url = url
        self.timeout = timeout
        self._auth = auth if auth is not None else NoAuth()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            headers.update(self._auth.get_headers())
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def execute(
        self,
        query: str,
        variables: dict[str, Any] | None = None,
        operation_name: str | None = None,
    ) -> dict[str, Any]:
        """Execute a raw GraphQL operation.

        Args:
            query: GraphQL document string
            variables: Already-serialized variables
            operation_name: Operation to run when the document holds several

        Returns:
            The 'data' portion of the response

        Raises:
            httpx.HTTPStatusError: On a non-2xx response
            GraphQLError: If the response contains errors
        """
        client = await self._get_client()

        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables
        if operation_name:
            payload["operationName"] = operation_name

        logger.debug("POST %s operation=%s variables=%s", self.url, operation_name, variables)
        response = await client.post(self.url, json=payload)
        response.raise_for_status()

        result = response.json()

        if result.get("errors"):
            error_messages = "; ".join(e.get("message", str(e)) for e in result["errors"])
            logger.warning("GraphQL errors from %s: %s", operation_name or "operation", error_messages)
            raise GraphQLError(f"GraphQL errors: {error_messages}", result["errors"])

        return result.get("data") or {}

    async def execute_document(
        self,
        document: TypedDocument[ResultT, VariablesT],
        variables: VariablesT | Mapping[str, Any] | None = None,
    ) -> ResultT:
        """Execute a typed document and validate the result.

        Raises:
            pydantic.ValidationError: If the variables do not fit the document
            GraphQLError: If the server answers with errors
            ResponseShapeError: If the data does not fit the result model
        """
        wire_variables = document.serialize_variables(variables)
        logger.info("Executing %s %s", document.operation_type, document.operation_name)
        data = await self.execute(document.source, wire_variables, document.operation_name)
        try:
            return document.parse_result(data)
        except ValidationError as e:
            raise ResponseShapeError(document.operation_name, e) from e
