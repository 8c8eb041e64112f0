"""Core modules for typed GraphQL documents and code generation."""

from .auth import (
    ApiKeyAuth,
    Auth,
    BearerAuth,
    HasuraAdminSecretAuth,
    HeaderAuth,
    NoAuth,
)
from .document import (
    DocumentError,
    Fragment,
    FragmentShapeError,
    TypedDocument,
    resolve_fragment,
    with_fragments,
)
from .executor import GraphQLError, GraphQLExecutor, ResponseShapeError
from .generator import CodeGenerator
from .hooks import (
    AddHeaderHook,
    FilterInputsHook,
    GeneratedModule,
    HookRunner,
    InputSelectionHook,
    OperationFilterHook,
    PostGenerateHook,
    PreGenerateHook,
)
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
from .parser import DocumentParser, SchemaParser
from .query_builder import OnConflict, QueryBuilder, Returning, UpsertMutationBuilder
from .scalars import (
    BigInt,
    BigIntHandler,
    Bytes,
    BytesHandler,
    PassthroughHandler,
    ScalarHandler,
    ScalarRegistry,
)
from .store import Column, ConstraintViolation, LocalHasura, Table

__all__ = [
    # Auth
    "Auth",
    "ApiKeyAuth",
    "BearerAuth",
    "HasuraAdminSecretAuth",
    "HeaderAuth",
    "NoAuth",
    # Documents
    "DocumentError",
    "Fragment",
    "FragmentShapeError",
    "TypedDocument",
    "resolve_fragment",
    "with_fragments",
    # Scalars
    "BigInt",
    "Bytes",
    "ScalarHandler",
    "ScalarRegistry",
    "BigIntHandler",
    "BytesHandler",
    "PassthroughHandler",
    # Hooks
    "PreGenerateHook",
    "InputSelectionHook",
    "PostGenerateHook",
    "GeneratedModule",
    "AddHeaderHook",
    "FilterInputsHook",
    "OperationFilterHook",
    "HookRunner",
    # IR types
    "IRArgument",
    "IRDocumentSet",
    "IREnum",
    "IREnumValue",
    "IRField",
    "IRFragment",
    "IRInterface",
    "IROperation",
    "IRScalar",
    "IRSchema",
    "IRSelection",
    "IRType",
    "IRVariable",
    # Parsers
    "SchemaParser",
    "DocumentParser",
    # Query Builder
    "OnConflict",
    "QueryBuilder",
    "Returning",
    "UpsertMutationBuilder",
    # Executor
    "GraphQLError",
    "GraphQLExecutor",
    "ResponseShapeError",
    # Local endpoint
    "Column",
    "ConstraintViolation",
    "LocalHasura",
    "Table",
    # Generator
    "CodeGenerator",
]
