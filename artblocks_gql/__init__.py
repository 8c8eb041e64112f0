"""Typed GraphQL documents and code generation for the Art Blocks Hasura API."""

__version__ = "0.1.0"
