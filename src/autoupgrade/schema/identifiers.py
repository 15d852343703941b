"""Quoting and qualification of SQLite identifiers."""

from typing import Optional


def quote_simple_identifier(name: str) -> str:
    """Quote a single identifier, doubling embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


def quote_identifier(name: str) -> str:
    """Quote a possibly schema-qualified identifier part by part."""
    return ".".join(quote_simple_identifier(part) for part in name.split("."))


def split_schema_identifier(name: str) -> tuple[str, Optional[str]]:
    """Split 'schema.name' into (name, schema); schema is None if unqualified."""
    if "." not in name:
        return name, None
    schema, _, ident = name.partition(".")
    return ident, schema


def unqualify_identifier(name: str) -> str:
    return name.split(".")[-1]
