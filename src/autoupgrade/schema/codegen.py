"""Generate SQLite DDL/DML statements from table definitions."""

from typing import Iterable, Optional, Sequence

from autoupgrade.exceptions import DefinitionError
from autoupgrade.schema.identifiers import (
    quote_identifier,
    quote_simple_identifier,
    split_schema_identifier,
)
from autoupgrade.schema.models import Field, ForeignKeyDefinition, TableDefinition

RECREATE_SUFFIX = "_autoupgrade"


class StatementGenerator:
    """Build the statements issued while creating or upgrading a table."""

    def __init__(self, table: TableDefinition):
        self.table = table

    def create_table(self, add_fields: Sequence[Field] = ()) -> str:
        """Generate CREATE TABLE IF NOT EXISTS, optionally with extra columns."""
        table = self.table
        if not table.fields:
            raise DefinitionError(table.name, "does not have any fields defined")

        single_pk = len(table.identity_fields) == 1
        auto_increment_field = table.auto_increment_field
        col_defs = []
        for fld in table.fields:
            col_def = f"{fld.quoted_name} {fld.dbtype}"
            if fld.is_identity and single_pk:
                col_def += " PRIMARY KEY"
                if fld is auto_increment_field:
                    col_def += " AUTOINCREMENT"
            col_defs.append(col_def.rstrip())
        for fld in add_fields:
            col_defs.append(f"{fld.quoted_name} {fld.dbtype}".rstrip())

        if len(table.identity_fields) > 1:
            pk_cols = ", ".join(f.quoted_name for f in table.identity_fields)
            col_defs.append(f"CONSTRAINT PRIMARY_KEY PRIMARY KEY ({pk_cols})")

        for fk in table.foreign_keys:
            col_defs.append(self._foreign_key_clause(fk))

        body = ",\n  ".join(col_defs)
        sql = f"CREATE TABLE IF NOT EXISTS {table.quoted_name} (\n  {body}\n)"
        if table.without_rowid:
            sql += " WITHOUT ROWID"
        return sql

    def _foreign_key_clause(self, fk: ForeignKeyDefinition) -> str:
        ref_name, _ = split_schema_identifier(fk.foreign_table_name)
        local = ", ".join(quote_simple_identifier(c) for c in fk.column_names)
        refs = ", ".join(quote_simple_identifier(c) for c in fk.foreign_column_names)
        clause = (
            f"CONSTRAINT {quote_simple_identifier(fk.name)}\n"
            f"    FOREIGN KEY ({local})\n"
            f"    REFERENCES {quote_simple_identifier(ref_name)} ({refs})"
        )
        if fk.on_delete:
            clause += f" ON DELETE {fk.on_delete}"
        return clause

    def drop_table(self, name: Optional[str] = None) -> str:
        return f"DROP TABLE IF EXISTS {quote_identifier(name or self.table.name)}"

    def add_column(self, column_name: str) -> str:
        fld = self.table.get_field(column_name)
        if fld is None:
            raise DefinitionError(
                self.table.name, f"field '{column_name}' is not defined"
            )
        return f"ALTER TABLE {self.table.quoted_name} ADD COLUMN {fld.quoted_name} {fld.dbtype}"

    def create_index(self, index_name: str) -> str:
        """Generate CREATE [UNIQUE] INDEX IF NOT EXISTS for a declared index."""
        idx = self.table.get_index(index_name)
        if idx is None:
            raise DefinitionError(
                self.table.name, f"index '{index_name}' is not defined"
            )
        cols = ", ".join(
            quote_simple_identifier(f.name) + (" DESC" if f.desc else "")
            for f in idx.fields
        )
        unique = "UNIQUE " if idx.is_unique else ""
        return (
            f"CREATE {unique}INDEX IF NOT EXISTS {self._index_name(idx.name)} "
            f"ON {quote_simple_identifier(self.table.table_name)} ({cols})"
        )

    def drop_index(self, index_name: str) -> str:
        return f"DROP INDEX IF EXISTS {self._index_name(index_name)}"

    def _index_name(self, index_name: str) -> str:
        # indexes live in the schema of their table
        if "." not in index_name and self.table.schema_name:
            index_name = f"{self.table.schema_name}.{index_name}"
        return quote_identifier(index_name)

    @property
    def recreate_name(self) -> str:
        """Name the live table is renamed to during a recreate."""
        return self.table.name + RECREATE_SUFFIX

    def rename_to_recreate_name(self) -> str:
        target = quote_simple_identifier(self.table.table_name + RECREATE_SUFFIX)
        return f"ALTER TABLE {self.table.quoted_name} RENAME TO {target}"

    def copy_rows_from_recreate_name(self, columns: Iterable[str]) -> str:
        col_names = ", ".join(quote_simple_identifier(c) for c in columns)
        return (
            f"INSERT INTO {self.table.quoted_name} ({col_names})\n"
            f"SELECT {col_names}\n"
            f"FROM {quote_identifier(self.recreate_name)}"
        )
