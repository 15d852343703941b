"""Declared table definitions."""

from dataclasses import dataclass, field
from functools import cached_property
from typing import Iterable, Optional, Union

from autoupgrade.exceptions import DefinitionError
from autoupgrade.schema.dbtype import ColumnTypeInfo, parse_db_type
from autoupgrade.schema.identifiers import (
    quote_identifier,
    quote_simple_identifier,
    split_schema_identifier,
    unqualify_identifier,
)
from autoupgrade.types import SQL_DEFAULT_SCHEMA, TypeAffinity


def generic_foreign_key_id(
    columns: Iterable[str], ref_table: str, ref_columns: Iterable[str]
) -> str:
    """Build the name-agnostic id of a foreign key, e.g. '(a,b) => parent(x,y)'."""
    return f"({','.join(columns)}) => {ref_table}({','.join(ref_columns)})"


@dataclass(frozen=True)
class Field:
    """A table column mapped by the definition."""

    name: str
    dbtype: str
    is_identity: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "dbtype", self.dbtype.strip())

    @property
    def quoted_name(self) -> str:
        return quote_simple_identifier(self.name)

    @property
    def type_info(self) -> ColumnTypeInfo:
        """Parsed affinity, nullability and default of the declared type."""
        return parse_db_type(self.dbtype)


@dataclass(frozen=True)
class IndexField:
    name: str
    desc: bool = False


@dataclass(frozen=True)
class IndexDefinition:
    """Named index over ordered columns."""

    name: str
    fields: tuple[IndexField, ...]
    is_unique: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "fields",
            tuple(f if isinstance(f, IndexField) else IndexField(f) for f in self.fields),
        )

    @property
    def column_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def id(self) -> str:
        cols = ",".join(f"{f.name} DESC" if f.desc else f.name for f in self.fields)
        return f"{self.name}({cols})" + (":UNIQUE" if self.is_unique else "")


@dataclass(frozen=True)
class ForeignKeyField:
    name: str
    foreign_column_name: str


@dataclass(frozen=True)
class ForeignKeyDefinition:
    """Named foreign key constraint.

    The referenced table may be schema-qualified; the generic id always uses
    the unqualified name, matching what the catalog reports.
    """

    name: str
    foreign_table_name: str
    fields: tuple[ForeignKeyField, ...]
    on_delete: Optional[str] = "CASCADE"

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))

    @property
    def column_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def foreign_column_names(self) -> list[str]:
        return [f.foreign_column_name for f in self.fields]

    @property
    def id(self) -> str:
        return generic_foreign_key_id(
            self.column_names,
            unqualify_identifier(self.foreign_table_name),
            self.foreign_column_names,
        )


@dataclass(frozen=True)
class TableDefinition:
    """Finished, immutable definition of one table.

    Args:
        name: Table name, optionally qualified as 'schema.table'
        fields: Columns in declaration order
        indexes: Index definitions
        foreign_keys: Foreign key constraints
        auto_increment: Request AUTOINCREMENT for a single INTEGER primary key
        without_rowid: Create the table WITHOUT ROWID
    """

    name: str
    fields: tuple[Field, ...]
    indexes: tuple[IndexDefinition, ...] = ()
    foreign_keys: tuple[ForeignKeyDefinition, ...] = ()
    auto_increment: bool = False
    without_rowid: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))
        object.__setattr__(self, "indexes", tuple(self.indexes))
        object.__setattr__(self, "foreign_keys", tuple(self.foreign_keys))

    @property
    def quoted_name(self) -> str:
        return quote_identifier(self.name)

    @property
    def table_name(self) -> str:
        return split_schema_identifier(self.name)[0]

    @property
    def schema_name(self) -> Optional[str]:
        return split_schema_identifier(self.name)[1]

    @cached_property
    def field_map(self) -> dict[str, Field]:
        return {f.name: f for f in self.fields}

    @cached_property
    def identity_fields(self) -> tuple[Field, ...]:
        return tuple(f for f in self.fields if f.is_identity)

    @cached_property
    def index_map(self) -> dict[str, IndexDefinition]:
        return {unqualify_identifier(idx.name): idx for idx in self.indexes}

    @property
    def auto_increment_field(self) -> Optional[Field]:
        """The primary key field that gets AUTOINCREMENT, if any."""
        if not self.auto_increment or self.without_rowid:
            return None
        if len(self.identity_fields) != 1:
            return None
        pk_field = self.identity_fields[0]
        if pk_field.type_info.type_affinity != TypeAffinity.INTEGER:
            return None
        return pk_field

    def get_field(self, name: str) -> Optional[Field]:
        return self.field_map.get(name)

    def get_index(self, name: str) -> Optional[IndexDefinition]:
        return self.index_map.get(unqualify_identifier(name))

    def foreign_key_memberships(self, field_name: str) -> set[str]:
        """Names of the foreign key constraints a field takes part in."""
        return {
            fk.name for fk in self.foreign_keys if field_name in fk.column_names
        }

    def validate(self) -> None:
        """Check structural invariants.

        Raises:
            DefinitionError: If the definition cannot be turned into a table.
        """
        if not self.fields:
            raise DefinitionError(self.name, "does not have any fields defined")

        seen: set[str] = set()
        for fld in self.fields:
            if fld.name in seen:
                raise DefinitionError(
                    self.name, f"column '{fld.name}' is mapped more than once"
                )
            seen.add(fld.name)

        fk_names: set[str] = set()
        for fk in self.foreign_keys:
            if fk.name in fk_names:
                raise DefinitionError(
                    self.name, f"duplicate foreign key constraint '{fk.name}'"
                )
            fk_names.add(fk.name)
            if not fk.fields:
                raise DefinitionError(
                    self.name, f"foreign key constraint '{fk.name}' has no columns"
                )
            if len(fk.column_names) != len(fk.foreign_column_names):
                raise DefinitionError(
                    self.name,
                    f"foreign key constraint '{fk.name}' definition is incomplete",
                )
            for col in fk.column_names:
                if col not in seen:
                    raise DefinitionError(
                        self.name,
                        f"foreign key constraint '{fk.name}' uses unknown column '{col}'",
                    )
            self._check_foreign_schema(fk)

        idx_names: set[str] = set()
        for idx in self.indexes:
            short = unqualify_identifier(idx.name)
            if short in idx_names:
                raise DefinitionError(self.name, f"duplicate index '{idx.name}'")
            idx_names.add(short)
            if not idx.fields:
                raise DefinitionError(self.name, f"index '{idx.name}' has no columns")
            for col in idx.column_names:
                if col not in seen:
                    raise DefinitionError(
                        self.name, f"index '{idx.name}' uses unknown column '{col}'"
                    )

    def _check_foreign_schema(self, fk: ForeignKeyDefinition) -> None:
        """SQLite only allows references into the table's own schema."""
        _, ref_schema = split_schema_identifier(fk.foreign_table_name)
        if ref_schema is None:
            return
        own_schema = self.schema_name or SQL_DEFAULT_SCHEMA
        if ref_schema != own_schema:
            raise DefinitionError(
                self.name,
                f"foreign key '{fk.name}' references table in wrong schema: "
                f"'{fk.foreign_table_name}'",
            )


class TableBuilder:
    """Incrementally assemble a TableDefinition.

    Redeclaring a field or constraint is allowed as long as it does not
    conflict with the earlier declaration.
    """

    def __init__(
        self, name: str, *, auto_increment: bool = False, without_rowid: bool = False
    ) -> None:
        self._name = name
        self._auto_increment = auto_increment
        self._without_rowid = without_rowid
        self._fields: dict[str, Field] = {}
        self._indexes: dict[str, IndexDefinition] = {}
        self._foreign_keys: dict[str, ForeignKeyDefinition] = {}

    def has_field(self, name: str) -> bool:
        return name in self._fields

    def field(self, name: str, dbtype: str, identity: bool = False) -> "TableBuilder":
        new = Field(name=name, dbtype=dbtype, is_identity=identity)
        old = self._fields.get(name)
        if old is not None and old != new:
            if old.is_identity != new.is_identity:
                raise DefinitionError(
                    self._name,
                    f"conflicting identity setting for '{name}': "
                    f"new: {new.is_identity}, old: {old.is_identity}",
                )
            raise DefinitionError(
                self._name,
                f"conflicting dbtype setting for '{name}': "
                f"new: '{new.dbtype}', old: '{old.dbtype}'",
            )
        self._fields[name] = new
        return self

    def index(
        self,
        name: str,
        columns: Iterable[Union[str, IndexField]],
        unique: bool = False,
    ) -> "TableBuilder":
        new = IndexDefinition(name=name, fields=tuple(columns), is_unique=unique)
        old = self._indexes.get(name)
        if old is not None and old.id != new.id:
            raise DefinitionError(
                self._name, f"conflicting index definition '{name}'"
            )
        self._indexes[name] = new
        return self

    def foreign_key(
        self,
        name: str,
        foreign_table: str,
        columns: Iterable[str],
        foreign_columns: Iterable[str],
        on_delete: Optional[str] = "CASCADE",
    ) -> "TableBuilder":
        new = ForeignKeyDefinition(
            name=name,
            foreign_table_name=foreign_table,
            fields=tuple(
                ForeignKeyField(col, ref)
                for col, ref in _zip_columns(self._name, name, columns, foreign_columns)
            ),
            on_delete=on_delete,
        )
        old = self._foreign_keys.get(name)
        if old is not None and old.id != new.id:
            raise DefinitionError(
                self._name, f"conflicting foreign key definition for '{name}'"
            )
        self._foreign_keys[name] = new
        return self

    def build(self) -> TableDefinition:
        table = TableDefinition(
            name=self._name,
            fields=tuple(self._fields.values()),
            indexes=tuple(self._indexes.values()),
            foreign_keys=tuple(self._foreign_keys.values()),
            auto_increment=self._auto_increment,
            without_rowid=self._without_rowid,
        )
        table.validate()
        return table


def _zip_columns(
    table_name: str, fk_name: str, columns: Iterable[str], foreign_columns: Iterable[str]
) -> list[tuple[str, str]]:
    cols = list(columns)
    refs = list(foreign_columns)
    if len(cols) != len(refs):
        raise DefinitionError(
            table_name, f"foreign key constraint '{fk_name}' definition is incomplete"
        )
    return list(zip(cols, refs))


@dataclass
class Schema:
    """Registry of table definitions, owned and scoped by the caller."""

    tables: dict[str, TableDefinition] = field(default_factory=dict)

    def add_table(self, table: TableDefinition) -> TableDefinition:
        """Register a table; re-registering an identical definition is a no-op."""
        old = self.tables.get(table.name)
        if old is not None and old != table:
            raise DefinitionError(table.name, "conflicting table definition")
        self.tables[table.name] = table
        return table

    def get_table(self, name: str) -> Optional[TableDefinition]:
        return self.tables.get(name)

    def table_names(self) -> set[str]:
        return set(self.tables.keys())

    def all_tables(self) -> list[TableDefinition]:
        return list(self.tables.values())
