# File: translatable/db/schema.py
"""
Schema builder that keeps main tables and translation tables in sync.

Creating a table moves every translatable column into a companion
translation table:

    schema = TranslatableSchema(engine)
    schema.create("products", lambda table: (
        table.id(),
        table.decimal("price", 10, 2).default(0),
        table.string("name").translatable(),
    ))

produces ``products (id, price)`` and
``product_translations (id, product_id, locale, name)`` with a cascading
foreign key and a unique (product_id, locale) constraint.

Live ALTER TABLE work goes through Alembic operations in batch mode, which
recreates the table on SQLite where ALTER TABLE support is limited.
"""

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Union

import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from translatable.core.config import Settings, settings as default_settings
from translatable.core.exceptions import StructuralConflictException
from translatable.core.utils import translation_table_name
from translatable.db.column_spec import ColumnSpec, ColumnType
from translatable.db.table_spec import TableSpec

logger = logging.getLogger(__name__)

Definition = Union[Callable[[TableSpec], object], TableSpec]

LOCALE_LENGTH = 10


class TranslatableSchema:
    """
    Create, alter and drop tables with translatable columns.

    Attributes:
        engine: SQLAlchemy engine the DDL is executed on
        settings: Settings providing TABLE_SUFFIX
        cache: Optional attribute cache, invalidated after structural changes
    """

    def __init__(self, engine: Engine, settings: Optional[Settings] = None, cache=None):
        self.engine = engine
        self.settings = settings or default_settings
        self.cache = cache
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def has_table(self, table: str) -> bool:
        with self.engine.connect() as conn:
            return sa.inspect(conn).has_table(table)

    def column_listing(self, table: str) -> List[str]:
        """Live column names of a table, empty if the table does not exist."""
        with self.engine.connect() as conn:
            return self._column_listing(conn, table)

    @staticmethod
    def _column_listing(conn: Connection, table: str) -> List[str]:
        inspector = sa.inspect(conn)
        if not inspector.has_table(table):
            return []
        return [column["name"] for column in inspector.get_columns(table)]

    def translation_table_name(self, table: str) -> str:
        return translation_table_name(table, self.settings)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, table: str, definition: Definition) -> TableSpec:
        """
        Create a table, moving translatable columns to its translation table.

        Both tables are created in one transaction; the translation table is
        only attempted once the main table exists.

        Raises:
            StructuralConflictException: If the database rejects the DDL
        """
        spec = self._build_spec(table, definition, create=True)
        translatable_columns = spec.all_translatable_columns()

        spec.strip_translatable_columns()

        try:
            with self.engine.begin() as conn:
                metadata = sa.MetaData()
                self._reflect_references(conn, metadata, spec.main_columns())
                main_table = sa.Table(table, metadata, *[c.to_column() for c in spec.main_columns()])
                main_table.create(conn)
                self.logger.info(f"Created table '{table}'")

                if translatable_columns:
                    self._create_translation_table(conn, metadata, spec, translatable_columns)
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to create table '{table}': {e}")
            raise StructuralConflictException(table, str(e), e) from e

        self._forget(spec.translation_table_name())
        return spec

    # ------------------------------------------------------------------
    # Alter
    # ------------------------------------------------------------------

    def table(self, table: str, definition: Definition) -> TableSpec:
        """Alias of alter(), mirroring the create/table naming of migrations."""
        return self.alter(table, definition)

    def alter(self, table: str, definition: Definition) -> TableSpec:
        """
        Modify a table and sync its translation table.

        Translatable drops of absent columns and additions of columns that
        already exist are skipped, so re-running a migration is harmless.

        Raises:
            StructuralConflictException: If the database rejects the DDL
        """
        spec = self._build_spec(table, definition, create=False)

        has_translatable = spec.has_translatable_columns()
        new_columns = spec.translatable_columns()
        changed_columns = spec.changed_translatable_columns()
        dropped_columns = list(spec.dropped_translatable)

        spec.strip_translatable_columns()

        try:
            if spec.main_columns() or spec.dropped_columns:
                self._alter_main_table(spec)

            if has_translatable:
                self._sync_translation_table(spec, new_columns, changed_columns, dropped_columns)
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to alter table '{table}': {e}")
            raise StructuralConflictException(table, str(e), e) from e

        self._forget(spec.translation_table_name())
        return spec

    def _alter_main_table(self, spec: TableSpec) -> None:
        added = [c for c in spec.main_columns() if not c.is_change]
        changed = [c for c in spec.main_columns() if c.is_change]

        with self.engine.connect() as conn:
            with self._foreign_keys_disabled(conn):
                with conn.begin():
                    operations = Operations(MigrationContext.configure(conn))
                    with operations.batch_alter_table(spec.table) as batch:
                        for name in spec.dropped_columns:
                            batch.drop_column(name)
                        for column in changed:
                            self._alter_column(batch, column)
                        for column in added:
                            batch.add_column(column.to_column())

        self.logger.info(
            f"Altered table '{spec.table}': added={[c.name for c in added]}, "
            f"changed={[c.name for c in changed]}, dropped={spec.dropped_columns}"
        )

    def _sync_translation_table(
        self,
        spec: TableSpec,
        new_columns: List[ColumnSpec],
        changed_columns: List[ColumnSpec],
        dropped_columns: List[str],
    ) -> None:
        translation_table = spec.translation_table_name()

        with self.engine.begin() as conn:
            if not sa.inspect(conn).has_table(translation_table):
                if new_columns:
                    metadata = sa.MetaData()
                    sa.Table(spec.table, metadata, autoload_with=conn)
                    self._create_translation_table(conn, metadata, spec, new_columns)
                else:
                    self.logger.debug(
                        f"Translation table '{translation_table}' does not exist, nothing to change or drop"
                    )
                return

            # Fetch the live columns once for all three passes
            existing = set(self._column_listing(conn, translation_table))

            to_drop = [name for name in dropped_columns if name in existing]
            to_change = [c for c in changed_columns if c.name in existing]
            to_add = [c for c in new_columns if c.name not in existing]

            skipped_drops = [name for name in dropped_columns if name not in existing]
            skipped_adds = [c.name for c in new_columns if c.name in existing]
            if skipped_drops:
                self.logger.debug(f"Skipping drop of absent columns {skipped_drops} on '{translation_table}'")
            if skipped_adds:
                self.logger.debug(f"Skipping add of existing columns {skipped_adds} on '{translation_table}'")

            operations = Operations(MigrationContext.configure(conn))

            if to_drop:
                with operations.batch_alter_table(translation_table) as batch:
                    for name in to_drop:
                        batch.drop_column(name)

            if to_change:
                with operations.batch_alter_table(translation_table) as batch:
                    for column in to_change:
                        self._alter_column(batch, column)

            if to_add:
                with operations.batch_alter_table(translation_table) as batch:
                    for column in to_add:
                        batch.add_column(column.to_column())

        self.logger.info(
            f"Synced translation table '{translation_table}': dropped={to_drop}, "
            f"changed={[c.name for c in to_change]}, added={[c.name for c in to_add]}"
        )

    @staticmethod
    def _alter_column(batch, column: ColumnSpec) -> None:
        batch.alter_column(
            column.name,
            type_=column.sa_type(),
            nullable=column.is_nullable,
            server_default=column.server_default(),
        )

    # ------------------------------------------------------------------
    # Drop
    # ------------------------------------------------------------------

    def drop(self, table: str) -> None:
        """
        Drop a table and its translation table.

        The translation table holds the foreign key, so it is dropped first.

        Raises:
            StructuralConflictException: If the main table does not exist
        """
        translation_table = self.translation_table_name(table)
        try:
            with self.engine.begin() as conn:
                if sa.inspect(conn).has_table(translation_table):
                    sa.Table(translation_table, sa.MetaData()).drop(conn)
                    self.logger.info(f"Dropped translation table '{translation_table}'")
                sa.Table(table, sa.MetaData()).drop(conn)
                self.logger.info(f"Dropped table '{table}'")
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to drop table '{table}': {e}")
            raise StructuralConflictException(table, str(e), e) from e

        self._forget(translation_table)

    def drop_if_exists(self, table: str) -> None:
        """Drop a table and its translation table, ignoring absent tables."""
        translation_table = self.translation_table_name(table)
        try:
            with self.engine.begin() as conn:
                sa.Table(translation_table, sa.MetaData()).drop(conn, checkfirst=True)
                sa.Table(table, sa.MetaData()).drop(conn, checkfirst=True)
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to drop table '{table}': {e}")
            raise StructuralConflictException(table, str(e), e) from e

        self.logger.info(f"Dropped table '{table}' and '{translation_table}' if they existed")
        self._forget(translation_table)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _build_spec(self, table: str, definition: Definition, create: bool) -> TableSpec:
        if isinstance(definition, TableSpec):
            spec = definition
            spec.create = create
        else:
            spec = TableSpec(table, create=create, settings=self.settings)
            definition(spec)
        spec.freeze()
        return spec

    def _create_translation_table(
        self,
        conn: Connection,
        metadata: sa.MetaData,
        spec: TableSpec,
        columns: List[ColumnSpec],
    ) -> sa.Table:
        """
        Create ``<singular>_translations`` for the given translatable columns.

        Structure: id, <foreign key> (cascade on delete), locale (indexed),
        the translatable columns, unique (<foreign key>, locale).
        """
        name = spec.translation_table_name()
        foreign_key = spec.translation_foreign_key()

        translation_table = sa.Table(
            name,
            metadata,
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column(
                foreign_key,
                sa.Integer(),
                sa.ForeignKey(
                    f"{spec.table}.id",
                    ondelete="CASCADE",
                    name=f"{name}_{foreign_key}_foreign",
                ),
                nullable=False,
            ),
            sa.Column("locale", sa.String(LOCALE_LENGTH), nullable=False),
            *[c.to_column() for c in columns],
            sa.Index(f"{name}_locale_index", "locale"),
            sa.UniqueConstraint(foreign_key, "locale", name=f"{name}_{foreign_key}_locale_unique"),
        )
        translation_table.create(conn)
        self.logger.info(
            f"Created translation table '{name}' with columns {[c.name for c in columns]}"
        )
        return translation_table

    @staticmethod
    def _reflect_references(conn: Connection, metadata: sa.MetaData, columns: List[ColumnSpec]) -> None:
        """Load tables referenced by foreign_id columns so their foreign keys resolve."""
        for column in columns:
            referenced = column.params.get("references") if column.type == ColumnType.FOREIGN_ID else None
            if referenced and referenced not in metadata.tables:
                sa.Table(referenced, metadata, autoload_with=conn)

    @contextmanager
    def _foreign_keys_disabled(self, conn: Connection) -> Iterator[None]:
        """
        Turn off SQLite foreign key enforcement around a batch table rebuild.

        Rebuilding a parent table drops it, and with enforcement on SQLite
        would cascade that drop into every child row.
        """
        if conn.dialect.name != "sqlite":
            yield
            return

        dbapi_connection = conn.connection.dbapi_connection
        dbapi_connection.execute("PRAGMA foreign_keys=OFF")
        try:
            yield
        finally:
            dbapi_connection.execute("PRAGMA foreign_keys=ON")

    def _forget(self, translation_table: str) -> None:
        if self.cache is not None:
            self.cache.forget(translation_table)
