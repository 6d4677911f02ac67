# File: translatable/services/migrations.py
"""
Migration scripts for translatable tables.

A migration is a Python file in MIGRATIONS_PATH named
``<YYYY_MM_DD_HHMMSS>_<name>.py`` defining ``up(schema)`` and
``down(schema)``, where ``schema`` is a TranslatableSchema. Applied
migrations are recorded in the ``translatable_migrations`` table.
"""

import importlib.util
import logging
import re
from datetime import datetime
from pathlib import Path
from types import ModuleType
from typing import List, Optional, Tuple

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from translatable.core.config import Settings, settings as default_settings
from translatable.core.exceptions import MigrationException, SchemaInferenceException
from translatable.core.utils import translation_table_name
from translatable.db.schema import TranslatableSchema
from translatable.services.cache_builder import CacheBuilder

logger = logging.getLogger(__name__)

MIGRATIONS_TABLE = "translatable_migrations"

CREATE_PATTERN = re.compile(r"^create_(\w+)_table$")
ALTER_PATTERN = re.compile(r"^add_\w+_to_(\w+)_table$")

CREATE_TEMPLATE = '''"""
{description}
"""

DESCRIPTION = "{description}"


def up(schema):
    def definition(table):
        table.id()
        # Non-translatable columns
        table.boolean("is_active").default(True)

        # Translatable columns (moved to the {translation_table} table)
        table.string("name").translatable()
        table.text("description").nullable().translatable()

        table.timestamps()

    schema.create("{table}", definition)


def down(schema):
    schema.drop_if_exists("{table}")
'''

ALTER_TEMPLATE = '''"""
{description}
"""

DESCRIPTION = "{description}"


def up(schema):
    def definition(table):
        # Add new translatable column
        # table.string("subtitle").nullable().translatable()

        # Add new non-translatable column
        # table.integer("sort_order").default(0)
        pass

    schema.table("{table}", definition)


def down(schema):
    def definition(table):
        # Drop translatable column
        # table.drop_translatable("subtitle")

        # Drop non-translatable column
        # table.drop_column("sort_order")
        pass

    schema.table("{table}", definition)
'''


def snake_case(name: str) -> str:
    """CreateProductsTable / create-products-table -> create_products_table."""
    name = re.sub(r"[\s\-]+", "_", name.strip())
    name = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", name)
    return re.sub(r"_+", "_", name).lower()


def infer_migration(
    name: str, table: Optional[str] = None, create: Optional[str] = None
) -> Tuple[str, bool]:
    """
    Work out the target table and whether the migration creates it.

    Args:
        name: Migration name in snake case
        table: Explicit table to alter
        create: Explicit table to create

    Returns:
        (table name, is create migration)

    Raises:
        SchemaInferenceException: If no table is given and none matches the name
    """
    if create:
        return create, True
    if table:
        return table, False

    match = CREATE_PATTERN.match(name)
    if match:
        return match.group(1), True

    match = ALTER_PATTERN.match(name)
    if match:
        return match.group(1), False

    raise SchemaInferenceException(name)


def make_migration(
    name: str,
    table: Optional[str] = None,
    create: Optional[str] = None,
    directory: Optional[Path] = None,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> Path:
    """
    Write a new migration skeleton.

    Returns:
        Path of the created file

    Raises:
        SchemaInferenceException: If the table cannot be determined
        MigrationException: If the migration file already exists
    """
    settings = settings or default_settings
    name = snake_case(name)
    target, is_create = infer_migration(name, table, create)

    directory = Path(directory) if directory else settings.migrations_dir
    timestamp = (now or datetime.now()).strftime("%Y_%m_%d_%H%M%S")
    path = directory / f"{timestamp}_{name}.py"

    if path.exists():
        raise MigrationException(path.stem, "migration already exists")

    template = CREATE_TEMPLATE if is_create else ALTER_TEMPLATE
    content = template.format(
        description=name.replace("_", " ").capitalize(),
        table=target,
        translation_table=translation_table_name(target, settings),
    )

    directory.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    logger.info(f"Created migration {path} ({'create' if is_create else 'alter'} '{target}')")
    return path


def load_migration(path: Path) -> ModuleType:
    """Load a migration module from a file path."""
    try:
        spec = importlib.util.spec_from_file_location(f"translatable_migration_{path.stem}", path)
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
    except Exception as e:
        logger.error(f"Error loading migration {path}: {e}")
        raise MigrationException(path.stem, f"could not be loaded: {e}") from e

    if not callable(getattr(module, "up", None)):
        raise MigrationException(path.stem, "no up(schema) function")
    return module


class MigrationRunner:
    """Applies pending migration scripts in file name order."""

    def __init__(
        self,
        engine: Engine,
        settings: Optional[Settings] = None,
        cache=None,
        directory: Optional[Path] = None,
    ):
        self.engine = engine
        self.settings = settings or default_settings
        self.cache = cache
        self.directory = Path(directory) if directory else self.settings.migrations_dir
        self.schema = TranslatableSchema(engine, self.settings, cache)
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

        self._metadata = sa.MetaData()
        self._table = sa.Table(
            MIGRATIONS_TABLE,
            self._metadata,
            sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("migration", sa.String(255), nullable=False, unique=True),
            sa.Column("applied_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )

    def discover(self) -> List[Path]:
        if not self.directory.is_dir():
            return []
        return sorted(
            path for path in self.directory.glob("*.py") if not path.name.startswith("_")
        )

    def applied(self) -> List[str]:
        """Names of the applied migrations, oldest first."""
        self._metadata.create_all(self.engine, checkfirst=True)
        with self.engine.connect() as conn:
            result = conn.execute(sa.select(self._table.c.migration).order_by(self._table.c.id))
            return [row[0] for row in result]

    def pending(self) -> List[Path]:
        applied = set(self.applied())
        return [path for path in self.discover() if path.stem not in applied]

    def run(self) -> List[str]:
        """
        Apply every pending migration.

        Stops at the first failure; migrations applied before it stay recorded.
        Regenerates the translatable snapshot afterwards when
        AUTO_CACHE_AFTER_MIGRATE is set.

        Returns:
            Names of the migrations applied by this run

        Raises:
            MigrationException: If a migration fails
        """
        to_apply = self.pending()
        if not to_apply:
            self.logger.info("No migrations to apply")
        else:
            self.logger.info(f"About to apply {len(to_apply)} migrations")

        applied = []
        for path in to_apply:
            module = load_migration(path)
            self.logger.info(f"Applying migration {path.stem}: {getattr(module, 'DESCRIPTION', '')}")
            try:
                module.up(self.schema)
                with self.engine.begin() as conn:
                    conn.execute(sa.insert(self._table).values(migration=path.stem))
            except MigrationException:
                raise
            except Exception as e:
                self.logger.error(f"Migration {path.stem} failed: {e}")
                raise MigrationException(path.stem, str(e)) from e
            applied.append(path.stem)
            self.logger.info(f"Successfully applied migration {path.stem}")

        if self.settings.AUTO_CACHE_AFTER_MIGRATE:
            self.refresh_cache()

        return applied

    def refresh_cache(self) -> None:
        """Regenerate the snapshot file and reload it into the attribute cache."""
        try:
            result = CacheBuilder(self.engine, self.settings).build()
        except (OSError, SQLAlchemyError) as e:
            self.logger.warning(f"Could not regenerate translatable snapshot: {e}")
            return

        if self.cache is not None:
            self.cache.load_snapshot(result.tables)
