# File: translatable/services/cache_builder.py
"""
Offline generation of the translatable column snapshot.

Scans the live schema for translation tables and writes a JSON file mapping
each one to its translatable columns, for AttributeCache.load_file().
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from translatable.core.config import Settings, settings as default_settings
from translatable.core.utils import foreign_key_for_translation_table

logger = logging.getLogger(__name__)


@dataclass
class CacheScanResult:
    """Outcome of a schema scan."""

    tables: Dict[str, List[str]] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.tables


class CacheBuilder:
    """Builds, writes and clears the translatable snapshot file."""

    def __init__(self, engine: Engine, settings: Optional[Settings] = None):
        self.engine = engine
        self.settings = settings or default_settings
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def scan(self) -> CacheScanResult:
        """
        Find every ``*<suffix>`` table and list its translatable columns.

        Tables left with no columns after removing system columns and the
        foreign key are skipped and reported.
        """
        result = CacheScanResult()
        suffix = self.settings.TABLE_SUFFIX
        system_columns = set(self.settings.SYSTEM_COLUMNS)

        inspector = sa.inspect(self.engine)
        for table in sorted(inspector.get_table_names()):
            if not table.endswith(suffix):
                continue

            foreign_key = foreign_key_for_translation_table(table, self.settings)
            columns = [
                column["name"]
                for column in inspector.get_columns(table)
                if column["name"] not in system_columns and column["name"] != foreign_key
            ]

            if not columns:
                self.logger.warning(f"Translation table '{table}' has no translatable columns, skipping")
                result.skipped.append(table)
                continue

            result.tables[table] = columns

        self.logger.debug(f"Scanned translation tables: {result.tables}")
        return result

    def write(self, mapping: Dict[str, List[str]], path: Optional[Union[str, Path]] = None) -> Path:
        """Write the snapshot atomically and return its path."""
        target = Path(path) if path else self.settings.cache_file
        target.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=str(target.parent), prefix=".translatable-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(mapping, f, indent=2, sort_keys=True)
            os.replace(tmp_path, target)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        self.logger.info(f"Wrote translatable snapshot with {len(mapping)} tables to {target}")
        return target

    def build(self, path: Optional[Union[str, Path]] = None) -> CacheScanResult:
        """
        Scan the schema and write the snapshot.

        An empty scan still writes ``{}`` so that tables dropped since the
        previous build do not survive in the file.
        """
        result = self.scan()
        self.write(result.tables, path)
        return result

    def clear(self, path: Optional[Union[str, Path]] = None) -> bool:
        """
        Remove the snapshot file.

        Returns:
            True if a file was removed, False if there was none
        """
        target = Path(path) if path else self.settings.cache_file
        if not target.exists():
            self.logger.warning(f"Translatable cache file does not exist: {target}")
            return False
        target.unlink()
        self.logger.info(f"Removed translatable snapshot {target}")
        return True
