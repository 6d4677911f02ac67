# File: translatable/services/attribute_cache.py
"""
Translatable attribute cache.

Maps a translation table name to the set of its translatable column names,
so that queries can be rewritten without introspecting the schema on every
request. Entries are filled from the live schema on first use, or all at
once from a snapshot file generated by ``translatable cache``.
"""

import json
import logging
import threading
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Union

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from translatable.core.config import Settings, settings as default_settings
from translatable.core.utils import foreign_key_for_translation_table

logger = logging.getLogger(__name__)


class AttributeCache:
    """
    Process-wide translation table -> translatable columns mapping.

    Reads never take the lock: the mapping is replaced wholesale on every
    write (copy-on-write) and each entry is an immutable frozenset, so a
    reader sees either the previous or the new entry of a table, never a
    partial one.
    """

    def __init__(self, bind: Optional[Engine] = None, settings: Optional[Settings] = None):
        """
        Args:
            bind: Engine used to introspect tables on a cache miss
            settings: Settings providing SYSTEM_COLUMNS, TABLE_SUFFIX and CACHE_PATH
        """
        self.bind = bind
        self.settings = settings or default_settings
        self._entries: Dict[str, FrozenSet[str]] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def get(self, translation_table: str) -> FrozenSet[str]:
        """
        Translatable columns of a translation table.

        Unknown tables resolve to an empty set, which makes query rewriting a
        no-op instead of an error. Such misses are not memoised, so a table
        created later is picked up on the next call.
        """
        cached = self._entries.get(translation_table)
        if cached is not None:
            return cached

        columns = self._introspect(translation_table)
        if columns is None:
            return frozenset()

        with self._lock:
            entries = dict(self._entries)
            entries[translation_table] = columns
            self._entries = entries

        self.logger.debug(f"Cached translatable columns for '{translation_table}': {sorted(columns)}")
        return columns

    def load_snapshot(self, mapping: Mapping[str, Iterable[str]]) -> None:
        """Replace the whole cache with a precomputed mapping."""
        entries = {table: frozenset(columns) for table, columns in mapping.items()}
        with self._lock:
            self._entries = entries
        self.logger.info(f"Loaded translatable snapshot with {len(entries)} tables")

    def load_file(self, path: Optional[Union[str, Path]] = None) -> bool:
        """
        Load the persisted snapshot file if it exists.

        Returns:
            True if a snapshot was loaded, False if the file is absent
        """
        snapshot_path = Path(path) if path else self.settings.cache_file
        if not snapshot_path.exists():
            self.logger.debug(f"No translatable snapshot at {snapshot_path}, using introspection")
            return False

        with snapshot_path.open("r", encoding="utf-8") as f:
            mapping = json.load(f)

        self.load_snapshot(mapping)
        return True

    def forget(self, translation_table: str) -> None:
        """Drop one entry so the next get() introspects it again."""
        if translation_table not in self._entries:
            return
        with self._lock:
            entries = dict(self._entries)
            entries.pop(translation_table, None)
            self._entries = entries

    def reset(self) -> None:
        """Clear every entry."""
        with self._lock:
            self._entries = {}

    def snapshot(self) -> Dict[str, list]:
        return {table: sorted(columns) for table, columns in self._entries.items()}

    def __contains__(self, translation_table: str) -> bool:
        return translation_table in self._entries

    def _introspect(self, translation_table: str) -> Optional[FrozenSet[str]]:
        if self.bind is None:
            self.logger.debug(f"No database bound, cannot introspect '{translation_table}'")
            return None

        try:
            inspector = sa.inspect(self.bind)
            if not inspector.has_table(translation_table):
                self.logger.debug(f"Translation table '{translation_table}' does not exist")
                return None
            columns = [column["name"] for column in inspector.get_columns(translation_table)]
        except SQLAlchemyError as e:
            self.logger.warning(f"Could not introspect '{translation_table}': {e}")
            return None

        excluded = set(self.settings.SYSTEM_COLUMNS)
        excluded.add(foreign_key_for_translation_table(translation_table, self.settings))
        return frozenset(name for name in columns if name not in excluded)
