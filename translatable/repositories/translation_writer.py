# File: translatable/repositories/translation_writer.py

"""
Translation Writer

Writes the translation rows of an entity: one row per (entity, locale) in the
entity's translation table. Every write runs inside a savepoint of the
caller's session, so a failed write leaves the session usable and the
caller's own transaction decides whether the result is committed.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Union

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from translatable.core.config import Settings, settings as default_settings
from translatable.core.exceptions import TranslationWriteException, ValidationException
from translatable.core.utils import translation_foreign_key, translation_table_name

logger = logging.getLogger(__name__)

Target = Union[str, type]


class TranslationWriter:
    """
    Upserts translation rows keyed by (foreign key, locale).

    ``target`` is either a TranslatableEntity class or the name of a main
    table. The unique (foreign key, locale) constraint is relied on for
    concurrent writers: an insert that loses the race is retried once as an
    update.
    """

    def __init__(self, session: Session, settings: Optional[Settings] = None):
        """
        Initialize the writer.

        Args:
            session: SQLAlchemy database session
            settings: Settings providing TABLE_SUFFIX and SYSTEM_COLUMNS
        """
        self.session = session
        self.settings = settings or default_settings
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def save(self, target: Target, entity_id: Any, locale: str, values: Mapping[str, Any]) -> None:
        """
        Create or update the translation row of an entity in one locale.

        Args:
            target: TranslatableEntity class or main table name
            entity_id: Primary key of the main row
            locale: Locale of the translation row
            values: Translatable column values

        Raises:
            ValidationException: If the locale or values are invalid
            TranslationWriteException: If the row could not be written
        """
        table_name, foreign_key = self._names(target)
        self._validate(target, locale, values)
        table = self._table(table_name, foreign_key, values)

        try:
            with self.session.begin_nested():
                action = self._upsert(table, foreign_key, entity_id, locale, values)

                count = self.session.execute(
                    sa.select(sa.func.count())
                    .select_from(table)
                    .where(table.c[foreign_key] == entity_id, table.c.locale == locale)
                ).scalar_one()
                if count != 1:
                    raise TranslationWriteException(
                        table_name, entity_id, locale, f"expected exactly one row, found {count}"
                    )

            self.logger.info(f"{action} translation {table_name}#{entity_id} [{locale}]: {sorted(values)}")

        except TranslationWriteException:
            raise
        except SQLAlchemyError as e:
            self.logger.error(f"Database error saving translation: {e}", exc_info=True)
            raise TranslationWriteException(table_name, entity_id, locale, str(e)) from e

    def save_many(self, target: Target, entity_id: Any, translations: Mapping[str, Mapping[str, Any]]) -> None:
        """
        Save several locales of one entity, all or nothing.

        Args:
            target: TranslatableEntity class or main table name
            entity_id: Primary key of the main row
            translations: Mapping of locale to translatable column values

        Raises:
            TranslationWriteException: If any locale fails; no locale of the batch is kept
        """
        if not translations:
            return

        self.logger.info(f"Saving {len(translations)} locales for {self._names(target)[0]}#{entity_id}")

        try:
            with self.session.begin_nested():
                for locale, values in translations.items():
                    self.save(target, entity_id, locale, values)
        except (TranslationWriteException, ValidationException):
            self.logger.warning(f"Translation batch for #{entity_id} rolled back")
            raise

    def delete(self, target: Target, entity_id: Any, locale: Optional[str] = None) -> int:
        """
        Delete the translation rows of an entity.

        Args:
            target: TranslatableEntity class or main table name
            entity_id: Primary key of the main row
            locale: Only delete this locale; all locales when omitted

        Returns:
            Number of rows deleted
        """
        table_name, foreign_key = self._names(target)
        table = self._table(table_name, foreign_key, {})

        stmt = sa.delete(table).where(table.c[foreign_key] == entity_id)
        if locale:
            stmt = stmt.where(table.c.locale == locale)

        try:
            deleted = self.session.execute(stmt).rowcount
        except SQLAlchemyError as e:
            self.logger.error(f"Database error deleting translations: {e}", exc_info=True)
            raise TranslationWriteException(table_name, entity_id, locale or "*", str(e)) from e

        self.logger.info(f"Deleted {deleted} translation rows of {table_name}#{entity_id}")
        return deleted

    def translations_for(self, target: Target, entity_id: Any) -> Dict[str, Dict[str, Any]]:
        """
        All stored translations of an entity.

        Returns:
            Mapping of locale to {column: value}, ordered by locale
        """
        table_name, foreign_key = self._names(target)
        table = sa.Table(table_name, sa.MetaData(), autoload_with=self.session.connection())

        excluded = set(self.settings.SYSTEM_COLUMNS)
        excluded.add(foreign_key)
        columns = [column for column in table.c if column.name not in excluded]

        rows = self.session.execute(
            sa.select(table.c.locale, *columns)
            .where(table.c[foreign_key] == entity_id)
            .order_by(table.c.locale)
        ).all()

        return {row.locale: {column.name: row._mapping[column] for column in columns} for row in rows}

    # --- internals ---

    def _upsert(self, table, foreign_key: str, entity_id: Any, locale: str, values: Mapping[str, Any]) -> str:
        updated = self._update(table, foreign_key, entity_id, locale, values)
        if updated:
            return "Updated"

        try:
            with self.session.begin_nested():
                self.session.execute(
                    sa.insert(table).values({foreign_key: entity_id, "locale": locale, **values})
                )
            return "Created"
        except IntegrityError as e:
            # Another writer inserted the same (entity, locale) first
            self.logger.warning(f"Insert conflict on {table.name}#{entity_id} [{locale}], retrying as update")
            if self._update(table, foreign_key, entity_id, locale, values):
                return "Updated"
            raise TranslationWriteException(
                table.name, entity_id, locale, f"insert rejected and no row to update: {e.orig}"
            ) from e

    def _update(self, table, foreign_key: str, entity_id: Any, locale: str, values: Mapping[str, Any]) -> int:
        result = self.session.execute(
            sa.update(table)
            .where(table.c[foreign_key] == entity_id, table.c.locale == locale)
            .values(dict(values))
        )
        return result.rowcount

    def _names(self, target: Target):
        if isinstance(target, str):
            return (
                translation_table_name(target, self.settings),
                translation_foreign_key(target),
            )
        return target.translation_table_name(self.settings), target.translation_foreign_key()

    def _validate(self, target: Target, locale: str, values: Mapping[str, Any]) -> None:
        if not locale or not locale.strip():
            raise ValidationException("Locale cannot be empty")
        if not values:
            raise ValidationException("No translatable values to save")

        if isinstance(target, str):
            return
        known = target.translatable_attributes()
        unknown = sorted(set(values) - set(known)) if known else []
        if unknown:
            raise ValidationException(
                f"Not translatable on {target.__name__}: {', '.join(unknown)}",
                {name: ["not a translatable attribute"] for name in unknown},
            )

    @staticmethod
    def _table(table_name: str, foreign_key: str, values: Mapping[str, Any]) -> sa.TableClause:
        return sa.table(
            table_name,
            sa.column(foreign_key),
            sa.column("locale"),
            *[sa.column(name) for name in values],
        )
