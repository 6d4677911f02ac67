# File: translatable/repositories/translatable_repository.py

"""
Repository for models with a translation table.

Reads go through the LocaleResolver so loaded entities carry the translated
values of the active locale. Writes persist the main row and the buffered
translation values in the same transaction.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Type, TypeVar

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from translatable.core.config import Settings, TranslationStrategy, settings as default_settings
from translatable.core.exceptions import (
    DatabaseException,
    TranslationWriteException,
    ValidationException,
)
from translatable.core.locale import get_locale
from translatable.repositories.base_repository import BaseRepository
from translatable.repositories.translation_writer import TranslationWriter
from translatable.services.attribute_cache import AttributeCache
from translatable.services.locale_resolution import (
    LocaleResolver,
    ResolutionContext,
    resolution_context_for,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TranslatableRepository(BaseRepository[T]):
    """
    Repository for a HasTranslations model.

    Example:
        repo = TranslatableRepository(session, Product, cache)
        product = Product(price=100, name="Widget")
        repo.save(product, locale="en")

        with use_locale("lv"):
            products = repo.list(strategy=TranslationStrategy.FALLBACK)
    """

    def __init__(
        self,
        session: Session,
        model: Type[T],
        cache: AttributeCache,
        resolver: Optional[LocaleResolver] = None,
        writer: Optional[TranslationWriter] = None,
        settings: Optional[Settings] = None,
    ):
        super().__init__(session, model)
        self.cache = cache
        self.settings = settings or default_settings
        self.resolver = resolver or LocaleResolver()
        self.writer = writer or TranslationWriter(session, self.settings)
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    # --- reads ---

    def context(
        self,
        locale: Optional[str] = None,
        strategy: Optional[TranslationStrategy] = None,
        fallback_locale: Optional[str] = None,
    ) -> ResolutionContext:
        return resolution_context_for(
            self._get_model(),
            self.cache,
            locale=locale,
            fallback_locale=fallback_locale,
            strategy=strategy,
            settings=self.settings,
        )

    def query(
        self,
        stmt: Optional[Select] = None,
        locale: Optional[str] = None,
        strategy: Optional[TranslationStrategy] = None,
        fallback_locale: Optional[str] = None,
    ) -> Select:
        """
        Rewrite a select of the model for the active locale.

        Rows of the returned statement are (entity, *translated values) in the
        order of context().translatable_columns.
        """
        stmt = stmt if stmt is not None else sa.select(self._get_model())
        return self.resolver.apply(stmt, self.context(locale, strategy, fallback_locale), project=False)

    def without_translations(self, stmt: Optional[Select] = None) -> Select:
        """Select against the main table only, translatable attributes stay unloaded."""
        return stmt if stmt is not None else sa.select(self._get_model())

    def get_by_id(
        self,
        id: int,
        locale: Optional[str] = None,
        strategy: Optional[TranslationStrategy] = None,
    ) -> Optional[T]:
        """
        Retrieve an entity with its translated values.

        Under the strict strategy an entity without a translation in the
        locale is not found.
        """
        model_class = self._get_model()
        context = self.context(locale, strategy)
        stmt = self.resolver.apply(
            sa.select(model_class).where(sa.column("id") == id), context, project=False
        )
        entities = self._load(stmt, context)
        return entities[0] if entities else None

    def list(
        self,
        skip: int = 0,
        limit: int = 100,
        locale: Optional[str] = None,
        strategy: Optional[TranslationStrategy] = None,
        **filters,
    ) -> List[T]:
        """
        Retrieve translated entities with pagination.

        Filters on translatable attributes compare against the active
        locale's translation row.
        """
        model_class = self._get_model()
        context = self.context(locale, strategy)
        translatable = set(context.translatable_columns)

        stmt = sa.select(model_class)
        for key, value in filters.items():
            if key in translatable:
                stmt = stmt.where(sa.column(key) == value)
            elif hasattr(model_class, key):
                stmt = stmt.where(getattr(model_class, key) == value)

        stmt = stmt.order_by(model_class.__table__.c.id).offset(skip).limit(limit)
        stmt = self.resolver.apply(stmt, context, project=False)
        return self._load(stmt, context)

    def _load(self, stmt: Select, context: ResolutionContext) -> List[T]:
        columns = list(context.translatable_columns)
        try:
            rows = self.session.execute(stmt).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Database error loading {self._get_model().__name__}: {e}", exc_info=True)
            raise DatabaseException(f"Failed to load {self._get_model().__name__}: {str(e)}")

        entities = []
        for row in rows:
            entity = row[0]
            if columns:
                entity.hydrate_translations(dict(zip(columns, row[1:])))
            entities.append(entity)

        self.logger.debug(f"Loaded {len(entities)} {self._get_model().__name__} rows (locale={context.locale})")
        return entities

    # --- writes ---

    def save(self, entity: T, locale: Optional[str] = None) -> T:
        """
        Persist the main row and its pending translation values.

        Both are written in one transaction: if the translation cannot be
        written the main row changes are rolled back too and the pending
        values are kept on the entity.

        Args:
            entity: Model instance
            locale: Locale of the pending values, defaults to the active locale

        Returns:
            The saved entity
        """
        locale = locale or get_locale()
        pending = entity.pending_translations()

        try:
            self.session.add(entity)
            self.session.flush()
            if pending:
                self.writer.save(type(entity), entity.id, locale, pending)
            self.session.commit()
        except (TranslationWriteException, ValidationException):
            self.session.rollback()
            raise
        except SQLAlchemyError as e:
            self.session.rollback()
            self.logger.error(f"Database error saving {type(entity).__name__}: {e}", exc_info=True)
            raise DatabaseException(f"Failed to save {type(entity).__name__}: {str(e)}")

        entity.clear_pending_translations()
        self.logger.info(f"Saved {type(entity).__name__}#{entity.id} [{locale}]")
        return entity

    def save_translations(self, entity: T, translations: Mapping[str, Mapping[str, Any]]) -> T:
        """
        Write several locales of a persisted entity, all or nothing.

        Args:
            entity: Persisted model instance
            translations: Mapping of locale to translatable values
        """
        if entity.id is None:
            raise ValidationException(f"{type(entity).__name__} must be saved before its translations")

        try:
            self.writer.save_many(type(entity), entity.id, translations)
            self.session.commit()
        except (TranslationWriteException, ValidationException):
            self.session.rollback()
            raise

        current = translations.get(get_locale())
        if current:
            entity.hydrate_translations(dict(current))
        return entity

    def translations_for(self, entity: T) -> Dict[str, Dict[str, Any]]:
        return self.writer.translations_for(type(entity), entity.id)

    def create(self, data: Dict[str, Any], locale: Optional[str] = None) -> T:
        """Create an entity from main and translatable values."""
        model_class = self._get_model()
        model_columns = {c.name for c in model_class.__table__.columns}
        translatable = model_class.translatable_attributes(self.cache)
        entity = model_class(
            **{k: v for k, v in data.items() if k in model_columns or k in translatable}
        )
        return self.save(entity, locale)

    def update(self, id: int, data: Dict[str, Any], locale: Optional[str] = None) -> Optional[T]:
        """Update main and translatable values of an entity."""
        entity = self.session.get(self._get_model(), id)
        if not entity:
            return None

        translatable = type(entity).translatable_attributes(self.cache)
        for key, value in data.items():
            if key in translatable or key in entity.__table__.columns.keys():
                setattr(entity, key, value)

        return self.save(entity, locale)

    def delete(self, id: int) -> bool:
        """Delete an entity; its translation rows are removed by the cascading foreign key."""
        entity = self.session.get(self._get_model(), id)
        if not entity:
            return False

        self.session.delete(entity)
        self.session.commit()
        return True
