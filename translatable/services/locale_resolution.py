# File: translatable/services/locale_resolution.py
"""
Locale resolution for queries against translatable tables.

Rewrites a SELECT on a main table so that translatable columns come from
its translation table in the active locale:

- strict:   JOIN t ON main.id = t.<fk> AND t.locale = :locale
- nullable: LEFT JOIN, translatable columns are NULL when no row exists
- fallback: LEFT JOIN t and t_fallback, COALESCE(t.col, t_fallback.col) per column

Bare ``id`` predicates are qualified with the main table and bare
translatable column predicates are pointed at ``t``, including inside
nested and_/or_ groups but not inside subqueries. ORDER BY is left
untouched: order by ``t.<col>`` explicitly when sorting on a translated
value.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import sqlalchemy as sa
from sqlalchemy.sql import Select, visitors
from sqlalchemy.sql.elements import ColumnClause
from sqlalchemy.sql.expression import Exists, ScalarSelect, SelectBase

from translatable.core.config import Settings, TranslationStrategy, settings as default_settings
from translatable.core.locale import get_locale

logger = logging.getLogger(__name__)

CURRENT_ALIAS = "t"
FALLBACK_ALIAS = "t_fallback"


@dataclass(frozen=True)
class ResolutionContext:
    """
    Everything the resolver needs to rewrite one query.

    Attributes:
        main_table: Main table being queried
        translation_table: Translation table, or its name
        foreign_key: Column of the translation table referencing main_table.id
        translatable_columns: Columns resolved from the translation table
        locale: Active locale
        fallback_locale: Locale consulted by the fallback strategy
        strategy: Missing translation strategy
    """

    main_table: sa.Table
    translation_table: Union[sa.Table, str]
    foreign_key: str
    translatable_columns: Sequence[str]
    locale: str
    fallback_locale: str
    strategy: TranslationStrategy = TranslationStrategy.STRICT

    @property
    def effective_strategy(self) -> TranslationStrategy:
        """Fallback to the same locale needs no second join."""
        if self.strategy == TranslationStrategy.FALLBACK and self.locale == self.fallback_locale:
            return TranslationStrategy.NULLABLE
        return self.strategy


class LocaleResolver:
    """Applies a missing translation strategy to SELECT statements."""

    def __init__(self):
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def apply(self, stmt: Select, context: ResolutionContext, project: bool = True) -> Select:
        """
        Rewrite a statement for the context's locale and strategy.

        Args:
            stmt: SELECT against context.main_table (Core table or ORM entity)
            context: Resolution context
            project: Replace the select list with the main table columns plus
                the translated columns. With False the existing select list is
                kept (e.g. an ORM entity) and translated columns are appended.

        Returns:
            The rewritten statement, or stmt itself when there is nothing to translate
        """
        columns = list(context.translatable_columns)
        if not columns:
            self.logger.debug(f"No translatable columns for '{context.main_table.name}', query unchanged")
            return stmt

        main = context.main_table
        translation = self._translation_table(context, columns)
        current = translation.alias(CURRENT_ALIAS)
        strategy = context.effective_strategy

        if strategy == TranslationStrategy.STRICT:
            stmt = self._join(stmt, context, current, context.locale, isouter=False)
            selected = [current.c[name] for name in columns]
        elif strategy == TranslationStrategy.NULLABLE:
            stmt = self._join(stmt, context, current, context.locale, isouter=True)
            selected = [current.c[name] for name in columns]
        else:
            fallback = translation.alias(FALLBACK_ALIAS)
            stmt = self._join(stmt, context, current, context.locale, isouter=True)
            stmt = self._join(stmt, context, fallback, context.fallback_locale, isouter=True)
            selected = [
                sa.func.coalesce(current.c[name], fallback.c[name]).label(name)
                for name in columns
            ]

        if project:
            names = set(columns)
            main_columns = [column for column in main.c if column.name not in names]
            stmt = stmt.with_only_columns(*main_columns, *selected)
        else:
            stmt = stmt.add_columns(*selected)

        stmt = self._qualify_predicates(stmt, main, current, columns)

        self.logger.debug(
            f"Applied '{strategy.value}' strategy to '{main.name}' "
            f"(locale={context.locale}, fallback={context.fallback_locale}, columns={columns})"
        )
        return stmt

    @staticmethod
    def _translation_table(context: ResolutionContext, columns: List[str]):
        if isinstance(context.translation_table, (sa.Table, sa.TableClause)):
            return context.translation_table
        # Name only: a lightweight table clause is enough to render the joins
        return sa.table(
            context.translation_table,
            sa.column(context.foreign_key),
            sa.column("locale"),
            *[sa.column(name) for name in columns],
        )

    @staticmethod
    def _join(stmt: Select, context: ResolutionContext, alias, locale: str, isouter: bool) -> Select:
        main = context.main_table
        onclause = sa.and_(
            main.c.id == alias.c[context.foreign_key],
            alias.c.locale == locale,
        )
        return stmt.join_from(main, alias, onclause, isouter=isouter)

    def _qualify_predicates(self, stmt: Select, main: sa.Table, current, columns: List[str]) -> Select:
        """
        Resolve ambiguous column references in WHERE criteria.

        ``id`` exists on both tables once joined, and translatable columns
        only exist on the translation table.
        """
        criteria = stmt._where_criteria
        if not criteria:
            return stmt

        names = set(columns)

        def replace(element, **kw):
            # Subqueries have their own FROM: returning them as is stops descent
            if isinstance(element, (SelectBase, ScalarSelect, Exists)):
                return element
            if not isinstance(element, ColumnClause) or element.is_literal:
                return None
            table = element.table
            if table is not None and getattr(table, "name", None) != main.name:
                return None
            if table is None and element.name == "id":
                return main.c.id
            if element.name in names:
                return current.c[element.name]
            return None

        rewritten = tuple(visitors.replacement_traverse(criterion, {}, replace) for criterion in criteria)

        # Select has no public API to replace WHERE criteria
        stmt = stmt._generate()
        stmt._where_criteria = rewritten
        return stmt


def resolution_context_for(
    entity,
    cache,
    locale: Optional[str] = None,
    fallback_locale: Optional[str] = None,
    strategy: Optional[TranslationStrategy] = None,
    settings: Optional[Settings] = None,
) -> ResolutionContext:
    """
    Build a ResolutionContext for a translatable entity class.

    This is the boundary between ambient configuration and the resolver:
    values not passed explicitly are read here, once, from the active
    locale and settings.

    Args:
        entity: Class implementing TranslatableEntity
        cache: AttributeCache supplying the translatable columns
    """
    settings = settings or default_settings
    return ResolutionContext(
        main_table=entity.__table__,
        translation_table=entity.translation_table_name(settings),
        foreign_key=entity.translation_foreign_key(),
        translatable_columns=sorted(entity.translatable_attributes(cache)),
        locale=locale or get_locale(),
        fallback_locale=fallback_locale or settings.DEFAULT_LOCALE,
        strategy=strategy or settings.MISSING_TRANSLATION_STRATEGY,
    )
