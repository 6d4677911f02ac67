# tests/test_locale_resolution.py
import pytest
import sqlalchemy as sa

from translatable.core.config import TranslationStrategy
from translatable.services.locale_resolution import LocaleResolver, ResolutionContext

STRICT = TranslationStrategy.STRICT
NULLABLE = TranslationStrategy.NULLABLE
FALLBACK = TranslationStrategy.FALLBACK


@pytest.fixture
def products_table(engine, products):
    return sa.Table("products", sa.MetaData(), autoload_with=engine)


@pytest.fixture
def resolve(engine, products_table):
    """Run a (rewritten) select on products and return rows as dicts."""

    def _resolve(strategy, locale, fallback_locale="en", stmt=None):
        context = ResolutionContext(
            main_table=products_table,
            translation_table="product_translations",
            foreign_key="product_id",
            translatable_columns=["name", "description"],
            locale=locale,
            fallback_locale=fallback_locale,
            strategy=strategy,
        )
        stmt = stmt if stmt is not None else sa.select(products_table)
        rewritten = LocaleResolver().apply(stmt.order_by(products_table.c.id), context)
        with engine.connect() as conn:
            return [dict(row._mapping) for row in conn.execute(rewritten)]

    return _resolve


def test_strict_returns_translated_rows(add_product, resolve):
    add_product(price=100, translations={"en": {"name": "Widget"}})

    rows = resolve(STRICT, "en")

    assert len(rows) == 1
    assert rows[0]["name"] == "Widget"
    assert rows[0]["price"] == 100


def test_strict_excludes_untranslated_rows(add_product, resolve):
    add_product(price=100, translations={"en": {"name": "Widget"}})
    add_product(price=5, translations={"lv": {"name": "Logs"}})

    assert resolve(STRICT, "lv") == [{"id": 2, "price": 5, "name": "Logs", "description": None}]
    assert [row["name"] for row in resolve(STRICT, "en")] == ["Widget"]
    assert resolve(STRICT, "de") == []


def test_nullable_keeps_every_row_once(add_product, resolve):
    add_product(price=100, translations={"en": {"name": "Widget"}, "de": {"name": "Gerät"}})
    add_product(price=7)

    rows = resolve(NULLABLE, "lv")

    assert rows == [
        {"id": 1, "price": 100, "name": None, "description": None},
        {"id": 2, "price": 7, "name": None, "description": None},
    ]


def test_fallback_prefers_fallback_locale_over_other_locales(add_product, resolve):
    add_product(price=100, translations={"en": {"name": "Widget"}, "de": {"name": "Gerät"}})

    rows = resolve(FALLBACK, "fr", fallback_locale="en")

    assert rows[0]["name"] == "Widget"


def test_fallback_coalesces_per_column(add_product, resolve):
    """A row can mix current-locale and fallback values, one column at a time."""
    add_product(
        translations={
            "en": {"name": "Wood log", "description": "Wood"},
            "lv": {"name": "Logs", "description": None},
        }
    )

    rows = resolve(FALLBACK, "lv", fallback_locale="en")

    assert rows[0]["name"] == "Logs"
    assert rows[0]["description"] == "Wood"


def test_fallback_precedence(add_product, resolve):
    add_product(translations={"lv": {"name": "Logs"}, "en": {"name": "Log"}})
    add_product(translations={"en": {"name": "Chair"}})
    add_product(translations={"de": {"name": "Tisch"}})

    rows = resolve(FALLBACK, "lv", fallback_locale="en")

    assert [row["name"] for row in rows] == ["Logs", "Chair", None]


def test_fallback_to_same_locale_equals_nullable(add_product, resolve, products_table):
    add_product(translations={"en": {"name": "Widget"}})
    add_product(translations={"lv": {"name": "Logs"}})

    assert resolve(FALLBACK, "en", fallback_locale="en") == resolve(NULLABLE, "en")

    context = ResolutionContext(
        products_table, "product_translations", "product_id", ["name"], "en", "en", FALLBACK
    )
    assert context.effective_strategy == NULLABLE
    sql = str(LocaleResolver().apply(sa.select(products_table), context))
    assert "t_fallback" not in sql
    assert "LEFT OUTER JOIN" in sql


def test_bare_id_predicate_is_qualified(add_product, resolve, products_table):
    add_product(translations={"en": {"name": "Widget"}})
    second = add_product(translations={"en": {"name": "Gadget"}})

    rows = resolve(STRICT, "en", stmt=sa.select(products_table).where(sa.column("id") == second))

    assert [row["name"] for row in rows] == ["Gadget"]


def test_nested_predicates_target_current_locale(add_product, resolve, products_table):
    add_product(translations={"en": {"name": "Widget"}, "lv": {"name": "Logs"}})
    add_product(translations={"en": {"name": "Gadget"}})

    stmt = sa.select(products_table).where(
        sa.or_(
            sa.and_(sa.column("name") == "Widget", sa.column("id") > 0),
            sa.column("name") == "Nothing",
        )
    )

    assert [row["id"] for row in resolve(FALLBACK, "en", fallback_locale="lv", stmt=stmt)] == [1]
    # In Latvian the first product is "Logs", the predicate never looks at the fallback row
    assert resolve(FALLBACK, "lv", fallback_locale="en", stmt=stmt) == []


def test_predicate_rewriting_sql():
    metadata = sa.MetaData()
    items = sa.Table(
        "items",
        metadata,
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.String),
        sa.Column("price", sa.Integer),
    )
    context = ResolutionContext(items, "item_translations", "item_id", ["name"], "lv", "en", FALLBACK)

    stmt = (
        sa.select(items)
        .where(sa.and_(items.c.name == "x", sa.or_(sa.column("id") == 1, items.c.price > 2)))
        .order_by(sa.column("name"))
    )
    sql = str(LocaleResolver().apply(stmt, context))

    assert "SELECT items.id, items.price, coalesce(t.name, t_fallback.name) AS name" in sql
    assert "t.name = " in sql
    assert "items.id = " in sql
    assert "items.price > " in sql
    assert "t_fallback.name =" not in sql
    assert "items.name" not in sql
    assert sql.rstrip().endswith("ORDER BY name")


def test_strict_join_sql():
    metadata = sa.MetaData()
    items = sa.Table("items", metadata, sa.Column("id", sa.Integer, primary_key=True))
    context = ResolutionContext(items, "item_translations", "item_id", ["name"], "lv", "en", STRICT)

    sql = str(LocaleResolver().apply(sa.select(items), context))

    assert "JOIN item_translations AS t ON items.id = t.item_id AND t.locale = " in sql
    assert "LEFT OUTER" not in sql


def test_no_translatable_columns_leaves_query_unchanged(products_table):
    context = ResolutionContext(products_table, "product_translations", "product_id", [], "en", "en", STRICT)
    stmt = sa.select(products_table).where(sa.column("id") == 1)

    assert LocaleResolver().apply(stmt, context) is stmt


def test_project_false_appends_columns(products_table):
    context = ResolutionContext(products_table, "product_translations", "product_id", ["name"], "en", "en", STRICT)
    stmt = sa.select(products_table.c.id)

    rewritten = LocaleResolver().apply(stmt, context, project=False)

    assert [c.name for c in rewritten.selected_columns] == ["id", "name"]


def test_subqueries_in_predicates_are_left_alone():
    """Columns of an independent subselect belong to its own FROM."""
    metadata = sa.MetaData()
    items = sa.Table(
        "items",
        metadata,
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("price", sa.Integer),
    )
    context = ResolutionContext(items, "item_translations", "item_id", ["name"], "lv", "en", STRICT)

    tagged = sa.select(sa.column("id")).select_from(sa.table("tags"))
    labelled = sa.select(sa.literal(1)).select_from(sa.table("labels")).where(sa.column("name") == "x").exists()
    stmt = sa.select(items).where(items.c.id.in_(tagged), labelled)

    sql = str(LocaleResolver().apply(stmt, context))

    assert "SELECT id \nFROM tags" in sql
    assert "SELECT items.id \nFROM tags" not in sql
    assert "FROM labels \nWHERE name = " in sql
    assert "t.name = " not in sql
