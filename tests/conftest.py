# tests/conftest.py
import pytest
import sqlalchemy as sa
from sqlalchemy import Column, Integer, String

from translatable.core.config import Settings
from translatable.db.models import Base, HasTranslations
from translatable.db.schema import TranslatableSchema
from translatable.db.session import get_engine, get_session_factory
from translatable.services.attribute_cache import AttributeCache


class Product(HasTranslations, Base):
    __tablename__ = "products"
    __translatable__ = ("name", "description")

    id = Column(Integer, primary_key=True)
    price = Column(Integer)


class Post(HasTranslations, Base):
    """Translatable attributes come from the attribute cache."""

    __tablename__ = "posts"

    id = Column(Integer, primary_key=True)
    slug = Column(String(255))


@pytest.fixture
def settings(tmp_path):
    return Settings(
        DATABASE_URL="sqlite://",
        APP_ROOT=str(tmp_path),
        DEFAULT_LOCALE="en",
        SUPPORTED_LOCALES=["en", "lv", "de", "fr"],
        MISSING_TRANSLATION_STRATEGY="strict",
    )


@pytest.fixture
def engine():
    engine = get_engine("sqlite://")
    yield engine
    engine.dispose()


@pytest.fixture
def cache(engine, settings):
    return AttributeCache(engine, settings)


@pytest.fixture
def schema(engine, settings, cache):
    return TranslatableSchema(engine, settings, cache)


@pytest.fixture
def session(engine):
    # The in-memory database lives on one shared connection: keep the session
    # idle (committed or closed) while schema operations run.
    db = get_session_factory(engine)()
    yield db
    db.close()


@pytest.fixture
def products(schema):
    """products (id, price) + product_translations (name, description)."""

    def definition(table):
        table.id()
        table.integer("price").default(0)
        table.string("name").translatable()
        table.text("description").nullable().translatable()

    return schema.create("products", definition)


@pytest.fixture
def posts(schema):
    def definition(table):
        table.id()
        table.string("slug")
        table.string("title").translatable()

    return schema.create("posts", definition)


@pytest.fixture
def product_model():
    return Product


@pytest.fixture
def post_model():
    Post.bind_translatable_attributes(AttributeCache())
    yield Post
    Post.bind_translatable_attributes(AttributeCache())


def insert_product(engine, price=100, translations=None):
    """Insert a main row and its translation rows, return the new id."""
    metadata = sa.MetaData()
    products = sa.Table("products", metadata, autoload_with=engine)
    product_translations = sa.Table("product_translations", metadata, autoload_with=engine)

    with engine.begin() as conn:
        product_id = conn.execute(sa.insert(products).values(price=price)).inserted_primary_key[0]
        for locale, values in (translations or {}).items():
            conn.execute(
                sa.insert(product_translations).values(product_id=product_id, locale=locale, **values)
            )
    return product_id


@pytest.fixture
def add_product(engine, products):
    def _add(price=100, translations=None):
        return insert_product(engine, price, translations)

    return _add
