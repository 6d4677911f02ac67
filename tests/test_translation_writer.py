# tests/test_translation_writer.py
import pytest
import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from translatable.core.exceptions import TranslationWriteException, ValidationException
from translatable.repositories.translation_writer import TranslationWriter


def translation_rows(engine, product_id):
    with engine.connect() as conn:
        result = conn.execute(
            sa.text(
                "SELECT locale, name, description FROM product_translations "
                "WHERE product_id = :id ORDER BY locale"
            ),
            {"id": product_id},
        )
        return [tuple(row) for row in result]


@pytest.fixture
def writer(session, settings):
    return TranslationWriter(session, settings)


def test_save_inserts_then_updates(writer, session, engine, add_product, product_model):
    product_id = add_product()

    writer.save(product_model, product_id, "en", {"name": "Widget"})
    session.commit()
    assert translation_rows(engine, product_id) == [("en", "Widget", None)]

    writer.save(product_model, product_id, "en", {"name": "Widget 2", "description": "Steel"})
    session.commit()
    assert translation_rows(engine, product_id) == [("en", "Widget 2", "Steel")]


def test_save_accepts_main_table_name(writer, session, engine, add_product):
    product_id = add_product()

    writer.save("products", product_id, "lv", {"name": "Logs"})
    session.commit()

    assert translation_rows(engine, product_id) == [("lv", "Logs", None)]


def test_same_entity_and_locale_converge_to_one_row(writer, session, engine, add_product):
    product_id = add_product()

    for name in ("One", "Two", "Three"):
        writer.save("products", product_id, "en", {"name": name})
    session.commit()

    assert translation_rows(engine, product_id) == [("en", "Three", None)]


def test_unique_constraint_rejects_duplicates(engine, add_product):
    product_id = add_product(translations={"en": {"name": "Widget"}})

    with pytest.raises(IntegrityError):
        with engine.begin() as conn:
            conn.execute(
                sa.text("INSERT INTO product_translations (product_id, locale, name) VALUES (:id, 'en', 'Copy')"),
                {"id": product_id},
            )


class RacingWriter(TranslationWriter):
    """The first UPDATE misses, as if another writer inserted the row right after it."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.updates = 0

    def _update(self, *args):
        self.updates += 1
        if self.updates == 1:
            return 0
        return super()._update(*args)


def test_insert_conflict_is_retried_as_update(session, settings, engine, add_product):
    product_id = add_product(translations={"en": {"name": "Widget"}})
    writer = RacingWriter(session, settings)

    writer.save("products", product_id, "en", {"name": "Winner"})
    session.commit()

    assert writer.updates == 2
    assert translation_rows(engine, product_id) == [("en", "Winner", None)]


def test_insert_conflict_without_row_raises(writer, session, products):
    # No main row: the insert violates the foreign key and there is nothing to update
    with pytest.raises(TranslationWriteException) as exc_info:
        writer.save("products", 999, "en", {"name": "Ghost"})

    assert exc_info.value.code == "TRANSLATION_001"
    assert exc_info.value.details["locale"] == "en"


def test_save_many_writes_every_locale(writer, session, engine, add_product, product_model):
    product_id = add_product()

    writer.save_many(
        product_model,
        product_id,
        {"en": {"name": "Widget"}, "lv": {"name": "Logs"}, "de": {"name": "Gerät"}},
    )
    session.commit()

    assert [row[0] for row in translation_rows(engine, product_id)] == ["de", "en", "lv"]


def test_save_many_is_all_or_nothing(writer, session, engine, add_product):
    product_id = add_product(translations={"de": {"name": "Gerät"}})

    with pytest.raises(TranslationWriteException):
        writer.save_many(
            "products",
            product_id,
            {"en": {"name": "Widget"}, "de": {"name": "Neu"}, "lv": {"unknown_column": "x"}},
        )
    session.commit()

    assert translation_rows(engine, product_id) == [("de", "Gerät", None)]


def test_unknown_attribute_is_rejected(writer, add_product, product_model):
    product_id = add_product()

    with pytest.raises(ValidationException):
        writer.save(product_model, product_id, "en", {"price": 5})


@pytest.mark.parametrize("locale, values", [("", {"name": "x"}), ("en", {})])
def test_invalid_input_is_rejected(writer, add_product, locale, values):
    product_id = add_product()

    with pytest.raises(ValidationException):
        writer.save("products", product_id, locale, values)


def test_delete(writer, session, engine, add_product):
    product_id = add_product(translations={"en": {"name": "Widget"}, "lv": {"name": "Logs"}})

    assert writer.delete("products", product_id, "lv") == 1
    session.commit()
    assert translation_rows(engine, product_id) == [("en", "Widget", None)]

    assert writer.delete("products", product_id) == 1
    session.commit()
    assert translation_rows(engine, product_id) == []


def test_translations_for(writer, session, add_product, product_model):
    product_id = add_product(
        translations={"lv": {"name": "Logs"}, "en": {"name": "Log", "description": "Wood"}}
    )

    translations = writer.translations_for(product_model, product_id)
    session.commit()

    assert translations == {
        "en": {"name": "Log", "description": "Wood"},
        "lv": {"name": "Logs", "description": None},
    }
