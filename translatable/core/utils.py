# File: translatable/core/utils.py

from typing import Optional

from translatable.core.config import Settings, settings as default_settings


def singularize(word: str) -> str:
    """
    Convert a plural table name to its singular form.

    The rule only strips a trailing plural marker:
    categories -> category, addresses -> address, boxes -> box,
    products -> product. Irregular plurals (people, data) are not handled.

    Args:
        word: Plural word, usually a table name

    Returns:
        Singular form of the word
    """
    if word.endswith("ies") and len(word) > 3:
        return word[:-3] + "y"
    for ending in ("sses", "xes", "zes", "ches", "shes"):
        if word.endswith(ending):
            return word[:-2]
    if word.endswith(("ss", "us", "is")):
        return word
    if word.endswith("s") and len(word) > 1:
        return word[:-1]
    return word


def translation_table_name(table: str, settings: Optional[Settings] = None) -> str:
    """products -> product_translations"""
    suffix = (settings or default_settings).TABLE_SUFFIX
    return f"{singularize(table)}{suffix}"


def translation_foreign_key(table: str) -> str:
    """products -> product_id"""
    return f"{singularize(table)}_id"


def foreign_key_for_translation_table(translation_table: str, settings: Optional[Settings] = None) -> str:
    """product_translations -> product_id"""
    suffix = (settings or default_settings).TABLE_SUFFIX
    singular = translation_table[: -len(suffix)] if translation_table.endswith(suffix) else translation_table
    return f"{singular}_id"
