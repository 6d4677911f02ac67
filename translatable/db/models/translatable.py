# File: translatable/db/models/translatable.py
"""
Translatable entity capability.

TranslatableEntity is the interface the query and write paths depend on.
HasTranslations implements it for declarative models:

    class Product(HasTranslations, Base):
        __tablename__ = "products"
        id = Column(Integer, primary_key=True)
        price = Column(Numeric(10, 2))

Assignments to translatable attributes (product.name = "Widget") are
buffered until the repository saves the entity, so setting several fields
one at a time produces one translation row write.
"""

from typing import Any, ClassVar, Dict, FrozenSet, Iterable, Optional, Protocol, runtime_checkable

from translatable.core.utils import translation_foreign_key, translation_table_name

_PENDING = "_pending_translations"


@runtime_checkable
class TranslatableEntity(Protocol):
    """Interface of an entity whose locale-varying columns live in a translation table."""

    @classmethod
    def translation_table_name(cls, settings=None) -> str: ...

    @classmethod
    def translation_foreign_key(cls) -> str: ...

    @classmethod
    def translatable_attributes(cls, cache=None) -> FrozenSet[str]: ...


class HasTranslations:
    """
    Mixin for declarative models with a translation table.

    Translatable attribute names come from ``__translatable__`` when the
    model declares them, otherwise from the AttributeCache the model was
    last bound to (see bind_translatable_attributes).
    """

    __translatable__: ClassVar[Optional[Iterable[str]]] = None
    _bound_translatable: ClassVar[FrozenSet[str]] = frozenset()

    def __init__(self, **kwargs: Any):
        names = type(self).translatable_attributes()
        translated = {key: kwargs.pop(key) for key in list(kwargs) if key in names}
        super().__init__(**kwargs)
        for key, value in translated.items():
            setattr(self, key, value)

    # --- TranslatableEntity ---

    @classmethod
    def translation_table_name(cls, settings=None) -> str:
        """Name of the translation table under the given settings' TABLE_SUFFIX."""
        return translation_table_name(cls.__tablename__, settings)

    @classmethod
    def translation_foreign_key(cls) -> str:
        return translation_foreign_key(cls.__tablename__)

    @classmethod
    def translatable_attributes(cls, cache=None) -> FrozenSet[str]:
        """
        Names of the translatable attributes.

        Args:
            cache: AttributeCache to resolve (and bind) the names from
        """
        if cls.__translatable__ is not None:
            return frozenset(cls.__translatable__)
        if cache is not None:
            cls.bind_translatable_attributes(cache)
        return cls._bound_translatable

    @classmethod
    def bind_translatable_attributes(cls, cache) -> FrozenSet[str]:
        cls._bound_translatable = cache.get(cls.translation_table_name(cache.settings))
        return cls._bound_translatable

    # --- attribute buffering ---

    def __setattr__(self, key: str, value: Any) -> None:
        if not key.startswith("_") and key in type(self).translatable_attributes():
            self.__dict__.setdefault(_PENDING, {})[key] = value
            self.__dict__[key] = value
            return
        super().__setattr__(key, value)

    def __getattr__(self, key: str) -> Any:
        # Only reached when normal lookup fails: unloaded translations read as None
        if not key.startswith("_") and key in type(self).translatable_attributes():
            return None
        raise AttributeError(f"'{type(self).__name__}' object has no attribute '{key}'")

    def pending_translations(self) -> Dict[str, Any]:
        return dict(self.__dict__.get(_PENDING, {}))

    def has_pending_translations(self) -> bool:
        return bool(self.__dict__.get(_PENDING))

    def clear_pending_translations(self) -> None:
        self.__dict__.pop(_PENDING, None)

    def hydrate_translations(self, values: Dict[str, Any]) -> None:
        """Attach values loaded from the translation table without marking them pending."""
        for key, value in values.items():
            self.__dict__[key] = value

    def translated_attributes(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in sorted(type(self).translatable_attributes())}
