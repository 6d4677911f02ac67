"""
Declarative base and translatable entity support.
"""

from translatable.db.models.base import Base
from translatable.db.models.translatable import HasTranslations, TranslatableEntity

__all__ = ["Base", "HasTranslations", "TranslatableEntity"]
