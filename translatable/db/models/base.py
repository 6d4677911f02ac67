# File: translatable/db/models/base.py
"""
Base model for translatable entities.

Models mapped here describe main tables only; translatable columns live in
the translation table and are attached to instances by the repository.
"""

from sqlalchemy import MetaData
from sqlalchemy.orm import declarative_base

# Create the SQLAlchemy base
Base = declarative_base(metadata=MetaData())
