"""Extractors for relational sources."""

from .base import BaseExtractor
from .sqlalchemy_extractor import SQLAlchemyExtractor
from .file_extractor import FileExtractor

__all__ = [
    "BaseExtractor",
    "SQLAlchemyExtractor",
    "FileExtractor",
]
