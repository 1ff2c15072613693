"""Catalog persistence providers.

SQLiteCatalogProvider stores vector-store configs, collections, documents,
chunks and strategy configs in data/catalog.db.
"""

from ragline.providers.catalog.sqlite_catalog_provider import SQLiteCatalogProvider

__all__ = ["SQLiteCatalogProvider"]
