"""API clients: catalog search, translation and the media-library backend."""

from .catalog_client import CatalogClient, CatalogSearchError
from .http_client import HTTPStatusError, UnauthorizedError
from .library_client import LibraryClient
from .translate_client import TranslateClient

__all__ = [
    "CatalogClient",
    "CatalogSearchError",
    "HTTPStatusError",
    "LibraryClient",
    "TranslateClient",
    "UnauthorizedError",
]
