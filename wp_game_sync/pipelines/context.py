from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..clients import CatalogClient, LibraryClient, TranslateClient
from ..config import CATALOG, LIBRARY, TRANSLATE
from ..utils import load_credentials


@dataclass(frozen=True)
class PipelineClients:
    catalog: CatalogClient
    library: LibraryClient
    translator: TranslateClient | None


@dataclass(frozen=True)
class PipelineContext:
    cache_dir: Path
    credentials_path: Path | None
    catalog_sleep_s: float = CATALOG.sleep_s
    library_sleep_s: float = LIBRARY.sleep_s
    search_limit: int = CATALOG.search_limit
    translate: bool = True
    translate_endpoint: str = TRANSLATE.endpoint
    translate_sleep_s: float = TRANSLATE.sleep_s

    def credentials(self) -> dict[str, Any]:
        return load_credentials(self.credentials_path)

    def _backend(self) -> tuple[str, str]:
        library_creds = self.credentials().get("library", {})
        return str(library_creds.get("api_base") or CATALOG.api_base), str(library_creds.get("token", ""))

    def build_library(self) -> LibraryClient:
        api_base, token = self._backend()
        return LibraryClient(api_base=api_base, token=token, min_interval_s=self.library_sleep_s)

    def build_clients(self) -> PipelineClients:
        api_base, token = self._backend()
        translator = None
        if self.translate:
            translator = TranslateClient(
                endpoint=self.translate_endpoint,
                min_interval_s=max(TRANSLATE.min_sleep_s, self.translate_sleep_s),
            )
        return PipelineClients(
            catalog=CatalogClient(
                api_base=api_base,
                token=token,
                cache_path=self.cache_dir / "igdb_search_cache.json",
                min_interval_s=self.catalog_sleep_s,
                search_limit=self.search_limit,
            ),
            library=LibraryClient(api_base=api_base, token=token, min_interval_s=self.library_sleep_s),
            translator=translator,
        )
