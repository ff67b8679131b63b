from __future__ import annotations

import logging
from pathlib import Path

from ..clients import UnauthorizedError
from .artifacts import ImportArtifacts, write_import_artifacts
from .context import PipelineContext
from .inputs import load_overrides, load_source_records, select_window
from .reconcile import ReconcileReport, Reconciler, ReconcileSettings


def run_import(
    ctx: PipelineContext,
    *,
    input_json: Path,
    output_dir: Path,
    overrides_path: Path | None = None,
    overrides_required: bool = False,
    settings: ReconcileSettings = ReconcileSettings(),
    start: int = 1,
    limit: int = 0,
) -> tuple[ReconcileReport, ImportArtifacts]:
    """
    Match every selected post against the catalog and add the matches to the library.

    Inputs are validated before any network call. An authorization failure aborts the run
    without writing artifacts; everything else is recorded per post.
    """
    records = load_source_records(input_json)
    overrides = load_overrides(overrides_path, required=overrides_required)
    selected = select_window(records, start=start, limit=limit)
    logging.info(f"[WP] loaded={len(records)} selected={len(selected)} input={input_json}")

    clients = ctx.build_clients()
    if not clients.library.igdb_configured():
        raise SystemExit("IGDB integration is not configured on the backend; aborting before any search")

    used_ids = clients.library.existing_catalog_ids()
    logging.info(f"[LIBRARY] existing game ids={len(used_ids)}")

    reconciler = Reconciler(
        search=clients.catalog,
        library=clients.library,
        used_ids=used_ids,
        translator=clients.translator,
        settings=settings,
    )
    try:
        report = reconciler.run(selected, overrides)
    except UnauthorizedError:
        logging.error("[IMPORT] Unauthorized: check the API token")
        raise
    finally:
        clients.catalog.flush_cache()
        logging.info(f"[IGDB] Cache stats: {clients.catalog.format_cache_stats()}")
        if clients.translator is not None:
            logging.info(f"[TRANSLATE] Cache stats: {clients.translator.format_cache_stats()}")
        logging.info(f"[LIBRARY] Request stats: {clients.library.format_cache_stats()}")

    output_dir.mkdir(parents=True, exist_ok=True)
    artifacts = write_import_artifacts(output_dir, report.results, report.unmatched)
    logging.info(f"✔ Import completed: {report.summary()} dry_run={str(settings.dry_run).lower()}")
    logging.info(f"[FILES] {artifacts.results_json}")
    logging.info(f"[FILES] {artifacts.unmatched_json}")
    return report, artifacts
