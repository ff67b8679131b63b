"""WP Game Sync - Reconcile legacy WordPress game reviews against the IGDB catalog."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("wp-game-sync")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.1.0"
