# lfs_ingest/__init__.py
"""Floorball league (floorball.lv) ingestion jobs for the fantasy app datastore."""

__version__ = "0.3.0"
