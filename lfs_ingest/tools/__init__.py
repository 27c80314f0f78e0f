# lfs_ingest/tools/__init__.py
"""
Command line entry points - one module per ingestion job
"""
