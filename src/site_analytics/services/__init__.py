"""
Services package for Site Analytics.

Contains the two processes of the pipeline:
- ingest_api: HTTP ingestion and statistics endpoints
- event_worker: Redis queue to PostgreSQL persistence loop
"""
