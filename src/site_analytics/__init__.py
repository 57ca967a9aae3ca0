"""
Site Analytics - event ingestion and processing pipeline.

Events are accepted over HTTP, buffered in a Redis list and persisted to
PostgreSQL by a background worker for later aggregation.
"""

__version__ = "1.0.0"
__author__ = "Site Analytics Team"
