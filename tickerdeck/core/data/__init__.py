"""Data access layer: schema, storage, providers and ingestion."""
