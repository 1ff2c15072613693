"""Business logic: ingestion, collection lifecycle, sync, search and reranking."""
