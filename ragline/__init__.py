"""ragline: document ingestion and retrieval pipeline for RAG indexes."""

__version__ = "0.1.0"
