"""
Serving — FastAPI application for collection ingestion and chat.

Run locally with ``python -m rag_collections.serving``.
"""
