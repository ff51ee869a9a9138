"""
Knowledge base ingestion pipeline.

Turns raw documents into embedded, retrievable chunks through independently
invoked stages: chunking, embedding, visual enrichment, reconciliation, and
the batch job queue.
"""

__version__ = "0.1.0"
