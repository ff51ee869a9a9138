"""Persistence helpers for chunk and document status transitions."""
