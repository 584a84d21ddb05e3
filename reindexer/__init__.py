"""Fulltext reindexing service for the document repository."""
