"""Persistence layer: SQLAlchemy models standing in for the document store."""
