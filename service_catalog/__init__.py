"""Catalog Gateway service."""
