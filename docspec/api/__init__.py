"""Docspec REST API."""
