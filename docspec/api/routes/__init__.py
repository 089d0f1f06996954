"""Docspec API route modules."""
