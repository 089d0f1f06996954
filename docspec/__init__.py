"""
Docspec v1.0.0 - API Documentation to OpenAPI Synthesis

Discovers endpoints in unstructured API documentation, extracts their
details and synthesizes an OpenAPI 3.0 specification with an LLM oracle.
"""

__version__ = "1.0.0"
__author__ = "SomaTech"
