# Docspec LLM Module
# Oracle client and prompt templates

from .client import OracleClient, Completion, ResponseShape, decode_completion

__all__ = [
    'OracleClient',
    'Completion',
    'ResponseShape',
    'decode_completion',
]
