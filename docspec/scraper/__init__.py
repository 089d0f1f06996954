# Docspec Scraper Module
# Endpoint discovery, extraction, synthesis and judging

from .models import (
    EndpointDescriptor, Endpoint, Parameter, Example,
    ExtractionResult, SynthesisResult, JudgeResult, Recommendation,
)

__all__ = [
    'EndpointDescriptor',
    'Endpoint',
    'Parameter',
    'Example',
    'ExtractionResult',
    'SynthesisResult',
    'JudgeResult',
    'Recommendation',
]
