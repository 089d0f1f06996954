"""Docspec Core Package."""
from .config import Settings, get_settings
from .errors import (
    DocspecError, FetchError, OracleError, ParseError,
    SynthesisError, JudgeError, JobStateError, JobNotFoundError,
)
from .metrics import (
    init_metrics, get_mode, is_enabled,
    record_job, record_duration, record_oracle_call,
)

__all__ = [
    "Settings", "get_settings",
    "DocspecError", "FetchError", "OracleError", "ParseError",
    "SynthesisError", "JudgeError", "JobStateError", "JobNotFoundError",
    "init_metrics", "get_mode", "is_enabled",
    "record_job", "record_duration", "record_oracle_call",
]
