import inspect
import types

import pytest

from docspec.core import metrics as metrics_module
from docspec.core.config import Settings


@pytest.fixture
def settings():
    """Settings isolated from the environment, with no retry backoff."""
    return Settings(
        _env_file=None,
        llm_api_token="test-token",
        llm_api_url="https://llm.test/v1/chat/completions",
        llm_retry_backoff_seconds=0,
        job_workers=2,
        job_sweep_interval_seconds=3600,
        metrics_mode="off",
    )


@pytest.fixture(autouse=True)
def _reset_metrics():
    yield
    metrics_module.reset_metrics()


# HTTP must be faked with httpx.MockTransport, never by patching httpx itself
_FORBIDDEN_PREFIXES = [
    "httpx.",
]


@pytest.hookimpl(tryfirst=True, hookwrapper=True)
def pytest_runtest_call(item):
    # Wrap the monkeypatch fixture (if used) so forbidden targets are rejected
    mp = item.funcargs.get("monkeypatch") if hasattr(item, "funcargs") else None
    if mp:
        original_setattr = mp.setattr

        def guarded_setattr(target, *args, **kw):
            fq = None
            if isinstance(target, str):
                fq = target
            elif isinstance(target, types.ModuleType) and args:
                fq = f"{target.__name__}.{args[0]}"
            elif inspect.isclass(target) and args:
                fq = f"{target.__module__}.{target.__name__}.{args[0]}"
            if fq and any(fq.startswith(p) for p in _FORBIDDEN_PREFIXES):
                raise RuntimeError(f"Forbidden monkeypatch of core real dependency: {fq}")
            return original_setattr(target, *args, **kw)

        mp.setattr = guarded_setattr  # type: ignore
    yield
