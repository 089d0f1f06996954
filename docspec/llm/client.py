"""
Docspec - LLM Oracle Client

Async client for an OpenAI-compatible chat completion endpoint.

Every pipeline stage talks to the oracle through one call:

    async with OracleClient(api_token=token) as oracle:
        text = await oracle.complete(system_prompt, user_prompt)

Gateways disagree on where the completion text lives, so the response body
is decoded by trying a fixed sequence of shapes (see decode_completion).
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx

from docspec.core.config import Settings, get_settings
from docspec.core.errors import OracleError
from docspec.core.metrics import record_oracle_call
from docspec.core.retry_config import ORACLE_RETRY, build_retrying, with_overrides

logger = logging.getLogger(__name__)


class ResponseShape(str, Enum):
    """Where the completion text was found in the response body."""
    CHAT_CHOICES = "chat_choices"    # {"choices": [{"message": {"content": ...}}]}
    FLAT_CONTENT = "flat_content"    # {"content": ...}
    FLAT_RESPONSE = "flat_response"  # {"response": ...}
    PLAIN_STRING = "plain_string"    # "..."
    RAW = "raw"                      # anything else, returned verbatim


@dataclass
class Completion:
    text: str
    shape: ResponseShape
    finish_reason: Optional[str] = None
    usage: Optional[Dict[str, Any]] = None


def _from_choices(data: Any) -> Optional[str]:
    if isinstance(data, dict):
        choices = data.get("choices")
        if isinstance(choices, list) and choices:
            message = choices[0].get("message") if isinstance(choices[0], dict) else None
            if isinstance(message, dict) and isinstance(message.get("content"), str):
                return message["content"]
    return None


def _from_key(key: str) -> Callable[[Any], Optional[str]]:
    def decode(data: Any) -> Optional[str]:
        if isinstance(data, dict) and isinstance(data.get(key), str):
            return data[key]
        return None
    return decode


def _from_plain_string(data: Any) -> Optional[str]:
    return data if isinstance(data, str) else None


_DECODERS: List[Tuple[ResponseShape, Callable[[Any], Optional[str]]]] = [
    (ResponseShape.CHAT_CHOICES, _from_choices),
    (ResponseShape.FLAT_CONTENT, _from_key("content")),
    (ResponseShape.FLAT_RESPONSE, _from_key("response")),
    (ResponseShape.PLAIN_STRING, _from_plain_string),
]


def decode_completion(body: str) -> Completion:
    """
    Decode a response body into completion text.

    Tries each known shape in order and falls back to the raw body.
    Never raises.
    """
    try:
        data = json.loads(body)
    except ValueError:
        return Completion(text=body, shape=ResponseShape.RAW)

    finish_reason = None
    usage = None
    if isinstance(data, dict):
        usage = data.get("usage") if isinstance(data.get("usage"), dict) else None
        choices = data.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            finish_reason = choices[0].get("finish_reason")
        finish_reason = finish_reason or data.get("finish_reason")

    for shape, decoder in _DECODERS:
        text = decoder(data)
        if text is not None:
            return Completion(text=text, shape=shape, finish_reason=finish_reason, usage=usage)

    return Completion(text=body, shape=ResponseShape.RAW, finish_reason=finish_reason, usage=usage)


class OracleClient:
    """
    Chat completion client with bounded retries.

    Args:
        api_token: Bearer token; defaults to the configured LLM_API_TOKEN
        settings: Settings override (tests)
        transport: httpx transport override (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        api_token: Optional[str] = None,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self.api_token = api_token or self.settings.llm_api_token
        self.url = self.settings.llm_api_url
        self.model = self.settings.llm_model
        self.retry_policy = with_overrides(
            ORACLE_RETRY,
            self.settings.llm_max_attempts,
            self.settings.llm_retry_backoff_seconds,
        )
        self._client = httpx.AsyncClient(
            transport=transport,
            timeout=self.settings.llm_timeout_seconds,
        )

    async def __aenter__(self) -> "OracleClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Send one system+user prompt pair and return the completion text.

        Args:
            system_prompt: Instructions for the oracle
            user_prompt: The task content
            timeout: Per-call timeout in seconds (defaults to settings)

        Raises:
            OracleError: No token configured, or every attempt failed
        """
        if not self.api_token:
            raise OracleError("DSPC-3004")

        payload = {
            "model": self.model,
            "temperature": self.settings.llm_temperature,
            "top_p": self.settings.llm_top_p,
            "max_tokens": self.settings.llm_max_tokens,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        call_timeout = timeout or self.settings.llm_timeout_seconds

        async for attempt in build_retrying(self.retry_policy, retry_on=(OracleError,)):
            with attempt:
                number = attempt.retry_state.attempt_number
                if number > 1:
                    record_oracle_call("retry")
                    logger.warning(
                        "Retrying LLM request (attempt %d/%d)", number, self.retry_policy.maximum_attempts
                    )
                try:
                    completion = await self._send(payload, call_timeout)
                except OracleError:
                    if number >= self.retry_policy.maximum_attempts:
                        record_oracle_call("failure")
                    raise

        record_oracle_call("success")
        return completion.text

    async def _send(self, payload: Dict[str, Any], timeout: float) -> Completion:
        try:
            response = await self._client.post(
                self.url,
                headers={
                    "Authorization": f"Bearer {self.api_token}",
                    "Content-Type": "application/json",
                },
                json=payload,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise OracleError("DSPC-3003", reason=f"timed out after {timeout:.0f}s") from e
        except httpx.HTTPError as e:
            raise OracleError("DSPC-3003", reason=str(e) or type(e).__name__) from e

        if not response.is_success:
            raise OracleError(
                "DSPC-3002",
                status=response.status_code,
                details={"body": response.text[:500]},
            )

        completion = decode_completion(response.text)

        if completion.finish_reason == "length":
            logger.warning("LLM response was truncated at max_tokens=%d", payload["max_tokens"])
        if completion.usage:
            logger.debug("LLM token usage: %s", completion.usage)
        if not completion.text.strip():
            raise OracleError("DSPC-3005")

        logger.debug("LLM response decoded as %s (%d chars)", completion.shape.value, len(completion.text))
        return completion
