"""
Generative Completion Client
============================
Asks an Anthropic-compatible messages endpoint to fill in missing catalog
fields and returns its JSON answer.

Environment Variables (read through EngineConfig.from_env):
- COMPLETION_API_KEY: API key sent as x-api-key
- COMPLETION_API_URL: Messages endpoint (defaults to the Anthropic API)
- COMPLETION_MODEL: Model name

Failures raise ExternalServiceError subclasses. The client never retries;
the enrichment flow records the failure and moves on to the next app.

Usage:
    from appcatalog.enrichment.client import CompletionClient

    client = CompletionClient.from_config(EngineConfig.from_env())
    fields = client.complete_fields(prompt)
"""

import json
import logging
import re
from typing import Any, Dict, Optional

import httpx

from appcatalog.shared.config import DEFAULT_COMPLETION_MODEL, DEFAULT_COMPLETION_URL, EngineConfig
from appcatalog.shared.errors import (
    CompletionAuthError,
    CompletionRateLimitError,
    CompletionResponseError,
    ExternalServiceError,
)

logger = logging.getLogger(__name__)


ANTHROPIC_VERSION = "2023-06-01"

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class CompletionClient:
    """
    Messages API client.

    Features:
    - Structured error handling (auth, rate limit, API, parse)
    - JSON object extraction from free-text answers
    - Injectable httpx transport for tests
    """

    DEFAULT_TIMEOUT = 30.0
    MAX_TOKENS = 600

    def __init__(
        self,
        api_key: str,
        api_url: str = DEFAULT_COMPLETION_URL,
        model: str = DEFAULT_COMPLETION_MODEL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.model = model
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_config(cls, config: EngineConfig, **kwargs) -> "CompletionClient":
        """Raises ConfigurationError when no API key is configured."""
        return cls(
            api_key=config.require_completion_api_key(),
            api_url=config.completion_api_url,
            model=config.completion_model,
            **kwargs,
        )

    def _get_headers(self) -> Dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }

    def _handle_response(self, response: httpx.Response) -> Dict[str, Any]:
        """Return the response JSON or raise the matching error."""
        if 200 <= response.status_code < 300:
            try:
                return response.json()
            except json.JSONDecodeError:
                raise CompletionResponseError(
                    "Completion API returned non-JSON body",
                    status_code=response.status_code,
                    response_body=response.text[:200],
                )

        try:
            error_body = response.json() if response.content else {}
        except json.JSONDecodeError:
            error_body = {"raw": response.text[:200]}

        if response.status_code in (401, 403):
            raise CompletionAuthError(
                f"Completion API authentication failed ({response.status_code})",
                status_code=response.status_code,
                response_body=error_body,
            )

        if response.status_code == 429:
            retry_after = response.headers.get("retry-after")
            try:
                retry_after_seconds = float(retry_after) if retry_after else None
            except ValueError:
                retry_after_seconds = None
            raise CompletionRateLimitError(
                "Completion API rate limit exceeded",
                retry_after=retry_after_seconds,
                status_code=429,
                response_body=error_body,
            )

        raise ExternalServiceError(
            f"Completion API error ({response.status_code})",
            status_code=response.status_code,
            response_body=error_body,
        )

    def complete(self, prompt: str) -> str:
        """Send one user message and return the first text block."""
        payload = {
            "model": self.model,
            "max_tokens": self.MAX_TOKENS,
            "messages": [{
                "role": "user",
                "content": [{"type": "text", "text": prompt}],
            }],
        }

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(self.api_url, headers=self._get_headers(), json=payload)
        except httpx.TimeoutException:
            raise ExternalServiceError("Completion API request timed out")
        except httpx.RequestError as e:
            raise ExternalServiceError(f"Completion API request failed: {str(e)}")

        body = self._handle_response(response)
        content = body.get("content") or []
        if not content or not isinstance(content[0], dict) or "text" not in content[0]:
            raise CompletionResponseError("No content in completion response", response_body=body)
        return str(content[0]["text"]).strip()

    def complete_fields(self, prompt: str) -> Dict[str, Any]:
        """
        Send a prompt that asks for a JSON object and parse the answer.

        Raises:
            CompletionResponseError: no JSON object in the answer, or it does not parse
        """
        text = self.complete(prompt)
        match = _JSON_OBJECT.search(text)
        if not match:
            raise CompletionResponseError("No JSON in completion response", response_body=text[:200])
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise CompletionResponseError(f"JSON parse error: {e}", response_body=match.group(0)[:200])
        if not isinstance(data, dict):
            raise CompletionResponseError("Completion JSON is not an object", response_body=match.group(0)[:200])
        return data
