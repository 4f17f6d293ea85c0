from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from pagegen.config import DEFAULT_MODEL, OPENROUTER_ENDPOINT, Settings
from pagegen.errors import (
    ConfigurationError,
    EmptyContentError,
    InvalidJsonError,
    InvalidResponseShapeError,
    UpstreamError,
)

log = logging.getLogger(__name__)

OutputMode = Literal["text", "json"]

_ERROR_PREVIEW_CHARS = 400


class Message(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: Optional[str] = None
    content: Any = None


class CompletionChoice(BaseModel):
    model_config = ConfigDict(extra="allow")

    message: Optional[Message] = None
    finish_reason: Any = None
    index: Any = None


class CompletionResponse(BaseModel):
    """Chat-completion envelope.

    Only presence is enforced: ``choices`` must be a list and ``id``,
    ``created``, ``model`` and ``usage`` must exist, with any value.
    Individual choices are read leniently by ``first_content``.
    """

    model_config = ConfigDict(extra="allow")

    id: Any
    created: Any
    model: Any
    choices: List[Any]
    usage: Any

    def first_content(self) -> Optional[str]:
        if not self.choices:
            return None
        try:
            choice = CompletionChoice.model_validate(self.choices[0])
        except ValidationError:
            return None
        if choice.message is None or not isinstance(choice.message.content, str):
            return None
        return choice.message.content


@dataclass(frozen=True)
class Ok:
    value: CompletionResponse


@dataclass(frozen=True)
class Err:
    error: InvalidResponseShapeError


ParseResult = Union[Ok, Err]


def parse_completion(data: Any) -> ParseResult:
    """Validate a decoded chat-completion body without raising."""
    if not isinstance(data, dict):
        return Err(InvalidResponseShapeError("invalid response format from open router api: body is not an object"))
    try:
        return Ok(CompletionResponse.model_validate(data))
    except ValidationError as exc:
        fields = sorted({".".join(str(p) for p in e["loc"]) for e in exc.errors()})
        return Err(
            InvalidResponseShapeError(
                f"invalid response format from open router api: bad fields {', '.join(fields)}"
            )
        )


def _error_payload(resp: httpx.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return resp.text[:_ERROR_PREVIEW_CHARS]


class CompletionClient:
    """Single-attempt client for an OpenAI-style chat-completions endpoint (OpenRouter)."""

    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_MODEL,
        endpoint: str = OPENROUTER_ENDPOINT,
        providers: Optional[List[str]] = None,
        timeout: float = 255.0,
        http_client: Optional[httpx.AsyncClient] = None,
        title: str = "pagegen",
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.endpoint = endpoint
        self.providers = list(providers or [])
        self.timeout = timeout
        self.title = title
        self._http = http_client
        self._owns_http = http_client is None

    @classmethod
    def from_settings(cls, settings: Settings) -> "CompletionClient":
        return cls(
            api_key=settings.openrouter_api_key,
            model=settings.openrouter_model,
            endpoint=settings.openrouter_endpoint,
            providers=settings.openrouter_providers,
            timeout=settings.llm_timeout_secs,
        )

    def status(self) -> Dict[str, Any]:
        return {
            "provider": "openrouter",
            "model": self.model,
            "providers": list(self.providers),
            "has_token": bool(self.api_key),
        }

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
            self._owns_http = True
        return self._http

    async def aclose(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    def _build_body(self, system_prompt: str, user_prompt: str, model: str) -> Dict[str, Any]:
        messages = [
            Message(role="system", content=system_prompt),
            Message(role="user", content=user_prompt),
        ]
        body: Dict[str, Any] = {
            "model": model,
            "messages": [m.model_dump() for m in messages],
        }
        if self.providers:
            body["provider"] = {"only": list(self.providers)}
        return body

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        output_mode: OutputMode = "text",
        model: Optional[str] = None,
    ) -> str:
        """Send one system + user conversation and return the generated text.

        In "json" mode the content must parse as JSON and is returned
        re-serialized in compact form. No retries: one request per call.
        """
        if output_mode not in ("text", "json"):
            raise ValueError(f"unknown output mode: {output_mode!r}")
        if not self.api_key:
            raise ConfigurationError("OPENROUTER_API_KEY environment variable is not set")

        model = model or self.model
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": self.title,
        }
        body = self._build_body(system_prompt, user_prompt, model)

        start = time.perf_counter()
        try:
            resp = await self._client().post(self.endpoint, headers=headers, json=body)
        except httpx.HTTPError as exc:
            log.warning("llm.complete transport error model=%s: %r", model, exc)
            raise UpstreamError(f"open router request failed: {exc!r}") from exc
        dur_ms = int((time.perf_counter() - start) * 1000)
        log.info("llm.complete model=%s status=%s ms=%d", model, resp.status_code, dur_ms)

        if not resp.is_success:
            payload = _error_payload(resp)
            log.warning("llm.complete HTTP %s: %s", resp.status_code, payload)
            raise UpstreamError(
                f"open router api error (HTTP {resp.status_code}): {payload}",
                status_code=resp.status_code,
                payload=payload,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise InvalidResponseShapeError("invalid response format from open router api: body is not JSON") from exc

        result = parse_completion(data)
        if isinstance(result, Err):
            raise result.error

        content = result.value.first_content()
        if not content:
            raise EmptyContentError("no content in response from open router api")

        if output_mode == "json":
            try:
                parsed = json.loads(content)
            except ValueError as exc:
                raise InvalidJsonError(f"invalid json response from api: {exc}") from exc
            return json.dumps(parsed, separators=(",", ":"), ensure_ascii=False)

        return content
