"""
Generative model client (Claude) and helpers for reading its free-text output.
"""
import json
from typing import Any, Callable, Iterator, Optional

import structlog
from anthropic import APIError, AsyncAnthropic

from newsfilter.config import Settings, get_settings
from newsfilter.errors import MissingCredentialError, ModelCallError
from newsfilter.models.database import Database
from newsfilter.repositories import settings as settings_repo

logger = structlog.get_logger(__name__)

API_KEY_SETTING = "anthropic_api_key"
MODEL_SETTING = "claude_model"


class ModelClient:
    """
    Single-turn prompt-in / text-out access to Claude.

    The API key and model are looked up in the app settings table first,
    then in the environment configuration. No call is retried.
    """

    def __init__(
        self,
        database: Database,
        settings: Optional[Settings] = None,
        client_factory: Optional[Callable[[str], Any]] = None,
    ):
        self.database = database
        self.settings = settings or get_settings()
        self._client_factory = client_factory or self._default_client

    def _default_client(self, api_key: str) -> AsyncAnthropic:
        return AsyncAnthropic(
            api_key=api_key,
            timeout=self.settings.model_timeout_seconds,
            max_retries=0,
        )

    async def resolve_api_key(self) -> str:
        """Return a usable API key or raise MissingCredentialError."""
        async with self.database.async_session() as session:
            stored = await settings_repo.get_setting_value(session, API_KEY_SETTING)
        api_key = (stored or self.settings.anthropic_api_key or "").strip()
        if not api_key:
            raise MissingCredentialError()
        return api_key

    async def resolve_model(self) -> str:
        async with self.database.async_session() as session:
            stored = await settings_repo.get_setting_value(session, MODEL_SETTING)
        return (stored or "").strip() or self.settings.claude_model

    async def complete(self, prompt: str) -> str:
        """Send one user message and return the first text block."""
        api_key = await self.resolve_api_key()
        model = await self.resolve_model()
        client = self._client_factory(api_key)

        try:
            response = await client.messages.create(
                model=model,
                max_tokens=self.settings.model_max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except APIError as e:
            logger.error("Model call failed", model=model, error=str(e))
            raise ModelCallError(f"Anthropic API error: {e}") from e

        text = ""
        if response.content and getattr(response.content[0], "type", None) == "text":
            text = response.content[0].text
        if not text:
            raise ModelCallError("Empty response from model")
        return text


def _array_end(text: str, start: int) -> Optional[int]:
    """
    Index just past the ']' that closes the '[' at `start`, or None if it
    is never closed. Brackets inside JSON strings are ignored.
    """
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0:
                return i + 1
    return None


def find_json_arrays(text: str) -> Iterator[str]:
    """
    Yield balanced top-level bracket spans of `text` from left to right.

    A '[' that is never closed is passed over and the scan resumes at the
    next '['. After a balanced span the scan resumes past its end.
    """
    start = text.find("[")
    while start != -1:
        end = _array_end(text, start)
        if end is None:
            start = text.find("[", start + 1)
            continue
        yield text[start:end]
        start = text.find("[", end)


def extract_json_array(text: str) -> list:
    """
    Two-stage parse of a model response: locate an array, then strict-parse it.

    Prose around the array may itself contain brackets, so every candidate
    span is tried in order. The first array of objects wins; failing that,
    the first array that parses at all.
    Raises ValueError when no array is present or none is valid JSON.
    """
    text = text or ""
    first_invalid = None
    first_parsed = None
    for candidate in find_json_arrays(text):
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            if first_invalid is None:
                first_invalid = candidate
            continue
        if parsed and all(isinstance(item, dict) for item in parsed):
            return parsed
        if first_parsed is None:
            first_parsed = parsed

    if first_parsed is not None:
        return first_parsed
    if first_invalid is None:
        raise ValueError(f"No JSON array in response: {text[:200]}")
    raise ValueError(f"Invalid JSON in response: {first_invalid[:200]}")
