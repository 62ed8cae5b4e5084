"""
Model Gateway

Builds the upstream prompt for a snapshot, calls the configured provider and
normalizes every failure into one of two errors:

- UpstreamTransportError: network, HTTP status or timeout problems (outage)
- UpstreamFormatError: the model answered but not with a JSON object (drift)

Providers:
- OpenAI chat completions with JSON mode (default, gpt-4o-mini)
- Anthropic messages API (alternate)
"""

import json
import asyncio
import logging
import time as _time
from typing import Any, Dict, Optional

import anthropic
import openai

from straightshot.config import ModelConfig, MODEL
from straightshot.pipeline.prompts import SYSTEM_PROMPT, build_user_prompt
from straightshot.services.exceptions import (
    MissingAPIKeyError,
    UpstreamFormatError,
    UpstreamTransportError,
)
from straightshot.services.response_wrapper import sanitize_json_response
from straightshot.utils.fingerprint import SnapshotLike

logger = logging.getLogger(__name__)


def parse_model_json(text: str, provider: str) -> Dict[str, Any]:
    """Parse model text into a JSON object, cleaning it up only if needed."""
    if not text or not text.strip():
        raise UpstreamFormatError("Empty model response", provider=provider, raw=text or "")

    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        cleaned = sanitize_json_response(text)
        try:
            parsed = json.loads(cleaned)
        except (json.JSONDecodeError, ValueError) as e:
            raise UpstreamFormatError(provider=provider, raw=text, cause=e)

    if not isinstance(parsed, dict):
        raise UpstreamFormatError(
            "Model response is not a JSON object", provider=provider, raw=text
        )
    return parsed


class ModelGateway:
    """
    Single entry point to the upstream language model.

    Usage:
        gateway = ModelGateway(openai_client=create_openai_client(key))
        raw = await gateway.analyze(snapshot)
    """

    def __init__(
        self,
        config: Optional[ModelConfig] = None,
        openai_client=None,
        anthropic_client=None,
    ):
        self.config = config or MODEL
        self.openai_client = openai_client
        self.anthropic_client = anthropic_client
        self.stats = {
            "calls": 0,
            "transport_errors": 0,
            "format_errors": 0,
        }

    @property
    def provider(self) -> str:
        return self.config.provider

    def ensure_configured(self) -> None:
        """Raise MissingAPIKeyError if the active provider has no client."""
        if self.provider == "anthropic":
            if self.anthropic_client is None:
                raise MissingAPIKeyError("anthropic")
        elif self.openai_client is None:
            raise MissingAPIKeyError("openai")

    async def analyze(self, snapshot: SnapshotLike) -> Dict[str, Any]:
        """
        Ask the model for an analysis of snapshot.

        Returns:
            The parsed (not yet coerced) JSON object from the model
        """
        self.ensure_configured()
        prompt = build_user_prompt(snapshot)
        self.stats["calls"] += 1
        _start = _time.time()

        try:
            if self.provider == "anthropic":
                text = await asyncio.wait_for(self._call_anthropic(prompt), timeout=self.config.timeout)
            else:
                text = await asyncio.wait_for(self._call_openai(prompt), timeout=self.config.timeout)
        except asyncio.TimeoutError as e:
            self.stats["transport_errors"] += 1
            logger.error(f"[GATEWAY] {self.provider} timed out after {self.config.timeout:.0f}s")
            raise UpstreamTransportError(
                f"{self.provider} request timed out", provider=self.provider, cause=e
            )
        except UpstreamTransportError:
            self.stats["transport_errors"] += 1
            raise

        logger.info(f"[GATEWAY] {self.provider} answered in {(_time.time() - _start) * 1000:.0f}ms")

        try:
            return parse_model_json(text, self.provider)
        except UpstreamFormatError as e:
            self.stats["format_errors"] += 1
            logger.error(f"[GATEWAY] {e.message}: {str(text)[:200]!r}")
            raise

    async def _call_openai(self, prompt: str) -> str:
        try:
            response = await self.openai_client.chat.completions.create(
                model=self.config.openai_model,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
            )
        except openai.APIStatusError as e:
            raise UpstreamTransportError(
                "OpenAI error",
                provider="openai",
                status_code=e.status_code,
                body=getattr(e.response, "text", None) or str(e),
                cause=e,
            )
        except openai.APIError as e:
            raise UpstreamTransportError("OpenAI request failed", provider="openai", cause=e)

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def _call_anthropic(self, prompt: str) -> str:
        try:
            response = await self.anthropic_client.messages.create(
                model=self.config.anthropic_model,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIStatusError as e:
            raise UpstreamTransportError(
                "Anthropic error",
                provider="anthropic",
                status_code=e.status_code,
                body=getattr(e.response, "text", None) or str(e),
                cause=e,
            )
        except anthropic.APIError as e:
            raise UpstreamTransportError("Anthropic request failed", provider="anthropic", cause=e)

        return "".join(
            getattr(block, "text", "") for block in response.content
            if getattr(block, "type", None) == "text"
        )

    def get_stats(self) -> Dict[str, Any]:
        return {"provider": self.provider, **self.stats}
