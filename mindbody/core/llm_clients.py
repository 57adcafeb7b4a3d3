# ═══════════════════════════════════════════════════════════════════════════════
# NARRATIVE SERVICE CLIENTS
# Design: A3 (ML Integration) + I1 (Systems Architect)
# Implementation: I4 (Integration)
# ═══════════════════════════════════════════════════════════════════════════════

"""
A3: "The agent needs a voice, but the voice is someone else's service. Any
chat-completion endpoint plugs in behind one method."

I1: "ABC for the contract, an HTTP client for OpenAI-compatible endpoints,
Claude as an alternative, and a mock client for testing without a network.
Every failure comes out as one exception family so callers can fall back."
"""

from __future__ import annotations

import hashlib
import logging
import os
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import numpy as np

logger = logging.getLogger(__name__)

Message = Dict[str, str]  # {"role": "system"|"user"|"assistant", "content": ...}

DEFAULT_ENDPOINT = "http://localhost:8000/v1/chat/completions"
DEFAULT_MODEL = "QuantTrio/DeepSeek-V3.2-AWQ"


# ── Exceptions ───────────────────────────────────────────────────────────────


class NarrativeServiceError(Exception):
    """Base class for narrative service failures."""
    pass


class NarrativeHTTPError(NarrativeServiceError):
    """Raised on transport errors and non-2xx responses."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NarrativeResponseError(NarrativeServiceError):
    """Raised when the response body is not a usable chat completion."""
    pass


# ── Clients ──────────────────────────────────────────────────────────────────


class LLMClient(ABC):
    """Abstract narrative-generation client."""

    @abstractmethod
    def complete(
        self,
        messages: List[Message],
        temperature: float = 0.8,
        max_tokens: int = 300,
    ) -> str:
        """
        Generate a completion.

        Args:
            messages: Full conversation, system prompt included, as
                {"role": ..., "content": ...} dicts.
            temperature: Sampling temperature.
            max_tokens: Maximum tokens in the response.

        Raises:
            NarrativeServiceError: on any failure.
        """


class ChatCompletionClient(LLMClient):
    """
    OpenAI-compatible chat-completion endpoint over HTTP.

    Request:  {model, messages, temperature, max_tokens}
    Response: {choices: [{message: {content}}]}
    """

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        model: str = DEFAULT_MODEL,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.endpoint = endpoint
        self.model = model
        self.api_key = api_key
        self.timeout = timeout

    @classmethod
    def from_env(cls) -> ChatCompletionClient:
        """Build from MINDBODY_LLM_ENDPOINT / _MODEL / _API_KEY."""
        return cls(
            endpoint=os.environ.get("MINDBODY_LLM_ENDPOINT", DEFAULT_ENDPOINT),
            model=os.environ.get("MINDBODY_LLM_MODEL", DEFAULT_MODEL),
            api_key=os.environ.get("MINDBODY_LLM_API_KEY") or None,
        )

    def complete(
        self,
        messages: List[Message],
        temperature: float = 0.8,
        max_tokens: int = 300,
    ) -> str:
        import requests

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        logger.debug("Calling %s with model=%s", self.endpoint, self.model)
        try:
            response = requests.post(
                self.endpoint,
                headers=headers,
                json={
                    "model": self.model,
                    "messages": messages,
                    "temperature": temperature,
                    "max_tokens": max_tokens,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise NarrativeHTTPError(f"Request to {self.endpoint} failed: {exc}") from exc

        if not response.ok:
            raise NarrativeHTTPError(
                f"Narrative request failed ({response.status_code}): {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise NarrativeResponseError(f"Malformed chat completion: {exc}") from exc
        if not isinstance(content, str):
            raise NarrativeResponseError("Chat completion content is not text")

        content = content.strip()
        logger.debug("Response received: %s", content[:80])
        return content


class ClaudeClient(LLMClient):
    """
    Anthropic Claude client.

    Requires: pip install anthropic
    """

    def __init__(self, api_key: Optional[str] = None, model: str = "claude-sonnet-4-20250514"):
        try:
            from anthropic import Anthropic
        except ImportError as exc:
            raise ImportError(
                "anthropic package required: pip install anthropic"
            ) from exc

        self.client = Anthropic(api_key=api_key)
        self.model = model

    def complete(
        self,
        messages: List[Message],
        temperature: float = 0.8,
        max_tokens: int = 300,
    ) -> str:
        import anthropic

        # Claude takes the system prompt separately
        system_prompt = "\n\n".join(
            m["content"] for m in messages if m["role"] == "system"
        )
        api_messages = [
            {"role": m["role"], "content": m["content"]}
            for m in messages
            if m["role"] != "system"
        ]

        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system_prompt,
                messages=api_messages,
            )
        except anthropic.APIError as exc:
            raise NarrativeHTTPError(f"Claude request failed: {exc}") from exc

        try:
            return response.content[0].text.strip()
        except (AttributeError, IndexError) as exc:
            raise NarrativeResponseError(f"Malformed Claude response: {exc}") from exc


class MockLLMClient(LLMClient):
    """
    Mock client for testing without a network.

    - Scripted responses (if given) are returned first, in order.
    - After that, complete() returns deterministic text based on input hash.
    - All calls are recorded for test inspection.
    """

    def __init__(self, responses: Optional[List[str]] = None):
        self.responses = list(responses or [])
        self.call_log: list = []

    def complete(
        self,
        messages: List[Message],
        temperature: float = 0.8,
        max_tokens: int = 300,
    ) -> str:
        self.call_log.append({
            "method": "complete",
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })

        if self.responses:
            return self.responses.pop(0)

        hash_input = "|".join(m["content"] for m in messages)
        seed = int(hashlib.sha256(hash_input.encode()).hexdigest()[:8], 16)
        word_count = max(5, min(max_tokens // 20, 20))
        rng = np.random.RandomState(seed % (2**31))

        words = [
            "something", "moves", "at", "the", "edge", "of", "awareness",
            "the", "body", "remembers", "tension", "settles", "again",
            "watching", "waiting", "still", "here", "breathing", "slowly",
            "familiar", "strange", "closer", "quiet",
        ]
        response_words = [words[rng.randint(len(words))] for _ in range(word_count)]
        return " ".join(response_words).capitalize() + "."
