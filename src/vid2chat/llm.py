"""
Completion provider backed by the OpenAI chat completions API.
"""

from __future__ import annotations

import logging
import os
from typing import List, Dict, Optional, Sequence

from openai import AsyncOpenAI
from openai import APIError, APITimeoutError, RateLimitError

from vid2chat.collaborators import Message
from vid2chat.errors import CollaboratorFailure, CollaboratorTimeout

logger = logging.getLogger(__name__)

SERVICE_NAME = "openai"


class OpenAICompletionProvider:
    """Turns (system prompt, history, user text) into one assistant reply."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        max_tokens: Optional[int] = 500,
        temperature: float = 0.7,
        timeout: float = 30.0,
        max_retries: int = 2,
        client: Optional[AsyncOpenAI] = None,
    ):
        """
        Initialize the provider.
        If api_key is not provided, it is read from the OPENAI_API_KEY environment variable.
        """
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout
        if client is not None:
            self.client = client
            return

        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ValueError(
                "OpenAI API key required. Set OPENAI_API_KEY environment variable "
                "or pass api_key parameter."
            )
        self.client = AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=max_retries)

    @staticmethod
    def build_messages(
        system_prompt: str, history: Sequence[Message], user_text: str
    ) -> List[Dict[str, str]]:
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend(m.to_dict() for m in history)
        messages.append({"role": "user", "content": user_text})
        return messages

    async def complete(
        self, system_prompt: str, history: Sequence[Message], user_text: str
    ) -> str:
        messages = self.build_messages(system_prompt, history, user_text)
        kwargs = {"model": self.model, "messages": messages, "temperature": self.temperature}
        if self.max_tokens:
            kwargs["max_tokens"] = self.max_tokens

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except APITimeoutError:
            raise CollaboratorTimeout(SERVICE_NAME, self.timeout)
        except RateLimitError as e:
            logger.warning("OpenAI rate limited the request: %s", e)
            raise CollaboratorFailure(
                SERVICE_NAME, f"OpenAI rate limit: {e}", code="RATE_LIMITED"
            )
        except APIError as e:
            logger.error("OpenAI request failed: %s", e)
            raise CollaboratorFailure(SERVICE_NAME, f"OpenAI request failed: {e}")

        if not response.choices or response.choices[0].message.content is None:
            raise CollaboratorFailure(SERVICE_NAME, "OpenAI returned an empty completion")

        usage = getattr(response, "usage", None)
        if usage:
            logger.debug(
                "Completion used %d prompt / %d completion tokens",
                usage.prompt_tokens, usage.completion_tokens,
            )
        return response.choices[0].message.content.strip()
