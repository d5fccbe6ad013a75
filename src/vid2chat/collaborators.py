"""
Interfaces of the external systems vid2chat talks to, plus the timeout guard
every call to them goes through.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, List, Optional, Protocol, Sequence, TypeVar

from vid2chat.chunk import TranscriptItem
from vid2chat.errors import CollaboratorTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Message:
    role: str  # "system", "user" or "assistant"
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class MediaItem:
    id: str
    title: str
    description: str = ""
    thumbnail_url: str = ""
    channel_title: str = ""
    search_term: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase shape clients expect."""
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "thumbnail": self.thumbnail_url,
            "channelTitle": self.channel_title,
        }
        if self.search_term is not None:
            data["searchTerm"] = self.search_term
        return data


class TranscriptProvider(Protocol):
    async def fetch(self, source_ref: str) -> List[TranscriptItem]: ...

    async def fetch_metadata(self, source_ref: str) -> Dict[str, Any]: ...


class CompletionProvider(Protocol):
    async def complete(
        self, system_prompt: str, history: Sequence[Message], user_text: str
    ) -> str: ...


class SearchProvider(Protocol):
    async def search(self, term: str, max_results: int) -> List[MediaItem]: ...


async def bounded_call(awaitable: Awaitable[T], timeout: float, service: str) -> T:
    """
    Await a collaborator call, failing with CollaboratorTimeout after `timeout` seconds.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("Call to %s timed out after %.1fs", service, timeout)
        raise CollaboratorTimeout(service, timeout)
