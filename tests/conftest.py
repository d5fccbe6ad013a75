"""Pytest configuration and shared fakes for vid2chat tests."""

import asyncio
from typing import Dict, List

import pytest

from vid2chat.chunk import TranscriptItem
from vid2chat.collaborators import MediaItem
from vid2chat.config import Settings


class ScriptedCompletion:
    """Completion provider that replays canned replies and records every call."""

    def __init__(self, replies=None, delay: float = 0.0):
        self.replies = list(replies or [])
        self.delay = delay
        self.calls: List[Dict] = []

    async def complete(self, system_prompt, history, user_text):
        self.calls.append(
            {"system_prompt": system_prompt, "history": list(history), "user_text": user_text}
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        reply = self.replies.pop(0) if self.replies else "ok"
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeSearch:
    """Search provider returning `<term> #n` titles; terms in `fail_terms` raise."""

    def __init__(self, fail_terms=(), error=None, delay: float = 0.0):
        self.fail_terms = set(fail_terms)
        self.error = error
        self.delay = delay
        self.calls: List[tuple] = []

    async def search(self, term, max_results):
        self.calls.append((term, max_results))
        if self.delay:
            await asyncio.sleep(self.delay)
        if term in self.fail_terms:
            raise self.error
        return [
            MediaItem(
                id=f"{term}-{n}",
                title=f"{term} #{n}",
                description="",
                thumbnail_url=f"https://img.example/{n}.jpg",
                channel_title="Channel",
            )
            for n in range(max_results)
        ]


class FakeTranscripts:
    def __init__(self, items=None, title="Test Video"):
        self.items = list(items or [])
        self.title = title

    async def fetch(self, source_ref):
        return list(self.items)

    async def fetch_metadata(self, source_ref):
        return {"title": self.title, "channel": "Channel", "duration": 0, "url": source_ref}


def make_items(*texts, step: float = 5.0) -> List[TranscriptItem]:
    return [
        TranscriptItem(text=t, timestamp_seconds=i * step, duration_seconds=step)
        for i, t in enumerate(texts)
    ]


@pytest.fixture
def settings():
    """Settings with defaults, never read from the environment."""
    return Settings(collaborator_timeout_seconds=1.0, session_ttl_seconds=0)


@pytest.fixture
def two_chunk_items():
    """Three items totaling 9000 chars: 4000 + 4000 fit in 8000, the last 1000 spill over."""
    return make_items("a" * 4000, "b" * 4000, "c" * 1000)
