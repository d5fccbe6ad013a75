"""
Application service: the operations exposed to clients.

Wires the transcript provider, chunker, session store, chat engine, rate
limiter and recommendation pipeline together and owns their lifecycle.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from vid2chat.chat_engine import ChatResult, ChunkAdvancingChatEngine
from vid2chat.chunk import chunk_transcript
from vid2chat.collaborators import (
    CompletionProvider,
    MediaItem,
    SearchProvider,
    TranscriptProvider,
    bounded_call,
)
from vid2chat.config import Settings
from vid2chat.errors import InvalidInputError, RateLimitExceeded
from vid2chat.llm import OpenAICompletionProvider
from vid2chat.prompts import SESSION_SYSTEM_MESSAGE
from vid2chat.rate_limiter import RateLimiter, RateLimitSnapshot
from vid2chat.recommender import Recommendation, RecommendationPipeline, SearchFailurePolicy
from vid2chat.sessions import SessionStore
from vid2chat.youtube_client import YoutubeClient, YoutubeSearchClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StartedSession:
    session_id: str
    total_chunks: int
    video_url: str
    title: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sessionId": self.session_id,
            "totalChunks": self.total_chunks,
            "videoUrl": self.video_url,
            "title": self.title,
        }


@dataclass(frozen=True)
class SearchResult:
    items: List[MediaItem]
    rate_limit: RateLimitSnapshot

    def to_dict(self) -> Dict[str, Any]:
        return {
            "videos": [item.to_dict() for item in self.items],
            "rateLimit": self.rate_limit.to_dict(),
        }


@dataclass(frozen=True)
class RecommendResult:
    recommendation: Recommendation
    rate_limit: RateLimitSnapshot

    def to_dict(self) -> Dict[str, Any]:
        data = self.recommendation.to_dict()
        data["rateLimit"] = self.rate_limit.to_dict()
        return data


class Vid2ChatService:
    """Facade over every component; one instance per process."""

    def __init__(
        self,
        settings: Settings,
        transcripts: TranscriptProvider,
        completion: CompletionProvider,
        search: SearchProvider,
        store: Optional[SessionStore] = None,
        limiter: Optional[RateLimiter] = None,
    ):
        self.settings = settings
        self.transcripts = transcripts
        self.completion = completion
        self.search = search
        self.store = store or SessionStore(ttl_seconds=settings.session_ttl_seconds)
        self.limiter = limiter or RateLimiter(
            limit=settings.rate_limit,
            window_seconds=settings.rate_limit_window_seconds,
            cleanup_interval_seconds=settings.cleanup_interval_seconds,
        )
        timeout = settings.collaborator_timeout_seconds
        self.engine = ChunkAdvancingChatEngine(self.store, completion, timeout=timeout)
        self.pipeline = RecommendationPipeline(
            completion,
            search,
            timeout=timeout,
            results_per_term=settings.results_per_term,
            failure_policy=SearchFailurePolicy(settings.search_failure_policy),
        )

    async def start(self) -> None:
        self.limiter.start()
        self.store.start()
        logger.info("vid2chat service started")

    async def close(self) -> None:
        await self.limiter.close()
        await self.store.close()
        aclose = getattr(self.search, "aclose", None)
        if aclose is not None:
            await aclose()
        logger.info("vid2chat service stopped")

    def _admit(self, identity: str) -> RateLimitSnapshot:
        admission = self.limiter.admit(identity)
        if not admission.allowed:
            raise RateLimitExceeded(admission.retry_after_seconds, self.limiter.limit)
        return admission.snapshot

    async def start_session(self, source_ref: str) -> StartedSession:
        """Fetch and chunk a transcript, then open a session on it."""
        source_ref = (source_ref or "").strip()
        if not source_ref:
            raise InvalidInputError("videoUrl is required")

        timeout = self.settings.collaborator_timeout_seconds
        items = await bounded_call(self.transcripts.fetch(source_ref), timeout, "transcript")
        chunks = chunk_transcript(items, self.settings.max_chunk_chars)
        if not chunks:
            raise InvalidInputError(
                "Failed to get transcript", details={"videoUrl": source_ref}
            )

        metadata = await bounded_call(
            self.transcripts.fetch_metadata(source_ref), timeout, "metadata"
        )
        title = metadata.get("title") or ""

        session_id = self.store.start_session(
            chunks, SESSION_SYSTEM_MESSAGE, source_ref=source_ref, title=title
        )
        return StartedSession(
            session_id=session_id,
            total_chunks=len(chunks),
            video_url=source_ref,
            title=title,
        )

    async def chat(self, session_id: str, user_text: str) -> ChatResult:
        if not session_id:
            raise InvalidInputError("sessionId is required")
        return await self.engine.ask(session_id, user_text)

    async def reset_session(self, session_id: str) -> None:
        if not session_id:
            raise InvalidInputError("sessionId is required")
        self.store.reset(session_id)

    async def search_media(self, query: str, identity: str) -> SearchResult:
        """Rate-limited direct video search."""
        query = (query or "").strip()
        if not query:
            raise InvalidInputError("query is required")
        snapshot = self._admit(identity)
        items = await bounded_call(
            self.search.search(query, self.settings.search_max_results),
            self.settings.collaborator_timeout_seconds,
            "search",
        )
        return SearchResult(items=items, rate_limit=snapshot)

    async def recommend(self, topic: str, identity: str) -> RecommendResult:
        """Rate-limited playlist recommendation for a topic."""
        if not (topic or "").strip():
            raise InvalidInputError("topic is required")
        snapshot = self._admit(identity)
        recommendation = await self.pipeline.recommend(topic)
        return RecommendResult(recommendation=recommendation, rate_limit=snapshot)


def build_service(settings: Settings) -> Vid2ChatService:
    """Create a service wired to the real OpenAI and YouTube collaborators."""
    timeout = settings.collaborator_timeout_seconds
    return Vid2ChatService(
        settings,
        transcripts=YoutubeClient(),
        completion=OpenAICompletionProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            timeout=timeout,
            max_retries=settings.openai_max_retries,
        ),
        search=YoutubeSearchClient(api_key=settings.youtube_api_key, timeout=timeout),
    )
