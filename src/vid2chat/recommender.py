"""
Playlist recommendation pipeline.

topic -> search terms (LLM) -> video search per term -> explanation (LLM).

Each step depends on the previous one. The per-term searches run
concurrently but results are reassembled in term order.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Sequence

from vid2chat.collaborators import CompletionProvider, MediaItem, SearchProvider, bounded_call
from vid2chat.errors import CollaboratorFailure, InvalidInputError, Vid2ChatError
from vid2chat.prompts import (
    PLAYLIST_EXPLANATION_SYSTEM_MESSAGE,
    PLAYLIST_EXPLANATION_USER_TEMPLATE,
    SEARCH_TERMS_SYSTEM_MESSAGE,
    SEARCH_TERMS_USER_TEMPLATE,
)

logger = logging.getLogger(__name__)

SEARCH_TERM_COUNT = 5
RESULTS_PER_TERM = 2

_CODE_FENCE_RE = re.compile(r"^\s*```[\w-]*\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*\]")
_LIST_MARKER_RE = re.compile(r"^(?:[-*]|\d+[.)])\s+")


class SearchFailurePolicy(str, Enum):
    """What to do when the search for one term fails."""

    ABORT = "abort"  # fail the whole recommendation
    SKIP = "skip"  # drop that term's results and carry on


@dataclass(frozen=True)
class Recommendation:
    items: List[MediaItem]
    explanation: str
    search_terms: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "videos": [item.to_dict() for item in self.items],
            "explanation": self.explanation,
            "searchTerms": list(self.search_terms),
        }


def _clean_line(line: str) -> str:
    line = _LIST_MARKER_RE.sub("", line.strip())
    return line.rstrip(",").strip().strip("\"'").strip()


def parse_search_terms(raw: str, limit: int = SEARCH_TERM_COUNT) -> List[str]:
    """
    Extract search terms from an LLM reply. Never raises.

    The reply should be a JSON array of strings (optionally wrapped in a
    Markdown code fence). Anything else falls back to one term per non-blank
    line of the unfenced text, with list markers and quotes removed. At most
    `limit` terms are returned.
    """
    text = raw or ""
    fenced = _CODE_FENCE_RE.match(text)
    candidate = fenced.group(1) if fenced else text

    try:
        # tolerate a trailing comma before the closing bracket
        parsed = json.loads(_TRAILING_COMMA_RE.sub("]", candidate))
    except ValueError:
        parsed = None

    if isinstance(parsed, list):
        terms = [str(t).strip() for t in parsed if t is not None and str(t).strip()]
    else:
        terms = [_clean_line(line) for line in candidate.splitlines()]
        terms = [t for t in terms if t and t not in ("[", "]")]

    return terms[:limit]


class RecommendationPipeline:
    """Builds a curated playlist for a topic from LLM and search collaborators."""

    def __init__(
        self,
        completion: CompletionProvider,
        search: SearchProvider,
        timeout: float = 30.0,
        results_per_term: int = RESULTS_PER_TERM,
        term_count: int = SEARCH_TERM_COUNT,
        failure_policy: SearchFailurePolicy = SearchFailurePolicy.ABORT,
    ):
        self.completion = completion
        self.search = search
        self.timeout = timeout
        self.results_per_term = results_per_term
        self.term_count = term_count
        self.failure_policy = SearchFailurePolicy(failure_policy)

    async def generate_search_terms(self, topic: str) -> List[str]:
        raw = await bounded_call(
            self.completion.complete(
                SEARCH_TERMS_SYSTEM_MESSAGE.format(count=self.term_count),
                [],
                SEARCH_TERMS_USER_TEMPLATE.format(count=self.term_count, topic=topic),
            ),
            self.timeout,
            "completion",
        )
        terms = parse_search_terms(raw, limit=self.term_count)
        if not terms:
            raise CollaboratorFailure(
                "completion", "The model did not suggest any search terms"
            )
        return terms

    async def _search_term(self, term: str) -> List[MediaItem]:
        results = await bounded_call(
            self.search.search(term, self.results_per_term), self.timeout, "search"
        )
        return [
            MediaItem(
                id=r.id,
                title=r.title,
                description=r.description,
                thumbnail_url=r.thumbnail_url,
                channel_title=r.channel_title,
                search_term=term,
            )
            for r in results[: self.results_per_term]
        ]

    async def collect_items(self, terms: Sequence[str]) -> List[MediaItem]:
        skip = self.failure_policy is SearchFailurePolicy.SKIP
        tasks = [asyncio.ensure_future(self._search_term(term)) for term in terms]
        try:
            outcomes = await asyncio.gather(*tasks, return_exceptions=skip)
        except BaseException:
            # abort: stop the searches still in flight
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        items: List[MediaItem] = []
        failures = 0
        for term, outcome in zip(terms, outcomes):
            if isinstance(outcome, Vid2ChatError):
                failures += 1
                logger.warning("Skipping search term %r: %s", term, outcome.message)
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            items.extend(outcome)

        if terms and failures == len(terms):
            raise CollaboratorFailure("search", "Every search term failed")
        return items

    async def explain(self, topic: str, items: Sequence[MediaItem]) -> str:
        titles = "\n".join(item.title for item in items)
        return await bounded_call(
            self.completion.complete(
                PLAYLIST_EXPLANATION_SYSTEM_MESSAGE,
                [],
                PLAYLIST_EXPLANATION_USER_TEMPLATE.format(topic=topic, titles=titles),
            ),
            self.timeout,
            "completion",
        )

    async def recommend(self, topic: str) -> Recommendation:
        """
        Run the full pipeline for `topic`.

        Returns:
            Recommendation with items in search-term order, the model's
            explanation, and the terms that were searched
        """
        topic = (topic or "").strip()
        if not topic:
            raise InvalidInputError("Topic must not be empty")

        logger.info("Recommendation step 1: generating search terms")
        terms = await self.generate_search_terms(topic)

        logger.info("Recommendation step 2: searching %d terms", len(terms))
        items = await self.collect_items(terms)

        logger.info("Recommendation step 3: explaining %d videos", len(items))
        explanation = await self.explain(topic, items)

        return Recommendation(items=items, explanation=explanation, search_terms=terms)
