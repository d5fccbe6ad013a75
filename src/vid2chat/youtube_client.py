"""
YouTube collaborators: transcripts (youtube-transcript-api), video metadata
(pytube) and video search (YouTube Data API v3 over httpx).
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from typing import Any, Dict, List, Optional

import httpx
from pytube import YouTube
from youtube_transcript_api import CouldNotRetrieveTranscript, YouTubeTranscriptApi

from vid2chat.chunk import TranscriptItem
from vid2chat.collaborators import MediaItem
from vid2chat.errors import CollaboratorFailure, CollaboratorTimeout, InvalidInputError

logger = logging.getLogger(__name__)

YOUTUBE_SEARCH_URL = "https://www.googleapis.com/youtube/v3/search"

_VIDEO_URL_RE = re.compile(r"^.*(youtu\.be/|v/|e/|u/\w+/|embed/|shorts/|v=)([^#&?]*).*")
_VIDEO_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")


def extract_video_id(url: str) -> Optional[str]:
    """Extract the 11-character video id from a YouTube URL (or a bare id)."""
    url = (url or "").strip()
    if _VIDEO_ID_RE.match(url):
        return url
    match = _VIDEO_URL_RE.match(url)
    if match and len(match.group(2)) == 11:
        return match.group(2)
    return None


def watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


class YoutubeClient:
    """Transcript provider for YouTube videos."""

    def __init__(self, api: Optional[YouTubeTranscriptApi] = None, languages: Optional[List[str]] = None):
        self.client = api or YouTubeTranscriptApi()
        self.languages = languages or ["en"]

    def _video_id(self, source_ref: str) -> str:
        video_id = extract_video_id(source_ref)
        if not video_id:
            raise InvalidInputError("Invalid YouTube URL", details={"videoUrl": source_ref})
        return video_id

    def get_transcript(self, video_id: str) -> List[TranscriptItem]:
        fetched = self.client.fetch(video_id, languages=self.languages)
        items: List[TranscriptItem] = []
        for snippet in fetched:
            text = (snippet.text or "").replace("\n", " ").strip()
            if not text:
                continue
            items.append(
                TranscriptItem(
                    text=text,
                    timestamp_seconds=max(0.0, float(snippet.start)),
                    duration_seconds=max(0.0, float(snippet.duration)),
                )
            )
        return items

    async def fetch(self, source_ref: str) -> List[TranscriptItem]:
        """
        Fetch the transcript for a video URL.

        Raises:
            InvalidInputError: the URL is not a YouTube video, or the video has
                no retrievable transcript
            CollaboratorFailure: anything else went wrong talking to YouTube
        """
        video_id = self._video_id(source_ref)
        try:
            items = await asyncio.to_thread(self.get_transcript, video_id)
        except CouldNotRetrieveTranscript as e:
            logger.info("No transcript for video %s: %s", video_id, type(e).__name__)
            raise InvalidInputError(
                "Failed to get transcript. Make sure the video has subtitles/CC available.",
                details={"videoId": video_id, "reason": type(e).__name__},
            )
        except Exception as e:
            logger.error("Transcript fetch failed for %s: %s", video_id, e, exc_info=True)
            raise CollaboratorFailure("youtube-transcript", f"Transcript fetch failed: {e}")

        logger.info("Fetched %d transcript items for video %s", len(items), video_id)
        return items

    def get_video_metadata(self, video_id: str) -> Dict[str, Any]:
        """
        Get video metadata using pytube.
        Returns: title, channel, duration (seconds), URL
        """
        url = watch_url(video_id)
        try:
            yt = YouTube(url)
            return {
                "title": yt.title,
                "channel": yt.author,
                "duration": yt.length,  # in seconds
                "url": url,
            }
        except Exception as e:
            # Metadata is cosmetic; fall back to basic info if pytube fails
            logger.debug("pytube metadata lookup failed for %s: %s", video_id, e)
            return {
                "title": "Unknown",
                "channel": "Unknown",
                "duration": 0,
                "url": url,
            }

    async def fetch_metadata(self, source_ref: str) -> Dict[str, Any]:
        return await asyncio.to_thread(self.get_video_metadata, self._video_id(source_ref))


class YoutubeSearchClient:
    """Search provider using the YouTube Data API v3 `search.list` endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        # A missing key only fails search requests, not startup
        self.api_key = api_key or os.getenv("YOUTUBE_API_KEY")
        self.timeout = timeout
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @staticmethod
    def parse_results(payload: Dict[str, Any]) -> List[MediaItem]:
        items: List[MediaItem] = []
        for entry in payload.get("items") or []:
            video_id = (entry.get("id") or {}).get("videoId")
            snippet = entry.get("snippet") or {}
            if not video_id or not snippet:
                continue
            thumbnails = snippet.get("thumbnails") or {}
            thumb = thumbnails.get("medium") or thumbnails.get("default") or {}
            items.append(
                MediaItem(
                    id=video_id,
                    title=snippet.get("title", ""),
                    description=snippet.get("description", ""),
                    thumbnail_url=thumb.get("url", ""),
                    channel_title=snippet.get("channelTitle", ""),
                )
            )
        return items

    async def search(self, term: str, max_results: int) -> List[MediaItem]:
        if not self.api_key:
            raise CollaboratorFailure(
                "youtube-search", "YOUTUBE_API_KEY not set", code="MISSING_API_KEY"
            )
        params = {
            "part": "snippet",
            "q": term,
            "type": "video",
            "maxResults": max_results,
            "key": self.api_key,
        }
        try:
            response = await self._client.get(YOUTUBE_SEARCH_URL, params=params)
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException:
            raise CollaboratorTimeout("youtube-search", self.timeout)
        except httpx.HTTPStatusError as e:
            logger.error("YouTube search returned HTTP %d", e.response.status_code)
            raise CollaboratorFailure(
                "youtube-search",
                f"YouTube search failed with HTTP {e.response.status_code}",
                details={"status_code": e.response.status_code},
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.error("YouTube search failed: %s", e)
            raise CollaboratorFailure("youtube-search", f"YouTube search failed: {e}")

        results = self.parse_results(payload)
        logger.debug("YouTube search returned %d results", len(results))
        return results[:max_results]

    async def aclose(self) -> None:
        await self._client.aclose()
