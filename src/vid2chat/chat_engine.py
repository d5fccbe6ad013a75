"""
Chunk-advancing chat over a session's transcript.

Each question is answered against the session's current chunk only. When the
model says it cannot find the answer in that chunk (detected by the sentinel
phrase in prompts.py), the engine moves on to the next chunk and asks again,
until it gets a real answer or runs out of chunks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict

from vid2chat.chunk import format_chunk
from vid2chat.collaborators import CompletionProvider, bounded_call
from vid2chat.errors import InvalidInputError
from vid2chat.prompts import CHUNK_CHAT_SYSTEM_TEMPLATE, NO_INFORMATION_SENTINEL
from vid2chat.sessions import SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatResult:
    reply: str
    chunk_index: int  # 1-based position of the chunk that produced the reply
    total_chunks: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reply": self.reply,
            "currentChunk": self.chunk_index,
            "totalChunks": self.total_chunks,
        }


def is_no_information_reply(reply: str) -> bool:
    return NO_INFORMATION_SENTINEL in reply.lower()


class ChunkAdvancingChatEngine:
    """Answers questions one chunk at a time, advancing on 'no information' replies."""

    def __init__(
        self,
        store: SessionStore,
        completion: CompletionProvider,
        timeout: float = 30.0,
    ):
        self.store = store
        self.completion = completion
        self.timeout = timeout

    def build_system_prompt(self, chunk_text: str, chunk_number: int, total_chunks: int) -> str:
        return CHUNK_CHAT_SYSTEM_TEMPLATE.format(
            chunk_number=chunk_number,
            total_chunks=total_chunks,
            context=chunk_text,
        )

    async def ask(self, session_id: str, user_text: str) -> ChatResult:
        """
        Answer `user_text` within the session and record the turn.

        The whole turn runs under the session's turn lock. The chunk index is
        advanced on a working copy and only committed, together with the
        history append, once an answer is accepted; if the completion call
        fails or times out the session is left untouched.

        Args:
            session_id: Id returned by SessionStore.start_session
            user_text: The user's question

        Returns:
            ChatResult with the accepted reply and the chunk it came from
        """
        if not user_text or not user_text.strip():
            raise InvalidInputError("Message must not be empty")

        async with self.store.lock(session_id) as session:
            total = session.total_chunks
            start_index = session.current_chunk_index
            # history[0] is the store's seeded system message; each attempt
            # supplies its own system prompt with the chunk text instead
            prior_history = session.history[1:]

            index = start_index
            reply = ""
            # Index only moves forward, so at most one attempt per remaining chunk
            for attempt in range(total - start_index):
                index = start_index + attempt
                system_prompt = self.build_system_prompt(
                    format_chunk(session.chunks[index]), index + 1, total
                )
                reply = await bounded_call(
                    self.completion.complete(system_prompt, prior_history, user_text),
                    self.timeout,
                    "completion",
                )
                if not is_no_information_reply(reply) or index == total - 1:
                    break
                logger.info(
                    "Session %s: no answer in chunk %d/%d, trying next chunk",
                    session_id, index + 1, total,
                )

            for _ in range(index - start_index):
                self.store.advance_chunk(session_id)
            self.store.append_turn(session_id, user_text, reply)

        return ChatResult(reply=reply, chunk_index=index + 1, total_chunks=total)
