"""
LLM prompts used throughout the application.

All prompts are centralized here for easy maintenance and consistency.
The chat prompts and NO_INFORMATION_SENTINEL must stay in sync: the chat
engine moves on to the next transcript chunk when a reply contains the
sentinel, so the system prompt tells the model to use that exact wording.
"""

# ============================================================================
# Chunked Transcript Chat Prompts
# ============================================================================

# Matched case-insensitively against replies.
NO_INFORMATION_SENTINEL = "i don't see any information"

SESSION_SYSTEM_MESSAGE = """You are a helpful assistant that answers questions about a YouTube video.
Format your responses using markdown when appropriate for tables, lists, and emphasis.
Always include timestamps when referencing specific parts of the video."""

CHUNK_CHAT_SYSTEM_TEMPLATE = """You are a helpful assistant that answers questions about a YouTube video.
Format your responses using markdown for better readability.
Always include timestamps (e.g. [125s]) when referencing specific parts of the video.

You only see one part of the transcript at a time. If the excerpt below does not
contain the information needed to answer, reply with a sentence that begins exactly:
"I don't see any information about that in this part of the video."
Do not guess or use outside knowledge in that case.

Current transcript chunk ({chunk_number}/{total_chunks}):
{context}"""

# ============================================================================
# Playlist Recommendation Prompts
# ============================================================================

SEARCH_TERMS_SYSTEM_MESSAGE = """You are a helpful assistant that suggests YouTube search terms for creating a playlist about a specific topic.
Format your response as a JSON array of {count} specific search terms.
Make the search terms specific and varied to create a well-rounded playlist.

Example output format:
["yoga basics for absolute beginners", "10 minute morning yoga routine", "yoga breathing techniques explained", "common beginner yoga mistakes", "gentle yoga for flexibility"]

Return only the JSON array, with no commentary."""

SEARCH_TERMS_USER_TEMPLATE = """Suggest {count} specific search terms for creating a YouTube playlist about: {topic}"""

PLAYLIST_EXPLANATION_SYSTEM_MESSAGE = """You are a helpful assistant that organizes and explains YouTube playlists."""

PLAYLIST_EXPLANATION_USER_TEMPLATE = """Here's a list of videos for a {topic} playlist. Please organize them and explain why each video is included:
{titles}"""
