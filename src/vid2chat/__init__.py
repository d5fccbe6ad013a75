"""vid2chat - chat with long video transcripts, one chunk at a time."""

__version__ = "0.1.0"
