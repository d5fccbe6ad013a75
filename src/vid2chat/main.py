"""Main entry point for the application."""

import argparse
import asyncio

import uvicorn

from vid2chat.api import create_app
from vid2chat.chunk import format_ts
from vid2chat.config import ConfigurationError, Settings
from vid2chat.errors import Vid2ChatError
from vid2chat.logging_config import setup_logging
from vid2chat.service import Vid2ChatService, build_service



def serve(settings: Settings, host: str = None, port: int = None) -> None:
    """Run the HTTP API with uvicorn."""
    app = create_app(settings)
    uvicorn.run(
        app,
        host=host or settings.host,
        port=port or settings.port,
        log_config=None,  # keep our logging setup
    )


async def _start_chat(service: Vid2ChatService, url: str, verbose: bool) -> str:
    print(f"Fetching transcript for: {url}")
    started = await service.start_session(url)
    session = service.store.get_session(started.session_id)
    last_item = session.chunks[-1][-1]
    if verbose:
        print(f"  Session id: {started.session_id}")
        print(f"  Transcript covers 00:00:00-{format_ts(last_item.timestamp_seconds + last_item.duration_seconds)}")
    print(f"Loaded '{started.title or url}' in {started.total_chunks} chunk(s).")
    return started.session_id


async def chat_video(settings: Settings, url: str, verbose: bool = False) -> None:
    """Start an interactive terminal chat about a video."""
    service = build_service(settings)
    await service.start()
    try:
        try:
            session_id = await _start_chat(service, url, verbose)
        except Vid2ChatError as e:
            print(f"Could not start a chat for that video: {e.message}")
            return

        print("Type your questions (or '/exit' to quit, '/help' for help)\n")
        while True:
            query = (await asyncio.to_thread(input, "You: ")).strip()
            if not query:
                continue

            command = query.lower()
            if command in ["/exit", "/quit"]:
                print("Goodbye!")
                break
            elif command == "/help":
                print("Commands:")
                print("  /exit or /quit - Exit chat")
                print("  /reset - Start over from the beginning of the transcript")
                print("  /help - Show this help")
                continue
            elif command == "/reset":
                await service.reset_session(session_id)
                try:
                    session_id = await _start_chat(service, url, verbose)
                except Vid2ChatError as e:
                    print(f"Could not restart the chat: {e.message}")
                    break
                continue

            try:
                result = await service.chat(session_id, query)
            except Vid2ChatError as e:
                print(f"Error: {e.message}\n")
                continue

            print(f"\nAssistant: {result.reply}")
            print(f"\n(chunk {result.chunk_index}/{result.total_chunks})\n")
    except EOFError:
        print("\n\nGoodbye!")
    finally:
        await service.close()


def main():
    """Main entry point with subcommands."""
    parser = argparse.ArgumentParser(
        description="vid2chat - Chat about long YouTube videos, one transcript chunk at a time",
        prog="vid2chat",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", help="Bind address (default: VID2CHAT_HOST or 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, help="Port (default: VID2CHAT_PORT or 3001)")

    # Chat command
    chat_parser = subparsers.add_parser("chat", help="Chat about a YouTube video in the terminal")
    chat_parser.add_argument("url", help="YouTube video URL")
    chat_parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return

    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        parser.error(str(e))
    verbose = getattr(args, "verbose", False)
    setup_logging("DEBUG" if verbose else settings.log_level, settings.log_format)

    if args.command == "serve":
        serve(settings, host=args.host, port=args.port)
    elif args.command == "chat":
        try:
            asyncio.run(chat_video(settings, args.url, verbose=verbose))
        except KeyboardInterrupt:
            print("\n\nGoodbye!")


if __name__ == "__main__":
    main()
