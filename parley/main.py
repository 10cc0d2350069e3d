"""
Parley - command line entry point.

    parley serve                              # dev server with the mock engine
    parley translate "Hello. I like pizza." --lang ja --improve "More formal" --reverse
    parley identify "Hola. ¿Qué tal?"
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import httpx
from dotenv import load_dotenv

from parley.client.api import TranslationApi
from parley.client.gateway import ApiError
from parley.config import get_settings
from parley.i18n.languages import get_flag_emoji, to_language_name
from parley.services.translation import TranslationSession


async def run_translate(text: str, lang: str, improvements: list[str], reverse: bool) -> int:
    """Translate, apply each improvement in turn, optionally show the back-translation."""
    async with TranslationApi.from_settings() as api:
        session = TranslationSession(api)
        session.update_message(session.messages[0].id, text)

        result = await session.translate(lang)
        if result is None:
            print(f"❌ {session.state.error}")
            return 1

        context = session.state.context
        flag = get_flag_emoji(lang) or ""
        print(f"{flag} {to_language_name(lang)} (from {to_language_name(context.source_lang)})")
        print(f"  {result}")

        for feedback in improvements:
            result = await session.improve(feedback)
            print(f"  ↳ {feedback}")
            print(f"  {result}")

        if reverse and await session.toggle_reverse():
            print(f"↩ {to_language_name(context.source_lang)}")
            print(f"  {session.display_text}")

    return 0


async def run_identify(text: str) -> int:
    async with TranslationApi.from_settings() as api:
        session = TranslationSession(api)
        lang = await session.detect_language(text)

    if lang is None:
        print("❌ Could not identify language")
        return 1
    print(f"{lang} ({to_language_name(lang)})")
    return 0


def serve() -> None:
    import uvicorn

    from parley.api.app import create_app

    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.api_host, port=settings.api_port)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="parley",
        description="Iterative translation assistant",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("serve", help="Run the development API server")

    translate = commands.add_parser("translate", help="Translate text")
    translate.add_argument("text", help="Text to translate")
    translate.add_argument("--lang", "-l", required=True, help="Target language tag")
    translate.add_argument(
        "--improve", "-i",
        action="append",
        default=[],
        metavar="FEEDBACK",
        help="Feedback to apply after translating (repeatable)",
    )
    translate.add_argument(
        "--reverse", "-r",
        action="store_true",
        help="Show the result translated back to the source language",
    )

    identify = commands.add_parser("identify", help="Identify the language of text")
    identify.add_argument("text")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    load_dotenv()
    args = build_parser().parse_args(argv)

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "serve":
        serve()
        return 0

    try:
        if args.command == "translate":
            return asyncio.run(run_translate(args.text, args.lang, args.improve, args.reverse))
        return asyncio.run(run_identify(args.text))
    except ApiError as e:
        print(f"❌ {e}")
        return 1
    except httpx.HTTPError as e:
        print(f"❌ Could not reach {settings.api_base_url}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
