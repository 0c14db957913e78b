"""CLI entry point for the AI Drawing Book."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from DB_Libs.AppLib import DrawingBookSession
from DB_Libs.CanvasLib import hex_to_rgba
from DB_Libs.config import AppSettings
from DB_Libs.constants import COLOR_PALETTE, DEFAULT_FILL_COLOR, PROVIDER_ELEVENLABS, PROVIDER_POLLINATIONS
from DB_Libs.pillow_compat import Image

logger = logging.getLogger("drawing_book")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="AI Drawing Book")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--env-file", type=Path, default=None, help=".env file to load settings from")
    parser.add_argument("--data-dir", type=Path, default=None, help="Directory holding the saved history")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("history", help="List saved creations")

    select_parser = sub.add_parser("select", help="Select a saved creation")
    select_parser.add_argument("index", type=int)

    delete_parser = sub.add_parser("delete", help="Delete a saved creation")
    delete_parser.add_argument("index", type=int)

    sub.add_parser("idea", help="Suggest something to draw")

    generate_parser = sub.add_parser("generate", help="Turn a sketch image into a coloring outline")
    generate_parser.add_argument("sketch", type=Path, help="Sketch image file")
    generate_parser.add_argument("--prompt", default="", help="Idea prompt the sketch was drawn for")
    generate_parser.add_argument("--output", type=Path, default=None, help="Save the outline as PNG")

    photo_parser = sub.add_parser("photo", help="Turn a webcam photo into a coloring outline")
    photo_parser.add_argument("--output", type=Path, default=None, help="Save the outline as PNG")

    fill_parser = sub.add_parser("fill", help="Flood fill the selected outline at X Y")
    fill_parser.add_argument("x", type=int)
    fill_parser.add_argument("y", type=int)
    fill_parser.add_argument(
        "--color", type=_hex_color, default=DEFAULT_FILL_COLOR,
        help=f"Fill color as #RRGGBB (palette: {', '.join(COLOR_PALETTE)})",
    )
    fill_parser.add_argument("--output", type=Path, default=None, help="Save the colored page as PNG")

    sub.add_parser("story", help="Generate (or show) the story for the selected creation")

    read_parser = sub.add_parser("read", help="Narrate the selected creation's story")
    read_parser.add_argument(
        "--provider", choices=[PROVIDER_POLLINATIONS, PROVIDER_ELEVENLABS], default=PROVIDER_POLLINATIONS,
    )

    export_parser = sub.add_parser("export", help="Narrate the story and export a video")
    export_parser.add_argument("output", type=Path, help="Destination .mp4 file")
    export_parser.add_argument(
        "--provider", choices=[PROVIDER_POLLINATIONS, PROVIDER_ELEVENLABS], default=PROVIDER_POLLINATIONS,
    )

    return parser


def _hex_color(value: str) -> str:
    try:
        hex_to_rgba(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    return value


def _load_selected(session: DrawingBookSession) -> bool:
    index = session.history.selected_index
    if index is None:
        session.error = "Please select a drawing from your gallery first."
        return False
    return session.select_history(index)


def _save_page(session: DrawingBookSession, output: Optional[Path]) -> None:
    if output is not None:
        session.coloring_surface.image.save(output, format="PNG")
        print(f"Saved {output}")


def _print_history(session: DrawingBookSession) -> None:
    if not len(session.history):
        print("No saved creations.")
        return
    for index, record in enumerate(session.history.records):
        marker = "*" if index == session.history.selected_index else " "
        story = "story" if record.story else "no story"
        print(f"{marker} [{index}] {record.recognized_description or '?'} (prompt: {record.prompt or '-'}, {story})")


async def run(args: argparse.Namespace, session: DrawingBookSession) -> int:
    command = args.command

    if command == "history":
        _print_history(session)

    elif command == "select":
        if not session.select_history(args.index):
            print(f"No creation at index {args.index}", file=sys.stderr)
            return 1
        _print_history(session)

    elif command == "delete":
        if not session.delete_history(args.index):
            print(f"No creation at index {args.index}", file=sys.stderr)
            return 1
        _print_history(session)

    elif command == "idea":
        idea = await session.get_drawing_idea()
        if idea:
            print(idea)

    elif command == "generate":
        with Image.open(args.sketch) as sketch:
            session.sketch_surface.draw_image(sketch)
        session.current_prompt = args.prompt
        index = await session.enhance_drawing()
        if index is not None:
            print(f"Creation {index}: {session.recognized_description}")
            _save_page(session, args.output)

    elif command == "photo":
        index = await session.capture_photo()
        if index is not None:
            print(f"Creation {index}: {session.recognized_description}")
            _save_page(session, args.output)

    elif command == "fill":
        if _load_selected(session):
            session.select_color(args.color)
            if session.press_coloring(args.x, args.y):
                _save_page(session, args.output)

    elif command == "story":
        if _load_selected(session):
            story = await session.generate_story()
            if story:
                print(story)

    elif command in ("read", "export"):
        if _load_selected(session) and await session.generate_story():
            outcome = await session.read_story(args.provider)
            logger.info(f"Narration finished: {outcome.value if outcome else 'none'}")
            if command == "export" and session.error is None:
                path = await session.export_video(args.output)
                if path is not None:
                    print(f"Saved {path}")

    if session.error:
        print(session.error, file=sys.stderr)
        return 1
    return 0


async def _main_async(args: argparse.Namespace, settings: AppSettings) -> int:
    session = DrawingBookSession.from_settings(settings)
    try:
        return await run(args, session)
    finally:
        await session.close()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 2

    settings = AppSettings.from_env(args.env_file)
    if args.data_dir is not None:
        settings.data_dir = args.data_dir

    return asyncio.run(_main_async(args, settings))


if __name__ == "__main__":
    sys.exit(main())
