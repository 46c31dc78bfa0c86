"""PEQ-presets command-line entry-point.

Run with:
    python -m peq_presets detect  "Sennheiser HD 600 ParametricEQ.txt"
    python -m peq_presets convert my_preset.json --to qudelix -o out.json
    python -m peq_presets plot my_preset.json --save curve.png
    python -m peq_presets library add my_preset.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .autoeq_text import parse_autoeq_text
from .config import default_store_dir
from .detect import detect_format
from .errors import PresetError
from .formats import EXPORT_FORMATS, export_preset, import_preset_text, is_qudelix
from .library import PresetLibrary
from .store import JsonFileStore

logger = logging.getLogger("peq_presets")


def build_parser() -> argparse.ArgumentParser:
    """Return argument parser with *detect*, *convert*, *plot* and *library* subcommands."""
    parser = argparse.ArgumentParser(prog="peq-presets", description="Parametric EQ preset converter")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    # detect command -------------------------------------------------------
    p_detect = sub.add_parser("detect", help="Report which preset dialect a file uses")
    p_detect.add_argument("file", type=Path)

    # convert command ------------------------------------------------------
    p_convert = sub.add_parser("convert", help="Convert a preset file to another format")
    p_convert.add_argument("file", type=Path)
    p_convert.add_argument("--to", dest="format", choices=sorted(EXPORT_FORMATS), default="native")
    p_convert.add_argument("--output", "-o", type=Path, help="Output path (stdout when omitted)")

    # plot command ---------------------------------------------------------
    p_plot = sub.add_parser("plot", help="Show the frequency response of a preset")
    p_plot.add_argument("file", type=Path)
    p_plot.add_argument("--save", type=Path, help="Write the plot to an image instead of showing it")

    # library command ------------------------------------------------------
    p_lib = sub.add_parser("library", help="Manage the saved preset library")
    p_lib.add_argument("--store", type=Path, help="Library directory (default: $PEQ_PRESETS_HOME)")
    lib_sub = p_lib.add_subparsers(dest="action", required=True)
    lib_sub.add_parser("list", help="List saved presets")
    p_add = lib_sub.add_parser("add", help="Import a preset file into the library")
    p_add.add_argument("file", type=Path)
    p_remove = lib_sub.add_parser("remove", help="Delete a preset by id")
    p_remove.add_argument("id")
    p_fav = lib_sub.add_parser("favorite", help="Toggle the favorite flag of a preset")
    p_fav.add_argument("id")
    p_search = lib_sub.add_parser("search", help="Search names, descriptions and sources")
    p_search.add_argument("query")

    return parser


def _read(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def _detect(text: str) -> str:
    try:
        document = json.loads(text)
    except json.JSONDecodeError:
        parse_autoeq_text(text)
        return "autoeq-text"
    if isinstance(document, dict) and is_qudelix(document):
        return "qudelix"
    return detect_format(document).format.value


def _run_library(args: argparse.Namespace) -> None:
    library = PresetLibrary(JsonFileStore(default_store_dir(args.store)))

    if args.action == "list":
        entries = library.load()
    elif args.action == "search":
        entries = library.search(args.query)
    elif args.action == "add":
        preset = import_preset_text(_read(args.file), args.file.name)
        entry = library.add(preset)
        print(f"saved {entry.name} as {entry.id}")
        return
    elif args.action == "remove":
        library.remove(args.id)
        print(f"removed {args.id}")
        return
    else:
        favorite = library.toggle_favorite(args.id)
        print(f"{args.id}: {'favorite' if favorite else 'not favorite'}")
        return

    for entry in entries:
        star = "*" if entry.favorite else " "
        print(f"{star} {entry.id:<40} {entry.name} ({len(entry.preset.bands)} bands, used {entry.usage}x)")


def main(argv: Optional[List[str]] = None) -> int:  # noqa: D401
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "detect":
            print(_detect(_read(args.file)))
        elif args.command == "convert":
            preset = import_preset_text(_read(args.file), args.file.name)
            content, filename, _mime = export_preset(preset, args.format)
            if args.output is None:
                print(content)
            else:
                out = args.output / filename if args.output.is_dir() else args.output
                out.write_text(content, encoding="utf-8")
                print(f"wrote {out}")
        elif args.command == "plot":
            preset = import_preset_text(_read(args.file), args.file.name)
            if args.save is not None:
                import matplotlib

                matplotlib.use("Agg")
            from .viewer import ResponseViewer

            viewer = ResponseViewer()
            try:
                viewer.plot(preset)
                if args.save is not None:
                    viewer.save(args.save)
                    print(f"wrote {args.save}")
                else:
                    viewer.show()  # blocks until window closed
            finally:
                viewer.close()
        else:
            _run_library(args)
    except PresetError as exc:
        logger.debug("command failed", exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
