"""Argument parser builders for the trnovel CLI."""

import argparse
from pathlib import Path

from .. import __version__


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to trnovel.toml (optional)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        help="Override log level (e.g. INFO, DEBUG)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Show debug output on the console only",
    )


def _add_source_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--source",
        "-s",
        type=str,
        default="0",
        help="Book source name or index in the sources file (default: 0)",
    )
    parser.add_argument(
        "--sources-file",
        type=Path,
        help="Book source JSON file (defaults to paths.sources)",
    )


def build_main_parser() -> argparse.ArgumentParser:
    """Top-level parser; only used for --help and --version."""
    parser = argparse.ArgumentParser(
        prog="trnovel",
        description="Read web novels through book-source rules and listen to them",
        epilog="Commands: " + ", ".join(COMMAND_HELP),
    )
    parser.add_argument("--version", action="version", version=f"trnovel {__version__}")
    return parser


def build_init_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trnovel init",
        description=COMMAND_HELP["init"],
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite existing trnovel.toml if it exists",
    )
    parser.add_argument(
        "--no-config",
        action="store_true",
        help="Skip creating trnovel.toml",
    )
    return parser


def build_sources_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trnovel sources",
        description=COMMAND_HELP["sources"],
    )
    _add_common_arguments(parser)
    parser.add_argument(
        "--sources-file",
        type=Path,
        help="Book source JSON file (defaults to paths.sources)",
    )
    parser.add_argument(
        "--url",
        type=str,
        help="Fetch book sources from a URL instead of a file",
    )
    return parser


def build_search_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trnovel search",
        description=COMMAND_HELP["search"],
    )
    parser.add_argument("keyword", type=str, help="Search keyword")
    _add_common_arguments(parser)
    _add_source_arguments(parser)
    parser.add_argument("--page", type=int, default=1, help="Result page (default: 1)")
    parser.add_argument("--page-size", type=int, default=20, help="Results per page")
    return parser


def build_explore_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trnovel explore",
        description=COMMAND_HELP["explore"],
    )
    parser.add_argument(
        "url",
        nargs="?",
        type=str,
        help="Explore category URL; omit to list categories",
    )
    _add_common_arguments(parser)
    _add_source_arguments(parser)
    parser.add_argument("--page", type=int, default=1, help="Result page (default: 1)")
    parser.add_argument("--page-size", type=int, default=20, help="Results per page")
    return parser


def build_toc_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trnovel toc",
        description=COMMAND_HELP["toc"],
    )
    parser.add_argument("book_url", type=str, help="Book detail page URL or local TXT/EPUB file")
    _add_common_arguments(parser)
    _add_source_arguments(parser)
    return parser


def build_read_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trnovel read",
        description=COMMAND_HELP["read"],
    )
    parser.add_argument("target", type=str, help="Book detail page URL or local TXT/EPUB file")
    _add_common_arguments(parser)
    _add_source_arguments(parser)
    parser.add_argument("--chapter", "-c", type=int, default=0, help="Chapter index (default: 0)")
    return parser


def build_download_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trnovel download",
        description=COMMAND_HELP["download"],
    )
    parser.add_argument("book_url", type=str, help="Book detail page URL")
    _add_common_arguments(parser)
    _add_source_arguments(parser)
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        help="Text file to append to (defaults to <out>/<book name>.txt)",
    )
    parser.add_argument(
        "--from-chapter",
        type=int,
        default=0,
        help="Number of chapters already in the output file",
    )
    return parser


def build_speak_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trnovel speak",
        description=COMMAND_HELP["speak"],
    )
    parser.add_argument("target", type=str, help="Book detail page URL or local TXT/EPUB file")
    _add_common_arguments(parser)
    _add_source_arguments(parser)
    parser.add_argument("--chapter", "-c", type=int, default=0, help="Chapter index (default: 0)")
    parser.add_argument(
        "--segment",
        type=int,
        default=0,
        help="Segment to start from (default: 0)",
    )
    parser.add_argument("--voice", type=str, help="Override the configured voice")
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        help="WAV file to write (defaults to <out>/<title>-<chapter>.wav)",
    )
    return parser


COMMAND_HELP = {
    "init": "Create trnovel.toml and the working folders",
    "sources": "List the book sources in a book source file",
    "search": "Search a book source",
    "explore": "List explore categories or browse one",
    "toc": "Print the table of contents of a book",
    "read": "Print the text of a chapter",
    "download": "Download a whole book into a text file",
    "speak": "Synthesize a chapter to a WAV file",
}
