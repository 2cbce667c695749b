"""Main CLI entrypoint for trnovel."""

import sys
from typing import Sequence

from .commands import (
    EXIT_CONFIG,
    run_download_cmd,
    run_explore_cmd,
    run_init_cmd,
    run_read_cmd,
    run_search_cmd,
    run_sources_cmd,
    run_speak_cmd,
    run_toc_cmd,
)
from .parsers import (
    build_download_parser,
    build_explore_parser,
    build_init_parser,
    build_main_parser,
    build_read_parser,
    build_search_parser,
    build_sources_parser,
    build_speak_parser,
    build_toc_parser,
)

COMMANDS = {
    "init": (build_init_parser, run_init_cmd),
    "sources": (build_sources_parser, run_sources_cmd),
    "search": (build_search_parser, run_search_cmd),
    "explore": (build_explore_parser, run_explore_cmd),
    "toc": (build_toc_parser, run_toc_cmd),
    "read": (build_read_parser, run_read_cmd),
    "download": (build_download_parser, run_download_cmd),
    "speak": (build_speak_parser, run_speak_cmd),
}


def main(argv: Sequence[str] | None = None) -> int:
    """Main entrypoint for the trnovel CLI.

    The first argument names the command; everything after it goes to that
    command's parser. Without a known command the top-level help is shown.
    """
    argv = list(argv) if argv is not None else sys.argv[1:]

    if argv and argv[0] in COMMANDS:
        build_parser, run = COMMANDS[argv[0]]
        args = build_parser().parse_args(argv[1:])
        return run(args)

    parser = build_main_parser()
    if not argv:
        parser.print_help()
        return EXIT_CONFIG
    parser.parse_args(argv)
    parser.print_usage()
    return EXIT_CONFIG
