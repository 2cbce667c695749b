"""Command runners for the trnovel CLI."""

import argparse
import asyncio
from dataclasses import dataclass, replace
import logging
from pathlib import Path
from typing import Awaitable, Callable

from ..audio_export import export_stream
from ..book_source import BookSource
from ..book_source_parser import BookSourceParser
from ..chapter_tts import ChapterTTS
from ..config import (
    CONFIG_FILENAME,
    Config,
    LoggingConfig,
    config_summary,
    load_config,
    write_default_config,
)
from ..downloader import Downloader
from ..error_log import ErrorLog, ErrorSeverity
from ..errors import SynthError, TrnovelError
from ..http_client import HttpClient
from ..local_novel import open_novel
from ..logging_setup import LoggingContext, initialize_logging
from ..tts_engine_kokoro_onnx import build_synthesizer
from ..utils import ensure_dir, generate_run_id, slugify
from .rendering import (
    render_book_info,
    render_book_list,
    render_chapters,
    render_download_progress,
    render_explores,
    render_position,
    render_sources,
)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


@dataclass
class CommandContext:
    command: str
    config: Config
    log_ctx: LoggingContext
    error_log: ErrorLog

    @property
    def logger(self) -> logging.Logger:
        return self.log_ctx.logger


def run_init_cmd(args: argparse.Namespace) -> int:
    """Initialize the trnovel working folders and config file."""
    cwd = Path.cwd()

    folders = {
        "out": cwd / "out",
        "cache": cwd / "cache",
        "logs": cwd / "logs",
        "errors": cwd / "errors",
    }

    created_folders = []
    for name, path in folders.items():
        if not path.exists():
            path.mkdir(parents=True, exist_ok=True)
            created_folders.append(name)
        else:
            print(f"  {name}/ already exists")

    if created_folders:
        for name in created_folders:
            print(f"  Created {name}/")
    else:
        print("  All folders already exist")

    config_path = cwd / CONFIG_FILENAME
    if args.no_config:
        print(f"  Skipping {CONFIG_FILENAME} creation (--no-config)")
    elif config_path.exists() and not args.force:
        print(f"  {CONFIG_FILENAME} already exists (use --force to overwrite)")
    else:
        write_default_config(config_path, overwrite=args.force)
        print(f"  {'Overwrote' if args.force else 'Created'} {CONFIG_FILENAME}")

    print("\nProject initialized. Put your book sources in 'book_sources.json'.")
    return EXIT_OK


def run_sources_cmd(args: argparse.Namespace) -> int:
    async def body(ctx: CommandContext) -> None:
        if args.url:
            sources = await BookSource.from_url(args.url, timeout=ctx.config.http.timeout_ms / 1000)
        else:
            sources = _load_sources(ctx.config, args.sources_file)
        print(render_sources(sources))

    return _run_command("sources", args, body)


def run_search_cmd(args: argparse.Namespace) -> int:
    async def body(ctx: CommandContext) -> None:
        async with _open_parser(ctx, args) as parser:
            items = await parser.search_books(args.keyword, args.page, args.page_size)
        print(render_book_list(items))

    return _run_command("search", args, body)


def run_explore_cmd(args: argparse.Namespace) -> int:
    async def body(ctx: CommandContext) -> None:
        async with _open_parser(ctx, args) as parser:
            if args.url:
                items = await parser.explore_books(args.url, args.page, args.page_size)
                print(render_book_list(items))
            else:
                print(render_explores(await parser.get_explores()))

    return _run_command("explore", args, body)


def run_toc_cmd(args: argparse.Namespace) -> int:
    async def body(ctx: CommandContext) -> None:
        target = Path(args.book_url)
        if target.is_file():
            novel = open_novel(target)
            print(novel.title)
            print(render_chapters(novel.chapters))
            return

        async with _open_parser(ctx, args) as parser:
            info = await parser.get_book_info(args.book_url)
            chapters = await parser.get_chapters(info.toc_url)
        print(render_book_info(info))
        print(render_chapters(chapters))

    return _run_command("toc", args, body)


def run_read_cmd(args: argparse.Namespace) -> int:
    async def body(ctx: CommandContext) -> None:
        _title, _chapter_title, text = await _load_chapter(ctx, args)
        print(text)

    return _run_command("read", args, body)


def run_download_cmd(args: argparse.Namespace) -> int:
    async def body(ctx: CommandContext) -> None:
        async with _open_parser(ctx, args) as parser:
            info = await parser.get_book_info(args.book_url)
            output = args.output or ctx.config.paths.out / f"{slugify(info.name)}.txt"
            downloader = Downloader(
                parser,
                info,
                args.from_chapter,
                concurrency=ctx.config.download.concurrency,
            )
            ctx.logger.info("Downloading %s to %s", info.name, output)
            count = await downloader.download(
                output,
                lambda chapter, done, total: print(render_download_progress(chapter, done, total)),
            )
        print(f"Downloaded {count} chapter(s) to {output}")

    return _run_command("download", args, body)


def run_speak_cmd(args: argparse.Namespace) -> int:
    async def body(ctx: CommandContext) -> None:
        title, chapter_title, text = await _load_chapter(ctx, args)
        synthesizer = build_synthesizer(ctx.config)
        await asyncio.to_thread(synthesizer.ensure_loaded)

        chapter = ChapterTTS(synthesizer, text, ctx.config.tts.segment_limit)
        if args.segment:
            await chapter.reset(args.segment)
        output_path = args.output or (
            ctx.config.paths.out / slugify(title) / f"{args.chapter:04d}-{slugify(chapter_title)}.wav"
        )

        def on_error(exc: SynthError) -> None:
            ctx.error_log.add_error(
                None,
                ErrorSeverity.WARNING,
                f"Skipped segment: {exc.text[:40]}",
                step="speak",
                chapter_index=args.chapter,
                exc=exc,
            )

        def on_position(index: int) -> None:
            text_now = chapter.text_at(index) if index < len(chapter) else None
            print(render_position(index, len(chapter), text_now))

        ctx.logger.info("Speaking %s / %s (%d segments)", title, chapter_title, len(chapter))
        output, positions = chapter.stream(args.voice, on_error)
        try:
            result = await export_stream(output, output_path, positions, on_position)
        finally:
            await chapter.aclose()
        print(f"Wrote {result.path} ({result.duration:.1f}s)")

    return _run_command("speak", args, body)


def override_log_level(config: Config, level: str) -> Config:
    """Override the logging configuration with a new log level."""
    logging_cfg = LoggingConfig(level=level.upper(), console_level=level.upper())
    return replace(config, logging=logging_cfg)


def override_console_level(config: Config, level: str) -> Config:
    """Override only the console log level (file level remains unchanged)."""
    logging_cfg = LoggingConfig(
        level=config.logging.level,
        console_level=level.upper(),
    )
    return replace(config, logging=logging_cfg)


def _run_command(
    command: str,
    args: argparse.Namespace,
    body: Callable[[CommandContext], Awaitable[None]],
) -> int:
    try:
        config = load_config(args.config, cwd=Path.cwd())
    except (FileNotFoundError, ValueError) as exc:
        print(str(exc))
        return EXIT_CONFIG

    if getattr(args, "verbose", False):
        config = override_console_level(config, "DEBUG")
    elif args.log_level:
        config = override_log_level(config, args.log_level)

    ensure_dir(config.paths.out)
    run_id = generate_run_id()
    log_ctx = initialize_logging(config, run_id)
    ctx = CommandContext(
        command=command,
        config=config,
        log_ctx=log_ctx,
        error_log=log_ctx.error_log_store.get_log(run_id, command),
    )
    ctx.logger.debug("%s", config_summary(config))

    try:
        asyncio.run(body(ctx))
    except KeyboardInterrupt:
        print("Interrupted.")
        return EXIT_FAILURE
    except (TrnovelError, OSError, IndexError) as exc:
        ctx.logger.error("%s failed: %s", command, exc)
        ctx.error_log.add_error(None, ErrorSeverity.ERROR, f"{command} failed", step=command, exc=exc)
        print(f"Error: {exc}")
        return EXIT_FAILURE
    finally:
        saved = log_ctx.error_log_store.save(ctx.error_log)
        if saved is not None:
            ctx.logger.info("Error details written to %s", saved)
    return EXIT_OK


def _load_sources(config: Config, sources_file: Path | None) -> list[BookSource]:
    path = sources_file or config.paths.sources
    if not path.exists():
        raise FileNotFoundError(f"Book source file not found: {path}")
    return BookSource.from_path(path)


def _select_source(sources: list[BookSource], key: str) -> BookSource:
    for source in sources:
        if source.book_source_name == key:
            return source
    try:
        return sources[int(key)]
    except (ValueError, IndexError):
        raise TrnovelError(f"No book source named or numbered {key!r}") from None


def _open_parser(ctx: CommandContext, args: argparse.Namespace) -> BookSourceParser:
    source = _select_source(_load_sources(ctx.config, args.sources_file), args.source)
    client = HttpClient(
        source.book_source_url,
        source.effective_http_config(),
        default_timeout_ms=ctx.config.http.timeout_ms,
        user_agent=ctx.config.http.user_agent,
    )
    ctx.logger.debug("Using book source %s", source.book_source_name)
    return BookSourceParser(source, http_client=client)


async def _load_chapter(ctx: CommandContext, args: argparse.Namespace) -> tuple[str, str, str]:
    """Return ``(book title, chapter title, chapter text)`` for a file or a book URL."""
    target = Path(args.target)
    if target.is_file():
        novel = open_novel(target)
        chapter = novel.chapters[args.chapter]
        return novel.title, chapter.title, novel.chapter_text(args.chapter)

    async with _open_parser(ctx, args) as parser:
        info = await parser.get_book_info(args.target)
        chapters = await parser.get_chapters(info.toc_url)
        chapter = chapters[args.chapter]
        content = await parser.get_content(chapter.chapter_url)
    return info.name, chapter.chapter_name, content
