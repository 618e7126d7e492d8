#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Command line front end: aggregate one playlist and print or save the result.

Renders a rich table by default, or dumps JSON / YAML. Exit codes:
0 complete, 3 partial (some enrichment failed), 1 fatal error, 2 bad input.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from rich.console import Console
from rich.table import Table
from rich.text import Text

from config import config
from exceptions import AggregationError, AppBaseError, InvalidInputError
from logging_config import setup_logging
from models import AggregationResult, EnrichmentOptions, PlaylistResponse
from services.engine import PlaylistAggregationEngine
from services.youtube_api import YouTubeAPIClient, extract_playlist_id

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_BAD_INPUT = 2
EXIT_PARTIAL = 3


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tubecollate-cli",
        description="Aggregate every video of a YouTube playlist with metadata and top comments.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("playlist", help="Playlist ID or YouTube URL with a 'list' parameter")
    parser.add_argument("--no-details", action="store_true", help="Skip title, statistics and duration")
    parser.add_argument("--no-comments", action="store_true", help="Skip top comments")
    parser.add_argument("--batch", action="store_true", help="One batched video details call per page")
    parser.add_argument("--strict", action="store_true", help="Fail on the first enrichment failure")
    parser.add_argument("--unbounded", action="store_true",
                        help="Do not wait for a page's enrichment before fetching the next page")
    parser.add_argument("--max-comments", type=int, default=config.MAX_COMMENTS, help="Top comments per video")
    parser.add_argument("--format", choices=("table", "json", "yaml"), default="table", dest="output_format")
    parser.add_argument("--output", type=Path, default=None, help="Write JSON/YAML to this file instead of stdout")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log debug output to stderr")
    return parser.parse_args(argv)


def build_options(args: argparse.Namespace) -> EnrichmentOptions:
    return EnrichmentOptions.from_config(
        fetch_video_details=False if args.no_details else None,
        fetch_comments=False if args.no_comments else None,
        batch_video_details=args.batch or None,
        strict=args.strict or None,
        wait_per_page=False if args.unbounded else None,
        max_comments=args.max_comments,
    )


def result_to_dict(result: AggregationResult) -> Dict[str, Any]:
    return PlaylistResponse.from_result(result).model_dump()


def render_table(result: AggregationResult, console: Console) -> None:
    """Print one row per video; positions with failures are marked."""
    failed = set(result.failed_positions)
    table = Table(show_header=True, header_style="bold magenta", border_style="dim", expand=True)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Title", style="cyan", overflow="fold")
    table.add_column("Channel", style="green")
    table.add_column("Duration", justify="right")
    table.add_column("Views", style="blue", justify="right")
    table.add_column("Likes", style="blue", justify="right")
    table.add_column("Top comment", overflow="fold")

    for video in result.videos:
        title = video.title or video.video_id or "(no id)"
        top_comment = video.top_comments[0].text if video.top_comments else ""
        table.add_row(
            Text(str(video.position), style="bold red" if video.position in failed else ""),
            title,
            video.channel_title,
            video.duration_raw,
            video.view_count,
            video.like_count,
            top_comment[:120],
        )
    console.print(table)

    summary = f"{len(result.videos)} video(s) over {result.page_count} page(s)"
    if result.complete:
        console.print(f"[green]{summary}, complete.[/]")
    else:
        console.print(f"[yellow]{summary}, {len(result.failures)} enrichment failure(s):[/]")
        for failure in result.failures:
            console.print(f"  [yellow]#{failure.position}[/] {failure.kind}: {failure.message}")


def dump_result(result: AggregationResult, output_format: str, output: Optional[Path]) -> None:
    data = result_to_dict(result)
    if output_format == "yaml":
        text = yaml.safe_dump(data, allow_unicode=True, sort_keys=False, width=120, default_flow_style=False)
    else:
        text = json.dumps(data, ensure_ascii=False, indent=2)

    if output:
        output.write_text(text, encoding=config.DEFAULT_ENCODING)
    else:
        sys.stdout.write(text)
        if not text.endswith("\n"):
            sys.stdout.write("\n")


async def run(args: argparse.Namespace, console: Console) -> int:
    """Run one aggregation and report it; returns the exit code."""
    # Bad input is reported before the API key is even needed
    playlist_id = extract_playlist_id(args.playlist)
    options = build_options(args)
    engine = PlaylistAggregationEngine(YouTubeAPIClient())
    try:
        result = await engine.aggregate(playlist_id, options)
    finally:
        await engine.shutdown()

    if args.output_format == "table":
        render_table(result, console)
    else:
        dump_result(result, args.output_format, args.output)
        if args.output:
            console.print(f"[green]Wrote {len(result.videos)} video(s) to {args.output}[/]")

    return EXIT_OK if result.complete else EXIT_PARTIAL


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    console = Console(stderr=args.output_format != "table")
    setup_logging(
        log_level_console=logging.DEBUG if args.verbose else logging.WARNING,
        structured=False,
        log_file=None,
    )
    # Console logging goes to stdout in setup_logging; keep stdout for the result
    for handler in logging.getLogger().handlers:
        if isinstance(handler, logging.StreamHandler):
            handler.setStream(sys.stderr)

    try:
        return asyncio.run(run(args, console))
    except InvalidInputError as e:
        console.print(f"[bold red]Invalid input:[/] {e.message}")
        return EXIT_BAD_INPUT
    except AggregationError as e:
        console.print(f"[bold red]Aggregation failed ({e.stage}):[/] {e.message}")
        return EXIT_FATAL
    except AppBaseError as e:
        console.print(f"[bold red]Error ({e.error_code}):[/] {e.message}")
        return EXIT_FATAL
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted.[/]")
        return 130


if __name__ == "__main__":
    sys.exit(main())
