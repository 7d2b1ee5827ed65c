#!/usr/bin/env python3
"""
Read-Aloud Article Reader - Main CLI

Extracts the readable content of a web page and reads it aloud, keeping
a highlight on the word or sentence being spoken.

Features:
- Article extraction from any URL (title, content, excerpt)
- Word or sentence highlighting
- Unit-at-a-time or whole-article speech with estimated progress
- System voices through pyttsx3, or a silent simulated voice
- Estimated timing map export
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click
from rich.live import Live

from readaloud.extract_text import Article, ArticleExtractor, ExtractionError
from readaloud.clean_text import TextCleaner
from readaloud.readalong.console_view import ConsoleView
from readaloud.readalong.controller import DrivingPolicy, PlaybackState, SpeechSessionController
from readaloud.readalong.highlight import HighlightPublisher
from readaloud.readalong.keys import KEY_HELP, KeyControls
from readaloud.readalong.progress import ProgressEstimator
from readaloud.readalong.reader import ArticleReader
from readaloud.readalong.segmenter import Granularity, Segmenter
from readaloud.readalong.speech_engine import SpeechEngineError, get_speech_engine
from readaloud.utils import logger
from readaloud.utils.config import config

GRANULARITIES = [g.value for g in Granularity]
POLICIES = [p.value for p in DrivingPolicy]
RATE = click.FloatRange(min=0, min_open=True)


def _load_article(url: Optional[str], file: Optional[str]) -> Article:
    """Extract from a URL, or read and clean a local text file."""
    if file:
        path = Path(file)
        content = TextCleaner().clean(path.read_text(encoding="utf-8"))
        return Article(title=path.stem, content=content)

    try:
        return ArticleExtractor().extract(url)
    except ExtractionError as e:
        logger.error(e.message)
        if e.detail:
            logger.info(e.detail)
        sys.exit(1)


def _source_options(func):
    func = click.option(
        "-f", "--file",
        type=click.Path(exists=True, dir_okay=False),
        help="Read a local text file instead of a URL",
    )(func)
    func = click.argument("url", required=False)(func)
    return func


def _check_source(url: Optional[str], file: Optional[str]) -> None:
    if not url and not file:
        raise click.UsageError("Give an article URL or --file")


@click.group()
@click.version_option(version="1.0.0")
@click.option("--debug", is_flag=True, help="Trace playback state changes")
def cli(debug: bool):
    """
    Read-Aloud Article Reader

    Extract articles from the web and listen to them with
    synchronized highlighting.
    """
    if debug:
        logger.set_debug(True)


@cli.command()
@click.argument("url", required=False)
@click.option("-o", "--output", type=click.Path(), help="Save the article text to a file")
def extract(url: Optional[str], output: Optional[str]):
    """
    Extract the readable content of a web page.
    """
    article = _load_article(url, None)

    logger.header(article.title or "Untitled")
    if article.excerpt:
        logger.console.print(f"[italic]{article.excerpt}[/italic]\n")

    if output:
        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(article.content, encoding="utf-8")
        logger.success(f"Saved {len(article.content):,} characters to: {output_path}")
    else:
        logger.console.print(article.content, highlight=False)


@cli.command()
@_source_options
@click.option(
    "-g", "--granularity",
    type=click.Choice(GRANULARITIES),
    default=None,
    help=f"Unit size (default: {config.granularity})",
)
def segment(url: Optional[str], file: Optional[str], granularity: Optional[str]):
    """
    Show how an article is split into speakable units.
    """
    _check_source(url, file)
    article = _load_article(url, file)
    segmenter = Segmenter(granularity)
    units = segmenter.split(article.content)

    logger.header(f"{article.title or 'Article'}: {len(units)} {segmenter.granularity.value} units")
    for unit in units:
        marker = "¶" if unit.paragraph_break_before else " "
        logger.console.print(f"  {unit.index:5} {marker} {unit.text}", highlight=False)


@cli.command()
@_source_options
@click.option("-g", "--granularity", type=click.Choice(GRANULARITIES), default=None)
@click.option("-r", "--rate", type=RATE, default=None, help="Speech rate multiplier")
@click.option("-o", "--output", type=click.Path(), default="timing.json", help="Output JSON file")
def timing(
    url: Optional[str],
    file: Optional[str],
    granularity: Optional[str],
    rate: Optional[float],
    output: str,
):
    """
    Export the estimated speaking schedule as a JSON timing map.
    """
    _check_source(url, file)
    article = _load_article(url, file)
    segmenter = Segmenter(granularity)
    units = segmenter.split(article.content)
    if not units:
        logger.warning("Nothing to read in this article")
        return

    try:
        estimator = ProgressEstimator(
            units,
            start_time=0.0,
            rate_multiplier=rate or config.speech_rate,
            words_per_minute=config.words_per_minute,
        )
    except ValueError as e:
        logger.error(f"Invalid speech settings: {e}")
        sys.exit(1)
    timing_map = estimator.to_timing_map(article.title, segmenter.granularity.value)
    timing_map.save(Path(output))
    logger.info(f"Estimated duration: {timing_map.duration / 60:.1f} minutes")


async def _read_aloud(
    url: Optional[str],
    file: Optional[str],
    granularity: Optional[str],
    policy: Optional[str],
    engine_name: Optional[str],
    rate: Optional[float],
) -> None:
    loop = asyncio.get_running_loop()
    engine = get_speech_engine(engine_name, loop)

    publisher = HighlightPublisher(
        top_margin=config.get("highlight", "console_top_rows", default=2),
        bottom_margin=config.get("highlight", "console_bottom_rows", default=3),
    )
    controller = SpeechSessionController(engine, loop, policy=policy, publisher=publisher, rate=rate)
    reader = ArticleReader(controller, segmenter=Segmenter(granularity))

    try:
        if file:
            path = Path(file)
            article = reader.load_text(path.read_text(encoding="utf-8"), title=path.stem)
        else:
            article = await reader.load_async(url)

        if article is None or not reader.units:
            logger.warning("Nothing to read in this article")
            return

        view = ConsoleView(reader.units, title=article.title)
        publisher.geometry = view.geometry
        publisher.subscribe(view.on_highlight)

        finished = asyncio.Event()

        def on_state(state: PlaybackState) -> None:
            view.status = state.value
            if state is PlaybackState.STOPPED:
                finished.set()

        controller.add_state_listener(on_state)

        with KeyControls(reader, loop) as keys:
            hint = KEY_HELP if keys.active else "Press Ctrl+C to stop"
            logger.info(
                f"Reading {len(reader.units)} units with {engine.name} "
                f"({controller.policy.value} policy). {hint}."
            )
            with Live(view, console=logger.console, refresh_per_second=12):
                reader.play()
                await finished.wait()

        logger.success("Finished reading")
    finally:
        reader.close()


@cli.command()
@_source_options
@click.option("-g", "--granularity", type=click.Choice(GRANULARITIES), default=None)
@click.option(
    "-p", "--policy",
    type=click.Choice(POLICIES),
    default=None,
    help=f"unit: one utterance per unit; whole: one utterance (default: {config.policy})",
)
@click.option(
    "-e", "--engine",
    type=click.Choice(["pyttsx3", "simulated"]),
    default=None,
    help=f"Speech engine (default: {config.speech_engine})",
)
@click.option("-r", "--rate", type=RATE, default=None, help="Speech rate multiplier")
def read(
    url: Optional[str],
    file: Optional[str],
    granularity: Optional[str],
    policy: Optional[str],
    engine: Optional[str],
    rate: Optional[float],
):
    """
    Read an article aloud with live highlighting.
    """
    _check_source(url, file)
    try:
        asyncio.run(_read_aloud(url, file, granularity, policy, engine, rate))
    except ExtractionError as e:
        logger.error(e.message)
        sys.exit(1)
    except ValueError as e:
        logger.error(f"Invalid speech settings: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.warning("Stopped")


@cli.command()
def voices():
    """
    List the system voices pyttsx3 can use.
    """
    from readaloud.readalong.speech_pyttsx3 import Pyttsx3SpeechEngine

    logger.header("Available System Voices")

    async def _list():
        engine = Pyttsx3SpeechEngine(asyncio.get_running_loop())
        try:
            return engine.list_voices()
        finally:
            engine.close()

    try:
        found = asyncio.run(_list())
    except SpeechEngineError as e:
        logger.error(str(e))
        sys.exit(1)

    for voice in found:
        marker = "*" if config.voice and config.voice.lower() in voice["id"].lower() else " "
        logger.console.print(f"  {marker} {voice['name']:<30} {voice['id']}", highlight=False)

    logger.console.print(f"\nCurrent default: {config.voice or 'system default'}")


@cli.command()
def info():
    """
    Show configuration.
    """
    logger.header("Read-Aloud Article Reader")

    logger.console.print("[bold]Speech Settings:[/bold]")
    logger.console.print(f"  Engine:        {config.speech_engine}")
    logger.console.print(f"  Voice:         {config.voice or 'system default'}")
    logger.console.print(f"  Rate:          {config.speech_rate}")
    logger.console.print(f"  Granularity:   {config.granularity}")
    logger.console.print(f"  Policy:        {config.policy}")

    logger.console.print("\n[bold]Progress Estimate:[/bold]")
    logger.console.print(f"  Words/minute:  {config.words_per_minute:g}")
    logger.console.print(f"  Tick interval: {config.tick_interval:g}s")

    logger.console.print("\n[bold]Dependencies:[/bold]")
    try:
        import pyttsx3  # noqa: F401
        logger.console.print(f"  {'pyttsx3':<12} [green]OK[/green]")
    except ImportError:
        logger.console.print(f"  {'pyttsx3':<12} [red]NOT FOUND[/red]")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
