"""Command-line interface for the call screener."""

import json
import logging
import os
import sys
import wave
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .analysis.beep import FrequencyBeepDetector
from .analysis.evidence import Classification, EmergencyType, LegitimacyReason
from .core.audio import SAMPLE_RATE, AudioChunk, load_wav_resampled
from .core.config import SessionConfig, build_classifiers, load_config
from .core.errors import ConfigError, ScreenerError, TranscriptionError
from .core.orchestrator import AnalysisOrchestrator, Decision
from .core.sources import WavFileChunkSource
from .core.transcription import ScriptedTranscriptionEngine, VoskTranscriptionEngine


console = Console()

CLASSIFICATION_COLORS = {
    Classification.ROBOT: "magenta",
    Classification.SPAM: "red",
    Classification.EMERGENCY: "bold yellow",
    Classification.LEGITIMATE: "green",
    Classification.UNCERTAIN: "cyan",
}


def setup_logging(log_file: Optional[str] = "screener.log", level: str = "INFO", verbose: bool = False):
    """Configure logging to file and, when verbose, to the console."""
    log_level = getattr(logging, os.environ.get("SCREENER_LOG_LEVEL", level).upper(), logging.INFO)

    handlers: list[logging.Handler] = []
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))
        handlers.append(file_handler)

    if verbose:
        rich_handler = RichHandler(console=console, show_path=False)
        rich_handler.setLevel(logging.DEBUG)
        handlers.append(rich_handler)
        log_level = logging.DEBUG

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    return logging.getLogger("screener")


def _reason_text(reason) -> str:
    if isinstance(reason, LegitimacyReason):
        return reason.display_name
    if isinstance(reason, EmergencyType):
        return reason.description
    return "-"


def print_decision(decision: Decision):
    color = CLASSIFICATION_COLORS.get(decision.classification, "white")

    table = Table(title="Screening Decision")
    table.add_column("Property", style="cyan")
    table.add_column("Value")

    table.add_row("Phone Number", decision.phone_number or "-")
    table.add_row("Classification", f"[{color}]{decision.classification.value}[/{color}]")
    if decision.category:
        table.add_row("Category", f"{decision.category.display_name} ({decision.category.description})")
    else:
        table.add_row("Category", "-")
    table.add_row("Reason", _reason_text(decision.reason))
    table.add_row("Confidence", f"{decision.confidence:.0%}")
    table.add_row("Matched", ", ".join(decision.matched_terms) or "-")
    table.add_row("Elapsed", f"{decision.elapsed_ms}ms")
    table.add_row("Action", "hang up" if decision.should_hang_up else "alert user")

    console.print(table)
    if decision.transcript:
        console.print(f"\n[bold]Transcript:[/bold] {decision.transcript}")


@click.group()
@click.option("--config", "-c", help="Path to config file", default=None)
@click.option("--log-file", default="screener.log", help="Log file path")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging on the console")
@click.pass_context
def cli(ctx, config, log_file, verbose):
    """Call Screener - classify incoming calls from their first seconds of audio."""
    ctx.ensure_object(dict)
    setup_logging(log_file, verbose=verbose)
    try:
        ctx.obj["config"] = load_config(config)
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        sys.exit(1)


def _session_config(config: dict, **overrides) -> SessionConfig:
    try:
        return SessionConfig.from_dict(config.get("session"), **overrides)
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        sys.exit(1)


def _classifiers(config: dict) -> dict:
    try:
        return build_classifiers(config.get("keywords"))
    except ConfigError as e:
        console.print(f"[red]Config error:[/red] {e}")
        sys.exit(1)


@cli.command()
@click.argument("audio_file", type=click.Path(exists=True))
@click.option("--transcript", "-t", type=click.Path(exists=True),
              help="Text file with one transcript fragment per chunk")
@click.option("--vosk-model", help="Vosk model directory (overrides config)")
@click.option("--number", "-n", default="unknown", help="Caller number to report")
@click.option("--user-name", help="Your name, as callers would say it")
@click.option("--family", "family_names", multiple=True, help="Family member name (repeatable)")
@click.option("--keyword", "custom_keywords", multiple=True, help="Custom emergency keyword (repeatable)")
@click.option("--budget-ms", type=int, help="Analysis time budget (5000-20000)")
@click.option("--chunk-ms", type=int, help="Chunk duration in milliseconds")
@click.option("--json", "as_json", is_flag=True, help="Print the decision as JSON")
@click.pass_context
def analyze(ctx, audio_file, transcript, vosk_model, number, user_name, family_names,
            custom_keywords, budget_ms, chunk_ms, as_json):
    """Screen a recorded call from a WAV file.

    Audio is played back chunk by chunk in simulated time, so the session
    sees the recording exactly as it would arrive during a live call.
    """
    config = ctx.obj["config"]

    session_config = _session_config(
        config,
        budget_ms=budget_ms,
        chunk_interval_ms=chunk_ms,
        user_name=user_name,
        family_names=family_names or None,
        custom_keywords=custom_keywords or None,
    )

    model_path = vosk_model or (config.get("vosk") or {}).get("model_path")
    if transcript:
        engine = ScriptedTranscriptionEngine.from_file(transcript)
    elif model_path:
        engine = VoskTranscriptionEngine(model_path)
    else:
        if not as_json:
            console.print("[dim]No transcript or speech model; using tone detection only[/dim]")
        engine = ScriptedTranscriptionEngine([])

    try:
        engine.initialize()
    except TranscriptionError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    source = WavFileChunkSource(audio_file)
    orchestrator = AnalysisOrchestrator(
        source_factory=lambda: source,
        engine=engine,
        pause_s=0.0,
        clock=lambda: source.playback_s,
        **_classifiers(config),
    )

    if not as_json:
        console.print(f"\n[bold]Screening: {audio_file}[/bold]\n")

    try:
        decision = orchestrator.run(number, session_config)
    except ScreenerError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(decision.to_dict(), indent=2, ensure_ascii=False))
    else:
        print_decision(decision)


@cli.command()
@click.argument("text")
@click.option("--user-name", help="Your name, as callers would say it")
@click.option("--family", "family_names", multiple=True, help="Family member name (repeatable)")
@click.pass_context
def classify(ctx, text, user_name, family_names):
    """Run every text classifier on a transcript."""
    from .analysis.legitimacy import LegitimacyClassifier

    config = ctx.obj["config"]
    classifiers = _classifiers(config)
    session_config = _session_config(config, user_name=user_name, family_names=family_names or None)

    robot = classifiers["robot_detector"].detect(text)
    emergency = classifiers["emergency_classifier"].classify(text)
    legitimacy = classifiers["legitimacy_classifier"].classify(text)
    spam = classifiers["spam_classifier"].classify(text)

    table = Table(title="Transcript Analysis")
    table.add_column("Detector", style="cyan")
    table.add_column("Detected")
    table.add_column("Confidence", justify="right")
    table.add_column("Label")
    table.add_column("Matched")

    def yes_no(value: bool) -> str:
        return "[green]yes[/green]" if value else "[dim]no[/dim]"

    table.add_row("Robot/IVR", yes_no(robot.is_robot), f"{robot.confidence:.0%}",
                  robot.reasoning, ", ".join(robot.patterns) or "-")
    table.add_row("Emergency", yes_no(emergency.positive), f"{emergency.confidence:.0%}",
                  emergency.label or "-", ", ".join(emergency.matched_terms) or "-")
    table.add_row("Legitimacy", yes_no(legitimacy.positive), f"{legitimacy.confidence:.0%}",
                  legitimacy.label or "-", ", ".join(legitimacy.matched_terms) or "-")
    table.add_row("Spam", yes_no(spam.positive), f"{spam.confidence:.0%}",
                  spam.label or "-", ", ".join(spam.matched_terms) or "-")

    console.print(table)

    if session_config.user_name and LegitimacyClassifier.contains_name(text, session_config.user_name):
        console.print(f"\n[green]Caller said your name ({session_config.user_name})[/green]")
    family = LegitimacyClassifier.contains_any_name(text, session_config.family_names)
    if family:
        console.print(f"\n[green]Caller mentioned family member {family}[/green]")
    if emergency.positive:
        console.print(f"\n[bold yellow]{classifiers['emergency_classifier'].alert_message(text)}[/bold yellow]")


@cli.command()
@click.argument("audio_file", type=click.Path(exists=True))
@click.option("--chunk-ms", type=int, default=2000, help="Chunk duration in milliseconds")
def beep(audio_file, chunk_ms):
    """Check each chunk of a WAV file for autodialer tones."""
    if chunk_ms <= 0:
        console.print("[red]--chunk-ms must be positive[/red]")
        sys.exit(1)

    try:
        samples = load_wav_resampled(audio_file, SAMPLE_RATE)
    except (OSError, EOFError, ValueError, wave.Error) as e:
        console.print(f"[red]Error reading {audio_file}:[/red] {e}")
        sys.exit(1)

    detector = FrequencyBeepDetector()
    step = int(SAMPLE_RATE * chunk_ms / 1000)

    table = Table(title=f"Tone Detection: {Path(audio_file).name}")
    table.add_column("Chunk", justify="right")
    table.add_column("Start", justify="right")
    table.add_column("Beep")
    table.add_column("Energy", justify="right")
    table.add_column("Reasoning")

    found = 0
    for index, offset in enumerate(range(0, len(samples), step), start=1):
        chunk = AudioChunk.from_float(samples[offset:offset + step], SAMPLE_RATE)
        result = detector.detect(chunk)
        if result.is_beep:
            found += 1
        table.add_row(
            str(index),
            f"{offset / SAMPLE_RATE:.1f}s",
            "[magenta]yes[/magenta]" if result.is_beep else "[dim]no[/dim]",
            f"{result.energy:.2f}",
            result.reasoning,
        )

    console.print(table)
    console.print(f"\nChunks with tones: {found}")


@cli.command("config")
@click.pass_context
def show_config(ctx):
    """Show the effective session configuration."""
    config = ctx.obj["config"]
    session_config = _session_config(config)
    _classifiers(config)

    table = Table(title="Session Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Budget", f"{session_config.budget_ms}ms")
    table.add_row("Chunk Interval", f"{session_config.chunk_interval_ms}ms")
    table.add_row("User Name", session_config.user_name or "-")
    table.add_row("Family Names", ", ".join(session_config.family_names) or "-")
    table.add_row("Custom Keywords", ", ".join(session_config.custom_keywords) or "-")
    table.add_row("Vosk Model", str((config.get("vosk") or {}).get("model_path") or "-"))

    console.print(table)

    keywords = config.get("keywords") or {}
    for section, entries in keywords.items():
        for name, words in (entries or {}).items():
            console.print(f"[dim]+ {section}.{name}: {len(words or [])} extra keywords[/dim]")


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
