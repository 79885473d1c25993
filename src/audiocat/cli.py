"""CLI interface for audiocat."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TaskID
from rich.table import Table

from audiocat import __version__
from audiocat.errors import AudiocatError

app = typer.Typer(
    name="audiocat",
    help="Extract, convert and analyze audio (tempo, key) from media files.",
    no_args_is_help=True,
)
console = Console()

LOGO = """
    ╱╲_╱╲
   (=◕ᴥ◕=)  AUDIOCAT
    ╰───╯  ▁▃▅▇▅▃▁
"""


class ProgressReporter:
    """Forwards processor stages to a rich progress task."""

    def __init__(self, progress: Progress, task: TaskID, label: str):
        self.progress = progress
        self.task = task
        self.label = label

    def on_stage(self, stage: str) -> None:
        self.progress.update(self.task, description=f"{self.label}: {stage}")

    def on_progress(self, percent: int) -> None:
        self.progress.update(self.task, completed=percent)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(LOGO)
        console.print(f"Version: {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log debug events to stderr.",
    ),
) -> None:
    """Audiocat - tempo, key and format conversion for any media file."""
    from audiocat.log import configure_logging

    configure_logging(verbose)


@app.command()
def info(
    source: Path = typer.Argument(..., help="Media file to inspect."),
) -> None:
    """Show the audio stream information of a media file."""
    from audiocat.config import get_ffmpeg_path
    from audiocat.converter import probe_media

    if not source.exists():
        console.print(f"[red]Error:[/red] File not found: {source}")
        raise typer.Exit(1)

    _require_ffmpeg()

    try:
        metadata = probe_media(source, get_ffmpeg_path())
    except AudiocatError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    table = Table(show_header=False, box=None, padding=(0, 1))
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Codec", metadata.codec or "-")
    table.add_row("Duration", f"{metadata.duration:.2f}s")
    table.add_row("Sample rate", f"{metadata.sample_rate} Hz")
    table.add_row("Channels", str(metadata.channels))
    table.add_row("Bit depth", str(metadata.bit_depth))
    table.add_row("Bitrate", f"{metadata.bitrate} kb/s" if metadata.bitrate else "-")
    console.print(f"[bold]{source.name}[/bold]")
    console.print(table)


@app.command()
def analyze(
    sources: list[Path] = typer.Argument(..., help="Media files to analyze."),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        "-t",
        help="Give up on tempo/key after this many seconds per file.",
    ),
    report: Optional[Path] = typer.Option(
        None,
        "--report",
        "-r",
        help="Write results to this directory (json) or file (csv).",
    ),
    report_format: str = typer.Option(
        "json",
        "--report-format",
        help="Report format: json, csv",
    ),
    show_waveform: bool = typer.Option(
        False,
        "--waveform",
        help="Print a coarse waveform of each file.",
    ),
) -> None:
    """Detect tempo and musical key of media files."""
    from audiocat.config import get_analysis_timeout
    from audiocat.export import REPORT_FORMATS, export_report
    from audiocat.processor import AudioProcessor

    missing = [s for s in sources if not s.exists()]
    if missing:
        console.print(f"[red]Error:[/red] File not found: {missing[0]}")
        raise typer.Exit(1)

    if report_format not in REPORT_FORMATS:
        console.print(f"[red]Error:[/red] Unknown report format: {report_format}")
        console.print(f"Supported formats: {', '.join(REPORT_FORMATS)}")
        raise typer.Exit(1)

    _require_ffmpeg()

    timeout = timeout if timeout is not None else get_analysis_timeout()
    results = []
    error_count = 0

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        for source in sources:
            task = progress.add_task(source.name, total=100)
            reporter = ProgressReporter(progress, task, source.name)
            with AudioProcessor(observer=reporter, timeout=timeout) as processor:
                try:
                    results.append(processor.process_file(source))
                except AudiocatError as e:
                    console.print(f"[red]Error analyzing {source.name}:[/red] {e}")
                    error_count += 1
            progress.remove_task(task)

    for result in results:
        _print_result(result, show_waveform)

    if report is not None and results:
        export_report(results, report_format, report, console)

    if error_count:
        console.print(f"[red]Errors:[/red] {error_count}")
        raise typer.Exit(1)


@app.command()
def convert(
    source: Path = typer.Argument(..., help="Media file to convert."),
    format: Optional[str] = typer.Option(
        None,
        "--format",
        "-f",
        help="Export format: flac, wav, mp3, aac (default from config).",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output directory.",
    ),
) -> None:
    """Extract the audio of a media file and export it."""
    from audiocat.config import get_default_format, get_output_dir
    from audiocat.converter import get_export_format
    from audiocat.processor import AudioProcessor

    if not source.exists():
        console.print(f"[red]Error:[/red] File not found: {source}")
        raise typer.Exit(1)

    _require_ffmpeg()

    format = (format or get_default_format()).lower()
    output = output or get_output_dir()

    try:
        get_export_format(format)
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task(source.name, total=100)
            with AudioProcessor(observer=ProgressReporter(progress, task, source.name)) as processor:
                result = processor.process_file(source)
                artifact = processor.convert(format, output)
    except AudiocatError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    _print_result(result, show_waveform=False)
    console.print(f"[green]Exported:[/green] {artifact.path} [dim]({artifact.mime_type})[/dim]")


@app.command("config")
def config_(
    ffmpeg: Optional[str] = typer.Option(None, "--ffmpeg", help="ffmpeg executable to use."),
    default_format: Optional[str] = typer.Option(
        None,
        "--default-format",
        help="Export format used when --format is not given.",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Default analysis budget in seconds (0 for none).",
    ),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", help="Default export directory."),
) -> None:
    """Show or update the configuration."""
    from audiocat.config import (
        default_config_path,
        get_analysis_timeout,
        get_default_format,
        get_ffmpeg_path,
        get_output_dir,
        set_config_value,
    )
    from audiocat.converter import EXPORT_FORMATS

    if default_format is not None and default_format.lower() not in EXPORT_FORMATS:
        console.print(f"[red]Error:[/red] Unsupported format: {default_format}")
        console.print(f"Supported formats: {', '.join(EXPORT_FORMATS)}")
        raise typer.Exit(1)

    if ffmpeg is not None:
        set_config_value("ffmpeg_path", ffmpeg)
    if default_format is not None:
        set_config_value("default_format", default_format.lower())
    if timeout is not None:
        set_config_value("analysis_timeout", timeout or None)
    if output_dir is not None:
        set_config_value("output_dir", str(output_dir))

    timeout_value = get_analysis_timeout()
    console.print(f"[bold]Config:[/bold] {default_config_path()}")
    console.print(f"  ffmpeg: {get_ffmpeg_path()}")
    console.print(f"  default format: {get_default_format()}")
    console.print(f"  analysis timeout: {f'{timeout_value:g}s' if timeout_value else 'none'}")
    console.print(f"  output dir: {get_output_dir()}")


def _require_ffmpeg() -> None:
    """Exit with an install hint when the configured ffmpeg cannot be run."""
    from audiocat.config import get_ffmpeg_path
    from audiocat.converter import check_ffmpeg

    ffmpeg = get_ffmpeg_path()
    if not check_ffmpeg(ffmpeg):
        console.print(f"[red]Error:[/red] ffmpeg not found: {ffmpeg}. Install with: brew install ffmpeg")
        raise typer.Exit(1)


def _print_result(result, show_waveform: bool) -> None:
    """Print the metadata and analysis of one processed file."""
    metadata = result.metadata
    analysis = result.analysis
    console.print(
        f"[bold cyan]{result.source.name}[/bold cyan] "
        f"[dim]({metadata.duration:.1f}s, {metadata.sample_rate} Hz, {metadata.codec or 'unknown codec'})[/dim]"
    )

    if analysis.skipped:
        console.print("  [yellow]Analysis skipped (time budget exceeded)[/yellow]")
        return

    table = Table(show_header=True, header_style="bold", box=None, padding=(0, 1))
    table.add_column("BPM")
    table.add_column("Confidence")
    table.add_column("Key")
    table.add_column("Camelot")
    table.add_column("Score")

    tempo = analysis.tempo
    key = analysis.key
    table.add_row(
        f"{tempo.bpm:.1f}" if tempo and tempo.detected else "-",
        f"{tempo.confidence:.2f}" if tempo else "-",
        key.name if key and key.detected else "-",
        key.camelot if key and key.detected else "-",
        f"{key.score:.2f}" if key else "-",
    )
    console.print(table)

    if show_waveform and result.waveform:
        console.print(f"  {_sparkline(result.waveform)}")
    console.print()


SPARK_CHARS = " ▁▂▃▄▅▆▇█"


def _sparkline(peaks: list[float], width: int = 60) -> str:
    """Render waveform peaks as a one-line bar chart."""
    step = max(1, len(peaks) // width)
    columns = [max(peaks[i:i + step]) for i in range(0, len(peaks), step)][:width]
    top = max(columns) or 1.0
    return "".join(SPARK_CHARS[round(v / top * (len(SPARK_CHARS) - 1))] for v in columns)
