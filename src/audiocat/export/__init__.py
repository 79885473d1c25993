"""Analysis report export (JSON sidecars, CSV)."""

import csv
import json
import re
from pathlib import Path

from rich.console import Console

from audiocat.errors import UnsupportedFormatError
from audiocat.processor import ProcessResult

REPORT_FORMATS = ("json", "csv")


def sanitize_filename(name: str) -> str:
    """Sanitize a string for use as a filename.

    Args:
        name: The string to sanitize.

    Returns:
        A filesystem-safe version of the name.
    """
    # Replace problematic characters with underscores
    sanitized = re.sub(r'[<>:"/\\|?*]', '_', name)
    # Collapse runs of spaces/underscores
    sanitized = re.sub(r'[\s_]+', '_', sanitized)
    sanitized = sanitized.strip('_ ')
    if len(sanitized) > 50:
        sanitized = sanitized[:50].rstrip('_')
    return sanitized or "unnamed"


def result_record(result: ProcessResult) -> dict:
    """Flatten a processing result into a JSON-friendly dict."""
    metadata = result.metadata
    record = {
        "source": result.source.name,
        "duration_seconds": round(metadata.duration, 3),
        "sample_rate": metadata.sample_rate,
        "channels": metadata.channels,
        "bit_depth": metadata.bit_depth,
        "codec": metadata.codec,
        "bitrate": metadata.bitrate,
        "skipped": result.analysis.skipped,
    }
    record.update(result.analysis.to_dict())
    return record


def export_json(results: list[ProcessResult], output_dir: Path, console: Console) -> list[Path]:
    """Write one JSON sidecar per processed file.

    Sidecars are named after the source file stem, e.g. ``song.json``.
    Sources sharing a stem get a numeric suffix (``song_2.json``).

    Args:
        results: Processing results.
        output_dir: Directory to write sidecar files.
        console: Rich console for output.

    Returns:
        Paths of the written files.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    used_names: set[str] = set()
    for result in results:
        stem = sanitize_filename(result.source.stem)
        name = stem
        suffix = 2
        while name in used_names:
            name = f"{stem}_{suffix}"
            suffix += 1
        used_names.add(name)

        sidecar_path = output_dir / f"{name}.json"
        with open(sidecar_path, "w") as f:
            json.dump(result_record(result), f, indent=2)
        written.append(sidecar_path)

    console.print(f"[green]Exported:[/green] {len(written)} sidecar(s)")
    console.print(f"Output directory: {output_dir}")
    return written


def export_csv(results: list[ProcessResult], output_path: Path, console: Console) -> Path:
    """Write all results as rows of one CSV file.

    Args:
        results: Processing results.
        output_path: Path to the output CSV file.
        console: Rich console for output.

    Returns:
        The CSV path.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)

    rows = []
    for result in results:
        tempo = result.analysis.tempo
        key = result.analysis.key
        rows.append({
            "source": result.source.name,
            "duration_seconds": f"{result.metadata.duration:.2f}",
            "sample_rate": result.metadata.sample_rate,
            "channels": result.metadata.channels,
            "bpm": f"{tempo.bpm:.1f}" if tempo and tempo.detected else "",
            "tempo_confidence": f"{tempo.confidence:.3f}" if tempo else "",
            "key": key.name if key and key.detected else "",
            "camelot": key.camelot if key and key.detected else "",
            "key_score": f"{key.score:.3f}" if key else "",
            "skipped": "yes" if result.analysis.skipped else "",
        })

    if not rows:
        console.print("[yellow]No results to export.[/yellow]")
        return output_path

    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
        writer.writeheader()
        writer.writerows(rows)

    console.print(f"[green]Exported:[/green] {len(rows)} result(s) to CSV")
    console.print(f"Output file: {output_path}")
    return output_path


def export_report(
    results: list[ProcessResult],
    format: str,
    output: Path,
    console: Console,
) -> None:
    """Export analysis results in the given report format (json or csv).

    Raises:
        UnsupportedFormatError: If the report format is unknown.
    """
    if format not in REPORT_FORMATS:
        raise UnsupportedFormatError(
            f"Unknown report format: {format} (supported: {', '.join(REPORT_FORMATS)})"
        )
    if not results:
        console.print("[yellow]No results to export.[/yellow]")
        return

    if format == "json":
        export_json(results, output, console)
    else:
        export_csv(results, output, console)
