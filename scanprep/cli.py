"""Command-line interface for single and batch image preprocessing.

Provides subcommands for preprocessing one image or a folder of images,
writing processed files and a CSV summary of the batch.
"""

import argparse
import csv
import mimetypes
import sys
import time
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from scanprep.history.store import HistoryStore, record_run
from scanprep.preprocessing.errors import PreprocessingError
from scanprep.preprocessing.pipeline import PreprocessingPipeline
from scanprep.preprocessing.raster import MIME_TO_FORMAT, OutputArtifact
from scanprep.utils.config import AppConfig, build_filter_config, load_config
from scanprep.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)

_SUPPORTED_EXTENSIONS = (
    "*.png",
    "*.jpg",
    "*.jpeg",
    "*.webp",
    "*.bmp",
    "*.tiff",
    "*.tif",
)
_SUMMARY_COLUMNS = [
    "filename",
    "status",
    "mime_type",
    "width",
    "height",
    "sharpness_before",
    "sharpness_after",
    "contrast_before",
    "contrast_after",
    "processing_time_s",
    "error",
]


def _find_images(input_dir: Path) -> list[Path]:
    """Find all supported image files in a directory.

    Args:
        input_dir: Directory to scan for images.

    Returns:
        Sorted list of image file paths.
    """
    files: list[Path] = []
    for ext in _SUPPORTED_EXTENSIONS:
        files.extend(input_dir.glob(ext))
        files.extend(input_dir.glob(ext.upper()))
    return sorted(set(files))


def _guess_mime_type(path: Path) -> str | None:
    """Guess a supported MIME type from a file extension."""
    mime_type, _ = mimetypes.guess_type(path.name)
    if mime_type in MIME_TO_FORMAT:
        return mime_type
    return None


def _make_pipeline(
    config: AppConfig, overrides: Mapping[str, Any]
) -> PreprocessingPipeline:
    filters = build_filter_config(overrides, base=config.preprocessing)
    return PreprocessingPipeline(filters, config.output)


def process_file(
    file_path: Path,
    output_path: Path,
    pipeline: PreprocessingPipeline,
    history: HistoryStore | None = None,
) -> OutputArtifact:
    """Preprocess one image file and write the result.

    Args:
        file_path: Source image.
        output_path: Destination for the processed image.
        pipeline: Configured preprocessing pipeline.
        history: Optional history store to record the run in.

    Returns:
        The processed artifact.
    """
    artifact = pipeline.process(file_path.read_bytes(), _guess_mime_type(file_path))
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(artifact.data)
    record_run(history, artifact, file_path.name, pipeline.config)
    return artifact


def _summary_row(
    file_path: Path, artifact: OutputArtifact, elapsed: float
) -> dict[str, object]:
    row: dict[str, object] = {
        "filename": file_path.name,
        "status": "success",
        "mime_type": artifact.mime_type,
        "width": artifact.width,
        "height": artifact.height,
        "processing_time_s": round(elapsed, 3),
        "error": None,
    }
    if artifact.metrics is not None:
        row["sharpness_before"] = round(artifact.metrics.sharpness_before, 3)
        row["sharpness_after"] = round(artifact.metrics.sharpness_after, 3)
        row["contrast_before"] = round(artifact.metrics.contrast_before, 3)
        row["contrast_after"] = round(artifact.metrics.contrast_after, 3)
    return row


def process_folder(
    input_dir: Path,
    output_dir: Path,
    pipeline: PreprocessingPipeline,
    history: HistoryStore | None = None,
    workers: int = 4,
    verbose: bool = False,
) -> dict[str, int]:
    """Preprocess all images in a folder and write a CSV summary.

    Each image is processed independently; a failure is recorded in the
    summary and does not stop the batch.

    Args:
        input_dir: Directory containing image files.
        output_dir: Directory for processed images and ``summary.csv``.
        pipeline: Configured preprocessing pipeline.
        history: Optional history store to record runs in.
        workers: Number of images processed in parallel.
        verbose: Whether to print per-file progress.

    Returns:
        Summary dict with total, successful, and failed counts.
    """
    files = _find_images(input_dir)
    if not files:
        logger.warning("No images found in %s", input_dir)
        return {"total": 0, "successful": 0, "failed": 0}

    logger.info("Found %d images to process", len(files))

    def run(file_path: Path) -> dict[str, object]:
        start_time = time.time()
        try:
            artifact = process_file(
                file_path, output_dir / file_path.name, pipeline, history
            )
        except (PreprocessingError, OSError) as exc:
            logger.error("Failed to process %s: %s", file_path.name, exc)
            return {"filename": file_path.name, "status": "failed", "error": str(exc)}
        return _summary_row(file_path, artifact, time.time() - start_time)

    with ThreadPoolExecutor(max_workers=max(1, workers)) as executor:
        results = list(executor.map(run, files))

    if verbose:
        for i, result in enumerate(results, 1):
            print(f"[{i}/{len(results)}] {result['filename']}: {result['status']}")

    successful = sum(1 for r in results if r["status"] == "success")
    summary_path = output_dir / "summary.csv"
    _write_csv(results, summary_path)
    logger.info("Summary written to %s", summary_path)

    summary = {
        "total": len(files),
        "successful": successful,
        "failed": len(files) - successful,
    }
    _print_summary(summary, output_dir)
    return summary


def _write_csv(results: list[dict[str, object]], output_path: Path) -> None:
    """Write per-file results to a CSV file.

    Args:
        results: List of result dictionaries.
        output_path: Path for the output CSV file.
    """
    if not results:
        return

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=_SUMMARY_COLUMNS, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(results)


def _print_summary(summary: dict[str, int], output_dir: Path) -> None:
    """Print batch processing summary to stdout."""
    print(f"\n{'=' * 50}")
    print("Batch Preprocessing Complete")
    print(f"{'=' * 50}")
    print(f"Total:      {summary['total']}")
    print(f"Successful: {summary['successful']}")
    print(f"Failed:     {summary['failed']}")
    print(f"Output:     {output_dir}")


def _add_filter_arguments(parser: argparse.ArgumentParser) -> None:
    """Register filter override flags shared by all subcommands."""
    parser.add_argument(
        "--brightness", type=int, help="Brightness offset in [-50, 50]"
    )
    parser.add_argument("--contrast", type=int, help="Contrast value in [-50, 50]")
    parser.add_argument(
        "--grayscale", action="store_true", default=None, help="Convert to grayscale"
    )
    parser.add_argument(
        "--sharpen", action="store_true", default=None, help="Apply sharpening"
    )
    parser.add_argument(
        "--auto-rotate",
        action="store_true",
        default=None,
        dest="auto_rotate",
        help="Request EXIF rotation (not implemented, no-op)",
    )
    parser.add_argument(
        "--deskew",
        action="store_true",
        default=None,
        help="Request skew correction (not implemented, no-op)",
    )
    parser.add_argument(
        "-c", "--config", type=Path, default=None, help="YAML configuration file"
    )


def _filter_overrides(args: argparse.Namespace) -> dict[str, Any]:
    return {
        "brightness": args.brightness,
        "contrast": args.contrast,
        "grayscale": args.grayscale,
        "sharpen": args.sharpen,
        "auto_rotate": args.auto_rotate,
        "deskew": args.deskew,
    }


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and dispatch to the appropriate command.

    Args:
        argv: Command-line arguments (defaults to sys.argv).
    """
    parser = argparse.ArgumentParser(
        description="Document image preprocessor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    single_parser = subparsers.add_parser("process", help="Preprocess a single image")
    single_parser.add_argument("file", type=Path, help="Image file to process")
    single_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Output image file (default: <name>_processed<ext>)",
    )
    _add_filter_arguments(single_parser)

    batch_parser = subparsers.add_parser("batch", help="Preprocess a folder of images")
    batch_parser.add_argument("input_dir", type=Path, help="Input directory with images")
    batch_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("processed"),
        help="Output directory (default: processed)",
    )
    batch_parser.add_argument(
        "-w", "--workers", type=int, default=4, help="Parallel workers (default: 4)"
    )
    batch_parser.add_argument(
        "-v", "--verbose", action="store_true", help="Verbose output"
    )
    _add_filter_arguments(batch_parser)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    try:
        config = load_config(args.config)
        setup_logging(config.log_level)
        pipeline = _make_pipeline(config, _filter_overrides(args))
    except PreprocessingError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)

    history = (
        HistoryStore.from_config(config.history) if config.history.enabled else None
    )

    if args.command == "process":
        if not args.file.exists():
            print(f"Error: {args.file} does not exist", file=sys.stderr)
            sys.exit(1)
        output = args.output or args.file.with_name(
            f"{args.file.stem}_processed{args.file.suffix}"
        )
        try:
            artifact = process_file(args.file, output, pipeline, history)
        except PreprocessingError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            sys.exit(1)
        print(
            f"Output written to {output} ({artifact.width}x{artifact.height}, "
            f"{artifact.mime_type})"
        )
    elif args.command == "batch":
        if not args.input_dir.is_dir():
            print(f"Error: {args.input_dir} is not a directory", file=sys.stderr)
            sys.exit(1)
        summary = process_folder(
            args.input_dir,
            args.output,
            pipeline,
            history,
            args.workers,
            args.verbose,
        )
        if summary["failed"]:
            sys.exit(1)


if __name__ == "__main__":
    main()
