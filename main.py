# main.py

import argparse
import sys
from pathlib import Path

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from mathocr.config import get_config
from mathocr.exceptions import MathOCRError
from mathocr.export import export_docx, export_json
from mathocr.logger import get_logger, set_debug
from mathocr.processors import DocumentProcessor, ProcessingContext
from mathocr.utils import safe_stem

console = Console()


def get_progress():
    return Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=console,
    )


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Extract text (with LaTeX) and figures from math exam PDFs or images"
    )

    parser.add_argument("input", type=Path, help="PDF or image file")
    parser.add_argument("--output-dir", type=Path, help="Where to write the exports (default: OUTPUT_DIR)")
    parser.add_argument("--no-docx", action="store_true", help="Skip the Word export")
    parser.add_argument("--json", action="store_true", help="Also write the results as JSON")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")

    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    config = get_config()
    if args.debug:
        config.debug = True
        set_debug(True)
    if args.output_dir:
        config.output_dir = args.output_dir

    logger = get_logger("cli")
    context = ProcessingContext(config=config)
    processor = DocumentProcessor(context)

    logger.info(f"📄 Processing {args.input.name}")

    progress = get_progress()
    with progress:
        task = progress.add_task("Starting", total=None)

        def on_progress(message, current, total):
            progress.update(task, description=message, completed=current - 1, total=total)

        try:
            results = processor.run(args.input, on_progress)
        except MathOCRError as e:
            progress.stop()
            console.print(f"[bold red]❌ {e.message}[/bold red]")
            logger.debug(str(e))
            return 1

        progress.update(task, description="Done", completed=len(results), total=len(results))

    stem = safe_stem(args.input)

    try:
        if not args.no_docx:
            docx_path = config.get_docx_path(stem)
            export_docx(results, docx_path, config.export)
            logger.info(f"✅ Word export written to {docx_path}")

        if args.json:
            json_path = export_json(results, config.get_json_path(stem), stats=context.stats)
            logger.info(f"✅ JSON export written to {json_path}")
    except MathOCRError as e:
        console.print(f"[bold red]❌ {e.message}[/bold red]")
        return 1

    console.print(context.stats.summary_str())
    return 0


if __name__ == "__main__":
    sys.exit(main())
