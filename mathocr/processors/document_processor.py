"""
Document Processor.

Top-level entry of the pipeline: turns one PDF or image into an ordered
list of PageResult objects.
"""

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from .base import BaseProcessor, ProcessingContext
from .page_processor import PageProcessor
from ..config import Config
from ..exceptions import (
    ClassificationError,
    MathOCRError,
    ProcessingAbortedError,
    UnsupportedInputError,
)
from ..logger import log_timing
from ..models import PageResult, ProcessStatus
from ..utils.file_utils import InputKind, detect_input_kind
from ..utils.timing import format_duration

ProgressCallback = Callable[[str, int, int], None]
InputSource = Union[str, Path, bytes]


class DocumentProcessor(BaseProcessor):
    """
    Process one document, page by page.

    Processing Flow:
    1. Detect the input kind (PDF or image); anything else is rejected
       before any work starts.
    2. PDF: decode once, then for each page in order report progress and
       run the page processor. Image: report (1, 1) and process the image
       as page 1.
    3. Any hard failure aborts the whole run: no partial result is
       returned and the error names the failing page.

    Pages are handled strictly one after another, so at most one model
    request is in flight per run.
    """

    name = "DocumentProcessor"

    def __init__(
        self,
        context: ProcessingContext,
        page_processor: Optional[PageProcessor] = None,
        cancel_event: Optional[threading.Event] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize processor.

        Args:
            context: Processing context for this run
            page_processor: Page processor (built from context when omitted)
            cancel_event: Optional flag checked between pages
            sleep: Delay function used between page retries
        """
        super().__init__(context)
        self.page_processor = page_processor or PageProcessor(context)
        self.cancel_event = cancel_event
        self._sleep = sleep

        self.max_retries = self.config.retry.max_retries
        self.retry_delay = self.config.retry.retry_delay_sec

    def process(
        self,
        source: InputSource,
        on_progress: Optional[ProgressCallback] = None,
        name: Optional[str] = None,
        media_type: Optional[str] = None,
    ) -> List[PageResult]:
        """
        Process a document.

        Args:
            source: Path to the input file, or its raw bytes
            on_progress: Called as on_progress(message, current, total)
                once per page, before the page is processed
            name: File name, used for type detection when `source` is bytes
            media_type: Declared media type (e.g. from an upload)

        Returns:
            One PageResult per page, in page order

        Raises:
            UnsupportedInputError: Input is neither a PDF nor an image
            RasterizationError: A page could not be decoded or drawn
            ClassificationError: The model call failed for a page
            ProcessingAbortedError: The cancel flag was set
        """
        data, name = self._read_input(source, name)
        kind, media_type = detect_input_kind(data, name=name, media_type=media_type)

        stats = self.context.stats
        stats.input_name = name or ""
        stats.input_kind = kind.value
        self.context.input_name = name
        stats.start()

        self.log_info(f"Processing {kind.value} input", name=name or "<bytes>", media_type=media_type)

        try:
            if kind is InputKind.PDF:
                results = self._process_pdf(data, name, on_progress)
            else:
                results = self._process_image(data, media_type, name, on_progress)
        except ProcessingAbortedError as e:
            stats.total_time_sec = self._timer.elapsed
            stats.fail(e.message, status="aborted")
            raise
        except MathOCRError as e:
            stats.total_time_sec = self._timer.elapsed
            stats.fail(str(e))
            raise

        stats.total_time_sec = self._timer.elapsed
        stats.complete()
        self.log_info(
            f"Processed {len(results)} pages",
            blocks=stats.total_blocks,
            figures=stats.total_figures,
            duration=format_duration(stats.total_time_sec),
        )
        return results

    def _read_input(self, source: InputSource, name: Optional[str]) -> Tuple[bytes, Optional[str]]:
        if isinstance(source, (bytes, bytearray)):
            return bytes(source), name

        path = Path(source)
        if not path.is_file():
            raise UnsupportedInputError(f"Input file not found: {path}", source=str(path))
        return path.read_bytes(), name or path.name

    def _process_pdf(
        self,
        data: bytes,
        name: Optional[str],
        on_progress: Optional[ProgressCallback],
    ) -> List[PageResult]:
        rasterizer = self.page_processor.rasterizer
        results: List[PageResult] = []

        with rasterizer.open_document(data, source=name) as doc:
            total = doc.page_count
            self.context.total_pages = total
            self.context.stats.total_pages = total
            self.log_info(f"PDF has {total} pages")

            for page_number in range(1, total + 1):
                self._check_cancelled(len(results), total)
                self._report(on_progress, f"Processing Page {page_number} of {total}", page_number, total)

                result = self._run_page(
                    lambda: self.page_processor.process_page(doc, page_number),
                    page_number,
                    total,
                )
                results.append(result)

        return results

    def _process_image(
        self,
        data: bytes,
        media_type: str,
        name: Optional[str],
        on_progress: Optional[ProgressCallback],
    ) -> List[PageResult]:
        self.context.total_pages = 1
        self.context.stats.total_pages = 1

        self._check_cancelled(0, 1)
        self._report(on_progress, "Analyzing Image", 1, 1)

        rasterizer = self.page_processor.rasterizer

        def run() -> PageResult:
            raster = rasterizer.load_image(data, media_type, source=name)
            return self.page_processor.process_raster(raster, 1)

        return [self._run_page(run, 1, 1)]

    def _run_page(
        self,
        run: Callable[[], PageResult],
        page_number: int,
        total: int,
    ) -> PageResult:
        """Run one page, applying the retry policy to recoverable model errors."""
        self.context.current_page = page_number
        attempt = 0

        while True:
            attempt += 1
            try:
                result = run()
                break
            except ClassificationError as e:
                if e.recoverable and attempt <= self.max_retries:
                    delay = self.retry_delay * (2 ** (attempt - 1))
                    self.log_warning(
                        f"Page {page_number} classification failed "
                        f"(attempt {attempt}/{self.max_retries + 1}): {e.message}. "
                        f"Retrying in {delay:.1f}s..."
                    )
                    self._sleep(delay)
                    continue
                raise self._attribute(e, page_number, total)
            except MathOCRError as e:
                raise self._attribute(e, page_number, total)

        timing = self.page_processor.last_timing
        if timing is not None:
            timing.attempts = attempt
            self.context.stats.add_page_timing(timing)
            log_timing(self.logger, f"Page {page_number}", timing.total_time_sec)
        self.context.pages_processed += 1

        self.log_info(
            f"Finished page {page_number}/{total}",
            blocks=len(result.blocks),
            figures=len(result.figure_blocks),
        )
        return result

    def _attribute(self, error: MathOCRError, page_number: int, total: int) -> MathOCRError:
        """Tag an error with the page it came from."""
        error.details.setdefault("page_number", page_number)
        if not error.message.startswith("Failed to process page"):
            error.message = f"Failed to process page {page_number} of {total}: {error.message}"
        self.log_error(f"Aborting document at page {page_number} of {total}", error=error)
        return error

    def _report(
        self,
        on_progress: Optional[ProgressCallback],
        message: str,
        current: int,
        total: int,
    ) -> None:
        status = ProcessStatus(message=message, current=current, total=total)
        self.log_debug(status.message, progress=f"{status.current}/{status.total}")
        if on_progress is not None:
            on_progress(status.message, status.current, status.total)

    def _check_cancelled(self, processed: int, total: int) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            self.log_warning(f"Cancelled after {processed}/{total} pages")
            raise ProcessingAbortedError(items_processed=processed, items_total=total)


def process_file(
    source: InputSource,
    on_progress: Optional[ProgressCallback] = None,
    config: Optional[Config] = None,
    name: Optional[str] = None,
    media_type: Optional[str] = None,
) -> List[PageResult]:
    """
    Convenience function to process one document.

    Args:
        source: Path to a PDF or image, or its raw bytes
        on_progress: Progress callback (message, current, total)
        config: Configuration (default: environment)
        name: File name when `source` is bytes
        media_type: Declared media type when `source` is bytes

    Returns:
        One PageResult per page, in page order
    """
    from ..config import get_config

    context = ProcessingContext(config=config or get_config())
    processor = DocumentProcessor(context)
    return processor.run(source, on_progress, name=name, media_type=media_type)
