import io
import threading

import httpx
import openai
import pytest
from PIL import Image

from conftest import model_failure
from mathocr.exceptions import (
    ClassificationError,
    ProcessingAbortedError,
    RasterizationError,
    UnsupportedInputError,
)
from mathocr.models import ContentBlock
from mathocr.processors import BlockClassifier, DocumentProcessor, PageProcessor


def text(s):
    return ContentBlock.text_block(s)


def figure(box=None):
    return ContentBlock.figure_block(box)


class ProgressRecorder:
    def __init__(self):
        self.events = []

    def __call__(self, message, current, total):
        self.events.append((message, current, total))


def build_processor(context, classifier, **kwargs):
    return DocumentProcessor(context, page_processor=PageProcessor(context, classifier=classifier), **kwargs)


# ----------------------------------------------------------------------
# Happy paths
# ----------------------------------------------------------------------

def test_two_page_pdf(context, make_pdf, fake_classifier):
    classifier = fake_classifier([
        [text("Câu 1"), figure([0.3, 0.2, 0.7, 0.8])],
        [text("Câu 2"), figure([0.3, 0.2, 0.7, 0.8])],
    ])
    progress = ProgressRecorder()

    results = build_processor(context, classifier).process(make_pdf(2), progress, name="exam.pdf")

    assert [r.page_number for r in results] == [1, 2]
    for result in results:
        assert len(result.blocks) == 2
        assert result.blocks[0].is_text
        assert result.blocks[1].cropped_image is not None
    assert progress.events == [
        ("Processing Page 1 of 2", 1, 2),
        ("Processing Page 2 of 2", 2, 2),
    ]


def test_progress_reported_once_per_page(context, make_pdf, fake_classifier):
    classifier = fake_classifier([[], [], [], []])
    progress = ProgressRecorder()

    results = build_processor(context, classifier).process(make_pdf(4), progress, name="exam.pdf")

    assert len(results) == 4
    assert [(c, t) for _, c, t in progress.events] == [(1, 4), (2, 4), (3, 4), (4, 4)]


def test_pdf_from_path(context, make_pdf, fake_classifier, tmp_path):
    path = tmp_path / "de-thi.pdf"
    path.write_bytes(make_pdf(1))

    results = build_processor(context, fake_classifier([[text("x")]])).process(path)

    assert results[0].blocks[0].text == "x"
    assert context.stats.input_name == "de-thi.pdf"
    assert context.stats.input_kind == "pdf"


def test_single_image(context, make_png, fake_classifier):
    data = make_png(400, 300)
    classifier = fake_classifier([[text("Câu 5"), figure([0.1, 0.1, 0.9, 0.9])]])
    progress = ProgressRecorder()

    results = build_processor(context, classifier).process(
        data, progress, name="scan.png", media_type="image/png"
    )

    assert progress.events == [("Analyzing Image", 1, 1)]
    assert len(results) == 1
    assert results[0].page_number == 1
    assert results[0].blocks[1].cropped_image is not None
    # The image itself is the raster sent to the model
    assert classifier.calls == [(data, "image/png")]


def test_image_detected_from_bytes(context, make_png, fake_classifier):
    classifier = fake_classifier([[]])

    results = build_processor(context, classifier).process(make_png())

    assert results[0].blocks == ()
    assert classifier.calls[0][1] == "image/png"


def test_blank_page_has_no_blocks(context, make_pdf, fake_classifier):
    results = build_processor(context, fake_classifier([[]])).process(make_pdf(1), name="blank.pdf")

    assert results[0].blocks == ()


def test_inverted_box_crops_to_whole_page(context, make_pdf, fake_classifier):
    classifier = fake_classifier([[figure([0.2, 0.2, 0.19, 0.19])]])

    results = build_processor(context, classifier).process(make_pdf(1), name="exam.pdf")

    raster_sent = Image.open(io.BytesIO(classifier.calls[0][0])).convert("RGB")
    crop = Image.open(io.BytesIO(results[0].blocks[0].cropped_image))
    assert crop.format == "PNG"
    assert crop.size == (600, 900)
    assert crop.convert("RGB").tobytes() == raster_sent.tobytes()


def test_stats_completed(context, make_pdf, fake_classifier):
    classifier = fake_classifier([[text("a"), figure([0, 0, 1, 1])], [figure()]])

    build_processor(context, classifier).process(make_pdf(2), name="exam.pdf")

    stats = context.stats
    assert stats.status == "completed"
    assert stats.total_pages == 2
    assert stats.pages_processed == 2
    assert stats.total_blocks == 3
    assert stats.total_figures == 2
    assert stats.failed_crops == 1


# ----------------------------------------------------------------------
# Failures
# ----------------------------------------------------------------------

def test_failing_page_aborts_run(context, make_pdf, fake_classifier):
    classifier = fake_classifier([[text("ok")], model_failure(), [text("never")]])
    progress = ProgressRecorder()
    processor = build_processor(context, classifier)

    with pytest.raises(ClassificationError) as exc_info:
        processor.process(make_pdf(3), progress, name="exam.pdf")

    error = exc_info.value
    assert error.page_number == 2
    assert "page 2 of 3" in error.message
    assert len(classifier.calls) == 2
    assert [c for _, c, _ in progress.events] == [1, 2]
    assert context.stats.status == "failed"


def test_unsupported_input_rejected_before_work(context, fake_classifier, tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("not an exam")
    classifier = fake_classifier([])
    progress = ProgressRecorder()

    with pytest.raises(UnsupportedInputError):
        build_processor(context, classifier).process(path, progress)

    assert classifier.calls == []
    assert progress.events == []


def test_unknown_bytes_rejected(context, fake_classifier):
    with pytest.raises(UnsupportedInputError):
        build_processor(context, fake_classifier([])).process(b"just some bytes")


def test_missing_file(context, fake_classifier, tmp_path):
    with pytest.raises(UnsupportedInputError):
        build_processor(context, fake_classifier([])).process(tmp_path / "missing.pdf")


def test_corrupt_pdf(context, fake_classifier):
    classifier = fake_classifier([])

    with pytest.raises(RasterizationError):
        build_processor(context, classifier).process(b"%PDF-1.4 truncated", name="bad.pdf")

    assert classifier.calls == []
    assert context.stats.status == "failed"


def test_undecodable_image(context, fake_classifier):
    with pytest.raises(RasterizationError) as exc_info:
        build_processor(context, fake_classifier([])).process(
            b"garbage", name="scan.jpg", media_type="image/jpeg"
        )

    assert exc_info.value.page_number == 1


# ----------------------------------------------------------------------
# Retry policy and cancellation
# ----------------------------------------------------------------------

def test_recoverable_failure_retried(context, make_png, fake_classifier):
    context.config.retry.max_retries = 2
    context.config.retry.retry_delay_sec = 0.5
    classifier = fake_classifier([model_failure(), model_failure(), [text("ok")]])
    sleeps = []
    progress = ProgressRecorder()

    results = build_processor(context, classifier, sleep=sleeps.append).process(
        make_png(), progress, name="scan.png"
    )

    assert results[0].blocks[0].text == "ok"
    assert len(classifier.calls) == 3
    assert sleeps == [0.5, 1.0]
    assert progress.events == [("Analyzing Image", 1, 1)]
    assert context.stats.page_timings[0].attempts == 3


def test_retries_exhausted(context, make_png, fake_classifier):
    context.config.retry.max_retries = 1
    classifier = fake_classifier([model_failure(), model_failure()])

    with pytest.raises(ClassificationError):
        build_processor(context, classifier, sleep=lambda _: None).process(make_png(), name="scan.png")

    assert len(classifier.calls) == 2


def test_non_recoverable_failure_not_retried(context, make_png, fake_classifier):
    context.config.retry.max_retries = 3
    classifier = fake_classifier([model_failure("Invalid model response", recoverable=False)])
    sleeps = []

    with pytest.raises(ClassificationError):
        build_processor(context, classifier, sleep=sleeps.append).process(make_png(), name="scan.png")

    assert len(classifier.calls) == 1
    assert sleeps == []


def test_cancel_before_start(context, make_pdf, fake_classifier):
    cancel = threading.Event()
    cancel.set()
    classifier = fake_classifier([])

    with pytest.raises(ProcessingAbortedError):
        build_processor(context, classifier, cancel_event=cancel).process(make_pdf(2), name="exam.pdf")

    assert classifier.calls == []
    assert context.stats.status == "aborted"


def test_cancel_between_pages(context, make_pdf, fake_classifier):
    cancel = threading.Event()
    classifier = fake_classifier([[text("1")], [text("2")], [text("3")]])

    def on_progress(message, current, total):
        if current == 2:
            cancel.set()

    with pytest.raises(ProcessingAbortedError) as exc_info:
        build_processor(context, classifier, cancel_event=cancel).process(
            make_pdf(3), on_progress, name="exam.pdf"
        )

    # Page 2 was already started when the flag was set
    assert len(classifier.calls) == 2
    assert exc_info.value.details["items_processed"] == 2


def test_inverted_box_on_image_input(context, fake_classifier):
    img = Image.new("RGB", (320, 240), "white")
    img.paste((0, 128, 0), (60, 60, 200, 180))
    buf = io.BytesIO()
    img.save(buf, format="WEBP")
    data = buf.getvalue()
    classifier = fake_classifier([[text("Câu 3"), figure([0.2, 0.2, 0.19, 0.19])]])

    results = build_processor(context, classifier).process(data, name="scan.webp")

    assert classifier.calls[0][1] == "image/webp"
    crop = Image.open(io.BytesIO(results[0].blocks[1].cropped_image))
    assert crop.format == "PNG"
    assert crop.convert("RGB").tobytes() == Image.open(io.BytesIO(data)).convert("RGB").tobytes()


def test_malformed_model_answer_not_retried(context, make_png, fake_client):
    context.config.retry.max_retries = 3
    client = fake_client(content="I could not read this page.")
    sleeps = []
    processor = build_processor(context, BlockClassifier(context, client=client), sleep=sleeps.append)

    with pytest.raises(ClassificationError) as exc_info:
        processor.process(make_png(), name="scan.png")

    assert not exc_info.value.recoverable
    assert len(client.completions.calls) == 1
    assert sleeps == []


def test_unreachable_model_retried(context, make_png, fake_client):
    context.config.retry.max_retries = 2
    context.config.retry.retry_delay_sec = 2.0
    request = httpx.Request("POST", "https://example.test/v1/chat/completions")
    client = fake_client(error=openai.APIConnectionError(request=request))
    sleeps = []
    processor = build_processor(context, BlockClassifier(context, client=client), sleep=sleeps.append)

    with pytest.raises(ClassificationError):
        processor.process(make_png(), name="scan.png")

    assert len(client.completions.calls) == 3
    assert sleeps == [2.0, 4.0]
