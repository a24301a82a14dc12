import streamlit as st

from mathocr.config import get_config
from mathocr.exceptions import MathOCRError
from mathocr.export import DocxExporter
from mathocr.processors import DocumentProcessor, ProcessingContext

st.set_page_config(page_title="Math OCR", layout="wide")

st.title("🧮 Math OCR: PDF/Image to Word")
st.caption(
    "Upload a Vietnamese math exam (PDF or image). Text comes back with LaTeX, "
    "variation tables and geometry figures come back as cropped images."
)

uploaded = st.file_uploader("Exam file", type=["pdf", "png", "jpg", "jpeg", "webp"])

if uploaded is not None and st.button("Extract", type="primary"):
    progress_bar = st.progress(0.0, text="Starting...")

    def on_progress(message, current, total):
        progress_bar.progress(current / total, text=message)

    context = ProcessingContext(config=get_config())
    try:
        st.session_state["results"] = DocumentProcessor(context).run(
            uploaded.getvalue(),
            on_progress,
            name=uploaded.name,
            media_type=uploaded.type,
        )
        st.session_state["source_name"] = uploaded.name
    except MathOCRError as e:
        st.session_state.pop("results", None)
        st.error(e.message)
    finally:
        progress_bar.empty()

# ------------------------------------------------------------------
# 🧾 PAGE PREVIEW
# ------------------------------------------------------------------

results = st.session_state.get("results")

if results:
    stem = st.session_state.get("source_name", "export").rsplit(".", 1)[0]

    try:
        docx_bytes = DocxExporter().to_bytes(results)
    except MathOCRError as e:
        st.error(f"Word export failed: {e.message}")
    else:
        st.download_button(
            "Download Word document",
            data=docx_bytes,
            file_name=f"{stem}.docx",
            mime="application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        )

    for page in results:
        st.subheader(f"Page {page.page_number}")

        if not page.blocks:
            st.info("No content detected on this page.")

        for block in page.blocks:
            if block.is_text:
                st.markdown(block.text)
            elif block.cropped_image is not None:
                st.image(block.cropped_image)
            else:
                st.error("Failed to load crop")

        st.divider()

    st.metric("Pages", len(results))
