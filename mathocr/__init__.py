"""
Math exam OCR pipeline.

Turns a scanned exam (PDF or image) into per-page text blocks with LaTeX
math and cropped figure images, using a vision model for classification.
"""

__version__ = "0.1.0"
