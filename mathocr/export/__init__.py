"""
Exporters consuming the pipeline's page results.
"""

from .docx_exporter import DocxExporter, export_docx, FAILED_FIGURE_TEXT
from .json_exporter import export_json, results_to_dict

__all__ = [
    "DocxExporter",
    "export_docx",
    "FAILED_FIGURE_TEXT",
    "export_json",
    "results_to_dict",
]
