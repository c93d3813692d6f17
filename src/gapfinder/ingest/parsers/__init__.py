"""Document parsers keyed by file type tag."""

from .docx import DocxParser
from .html import HtmlParser
from .markdown import MarkdownParser
from .pdf import PdfParser
from .pptx import PptxParser
from .text import TextParser
from .xlsx import XlsxParser

PARSERS = {
    "txt": TextParser,
    "text": TextParser,
    "log": TextParser,
    "csv": TextParser,
    "md": MarkdownParser,
    "markdown": MarkdownParser,
    "html": HtmlParser,
    "htm": HtmlParser,
    "pdf": PdfParser,
    "docx": DocxParser,
    "pptx": PptxParser,
    "xlsx": XlsxParser,
}

__all__ = ["PARSERS", "DocxParser", "HtmlParser", "MarkdownParser", "PdfParser", "PptxParser", "TextParser", "XlsxParser"]
