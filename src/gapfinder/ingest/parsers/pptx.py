"""PPTX file parser."""

import io
from typing import Any


class PptxParser:
    """Parse PowerPoint buffers slide by slide using python-pptx."""

    def parse(self, data: bytes) -> dict[str, Any]:
        from pptx import Presentation

        prs = Presentation(io.BytesIO(data))
        slides = []
        for slide_num, slide in enumerate(prs.slides, 1):
            texts = []
            for shape in slide.shapes:
                if shape.has_text_frame:
                    text = shape.text_frame.text.strip()
                    if text:
                        texts.append(text)
            if slide.has_notes_slide:
                notes = slide.notes_slide.notes_text_frame.text.strip()
                if notes:
                    texts.append(f"Notes: {notes}")
            if texts:
                slides.append(f"[Slide {slide_num}]\n" + "\n".join(texts))

        return {
            "content": "\n\n".join(slides),
            "metadata": {"source_type": "pptx", "slide_count": len(prs.slides)},
        }
