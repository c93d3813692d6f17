"""Office document to PDF conversion through headless LibreOffice."""

import logging
import shutil
import subprocess
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

CONVERTIBLE_TYPES = {"docx", "doc", "pptx", "ppt", "xlsx", "xls"}
CONVERT_TIMEOUT_SECONDS = 120


def find_soffice() -> str | None:
    """Locate the LibreOffice binary on PATH."""
    return shutil.which("soffice") or shutil.which("libreoffice")


def convert_to_pdf(data: bytes, file_type: str, soffice: str | None = None) -> bytes | None:
    """Convert an office document buffer to PDF.

    Returns None when the type is not convertible, LibreOffice is not
    installed, or the conversion fails. Never raises.
    """
    file_type = file_type.lower()
    if file_type not in CONVERTIBLE_TYPES:
        return None

    binary = soffice or find_soffice()
    if binary is None:
        logger.warning("PDF conversion skipped for %s: LibreOffice not found", file_type)
        return None

    try:
        with tempfile.TemporaryDirectory(prefix="gapfinder-convert-") as tmp:
            src = Path(tmp) / f"source.{file_type}"
            src.write_bytes(data)
            subprocess.run(
                [binary, "--headless", "--convert-to", "pdf", "--outdir", tmp, str(src)],
                check=True,
                capture_output=True,
                timeout=CONVERT_TIMEOUT_SECONDS,
            )
            out = src.with_suffix(".pdf")
            if not out.exists():
                logger.warning("PDF conversion for %s produced no output", file_type)
                return None
            return out.read_bytes()
    except (OSError, subprocess.SubprocessError) as e:
        logger.warning("PDF conversion failed for %s: %s", file_type, e)
        return None
