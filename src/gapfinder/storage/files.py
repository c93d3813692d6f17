"""Local file storage for uploaded originals and derived artifacts."""

from pathlib import Path, PurePosixPath


class LocalFileStore:
    """Stores blobs under a root directory, addressed by relative POSIX paths."""

    def __init__(self, root: str):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, path: str) -> Path:
        full = (self.root / path).resolve()
        if self.root.resolve() not in full.parents:
            raise ValueError(f"Path escapes file store: {path}")
        return full

    def read(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    def write(self, path: str, data: bytes) -> str:
        full = self._resolve(path)
        full.parent.mkdir(parents=True, exist_ok=True)
        full.write_bytes(data)
        return path


def sibling_path(path: str, extension: str) -> str:
    """``"t1/handbook.docx"`` + ``"pdf"`` -> ``"t1/handbook.pdf"``."""
    return str(PurePosixPath(path).with_suffix(f".{extension}"))
