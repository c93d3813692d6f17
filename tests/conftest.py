"""Shared fixtures: in-process fakes for the model, generator and mailer."""

import copy
import threading
import zlib

import numpy as np
import pytest

from gapfinder.config import DEFAULT_CONFIG
from gapfinder.embeddings.embedder import Embedder
from gapfinder.storage.database import make_engine
from gapfinder.storage.files import LocalFileStore
from gapfinder.storage.records import RecordStore
from gapfinder.storage.sql import SqlVectorStore

DIM = 4


class FakeModel:
    """Stands in for a SentenceTransformer.

    Known texts map to fixed vectors; anything else gets a deterministic
    pseudo-random unit vector. The e5 prefix is ignored for lookup.
    """

    def __init__(self, vectors=None, dim=DIM, delay=0.0):
        self.vectors = vectors or {}
        self.dim = dim
        self.delay = delay
        self.calls = []

    def get_sentence_embedding_dimension(self):
        return self.dim

    def encode(self, texts):
        self.calls.append(list(texts))
        if self.delay:
            threading.Event().wait(self.delay)
        return np.array([self._vector(t) for t in texts])

    def _vector(self, text):
        text = text.split(": ", 1)[1] if text.startswith(("query: ", "passage: ")) else text
        if text in self.vectors:
            return self.vectors[text]
        v = np.random.default_rng(zlib.crc32(text.encode())).normal(size=self.dim)
        return v / np.linalg.norm(v)


class FakeGenerator:
    def __init__(self, reply="", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def generate(self, prompt, max_tokens=1000, temperature=0.7, system=None):
        self.calls.append({"prompt": prompt, "system": system, "max_tokens": max_tokens})
        if self.error:
            raise self.error
        return self.reply


class RecordingMailer:
    def __init__(self):
        self.sent = []
        self._lock = threading.Lock()

    def send(self, to, subject, html):
        with self._lock:
            self.sent.append({"to": list(to), "subject": subject, "html": html})
        return True


@pytest.fixture
def config(tmp_path):
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg["embedding_dim"] = DIM
    cfg["database_url"] = f"sqlite:///{tmp_path / 'gapfinder.db'}"
    cfg["files_path"] = str(tmp_path / "files")
    cfg["chroma_path"] = str(tmp_path / "chroma")
    cfg["storage_backend"] = "sql"
    return cfg


@pytest.fixture
def records(config):
    return RecordStore(make_engine(config["database_url"]))


@pytest.fixture
def vectors(records):
    return SqlVectorStore(records.engine, dim=DIM)


@pytest.fixture
def files(config):
    return LocalFileStore(config["files_path"])


@pytest.fixture
def model():
    return FakeModel()


@pytest.fixture
def embedder(config, model):
    return Embedder(config, model=model)


@pytest.fixture
def tenant(records):
    return records.add_tenant("Lincoln Elementary", slug="lincoln")
