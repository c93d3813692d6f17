"""Tests for storage factories, the file store and the Claude wrapper."""

from types import SimpleNamespace

import pytest

from gapfinder.errors import ConfigurationError
from gapfinder.llm import TextGenerator, get_generator
from gapfinder.models import ChunkRecord
from gapfinder.storage import get_record_store, get_vector_store
from gapfinder.storage.chromadb import ChromaVectorStore
from gapfinder.storage.files import LocalFileStore, sibling_path
from gapfinder.storage.sql import SqlVectorStore


def test_vector_store_factory(config, records):
    assert isinstance(get_vector_store(config, records=records), SqlVectorStore)
    config["storage_backend"] = "chromadb"
    assert isinstance(get_vector_store(config), ChromaVectorStore)
    config["storage_backend"] = "faiss"
    with pytest.raises(ConfigurationError):
        get_vector_store(config)


def test_dimension_mismatch(vectors):
    with pytest.raises(ConfigurationError):
        vectors.add_chunks([ChunkRecord(
            document_id="d1", tenant_id="t1", index=0, content="x", embedding=[1.0, 0.0],
        )])


def test_replace_document_chunks(vectors):
    for i in range(3):
        vectors.add_chunks([ChunkRecord(
            document_id="d1", tenant_id="t1", index=i, content=f"c{i}", embedding=[1.0, 0.0, 0.0, 0.0],
        )])
    assert vectors.count("d1") == 3
    vectors.delete_document_chunks("d1")
    assert vectors.count("d1") == 0


def test_record_store_factory(config):
    records = get_record_store(config)
    tenant = records.add_tenant("Lincoln", slug="lincoln")
    assert get_record_store(config).get_tenant(tenant.id).slug == "lincoln"


def test_list_tenants_sorted(records):
    records.add_tenant("Washington")
    records.add_tenant("Adams")
    assert [t.name for t in records.list_tenants()] == ["Adams", "Washington"]


def test_file_store(tmp_path):
    store = LocalFileStore(str(tmp_path / "files"))
    path = store.write("t1/handbook.txt", b"hello")
    assert path == "t1/handbook.txt"
    assert store.read(path) == b"hello"
    assert (tmp_path / "files" / "t1" / "handbook.txt").read_bytes() == b"hello"


def test_file_store_rejects_escape(tmp_path):
    store = LocalFileStore(str(tmp_path / "files"))
    with pytest.raises(ValueError):
        store.write("../outside.txt", b"x")


def test_sibling_path():
    assert sibling_path("t1/handbook.docx", "pdf") == "t1/handbook.pdf"
    assert sibling_path("t1/notes.txt", "txt") == "t1/notes.txt"


class _Messages:
    def __init__(self):
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(content=[
            SimpleNamespace(type="text", text="Hello "),
            SimpleNamespace(type="tool_use", text="ignored"),
            SimpleNamespace(type="text", text="there"),
        ])


def test_text_generator():
    client = SimpleNamespace(messages=_Messages())
    generator = TextGenerator({"claude_model": "claude-test"}, client=client)

    assert generator.generate("Hi", max_tokens=50, system="Be brief") == "Hello there"
    call = client.messages.calls[0]
    assert call["model"] == "claude-test"
    assert call["system"] == "Be brief"
    assert call["messages"] == [{"role": "user", "content": "Hi"}]

    generator.generate("Again")
    assert "system" not in client.messages.calls[1]


def test_generator_requires_key():
    with pytest.raises(ConfigurationError):
        TextGenerator({})
    assert get_generator({}) is None
    assert isinstance(get_generator({"claude_api_key": "sk-ant-test"}), TextGenerator)
