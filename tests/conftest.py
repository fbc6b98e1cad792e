"""Shared test fixtures."""

import io
import os
import sys
import zipfile

import pytest

from app import create_app
from services.archive import ArchiveStreamer
from services.config import ServerConfig
from services.content import ContentReader
from services.download import DownloadDispatcher
from services.listing import DirectoryLister
from services.paths import PathResolver

METRICS = b"a,b\n1,2\n3\n"  # 10 bytes
README = b"# Docs\n\nSample readme.\n"


@pytest.fixture
def root(tmp_path):
    """A data root holding /static-files/{data/metrics.csv, docs/README.md}."""
    data = tmp_path / "data"
    (data / "static-files" / "data").mkdir(parents=True)
    (data / "static-files" / "docs").mkdir(parents=True)
    (data / "static-files" / "data" / "metrics.csv").write_bytes(METRICS)
    (data / "static-files" / "docs" / "README.md").write_bytes(README)
    return data


@pytest.fixture
def resolver(root):
    return PathResolver(str(root))


@pytest.fixture
def lister(resolver):
    return DirectoryLister(resolver)


@pytest.fixture
def reader(resolver):
    return ContentReader(resolver, chunk_size=4)


@pytest.fixture
def streamer(resolver):
    return ArchiveStreamer(resolver, compresslevel=9, chunk_size=1024)


@pytest.fixture
def dispatcher(resolver, reader, streamer):
    return DownloadDispatcher(resolver, reader, streamer)


@pytest.fixture
def make_config(tmp_path):
    def _make(data_dir, **kw):
        kw.setdefault("seed_static", False)
        kw.setdefault("static_dir", str(tmp_path / "no-static"))
        return ServerConfig(data_dir=str(data_dir), **kw)
    return _make


@pytest.fixture
def app(root, make_config):
    flask_app = create_app(make_config(root))
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()


def open_zip(data: bytes) -> zipfile.ZipFile:
    return zipfile.ZipFile(io.BytesIO(data))


non_utf8_names = pytest.mark.skipif(
    sys.platform in ("darwin", "win32"),
    reason="filesystem only accepts valid UTF-8 names",
)


def write_raw_name(directory, raw: bytes, data: bytes = b"x") -> str:
    """Create a file whose name is the raw bytes ``raw``; return it as os.listdir would."""
    path = os.path.join(os.fsencode(str(directory)), raw)
    with open(path, "wb") as fp:
        fp.write(data)
    return os.fsdecode(raw)
