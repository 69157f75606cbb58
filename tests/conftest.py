import pytest

from .helpers import FakeEncoder


@pytest.fixture
def fake_encoder():
    return FakeEncoder()


@pytest.fixture
def make_images(tmp_path):
    """Creates files with distinct contents; returns their paths in the given order."""

    def _make(*names, directory=None, size=700):
        directory = directory or tmp_path / "images"
        directory.mkdir(parents=True, exist_ok=True)
        paths = []
        for i, name in enumerate(names):
            path = directory / name
            path.write_bytes(bytes([(i * 7 + j) % 256 for j in range(size + i)]))
            paths.append(path)
        return paths

    return _make
