import os
from pathlib import Path

import pytest

from sitepack.pack.paths import PathConfig


@pytest.fixture
def project(tmp_path):
    """A project root with an empty ``public_html`` tree."""
    (tmp_path / "public_html").mkdir()
    return PathConfig.from_root(tmp_path)


@pytest.fixture
def write(project):
    """Write a file under the source tree, given its web-rooted pathname."""

    def _write(pathname: str, content, binary: bool = False) -> Path:
        path = project.src_dir / pathname.lstrip("/")
        path.parent.mkdir(parents=True, exist_ok=True)
        if binary:
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf8")
        return path

    return _write


@pytest.fixture
def touch():
    """Push the mtime of a file forward so the packer sees it as modified."""

    def _touch(path: Path, seconds: float = 10) -> None:
        t = os.stat(path).st_mtime + seconds
        os.utime(path, (t, t))

    return _touch
