"""
Project paths resolved once at startup and handed to the packer
"""

import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Union

PAGE_EXTENSIONS = (".html", ".shtml", ".php")


def posix_path(path: str) -> str:
    return str(path).replace("\\", "/")


def to_pathname(src_dir: Union[str, Path], path: Union[str, Path]) -> str:
    """Web-rooted pathname of ``path`` relative to ``src_dir`` (``/a/b.css``)."""
    rel = Path(path).relative_to(src_dir).as_posix()
    return "/" + posix_path(rel).lstrip("/")


def source_path(src_dir: Union[str, Path], pathname: str) -> Path:
    return Path(src_dir) / pathname.lstrip("/")


def is_page(pathname: str) -> bool:
    return pathname.lower().endswith(PAGE_EXTENSIONS)


def join_pathname(directory: str, name: str) -> str:
    return posix_path(posixpath.join(directory, name))


@dataclass(frozen=True)
class PathConfig:
    """Source, output and bookkeeping locations of one project."""

    root: Path
    src_dir: Path
    out_dir: Path
    manifest_path: Path
    version_path: Path

    @classmethod
    def from_root(
        cls,
        root: Union[str, Path],
        src: str = "public_html",
        out: str = "dist",
    ) -> "PathConfig":
        root = Path(root)
        out_dir = root / out
        return cls(
            root=root,
            src_dir=root / src,
            out_dir=out_dir,
            manifest_path=out_dir / "manifest.json",
            version_path=root / "version.yaml",
        )

    @property
    def out_public_dir(self) -> Path:
        """Output tree mirroring the source tree, named after its basename."""
        return self.out_dir / self.src_dir.name
