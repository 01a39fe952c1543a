"""
A single non-page file of the site: script, stylesheet, image or server config.
"""

import asyncio
import logging
import os
import re
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from ..minify.minifiers import minify_css, minify_js
from .bundler import bundle, bundle_sources
from .errors import MinifyError
from .hasher import content_hash
from .paths import is_page, join_pathname, posix_path, source_path

logger = logging.getLogger(__name__)

BUNDLED_EXTENSIONS = (".js", ".mjs", ".css")

# Files whose name is a contract with the web server or the browser keep their basename.
SPECIAL_FILE_RE = re.compile(r"(\.htaccess|favicon.*)$")


def is_special_file(name: str) -> bool:
    return SPECIAL_FILE_RE.search(os.path.basename(name)) is not None


def write_output(path: Path, content: Union[bytes, str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        with open(path, "w", encoding="utf8", newline="") as f:
            f.write(content)


class Asset:
    """Build state of one asset: mtime gate, processing and output naming."""

    def __init__(self, pathname: str, mtime: float = 0, outname: Optional[str] = None):
        self.pathname = pathname
        self.mtime = mtime
        self.changed = False
        self.outname: Optional[str] = None
        self.output_pathname: Optional[str] = None
        self.bundler: Callable = bundle
        self._set_outname(outname)

    def __repr__(self) -> str:
        return f"Asset({self.pathname!r}, outname={self.outname!r})"

    @classmethod
    def from_record(cls, pathname: str, record: Optional[Dict] = None) -> "Asset":
        record = record or {}
        return cls(pathname, record.get("mtime", 0), record.get("outname"))

    def _set_outname(self, outname: Optional[str]) -> None:
        if not outname:
            return
        self.outname = outname
        self.output_pathname = join_pathname(posix_path(os.path.dirname(self.pathname)), outname)

    # -------------------------------
    # Processing
    # -------------------------------

    def _bundle_and_minify(self, src: Path, src_dir: Path):
        content = self.bundler(src, src_dir)
        ext = src.suffix
        outname = content_hash(content) + ext
        minify_func = minify_css if ext.lower() == ".css" else minify_js
        try:
            content = minify_func(content)
        except Exception as e:
            logger.error("Error minifying: %s", posix_path(src))
            raise MinifyError(posix_path(src), e) from e
        return content, outname

    def source_mtime(self, src: Path, src_dir: Path) -> float:
        """Newest mtime among ``src`` and, for bundled files, everything it imports."""
        mtime = os.stat(src).st_mtime
        if src.name.lower().endswith(BUNDLED_EXTENSIONS):
            mtime = max([mtime] + [os.stat(dep).st_mtime for dep in bundle_sources(src, src_dir)[1:]])
        return mtime

    def _process(self, src: Path, src_dir: Path):
        """Return ``(content, outname)`` for the source file at ``src``."""
        name = src.name.lower()
        if name.endswith(BUNDLED_EXTENSIONS):
            return self._bundle_and_minify(src, src_dir)

        # Images and favicons of any format are copied byte for byte.
        content = src.read_bytes()

        if is_special_file(src.name):
            if name.endswith(".htaccess"):
                content = content.decode("utf8").replace(".shtml", ".html")
            return content, src.name
        return content, content_hash(content) + src.suffix

    async def build(self, src_dir: Union[str, Path], out_dir: Union[str, Path]) -> None:
        src = source_path(src_dir, self.pathname)

        try:
            mtime = await asyncio.to_thread(self.source_mtime, src, Path(src_dir))
        except FileNotFoundError:
            logger.debug("Skipping missing asset %s", self.pathname)
            return

        if self.mtime >= mtime:
            return
        self.mtime = mtime
        self.changed = True

        if is_page(self.pathname):
            return

        content, outname = await asyncio.to_thread(self._process, src, Path(src_dir))
        self._set_outname(outname)

        ext = os.path.splitext(outname)[1][1:] or outname
        out_path = source_path(out_dir, self.output_pathname)
        logger.info("Writing %s to %s", ext, posix_path(out_path))
        await asyncio.to_thread(write_output, out_path, content)

    def get_config(self) -> Dict:
        return {"mtime": self.mtime, "outname": self.outname}
