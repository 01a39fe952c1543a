"""
Build state of one page (HTML, SHTML or PHP): reference extraction, SSI
resolution, reference rewriting, minification and output.
"""

import asyncio
import enum
import logging
import os
import posixpath
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from ..minify.minifiers import minify_html, minify_php
from .asset import Asset, write_output
from .errors import IncludeCycleError, MinifyError
from .manifest import Manifest
from .paths import is_page, join_pathname, posix_path, source_path
from .references import AssetReference, extract_references

logger = logging.getLogger(__name__)


class ChangeState(enum.Enum):
    UNCHANGED = "unchanged"
    SELF_CHANGED = "self-changed"
    DEPENDENCY_CHANGED = "dependency-changed"


def output_pathname_for(pathname: str) -> str:
    """``/a/b.shtml`` -> ``/a/b.html``; other extensions are kept."""
    stem, ext = posixpath.splitext(pathname)
    if ext.lower() == ".shtml":
        ext = ".html"
    return stem + ext


class PageBuilder:
    """One page of the site.

    Pages go through two phases: ``populate`` extracts references so the packer
    knows every asset of the site, then ``build`` resolves includes, rewrites the
    references and writes the result.
    """

    def __init__(
        self,
        pathname: str,
        mtime: float = 0,
        references: Optional[Sequence[AssetReference]] = None,
    ):
        self.pathname = pathname
        self.mtime = mtime
        self.references: List[AssetReference] = list(references or [])
        self.state = ChangeState.UNCHANGED
        self.code: Optional[str] = None
        self.output_pathname = output_pathname_for(pathname)

    def __repr__(self) -> str:
        return f"PageBuilder({self.pathname!r}, state={self.state.value})"

    @classmethod
    def from_record(cls, pathname: str, record: Optional[Dict] = None) -> "PageBuilder":
        record = record or {}
        references = [AssetReference.from_dict(a) for a in record.get("assets") or []]
        return cls(pathname, record.get("mtime", 0), references)

    @property
    def changed(self) -> bool:
        return self.state is not ChangeState.UNCHANGED

    @property
    def is_private(self) -> bool:
        return posixpath.basename(self.pathname).startswith("_")

    @property
    def resolves_includes(self) -> bool:
        return self.pathname.lower().endswith(".shtml")

    def include_pathname(self, reference: AssetReference) -> str:
        """Pathname targeted by an include; relative targets resolve against this page."""
        target = reference.pathname
        if target.startswith("/"):
            return posixpath.normpath(target)
        return posixpath.normpath(join_pathname(posixpath.dirname(self.pathname), target))

    # -------------------------------
    # Populate
    # -------------------------------

    async def populate(self, src_dir: Union[str, Path]) -> None:
        src = source_path(src_dir, self.pathname)
        stats = await asyncio.to_thread(os.stat, src)
        if self.mtime >= stats.st_mtime:
            return
        self.mtime = stats.st_mtime
        self.state = ChangeState.SELF_CHANGED

        self.code = await asyncio.to_thread(src.read_text, encoding="utf8")
        self.references = extract_references(self.code)
        logger.debug("Found %d references in %s", len(self.references), self.pathname)

    # -------------------------------
    # Change detection
    # -------------------------------

    def dependency_changed(
        self,
        assets: Dict[str, Asset],
        pages: Dict[str, "PageBuilder"],
        seen: Tuple[str, ...] = (),
    ) -> bool:
        """True if a referenced asset changed or, for SHTML pages, an included page did."""
        seen = seen + (self.pathname,)
        for ref in self.references:
            if not is_page(ref.pathname):
                asset = assets.get(ref.pathname)
                if asset is not None and asset.changed:
                    return True
                continue
            if not self.resolves_includes:
                continue
            target = self.include_pathname(ref)
            included = pages.get(target)
            if included is None or target in seen:
                continue
            if included.state is ChangeState.SELF_CHANGED:
                return True
            if included.dependency_changed(assets, pages, seen):
                return True
        return False

    def change_state(self, assets: Dict[str, Asset], pages: Dict[str, "PageBuilder"]) -> ChangeState:
        if self.state is ChangeState.SELF_CHANGED:
            return self.state
        if self.dependency_changed(assets, pages):
            return ChangeState.DEPENDENCY_CHANGED
        return ChangeState.UNCHANGED

    # -------------------------------
    # Build
    # -------------------------------

    async def _render_include(
        self,
        reference: AssetReference,
        src_dir: Union[str, Path],
        manifest: Manifest,
        assets: Dict[str, Asset],
        pages: Dict[str, "PageBuilder"],
        chain: Tuple[str, ...],
    ) -> Tuple[str, str]:
        pathname = self.include_pathname(reference)
        if pathname in chain:
            raise IncludeCycleError(chain + (pathname,))

        known = pages.get(pathname)
        if known is not None:
            include = PageBuilder(pathname, known.mtime, known.references)
        else:
            include = PageBuilder.from_record(pathname, manifest.page_record(pathname))
            await include.populate(src_dir)

        await include.build(src_dir, None, manifest, assets, pages, chain=chain + (pathname,))
        return reference.match, include.code

    async def _preprocess_ssi(self, src_dir, manifest, assets, pages, chain) -> None:
        includes = [ref for ref in self.references if is_page(ref.pathname)]
        if not includes:
            return

        replacements = await asyncio.gather(
            *(self._render_include(ref, src_dir, manifest, assets, pages, chain) for ref in includes)
        )
        for match, code in replacements:
            self.code = self.code.replace(match, code, 1)

    def _rewrite_assets(self, assets: Dict[str, Asset]) -> None:
        for ref in self.references:
            if is_page(ref.pathname):
                continue
            asset = assets.get(ref.pathname)
            if asset is None or asset.output_pathname is None:
                logger.warning("No output for %s referenced by %s", ref.pathname, self.pathname)
                continue
            self.code = self.code.replace(ref.match, ref.rewrite(asset.output_pathname))

    def _minify(self, src: Path, htmlmin_opts: Optional[Dict]) -> str:
        minify = minify_php if self.pathname.lower().endswith(".php") else minify_html
        try:
            return minify(self.code, htmlmin_opts)
        except Exception as e:
            logger.error("Error minifying: %s", posix_path(src))
            raise MinifyError(posix_path(src), e) from e

    async def build(
        self,
        src_dir: Union[str, Path],
        out_dir: Optional[Union[str, Path]],
        manifest: Manifest,
        assets: Dict[str, Asset],
        pages: Optional[Dict[str, "PageBuilder"]] = None,
        chain: Optional[Tuple[str, ...]] = None,
        htmlmin_opts: Optional[Dict] = None,
    ) -> None:
        """Render the page; with ``out_dir`` unset the result is only kept in ``code``."""
        pages = pages or {}
        chain = chain or (self.pathname,)
        src = source_path(src_dir, self.pathname)

        if out_dir and not self.changed:
            self.state = self.change_state(assets, pages)
            if not self.changed:
                logger.debug("Skipping unchanged page %s", self.pathname)
                return

        if self.code is None:
            self.code = await asyncio.to_thread(src.read_text, encoding="utf8")

        if self.resolves_includes:
            await self._preprocess_ssi(src_dir, manifest, assets, pages, chain)

        self._rewrite_assets(assets)

        if not out_dir or self.is_private:
            return

        self.code = await asyncio.to_thread(self._minify, src, htmlmin_opts)

        out_path = source_path(out_dir, self.output_pathname)
        logger.info("Writing HTML to %s", posix_path(out_path))
        await asyncio.to_thread(write_output, out_path, self.code)

    def get_config(self) -> Dict:
        return {"mtime": self.mtime, "assets": [ref.to_dict() for ref in self.references]}
