"""
Processes and bundles the pages and assets of a site for deployment.

The source tree is scanned for pages and special files, every page is populated
so the full asset set is known, assets are minified and content-hashed, pages are
rewritten to reference the hashed outputs, and finally the output tree is pruned
and the manifest written for the next incremental run.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from .asset import Asset, is_special_file
from .cleanup import cleanup
from .manifest import Manifest
from .page import PageBuilder
from .paths import PathConfig, is_page, to_pathname

logger = logging.getLogger(__name__)


@dataclass
class PackResult:
    changed: bool
    manifest: Manifest
    pages: Dict[str, PageBuilder] = field(default_factory=dict)
    assets: Dict[str, Asset] = field(default_factory=dict)
    removed: List[str] = field(default_factory=list)


def find_pages_and_files(src_dir: Path, manifest: Manifest) -> Tuple[List[PageBuilder], List[str]]:
    """Walk ``src_dir`` for pages (seeded from ``manifest``) and special file pathnames."""
    pages: List[PageBuilder] = []
    files: List[str] = []

    for dirpath, dirnames, filenames in os.walk(src_dir):
        dirnames.sort()
        for name in sorted(filenames):
            pathname = to_pathname(src_dir, Path(dirpath) / name)
            if is_page(name):
                pages.append(PageBuilder.from_record(pathname, manifest.page_record(pathname)))
            elif is_special_file(name):
                files.append(pathname)

    return pages, files


def collect_asset_pathnames(pages: List[PageBuilder], files: List[str]) -> List[str]:
    pathnames: Set[str] = set(files)
    for page in pages:
        for ref in page.references:
            if not is_page(ref.pathname):
                pathnames.add(ref.pathname)
    return sorted(pathnames)


async def pack(
    paths: PathConfig,
    version: Optional[str] = None,
    force: bool = False,
    htmlmin_opts: Optional[Dict] = None,
) -> PackResult:
    src_dir = Path(paths.src_dir)
    out_dir = Path(paths.out_public_dir)
    Path(paths.out_dir).mkdir(parents=True, exist_ok=True)

    manifest = Manifest.load(None if force else paths.manifest_path)
    pages, files = await asyncio.to_thread(find_pages_and_files, src_dir, manifest)
    logger.debug("Discovered %d pages and %d special files", len(pages), len(files))

    await asyncio.gather(*(page.populate(src_dir) for page in pages))

    new_manifest = Manifest(version=version)
    assets: Dict[str, Asset] = {
        pathname: Asset.from_record(pathname, manifest.asset_record(pathname))
        for pathname in collect_asset_pathnames(pages, files)
    }
    await asyncio.gather(*(asset.build(src_dir, out_dir) for asset in assets.values()))
    for pathname, asset in assets.items():
        new_manifest.assets[pathname] = asset.get_config()

    by_pathname = {page.pathname: page for page in pages}
    await asyncio.gather(
        *(page.build(src_dir, out_dir, manifest, assets, by_pathname, htmlmin_opts=htmlmin_opts) for page in pages)
    )
    for page in pages:
        new_manifest.pages[page.pathname] = page.get_config()

    changed = (
        any(page.changed for page in pages)
        or any(asset.changed for asset in assets.values())
        or not manifest.same_keys(new_manifest)
    )
    result = PackResult(changed=changed, manifest=new_manifest, pages=by_pathname, assets=assets)
    if not changed:
        logger.info("Nothing to do, output is up to date.")
        return result

    logger.info("Cleaning up unused files...")
    result.removed = await cleanup(out_dir, pages, assets)

    logger.info("Writing manifest to %s", Path(paths.manifest_path).as_posix())
    await asyncio.to_thread(new_manifest.write, paths.manifest_path)
    logger.info("Manifest updated.")
    return result


def run_pack(
    paths: PathConfig,
    version: Optional[str] = None,
    force: bool = False,
    htmlmin_opts: Optional[Dict] = None,
) -> PackResult:
    return asyncio.run(pack(paths, version, force, htmlmin_opts))
