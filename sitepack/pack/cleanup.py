"""
Removal of output files that the current build no longer produces.
"""

import asyncio
import logging
import os
import shutil
from pathlib import Path
from typing import Dict, Iterable, List, Set, Tuple, Union

from .asset import Asset
from .page import PageBuilder
from .paths import source_path

logger = logging.getLogger(__name__)


def keep_set(out_dir: Union[str, Path], pages: Iterable[PageBuilder], assets: Dict[str, Asset]) -> Set[str]:
    """Absolute output paths produced by the current build."""
    keep: Set[str] = set()
    for asset in assets.values():
        if asset.output_pathname:
            keep.add(os.path.normpath(source_path(out_dir, asset.output_pathname)))
    for page in pages:
        if not page.is_private:
            keep.add(os.path.normpath(source_path(out_dir, page.output_pathname)))
    return keep


def _prune_dir(directory: str, keep: Set[str]) -> Tuple[List[str], int]:
    """Return ``(files to remove, kept entry count)`` for ``directory``.

    Subdirectories without a single kept entry are removed on the spot.
    """
    remove_files: List[str] = []
    keep_count = 0

    with os.scandir(directory) as it:
        entries = sorted(it, key=lambda e: e.name)

    for entry in entries:
        path = os.path.normpath(entry.path)
        if entry.is_dir(follow_symlinks=False):
            sub_remove, sub_keep = _prune_dir(path, keep)
            if not sub_keep:
                logger.debug("Removing directory %s", path)
                shutil.rmtree(path)
            else:
                keep_count += sub_keep
                remove_files.extend(sub_remove)
        elif path not in keep:
            remove_files.append(path)
        else:
            keep_count += 1

    return remove_files, keep_count


async def cleanup(out_dir: Union[str, Path], pages: Iterable[PageBuilder], assets: Dict[str, Asset]) -> List[str]:
    """Delete every file under ``out_dir`` outside the keep-set; return what was removed."""
    if not os.path.isdir(out_dir):
        return []
    keep = keep_set(out_dir, pages, assets)
    remove_files, _ = await asyncio.to_thread(_prune_dir, os.path.normpath(out_dir), keep)

    for path in remove_files:
        logger.info("Removing %s", path)
    await asyncio.gather(*(asyncio.to_thread(os.remove, path) for path in remove_files))
    return remove_files
