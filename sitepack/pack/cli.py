"""
Command line entry point: bump the version, then pack the site.
"""

import argparse
import logging
import sys
from typing import List, Optional

from .packer import run_pack
from .paths import PathConfig
from .version import Version

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="sitepack", description="Bundle, minify and hash a static site")
    p.add_argument("--root", default=".", help="Project root directory")
    p.add_argument("--src", default="public_html", help="Source tree, relative to the root")
    p.add_argument("--out", default="dist", help="Output directory, relative to the root")
    p.add_argument("--force", action="store_true", help="Ignore the manifest and rebuild everything")
    p.add_argument("--no-bump", action="store_true", help="Do not bump version.yaml before building")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return p


def resolve_version(paths: PathConfig, bump: bool) -> Optional[str]:
    if not paths.version_path.exists():
        logger.warning("No version file at %s", paths.version_path.as_posix())
        return None
    version = Version.load(paths.version_path)
    if bump:
        version.bump()
        version.write(paths.version_path, paths.root / "package.json")
        logger.info("Version updated to %s", version)
    return str(version)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s - %(message)s",
    )

    paths = PathConfig.from_root(args.root, src=args.src, out=args.out)
    if not paths.src_dir.is_dir():
        logger.error('Source directory "%s" does not exist.', paths.src_dir.as_posix())
        return 1

    version = resolve_version(paths, bump=not args.no_bump)
    run_pack(paths, version, force=args.force)
    return 0


if __name__ == "__main__":
    sys.exit(main())
