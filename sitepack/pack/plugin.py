"""
An MkDocs plugin that packs a static source tree into the built site
"""

import logging
from pathlib import Path

from mkdocs.config import config_options as c
from mkdocs.config.defaults import MkDocsConfig
from mkdocs.plugins import BasePlugin

from .packer import run_pack
from .paths import PathConfig

# MkDocs shows these debug logs only with `--verbose`.
logger = logging.getLogger(f"mkdocs.plugins.{__name__}")


class PackPlugin(BasePlugin):
    """Runs the packer after MkDocs has written the site.

    Configuration options:
    - src_dir (str): Source tree of pages and assets, relative to mkdocs.yml.
    - out_dir (str): Output root; defaults to `site_dir`. The packed tree lands in
      `<out_dir>/<basename of src_dir>`.
    - manifest (str): Manifest file name inside `out_dir`.
    - force (bool): Ignore the manifest and rebuild everything.
    - version (str): Version tag recorded in the manifest.
    - htmlmin_opts (dict): Extra options forwarded to `htmlmin.minify`.
    """

    config_scheme = (
        ('src_dir',      c.Type(str, required=True)),
        ('out_dir',      c.Type(str, default='')),
        ('manifest',     c.Type(str, default='manifest.json')),
        ('force',        c.Type(bool, default=False)),
        ('version',      c.Type(str, default='')),
        ('htmlmin_opts', c.Type(dict, default={})),
    )

    def _paths(self, config: MkDocsConfig) -> PathConfig:
        config_file = config.get("config_file_path")
        root = Path(config_file).resolve().parent if config_file else Path.cwd()
        out_dir = Path(self.config.get("out_dir") or config["site_dir"])
        if not out_dir.is_absolute():
            out_dir = root / out_dir
        return PathConfig(
            root=root,
            src_dir=root / self.config["src_dir"],
            out_dir=out_dir,
            manifest_path=out_dir / self.config.get("manifest", "manifest.json"),
            version_path=root / "version.yaml",
        )

    def on_post_build(self, *, config: MkDocsConfig) -> None:
        paths = self._paths(config)
        if not paths.src_dir.is_dir():
            logger.warning("[pack] source directory '%s' not found; skipping.", paths.src_dir.as_posix())
            return

        logger.debug("[pack] src=%s out=%s", paths.src_dir.as_posix(), paths.out_public_dir.as_posix())
        result = run_pack(
            paths,
            self.config.get("version") or None,
            force=bool(self.config.get("force", False)),
            htmlmin_opts=self.config.get("htmlmin_opts") or {},
        )
        logger.info(
            "[pack] %d pages, %d assets, %d stale files removed",
            len(result.pages),
            len(result.assets),
            len(result.removed),
        )
