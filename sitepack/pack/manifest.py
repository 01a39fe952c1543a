"""
Persisted record of the previous build, used to skip unchanged pages and assets
"""

import json
import logging
from pathlib import Path
from typing import Dict, Optional, Union

logger = logging.getLogger(__name__)


def _check_record(pathname: str, record) -> None:
    if not isinstance(record, dict):
        raise ValueError(f"{pathname}: record must be an object")
    mtime = record.get("mtime", 0)
    if isinstance(mtime, bool) or not isinstance(mtime, (int, float)):
        raise ValueError(f"{pathname}: mtime must be a number")


class Manifest:
    """Per-pathname build state.

    ``pages`` maps a page pathname to ``{"mtime", "assets": [{"pathname", "match"}]}``
    and ``assets`` maps an asset pathname to ``{"mtime", "outname"}``.
    """

    def __init__(
        self,
        version: Optional[str] = None,
        pages: Optional[Dict[str, Dict]] = None,
        assets: Optional[Dict[str, Dict]] = None,
    ):
        self.version = version
        self.pages: Dict[str, Dict] = pages if pages is not None else {}
        self.assets: Dict[str, Dict] = assets if assets is not None else {}

    def __repr__(self) -> str:
        return f"Manifest(version={self.version!r}, pages={len(self.pages)}, assets={len(self.assets)})"

    @classmethod
    def load(cls, path: Optional[Union[str, Path]]) -> "Manifest":
        """Load the manifest at ``path``; any missing or unreadable file yields an empty one."""
        if path is None:
            return cls()
        try:
            data = json.loads(Path(path).read_text(encoding="utf8"))
            manifest = cls(
                version=data.get("version"),
                pages=dict(data.get("pages") or {}),
                assets=dict(data.get("assets") or {}),
            )
            manifest.validate()
            return manifest
        except (OSError, ValueError, AttributeError, TypeError) as e:
            logger.debug("Starting from an empty manifest (%s): %s", path, e)
            return cls()

    def validate(self) -> None:
        """Raise ``ValueError`` unless every record has the shape the builders read."""
        for pathname, record in self.pages.items():
            _check_record(pathname, record)
            references = record.get("assets", [])
            if not isinstance(references, list):
                raise ValueError(f"{pathname}: assets must be a list")
            for ref in references:
                if not (
                    isinstance(ref, dict)
                    and isinstance(ref.get("pathname"), str)
                    and isinstance(ref.get("match"), str)
                ):
                    raise ValueError(f"{pathname}: malformed reference {ref!r}")
        for pathname, record in self.assets.items():
            _check_record(pathname, record)
            outname = record.get("outname")
            if outname is not None and not isinstance(outname, str):
                raise ValueError(f"{pathname}: outname must be a string")

    def page_record(self, pathname: str) -> Dict:
        return self.pages.get(pathname) or {}

    def asset_record(self, pathname: str) -> Dict:
        return self.assets.get(pathname) or {}

    def same_keys(self, other: "Manifest") -> bool:
        """True when both manifests track exactly the same pages and assets."""
        return set(self.pages) == set(other.pages) and set(self.assets) == set(other.assets)

    def to_dict(self) -> Dict:
        return {"version": self.version, "pages": self.pages, "assets": self.assets}

    def dumps(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def write(self, path: Union[str, Path]) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.dumps(), encoding="utf8")
