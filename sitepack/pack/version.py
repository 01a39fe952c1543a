"""
Version tag written into the manifest, kept in ``version.yaml``.

The build number is the date in ``YYDDD`` form (two-digit year, day of year); the
revision counts builds made on the same day.
"""

import datetime
import logging
import re
import subprocess
from pathlib import Path
from typing import Optional, Union

import yaml

logger = logging.getLogger(__name__)

VERSION_FIELDS = ("major", "minor", "build", "revision", "commitHash")

# Read from the raw text: an unquoted all-digit hash would otherwise load as a number.
COMMIT_HASH_RE = re.compile(r"^\s*commitHash:\s*[\"']?([a-f\d]{7,})", re.MULTILINE)
PACKAGE_VERSION_RE = re.compile(r'("version"\s*:\s*")[^"]*(")')


def replace_package_version(text: str, version: str) -> str:
    """Swap the ``"version"`` field of a package.json text, keeping its formatting."""
    return PACKAGE_VERSION_RE.sub(lambda m: m.group(1) + version + m.group(2), text, count=1)


def get_last_commit_hash(cwd: Optional[Union[str, Path]] = None) -> str:
    """Short hash of HEAD, or "" outside a git checkout."""
    try:
        out = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        logger.debug("No commit hash available: %s", e)
        return ""
    return out.stdout.strip()


def compute_build_number(now: datetime.date) -> int:
    return int(f"{now.year % 100:02d}{now.timetuple().tm_yday:03d}")


class Version:
    def __init__(self, major: int = 0, minor: int = 0, build: int = 0, revision: int = 0, commitHash: str = ""):
        self.major = major
        self.minor = minor
        self.build = build
        self.revision = revision
        self.commit_hash = commitHash or ""

    @classmethod
    def from_yaml(cls, text: str) -> "Version":
        data = yaml.safe_load(text) or {}
        if not isinstance(data, dict):
            raise ValueError("version file must hold a mapping")
        missing = [key for key in VERSION_FIELDS if key not in data]
        if missing:
            raise ValueError(f"Missing required field: {missing[0]}")
        commit = COMMIT_HASH_RE.search(text)
        return cls(
            major=int(data["major"]),
            minor=int(data["minor"]),
            build=int(data["build"]),
            revision=int(data["revision"]),
            commitHash=commit.group(1) if commit else str(data["commitHash"] or ""),
        )

    @classmethod
    def load(cls, path: Union[str, Path]) -> "Version":
        return cls.from_yaml(Path(path).read_text(encoding="utf8"))

    def next_build_revision(self, now: datetime.date):
        next_build = compute_build_number(now)
        next_revision = 0 if self.build != next_build else self.revision + 1
        return next_build, next_revision

    def bump(self, now: Optional[datetime.date] = None, commit_hash: Optional[str] = None) -> None:
        self.build, self.revision = self.next_build_revision(now or datetime.date.today())
        self.commit_hash = get_last_commit_hash() if commit_hash is None else commit_hash

    def to_dict(self):
        return {
            "major": self.major,
            "minor": self.minor,
            "build": self.build,
            "revision": self.revision,
            "commitHash": self.commit_hash,
        }

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.to_dict(), sort_keys=False)

    def write(self, path: Union[str, Path], package_path: Optional[Union[str, Path]] = None) -> None:
        """Write ``version.yaml`` and, when it exists, the version field of ``package_path``."""
        Path(path).write_text(self.to_yaml(), encoding="utf8")
        if package_path is None or not Path(package_path).is_file():
            return
        package_path = Path(package_path)
        text = package_path.read_text(encoding="utf8")
        package_path.write_text(replace_package_version(text, str(self)), encoding="utf8")
        logger.debug("Updated version in %s", package_path.as_posix())

    def __str__(self) -> str:
        commit = f"+{self.commit_hash}" if self.commit_hash else ""
        return f"{self.major}.{self.minor}.{self.build}-{self.revision}{commit}"
