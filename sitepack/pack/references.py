"""
Extraction of asset references from page markup.

Every reference kind is one entry of ``MATCHERS``. Each pattern holds exactly one
capturing group, the referenced pathname; the patterns are joined into a single
alternation so a span of text is claimed by at most one kind, and matches come
back in document order.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, NamedTuple, Tuple

IMAGE_EXT = r"(?:ico|jpeg|png|svg)"


class ReferenceMatcher(NamedTuple):
    kind: str
    pattern: str


MATCHERS: Tuple[ReferenceMatcher, ...] = (
    ReferenceMatcher(
        "img",
        rf"<img\s+[^>]*src=[\"'](/[^\"']+\.{IMAGE_EXT})[\"'][^>]*>",
    ),
    ReferenceMatcher(
        "stylesheet",
        r"<link\s+[^>]*rel=[\"']stylesheet[\"'][^>]*href=[\"'](/[^\"']+\.css)[\"'][^>]*>",
    ),
    ReferenceMatcher(
        "script",
        r"<script\s+[^>]*src=[\"'](/[^\"']+\.m?js)[\"'][^>]*></script>",
    ),
    ReferenceMatcher(
        "import",
        r"import\s+[^'\"]+\s+from\s+['\"](/[^'\"]+\.mjs)['\"]",
    ),
    ReferenceMatcher(
        "include",
        r"<!--#include\s+virtual=[\"']([^\"']+)[\"']\s*-->",
    ),
    ReferenceMatcher(
        "og:image",
        rf"<meta\s+[^>]*property=[\"']og:image[\"'][^>]*content=[\"']https?://[^\"']*?(/[^\"']+\.{IMAGE_EXT})[\"'][^>]*>",
    ),
)


def compile_matchers(matchers: Tuple[ReferenceMatcher, ...]) -> re.Pattern:
    return re.compile("|".join(m.pattern for m in matchers), re.IGNORECASE)


REFERENCE_RE = compile_matchers(MATCHERS)


@dataclass(frozen=True)
class AssetReference:
    """One occurrence of a referenced pathname and the literal text it was found in."""

    pathname: str
    match: str
    kind: str = field(default="", compare=False)

    def to_dict(self) -> Dict[str, str]:
        return {"pathname": self.pathname, "match": self.match}

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "AssetReference":
        return cls(pathname=data["pathname"], match=data["match"])

    def rewrite(self, output_pathname: str) -> str:
        """The matched text with its pathname swapped for ``output_pathname``.

        The pathname is replaced at the position of the captured group, so an
        attribute such as ``alt`` holding the same text is left alone.
        """
        m = REFERENCE_RE.fullmatch(self.match)
        if m is None or m.group(m.lastindex) != self.pathname:
            return self.match.replace(self.pathname, output_pathname, 1)
        start, end = m.span(m.lastindex)
        return self.match[:start] + output_pathname + self.match[end:]


def iter_references(
    text: str,
    pattern: re.Pattern = REFERENCE_RE,
    matchers: Tuple[ReferenceMatcher, ...] = MATCHERS,
) -> Iterator[AssetReference]:
    for m in pattern.finditer(text):
        # One group per matcher: lastindex tells which alternative matched.
        index = m.lastindex
        yield AssetReference(
            pathname=m.group(index),
            match=m.group(0),
            kind=matchers[index - 1].kind,
        )


def extract_references(text: str) -> List[AssetReference]:
    return list(iter_references(text))
