"""
Turns a script or stylesheet entry point into one self-contained artifact.

Stylesheets have their absolute-rooted ``@import`` rules inlined, depth first, each
file at most once. Scripts get the same treatment for absolute-rooted module
imports: the imported module's body replaces the ``import`` statement with its
``export`` keywords removed, and the imported names are bound as constants.
Imports of other URLs (relative, bare or remote) are left for the browser.
"""

import logging
import posixpath
import re
from pathlib import Path
from typing import List, Optional, Set, Union

from .paths import posix_path, source_path

logger = logging.getLogger(__name__)

CSS_IMPORT_RE = re.compile(
    r"@import\s+(?:url\(\s*)?[\"']?(/[^\"')\s;]+\.css)[\"']?\s*\)?\s*;",
    re.IGNORECASE,
)

# import '/a.mjs';  import x, { a, b as c } from '/a.mjs';  import * as ns from '/a.mjs';
# export { a } from '/a.mjs';  export * from '/a.mjs';
JS_IMPORT_RE = re.compile(
    r"^[ \t]*(?:import|(?P<reexport>export))\s+"
    r"(?:(?P<clause>[\w$\s,{}*]+?)\s+from\s+)?"
    r"[\"'](?P<path>/[^\"'\s]+\.m?js)[\"'][ \t]*;?",
    re.MULTILINE,
)
JS_EXPORT_DEFAULT_RE = re.compile(r"^([ \t]*)export\s+default\s+", re.MULTILINE)
JS_EXPORT_DECL_RE = re.compile(
    r"^([ \t]*)export\s+((?:async\s+)?function\b\*?|class\b|const\b|let\b|var\b)",
    re.MULTILINE,
)
JS_EXPORT_LIST_RE = re.compile(r"^[ \t]*export\s*\{(?P<names>[^}]*)\}(?!\s*from\b)[ \t]*;?", re.MULTILINE)
JS_DECL_NAME_RE = re.compile(
    r"^[ \t]*export\s+(?:(?:async\s+)?function\b\*?|class\b|const\b|let\b|var\b)\s*([\w$]+)",
    re.MULTILINE,
)


def default_binding(pathname: str) -> str:
    """Name a module's default export is bound to once it is inlined."""
    return "__default_" + re.sub(r"\W", "_", pathname)


def export_names(text: str) -> List[str]:
    names = JS_DECL_NAME_RE.findall(text)
    for m in JS_EXPORT_LIST_RE.finditer(text):
        for item in m.group("names").split(","):
            parts = item.split()
            if parts and parts[-1] != "default":
                names.append(parts[-1])
    return names


def _import_bindings(clause: Optional[str], pathname: str, exported: List[str]) -> List[str]:
    """``const`` statements binding the names an import clause asks for."""
    if not clause:
        return []
    bindings = []
    named = ""
    if "{" in clause:
        head, _, rest = clause.partition("{")
        named = rest.partition("}")[0]
        clause = head
    for part in (p.strip() for p in clause.split(",")):
        if not part:
            continue
        if part.startswith("*"):
            alias = part.split()[-1]
            members = ", ".join(exported)
            bindings.append(f"const {alias} = Object.freeze({{ {members} }});")
        else:
            bindings.append(f"const {part} = {default_binding(pathname)};")
    for item in named.split(","):
        parts = item.split()
        if len(parts) == 3 and parts[1] == "as":
            name = default_binding(pathname) if parts[0] == "default" else parts[0]
            bindings.append(f"const {parts[2]} = {name};")
    return bindings


def _strip_exports(text: str, pathname: str) -> str:
    def _sub_list(m: re.Match) -> str:
        # Renamed exports still need a top-level binding under their public name.
        bindings = []
        for item in m.group("names").split(","):
            parts = item.split()
            if len(parts) == 3 and parts[1] == "as":
                name = default_binding(pathname) if parts[2] == "default" else parts[2]
                bindings.append(f"const {name} = {parts[0]};")
        return "\n".join(bindings)

    text = JS_EXPORT_LIST_RE.sub(_sub_list, text)
    text = JS_EXPORT_DEFAULT_RE.sub(lambda m: f"{m.group(1)}const {default_binding(pathname)} = ", text)
    return JS_EXPORT_DECL_RE.sub(r"\1\2", text)


def _bundle_js(path: Path, src_dir: Path, seen: Set[str], pathname: Optional[str] = None) -> str:
    """Bundle the module at ``path``; ``pathname`` is set for imported modules only."""
    seen.add(posix_path(path))
    text = path.read_text(encoding="utf8")

    def _sub_import(m: re.Match) -> str:
        dep = posixpath.normpath(m.group("path"))
        target = source_path(src_dir, dep)
        if not target.is_file():
            logger.warning("Cannot inline missing module %s into %s", dep, posix_path(path))
            return m.group(0)
        body = ""
        if posix_path(target) not in seen:
            logger.debug("Inlining %s into %s", dep, posix_path(path))
            body = _bundle_js(target, src_dir, seen, dep)
        if m.group("reexport"):
            return body
        exported = export_names(target.read_text(encoding="utf8"))
        return "\n".join([body] + _import_bindings(m.group("clause"), dep, exported))

    text = JS_IMPORT_RE.sub(_sub_import, text)
    return text if pathname is None else _strip_exports(text, pathname)


def _bundle_css(path: Path, src_dir: Path, seen: Set[str]) -> str:
    seen.add(posix_path(path))
    text = path.read_text(encoding="utf8")

    def _sub_import(m: re.Match) -> str:
        target = source_path(src_dir, m.group(1))
        if posix_path(target) in seen:
            return ""
        if not target.is_file():
            logger.warning("Cannot inline missing stylesheet %s into %s", m.group(1), posix_path(path))
            return m.group(0)
        logger.debug("Inlining %s into %s", m.group(1), posix_path(path))
        return _bundle_css(target, src_dir, seen)

    return CSS_IMPORT_RE.sub(_sub_import, text)


def bundle(path: Union[str, Path], src_dir: Union[str, Path], seen: Optional[Set[str]] = None) -> str:
    """Return the bundled text of the entry point at ``path``.

    ``seen`` collects the posix paths of every file read, the entry point included.
    """
    path = Path(path)
    seen = set() if seen is None else seen
    if path.suffix.lower() == ".css":
        return _bundle_css(path, Path(src_dir), seen)
    return _bundle_js(path, Path(src_dir), seen)


def bundle_sources(path: Union[str, Path], src_dir: Union[str, Path]) -> List[Path]:
    """Every file the bundle of ``path`` is made of, the entry point first."""
    path = Path(path)
    pattern = CSS_IMPORT_RE if path.suffix.lower() == ".css" else JS_IMPORT_RE
    found = [path]
    seen = {posix_path(path)}
    for current in found:
        for m in pattern.finditer(current.read_text(encoding="utf8")):
            target = source_path(src_dir, m.group(1) if pattern is CSS_IMPORT_RE else m.group("path"))
            if posix_path(target) not in seen and target.is_file():
                seen.add(posix_path(target))
                found.append(target)
    return found
