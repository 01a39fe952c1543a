"""
Minifiers for the HTML, JS and CSS files produced by the packer
"""

import re
import logging
from typing import Callable, Dict, Optional, Tuple, Union

import csscompressor
import htmlmin
import jsmin
from packaging import version

logger = logging.getLogger(__name__)

# Minifier dispatch table for JS/CSS. HTML is handled via the `htmlmin` package.
MINIFIERS: Dict[str, Callable] = {
    "js": jsmin.jsmin,
    "css": csscompressor.compress,
}

# Compatibility: csscompressor<=0.9.5. Preserve whitespace in url() to avoid breaking SVG data URIs.
if version.parse(csscompressor.__version__) <= version.parse("0.9.5"):
    # See https://github.com/sprymix/csscompressor/issues/9#issuecomment-1024417374
    _preserve_call_tokens_original = csscompressor._preserve_call_tokens
    _url_re = csscompressor._url_re

    def _preserve_url_whitespace(*args, **kwargs):
        """Keep whitespace inside url() tokens, leave every other call token alone."""
        if _url_re == args[1]:
            kwargs["remove_ws"] = False
        return _preserve_call_tokens_original(*args, **kwargs)

    csscompressor._preserve_call_tokens = _preserve_url_whitespace

# Options forwarded to `htmlmin.minify`. User options may override these keys only.
HTMLMIN_DEFAULTS: Dict[str, Union[bool, str, Tuple[str, ...]]] = {
    "remove_comments": True,
    "remove_empty_space": True,
    "remove_all_empty_space": False,
    "reduce_empty_attributes": True,
    "reduce_boolean_attributes": False,
    "remove_optional_attribute_quotes": False,
    "convert_charrefs": False,
    "keep_pre": False,
    "pre_tags": ("pre", "textarea"),
    "pre_attr": "pre",
}

# Inline blocks whose body is handed to the JS/CSS minifiers before htmlmin runs.
INLINE_SCRIPT_RE = re.compile(r"(<script\b([^>]*)>)(.*?)(</script\s*>)", re.IGNORECASE | re.DOTALL)
INLINE_STYLE_RE = re.compile(r"(<style\b[^>]*>)(.*?)(</style\s*>)", re.IGNORECASE | re.DOTALL)
SCRIPT_SRC_RE = re.compile(r"\bsrc\s*=", re.IGNORECASE)
SCRIPT_TYPE_RE = re.compile(r"\btype\s*=\s*[\"']?([^\"'\s>]+)", re.IGNORECASE)
JS_TYPES = {"module", "text/javascript", "application/javascript"}


def minify_file_data_with_func(file_data: str, minify_func: Callable) -> str:
    """Run the correct minifier with safe parameters."""
    if minify_func.__name__ == "jsmin":
        return minify_func(file_data, quote_chars="'\"`")
    return minify_func(file_data)


def minify_js(code: str) -> str:
    return minify_file_data_with_func(code, MINIFIERS["js"])


def minify_css(code: str) -> str:
    return minify_file_data_with_func(code, MINIFIERS["css"])


def _is_js_script(attrs: str) -> bool:
    if SCRIPT_SRC_RE.search(attrs):
        return False
    m = SCRIPT_TYPE_RE.search(attrs)
    return m is None or m.group(1).lower() in JS_TYPES


def minify_inline_blocks(html: str) -> str:
    """Minify the bodies of inline <script> and <style> blocks in place."""

    def _sub_script(m: re.Match) -> str:
        body = m.group(3)
        if not body.strip() or not _is_js_script(m.group(2)):
            return m.group(0)
        return f"{m.group(1)}{minify_js(body)}{m.group(4)}"

    def _sub_style(m: re.Match) -> str:
        body = m.group(2)
        if not body.strip():
            return m.group(0)
        return f"{m.group(1)}{minify_css(body)}{m.group(3)}"

    html = INLINE_SCRIPT_RE.sub(_sub_script, html)
    return INLINE_STYLE_RE.sub(_sub_style, html)


def htmlmin_options(selected_opts: Optional[Dict] = None) -> Dict:
    """Merge user options over the defaults, warning about unknown keys."""
    output_opts = dict(HTMLMIN_DEFAULTS)
    for key, value in (selected_opts or {}).items():
        if key in output_opts:
            output_opts[key] = value
        else:
            logger.warning("htmlmin option '%s' not recognized", key)
    return output_opts


def minify_html(html: str, selected_opts: Optional[Dict] = None) -> str:
    """Minify a page: inline JS/CSS first, then the markup itself."""
    html = minify_inline_blocks(html)
    return htmlmin.minify(html, **htmlmin_options(selected_opts))


# `<?php ... ?>` and `<?= ... ?>` blocks; the closing tag may be omitted at end of file.
PHP_BLOCK_RE = re.compile(r"<\?(?:php\b|=)[\s\S]*?(?:\?>|\Z)")
PHP_PLACEHOLDER_RE = re.compile(r"__SITEPACK_PHP_(\d+)__")


def minify_php(html: str, selected_opts: Optional[Dict] = None) -> str:
    """Minify the markup of a PHP page, leaving every PHP block exactly as written."""
    blocks = []

    def _stash(m: re.Match) -> str:
        blocks.append(m.group(0))
        return f"__SITEPACK_PHP_{len(blocks) - 1}__"

    html = minify_html(PHP_BLOCK_RE.sub(_stash, html), selected_opts)
    return PHP_PLACEHOLDER_RE.sub(lambda m: blocks[int(m.group(1))], html)
