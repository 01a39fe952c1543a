"""
Tests for the HTML/JS/CSS minifiers used by the packer.
"""

from sitepack.minify.minifiers import (
    HTMLMIN_DEFAULTS,
    MINIFIERS,
    htmlmin_options,
    minify_css,
    minify_file_data_with_func,
    minify_html,
    minify_inline_blocks,
    minify_js,
    minify_php,
)


class TestMinifiers:
    """Test for the minifier wrappers."""

    def test_minify_js(self):
        """Test: JavaScript minification works."""
        js_code = "console.log('hello');\nvar x = 1;"
        result = minify_file_data_with_func(js_code, MINIFIERS["js"])
        assert "console.log('hello');var x=1" in result

    def test_minify_js_keeps_template_literals(self):
        """Test: Backtick strings are left untouched."""
        result = minify_js("const s = `a   b`;\n")
        assert "`a   b`" in result

    def test_minify_css(self):
        """Test: CSS minification works."""
        css_code = ".test {\n    color: red;\n    margin: 10px;\n}"
        result = minify_css(css_code)
        assert ".test{" in result and "color:red" in result

    def test_minify_html(self):
        """Test: HTML minification collapses whitespace."""
        html_code = "<html><body><p>Hello   World</p></body></html>"
        result = minify_html(html_code)
        assert "<html><body><p>Hello World</p></body></html>" in result

    def test_minify_html_strips_comments(self):
        """Test: Comments are removed from pages."""
        result = minify_html("<div><!-- note --><p>x</p></div>")
        assert "note" not in result
        assert "<p>x</p>" in result

    def test_inline_style_and_script_minified(self):
        """Test: Inline <style> and <script> bodies go through the CSS/JS minifiers."""
        html = (
            "<style>\n  body {\n    color: red;\n  }\n</style>"
            "<script>\n  var a = 1;\n  var b = 2;\n</script>"
        )
        result = minify_inline_blocks(html)
        assert "<style>body{color:red}</style>" in result
        assert "var a=1;var b=2;" in result

    def test_external_and_json_scripts_untouched(self):
        """Test: Scripts with src or a non-JS type keep their body."""
        html = (
            '<script src="/a.js">  </script>'
            '<script type="application/ld+json">\n{ "a": 1 }\n</script>'
        )
        assert minify_inline_blocks(html) == html

    def test_htmlmin_options_merge(self, caplog):
        """Test: Known options override defaults, unknown ones are reported and dropped."""
        opts = htmlmin_options({"remove_comments": False, "bogus": True})
        assert opts["remove_comments"] is False
        assert "bogus" not in opts
        assert set(opts) == set(HTMLMIN_DEFAULTS)
        assert "bogus" in caplog.text

    def test_error_handling(self):
        """Test: Malformed input does not crash the minifiers."""
        bad_css = ".test { color: red; /* unclosed comment"
        assert minify_css(bad_css) is not None

        bad_html = "<html><body><p>Unclosed paragraph"
        assert minify_html(bad_html) is not None

    def test_minify_php_keeps_php_blocks(self):
        """Test: PHP blocks survive HTML minification byte for byte."""
        html = '<p>\n    <?= $name ?>\n</p>\n<!-- note -->\n<?php\n  echo "<i>  x  </i>";\n'
        result = minify_php(html)
        assert "<?= $name ?>" in result
        assert '<?php\n  echo "<i>  x  </i>";\n' in result
        assert "note" not in result
        assert "__SITEPACK_PHP_" not in result
