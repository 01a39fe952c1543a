import hashlib
import json
import os
import re

from sitepack.pack.packer import collect_asset_pathnames, find_pages_and_files, run_pack
from sitepack.pack.manifest import Manifest
from sitepack.pack.page import PageBuilder
from sitepack.pack.references import AssetReference

CSS = "body{color:red}"
CSS_NAME = hashlib.sha256(CSS.encode("utf8")).hexdigest()[:8] + ".css"


def snapshot(root):
    """Map of relative path -> bytes for every file under ``root``."""
    files = {}
    for dirpath, _, filenames in os.walk(root):
        for name in filenames:
            path = os.path.join(dirpath, name)
            with open(path, "rb") as f:
                files[os.path.relpath(path, root)] = f.read()
    return files


def site(write):
    write("/a.css", CSS)
    write("/img/logo.png", b"\x89PNG\r\n", binary=True)
    write("/favicon.ico", b"\x00\x00\x01\x00", binary=True)
    write("/.htaccess", "DirectoryIndex index.shtml\n")
    write("/en/_header.html", '<header><img src="/img/logo.png" alt="logo"></header>')
    write(
        "/en/index.shtml",
        "<!DOCTYPE html>\n<html>\n  <head>\n"
        '    <link rel="stylesheet" href="/a.css">\n'
        "  </head>\n  <body>\n"
        '    <!--#include virtual="/en/_header.html"-->\n'
        "    <p>Hello</p>\n"
        "  </body>\n</html>\n",
    )
    write("/README.md", "not part of the site")


class TestDiscovery:
    def test_find_pages_and_files(self, project, write):
        """Test: Pages and special files are found, everything else is ignored."""
        site(write)
        pages, files = find_pages_and_files(project.src_dir, Manifest())
        assert [p.pathname for p in pages] == ["/en/_header.html", "/en/index.shtml"]
        assert files == ["/.htaccess", "/favicon.ico"]

    def test_pages_seeded_from_manifest(self, project, write):
        """Test: Discovered pages start from their recorded state."""
        write("/index.html", "<p></p>")
        manifest = Manifest(pages={"/index.html": {"mtime": 42.0, "assets": [{"pathname": "/a.png", "match": "m"}]}})
        pages, _ = find_pages_and_files(project.src_dir, manifest)
        assert pages[0].mtime == 42.0
        assert pages[0].references == [AssetReference("/a.png", "m")]

    def test_asset_set_excludes_includes(self):
        """Test: The asset set is special files plus non-page references."""
        page = PageBuilder(
            "/i.shtml",
            references=[
                AssetReference("/a.css", "x"),
                AssetReference("/_h.html", "y"),
                AssetReference("/a.css", "z"),
            ],
        )
        assert collect_asset_pathnames([page], ["/.htaccess"]) == ["/.htaccess", "/a.css"]


class TestPack:
    def test_full_build(self, project, write):
        """Test: Assets are hashed, pages rewritten and minified, fragments inlined."""
        site(write)
        result = run_pack(project, "1.0.0-0")

        out = project.out_public_dir
        assert result.changed is True
        assert out == project.out_dir / "public_html"
        assert (out / CSS_NAME).read_text(encoding="utf8") == CSS
        assert (out / "favicon.ico").exists()
        assert (out / ".htaccess").read_text(encoding="utf8") == "DirectoryIndex index.html\n"

        html = (out / "en" / "index.html").read_text(encoding="utf8")
        assert f'href="/{CSS_NAME}"' in html
        assert "<header>" in html
        assert "#include" not in html
        assert "\n    <p>" not in html
        logo = result.assets["/img/logo.png"].output_pathname
        assert f'src="{logo}"' in html

        assert not (out / "en" / "_header.html").exists()
        assert not (out / "en" / "index.shtml").exists()
        assert not (out / "README.md").exists()

        manifest = json.loads(project.manifest_path.read_text(encoding="utf8"))
        assert manifest["version"] == "1.0.0-0"
        assert manifest["assets"]["/a.css"]["outname"] == CSS_NAME
        assert set(manifest["pages"]) == {"/en/_header.html", "/en/index.shtml"}
        assert manifest["pages"]["/en/index.shtml"]["assets"][0]["pathname"] == "/a.css"

    def test_second_run_is_a_no_op(self, project, write):
        """Test: Rebuilding without changes leaves output and manifest untouched."""
        site(write)
        run_pack(project, "1")
        before = snapshot(project.out_dir)
        manifest_mtime = os.stat(project.manifest_path).st_mtime_ns

        result = run_pack(project, "2")

        assert result.changed is False
        assert snapshot(project.out_dir) == before
        assert os.stat(project.manifest_path).st_mtime_ns == manifest_mtime
        assert json.loads(project.manifest_path.read_text(encoding="utf8"))["version"] == "1"

    def test_changed_asset_propagates_to_page(self, project, write, touch):
        """Test: Editing a stylesheet rewrites the page that links it and drops the old output."""
        site(write)
        run_pack(project, "1")
        page_out = project.out_public_dir / "en" / "index.html"
        old_html = page_out.read_text(encoding="utf8")

        touch(write("/a.css", "body{color:blue}"))
        result = run_pack(project, "2")

        new_name = hashlib.sha256(b"body{color:blue}").hexdigest()[:8] + ".css"
        assert result.pages["/en/index.shtml"].changed is True
        html = page_out.read_text(encoding="utf8")
        assert html != old_html
        assert f'href="/{new_name}"' in html
        assert (project.out_public_dir / new_name).exists()
        assert not (project.out_public_dir / CSS_NAME).exists()
        assert str(project.out_public_dir / CSS_NAME) in [os.path.normpath(p) for p in result.removed]

    def test_changed_fragment_propagates_to_page(self, project, write, touch):
        """Test: Editing an included fragment rebuilds the pages including it."""
        site(write)
        run_pack(project, "1")

        touch(write("/en/_header.html", "<header>New header</header>"))
        run_pack(project, "2")

        html = (project.out_public_dir / "en" / "index.html").read_text(encoding="utf8")
        assert "New header" in html

    def test_asset_only_change_updates_manifest(self, project, write, touch):
        """Test: A changed special file is recorded even when no page changed."""
        site(write)
        run_pack(project, "1")
        before = json.loads(project.manifest_path.read_text(encoding="utf8"))

        touch(write("/.htaccess", "Options -Indexes\n"))
        result = run_pack(project, "2")

        after = json.loads(project.manifest_path.read_text(encoding="utf8"))
        assert result.changed is True
        assert after["assets"]["/.htaccess"]["mtime"] > before["assets"]["/.htaccess"]["mtime"]
        assert (project.out_public_dir / ".htaccess").read_text(encoding="utf8") == "Options -Indexes\n"

    def test_deleted_page_output_removed(self, project, write):
        """Test: Removing a source page removes its output on the next build."""
        site(write)
        extra = write("/en/about.html", "<p>About</p>")
        run_pack(project, "1")
        assert (project.out_public_dir / "en" / "about.html").exists()

        extra.unlink()
        result = run_pack(project, "2")

        assert result.changed is True
        assert not (project.out_public_dir / "en" / "about.html").exists()
        assert "/en/about.html" not in json.loads(project.manifest_path.read_text(encoding="utf8"))["pages"]

    def test_force_rebuilds_everything(self, project, write):
        """Test: --force reprocesses every page and asset."""
        site(write)
        first = run_pack(project, "1")
        result = run_pack(project, "2", force=True)

        assert result.changed is True
        assert all(page.changed for page in result.pages.values())
        assert all(asset.changed for asset in result.assets.values())
        assert result.manifest.assets == first.manifest.assets
        assert result.manifest.pages == first.manifest.pages
        assert json.loads(project.manifest_path.read_text(encoding="utf8"))["version"] == "2"

    def test_corrupt_manifest_means_full_build(self, project, write):
        """Test: An unreadable manifest is treated as no manifest."""
        site(write)
        project.out_dir.mkdir()
        project.manifest_path.write_text("garbage", encoding="utf8")
        result = run_pack(project, "1")
        assert all(page.changed for page in result.pages.values())

    def test_malformed_manifest_records_mean_full_build(self, project, write):
        """Test: A manifest with a reference missing its match text does not abort the build."""
        site(write)
        project.out_dir.mkdir()
        project.manifest_path.write_text(
            json.dumps({"pages": {"/en/index.shtml": {"mtime": 1, "assets": [{"pathname": "/a.css"}]}}}),
            encoding="utf8",
        )
        result = run_pack(project, "1")
        assert all(page.changed for page in result.pages.values())
        assert (project.out_public_dir / "en" / "index.html").exists()

    def test_packed_module_has_no_dangling_imports(self, project, write):
        """Test: A module loaded by a page is self-contained once packed."""
        write("/assets/core.mjs", "export const LANG = 'en';\n")
        write("/assets/footer/language.mjs", "import { LANG } from '/assets/core.mjs';\nconsole.log(LANG);\n")
        write("/assets/footer/entrypoints.mjs", "import '/assets/footer/language.mjs';\n")
        write("/index.html", '<script type="module" src="/assets/footer/entrypoints.mjs"></script>')
        result = run_pack(project, "1")

        entry = result.assets["/assets/footer/entrypoints.mjs"].output_pathname
        packed = (project.out_public_dir / entry.lstrip("/")).read_text(encoding="utf8")
        assert re.search(r"""(?:import|from)\s*['"]/""", packed) is None
        assert "console.log(LANG)" in packed
        assert f'src="{entry}"' in (project.out_public_dir / "index.html").read_text(encoding="utf8")
