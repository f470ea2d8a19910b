from pathlib import Path

import pytest

from assetpipe.config import AssetClass, Mode
from assetpipe.errors import TransformFailure
from assetpipe.tasks import discover_transforms, run_transform
from assetpipe.transforms.markup import render, substitute
from assetpipe.transforms.purge import content_words, purge_css

from conftest import write


def test_discovery_covers_every_asset_class() -> None:
    assert set(discover_transforms()) == set(AssetClass)


def test_include_is_inlined_with_context(tmp_path: Path) -> None:
    write(tmp_path, "p/_nav.html", "<nav>@@section</nav>")
    write(tmp_path, "p/head.html", "<h1>@@title</h1>@@include('_nav.html', {\"section\": \"docs\"})")
    page = write(tmp_path, "index.html", "<body>@@include( './p/head.html' , {\"title\": \"Docs\"} )</body>")
    assert render(page) == "<body><h1>Docs</h1><nav>docs</nav></body>"


def test_include_cycle_fails(tmp_path: Path) -> None:
    write(tmp_path, "a.html", "@@include('b.html')")
    write(tmp_path, "b.html", "@@include('a.html')")
    with pytest.raises(TransformFailure, match="include cycle"):
        render(tmp_path / "a.html")


def test_missing_include_names_the_including_file(tmp_path: Path) -> None:
    page = write(tmp_path, "index.html", "@@include('nope.html')")
    with pytest.raises(TransformFailure) as exc:
        render(page)
    assert exc.value.path == page.resolve()
    assert "nope.html" in str(exc.value)


def test_substitute_prefers_longest_key() -> None:
    assert substitute("@@name @@name_full", {"name": "a", "name_full": "b"}) == "a b"


def test_markup_transform_writes_pages(config) -> None:
    specs = discover_transforms()
    run_transform(config, specs[AssetClass.MARKUP], Mode.DEV)
    out = (config.root / "build/index.html").read_text()
    assert "<header class=\"site-header\">Home</header>" in out
    assert "@@include" not in out
    assert not (config.root / "build/partials").exists()


def test_sass_dev_writes_css_and_map_and_skips_partials(config) -> None:
    run_transform(config, discover_transforms()[AssetClass.STYLES_SOURCE], Mode.DEV)
    css_dir = config.root / "build/assets/css"
    assert "color: red" in (css_dir / "main.css").read_text()
    assert (css_dir / "main.css.map").exists()
    assert not (css_dir / "_vars.css").exists()


def test_sass_syntax_error_names_the_file(config) -> None:
    bad = write(config.root, "src/scss/broken.scss", ".a { color: red; \n")
    with pytest.raises(TransformFailure) as exc:
        run_transform(config, discover_transforms()[AssetClass.STYLES_SOURCE], Mode.DEV)
    assert exc.value.asset_class == "styles-source"
    assert exc.value.path == bad


def test_vendor_scripts_are_concatenated_in_order(config) -> None:
    run_transform(config, discover_transforms()[AssetClass.SCRIPTS_VENDOR], Mode.DEV)
    assert (config.root / "build/assets/js/plugins.js").read_text() == "var a = 1;\nvar b = 2;"


def test_release_scripts_are_minified(config) -> None:
    run_transform(config, discover_transforms()[AssetClass.SCRIPTS], Mode.RELEASE)
    out = (config.root / "dist/assets/js/app.js").read_text()
    assert "// app" not in out
    assert "function greet(name)" in out


def test_images_keep_structure(config) -> None:
    run_transform(config, discover_transforms()[AssetClass.IMAGES], Mode.DEV)
    images = config.root / "build/assets/images"
    assert (images / "logo.png").stat().st_size <= (config.root / "src/images/logo.png").stat().st_size
    assert (images / "icons/dot.svg").read_text().startswith("<svg")


def test_corrupt_image_is_a_transform_failure(config) -> None:
    write(config.root, "src/images/bad.png", b"not a png")
    with pytest.raises(TransformFailure, match="bad.png"):
        run_transform(config, discover_transforms()[AssetClass.IMAGES], Mode.DEV)


def test_missing_sources_only_warn(tmp_path: Path, caplog) -> None:
    from assetpipe.config import default_config

    cfg = default_config(tmp_path)
    run_transform(cfg, discover_transforms()[AssetClass.SERVER_SCRIPTS], Mode.DEV)
    assert (tmp_path / "build/assets/php").is_dir()
    assert "no files match src/php/**/*.php" in caplog.text


def test_purge_keeps_used_selectors_only() -> None:
    css = """
    .used { color: red; }
    .unused { color: blue; }
    .used, .gone { margin: 0; }
    a:hover { color: green; }
    @media (max-width: 600px) { .unused { display: none; } .used { display: block; } }
    @media print { .gone { display: none; } }
    @font-face { font-family: X; src: url(x.woff); }
    .veno-box { top: 0; }
    """
    words = content_words(['<a class="used" href="#">x</a>'])
    out = purge_css(css, words, safelist=[r"^veno"])
    assert ".unused" not in out and ".gone" not in out
    assert ".used{color:red}" in out
    assert ".used{margin:0}" in out
    assert "a:hover{color:green}" in out
    assert "@media" in out and "max-width" in out
    assert ".used{display:block}" in out
    assert "print" not in out
    assert "@font-face" in out
    assert ".veno-box" in out
    assert "\n" not in out


def test_undecodable_script_names_the_file(config) -> None:
    write(config.root, "src/js/legacy.js", "var s = 'caf\xe9';".encode("latin-1"))
    with pytest.raises(TransformFailure) as exc:
        run_transform(config, discover_transforms()[AssetClass.SCRIPTS], Mode.DEV)
    assert Path(exc.value.path).name == "legacy.js"
    assert "legacy.js" in str(exc.value)
    assert "UnicodeDecodeError" in str(exc.value)


def test_undecodable_page_names_the_file(config) -> None:
    write(config.root, "src/html/old.html", "<p>caf\xe9</p>".encode("latin-1"))
    with pytest.raises(TransformFailure) as exc:
        run_transform(config, discover_transforms()[AssetClass.MARKUP], Mode.DEV)
    assert Path(exc.value.path).name == "old.html"
    assert "old.html" in str(exc.value)
