from __future__ import annotations

import io
from pathlib import Path

import pytest
from PIL import Image

from assetpipe.config import default_config


def write(root: Path, rel: str, content: str | bytes) -> Path:
    p = root / rel
    p.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        p.write_bytes(content)
    else:
        p.write_text(content, encoding="utf-8")
    return p


def png_bytes(color=(200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (16, 16), color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A small site using the default src/ layout."""
    write(tmp_path, "src/html/index.html", "<html><body>\n@@include('partials/header.html', {\"title\": \"Home\"})\n<main class=\"content\">hi</main>\n</body></html>\n")
    write(tmp_path, "src/html/partials/header.html", "<header class=\"site-header\">@@title</header>")
    write(tmp_path, "src/css/vendor.css", ".vendor{margin:0}")
    write(tmp_path, "src/scss/main.scss", "$c: red;\n.content { color: $c; }\n.unused-thing { color: blue; }\n")
    write(tmp_path, "src/scss/_vars.scss", "$x: 1px;\n")
    write(tmp_path, "src/js/app.js", "// app\nfunction greet ( name ) {\n  return 'hi ' + name;\n}\n")
    write(tmp_path, "src/js/plugins/a.js", "var a = 1;")
    write(tmp_path, "src/js/plugins/b.js", "var b = 2;")
    write(tmp_path, "src/images/logo.png", png_bytes())
    write(tmp_path, "src/images/icons/dot.svg", "<svg xmlns=\"http://www.w3.org/2000/svg\"></svg>")
    write(tmp_path, "src/php/mail.php", "<?php echo 'ok'; ?>")
    return tmp_path


@pytest.fixture
def config(project: Path):
    return default_config(project)
