from dataclasses import FrozenInstanceError
from pathlib import Path

import pytest

from assetpipe.config import (
    AssetClass,
    Mode,
    default_config,
    destination_groups,
    load_config,
    resolve_config,
)
from assetpipe.errors import ConfigError

from conftest import write


def test_default_layout_is_valid(config) -> None:
    assert config.destination(AssetClass.MARKUP, Mode.DEV) == config.root / "build"
    assert config.destination(AssetClass.IMAGES, Mode.RELEASE) == config.root / "dist/assets/images"


def test_styles_and_scripts_share_bindings(config) -> None:
    groups = destination_groups(config)
    assert groups["build/assets/css"] == [AssetClass.STYLES_PRECOMPILED, AssetClass.STYLES_SOURCE]
    assert groups["build/assets/js"] == [AssetClass.SCRIPTS, AssetClass.SCRIPTS_VENDOR]


def test_overlapping_sources_are_rejected(project: Path) -> None:
    write(
        project,
        "assetpipe.yaml",
        "assets:\n  server-scripts:\n    sources: ['src/js/*.js']\n",
    )
    with pytest.raises(ConfigError, match="src/js/app.js matches both scripts and server-scripts"):
        load_config(project / "assetpipe.yaml")


def test_same_pattern_in_two_classes_rejected_without_files(tmp_path: Path) -> None:
    write(tmp_path, "assetpipe.yaml", "assets:\n  server-scripts:\n    sources: src/php/**/*.php\n  images:\n    sources: src/php/**/*.php\n")
    with pytest.raises(ConfigError, match="declared by both"):
        load_config(tmp_path / "assetpipe.yaml")


def test_clean_pattern_reaching_nested_destination_rejected(tmp_path: Path) -> None:
    write(tmp_path, "assetpipe.yaml", "assets:\n  markup:\n    clean: '*'\n")
    with pytest.raises(ConfigError, match="would remove"):
        load_config(tmp_path / "assetpipe.yaml")


def test_dev_and_release_must_not_overlap(tmp_path: Path) -> None:
    write(tmp_path, "assetpipe.yaml", "release_root: build/dist\n")
    with pytest.raises(ConfigError, match="overlap"):
        load_config(tmp_path / "assetpipe.yaml")


def test_unknown_asset_class_rejected(tmp_path: Path) -> None:
    write(tmp_path, "assetpipe.yaml", "assets:\n  fonts:\n    sources: x\n")
    with pytest.raises(ConfigError, match="unknown asset class"):
        load_config(tmp_path / "assetpipe.yaml")


def test_yaml_overrides_roots_and_fields(tmp_path: Path) -> None:
    write(
        tmp_path,
        "assetpipe.yaml",
        "dev_root: out\nserver:\n  port: 8123\nassets:\n  scripts-vendor:\n    sources: [src/js/plugins/b.js, src/js/plugins/a.js]\n",
    )
    cfg = load_config(tmp_path / "assetpipe.yaml")
    assert cfg.root == tmp_path.resolve()
    assert cfg.spec(AssetClass.MARKUP).dev_destination == "out"
    assert cfg.spec(AssetClass.SCRIPTS_VENDOR).sources == ("src/js/plugins/b.js", "src/js/plugins/a.js")
    assert cfg.spec(AssetClass.SCRIPTS_VENDOR).output == "plugins.js"
    assert cfg.server.port == 8123


def test_resolve_config_falls_back_to_defaults(tmp_path: Path) -> None:
    cfg = resolve_config(None, tmp_path)
    assert cfg.root == tmp_path.resolve()
    with pytest.raises(ConfigError, match="not found"):
        resolve_config(tmp_path / "missing.yaml")


def test_config_is_immutable(config) -> None:
    with pytest.raises(FrozenInstanceError):
        config.dev_root = "elsewhere"
    with pytest.raises(TypeError):
        config.paths[AssetClass.MARKUP] = None
    assert default_config(config.root).paths.keys() == config.paths.keys()


def test_source_root_only_relocates_default_sources(tmp_path: Path) -> None:
    write(tmp_path, "assetpipe.yaml", "source_root: assets-src\n")
    cfg = load_config(tmp_path / "assetpipe.yaml")
    assert cfg.spec(AssetClass.SCRIPTS).sources[0].startswith("assets-src/js/")
    assert not hasattr(cfg, "source_root")
    assert not hasattr(cfg, "watched")
