from __future__ import annotations

from pathlib import Path

import pytest

from ergoquipt_reports.config import load_settings

ENV_KEYS = ("ERGOQUIPT_API_URL", "ERGOQUIPT_TIMEOUT_S", "ERGOQUIPT_TZ_OFFSET")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    # keep a developer's local .env out of the picture
    monkeypatch.chdir(tmp_path)
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_config_loads_defaults() -> None:
    settings = load_settings(config_path=None)

    assert settings.default_timezone_offset == 8
    assert settings.api.timeout_s == 30.0
    assert settings.api.page_limit == 50
    assert settings.paths.downloads_dir == Path("downloads")


def test_env_overrides_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ERGOQUIPT_API_URL", "https://console.example")
    monkeypatch.setenv("ERGOQUIPT_TZ_OFFSET", "9")
    monkeypatch.setenv("ERGOQUIPT_TIMEOUT_S", "12.5")

    settings = load_settings(config_path=None)

    assert settings.api.base_url == "https://console.example"
    assert settings.default_timezone_offset == 9
    assert settings.api.timeout_s == 12.5


def test_yaml_overrides_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("ERGOQUIPT_TZ_OFFSET", "9")
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        "default_timezone_offset: 7\napi:\n  page_limit: 20\npaths:\n  downloads_dir: 'out'\n",
        encoding="utf-8",
    )

    settings = load_settings(config_path=cfg)

    assert settings.default_timezone_offset == 7
    assert settings.api.page_limit == 20
    # deep merge keeps sibling defaults
    assert settings.api.timeout_s == 30.0
    assert settings.paths.downloads_dir.name == "out"


def test_unknown_timezone_offset_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ERGOQUIPT_TZ_OFFSET", "5")

    with pytest.raises(ValueError, match="Invalid configuration"):
        load_settings(config_path=None)


def test_missing_yaml_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_settings(config_path=tmp_path / "nope.yaml")


def test_non_mapping_yaml_raises(tmp_path: Path) -> None:
    cfg = tmp_path / "config.yaml"
    cfg.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_settings(config_path=cfg)


def test_cli_importable() -> None:
    import ergoquipt_reports.cli  # noqa: F401
