import pytest
from pydantic import ValidationError

from deliverypay.utils.config_loader import DEFAULT_BASE_URL, ERPSettings, SettingsStore, default_settings_path


def test_missing_file_yields_defaults(tmp_path):
    settings = SettingsStore(tmp_path / "absent.yml").load()

    assert settings.base_url == DEFAULT_BASE_URL
    assert not settings.has_credentials
    assert settings.push_order_status is False


def test_save_then_load(tmp_path):
    store = SettingsStore(tmp_path / "nested" / "settings.yml")
    store.save(ERPSettings(api_key="k", api_secret="s", use_proxy=True, proxy_url="https://proxy.test"))

    loaded = store.load()
    assert loaded.has_credentials
    assert loaded.use_proxy is True
    assert loaded.proxy_url == "https://proxy.test"


def test_empty_file_yields_defaults(tmp_path):
    path = tmp_path / "settings.yml"
    path.write_text("", encoding="utf-8")
    assert SettingsStore(path).load() == ERPSettings()


def test_invalid_file_raises(tmp_path):
    path = tmp_path / "settings.yml"
    path.write_text("use_proxy: [not, a, bool]\n", encoding="utf-8")

    with pytest.raises(ValidationError):
        SettingsStore(path).load()


def test_settings_path_from_environment(tmp_path, monkeypatch):
    target = tmp_path / "custom.yml"
    monkeypatch.setenv("DELIVERYPAY_SETTINGS_PATH", str(target))

    assert default_settings_path() == target
    assert SettingsStore().path == target
