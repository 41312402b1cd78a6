"""Config 单元测试"""

from __future__ import annotations

import pytest

import qpm.core.config as cfgmod
from qpm.core.config import Config
from qpm.core.exceptions import ConfigError


class TestConfig:
    def test_defaults(self) -> None:
        cfg = Config()
        assert cfg.package_file == "qpm.json"
        assert cfg.signature_file == "qpm.asc"
        assert cfg.vendor_dir == "vendor"
        assert cfg.keyring_env == "GNUPGHOME"

    def test_from_missing_file(self, tmp_path, monkeypatch) -> None:
        monkeypatch.delenv("SERVER", raising=False)
        cfg = Config.from_file(str(tmp_path / "none.yml"))
        assert cfg.registry_url == Config().registry_url

    def test_from_file_with_extra(self, tmp_path, monkeypatch) -> None:
        monkeypatch.delenv("SERVER", raising=False)
        p = tmp_path / "qpm.yml"
        p.write_text("vendor_dir: deps\ncommand_timeout: 30\nmirror: internal\n", encoding="utf-8")
        cfg = Config.from_file(str(p))
        assert cfg.vendor_dir == "deps"
        assert cfg.command_timeout == 30
        assert cfg.extra == {"mirror": "internal"}

    def test_server_env_override(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("SERVER", "https://staging.example.com")
        cfg = Config.from_file(str(tmp_path / "none.yml"))
        assert cfg.registry_url == "https://staging.example.com"

    def test_keyring_dir(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("GNUPGHOME", str(tmp_path))
        assert Config().keyring_dir() == str(tmp_path)

    def test_keyring_dir_missing_env(self, monkeypatch) -> None:
        monkeypatch.delenv("GNUPGHOME", raising=False)
        with pytest.raises(ConfigError, match="GNUPGHOME"):
            Config().keyring_dir()

    def test_init_config_sets_global(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr(cfgmod, "_current", None)
        p = tmp_path / "qpm.yml"
        p.write_text("vendor_dir: third_party\n", encoding="utf-8")
        cfgmod.init_config(str(p))
        assert cfgmod.get_config().vendor_dir == "third_party"

    def test_malformed_yaml(self, tmp_path) -> None:
        p = tmp_path / "qpm.yml"
        p.write_text("vendor_dir: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="格式错误"):
            Config.from_file(str(p))

    def test_non_mapping_yaml(self, tmp_path) -> None:
        p = tmp_path / "qpm.yml"
        p.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="映射"):
            Config.from_file(str(p))

    def test_empty_yaml(self, tmp_path, monkeypatch) -> None:
        monkeypatch.delenv("SERVER", raising=False)
        p = tmp_path / "qpm.yml"
        p.write_text("", encoding="utf-8")
        assert Config.from_file(str(p)).vendor_dir == "vendor"
