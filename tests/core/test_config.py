"""SessionConfig + load_session_config 单元测试

验证环境变量映射、默认值与非法值回退。
"""

from pathlib import Path

import pytest
from batchkeeper.core.config import (
    VERIFICATION_TIMEOUT_S,
    SessionConfig,
    get_journal_path,
    get_output_dir,
    load_session_config,
)
from pydantic import ValidationError

_ENV_KEYS = (
    "BATCHKEEPER_DATA_DIR",
    "BATCHKEEPER_OUTPUT_DIR",
    "BATCHKEEPER_JOURNAL_PATH",
    "BATCHKEEPER_JOURNAL_ENABLED",
    "BATCHKEEPER_VERIFICATION_TIMEOUT_S",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestPaths:
    """目录与库路径"""

    def test_defaults_under_data_dir(self):
        assert get_output_dir() == Path("data") / "batches"
        assert get_journal_path() == str(Path("data") / "sqlite" / "journal.db")

    def test_data_dir_override(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("BATCHKEEPER_DATA_DIR", str(tmp_path))

        assert get_output_dir() == tmp_path / "batches"
        assert get_journal_path() == str(tmp_path / "sqlite" / "journal.db")

    def test_explicit_overrides(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("BATCHKEEPER_OUTPUT_DIR", str(tmp_path / "out"))
        monkeypatch.setenv("BATCHKEEPER_JOURNAL_PATH", str(tmp_path / "events.db"))

        assert get_output_dir() == tmp_path / "out"
        assert get_journal_path() == str(tmp_path / "events.db")


class TestSessionConfig:
    """SessionConfig 数据模型"""

    def test_default_values(self):
        config = SessionConfig()
        assert config.journal_enabled is True
        assert config.verification_timeout_s == VERIFICATION_TIMEOUT_S

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            SessionConfig(verification_timeout_s=0)


class TestLoadSessionConfig:
    """load_session_config() 环境变量映射"""

    def test_default_when_no_env(self):
        config = load_session_config()
        assert config.journal_enabled is True
        assert config.verification_timeout_s == 5.0

    @pytest.mark.parametrize("value", ["false", "0", "OFF", "no"])
    def test_journal_disabled(self, monkeypatch, value):
        monkeypatch.setenv("BATCHKEEPER_JOURNAL_ENABLED", value)
        assert load_session_config().journal_enabled is False

    def test_journal_enabled_explicitly(self, monkeypatch):
        monkeypatch.setenv("BATCHKEEPER_JOURNAL_ENABLED", "true")
        assert load_session_config().journal_enabled is True

    def test_timeout_from_env(self, monkeypatch):
        monkeypatch.setenv("BATCHKEEPER_VERIFICATION_TIMEOUT_S", "2.5")
        assert load_session_config().verification_timeout_s == 2.5

    @pytest.mark.parametrize("value", ["abc", "-1", "0"])
    def test_invalid_timeout_falls_back(self, monkeypatch, value):
        """非法值回退默认，不阻塞启动"""
        monkeypatch.setenv("BATCHKEEPER_VERIFICATION_TIMEOUT_S", value)
        assert load_session_config().verification_timeout_s == VERIFICATION_TIMEOUT_S

    def test_output_dir_from_env(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("BATCHKEEPER_OUTPUT_DIR", str(tmp_path))
        assert load_session_config().output_dir == tmp_path
