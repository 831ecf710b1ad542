"""Tests for configuration loading and precedence."""

import pytest

from patchwise.config import Config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("PATCHWISE_ANCHORED_THRESHOLD", "PATCHWISE_MAX_REPAIR_RETRIES",
                "PATCHWISE_EXTRA_GLOBALS", "PATCHWISE_LLM_RETRY_DELAY",
                "PATCHWISE_LLM_API_KEY", "OPENAI_API_KEY"):
        monkeypatch.delenv(key, raising=False)


class TestDefaults:
    def test_matcher_thresholds(self):
        cfg = Config()
        assert cfg.ANCHORED_THRESHOLD == 0.85
        assert cfg.RELAXED_THRESHOLD == 0.60
        assert cfg.FUZZY_TOKEN_THRESHOLD == 0.70
        assert cfg.LINE_HINT_AGREEMENT == 0.70

    def test_validator_limits(self):
        cfg = Config()
        assert cfg.TRUNCATION_MIN_CHARS == 100
        assert cfg.TRUNCATION_ORIGINAL_CHARS == 500
        assert cfg.SIZE_RATIO_MIN == 0.5
        assert cfg.SIZE_RATIO_MAX == 3.0
        assert cfg.EXTRA_GLOBALS == []

    def test_repair_and_llm(self):
        cfg = Config()
        assert cfg.MAX_REPAIR_RETRIES == 2
        assert cfg.LLM_RETRY_DELAY == 2.0
        assert cfg.LLM_API_KEY == ""


class TestPrecedence:
    def test_yaml_overrides_defaults(self):
        cfg = Config({"anchored_threshold": 0.9})
        assert cfg.ANCHORED_THRESHOLD == 0.9

    def test_env_overrides_yaml(self, monkeypatch):
        monkeypatch.setenv("PATCHWISE_ANCHORED_THRESHOLD", "0.75")
        cfg = Config({"anchored_threshold": 0.9})
        assert cfg.ANCHORED_THRESHOLD == 0.75

    def test_grouped_sections(self):
        cfg = Config({
            "matcher": {"anchored_threshold": 0.8},
            "repair": {"max_repair_retries": 5},
            "llm": {"model": "local-model"},
        })
        assert cfg.ANCHORED_THRESHOLD == 0.8
        assert cfg.MAX_REPAIR_RETRIES == 5
        assert cfg.LLM_MODEL == "local-model"

    def test_flat_key_beats_grouped_key(self):
        cfg = Config({"matcher": {"anchored_threshold": 0.8}, "anchored_threshold": 0.95})
        assert cfg.ANCHORED_THRESHOLD == 0.95

    def test_env_list_and_float_casts(self, monkeypatch):
        monkeypatch.setenv("PATCHWISE_EXTRA_GLOBALS", "dayjs, lodash")
        monkeypatch.setenv("PATCHWISE_LLM_RETRY_DELAY", "0.5")
        cfg = Config()
        assert cfg.EXTRA_GLOBALS == ["dayjs", "lodash"]
        assert cfg.LLM_RETRY_DELAY == 0.5

    def test_openai_key_fallback(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        assert Config().LLM_API_KEY == "sk-test"
        monkeypatch.setenv("PATCHWISE_LLM_API_KEY", "sk-own")
        assert Config().LLM_API_KEY == "sk-own"


class TestLoad:
    def test_explicit_path(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text("max_repair_retries: 4\n", encoding="utf-8")
        cfg = Config.load(str(path))
        assert cfg.MAX_REPAIR_RETRIES == 4

    def test_missing_explicit_path_uses_defaults(self, tmp_path):
        cfg = Config.load(str(tmp_path / "nope.yaml"))
        assert cfg.MAX_REPAIR_RETRIES == 2

    def test_cwd_discovery(self, tmp_path, monkeypatch):
        (tmp_path / ".patchwise.yaml").write_text(
            "compression:\n  compression_min_lines: 10\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        assert Config.load().COMPRESSION_MIN_LINES == 10

    def test_invalid_yaml_is_ignored(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("key: [unclosed\n", encoding="utf-8")
        cfg = Config.load(str(path))
        assert cfg.ANCHORED_THRESHOLD == 0.85
