"""
Tests for ConciergeConfig.

Tests cover:
- Defaults and keyword overrides
- Threshold ordering validation
- Environment variables
- TOML load/save round trip
"""

import pytest

from concierge_kb.config import ConciergeConfig


class TestDefaults:
    def test_thresholds(self):
        config = ConciergeConfig()
        assert config.high_confidence == 0.85
        assert config.low_confidence == 0.70

    def test_override(self):
        config = ConciergeConfig(high_confidence=0.9, retrieval_top_k=8)
        assert config.high_confidence == 0.9
        assert config.retrieval_top_k == 8

    def test_unknown_option_raises(self):
        with pytest.raises(ValueError, match="Unknown configuration option"):
            ConciergeConfig(not_a_setting=1)

    def test_low_above_high_raises(self):
        with pytest.raises(ValueError, match="must not exceed"):
            ConciergeConfig(high_confidence=0.6, low_confidence=0.7)

    def test_equal_thresholds_allowed(self):
        config = ConciergeConfig(high_confidence=0.8, low_confidence=0.8)
        assert config.low_confidence == config.high_confidence


class TestEnvironment:
    def test_env_overrides_defaults(self, monkeypatch):
        monkeypatch.setenv("CONCIERGE_HIGH_CONFIDENCE", "0.92")
        monkeypatch.setenv("CONCIERGE_EMBEDDING_PROVIDER", "hash")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

        config = ConciergeConfig()
        assert config.high_confidence == 0.92
        assert config.embedding_provider == "hash"
        assert config.openai_api_key == "sk-test"

    def test_kwargs_beat_env(self, monkeypatch):
        monkeypatch.setenv("CONCIERGE_LLM_MODEL", "gpt-4o")
        config = ConciergeConfig(llm_model="gpt-4o-mini")
        assert config.llm_model == "gpt-4o-mini"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("CONCIERGE_ANSWER_DEADLINE_SECONDS", "12")
        config = ConciergeConfig.from_env()
        assert config.answer_deadline_seconds == 12.0


class TestConfigFile:
    def test_from_file_flattens_sections(self, tmp_path):
        path = tmp_path / "concierge.toml"
        path.write_text(
            '[llm]\nmodel = "gpt-4o"\n\n'
            "[matching]\nhigh_confidence = 0.9\nlow_confidence = 0.75\n\n"
            '[api_keys]\nopenai = "sk-file"\n'
        )

        config = ConciergeConfig.from_file(path)
        assert config.llm_model == "gpt-4o"
        assert config.high_confidence == 0.9
        assert config.low_confidence == 0.75
        assert config.openai_api_key == "sk-file"

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            ConciergeConfig.from_file(tmp_path / "missing.toml")

    def test_round_trip(self, tmp_path):
        original = ConciergeConfig(
            high_confidence=0.88,
            retrieval_top_k=7,
            cluster_threshold=0.93,
            storage_backend="memory",
            usage_warn_threshold_usd=0.01,
            question_max_chars=500,
        )
        path = tmp_path / "out" / "concierge.toml"
        original.to_file(path)

        loaded = ConciergeConfig.from_file(path)
        assert loaded.high_confidence == 0.88
        assert loaded.retrieval_top_k == 7
        assert loaded.cluster_threshold == 0.93
        assert loaded.storage_backend == "memory"
        assert loaded.usage_warn_threshold_usd == 0.01
        assert loaded.question_max_chars == 500
        assert "sk-" not in path.read_text()

    def test_with_overrides_leaves_original(self):
        original = ConciergeConfig()
        updated = original.with_overrides(faq_top_k=5)
        assert updated.faq_top_k == 5
        assert original.faq_top_k == 3

    def test_with_overrides_unknown_raises(self):
        with pytest.raises(ValueError):
            ConciergeConfig().with_overrides(bogus=True)
