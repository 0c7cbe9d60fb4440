"""Tests for Settings configuration model."""

import pytest
from pydantic import ValidationError

from agentdesk.config import Settings


class TestDefaults:
    def test_memory_retention(self):
        s = Settings(_env_file=None)
        assert s.chat_memory_limit == 50
        assert s.chat_memory_ttl_seconds == 7 * 24 * 60 * 60

    def test_retrieval_defaults(self):
        s = Settings(_env_file=None)
        assert s.top_k_results == 5
        assert s.chunk_size == 1000
        assert s.chunk_overlap == 200
        assert s.corpus_max_age_hours == 24


class TestValidation:
    @pytest.mark.parametrize("field, value", [
        ("environment", "qa"),
        ("llm_provider", "anthropic"),
        ("memory_backend", "redis"),
        ("vector_store_backend", "faiss"),
        ("corpus_refresh_mode", "never"),
    ])
    def test_rejects_unknown_values(self, field, value):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: value})
