"""Tests for engine settings."""

import pytest
from pydantic import ValidationError

from config import Settings


class TestDefaults:
    def test_engine_defaults(self, settings):
        assert settings.conflict_red_flag_weight == 10
        assert settings.conflict_unresolved_weight == 5
        assert (settings.conflict_min_hops, settings.conflict_max_hops) == (1, 3)
        assert settings.conflict_path_limit == 50
        assert settings.retrieval_token_budget == 2000
        assert settings.retrieval_max_results == 10
        assert settings.retrieval_min_results == 3

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("CONFLICT_MAX_HOPS", "4")
        monkeypatch.setenv("RETRIEVAL_TOKEN_BUDGET", "500")

        settings = Settings(_env_file=None)

        assert settings.conflict_max_hops == 4
        assert settings.retrieval_token_budget == 500


class TestValidation:
    def test_database_url_uses_asyncpg(self):
        settings = Settings(_env_file=None, database_url="postgresql://u:p@db:5432/engine")

        assert settings.database_url.startswith("postgresql+asyncpg://")

    @pytest.mark.parametrize(
        "field,value",
        [
            ("conflict_path_limit", 0),
            ("retrieval_token_budget", -5),
            ("conflict_red_flag_weight", -1),
            ("store_timeout_seconds", 0),
        ],
    )
    def test_rejects_out_of_range(self, field, value):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **{field: value})

    def test_rejects_inverted_hop_window(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, conflict_min_hops=3, conflict_max_hops=2)

    def test_rejects_unsorted_recency_buckets(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, recency_buckets=[(6, 0.85), (1, 1.0)])


class TestSecrets:
    def test_repr_masks_credentials(self):
        settings = Settings(
            _env_file=None,
            database_url="postgresql://engine:hunter2@db:5432/engine",
            neo4j_password="s3cret",
        )

        text = repr(settings)

        assert "hunter2" not in text
        assert "s3cret" not in text
        assert ":***@" in text

    def test_password_accessor(self):
        settings = Settings(_env_file=None, neo4j_password="s3cret")

        assert settings.get_neo4j_password() == "s3cret"
