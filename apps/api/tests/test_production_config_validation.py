"""
Production startup hard-fail validation tests.

Verifies that invalid production config causes startup failure,
and that valid prod / non-prod configs work.
"""

from __future__ import annotations

import pytest

from core.config import validate_production_config

GOOD = dict(
    environment="production",
    debug=False,
    cors_origins="https://cc.example.com",
    postgres_password="secure-password-12chars",
    secret_key="k" * 40,
    session_backend="redis",
)


def _with(**overrides):
    return {**GOOD, **overrides}


class TestProductionConfigValidation:
    """validate_production_config raises for bad prod config."""

    def test_valid_production_config_passes(self):
        validate_production_config(**GOOD)

    def test_production_debug_true_fails(self):
        with pytest.raises(ValueError, match="DEBUG must be False"):
            validate_production_config(**_with(debug=True))

    @pytest.mark.parametrize("origins", ["", None, "   "])
    def test_production_cors_missing_fails(self, origins):
        with pytest.raises(ValueError, match="CORS_ORIGINS"):
            validate_production_config(**_with(cors_origins=origins))

    @pytest.mark.parametrize("password", ["postgres", "short", None])
    def test_production_weak_postgres_password_fails(self, password):
        with pytest.raises(ValueError, match="POSTGRES_PASSWORD"):
            validate_production_config(**_with(postgres_password=password))

    def test_database_url_skips_password_check(self):
        validate_production_config(**_with(postgres_password="postgres", database_url="postgresql://u:p@db/cc"))

    def test_short_secret_key_fails(self):
        with pytest.raises(ValueError, match="SECRET_KEY"):
            validate_production_config(**_with(secret_key="too-short"))

    def test_memory_sessions_fail(self):
        with pytest.raises(ValueError, match="SESSION_BACKEND"):
            validate_production_config(**_with(session_backend="memory"))


class TestNonProduction:
    @pytest.mark.parametrize("env", ["development", "test", "staging"])
    def test_anything_goes_outside_production(self, env):
        validate_production_config(
            environment=env,
            debug=True,
            cors_origins=None,
            postgres_password="postgres",
            secret_key="x",
            session_backend="memory",
        )
