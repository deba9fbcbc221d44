"""
Unit tests for the production configuration checks
"""

import pytest

from utils.config_validator import (validate_flask_config, validate_database_config, validate_email_config,
                                    check_production_readiness)


@pytest.fixture
def production_env(monkeypatch, tmp_path):
    monkeypatch.setenv('SESSION_SECRET', 'x' * 40)
    monkeypatch.setenv('DATABASE_URL', 'postgresql://ops@db/travel_ops')
    monkeypatch.setenv('EMAIL_FUNCTION_URL', 'https://mail.travelops.io/send')
    monkeypatch.setenv('EMAIL_FUNCTION_TOKEN', 'token')
    monkeypatch.setenv('APP_URL', 'https://ops.travelops.io')
    monkeypatch.setenv('STORAGE_ROOT', str(tmp_path / 'storage'))
    monkeypatch.delenv('DEBUG', raising=False)
    monkeypatch.delenv('PDF_FONT_PATH', raising=False)


def test_ready(production_env):
    result = check_production_readiness()

    assert result['production_ready'] is True
    assert result['email_configured'] is True
    assert any('PDF_FONT_PATH' in issue for issue in result['issues'])


def test_short_session_secret(production_env, monkeypatch):
    monkeypatch.setenv('SESSION_SECRET', 'short')
    valid, issues = validate_flask_config()
    assert valid is False
    assert 'at least 32 characters' in issues[0]


def test_sqlite_is_flagged(production_env, monkeypatch):
    monkeypatch.setenv('DATABASE_URL', 'sqlite:///travel_ops.db')
    assert validate_database_config()[0] is False


def test_email_url_must_be_http(production_env, monkeypatch):
    monkeypatch.setenv('EMAIL_FUNCTION_URL', 'mail.travelops.io')
    valid, issues = validate_email_config()
    assert valid is False
    assert issues == ['EMAIL_FUNCTION_URL must be an http(s) URL']


def test_debug_blocks_production(production_env, monkeypatch):
    monkeypatch.setenv('DEBUG', 'true')
    result = check_production_readiness()

    assert result['production_ready'] is False
    assert 'Disable DEBUG mode for production deployment' in result['recommendations']
