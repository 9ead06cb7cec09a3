"""
Tests for settings loading from the environment.
"""
import pytest


ENV_VARS = [
    'GEARSHOP_URL', 'GEARSHOP_HOSTNAME', 'PRODUCTS_TABLE_NAME', 'DATABASE_URL',
    'DATABASE_FILE', 'ENVIRONMENT', 'SKIP_EXTERNAL', 'REQUEST_TIMEOUT',
    'NOTIFY_WEBHOOK_URL', 'REFERRAL_CODE', 'LOG_LEVEL',
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Unset every setting and point .env loading at an empty file."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    env_file = tmp_path / '.env'
    env_file.write_text('')
    return env_file


class TestLoadSettings:
    """Building Settings from environment variables."""

    def test_defaults(self, clean_env):
        """Nothing set gives the defaults."""
        from gearshop.config import load_settings, MAX_PAYLOAD_BYTES

        settings = load_settings(clean_env)

        assert settings.gearshop_url == 'https://rivian.com/gear-shop'
        assert settings.gearshop_hostname == 'https://rivian.com'
        assert settings.table_name == 'gearshop_products'
        assert settings.database_url is None
        assert settings.local is False
        assert settings.request_timeout == 30.0
        assert settings.webhook_url is None
        assert settings.max_payload_bytes == MAX_PAYLOAD_BYTES

    def test_environment_values(self, clean_env, monkeypatch):
        """Environment variables populate every field."""
        from gearshop.config import load_settings

        monkeypatch.setenv('GEARSHOP_URL', 'https://shop.example.com/listing')
        monkeypatch.setenv('PRODUCTS_TABLE_NAME', 'products_dev')
        monkeypatch.setenv('DATABASE_URL', 'postgresql://user@db/gear')
        monkeypatch.setenv('REQUEST_TIMEOUT', '12.5')
        monkeypatch.setenv('NOTIFY_WEBHOOK_URL', 'https://hooks.example.com/x')
        monkeypatch.setenv('REFERRAL_CODE', 'ABC123')
        monkeypatch.setenv('LOG_LEVEL', 'debug')

        settings = load_settings(clean_env)

        assert settings.gearshop_url == 'https://shop.example.com/listing'
        assert settings.table_name == 'products_dev'
        assert settings.database_url == 'postgresql://user@db/gear'
        assert settings.request_timeout == 12.5
        assert settings.webhook_url == 'https://hooks.example.com/x'
        assert settings.referral_code == 'ABC123'
        assert settings.log_level == 'DEBUG'

    def test_dotenv_file_loaded(self, clean_env):
        """Values in the .env file are picked up."""
        import os
        from gearshop.config import load_settings

        clean_env.write_text('PRODUCTS_TABLE_NAME=from_dotenv\n')
        settings = load_settings(clean_env)
        # load_dotenv writes into os.environ
        os.environ.pop('PRODUCTS_TABLE_NAME', None)

        assert settings.table_name == 'from_dotenv'

    def test_overrides_win(self, clean_env, monkeypatch):
        """Explicit overrides beat the environment; None is ignored."""
        from gearshop.config import load_settings

        monkeypatch.setenv('GEARSHOP_URL', 'https://env.example.com')
        settings = load_settings(clean_env, gearshop_url='https://cli.example.com', webhook_url=None)

        assert settings.gearshop_url == 'https://cli.example.com'

    @pytest.mark.parametrize("name,value", [
        ('ENVIRONMENT', 'local'),
        ('ENVIRONMENT', 'LOCAL'),
        ('SKIP_EXTERNAL', '1'),
        ('SKIP_EXTERNAL', 'true'),
    ])
    def test_local_mode(self, clean_env, monkeypatch, name, value):
        """Local mode from ENVIRONMENT or SKIP_EXTERNAL."""
        from gearshop.config import load_settings

        monkeypatch.setenv(name, value)
        settings = load_settings(clean_env)

        assert settings.local is True
        assert settings.skip_external is True

    def test_not_local(self):
        """Other values leave local mode off."""
        from gearshop.config import is_local_environment

        assert is_local_environment({'ENVIRONMENT': 'production'}) is False
        assert is_local_environment({'SKIP_EXTERNAL': '0'}) is False
        assert is_local_environment({}) is False

    def test_bad_timeout(self, clean_env, monkeypatch):
        """Non-numeric timeout is a configuration error."""
        from gearshop.config import load_settings

        monkeypatch.setenv('REQUEST_TIMEOUT', 'soon')
        with pytest.raises(ValueError):
            load_settings(clean_env)


class TestSettingsValidation:
    """Settings reject malformed values."""

    @pytest.mark.parametrize("table", ['products; DROP TABLE x', '1products', '', 'a-b'])
    def test_invalid_table_name(self, table):
        """Table names must be plain identifiers."""
        from gearshop.config import Settings

        with pytest.raises(ValueError):
            Settings(table_name=table)

    @pytest.mark.parametrize("timeout", [0, -1.0])
    def test_non_positive_timeout(self, timeout):
        """Timeouts must be positive."""
        from gearshop.config import Settings

        with pytest.raises(ValueError):
            Settings(request_timeout=timeout)
