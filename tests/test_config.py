"""
Environment configuration tests
"""

import pytest

from bdaybot import config

MANAGED_VARS = [
    'CALDAV_SERVER_URL', 'CALDAV_USERNAME', 'CALDAV_PASSWORD',
    'CARDAV_SERVER_URL', 'CARDAV_USERNAME', 'CARDAV_PASSWORD',
    'GOOGLE_CREDENTIALS_FILE', 'GOOGLE_SPREADSHEET_ID',
    'STATE_BACKEND', 'STATE_WEBDAV_URL',
    'NOTIFY_CHANNELS', 'TELEGRAM_BOT_TOKEN', 'TELEGRAM_CHAT_IDS',
    'SEND_CONCURRENCY', 'MISSED_DAYS_LIMIT', 'DRY_RUN',
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in MANAGED_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestConfig:
    """Reading configuration from the environment"""

    @pytest.mark.unit
    def test_defaults(self):
        assert config.get_channel_config()['channels'] == ['console']
        assert config.get_channel_config()['send_concurrency'] == 4
        assert config.get_run_config() == {'dry_run': False, 'missed_days_limit': 0, 'sync_on_run': True}
        assert config.get_storage_config()['backend'] == 'file'

    @pytest.mark.unit
    def test_lists_and_numbers(self, clean_env):
        clean_env.setenv('NOTIFY_CHANNELS', 'Telegram, console,')
        clean_env.setenv('TELEGRAM_CHAT_IDS', '-100, -200')
        clean_env.setenv('MISSED_DAYS_LIMIT', '3')
        clean_env.setenv('DRY_RUN', 'TRUE')
        channel_config = config.get_channel_config()
        assert channel_config['channels'] == ['telegram', 'console']
        assert channel_config['telegram_chat_ids'] == ['-100', '-200']
        assert config.get_run_config()['missed_days_limit'] == 3
        assert config.get_run_config()['dry_run'] is True

    @pytest.mark.unit
    def test_invalid_number_uses_default(self, clean_env):
        clean_env.setenv('SEND_CONCURRENCY', 'many')
        assert config.get_channel_config()['send_concurrency'] == 4

    @pytest.mark.unit
    def test_validate_requires_calendar(self):
        assert config.validate_environment() is False

    @pytest.mark.unit
    def test_validate_channel_credentials(self, clean_env):
        """A configured channel needs its credentials"""
        for name in ('CALDAV_SERVER_URL', 'CALDAV_USERNAME', 'CALDAV_PASSWORD'):
            clean_env.setenv(name, 'x')
        assert config.validate_environment() is True

        clean_env.setenv('NOTIFY_CHANNELS', 'telegram')
        assert config.validate_environment() is False
        clean_env.setenv('TELEGRAM_BOT_TOKEN', 'token')
        clean_env.setenv('TELEGRAM_CHAT_IDS', '-100')
        assert config.validate_environment() is True
