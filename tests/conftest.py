import pytest

from utils import ConfigManager


@pytest.fixture
def config(tmp_path, monkeypatch):
    """Fresh ConfigManager with schema defaults and no user config file."""
    for name in ('OPENROUTER_API_KEY', 'OPENAI_API_KEY', 'OPENROUTER_MODEL', 'OPENAI_MODEL'):
        monkeypatch.delenv(name, raising=False)
    ConfigManager._instance = None
    ConfigManager.initialize(config_path=str(tmp_path / 'config.yaml'))
    ConfigManager.set_config_value(False, 'misc', 'print_to_terminal')
    yield ConfigManager
    ConfigManager._instance = None
