import pytest

from utils import ConfigManager, StreamSanitizer, sanitize_text_for_output


def test_defaults_loaded_from_schema(config):
    assert config.get_config_value('llm', 'provider') == 'openrouter'
    assert config.get_config_value('ui', 'theme') == 'dark'
    assert config.get_config_value('markdown', 'max_depth') == 32
    assert config.get_config_section('markdown', 'colors')['code_color'] == '#FFD700'
    assert config.get_config_value('missing', 'key') is None
    assert config.get_config_section('missing') == {}


def test_user_config_is_merged(tmp_path):
    path = tmp_path / 'config.yaml'
    path.write_text('ui:\n  theme: light\nmarkdown:\n  colors:\n    title_color: "#000000"\n', encoding='utf-8')
    ConfigManager._instance = None
    try:
        ConfigManager.initialize(config_path=str(path))
        assert ConfigManager.get_config_value('ui', 'theme') == 'light'
        assert ConfigManager.get_config_value('ui', 'width') == 640
        assert ConfigManager.get_config_value('markdown', 'colors', 'title_color') == '#000000'
        assert ConfigManager.get_config_value('markdown', 'colors', 'code_color') == '#FFD700'
    finally:
        ConfigManager._instance = None


def test_invalid_user_config_falls_back_to_defaults(tmp_path, capsys):
    path = tmp_path / 'config.yaml'
    path.write_text('ui: [unclosed\n', encoding='utf-8')
    ConfigManager._instance = None
    try:
        ConfigManager.initialize(config_path=str(path))
        assert ConfigManager.get_config_value('ui', 'theme') == 'dark'
        assert 'Error in configuration file' in capsys.readouterr().out
    finally:
        ConfigManager._instance = None


def test_saved_config_is_loaded_on_next_start(config, tmp_path):
    config.set_config_value('light', 'ui', 'theme')
    config.save_config()
    ConfigManager._instance = None
    ConfigManager.initialize(config_path=str(tmp_path / 'config.yaml'))
    assert ConfigManager.get_config_value('ui', 'theme') == 'light'
    assert ConfigManager.get_config_value('llm', 'provider') == 'openrouter'


def test_set_config_value_creates_sections(config):
    config.set_config_value('x', 'new', 'nested', 'key')
    assert config.get_config_section('new', 'nested') == {'key': 'x'}


def test_uninitialized_access_raises():
    ConfigManager._instance = None
    with pytest.raises(RuntimeError):
        ConfigManager.get_config_value('llm', 'provider')


def test_console_print_respects_setting(config, capsys):
    config.console_print('hidden')
    config.set_config_value(True, 'misc', 'print_to_terminal')
    config.console_print('shown')
    assert capsys.readouterr().out == 'shown\n'


def test_sanitize_text_for_output():
    assert sanitize_text_for_output(None) == ''
    assert sanitize_text_for_output('a\u00a0b\u202fc') == 'a b c'
    assert sanitize_text_for_output('e\u0301') == '\u00e9'
    assert sanitize_text_for_output('Itâ€™s') == 'It’s'
    assert sanitize_text_for_output('**plain** `text`') == '**plain** `text`'


def test_stream_sanitizer_joins_combining_mark_split_across_chunks():
    sanitizer = StreamSanitizer()
    assert sanitizer.feed('cafe') == 'caf'
    assert sanitizer.feed('\u0301 ok') == '\u00e9 o'
    assert sanitizer.flush() == 'k'
    assert sanitizer.flush() == ''


@pytest.mark.parametrize('text', ['Ame\u0301lie\u00a0ok', 'n\u0303a\u0308\u0301', '**x**'])
def test_stream_sanitizer_output_does_not_depend_on_chunking(text):
    expected = sanitize_text_for_output(text)
    for i in range(len(text) + 1):
        sanitizer = StreamSanitizer()
        out = sanitizer.feed(text[:i]) + sanitizer.feed(text[i:]) + sanitizer.flush()
        assert out == expected, f'split at {i}'
