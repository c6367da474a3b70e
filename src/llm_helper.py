import threading
from typing import Optional, Callable

from utils import ConfigManager
from openrouter_helper import stream_with_openrouter, get_openrouter_api_key
from openai_helper import stream_with_openai, get_openai_api_key

PROVIDERS = ('openrouter', 'openai')


def get_configured_provider() -> str:
    provider = (ConfigManager.get_config_value('llm', 'provider') or 'openrouter').strip().lower()
    return provider if provider in PROVIDERS else 'openrouter'


def get_api_key(provider: str) -> str:
    if provider == 'openai':
        return get_openai_api_key()
    return get_openrouter_api_key()


def select_provider() -> Optional[str]:
    """
    Pick the provider to send the query to.

    The configured provider wins when it has an API key. Otherwise, if
    llm.fallback_to_other_provider is enabled, the other provider is used
    when its key is available. Returns None when no usable key exists.
    """
    provider = get_configured_provider()
    if get_api_key(provider):
        return provider
    other = 'openai' if provider == 'openrouter' else 'openrouter'
    fallback_enabled = ConfigManager.get_config_value('llm', 'fallback_to_other_provider')
    if fallback_enabled is None or fallback_enabled:
        if get_api_key(other):
            ConfigManager.console_print(f'LLM: no API key for {provider}; falling back to {other}.')
            return other
    ConfigManager.console_print(f'LLM: no API key available for {provider}.')
    return None


def stream_with_llm(
    query: str,
    model: Optional[str] = None,
    on_delta: Optional[Callable[[str], None]] = None,
    cancel_event: Optional[threading.Event] = None,
) -> str:
    """
    Stream with the selected provider and forward deltas.
    """
    provider = select_provider()
    if provider is None:
        return ''
    if provider == 'openai':
        return stream_with_openai(query, model=model, on_delta=on_delta, cancel_event=cancel_event)
    return stream_with_openrouter(query, model=model, on_delta=on_delta, cancel_event=cancel_event)
