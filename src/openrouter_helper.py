import os
import threading
from typing import Optional, Callable

# OpenRouter chat helper using direct HTTP requests.
# Reads API key from config (openrouter.api_key) or OPENROUTER_API_KEY.

from dotenv import load_dotenv
from utils import ConfigManager
from chat_completions import build_messages, stream_chat_completion

OPENROUTER_URL = 'https://openrouter.ai/api/v1/chat/completions'
DEFAULT_MODEL = 'google/gemini-2.0-flash-exp:free'
DEFAULT_SYSTEM_PROMPT = 'You are a concise assistant answering quick questions from a launcher. Use short markdown.'


def get_openrouter_api_key() -> str:
    """Return the configured OpenRouter key, falling back to the environment."""
    load_dotenv()
    configured = (ConfigManager.get_config_value('openrouter', 'api_key') or '').strip()
    return configured or (os.getenv('OPENROUTER_API_KEY') or '').strip()


def get_openrouter_model(model: Optional[str] = None) -> str:
    # Explicit param, then config selection, then env, then default
    configured_model = ConfigManager.get_config_value('openrouter', 'model')
    return model or configured_model or os.getenv('OPENROUTER_MODEL') or DEFAULT_MODEL


def stream_with_openrouter(
    query: str,
    model: Optional[str] = None,
    on_delta: Optional[Callable[[str], None]] = None,
    cancel_event: Optional[threading.Event] = None,
) -> str:
    """
    Stream a response from OpenRouter and invoke on_delta per chunk.

    Returns the full concatenated text (may be empty on failure).
    """
    api_key = get_openrouter_api_key()
    if not api_key:
        ConfigManager.console_print('OpenRouter: missing API key; skipping query (stream).')
        return ''

    system_prompt = ConfigManager.get_config_value('openrouter', 'system_prompt') or DEFAULT_SYSTEM_PROMPT
    messages = build_messages(query, system_prompt)
    timeout = ConfigManager.get_config_value('openrouter', 'timeout') or 90

    return stream_chat_completion(
        url=OPENROUTER_URL,
        api_key=api_key,
        model=get_openrouter_model(model),
        messages=messages,
        on_delta=on_delta,
        cancel_event=cancel_event,
        timeout=timeout,
        extra_headers={'X-Title': 'QuickAi'},
        label='OpenRouter',
    )
