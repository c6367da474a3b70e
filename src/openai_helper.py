import os
import threading
from typing import Optional, Callable

# OpenAI chat helper using direct HTTP requests.
# Reads API key from config (openai.api_key) or OPENAI_API_KEY.

from dotenv import load_dotenv
from utils import ConfigManager
from chat_completions import build_messages, stream_chat_completion

OPENAI_URL = 'https://api.openai.com/v1/chat/completions'
DEFAULT_MODEL = 'gpt-4o-mini'
DEFAULT_SYSTEM_PROMPT = 'You are a concise assistant answering quick questions from a launcher. Use short markdown.'


def get_openai_api_key() -> str:
    """Return the configured OpenAI key, falling back to the environment."""
    load_dotenv()
    configured = (ConfigManager.get_config_value('openai', 'api_key') or '').strip()
    return configured or (os.getenv('OPENAI_API_KEY') or '').strip()


def get_openai_model(model: Optional[str] = None) -> str:
    configured_model = ConfigManager.get_config_value('openai', 'model')
    return model or configured_model or os.getenv('OPENAI_MODEL') or DEFAULT_MODEL


def stream_with_openai(
    query: str,
    model: Optional[str] = None,
    on_delta: Optional[Callable[[str], None]] = None,
    cancel_event: Optional[threading.Event] = None,
) -> str:
    """
    Stream a response from OpenAI and invoke on_delta per chunk.

    Returns the full concatenated text (may be empty on failure).
    """
    api_key = get_openai_api_key()
    if not api_key:
        ConfigManager.console_print('OpenAI: missing API key; skipping query (stream).')
        return ''

    system_prompt = ConfigManager.get_config_value('openai', 'system_prompt') or DEFAULT_SYSTEM_PROMPT
    messages = build_messages(query, system_prompt)
    timeout = ConfigManager.get_config_value('openai', 'timeout') or 90

    return stream_chat_completion(
        url=OPENAI_URL,
        api_key=api_key,
        model=get_openai_model(model),
        messages=messages,
        on_delta=on_delta,
        cancel_event=cancel_event,
        timeout=timeout,
        label='OpenAI',
    )
