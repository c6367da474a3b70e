import json
import threading
from typing import Optional, List, Dict, Callable

# Shared chat/completions streaming over Server-Sent Events.
# Used by the OpenRouter and OpenAI helpers; both speak the same wire format.

import requests
from utils import ConfigManager

DONE = object()


def build_messages(query: str, system_prompt: Optional[str] = None) -> List[Dict[str, str]]:
    """
    Build the chat message list for one launcher query.

    Args:
        query: Text typed into the launcher.
        system_prompt: Optional system instructions placed first.
    """
    messages = []
    if system_prompt:
        messages.append({'role': 'system', 'content': system_prompt})
    messages.append({'role': 'user', 'content': query})
    return messages


def parse_sse_line(raw_line: Optional[str]):
    """
    Decode one SSE line of a streamed chat completion.

    Returns DONE for the terminal frame, the delta text for content frames,
    and None for anything else (blank lines, comments, frames without content,
    malformed JSON).
    """
    if not raw_line:
        return None
    line = raw_line.strip()
    if not line.startswith('data:'):
        return None
    data = line[len('data:'):].strip()
    if data == '[DONE]':
        return DONE
    try:
        obj = json.loads(data)
    except json.JSONDecodeError:
        return None
    if not isinstance(obj, dict):
        return None
    choices = obj.get('choices') or []
    if not choices:
        return None
    delta = choices[0].get('delta') or {}
    return delta.get('content') or None


def stream_chat_completion(
    url: str,
    api_key: str,
    model: str,
    messages: List[Dict[str, str]],
    on_delta: Optional[Callable[[str], None]] = None,
    cancel_event: Optional[threading.Event] = None,
    timeout: float = 90,
    extra_headers: Optional[Dict[str, str]] = None,
    label: str = 'LLM',
) -> str:
    """
    POST a streaming chat completion and forward each content delta.

    Returns the concatenated text received. On HTTP or transport failure the
    error is logged and whatever arrived before it is returned (possibly '').
    """
    headers = {
        'Authorization': f'Bearer {api_key}',
        'Accept': 'text/event-stream',
    }
    if extra_headers:
        headers.update(extra_headers)
    payload = {
        'model': model,
        'messages': messages,
        'stream': True,
    }

    ConfigManager.console_print(
        f'{label}: POST chat/completions (stream) model={model} | messages={len(messages)} | query_len={len(messages[-1]["content"]) if messages else 0}'
    )

    full_text = ''
    try:
        resp = requests.post(url=url, headers=headers, json=payload, timeout=timeout, stream=True)
        with resp:
            if resp.status_code != 200:
                ConfigManager.console_print(f'{label} HTTP (stream) {resp.status_code}: {resp.text[:200]}')
                return ''
            # Decode as UTF-8 so multi-byte characters never reach the renderer split
            resp.encoding = 'utf-8'
            for raw_line in resp.iter_lines(decode_unicode=True):
                if cancel_event is not None and cancel_event.is_set():
                    ConfigManager.console_print(f'{label}: stream cancelled after {len(full_text)} chars.')
                    break
                piece = parse_sse_line(raw_line)
                if piece is DONE:
                    break
                if not piece:
                    continue
                full_text += piece
                if on_delta:
                    on_delta(piece)
    except requests.RequestException as e:
        ConfigManager.console_print(f'{label} streaming request failed: {e}')
        return full_text

    if full_text:
        ConfigManager.console_print(f'{label} streamed response content (truncated to 300):\n' + full_text[:300])
    else:
        ConfigManager.console_print(f'{label}: empty response content.')
    return full_text
