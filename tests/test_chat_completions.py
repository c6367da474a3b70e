import json
import threading

import requests

import chat_completions
from chat_completions import DONE, build_messages, parse_sse_line, stream_chat_completion


class FakeStreamResponse:
    """Stands in for a streamed requests.Response."""

    def __init__(self, lines, status_code=200, text=''):
        self._lines = lines
        self.status_code = status_code
        self.text = text
        self.encoding = None
        self.closed = False

    def iter_lines(self, decode_unicode=False):
        for line in self._lines:
            yield line

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True
        return False


def sse(content):
    return 'data: ' + json.dumps({'choices': [{'delta': {'content': content}}]})


def patch_post(monkeypatch, response):
    calls = []

    def fake_post(**kwargs):
        calls.append(kwargs)
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(chat_completions.requests, 'post', fake_post)
    return calls


def test_build_messages_puts_system_prompt_first():
    assert build_messages('what now?', 'be brief') == [
        {'role': 'system', 'content': 'be brief'},
        {'role': 'user', 'content': 'what now?'},
    ]


def test_build_messages_without_system_prompt():
    assert build_messages('q') == [{'role': 'user', 'content': 'q'}]


def test_parse_sse_line():
    assert parse_sse_line('') is None
    assert parse_sse_line(': keep-alive') is None
    assert parse_sse_line('event: ping') is None
    assert parse_sse_line('data: [DONE]') is DONE
    assert parse_sse_line('data: {not json') is None
    assert parse_sse_line('data: {"choices": []}') is None
    assert parse_sse_line('data: {"choices": [{"delta": {"role": "assistant"}}]}') is None
    assert parse_sse_line(sse('**hi')) == '**hi'


def test_stream_forwards_deltas_until_done(monkeypatch):
    response = FakeStreamResponse(['', sse('**bo'), ': comment', sse('ld**'), 'data: [DONE]', sse('late')])
    calls = patch_post(monkeypatch, response)
    pieces = []

    result = stream_chat_completion(
        url='https://example.invalid/v1/chat/completions',
        api_key='secret',
        model='m',
        messages=[{'role': 'user', 'content': 'q'}],
        on_delta=pieces.append,
        extra_headers={'X-Title': 'QuickAi'},
    )

    assert result == '**bold**'
    assert pieces == ['**bo', 'ld**']
    assert response.encoding == 'utf-8'
    assert response.closed
    call = calls[0]
    assert call['stream'] is True
    assert call['json']['stream'] is True
    assert call['json']['model'] == 'm'
    assert call['headers']['Authorization'] == 'Bearer secret'
    assert call['headers']['X-Title'] == 'QuickAi'


def test_stream_http_error_returns_empty(monkeypatch):
    patch_post(monkeypatch, FakeStreamResponse([sse('x')], status_code=401, text='unauthorized'))
    pieces = []
    result = stream_chat_completion('u', 'k', 'm', [{'role': 'user', 'content': 'q'}], on_delta=pieces.append)
    assert result == ''
    assert pieces == []


def test_stream_transport_error_returns_empty(monkeypatch):
    patch_post(monkeypatch, requests.ConnectionError('boom'))
    assert stream_chat_completion('u', 'k', 'm', [{'role': 'user', 'content': 'q'}]) == ''


def test_stream_stops_when_cancelled(monkeypatch):
    patch_post(monkeypatch, FakeStreamResponse([sse('a'), sse('b'), sse('c')]))
    cancel_event = threading.Event()
    pieces = []

    def on_delta(piece):
        pieces.append(piece)
        cancel_event.set()

    result = stream_chat_completion('u', 'k', 'm', [{'role': 'user', 'content': 'q'}], on_delta=on_delta, cancel_event=cancel_event)
    assert result == 'a'
    assert pieces == ['a']
