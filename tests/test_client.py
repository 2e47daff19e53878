"""ModelClient: request shape and mapping of SDK errors to TransportFailure."""

from __future__ import annotations

import asyncio
import base64
import types

import anthropic
import httpx
import pytest

from deckhtml import ModelClient, ModelSuccess, TransportFailure, build_messages

_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


class FakeMessage:
    def __init__(self, text):
        self.content = [types.SimpleNamespace(type="text", text=text)]

    def model_dump(self, mode="python"):
        return {
            "role": "assistant",
            "content": [{"type": block.type, "text": block.text} for block in self.content],
        }


class FakeMessages:
    def __init__(self, result):
        self.result = result
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if isinstance(self.result, BaseException):
            raise self.result
        return self.result


class FakeAnthropic:
    def __init__(self, result):
        self.messages = FakeMessages(result)
        self.closed = False

    async def close(self):
        self.closed = True


def _client(result, **kwargs):
    fake = FakeAnthropic(result)
    client = ModelClient("sk-test", model="claude-test", client=fake, **kwargs)
    return client, fake


def test_build_messages_shape():
    messages = build_messages("make html", "QUJD", "image/png")
    assert messages == [
        {
            "role": "user",
            "content": [
                {"type": "text", "text": "make html"},
                {
                    "type": "image",
                    "source": {"type": "base64", "media_type": "image/png", "data": "QUJD"},
                },
            ],
        }
    ]


def test_send_success_returns_text_and_body(tmp_path):
    image = tmp_path / "page_0001.png"
    image.write_bytes(b"png-bytes")
    client, fake = _client(FakeMessage('{"output": "<html></html>"}'), max_tokens=1234)

    outcome = asyncio.run(client.send(image, "prompt text"))

    assert isinstance(outcome, ModelSuccess)
    assert outcome.raw_text == '{"output": "<html></html>"}'
    assert outcome.body["content"][0]["text"] == '{"output": "<html></html>"}'

    sent = fake.messages.kwargs
    assert sent["model"] == "claude-test"
    assert sent["max_tokens"] == 1234
    assert sent["temperature"] == 0.0
    content = sent["messages"][0]["content"]
    assert content[0] == {"type": "text", "text": "prompt text"}
    assert content[1]["source"]["media_type"] == "image/png"
    assert base64.b64decode(content[1]["source"]["data"]) == b"png-bytes"


def test_send_jpeg_media_type(tmp_path):
    image = tmp_path / "page_0001.jpeg"
    image.write_bytes(b"jpeg-bytes")
    client, fake = _client(FakeMessage("x"))
    asyncio.run(client.send(image, "p"))
    assert fake.messages.kwargs["messages"][0]["content"][1]["source"]["media_type"] == "image/jpeg"


def test_send_accepts_raw_bytes():
    client, fake = _client(FakeMessage("hello"))
    outcome = asyncio.run(client.send(b"raw", "p"))
    assert outcome.raw_text == "hello"


def test_reply_without_text_block_is_empty_success():
    message = FakeMessage("unused")
    message.content = []
    client, _ = _client(message)
    outcome = asyncio.run(client.send(b"raw", "p"))
    assert isinstance(outcome, ModelSuccess)
    assert outcome.raw_text == ""


@pytest.mark.parametrize(
    "error, expected",
    [
        (anthropic.APITimeoutError(request=_REQUEST), "timed out after 60s"),
        (anthropic.APIConnectionError(request=_REQUEST), "Connection error"),
        (
            anthropic.InternalServerError(
                "overloaded",
                response=httpx.Response(529, request=_REQUEST),
                body=None,
            ),
            "API error 529",
        ),
        (
            anthropic.AuthenticationError(
                "invalid x-api-key",
                response=httpx.Response(401, request=_REQUEST),
                body=None,
            ),
            "API error 401",
        ),
    ],
)
def test_sdk_errors_become_transport_failures(error, expected):
    client, _ = _client(error)
    outcome = asyncio.run(client.send(b"raw", "p"))
    assert isinstance(outcome, TransportFailure)
    assert expected in outcome.message


def test_missing_image_is_transport_failure(tmp_path):
    client, fake = _client(FakeMessage("x"))
    outcome = asyncio.run(client.send(tmp_path / "missing.png", "p"))
    assert isinstance(outcome, TransportFailure)
    assert "Could not read page image" in outcome.message
    assert fake.messages.kwargs is None


def test_close_closes_sdk_client():
    client, fake = _client(FakeMessage("x"))
    asyncio.run(client.close())
    assert fake.closed is True
