from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from src.analyzers import llm_client
from src.errors import UpstreamUnavailable


def _response(content, finish_reason="stop"):
    message = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason=finish_reason)])


@pytest.fixture
def client():
    fake = MagicMock()
    with patch.object(llm_client, "_get_client", return_value=fake), \
         patch.object(llm_client, "LLM_MIN_REQUEST_INTERVAL_SECONDS", 0), \
         patch.object(llm_client, "LLM_RATE_LIMIT_MAX_RETRIES", 2), \
         patch.object(llm_client, "LLM_RATE_LIMIT_BACKOFF_SECONDS", 10), \
         patch("src.analyzers.llm_client.time.sleep") as sleep:
        fake.sleep = sleep
        yield fake


def test_complete_returns_stripped_text(client):
    client.chat.completions.create.return_value = _response("  A post.\n")

    assert llm_client.complete("hello", model="gpt-4") == "A post."

    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4"
    assert kwargs["messages"] == [{"role": "user", "content": "hello"}]


def test_empty_response_is_upstream_unavailable(client):
    client.chat.completions.create.return_value = _response("   ", finish_reason="length")

    with pytest.raises(UpstreamUnavailable, match="finish_reason=length"):
        llm_client.complete("hello")


def test_choice_without_message_is_upstream_unavailable(client):
    choice = SimpleNamespace(message=None, finish_reason="content_filter")
    client.chat.completions.create.return_value = SimpleNamespace(choices=[choice])

    with pytest.raises(UpstreamUnavailable, match="finish_reason=content_filter"):
        llm_client.complete("hello")


def test_no_choices_is_upstream_unavailable(client):
    client.chat.completions.create.return_value = SimpleNamespace(choices=[])

    with pytest.raises(UpstreamUnavailable, match="no choices"):
        llm_client.complete("hello")


def test_rate_limit_is_retried_with_backoff(client):
    client.chat.completions.create.side_effect = [
        Exception("Error code: 429 - Too Many Requests"),
        _response("ok"),
    ]

    assert llm_client.complete("hello") == "ok"
    assert client.chat.completions.create.call_count == 2
    client.sleep.assert_called_once_with(10)


def test_rate_limit_retries_are_bounded(client):
    client.chat.completions.create.side_effect = Exception("rate limit reached")

    with pytest.raises(UpstreamUnavailable):
        llm_client.complete("hello")

    assert client.chat.completions.create.call_count == 3
    assert [c.args[0] for c in client.sleep.call_args_list] == [10, 20]


def test_other_errors_are_not_retried(client):
    client.chat.completions.create.side_effect = Exception("connection reset")

    with pytest.raises(UpstreamUnavailable, match="connection reset"):
        llm_client.complete("hello")

    assert client.chat.completions.create.call_count == 1


def test_missing_key_fails_before_any_call():
    with patch.object(llm_client, "_client", None), patch.object(llm_client, "LLM_API_KEY", ""):
        with pytest.raises(UpstreamUnavailable, match="OPENAI_API_KEY"):
            llm_client.complete("hello")
