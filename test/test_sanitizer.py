import pytest

from chat_assistant.errors import EmptyContentError, InvalidUrlError, TooLongError
from classification.sanitizer import (
    MAX_MESSAGE_LENGTH,
    sanitize,
    validate_and_sanitize,
    validate_urls,
)


def test_sanitize_strips_brackets_and_unsafe_schemes():
    assert sanitize("  <b>hello</b> javascript:alert(1) DATA:x  ") == "bhello/b alert(1) x"


@pytest.mark.parametrize(
    "raw",
    [
        "plain text",
        "java<script:alert(1)",
        "javajavascript:script:",
        "dadata:ta:<<>>",
        "   ",
        "<javascript:>",
    ],
)
def test_sanitize_is_idempotent(raw):
    once = sanitize(raw)
    assert sanitize(once) == once


def test_glued_scheme_is_removed():
    assert "javascript:" not in sanitize("java<script:alert(1)").lower()


def test_too_long_input_rejected_before_anything_else():
    raw = "x" * (MAX_MESSAGE_LENGTH + 1) + " http://"
    with pytest.raises(TooLongError):
        validate_and_sanitize(raw)


def test_max_length_is_accepted():
    assert validate_and_sanitize("y" * MAX_MESSAGE_LENGTH) == "y" * MAX_MESSAGE_LENGTH


def test_invalid_url_rejected():
    with pytest.raises(InvalidUrlError):
        validate_urls("look at http://[oops now")


def test_valid_urls_pass():
    validate_urls("see https://example.com/a?b=1 and http://test.org")


def test_only_markup_is_empty_content():
    with pytest.raises(EmptyContentError) as exc:
        validate_and_sanitize("<<>>")
    assert exc.value.reason == "empty_content"


def test_url_check_runs_before_sanitizing():
    # URLs are checked on the raw text, before sanitizing
    with pytest.raises(InvalidUrlError):
        validate_and_sanitize("<> http://[oops")
