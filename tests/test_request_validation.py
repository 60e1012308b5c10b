import pytest

from xkindle.config import DEFAULT_ALLOWED_HOSTS
from xkindle.request import RequestValidationError, is_allowed_host, validate_request


def test_is_allowed_host_accepts_exact_and_subdomains() -> None:
    assert is_allowed_host("x.com", DEFAULT_ALLOWED_HOSTS)
    assert is_allowed_host("twitter.com", DEFAULT_ALLOWED_HOSTS)
    assert is_allowed_host("www.X.com", DEFAULT_ALLOWED_HOSTS)
    assert is_allowed_host("mobile.twitter.com.", DEFAULT_ALLOWED_HOSTS)


def test_is_allowed_host_rejects_lookalikes() -> None:
    assert not is_allowed_host("notx.com", DEFAULT_ALLOWED_HOSTS)
    assert not is_allowed_host("x.com.evil.org", DEFAULT_ALLOWED_HOSTS)
    assert not is_allowed_host("", DEFAULT_ALLOWED_HOSTS)
    assert not is_allowed_host(None, DEFAULT_ALLOWED_HOSTS)


def test_validate_request_returns_trimmed_immutable_request() -> None:
    request = validate_request(" https://x.com/alice/status/12345?s=20 ", " a@kindle.com ", DEFAULT_ALLOWED_HOSTS)

    assert request.source_url == "https://x.com/alice/status/12345?s=20"
    assert request.destination_address == "a@kindle.com"
    with pytest.raises(Exception):
        request.source_url = "https://twitter.com/b/status/1"


@pytest.mark.parametrize(("url", "address"), [(None, "a@kindle.com"), ("https://x.com/a/status/1", None), ("", "")])
def test_validate_request_missing_fields(url, address) -> None:
    with pytest.raises(RequestValidationError, match="Missing required fields"):
        validate_request(url, address, DEFAULT_ALLOWED_HOSTS)


@pytest.mark.parametrize(
    "url",
    ["https://example.com/alice/status/1", "mailto:x.com", "//x.com/a/status/1", "http://[::1"],
)
def test_validate_request_rejects_invalid_url(url: str) -> None:
    with pytest.raises(RequestValidationError, match="Invalid X/Twitter URL"):
        validate_request(url, "a@kindle.com", DEFAULT_ALLOWED_HOSTS)
