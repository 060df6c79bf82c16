import pytest

from ctx_estimate import Endpoint


@pytest.mark.parametrize(
    "value, expected",
    [
        ("chat", Endpoint.CHAT),
        ("generate", Endpoint.GENERATE),
        (Endpoint.CHAT, Endpoint.CHAT),
        ("Chat", Endpoint.UNKNOWN),
        ("embed", Endpoint.UNKNOWN),
        ("", Endpoint.UNKNOWN),
        (None, Endpoint.UNKNOWN),
    ],
)
def test_parse_is_exact(value, expected):
    assert Endpoint.parse(value) is expected


def test_from_path():
    assert Endpoint.from_path("/api/chat") is Endpoint.CHAT
    assert Endpoint.from_path("/api/generate/") is Endpoint.GENERATE
    assert Endpoint.from_path("/api/embed") is Endpoint.UNKNOWN
    assert Endpoint.from_path("") is Endpoint.UNKNOWN
