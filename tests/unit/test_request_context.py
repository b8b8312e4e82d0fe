"""Tests for EvaluationContext.from_scope() and URL helpers."""

from __future__ import annotations

from typing import Any

import pytest

from tlsgate.models.request import (
    EvaluationContext,
    MissingRequestContextError,
    build_url,
)


def _scope(**overrides: Any) -> dict:
    scope: dict = {
        "type": "http",
        "method": "GET",
        "scheme": "http",
        "path": "/account/login",
        "raw_path": b"/account/login",
        "root_path": "",
        "query_string": b"",
        "headers": [(b"host", b"example.com")],
        "client": ("203.0.113.7", 51000),
        "server": ("10.0.0.5", 8000),
    }
    scope.update(overrides)
    return scope


class TestFromScope:
    def test_basic_fields(self):
        ctx = EvaluationContext.from_scope(_scope(method="post"))
        assert ctx.method == "POST"
        assert ctx.scheme == "http"
        assert ctx.host == "example.com"
        assert ctx.port is None
        assert ctx.original_path == "/account/login"
        assert ctx.is_secure is False
        assert ctx.is_local is False
        assert ctx.client_host == "203.0.113.7"

    def test_raw_path_keeps_percent_encoding(self):
        ctx = EvaluationContext.from_scope(
            _scope(path="/a b/c", raw_path=b"/a%20b/c")
        )
        assert ctx.original_path == "/a%20b/c"

    def test_raw_path_with_query_attached_is_trimmed(self):
        ctx = EvaluationContext.from_scope(_scope(raw_path=b"/p?x=1", query_string=b"x=1"))
        assert ctx.original_path == "/p"
        assert ctx.query_string == "x=1"

    def test_falls_back_to_root_path_plus_path(self):
        scope = _scope(root_path="/app", path="/login")
        del scope["raw_path"]
        ctx = EvaluationContext.from_scope(scope)
        assert ctx.original_path == "/app/login"

    def test_query_string_preserved_byte_for_byte(self):
        ctx = EvaluationContext.from_scope(_scope(query_string=b"x=1&y=a%20b&z=%E2%9C%93"))
        assert ctx.query_string == "x=1&y=a%20b&z=%E2%9C%93"

    def test_host_header_port(self):
        ctx = EvaluationContext.from_scope(_scope(headers=[(b"host", b"Example.COM:8080")]))
        assert ctx.host == "example.com"
        assert ctx.port == 8080

    def test_ipv6_host_header(self):
        ctx = EvaluationContext.from_scope(_scope(headers=[(b"host", b"[::1]:8443")]))
        assert ctx.host == "[::1]"
        assert ctx.port == 8443

    def test_server_fallback_when_no_host_header(self):
        ctx = EvaluationContext.from_scope(_scope(headers=[]))
        assert ctx.host == "10.0.0.5"
        assert ctx.port == 8000

    def test_missing_host_raises(self):
        with pytest.raises(MissingRequestContextError):
            EvaluationContext.from_scope(_scope(headers=[], server=None))

    def test_non_http_scope_raises(self):
        with pytest.raises(MissingRequestContextError):
            EvaluationContext.from_scope({"type": "lifespan"})

    def test_https_scheme_is_secure(self):
        ctx = EvaluationContext.from_scope(_scope(scheme="https"))
        assert ctx.is_secure is True
        assert ctx.scheme == "https"

    def test_offloaded_header_with_value(self):
        scope = _scope(headers=[(b"host", b"example.com"), (b"x-forwarded-proto", b"HTTPS")])
        ctx = EvaluationContext.from_scope(scope, [("x-forwarded-proto", "https")])
        assert ctx.is_secure is True
        assert ctx.scheme == "https"

    def test_offloaded_header_wrong_value(self):
        scope = _scope(headers=[(b"host", b"example.com"), (b"x-forwarded-proto", b"http")])
        ctx = EvaluationContext.from_scope(scope, [("x-forwarded-proto", "https")])
        assert ctx.is_secure is False

    def test_offloaded_header_presence_only(self):
        scope = _scope(headers=[(b"host", b"example.com"), (b"x-ssl", b"1")])
        ctx = EvaluationContext.from_scope(scope, [("x-ssl", None)])
        assert ctx.is_secure is True

    def test_offloaded_header_ignored_when_not_configured(self):
        scope = _scope(headers=[(b"host", b"example.com"), (b"x-forwarded-proto", b"https")])
        ctx = EvaluationContext.from_scope(scope)
        assert ctx.is_secure is False

    @pytest.mark.parametrize(
        "client_host",
        ["127.0.0.1", "127.0.0.2", "127.255.0.9", "::1", "::ffff:127.0.0.1", "localhost", "LocalHost"],
    )
    def test_loopback_client_is_local(self, client_host):
        ctx = EvaluationContext.from_scope(_scope(client=(client_host, 1234)))
        assert ctx.is_local is True

    @pytest.mark.parametrize(
        "client_host",
        ["10.0.0.1", "::ffff:10.0.0.1", "2001:db8::1", "128.0.0.1", "testclient", ""],
    )
    def test_non_loopback_client_is_remote(self, client_host):
        ctx = EvaluationContext.from_scope(_scope(client=(client_host, 1234)))
        assert ctx.is_local is False

    def test_missing_client_is_not_local(self):
        ctx = EvaluationContext.from_scope(_scope(client=None))
        assert ctx.is_local is False
        assert ctx.client_host is None

    def test_ajax_detection(self):
        scope = _scope(
            headers=[(b"host", b"example.com"), (b"x-requested-with", b"XMLHttpRequest")]
        )
        assert EvaluationContext.from_scope(scope).is_ajax is True
        assert EvaluationContext.from_scope(_scope()).is_ajax is False


class TestUrl:
    def test_url_includes_query(self):
        ctx = EvaluationContext.from_scope(_scope(query_string=b"a=1"))
        assert ctx.url == "http://example.com/account/login?a=1"

    def test_url_omits_default_port(self):
        ctx = EvaluationContext.from_scope(_scope(headers=[(b"host", b"example.com:80")]))
        assert ctx.url == "http://example.com/account/login"

    def test_url_keeps_non_default_port(self):
        ctx = EvaluationContext.from_scope(_scope(headers=[(b"host", b"example.com:8080")]))
        assert ctx.url == "http://example.com:8080/account/login"

    def test_build_url_default_https_port(self):
        assert build_url("https", "example.com", 443, "/x") == "https://example.com/x"
        assert build_url("https", "example.com", 8443, "/x") == "https://example.com:8443/x"
        assert build_url("http", "example.com", None, "/x?q") == "http://example.com/x?q"
