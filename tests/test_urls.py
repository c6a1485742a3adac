"""Tests for protocol inference, URL joining and host templates."""

import pytest

from exposer.errors import ConfigurationError
from exposer.urls import DEFAULT_URL_TEMPLATE, UrlFormat, infer_protocol, render_url, url_join

from conftest import build_service


class TestInferProtocol:
    """Tests for infer_protocol."""

    def test_plain_host_is_http(self):
        assert infer_protocol(build_service(), "app.default.example.com") == "http"

    @pytest.mark.parametrize("host", ["example.com:443", "example.com:8443", "[::1]:443"])
    def test_https_ports(self, host):
        assert infer_protocol(build_service(), host) == "https"

    @pytest.mark.parametrize("host", ["1.2.3.4:8443/default/app/", "example.com:443/api", "[fd00::1]:443/ns/app/"])
    def test_https_port_with_path(self, host):
        assert infer_protocol(build_service(), host) == "https"

    def test_path_without_port(self):
        assert infer_protocol(build_service(), "example.com/default/app:8443/") == "http"

    def test_other_port_is_http(self):
        assert infer_protocol(build_service(), "192.168.99.100:30080") == "http"

    def test_port_named_https(self):
        svc = build_service(ports=[{"name": "web", "port": 80}, {"name": "https", "port": 9443}])
        assert infer_protocol(svc, "app.example.com") == "https"

    def test_service_without_ports(self):
        assert infer_protocol({"metadata": {"name": "x"}}, "") == "http"


class TestUrlJoin:
    """Tests for url_join."""

    @pytest.mark.parametrize("left,right", [("a/", "/b"), ("a", "b"), ("a/", "b"), ("a", "/b")])
    def test_single_slash_between_parts(self, left, right):
        assert url_join(left, right) == "a/b"

    def test_keeps_scheme(self):
        assert url_join("http://a/", "/b") == "http://a/b"

    def test_keeps_leading_and_trailing_slash(self):
        assert url_join("/", "ns", "app", "/") == "/ns/app/"
        assert url_join("/", "ns", "app", "/api") == "/ns/app/api"

    def test_single_part(self):
        assert url_join("http://a/") == "http://a/"


class TestUrlFormat:
    """Tests for host templates."""

    def test_default_template(self):
        fmt = UrlFormat()
        assert fmt.template == DEFAULT_URL_TEMPLATE
        assert fmt.render("app", "default", "example.com") == "app.default.example.com"

    def test_custom_template(self):
        assert render_url("{service}-{namespace}.{domain}", "app", "prod", "example.com") == "app-prod.example.com"

    def test_legacy_placeholders(self):
        fmt = UrlFormat("{{.Service}}.{{ .Namespace }}.{{.Domain}}")
        assert fmt.template == "{service}.{namespace}.{domain}"
        assert fmt.render("app", "ns", "d.io") == "app.ns.d.io"

    def test_unknown_placeholder(self):
        with pytest.raises(ConfigurationError, match="unknown placeholders"):
            UrlFormat("{service}.{cluster}.{domain}")

    def test_unparsable_template(self):
        with pytest.raises(ConfigurationError, match="failed to parse"):
            UrlFormat("{service.{domain}")
