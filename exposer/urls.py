"""Protocol inference, URL joining and host templates."""

import re
import string
from typing import Any, Mapping

from .errors import ConfigurationError

DEFAULT_URL_TEMPLATE = "{service}.{namespace}.{domain}"
TEMPLATE_FIELDS = ("service", "namespace", "domain")
HTTPS_PORTS = ("443", "8443")

# Older configs use the {{.Service}} style placeholders
_LEGACY_PLACEHOLDER = re.compile(r"\{\{\s*\.(Service|Namespace|Domain)\s*\}\}")


def _service_ports(service: Mapping[str, Any]):
    return ((service or {}).get("spec") or {}).get("ports") or []


def _host_port(host: str) -> str:
    """Return the port part of a host[:port][/path] string, or ''."""
    host = host.split("/", 1)[0]
    if host.startswith("["):
        _, _, rest = host.partition("]")
        return rest[1:] if rest.startswith(":") else ""
    if host.count(":") != 1:
        return ""
    return host.rsplit(":", 1)[1]


def infer_protocol(service: Mapping[str, Any], host: str) -> str:
    """Pick http or https for a service reachable at host.

    A 443/8443 port on the host, or any service port named "https",
    means https.
    """
    if _host_port(host or "") in HTTPS_PORTS:
        return "https"
    for port in _service_ports(service):
        if port.get("name") == "https":
            return "https"
    return "http"


def url_join(*parts: str) -> str:
    """Join URL path segments with exactly one '/' between each pair."""
    last = len(parts) - 1
    joined = []
    for i, part in enumerate(parts):
        if i > 0:
            part = part.lstrip("/")
        if i < last:
            part = part.rstrip("/")
        joined.append(part)
    return "/".join(joined)


class UrlFormat:
    """A parsed host template."""

    def __init__(self, template: str = ""):
        self.template = _LEGACY_PLACEHOLDER.sub(lambda m: "{" + m.group(1).lower() + "}", template or DEFAULT_URL_TEMPLATE)
        try:
            fields = [name for _, name, _, _ in string.Formatter().parse(self.template) if name is not None]
        except ValueError as e:
            raise ConfigurationError(f"failed to parse url template {template!r}: {e}") from e
        unknown = [name for name in fields if name not in TEMPLATE_FIELDS]
        if unknown:
            raise ConfigurationError(
                f"url template {template!r} uses unknown placeholders {unknown}; "
                f"valid placeholders are {list(TEMPLATE_FIELDS)}"
            )

    def render(self, service: str, namespace: str, domain: str) -> str:
        return self.template.format(service=service, namespace=namespace, domain=domain)

    def __repr__(self) -> str:
        return f"UrlFormat({self.template!r})"


def render_url(template: str, service: str, namespace: str, domain: str) -> str:
    return UrlFormat(template).render(service, namespace, domain)
