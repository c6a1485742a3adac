"""Propagate exposure URLs into ConfigMaps and OAuth clients.

A service's own ConfigMap (same name) names the data keys to fill through
``expose.config.fabric8.io/*`` annotations. Any other ConfigMap in the
namespace can ask for a service's URL with
``expose.service-key.config.fabric8.io/<service>: key1,key2`` and its
``-full``, ``-no-path``, ``-no-protocol`` and ``-full-no-protocol`` variants.
"""

import copy
import os
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlsplit, urlunsplit

from kubernetes.client.rest import ApiException

from .errors import RemoteAPIError, is_not_found
from .keys import DEFAULT_KEYS, ExposeKeys
from .logging_config import get_logger, log_k8s_operation
from .models import ControllerConfig
from .patch import annotations_of, compute_patch, to_dict
from .urls import url_join

logger = get_logger(__name__)

URL_PROTOCOL_KEY = "expose.config.fabric8.io/url-protocol"
URL_KEY = "expose.config.fabric8.io/url-key"
HOST_KEY = "expose.config.fabric8.io/host-key"
API_SERVER_KEY = "expose.config.fabric8.io/apiserver-key"
API_SERVER_URL_KEY = "expose.config.fabric8.io/apiserver-url-key"
CONSOLE_URL_KEY = "expose.config.fabric8.io/console-url-key"
API_SERVER_PROTOCOL_KEY = "expose.config.fabric8.io/apiserver-protocol-key"
OAUTH_AUTHORIZE_URL_KEY = "expose.config.fabric8.io/oauth-authorize-url-key"

SERVICE_KEY_PREFIXES: Dict[str, Callable[[str], str]] = {
    "expose": lambda url: url.rstrip("/"),
    "expose-full": lambda url: url if url.endswith("/") else url + "/",
    "expose-no-path": lambda url: no_path(url),
    "expose-no-protocol": lambda url: strip_protocol(url).rstrip("/"),
    "expose-full-no-protocol": lambda url: strip_protocol(url if url.endswith("/") else url + "/"),
}
SERVICE_KEY_SUFFIX = ".service-key.config.fabric8.io/"

OAUTH_GROUP = "oauth.openshift.io"
OAUTH_VERSION = "v1"
OAUTH_PLURAL = "oauthclients"
OAUTH_AUTHORIZE_URL_ENV_VAR = "OAUTH_AUTHORIZE_URL"
DEFAULT_AUTHORIZE_PATH = "/oauth/authorize"


def strip_protocol(url: str) -> str:
    for prefix in ("http://", "https://"):
        if url.startswith(prefix):
            return url[len(prefix):]
    return url


def no_path(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, "/", "", ""))


def url_host(url: str) -> str:
    return urlsplit(url).netloc


def kubernetes_service_protocol(kube) -> str:
    """Protocol of the API server, read from the default/kubernetes service ports."""
    log_k8s_operation(logger, "get", "service", namespace="default", name="kubernetes")
    try:
        service = kube.core_v1.read_namespaced_service("kubernetes", "default")
    except ApiException as e:
        logger.warning("Could not find the kubernetes service to detect the apiserver protocol",
                       status=e.status, reason=e.reason)
        return "https"

    has_http = False
    for port in service.spec.ports or []:
        if port.name == "https" or port.port == 443:
            return "https"
        if port.name == "http" or port.port == 80:
            has_http = True
    return "http" if has_http else "https"


def authorize_url_for(config: ControllerConfig) -> str:
    """OAuth authorize URL from config, environment, or the API server address."""
    url = config.oauth_authorize_url or os.getenv(OAUTH_AUTHORIZE_URL_ENV_VAR, "")
    if url or not config.api_server:
        return url
    base = config.api_server
    if not base.startswith(("http:", "https:")):
        base = "https://" + base
    path = config.authorize_path or DEFAULT_AUTHORIZE_PATH
    return url_join(base, path)


def _set_keys(data: Dict[str, str], key_list: str, value: str) -> None:
    for key in key_list.split(","):
        key = key.strip()
        if key:
            data[key] = value


class RelatedResources:
    """Keeps ConfigMaps and OAuth clients in step with service exposure URLs."""

    def __init__(self, kube, config: ControllerConfig, route_capable: bool = False,
                 keys: ExposeKeys = DEFAULT_KEYS):
        self.kube = kube
        self.keys = keys
        self.config = config
        self.route_capable = route_capable
        self.api_server_protocol = config.api_server_protocol or kubernetes_service_protocol(kube)
        self.authorize_url = authorize_url_for(config) if route_capable else ""
        if route_capable and not self.authorize_url:
            logger.warning("No OAuth authorize URL configured", env_var=OAUTH_AUTHORIZE_URL_ENV_VAR)

    def sync(self, service) -> None:
        """Update every resource that mirrors the service's exposure URL."""
        svc = to_dict(service)
        self.update_service_configmap(svc)
        expose_url = annotations_of(svc).get(self.keys.expose_url)
        if not expose_url:
            return
        if self.route_capable:
            self.update_oauth_client(svc, expose_url)
        self.update_other_configmaps(svc, expose_url)

    def _patch_configmap(self, original: Dict[str, Any], desired: Dict[str, Any]) -> bool:
        patch = compute_patch(original, desired)
        if patch is None:
            return False
        name, namespace = original["metadata"]["name"], original["metadata"]["namespace"]
        log_k8s_operation(logger, "patch", "configmap", namespace=namespace, name=name, patch=patch)
        try:
            self.kube.core_v1.patch_namespaced_config_map(name, namespace, patch)
        except ApiException as e:
            raise RemoteAPIError.wrap(f"failed to update configmap {namespace}/{name}", e) from e
        logger.info("Updated ConfigMap", namespace=namespace, name=name)
        return True

    def service_configmap_data(self, configmap: Dict[str, Any], service: Dict[str, Any]) -> Dict[str, str]:
        """Data of the service's own ConfigMap with every requested value filled in."""
        annotations = annotations_of(configmap)
        data = dict(configmap.get("data") or {})
        wanted: Dict[str, Optional[str]] = {}

        api_server = self.config.api_server
        console_url = self.config.console_url
        if api_server:
            api_server_url = f"{self.api_server_protocol}://{api_server}"
            wanted[API_SERVER_KEY] = api_server
            wanted[API_SERVER_URL_KEY] = api_server_url
            if not console_url and self.route_capable:
                console_url = url_join(api_server_url, "/console")
        if console_url:
            wanted[CONSOLE_URL_KEY] = console_url
        wanted[API_SERVER_PROTOCOL_KEY] = self.api_server_protocol
        if self.authorize_url:
            wanted[OAUTH_AUTHORIZE_URL_KEY] = self.authorize_url

        expose_url = annotations_of(service).get(self.keys.expose_url)
        if expose_url:
            wanted[URL_KEY] = expose_url
            host = url_host(expose_url)
            if host:
                wanted[HOST_KEY] = host

        for annotation, value in wanted.items():
            key = annotations.get(annotation)
            if key and value:
                data[key] = value
        return data

    def update_service_configmap(self, service: Dict[str, Any]) -> bool:
        name, namespace = service["metadata"]["name"], service["metadata"]["namespace"]
        log_k8s_operation(logger, "get", "configmap", namespace=namespace, name=name)
        try:
            configmap = to_dict(self.kube.core_v1.read_namespaced_config_map(name, namespace))
        except ApiException as e:
            if is_not_found(e):
                return False
            raise RemoteAPIError.wrap(f"failed to read configmap {namespace}/{name}", e) from e

        desired = copy.deepcopy(configmap)
        desired["data"] = self.service_configmap_data(configmap, service)
        return self._patch_configmap(configmap, desired)

    def other_configmap_data(self, configmap: Dict[str, Any], service_name: str, expose_url: str) -> Dict[str, str]:
        annotations = annotations_of(configmap)
        data = dict(configmap.get("data") or {})
        for prefix, transform in SERVICE_KEY_PREFIXES.items():
            key_list = annotations.get(prefix + SERVICE_KEY_SUFFIX + service_name)
            if key_list:
                _set_keys(data, key_list, transform(expose_url))
        key_list = annotations.get(URL_PROTOCOL_KEY)
        if key_list:
            _set_keys(data, key_list, "http" if self.config.http else "https")
        return data

    def update_other_configmaps(self, service: Dict[str, Any], expose_url: str) -> int:
        name, namespace = service["metadata"]["name"], service["metadata"]["namespace"]
        log_k8s_operation(logger, "list", "configmaps", namespace=namespace)
        try:
            configmaps = self.kube.core_v1.list_namespaced_config_map(namespace).items or []
        except ApiException as e:
            raise RemoteAPIError.wrap(f"failed to list configmaps in {namespace}", e) from e

        updated = 0
        for item in configmaps:
            configmap = to_dict(item)
            desired = copy.deepcopy(configmap)
            desired["data"] = self.other_configmap_data(configmap, name, expose_url)
            if self._patch_configmap(configmap, desired):
                updated += 1
        return updated

    def update_oauth_client(self, service: Dict[str, Any], expose_url: str) -> bool:
        """Add the exposure URL to the redirect URIs of the service's OAuth client."""
        name = service["metadata"]["name"]
        log_k8s_operation(logger, "get", "oauthclient", name=name)
        try:
            oauth_client = self.kube.custom_objects.get_cluster_custom_object(
                OAUTH_GROUP, OAUTH_VERSION, OAUTH_PLURAL, name)
        except ApiException as e:
            if is_not_found(e):
                return False
            raise RemoteAPIError.wrap(f"failed to read oauthclient {name}", e) from e

        redirects = list(oauth_client.get("redirectURIs") or [])
        if expose_url in redirects:
            return False
        patch = {"redirectURIs": redirects + [expose_url]}
        log_k8s_operation(logger, "patch", "oauthclient", name=name, patch=patch)
        try:
            self.kube.custom_objects.patch_cluster_custom_object(
                OAUTH_GROUP, OAUTH_VERSION, OAUTH_PLURAL, name, patch)
        except ApiException as e:
            raise RemoteAPIError.wrap(f"failed to update oauthclient {name}", e) from e
        logger.info("Added redirect URI to OAuthClient", name=name, redirect_uri=expose_url)
        return True
