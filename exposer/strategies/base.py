"""Common contract and shared helpers for expose strategies."""

from abc import ABC, abstractmethod
from typing import Any, Dict, NamedTuple

from ..detect import ClusterType, detect_cluster_type, detect_domain
from ..errors import ConfigurationError, ValidationError
from ..keys import DEFAULT_KEYS, ExposeKeys
from ..logging_config import get_logger
from ..models import StrategyConfig
from ..patch import annotations_of, labels_of, patch_service, remove_exposure_annotation, to_dict
from ..urls import UrlFormat, url_join

logger = get_logger(__name__)

PATH_MODE_USE_PATH = "path"
HELM_RELEASE_LABEL = "release"


class Target(NamedTuple):
    """Where a service is reachable: the routed host and path, and the host used in its URL."""

    host: str
    path: str
    url_host: str
    path_mode: str


def service_ref(service: Dict[str, Any]) -> str:
    metadata = service.get("metadata") or {}
    return f"{metadata.get('namespace')}/{metadata.get('name')}"


def app_name(service: Dict[str, Any], keys: ExposeKeys = DEFAULT_KEYS) -> str:
    """Name of the external resource for a service.

    The ingress name annotation wins; otherwise a Helm "<release>-" prefix
    is stripped from the service name.
    """
    override = annotations_of(service).get(keys.ingress_name)
    if override:
        return override
    name = service["metadata"]["name"]
    release = labels_of(service).get(HELM_RELEASE_LABEL)
    if release:
        return name.replace(release + "-", "", 1)
    return name


def exposed_port(service: Dict[str, Any], keys: ExposeKeys = DEFAULT_KEYS) -> int:
    """Port number to route to: a valid exposePort annotation, else the first port."""
    ports = (service.get("spec") or {}).get("ports") or []
    if not ports:
        raise ValidationError(f"service {service_ref(service)} has no ports to expose")

    requested = annotations_of(service).get(keys.expose_port)
    if requested:
        try:
            number = int(requested)
        except ValueError:
            logger.warning("Exposed port annotation is not a valid number",
                           service=service_ref(service), annotation=keys.expose_port, port=requested)
        else:
            if any(port.get("port") == number for port in ports):
                return number
            logger.warning("Exposed port annotation does not match any service port",
                           service=service_ref(service), annotation=keys.expose_port, port=requested)
    return ports[0]["port"]


def tls_skipped(service: Dict[str, Any], keys: ExposeKeys = DEFAULT_KEYS) -> bool:
    return annotations_of(service).get(keys.skip_tls) == "true"


class ExposeStrategy(ABC):
    """Exposes services through one kind of external-access mechanism."""

    kind: str = ""

    def __init__(self, kube, config: StrategyConfig, keys: ExposeKeys = DEFAULT_KEYS):
        self.kube = kube
        self.config = config
        self.keys = keys

    @abstractmethod
    def add(self, service) -> None:
        """Create or refresh the exposure of service and record its URL."""

    @abstractmethod
    def remove(self, service) -> None:
        """Tear down the exposure of service and drop its URL annotation."""

    def _unannotate(self, service) -> None:
        original = to_dict(service)
        patch_service(self.kube, original, remove_exposure_annotation(original, self.keys))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(domain={getattr(self, 'domain', None)!r})"


class HostedStrategy(ExposeStrategy):
    """Strategy that routes a templated host name, shared by ingress and ambassador."""

    def __init__(self, kube, config: StrategyConfig, keys: ExposeKeys = DEFAULT_KEYS):
        super().__init__(kube, config, keys)
        if detect_cluster_type(kube) == ClusterType.ROUTE_CAPABLE:
            raise ConfigurationError(
                f"{self.kind} strategy is not supported on OpenShift, please use the route strategy"
            )
        self.domain = config.domain or detect_domain(kube, keys)
        self.url_format = UrlFormat(config.url_template)
        self.tls_acme = config.tls_acme
        self.path_mode = config.path_mode
        logger.info("Using host template", strategy=self.kind, domain=self.domain,
                    url_template=self.url_format.template, path_mode=self.path_mode or "host")

    def target(self, service: Dict[str, Any], app: str) -> Target:
        namespace = service["metadata"]["namespace"]
        annotations = annotations_of(service)
        host = self.url_format.render(app, namespace, self.domain)
        path = annotations.get(self.keys.ingress_path, "")
        path_mode = annotations.get(self.keys.path_mode) or self.path_mode

        if path_mode == PATH_MODE_USE_PATH:
            path = url_join("/", namespace, app, path or "/")
            return Target(host=self.domain, path=path, url_host=url_join(self.domain, path), path_mode=path_mode)

        if not path:
            path = "/"
        elif not path.startswith("/"):
            path = "/" + path
        return Target(host=host, path=path, url_host=host, path_mode=path_mode)

    def use_tls(self, service: Dict[str, Any]) -> bool:
        return self.tls_acme and not tls_skipped(service, self.keys)
