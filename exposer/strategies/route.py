"""Expose services through OpenShift routes."""

import copy
from typing import Any, Dict, Optional

from kubernetes.client.rest import ApiException

from ..detect import ROUTE_API_GROUP, ClusterType, detect_cluster_type, detect_domain
from ..errors import ConfigurationError, RemoteAPIError, is_not_found
from ..keys import DEFAULT_KEYS, ExposeKeys
from ..logging_config import get_logger, log_expose_event, log_k8s_operation
from ..models import StrategyConfig
from ..patch import add_exposure_annotation, compute_patch, patch_service, to_dict
from ..urls import infer_protocol, url_join
from .base import ExposeStrategy

logger = get_logger(__name__)

ROUTE_API_VERSION = "v1"
ROUTE_PLURAL = "routes"


class RouteStrategy(ExposeStrategy):
    """One route per service, only on clusters that serve the route API."""

    kind = "route"

    def __init__(self, kube, config: StrategyConfig, keys: ExposeKeys = DEFAULT_KEYS):
        super().__init__(kube, config, keys)
        if detect_cluster_type(kube) == ClusterType.STANDARD:
            raise ConfigurationError("route strategy is not supported on Kubernetes, please use the ingress strategy")

        self.route_host = config.route_host
        self.use_path = config.route_use_path and bool(config.route_host)
        self.namespaced_host = config.route_namespaced_host
        self.domain = config.domain
        if not self.domain and not self.route_host:
            self.domain = detect_domain(kube, keys)
        logger.info("Using route API", group=ROUTE_API_GROUP, version=ROUTE_API_VERSION,
                    domain=self.domain, route_host=self.route_host, use_path=self.use_path)

    def host_and_path(self, service: Dict[str, Any]):
        name = service["metadata"]["name"]
        namespace = service["metadata"]["namespace"]
        if self.use_path:
            return self.route_host, url_join("/", namespace, name)
        if self.route_host:
            return self.route_host, ""
        if self.namespaced_host:
            return f"{name}.{namespace}.{self.domain}", ""
        return f"{name}.{self.domain}", ""

    def add(self, service) -> None:
        original = to_dict(service)
        namespace, name = original["metadata"]["namespace"], original["metadata"]["name"]
        host, path = self.host_and_path(original)

        existing = self._get(namespace, name)
        current = existing if existing is not None else {
            "apiVersion": f"{ROUTE_API_GROUP}/{ROUTE_API_VERSION}",
            "kind": "Route",
            "metadata": {"namespace": namespace, "name": name},
        }
        desired = copy.deepcopy(current)
        labels = dict(desired["metadata"].get("labels") or {})
        labels[self.keys.provider_label.key] = self.keys.provider_label.value
        desired["metadata"]["labels"] = labels
        spec = dict(current.get("spec") or {})
        spec["host"] = host
        # keep server defaulted target fields such as weight
        target = dict(spec.get("to") or {})
        target.update(kind="Service", name=name)
        spec["to"] = target
        if path:
            spec["path"] = path
        else:
            spec.pop("path", None)
        desired["spec"] = spec

        if existing is None:
            log_k8s_operation(logger, "create", "route", namespace=namespace, name=name)
            try:
                self.kube.custom_objects.create_namespaced_custom_object(
                    ROUTE_API_GROUP, ROUTE_API_VERSION, namespace, ROUTE_PLURAL, desired)
            except ApiException as e:
                raise RemoteAPIError.wrap(f"failed to create route {namespace}/{name}", e) from e
        else:
            patch = compute_patch(existing, desired)
            if patch is not None:
                log_k8s_operation(logger, "patch", "route", namespace=namespace, name=name, patch=patch)
                try:
                    self.kube.custom_objects.patch_namespaced_custom_object(
                        ROUTE_API_GROUP, ROUTE_API_VERSION, namespace, ROUTE_PLURAL, name, patch)
                except ApiException as e:
                    raise RemoteAPIError.wrap(f"failed to update route {namespace}/{name}", e) from e

        url_host = url_join(host, path) if path else host
        protocol = infer_protocol(original, url_host)
        patch_service(self.kube, original, add_exposure_annotation(original, url_host, protocol, self.keys))
        log_expose_event(logger, "exposed", strategy=self.kind, namespace=namespace, name=name,
                         host=url_host, protocol=protocol)

    def remove(self, service) -> None:
        original = to_dict(service)
        namespace, name = original["metadata"]["namespace"], original["metadata"]["name"]

        log_k8s_operation(logger, "delete", "route", namespace=namespace, name=name)
        try:
            self.kube.custom_objects.delete_namespaced_custom_object(
                ROUTE_API_GROUP, ROUTE_API_VERSION, namespace, ROUTE_PLURAL, name)
        except ApiException as e:
            if not is_not_found(e):
                raise RemoteAPIError.wrap(f"failed to delete route {namespace}/{name}", e) from e

        self._unannotate(original)
        log_expose_event(logger, "unexposed", strategy=self.kind, namespace=namespace, name=name)

    def _get(self, namespace: str, name: str) -> Optional[Dict[str, Any]]:
        log_k8s_operation(logger, "get", "route", namespace=namespace, name=name)
        try:
            return self.kube.custom_objects.get_namespaced_custom_object(
                ROUTE_API_GROUP, ROUTE_API_VERSION, namespace, ROUTE_PLURAL, name)
        except ApiException as e:
            if is_not_found(e):
                return None
            raise RemoteAPIError.wrap(f"could not check for existing route {namespace}/{name}", e) from e
