"""Reconciliation entry points invoked per service event."""

import os
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from kubernetes.client.rest import ApiException

from .detect import ClusterType, detect_cluster_type
from .errors import ExposeError, RemoteAPIError
from .keys import DEFAULT_KEYS, ExposeKeys
from .logging_config import get_logger, log_expose_event, log_function_entry, log_function_exit, log_k8s_operation
from .models import ControllerConfig, ExposureInfo, SyncSummary
from .patch import annotations_of, labels_of, to_dict
from .related import RelatedResources
from .strategies import ExposeStrategy, new_strategy

logger = get_logger(__name__)

NAMESPACE_ENV_VAR = "KUBERNETES_NAMESPACE"
SERVICE_ACCOUNT_NAMESPACE = Path("/var/run/secrets/kubernetes.io/serviceaccount/namespace")


def current_namespace() -> Optional[str]:
    namespace = os.getenv(NAMESPACE_ENV_VAR)
    if namespace:
        return namespace
    if SERVICE_ACCOUNT_NAMESPACE.exists():
        return SERVICE_ACCOUNT_NAMESPACE.read_text().strip() or None
    return None


class Controller:
    """Gates service events and hands them to the configured expose strategy.

    The strategy is built once, here, so configuration problems surface at
    startup as a ConfigurationError. Per-service failures are logged and
    never stop the caller's event loop.
    """

    def __init__(self, kube, config: ControllerConfig, keys: ExposeKeys = DEFAULT_KEYS,
                 strategy: Optional[ExposeStrategy] = None,
                 related: Optional[RelatedResources] = None):
        log_function_entry(logger, "Controller.__init__", exposer=config.exposer, domain=config.domain)
        self.kube = kube
        self.config = config
        self.keys = keys
        self.strategy = strategy or new_strategy(kube, config.strategy_config(), keys)
        if related is None:
            route_capable = detect_cluster_type(kube) == ClusterType.ROUTE_CAPABLE
            related = RelatedResources(kube, config, route_capable=route_capable, keys=keys)
        self.related = related
        self.namespaces = self._watched_namespaces()
        self.last_sync: Optional[SyncSummary] = None

        logger.info("Controller initialized",
                    strategy=self.strategy.kind,
                    namespaces=self.namespaces or "all",
                    services=config.services or "all")
        log_function_exit(logger, "Controller.__init__", status="success")

    def _watched_namespaces(self) -> List[str]:
        namespaces = list(self.config.watch_namespaces)
        if self.config.watch_current_namespace:
            namespace = current_namespace()
            if namespace and namespace not in namespaces:
                namespaces.append(namespace)
        return namespaces

    def is_exposed(self, service) -> bool:
        svc = to_dict(service)
        return self.keys.is_exposed(labels_of(svc), annotations_of(svc))

    def is_selected(self, service) -> bool:
        if not self.config.services:
            return True
        return to_dict(service)["metadata"]["name"] in self.config.services

    def on_add(self, service) -> bool:
        """Expose a gated service. Returns False if reconciliation failed."""
        svc = to_dict(service)
        if not self.is_selected(svc) or not self.is_exposed(svc):
            return True
        metadata = svc["metadata"]
        try:
            self.strategy.add(svc)
        except ExposeError as e:
            logger.error("Add failed", strategy=self.strategy.kind,
                         namespace=metadata.get("namespace"), name=metadata.get("name"), error=str(e))
            return False
        return self._sync_related(svc)

    def on_update(self, old_service, new_service) -> bool:
        if self.is_exposed(new_service):
            return self.on_add(new_service)
        if old_service is not None and self.is_exposed(old_service):
            return self.on_remove(new_service)
        return True

    def on_remove(self, service) -> bool:
        """Tear down exposure of a service that is no longer gated."""
        svc = to_dict(service)
        if not self.is_selected(svc):
            return True
        metadata = svc["metadata"]
        try:
            self.strategy.remove(svc)
        except ExposeError as e:
            logger.error("Remove failed", strategy=self.strategy.kind,
                         namespace=metadata.get("namespace"), name=metadata.get("name"), error=str(e))
            return False
        return True

    def on_delete(self, service) -> bool:
        """Clean up after a deleted service; the service itself may already be gone."""
        svc = to_dict(service)
        metadata = svc["metadata"]
        try:
            self.strategy.remove(svc)
        except RemoteAPIError as e:
            if e.status == 404:
                logger.debug("Service already deleted", namespace=metadata.get("namespace"), name=metadata.get("name"))
                return True
            logger.error("Remove failed", strategy=self.strategy.kind,
                         namespace=metadata.get("namespace"), name=metadata.get("name"), error=str(e))
            return False
        except ExposeError as e:
            logger.error("Remove failed", strategy=self.strategy.kind,
                         namespace=metadata.get("namespace"), name=metadata.get("name"), error=str(e))
            return False
        return True

    def _sync_related(self, svc) -> bool:
        metadata = svc["metadata"]
        namespace, name = metadata["namespace"], metadata["name"]
        try:
            log_k8s_operation(logger, "get", "service", namespace=namespace, name=name)
            current = self.kube.core_v1.read_namespaced_service(name, namespace)
            self.related.sync(current)
        except ApiException as e:
            logger.error("Failed to reread service", namespace=namespace, name=name, error=str(e))
            return False
        except ExposeError as e:
            logger.error("Related resource sync failed", namespace=namespace, name=name, error=str(e))
            return False
        return True

    def list_services(self) -> List:
        try:
            if not self.namespaces:
                log_k8s_operation(logger, "list", "services", namespace="all")
                return self.kube.core_v1.list_service_for_all_namespaces().items or []
            services = []
            for namespace in self.namespaces:
                log_k8s_operation(logger, "list", "services", namespace=namespace)
                services.extend(self.kube.core_v1.list_namespaced_service(namespace).items or [])
            return services
        except ApiException as e:
            raise RemoteAPIError.wrap("failed to list services", e) from e

    def sync_all(self) -> SyncSummary:
        """Reconcile every service in the watched namespaces once.

        Gated services are added; services that still carry an exposure
        URL but lost their gate are removed.
        """
        log_function_entry(logger, "sync_all", namespaces=self.namespaces or "all")
        summary = SyncSummary()
        for service in self.list_services():
            svc = to_dict(service)
            if not self.is_selected(svc):
                summary.skipped += 1
            elif self.is_exposed(svc):
                if self.on_add(svc):
                    summary.exposed += 1
                else:
                    summary.failed += 1
            elif self.keys.expose_url in annotations_of(svc):
                if self.on_remove(svc):
                    summary.unexposed += 1
                else:
                    summary.failed += 1
            else:
                summary.skipped += 1

        summary.finished_at = datetime.utcnow()
        self.last_sync = summary
        log_expose_event(logger, "sync_completed", **summary.model_dump(exclude={"finished_at"}))
        log_function_exit(logger, "sync_all", failed=summary.failed)
        return summary

    def exposures(self, namespace: Optional[str] = None) -> List[ExposureInfo]:
        """Services currently carrying an exposure URL, sorted by namespace and name."""
        found = []
        for service in self.list_services():
            svc = to_dict(service)
            url = annotations_of(svc).get(self.keys.expose_url)
            metadata = svc["metadata"]
            if not url or (namespace and metadata.get("namespace") != namespace):
                continue
            found.append(ExposureInfo(
                name=metadata["name"],
                namespace=metadata["namespace"],
                url=url,
                service_type=(svc.get("spec") or {}).get("type"),
            ))
        return sorted(found, key=lambda e: (e.namespace, e.name))
