"""Expose services through networking.k8s.io/v1 Ingress resources."""

import copy
from typing import Any, Dict, List, Optional

from kubernetes.client.rest import ApiException

from ..errors import RemoteAPIError, is_not_found
from ..logging_config import get_logger, log_expose_event, log_k8s_operation
from ..patch import add_exposure_annotation, annotations_of, compute_patch, patch_service, to_dict
from ..urls import infer_protocol
from .base import PATH_MODE_USE_PATH, HostedStrategy, Target, app_name, exposed_port, service_ref

logger = get_logger(__name__)

TLS_ACME_ANNOTATION = "kubernetes.io/tls-acme"
INGRESS_CLASS_ANNOTATIONS = (
    "kubernetes.io/ingress.class",
    "nginx.ingress.kubernetes.io/ingress.class",
)
DEFAULT_INGRESS_CLASS = "nginx"
GENERATED_BY = "exposer"


def parse_ingress_annotations(value: str) -> Dict[str, str]:
    """Parse newline separated "key: value" pairs."""
    parsed = {}
    for line in (value or "").splitlines():
        if not line.strip():
            continue
        key, sep, val = line.partition(":")
        if not sep:
            logger.warning("Ignoring ingress annotation without a value", line=line)
            continue
        parsed[key.strip()] = val.strip()
    return parsed


def _backend_path(service_name: str, path: str, port: int) -> Dict[str, Any]:
    return {
        "path": path,
        "pathType": "Prefix",
        "backend": {"service": {"name": service_name, "port": {"number": port}}},
    }


def _backend_service(path: Dict[str, Any]) -> Dict[str, Any]:
    return ((path.get("backend") or {}).get("service")) or {}


class IngressStrategy(HostedStrategy):
    """One Ingress per application name, shared by every service routed on its host."""

    kind = "ingress"

    def add(self, service) -> None:
        original = to_dict(service)
        metadata = original["metadata"]
        namespace, name = metadata["namespace"], metadata["name"]

        app = app_name(original, self.keys)
        target = self.target(original, app)
        port = exposed_port(original, self.keys)
        use_tls = self.use_tls(original)
        logger.info("Processing ingress for service", service=service_ref(original), app=app,
                    host=target.host, path=target.path, path_mode=target.path_mode or "host", port=port)

        existing = self._get(namespace, app)
        current = existing if existing is not None else self._shell(namespace, app)
        desired = self.desired_ingress(current, original, app, target, port, use_tls)

        if existing is None:
            log_k8s_operation(logger, "create", "ingress", namespace=namespace, name=app)
            try:
                self.kube.networking_v1.create_namespaced_ingress(namespace, desired)
            except ApiException as e:
                raise RemoteAPIError.wrap(f"failed to create ingress {namespace}/{app}", e) from e
        else:
            patch = compute_patch(existing, desired)
            if patch is not None:
                log_k8s_operation(logger, "patch", "ingress", namespace=namespace, name=app, patch=patch)
                try:
                    self.kube.networking_v1.patch_namespaced_ingress(app, namespace, patch)
                except ApiException as e:
                    raise RemoteAPIError.wrap(f"failed to update ingress {namespace}/{app}", e) from e

        protocol = "https" if use_tls else infer_protocol(original, target.url_host)
        patch_service(self.kube, original, add_exposure_annotation(original, target.url_host, protocol, self.keys))
        log_expose_event(logger, "exposed", strategy=self.kind, namespace=namespace, name=name,
                         host=target.url_host, protocol=protocol)

    def remove(self, service) -> None:
        original = to_dict(service)
        namespace = original["metadata"]["namespace"]
        app = app_name(original, self.keys)

        log_k8s_operation(logger, "delete", "ingress", namespace=namespace, name=app)
        try:
            self.kube.networking_v1.delete_namespaced_ingress(app, namespace)
        except ApiException as e:
            if not is_not_found(e):
                raise RemoteAPIError.wrap(f"failed to delete ingress {namespace}/{app}", e) from e
            logger.debug("Ingress already gone", namespace=namespace, name=app)

        self._unannotate(original)
        log_expose_event(logger, "unexposed", strategy=self.kind, namespace=namespace, name=original["metadata"]["name"])

    def _get(self, namespace: str, name: str) -> Optional[Dict[str, Any]]:
        log_k8s_operation(logger, "get", "ingress", namespace=namespace, name=name)
        try:
            return to_dict(self.kube.networking_v1.read_namespaced_ingress(name, namespace))
        except ApiException as e:
            if is_not_found(e):
                return None
            raise RemoteAPIError.wrap(f"could not check for existing ingress {namespace}/{name}", e) from e

    def _shell(self, namespace: str, name: str) -> Dict[str, Any]:
        return {
            "apiVersion": "networking.k8s.io/v1",
            "kind": "Ingress",
            "metadata": {"namespace": namespace, "name": name},
            "spec": {},
        }

    def desired_ingress(self, current: Dict[str, Any], service: Dict[str, Any], app: str,
                        target: Target, port: int, use_tls: bool) -> Dict[str, Any]:
        """Merge the service's rule into a copy of the current ingress."""
        ingress = copy.deepcopy(current)
        metadata = ingress.setdefault("metadata", {})
        svc_meta = service["metadata"]

        labels = dict(metadata.get("labels") or {})
        labels.setdefault(self.keys.provider_label.key, self.keys.provider_label.value)
        metadata["labels"] = labels

        annotations = dict(metadata.get("annotations") or {})
        annotations.setdefault(self.keys.generated_by, GENERATED_BY)
        if target.path_mode == PATH_MODE_USE_PATH:
            for key in INGRESS_CLASS_ANNOTATIONS:
                annotations.setdefault(key, self.config.ingress_class or DEFAULT_INGRESS_CLASS)
        if self.tls_acme:
            annotations[TLS_ACME_ANNOTATION] = "true"
        annotations.update(parse_ingress_annotations(annotations_of(service).get(self.keys.ingress_annotations, "")))
        metadata["annotations"] = annotations

        uid = svc_meta.get("uid")
        owners = list(metadata.get("ownerReferences") or [])
        if uid and not any(owner.get("uid") == uid for owner in owners):
            owners.append({"apiVersion": "v1", "kind": "Service", "name": svc_meta["name"], "uid": uid})
            metadata["ownerReferences"] = owners

        spec = ingress.setdefault("spec", {})
        spec["rules"] = self._merge_rules(spec.get("rules") or [], svc_meta["name"], target, port)

        if use_tls:
            secret = f"tls-{app}"
            tls = [entry for entry in spec.get("tls") or [] if entry.get("secretName") != secret]
            tls.append({"hosts": [target.host], "secretName": secret})
            spec["tls"] = tls
        return ingress

    @staticmethod
    def _merge_rules(rules: List[Dict[str, Any]], service_name: str, target: Target, port: int) -> List[Dict[str, Any]]:
        merged = []
        placed = False
        for rule in rules:
            if rule.get("host") != target.host or placed:
                merged.append(rule)
                continue
            placed = True
            paths = list((rule.get("http") or {}).get("paths") or [])
            for i, path in enumerate(paths):
                backend = _backend_service(path)
                if backend.get("name") == service_name and path.get("path") == target.path:
                    # already routed; only the port may have moved
                    if (backend.get("port") or {}).get("number") != port:
                        paths[i] = _backend_path(service_name, target.path, port)
                    break
            else:
                paths.insert(0, _backend_path(service_name, target.path, port))
            merged.append({**rule, "http": {**(rule.get("http") or {}), "paths": paths}})

        if not placed:
            merged.append({"host": target.host, "http": {"paths": [_backend_path(service_name, target.path, port)]}})
        return merged
