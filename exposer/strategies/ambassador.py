"""Expose services through Ambassador mappings stored on the service itself."""

from typing import Any, Dict

import yaml

from ..logging_config import get_logger, log_expose_event
from ..patch import add_exposure_annotation, patch_service, remove_exposure_annotation, to_dict
from ..urls import infer_protocol
from .base import HostedStrategy, Target, app_name, exposed_port, service_ref

logger = get_logger(__name__)

AMBASSADOR_API_VERSION = "ambassador/v1"


def ambassador_config(service: Dict[str, Any], app: str, target: Target, port: int, use_tls: bool) -> str:
    """Render the multi-document Ambassador config for one service."""
    namespace = service["metadata"]["namespace"]
    mapping = {
        "apiVersion": AMBASSADOR_API_VERSION,
        "kind": "Mapping",
        "host": target.host,
        "name": f"{target.host}_mapping",
        "service": f"{app}.{namespace}:{port}",
    }
    if target.path != "/":
        mapping["prefix"] = target.path
    documents = [mapping]
    if use_tls:
        documents.append({
            "apiVersion": AMBASSADOR_API_VERSION,
            "kind": "Module",
            "name": "tls",
            "config": {"server": {"enabled": "True", "secret": f"tls-{app}"}},
        })
    return "".join("---\n" + yaml.safe_dump(document, default_flow_style=False) for document in documents)


class AmbassadorStrategy(HostedStrategy):
    """Writes a getambassador.io/config annotation read by the Ambassador controller."""

    kind = "ambassador"

    def add(self, service) -> None:
        original = to_dict(service)
        app = app_name(original, self.keys)
        target = self.target(original, app)
        port = exposed_port(original, self.keys)
        use_tls = self.use_tls(original)
        logger.info("Exposing port of service", service=service_ref(original), port=port, host=target.host)

        protocol = "https" if use_tls else infer_protocol(original, target.url_host)
        desired = add_exposure_annotation(original, target.url_host, protocol, self.keys)
        desired["metadata"]["annotations"][self.keys.ambassador_config] = ambassador_config(
            original, app, target, port, use_tls)

        patch_service(self.kube, original, desired)
        log_expose_event(logger, "exposed", strategy=self.kind, service=service_ref(original), host=target.url_host)

    def remove(self, service) -> None:
        original = to_dict(service)
        desired = remove_exposure_annotation(original, self.keys)
        annotations = (desired.get("metadata") or {}).get("annotations")
        if annotations:
            annotations.pop(self.keys.ambassador_config, None)

        patch_service(self.kube, original, desired)
        log_expose_event(logger, "unexposed", strategy=self.kind, service=service_ref(original))
