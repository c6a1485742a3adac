"""Expose services through a cloud load balancer."""

import copy
from typing import Any, Dict, Optional

from ..logging_config import get_logger, log_expose_event
from ..patch import add_exposure_annotation, patch_service, to_dict
from ..urls import infer_protocol
from .base import ExposeStrategy, service_ref

logger = get_logger(__name__)

SERVICE_TYPE_LOAD_BALANCER = "LoadBalancer"


def load_balancer_address(service: Dict[str, Any]) -> Optional[str]:
    """Address assigned to the service's load balancer, if any yet."""
    ingress = (((service.get("status") or {}).get("loadBalancer") or {}).get("ingress")) or []
    for entry in ingress:
        if entry.get("ip") or entry.get("hostname"):
            return entry.get("ip") or entry.get("hostname")
    return (service.get("spec") or {}).get("loadBalancerIP") or None


class LoadBalancerStrategy(ExposeStrategy):

    kind = "loadbalancer"

    def add(self, service) -> None:
        original = to_dict(service)
        desired = copy.deepcopy(original)
        desired.setdefault("spec", {})["type"] = SERVICE_TYPE_LOAD_BALANCER

        address = load_balancer_address(original)
        if address:
            desired = add_exposure_annotation(desired, address, infer_protocol(original, address), self.keys)
        else:
            logger.info("Load balancer address not assigned yet", service=service_ref(original))

        patch_service(self.kube, original, desired)
        log_expose_event(logger, "exposed", strategy=self.kind, service=service_ref(original), address=address)

    def remove(self, service) -> None:
        self._unannotate(service)
        log_expose_event(logger, "unexposed", strategy=self.kind, service=service_ref(to_dict(service)))
