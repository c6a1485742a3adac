"""Expose services on the node port of a single node cluster."""

import copy

from ..detect import list_nodes, node_external_ip
from ..errors import ConfigurationError, ValidationError
from ..keys import DEFAULT_KEYS, ExposeKeys
from ..logging_config import get_logger, log_expose_event
from ..models import StrategyConfig
from ..patch import add_exposure_annotation, patch_service, to_dict
from ..urls import infer_protocol
from .base import ExposeStrategy, service_ref

logger = get_logger(__name__)

SERVICE_TYPE_NODE_PORT = "NodePort"


def join_host_port(host: str, port) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


class NodePortStrategy(ExposeStrategy):
    """Switch services to NodePort and record <node ip>:<node port>."""

    kind = "nodeport"

    def __init__(self, kube, config: StrategyConfig, keys: ExposeKeys = DEFAULT_KEYS):
        super().__init__(kube, config, keys)
        nodes = list_nodes(kube)
        if len(nodes) != 1:
            raise ConfigurationError(
                f"node port strategy can only be used with single node clusters - found {len(nodes)} nodes"
            )
        node = nodes[0]
        node_annotations = node.metadata.annotations or {}
        self.node_ip = config.node_ip or node_annotations.get(keys.external_ip_node) or node_external_ip(node)
        logger.info("Using node IP", node=node.metadata.name, node_ip=self.node_ip)

    def add(self, service) -> None:
        original = to_dict(service)
        ports = (original.get("spec") or {}).get("ports") or []
        if not ports:
            raise ValidationError(
                f"service {service_ref(original)} has no ports specified. Node port strategy requires a node port"
            )
        if len(ports) > 1:
            raise ValidationError(
                f"service {service_ref(original)} has multiple ports specified ({len(ports)}). "
                "Node port strategy can only be used with single port services"
            )

        desired = copy.deepcopy(original)
        spec = desired.setdefault("spec", {})
        spec["type"] = SERVICE_TYPE_NODE_PORT
        spec.pop("externalIPs", None)

        node_port = ports[0].get("nodePort") or 0
        if node_port > 0:
            host = join_host_port(self.node_ip, node_port)
            desired = add_exposure_annotation(desired, host, infer_protocol(original, host), self.keys)
        else:
            logger.debug("Node port not allocated yet", service=service_ref(original))

        patch_service(self.kube, original, desired)
        log_expose_event(logger, "exposed", strategy=self.kind, service=service_ref(original), node_port=node_port)

    def remove(self, service) -> None:
        self._unannotate(service)
        log_expose_event(logger, "unexposed", strategy=self.kind, service=service_ref(to_dict(service)))
