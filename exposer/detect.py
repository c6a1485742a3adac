"""Cluster type, default strategy and domain auto-detection."""

from enum import Enum
from typing import List, Optional

from kubernetes.client.rest import ApiException

from .errors import ConfigurationError, RemoteAPIError, is_not_found
from .keys import DEFAULT_KEYS, ExposeKeys
from .logging_config import get_logger, log_k8s_operation

logger = get_logger(__name__)

ROUTE_API_GROUP = "route.openshift.io"
DEV_NODE_NAMES = ("minikube", "minishift")
DOMAIN_EXT = ".nip.io"

STACKPOINT_NAMESPACE = "stackpoint-system"
STACKPOINT_BALANCER = "spc-balancer"
STACKPOINT_IP_ENV_VAR = "BALANCER_IP"

# Preferred node address types, most external first
NODE_ADDRESS_PRIORITY = ("ExternalIP", "LegacyHostIP", "InternalIP")

NODEPORT = "nodeport"
ROUTE = "route"
INGRESS = "ingress"


class ClusterType(str, Enum):
    ROUTE_CAPABLE = "route-capable"
    STANDARD = "standard"


def detect_cluster_type(kube) -> ClusterType:
    """Classify the cluster from its advertised API groups."""
    log_k8s_operation(logger, "discover", "apigroups")
    try:
        group_list = kube.apis.get_api_versions()
    except ApiException as e:
        raise ConfigurationError(f"could not discover the type of your installation: {e.status} {e.reason}") from e

    groups = [group.name for group in (group_list.groups or [])]
    if ROUTE_API_GROUP in groups:
        return ClusterType.ROUTE_CAPABLE
    return ClusterType.STANDARD


def list_nodes(kube, label_selector: Optional[str] = None) -> List:
    log_k8s_operation(logger, "list", "nodes", label_selector=label_selector)
    try:
        if label_selector:
            return kube.core_v1.list_node(label_selector=label_selector).items or []
        return kube.core_v1.list_node().items or []
    except ApiException as e:
        raise RemoteAPIError.wrap("failed to list nodes", e) from e


def is_dev_node(node) -> bool:
    return node.metadata.name in DEV_NODE_NAMES


def node_external_ip(node) -> str:
    """Return the most external address of a node.

    ExternalIP wins over LegacyHostIP, which wins over InternalIP.
    """
    addresses = (node.status.addresses if node.status else None) or []
    by_type = {}
    for address in addresses:
        by_type.setdefault(address.type, address.address)
    for address_type in NODE_ADDRESS_PRIORITY:
        if address_type in by_type:
            return by_type[address_type]
    raise ConfigurationError(
        f"host IP unknown for node {node.metadata.name}; known addresses: "
        f"{[(a.type, a.address) for a in addresses]}"
    )


def _stackpoint_balancer_ip(kube) -> Optional[str]:
    log_k8s_operation(logger, "get", "pod", namespace=STACKPOINT_NAMESPACE, name=STACKPOINT_BALANCER)
    try:
        pod = kube.core_v1.read_namespaced_pod(STACKPOINT_BALANCER, STACKPOINT_NAMESPACE)
    except ApiException as e:
        if is_not_found(e):
            return None
        raise RemoteAPIError.wrap("failed to look up the stackpoint balancer", e) from e

    for container in pod.spec.containers or []:
        if container.name != STACKPOINT_BALANCER:
            continue
        for env in container.env or []:
            if env.name == STACKPOINT_IP_ENV_VAR and env.value:
                return env.value
    return None


def detect_domain(kube, keys: ExposeKeys = DEFAULT_KEYS) -> str:
    """Derive a wildcard DNS domain for the cluster.

    Tries, in order: a single minikube/minishift node, a single node
    labelled as the external IP node, and the stackpoint HA proxy.
    """
    nodes = list_nodes(kube)
    if len(nodes) == 1 and is_dev_node(nodes[0]):
        domain = node_external_ip(nodes[0]) + DOMAIN_EXT
        logger.info("Detected domain from dev cluster node", node=nodes[0].metadata.name, domain=domain)
        return domain

    labelled = list_nodes(kube, label_selector=f"{keys.external_ip_node}=true")
    if len(labelled) == 1:
        domain = node_external_ip(labelled[0]) + DOMAIN_EXT
        logger.info("Detected domain from external IP node", node=labelled[0].metadata.name, domain=domain)
        return domain

    balancer_ip = _stackpoint_balancer_ip(kube)
    if balancer_ip:
        domain = balancer_ip + DOMAIN_EXT
        logger.info("Detected domain from stackpoint balancer", domain=domain)
        return domain

    raise ConfigurationError(
        "no known automatic ways to get an external ip to use with nip.io. "
        "Please set 'domain' in the exposer configuration"
    )


def detect_default_strategy(kube) -> str:
    """Pick a strategy kind: node port on dev clusters, else route or ingress."""
    nodes = list_nodes(kube)
    if len(nodes) == 1 and is_dev_node(nodes[0]):
        return NODEPORT
    if detect_cluster_type(kube) == ClusterType.ROUTE_CAPABLE:
        return ROUTE
    return INGRESS
