"""Shared fixtures: a fake cluster behind MagicMock API groups and service builders."""

import copy
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from exposer.detect import ROUTE_API_GROUP


def not_found():
    return ApiException(status=404, reason="Not Found")


def build_node(name="minikube", address="192.168.99.100", address_type="InternalIP", annotations=None):
    return client.V1Node(
        metadata=client.V1ObjectMeta(name=name, annotations=annotations),
        status=client.V1NodeStatus(addresses=[client.V1NodeAddress(type=address_type, address=address)]),
    )


def build_kube(route_capable=False, nodes=None, labelled_nodes=None):
    """A MagicMock standing in for KubeClient, with nothing existing in the cluster."""
    kube = MagicMock()
    groups = [SimpleNamespace(name="apps"), SimpleNamespace(name="networking.k8s.io")]
    if route_capable:
        groups.append(SimpleNamespace(name=ROUTE_API_GROUP))
    kube.apis.get_api_versions.return_value = SimpleNamespace(groups=groups)

    if nodes is None:
        nodes = [build_node()]

    def list_node(label_selector=None):
        if label_selector:
            return SimpleNamespace(items=list(labelled_nodes or []))
        return SimpleNamespace(items=list(nodes))

    kube.core_v1.list_node.side_effect = list_node
    kube.core_v1.read_namespaced_pod.side_effect = not_found()
    kube.networking_v1.read_namespaced_ingress.side_effect = not_found()
    kube.custom_objects.get_namespaced_custom_object.side_effect = not_found()
    return kube


def build_service(name="app", namespace="default", labels=None, annotations=None, ports=None,
                  service_type="ClusterIP", uid=None, status=None):
    """A service in wire form."""
    metadata = {"name": name, "namespace": namespace}
    if labels is not None:
        metadata["labels"] = dict(labels)
    if annotations is not None:
        metadata["annotations"] = dict(annotations)
    if uid:
        metadata["uid"] = uid
    service = {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": metadata,
        "spec": {
            "type": service_type,
            "ports": copy.deepcopy(ports) if ports is not None else [{"name": "http", "port": 8080, "protocol": "TCP"}],
        },
    }
    if status is not None:
        service["status"] = status
    return service


def sent_service_patch(kube):
    """The patch body of the last patch_namespaced_service call."""
    return kube.core_v1.patch_namespaced_service.call_args[0][2]


@pytest.fixture
def kube():
    """A single node minikube cluster without the route API."""
    return build_kube()


@pytest.fixture
def service():
    return build_service(labels={"expose": "true"}, annotations={"fabric8.io/expose": "true"})
