"""Tests for the diff/patch engine and exposure annotations."""

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException
from unittest.mock import MagicMock

from exposer.errors import RemoteAPIError
from exposer.keys import ExposeKeys
from exposer.patch import (
    add_exposure_annotation,
    compute_patch,
    patch_service,
    remove_exposure_annotation,
    to_dict,
)

from conftest import build_service


class TestToDict:
    """Tests for to_dict."""

    def test_model_is_serialized_in_wire_form(self):
        svc = client.V1Service(
            metadata=client.V1ObjectMeta(name="app", namespace="default"),
            spec=client.V1ServiceSpec(ports=[client.V1ServicePort(port=80, node_port=30080)]),
        )
        result = to_dict(svc)
        assert result["metadata"] == {"name": "app", "namespace": "default"}
        assert result["spec"]["ports"] == [{"port": 80, "nodePort": 30080}]

    def test_dict_is_copied(self):
        svc = build_service()
        copied = to_dict(svc)
        copied["metadata"]["name"] = "other"
        assert svc["metadata"]["name"] == "app"

    def test_none(self):
        assert to_dict(None) == {}


class TestComputePatch:
    """Tests for compute_patch."""

    def test_identical_objects_give_no_patch(self):
        assert compute_patch(build_service(), build_service()) is None

    def test_key_order_does_not_matter(self):
        a = {"metadata": {"name": "a", "namespace": "b"}}
        b = {"metadata": {"namespace": "b", "name": "a"}}
        assert compute_patch(a, b) is None

    def test_added_annotation(self):
        before = build_service(annotations={"a": "1"})
        after = build_service(annotations={"a": "1", "b": "2"})
        assert compute_patch(before, after) == {"metadata": {"annotations": {"b": "2"}}}

    def test_removed_key_is_null(self):
        before = build_service(annotations={"a": "1", "b": "2"})
        after = build_service(annotations={"a": "1"})
        assert compute_patch(before, after) == {"metadata": {"annotations": {"b": None}}}

    def test_lists_are_replaced(self):
        before = build_service()
        after = build_service(ports=[{"name": "http", "port": 9090, "protocol": "TCP"}])
        assert compute_patch(before, after) == {"spec": {"ports": [{"name": "http", "port": 9090, "protocol": "TCP"}]}}


class TestExposureAnnotation:
    """Tests for adding and removing the exposure URL."""

    def test_add(self):
        svc = build_service()
        result = add_exposure_annotation(svc, "app.example.com", "http")
        assert result["metadata"]["annotations"]["fabric8.io/exposeUrl"] == "http://app.example.com"
        assert "annotations" not in svc["metadata"]

    def test_add_appends_api_path(self):
        svc = build_service(annotations={"api.service.kubernetes.io/path": "/api/v1"})
        result = add_exposure_annotation(svc, "app.example.com", "https")
        assert result["metadata"]["annotations"]["fabric8.io/exposeUrl"] == "https://app.example.com/api/v1"

    def test_add_mirrors_host_name(self):
        svc = build_service(annotations={"fabric8.io/exposeHostNameAs": "osiris.deislabs.io/ingressHostname"})
        result = add_exposure_annotation(svc, "app.example.com", "http")
        assert result["metadata"]["annotations"]["osiris.deislabs.io/ingressHostname"] == "app.example.com"

    def test_remove_after_add_restores_service(self):
        svc = build_service(annotations={
            "fabric8.io/expose": "true",
            "fabric8.io/exposeHostNameAs": "example.io/host",
        })
        exposed = add_exposure_annotation(svc, "app.example.com", "http")
        assert compute_patch(svc, exposed) is not None
        assert compute_patch(svc, remove_exposure_annotation(exposed)) is None

    def test_remove_without_annotations(self):
        svc = build_service()
        assert remove_exposure_annotation(svc) == svc

    def test_custom_keys(self):
        keys = ExposeKeys(expose_url="example.io/url")
        result = add_exposure_annotation(build_service(), "h", "http", keys)
        assert result["metadata"]["annotations"] == {"example.io/url": "http://h"}


class TestPatchService:
    """Tests for patch_service."""

    def test_unchanged_service_is_not_patched(self):
        kube = MagicMock()
        svc = build_service()
        assert patch_service(kube, svc, build_service()) is None
        kube.core_v1.patch_namespaced_service.assert_not_called()

    def test_sends_patch(self):
        kube = MagicMock()
        svc = build_service()
        patch = patch_service(kube, svc, add_exposure_annotation(svc, "h", "http"))
        kube.core_v1.patch_namespaced_service.assert_called_once_with("app", "default", patch)
        assert patch == {"metadata": {"annotations": {"fabric8.io/exposeUrl": "http://h"}}}

    def test_api_error(self):
        kube = MagicMock()
        kube.core_v1.patch_namespaced_service.side_effect = ApiException(status=409, reason="Conflict")
        svc = build_service()
        with pytest.raises(RemoteAPIError) as exc_info:
            patch_service(kube, svc, add_exposure_annotation(svc, "h", "http"))
        assert exc_info.value.status == 409
        assert "default/app" in str(exc_info.value)
