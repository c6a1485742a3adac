"""Tests for the OpenShift route expose strategy."""

import pytest

from exposer.errors import ConfigurationError
from exposer.models import StrategyConfig
from exposer.strategies.route import RouteStrategy

from conftest import build_kube, build_node, build_service, not_found, sent_service_patch


def created_route(kube):
    return kube.custom_objects.create_namespaced_custom_object.call_args[0][4]


class TestRouteStrategy:
    """Tests for RouteStrategy."""

    @pytest.fixture
    def kube(self):
        return build_kube(route_capable=True, nodes=[build_node(name="n1"), build_node(name="n2")])

    def test_rejects_standard_cluster(self):
        with pytest.raises(ConfigurationError, match="not supported on Kubernetes"):
            RouteStrategy(build_kube(), StrategyConfig(domain="example.com"))

    def test_needs_domain_or_route_host(self, kube):
        with pytest.raises(ConfigurationError):
            RouteStrategy(kube, StrategyConfig())

    def test_route_host_skips_domain_detection(self, kube):
        strategy = RouteStrategy(kube, StrategyConfig(route_host="apps.example.com"))
        assert strategy.domain == ""
        kube.core_v1.list_node.assert_not_called()

    @pytest.mark.parametrize("config,expected", [
        (StrategyConfig(domain="example.com"), ("app.default.example.com", "")),
        (StrategyConfig(domain="example.com", route_namespaced_host=False), ("app.example.com", "")),
        (StrategyConfig(route_host="apps.example.com"), ("apps.example.com", "")),
        (StrategyConfig(route_host="apps.example.com", route_use_path=True), ("apps.example.com", "/default/app")),
        (StrategyConfig(domain="example.com", route_use_path=True), ("app.default.example.com", "")),
    ])
    def test_host_and_path(self, kube, config, expected):
        assert RouteStrategy(kube, config).host_and_path(build_service()) == expected

    def test_add_creates_route(self, kube):
        strategy = RouteStrategy(kube, StrategyConfig(domain="example.com"))
        strategy.add(build_service())

        args = kube.custom_objects.create_namespaced_custom_object.call_args[0]
        assert args[:4] == ("route.openshift.io", "v1", "default", "routes")
        route = created_route(kube)
        assert route["kind"] == "Route"
        assert route["metadata"] == {"namespace": "default", "name": "app", "labels": {"provider": "fabric8"}}
        assert route["spec"] == {"host": "app.default.example.com", "to": {"kind": "Service", "name": "app"}}
        assert sent_service_patch(kube)["metadata"]["annotations"]["fabric8.io/exposeUrl"] == \
            "http://app.default.example.com"

    def test_add_with_path(self, kube):
        strategy = RouteStrategy(kube, StrategyConfig(route_host="apps.example.com", route_use_path=True))
        strategy.add(build_service())
        assert created_route(kube)["spec"]["path"] == "/default/app"
        assert sent_service_patch(kube)["metadata"]["annotations"]["fabric8.io/exposeUrl"] == \
            "http://apps.example.com/default/app"

    def test_add_is_idempotent(self, kube):
        strategy = RouteStrategy(kube, StrategyConfig(domain="example.com"))
        strategy.add(build_service())
        kube.custom_objects.get_namespaced_custom_object.side_effect = None
        kube.custom_objects.get_namespaced_custom_object.return_value = created_route(kube)
        annotated = build_service(annotations=sent_service_patch(kube)["metadata"]["annotations"])
        kube.core_v1.patch_namespaced_service.reset_mock()

        strategy.add(annotated)
        kube.custom_objects.patch_namespaced_custom_object.assert_not_called()
        kube.core_v1.patch_namespaced_service.assert_not_called()

    def server_route(self, to_name="app"):
        """A route as the API server returns it, with defaulted fields and status."""
        return {
            "apiVersion": "route.openshift.io/v1",
            "kind": "Route",
            "metadata": {
                "namespace": "default", "name": "app", "labels": {"provider": "fabric8"},
                "resourceVersion": "48213", "uid": "6b1e0c55-1f0a-4bde-9d1c-8a0c3f2e7d10",
                "creationTimestamp": "2023-01-01T12:00:00Z",
            },
            "spec": {
                "host": "app.default.example.com",
                "to": {"kind": "Service", "name": to_name, "weight": 100},
                "wildcardPolicy": "None",
            },
            "status": {"ingress": [{"host": "app.default.example.com", "routerName": "default",
                                    "wildcardPolicy": "None"}]},
        }

    def test_add_against_server_defaults_is_idempotent(self, kube):
        strategy = RouteStrategy(kube, StrategyConfig(domain="example.com"))
        kube.custom_objects.get_namespaced_custom_object.side_effect = None
        kube.custom_objects.get_namespaced_custom_object.return_value = self.server_route()

        strategy.add(build_service(annotations={"fabric8.io/exposeUrl": "http://app.default.example.com"}))
        kube.custom_objects.create_namespaced_custom_object.assert_not_called()
        kube.custom_objects.patch_namespaced_custom_object.assert_not_called()
        kube.core_v1.patch_namespaced_service.assert_not_called()

    def test_retarget_keeps_weight(self, kube):
        strategy = RouteStrategy(kube, StrategyConfig(domain="example.com"))
        kube.custom_objects.get_namespaced_custom_object.side_effect = None
        kube.custom_objects.get_namespaced_custom_object.return_value = self.server_route(to_name="old")

        strategy.add(build_service())
        assert kube.custom_objects.patch_namespaced_custom_object.call_args[0][5] == {"spec": {"to": {"name": "app"}}}

    def test_stale_path_is_dropped(self, kube):
        strategy = RouteStrategy(kube, StrategyConfig(route_host="apps.example.com"))
        kube.custom_objects.get_namespaced_custom_object.side_effect = None
        kube.custom_objects.get_namespaced_custom_object.return_value = {
            "apiVersion": "route.openshift.io/v1",
            "kind": "Route",
            "metadata": {"namespace": "default", "name": "app", "labels": {"provider": "fabric8"}},
            "spec": {"host": "apps.example.com", "path": "/default/app",
                     "to": {"kind": "Service", "name": "app"}, "wildcardPolicy": "None"},
        }
        strategy.add(build_service())

        args = kube.custom_objects.patch_namespaced_custom_object.call_args[0]
        assert args[:5] == ("route.openshift.io", "v1", "default", "routes", "app")
        assert args[5] == {"spec": {"path": None}}

    def test_remove(self, kube):
        strategy = RouteStrategy(kube, StrategyConfig(domain="example.com"))
        strategy.remove(build_service(annotations={"fabric8.io/exposeUrl": "http://x"}))
        kube.custom_objects.delete_namespaced_custom_object.assert_called_once_with(
            "route.openshift.io", "v1", "default", "routes", "app")
        assert sent_service_patch(kube) == {"metadata": {"annotations": {"fabric8.io/exposeUrl": None}}}

    def test_remove_missing_route(self, kube):
        strategy = RouteStrategy(kube, StrategyConfig(domain="example.com"))
        kube.custom_objects.delete_namespaced_custom_object.side_effect = not_found()
        strategy.remove(build_service())
        kube.core_v1.patch_namespaced_service.assert_not_called()
