"""Tests for strategy selection."""

import pytest

from exposer.errors import ConfigurationError
from exposer.models import StrategyConfig
from exposer.strategies import (
    AmbassadorStrategy,
    IngressStrategy,
    LoadBalancerStrategy,
    NodePortStrategy,
    RouteStrategy,
    new_strategy,
    normalize_kind,
)

from conftest import build_kube, build_node


class TestNormalizeKind:
    """Tests for normalize_kind."""

    @pytest.mark.parametrize("kind,expected", [
        ("Ingress", "ingress"),
        ("Node-Port", "nodeport"),
        ("load_balancer", "loadbalancer"),
        (" Route ", "route"),
        ("", ""),
    ])
    def test_normalize(self, kind, expected):
        assert normalize_kind(kind) == expected


class TestNewStrategy:
    """Tests for new_strategy."""

    @pytest.mark.parametrize("kind,strategy_class", [
        ("ingress", IngressStrategy),
        ("Ambassador", AmbassadorStrategy),
        ("LoadBalancer", LoadBalancerStrategy),
        ("NodePort", NodePortStrategy),
    ])
    def test_named_kind(self, kind, strategy_class):
        strategy = new_strategy(build_kube(), StrategyConfig(exposer=kind, domain="example.com"))
        assert isinstance(strategy, strategy_class)
        assert strategy.kind == normalize_kind(kind)

    def test_route(self):
        kube = build_kube(route_capable=True)
        assert isinstance(new_strategy(kube, StrategyConfig(exposer="Route", domain="example.com")), RouteStrategy)

    def test_unknown_kind(self):
        with pytest.raises(ConfigurationError) as exc_info:
            new_strategy(build_kube(), StrategyConfig(exposer="gateway"))
        message = str(exc_info.value)
        assert "gateway" in message
        assert "['ambassador', 'ingress', 'loadbalancer', 'nodeport', 'route']" in message

    def test_strategy_cluster_mismatch(self):
        with pytest.raises(ConfigurationError):
            new_strategy(build_kube(route_capable=True), StrategyConfig(exposer="ingress", domain="example.com"))


class TestAutoStrategy:
    """Tests for strategy auto-detection."""

    def test_minikube(self):
        strategy = new_strategy(build_kube(), StrategyConfig())
        assert isinstance(strategy, NodePortStrategy)
        assert strategy.node_ip == "192.168.99.100"

    def test_standard_cluster_detects_domain(self):
        kube = build_kube(
            nodes=[build_node(name="n1"), build_node(name="n2")],
            labelled_nodes=[build_node(name="n2", address="52.0.0.2", address_type="ExternalIP")],
        )
        strategy = new_strategy(kube, StrategyConfig())
        assert isinstance(strategy, IngressStrategy)
        assert strategy.domain == "52.0.0.2.nip.io"

    def test_configured_domain_is_kept(self):
        kube = build_kube(nodes=[build_node(name="n1"), build_node(name="n2")])
        strategy = new_strategy(kube, StrategyConfig(domain="example.com"))
        assert isinstance(strategy, IngressStrategy)
        assert strategy.domain == "example.com"

    def test_route_capable_cluster_with_route_host(self):
        kube = build_kube(route_capable=True, nodes=[build_node(name="n1"), build_node(name="n2")])
        strategy = new_strategy(kube, StrategyConfig(route_host="apps.example.com"))
        assert isinstance(strategy, RouteStrategy)
        assert strategy.route_host == "apps.example.com"

    def test_undetectable_domain(self):
        kube = build_kube(nodes=[build_node(name="n1"), build_node(name="n2")])
        with pytest.raises(ConfigurationError, match="Please set 'domain'"):
            new_strategy(kube, StrategyConfig())
