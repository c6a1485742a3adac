"""Expose strategies: the ways a service can be made reachable from outside the cluster."""

from .ambassador import AmbassadorStrategy
from .base import ExposeStrategy
from .factory import STRATEGIES, new_auto_strategy, new_strategy, normalize_kind
from .ingress import IngressStrategy
from .loadbalancer import LoadBalancerStrategy
from .nodeport import NodePortStrategy
from .route import RouteStrategy

__all__ = [
    "ExposeStrategy",
    "IngressStrategy",
    "RouteStrategy",
    "NodePortStrategy",
    "LoadBalancerStrategy",
    "AmbassadorStrategy",
    "STRATEGIES",
    "new_strategy",
    "new_auto_strategy",
    "normalize_kind",
]
