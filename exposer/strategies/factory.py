"""Strategy selection from configuration or auto-detection."""

from typing import Dict, Type

from ..detect import INGRESS, ROUTE, detect_default_strategy, detect_domain
from ..errors import ConfigurationError
from ..keys import DEFAULT_KEYS, ExposeKeys
from ..logging_config import get_logger, log_function_entry, log_function_exit
from ..models import StrategyConfig
from .ambassador import AmbassadorStrategy
from .base import ExposeStrategy
from .ingress import IngressStrategy
from .loadbalancer import LoadBalancerStrategy
from .nodeport import NodePortStrategy
from .route import RouteStrategy

logger = get_logger(__name__)

STRATEGIES: Dict[str, Type[ExposeStrategy]] = {
    IngressStrategy.kind: IngressStrategy,
    RouteStrategy.kind: RouteStrategy,
    NodePortStrategy.kind: NodePortStrategy,
    LoadBalancerStrategy.kind: LoadBalancerStrategy,
    AmbassadorStrategy.kind: AmbassadorStrategy,
}


def normalize_kind(kind: str) -> str:
    """Lower-case a kind and drop separators, so "Node-Port" reads as "nodeport"."""
    return (kind or "").strip().lower().replace("-", "").replace("_", "")


def new_strategy(kube, config: StrategyConfig, keys: ExposeKeys = DEFAULT_KEYS) -> ExposeStrategy:
    """Build the strategy named by config.exposer, detecting one when it is empty.

    Raises:
        ConfigurationError: unknown kind, or the chosen strategy cannot run here.
    """
    log_function_entry(logger, "new_strategy", exposer=config.exposer, domain=config.domain)
    kind = normalize_kind(config.exposer)
    if not kind:
        return new_auto_strategy(kube, config, keys)

    strategy_class = STRATEGIES.get(kind)
    if strategy_class is None:
        raise ConfigurationError(
            f"unknown exposer type {config.exposer!r}, must be one of {sorted(STRATEGIES)}"
        )

    strategy = strategy_class(kube, config, keys)
    logger.info("Using exposer strategy", strategy=kind)
    log_function_exit(logger, "new_strategy", strategy=kind)
    return strategy


def new_auto_strategy(kube, config: StrategyConfig, keys: ExposeKeys = DEFAULT_KEYS) -> ExposeStrategy:
    """Detect the strategy kind and, where one is needed, the domain."""
    kind = detect_default_strategy(kube)
    logger.info("Detected exposer strategy", strategy=kind)

    update = {"exposer": kind}
    needs_domain = kind == INGRESS or (kind == ROUTE and not config.route_host)
    if needs_domain and not config.domain:
        update["domain"] = detect_domain(kube, keys)
        logger.info("Detected domain", domain=update["domain"])

    return new_strategy(kube, config.model_copy(update=update), keys)
