"""Exposer: expose Kubernetes services and record their external URLs."""

__version__ = "0.1.0"

# Lazy imports to avoid loading the kubernetes client for CLI usage
__all__ = [
    "Controller",
    "ControllerConfig",
    "StrategyConfig",
    "new_strategy",
]


def __getattr__(name):
    if name == "Controller":
        from .controller import Controller
        return Controller
    elif name == "ControllerConfig":
        from .models import ControllerConfig
        return ControllerConfig
    elif name == "StrategyConfig":
        from .models import StrategyConfig
        return StrategyConfig
    elif name == "new_strategy":
        from .strategies import new_strategy
        return new_strategy
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
