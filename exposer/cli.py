"""Command-line interface for exposer."""

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

from .logging_config import setup_logging, get_logger

logger = get_logger(__name__)

CONFIG_LOCATIONS = [Path("exposer.yaml"), Path("config.yaml"), Path("/etc/exposer/config.yml")]


def load_config(config: Optional[str]):
    """Load a ControllerConfig from the given file or a well-known location."""
    import yaml
    from .models import ControllerConfig

    config_path = None
    if config:
        config_path = Path(config)
        if not config_path.exists():
            print(f"Configuration file not found: {config_path}", file=sys.stderr)
            sys.exit(1)
    else:
        for path in CONFIG_LOCATIONS:
            if path.exists():
                config_path = path
                break

    if config_path is None:
        logger.warning("No configuration file found, using defaults")
        print("No configuration file found. Using default configuration.")
        return ControllerConfig()

    try:
        logger.debug("Loading configuration file", config_path=str(config_path))
        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}
        controller_config = ControllerConfig.model_validate(config_data)
    except Exception as e:
        logger.error("Failed to load configuration", config_path=str(config_path), error=str(e))
        print(f"Error loading configuration: {e}", file=sys.stderr)
        sys.exit(1)

    logger.info("Configuration loaded successfully",
                config_path=str(config_path),
                exposer=controller_config.exposer or "auto",
                domain=controller_config.domain or "auto")
    return controller_config


def build_controller(args: argparse.Namespace):
    """Connect to the cluster and build the Controller, exiting on configuration errors."""
    from .client import KubeClient
    from .controller import Controller
    from .errors import ExposeError

    controller_config = load_config(args.config)
    if getattr(args, "kubeconfig", None):
        controller_config.cluster.kubeconfig_path = args.kubeconfig
    if getattr(args, "context", None):
        controller_config.cluster.context = args.context

    try:
        kube = KubeClient(controller_config.cluster).connect()
        return Controller(kube, controller_config)
    except ExposeError as e:
        logger.error("Failed to configure exposer", error=str(e))
        print(f"Failed to configure exposer: {e}", file=sys.stderr)
        sys.exit(1)


def serve_command(args: argparse.Namespace) -> None:
    """Run the controller with its status API."""
    import uvicorn
    from .api import app, initialize_controller

    setup_logging(args.verbose)
    controller = build_controller(args)
    initialize_controller(controller)

    logger.info("Starting exposer server", host=args.host, port=args.port)
    print(f"Starting exposer server on {args.host}:{args.port}")
    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level="info" if not args.verbose else "debug"
    )


def sync_command(args: argparse.Namespace) -> None:
    """Reconcile every watched service once and print the outcome."""
    setup_logging(args.verbose)
    controller = build_controller(args)
    summary = controller.sync_all()

    if args.output == "json":
        print(json.dumps(summary.model_dump(), indent=2, default=str))
    else:
        print(f"Exposed: {summary.exposed}  Unexposed: {summary.unexposed}  "
              f"Failed: {summary.failed}  Skipped: {summary.skipped}")
    if summary.failed:
        sys.exit(2)


def detect_command(args: argparse.Namespace) -> None:
    """Show what auto-detection picks for the current cluster."""
    from .client import KubeClient
    from .detect import detect_cluster_type, detect_default_strategy, detect_domain
    from .errors import ExposeError
    from .models import ClusterConfig

    setup_logging(args.verbose)
    kube = KubeClient(ClusterConfig(kubeconfig_path=args.kubeconfig, context=args.context)).connect()
    try:
        print(f"Cluster type: {detect_cluster_type(kube).value}")
        print(f"Strategy:     {detect_default_strategy(kube)}")
        print(f"Domain:       {detect_domain(kube)}")
    except ExposeError as e:
        print(f"Detection failed: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        kube.disconnect()


def init_config_command(args: argparse.Namespace) -> None:
    """Generate a sample configuration file."""
    import yaml

    sample_config = {
        "exposer": "ingress",
        "domain": "192.168.99.100.nip.io",
        "urltemplate": "{service}.{namespace}.{domain}",
        "http": True,
        "tls-acme": False,
        "path-mode": "",
        "ingress-class": "nginx",
        "watch-namespaces": ["default"],
        "watch-current-namespace": False,
        "sync-interval": 30,
    }

    config_yaml = yaml.dump(sample_config, default_flow_style=False, sort_keys=False)

    if args.output:
        output_path = Path(args.output)
        output_path.write_text(config_yaml)
        print(f"Sample configuration written to {output_path}")
    else:
        print("Sample configuration:\n")
        print(config_yaml)


def validate_config_command(args: argparse.Namespace) -> None:
    """Validate a configuration file."""
    import yaml
    from .errors import ConfigurationError
    from .models import ControllerConfig
    from .strategies import STRATEGIES, normalize_kind
    from .urls import UrlFormat

    config_path = Path(args.config)

    try:
        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}

        controller_config = ControllerConfig.model_validate(config_data)
        kind = normalize_kind(controller_config.exposer)
        if kind and kind not in STRATEGIES:
            raise ConfigurationError(f"unknown exposer type {controller_config.exposer!r}, must be one of {sorted(STRATEGIES)}")
        url_format = UrlFormat(controller_config.url_template)
        print(f"✓ Configuration file {config_path} is valid")

        print("\nConfiguration summary:")
        print(f"  Exposer: {kind or 'auto'}")
        print(f"  Domain: {controller_config.domain or 'auto'}")
        print(f"  URL template: {url_format.template}")
        print(f"  TLS ACME: {controller_config.tls_acme}")
        print(f"  Path mode: {controller_config.path_mode or 'host'}")
        print(f"  Namespaces: {', '.join(controller_config.watch_namespaces) or 'all'}")

    except Exception as e:
        print(f"✗ Configuration file {config_path} is invalid: {e}", file=sys.stderr)
        sys.exit(1)


def version_command(args: argparse.Namespace) -> None:
    """Show version information."""
    from . import __version__
    print(f"Exposer {__version__}")


def _add_cluster_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--kubeconfig", help="Kubeconfig file (default: in-cluster, then ~/.kube/config)")
    parser.add_argument("--context", help="Kubeconfig context")


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Exposer: expose Kubernetes services and record their external URLs",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the controller with its status API")
    serve_parser.add_argument("--config", "-c", help="Configuration file path")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Host to bind to (default: 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, default=8080, help="Port to bind to (default: 8080)")
    _add_cluster_args(serve_parser)
    serve_parser.set_defaults(func=serve_command)

    sync_parser = subparsers.add_parser("sync", help="Reconcile all watched services once")
    sync_parser.add_argument("--config", "-c", help="Configuration file path")
    sync_parser.add_argument(
        "--output", "-o",
        choices=["json", "table"],
        default="table",
        help="Output format (default: table)"
    )
    _add_cluster_args(sync_parser)
    sync_parser.set_defaults(func=sync_command)

    detect_parser = subparsers.add_parser("detect", help="Show the auto-detected strategy and domain")
    _add_cluster_args(detect_parser)
    detect_parser.set_defaults(func=detect_command)

    init_parser = subparsers.add_parser("init-config", help="Generate a sample configuration file")
    init_parser.add_argument("--output", "-o", help="Output file path (default: stdout)")
    init_parser.set_defaults(func=init_config_command)

    validate_parser = subparsers.add_parser("validate-config", help="Validate a configuration file")
    validate_parser.add_argument("--config", "-c", required=True, help="Configuration file path")
    validate_parser.set_defaults(func=validate_config_command)

    version_parser = subparsers.add_parser("version", help="Show version information")
    version_parser.set_defaults(func=version_command)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
