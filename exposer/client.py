"""Kubernetes API access for exposer."""

from typing import Optional

from kubernetes import client, config

from .logging_config import get_logger, log_function_entry, log_function_exit, log_k8s_operation
from .models import ClusterConfig

logger = get_logger(__name__)


class KubeClient:
    """Holds the typed Kubernetes API groups exposer talks to."""

    def __init__(self, cluster_config: Optional[ClusterConfig] = None):
        self.cluster_config = cluster_config or ClusterConfig()
        self._k8s_client: Optional[client.ApiClient] = None
        self.core_v1: Optional[client.CoreV1Api] = None
        self.networking_v1: Optional[client.NetworkingV1Api] = None
        self.custom_objects: Optional[client.CustomObjectsApi] = None
        self.apis: Optional[client.ApisApi] = None
        logger.debug("KubeClient initialized", cluster_name=self.cluster_config.name)

    @property
    def connected(self) -> bool:
        return self._k8s_client is not None

    def connect(self) -> "KubeClient":
        """Load kubeconfig (or in-cluster config) and build the API clients."""
        log_function_entry(logger, "connect", cluster_name=self.cluster_config.name)
        log_k8s_operation(logger, "connect", "cluster",
                          kubeconfig_path=self.cluster_config.kubeconfig_path,
                          context=self.cluster_config.context)

        try:
            if self.cluster_config.kubeconfig_path:
                logger.debug("Loading kubeconfig from file",
                             kubeconfig_path=self.cluster_config.kubeconfig_path,
                             context=self.cluster_config.context)
                config.load_kube_config(
                    config_file=self.cluster_config.kubeconfig_path,
                    context=self.cluster_config.context
                )
            else:
                try:
                    logger.debug("Loading in-cluster config")
                    config.load_incluster_config()
                except config.ConfigException:
                    logger.debug("Not running in a cluster, falling back to default kubeconfig",
                                 context=self.cluster_config.context)
                    config.load_kube_config(context=self.cluster_config.context)

            self._k8s_client = client.ApiClient()
            self.core_v1 = client.CoreV1Api(self._k8s_client)
            self.networking_v1 = client.NetworkingV1Api(self._k8s_client)
            self.custom_objects = client.CustomObjectsApi(self._k8s_client)
            self.apis = client.ApisApi(self._k8s_client)

            logger.info("Successfully connected to cluster", cluster=self.cluster_config.name)
            log_function_exit(logger, "connect", cluster_name=self.cluster_config.name, status="success")
            return self

        except Exception as e:
            logger.error("Failed to connect to cluster",
                         cluster=self.cluster_config.name,
                         error=str(e),
                         kubeconfig_path=self.cluster_config.kubeconfig_path,
                         context=self.cluster_config.context)
            log_function_exit(logger, "connect", cluster_name=self.cluster_config.name, status="error", error=str(e))
            raise

    def disconnect(self) -> None:
        """Clean up the connection."""
        if self._k8s_client:
            self._k8s_client.close()
            self._k8s_client = None
