"""Data models for exposer configuration and status."""

from datetime import datetime
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ClusterConfig(BaseModel):
    """Connection settings for the Kubernetes cluster."""

    name: str = Field("default", description="Cluster name used in logs")
    kubeconfig_path: Optional[str] = Field(None, description="Path to kubeconfig file")
    context: Optional[str] = Field(None, description="Kubernetes context name")


class StrategyConfig(BaseModel):
    """Immutable configuration handed to the expose strategy factory."""

    model_config = ConfigDict(frozen=True)

    exposer: str = Field("", description="Strategy kind; empty selects one automatically")
    domain: str = Field("", description="Wildcard DNS domain for generated hosts")
    url_template: str = Field("", description="Host template with {service}, {namespace}, {domain}")
    tls_acme: bool = Field(False, description="Request ACME certificates for ingresses")
    path_mode: str = Field("", description="'path' routes by URL path under the bare domain")
    node_ip: str = Field("", description="Node IP override for the node port strategy")
    route_host: str = Field("", description="Fixed host for OpenShift routes")
    route_use_path: bool = Field(False, description="Route by path under route_host")
    route_namespaced_host: bool = Field(True, description="Include the namespace in route hosts")
    ingress_class: str = Field("", description="Ingress class used in path mode")


class ControllerConfig(BaseModel):
    """Controller configuration as stored in the exposer ConfigMap or YAML file."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    exposer: str = ""
    domain: str = ""
    url_template: str = Field("", alias="urltemplate")
    http: bool = False
    tls_acme: bool = Field(False, alias="tls-acme")
    path_mode: str = Field("", alias="path-mode")
    node_ip: str = Field("", alias="node-ip")
    route_host: str = Field("", alias="route-host")
    route_use_path: bool = Field(False, alias="route-use-path")
    route_namespaced_host: bool = Field(True, alias="route-namespaced-host")
    ingress_class: str = Field("", alias="ingress-class")

    api_server: str = Field("", alias="apiserver")
    api_server_protocol: str = Field("", alias="apiserver-protocol")
    console_url: str = Field("", alias="console-url")
    authorize_path: str = Field("", alias="authorize-path")
    oauth_authorize_url: str = Field("", alias="oauth-authorize-url")

    watch_namespaces: List[str] = Field(default_factory=list, alias="watch-namespaces")
    watch_current_namespace: bool = Field(False, alias="watch-current-namespace")
    services: List[str] = Field(default_factory=list)
    sync_interval: int = Field(30, alias="sync-interval", description="Seconds between sync passes")

    cluster: ClusterConfig = Field(default_factory=ClusterConfig)

    @field_validator("watch_namespaces", "services", mode="before")
    @classmethod
    def _split_csv(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @classmethod
    def from_configmap_data(cls, data: Dict[str, str]) -> "ControllerConfig":
        """Build a config from ConfigMap string data.

        A `config.yml` entry holding a whole YAML document is merged first,
        then plain keys; pydantic coerces "true"/"30" style strings.
        """
        merged: Dict[str, Any] = {}
        for key in ("config.yml", "config.yaml"):
            if data and data.get(key):
                merged.update(yaml.safe_load(data[key]) or {})
        for key, value in (data or {}).items():
            if key not in ("config.yml", "config.yaml"):
                merged[key] = value
        return cls.model_validate(merged)

    def strategy_config(self) -> StrategyConfig:
        return StrategyConfig(
            exposer=self.exposer,
            domain=self.domain,
            url_template=self.url_template,
            tls_acme=self.tls_acme,
            path_mode=self.path_mode,
            node_ip=self.node_ip,
            route_host=self.route_host,
            route_use_path=self.route_use_path,
            route_namespaced_host=self.route_namespaced_host,
            ingress_class=self.ingress_class,
        )


class ExposureInfo(BaseModel):
    """An exposed service as reported by the status API."""

    name: str = Field(..., description="Service name")
    namespace: str = Field(..., description="Service namespace")
    url: Optional[str] = Field(None, description="Exposure URL recorded on the service")
    service_type: Optional[str] = Field(None, description="Kubernetes service type")


class SyncSummary(BaseModel):
    """Outcome of one sync pass over the watched namespaces."""

    exposed: int = Field(0, description="Services reconciled with Add")
    unexposed: int = Field(0, description="Services reconciled with Remove")
    failed: int = Field(0, description="Services whose reconciliation raised")
    skipped: int = Field(0, description="Services ignored by the gate or filters")
    finished_at: datetime = Field(default_factory=datetime.utcnow)
