"""Label and annotation keys read and written by exposer."""

from pydantic import BaseModel, ConfigDict


class Label(BaseModel):
    """A key/value pair matched against service labels or annotations."""

    model_config = ConfigDict(frozen=True)

    key: str
    value: str

    def matches(self, mapping) -> bool:
        return (mapping or {}).get(self.key) == self.value


class ExposeKeys(BaseModel):
    """Keys used to gate, configure and record service exposure."""

    model_config = ConfigDict(frozen=True)

    expose_label: Label = Label(key="expose", value="true")
    expose_annotation: Label = Label(key="fabric8.io/expose", value="true")
    provider_label: Label = Label(key="provider", value="fabric8")

    expose_url: str = "fabric8.io/exposeUrl"
    expose_host_name_as: str = "fabric8.io/exposeHostNameAs"
    api_service_path: str = "api.service.kubernetes.io/path"
    expose_port: str = "fabric8.io/exposePort"
    ingress_name: str = "fabric8.io/ingress.name"
    ingress_path: str = "fabric8.io/ingress.path"
    path_mode: str = "fabric8.io/path.mode"
    ingress_annotations: str = "fabric8.io/ingress.annotations"
    skip_tls: str = "jenkins-x.io/skip.tls"
    generated_by: str = "fabric8.io/generated-by"
    ambassador_config: str = "getambassador.io/config"
    external_ip_node: str = "fabric8.io/externalIP"

    def is_exposed(self, labels, annotations) -> bool:
        """Whether a service with these labels/annotations is gated for exposure."""
        return self.expose_label.matches(labels) or self.expose_annotation.matches(annotations)


DEFAULT_KEYS = ExposeKeys()
