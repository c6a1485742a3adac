"""Diff/patch engine and service annotation helpers.

Resources are handled as plain dicts in their wire form. A strategy takes
a snapshot of the service, derives the desired state with pure helpers and
sends only the merge patch between the two, so repeated reconciliation of
an unchanged service never writes.
"""

import copy
import json
from functools import lru_cache
from typing import Any, Dict, Optional

from kubernetes import client
from kubernetes.client.rest import ApiException

from .errors import PatchError, RemoteAPIError
from .keys import DEFAULT_KEYS, ExposeKeys
from .logging_config import get_logger, log_k8s_operation
from .urls import url_join

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def _serializer() -> client.ApiClient:
    return client.ApiClient()


def to_dict(obj: Any) -> Dict[str, Any]:
    """Return the wire-form dict of a Kubernetes model, or a deep copy of a dict."""
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return copy.deepcopy(obj)
    try:
        return _serializer().sanitize_for_serialization(obj)
    except (TypeError, ValueError) as e:
        raise PatchError(f"failed to encode object {type(obj).__name__}: {e}") from e


def canonical(obj: Dict[str, Any]) -> str:
    try:
        return json.dumps(obj, sort_keys=True, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise PatchError(f"failed to encode object: {e}") from e


def _merge_diff(original: Dict[str, Any], mutated: Dict[str, Any]) -> Dict[str, Any]:
    patch: Dict[str, Any] = {}
    for key, value in mutated.items():
        if key not in original:
            patch[key] = value
        elif isinstance(value, dict) and isinstance(original[key], dict):
            nested = _merge_diff(original[key], value)
            if nested:
                patch[key] = nested
        elif value != original[key]:
            patch[key] = value
    for key in original:
        if key not in mutated:
            patch[key] = None
    return patch


def compute_patch(original: Any, mutated: Any) -> Optional[Dict[str, Any]]:
    """Compute a two-way merge patch from original to mutated.

    Returns None when both encode to the same canonical bytes. Otherwise
    changed scalars and lists are replaced, maps are merged key by key and
    keys dropped from mutated are sent as explicit nulls.
    """
    before = to_dict(original)
    after = to_dict(mutated)
    if canonical(before) == canonical(after):
        return None
    patch = _merge_diff(before, after)
    return patch or None


def annotations_of(resource: Dict[str, Any]) -> Dict[str, str]:
    return (resource.get("metadata") or {}).get("annotations") or {}


def labels_of(resource: Dict[str, Any]) -> Dict[str, str]:
    return (resource.get("metadata") or {}).get("labels") or {}


def add_exposure_annotation(service: Dict[str, Any], host: str, protocol: str,
                            keys: ExposeKeys = DEFAULT_KEYS) -> Dict[str, Any]:
    """Return a copy of service recording protocol://host as its exposure URL."""
    desired = copy.deepcopy(service)
    metadata = desired.setdefault("metadata", {})
    annotations = dict(metadata.get("annotations") or {})

    expose_url = f"{protocol}://{host}"
    path = annotations.get(keys.api_service_path)
    if path:
        expose_url = url_join(expose_url, path)
    annotations[keys.expose_url] = expose_url

    host_key = annotations.get(keys.expose_host_name_as)
    if host_key:
        annotations[host_key] = host

    metadata["annotations"] = annotations
    return desired


def remove_exposure_annotation(service: Dict[str, Any], keys: ExposeKeys = DEFAULT_KEYS) -> Dict[str, Any]:
    """Return a copy of service without its exposure URL and host mirror key."""
    desired = copy.deepcopy(service)
    metadata = desired.get("metadata") or {}
    annotations = metadata.get("annotations")
    if not annotations:
        return desired

    annotations = dict(annotations)
    annotations.pop(keys.expose_url, None)
    host_key = annotations.get(keys.expose_host_name_as)
    if host_key:
        annotations.pop(host_key, None)
    metadata["annotations"] = annotations
    return desired


def patch_service(kube, original: Dict[str, Any], desired: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Send the patch between original and desired service, if there is one."""
    patch = compute_patch(original, desired)
    metadata = original.get("metadata") or {}
    name, namespace = metadata.get("name"), metadata.get("namespace")
    if patch is None:
        logger.debug("Service unchanged, skipping patch", namespace=namespace, name=name)
        return None

    log_k8s_operation(logger, "patch", "service", namespace=namespace, name=name, patch=patch)
    try:
        kube.core_v1.patch_namespaced_service(name, namespace, patch)
    except ApiException as e:
        raise RemoteAPIError.wrap(f"failed to send patch for service {namespace}/{name}", e) from e
    return patch
