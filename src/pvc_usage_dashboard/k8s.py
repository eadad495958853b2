from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from kubernetes import client, config
from kubernetes.client import ApiException

from .models import ClaimRecord, NodeInfo, PersistentVolumeRecord

DEFAULT_REQUEST_TIMEOUT_SECONDS = 10
SUMMARY_PROXY_PATH = "stats/summary"


@dataclass(frozen=True)
class KubernetesClients:
    api_client: client.ApiClient
    core_api: client.CoreV1Api


class KubernetesAuthenticationError(RuntimeError):
    """Raised when Kubernetes authentication configuration fails."""


class DirectoryError(RuntimeError):
    """Raised when the cluster node list cannot be read."""


class TelemetryUnavailable(RuntimeError):
    """Raised when a node's kubelet summary cannot be fetched."""


class ClaimLookupError(RuntimeError):
    """Raised when a PVC or PV read fails for a reason other than not-found."""


def load_kubernetes_clients(
    *,
    kubeconfig_path: str | None,
    context: str | None,
    in_cluster: bool,
) -> KubernetesClients:
    expanded = _expand_kubeconfig_path(kubeconfig_path)
    try:
        if in_cluster:
            config.load_incluster_config()
        else:
            config.load_kube_config(config_file=expanded, context=context)
    except Exception as error:  # pylint: disable=broad-except
        raise KubernetesAuthenticationError(
            _format_authentication_error(
                in_cluster=in_cluster,
                kubeconfig_path=expanded,
                context=context,
                error=error,
            )
        ) from error

    api_client = client.ApiClient()
    return KubernetesClients(
        api_client=api_client,
        core_api=client.CoreV1Api(api_client),
    )


def list_context_names(kubeconfig_path: str | None = None) -> list[str]:
    expanded = _expand_kubeconfig_path(kubeconfig_path)
    try:
        contexts, _ = config.list_kube_config_contexts(config_file=expanded)
    except Exception as error:  # pylint: disable=broad-except
        reason = str(error).strip() or error.__class__.__name__
        source = expanded or "default kubeconfig search path"
        raise KubernetesAuthenticationError(
            f"Unable to list kubeconfig contexts from '{source}': {reason}. "
            "Verify the kubeconfig path is readable and valid."
        ) from error
    if not contexts:
        return []
    return sorted(context["name"] for context in contexts)


class KubernetesTopologySource:
    def __init__(
        self,
        core_api: client.CoreV1Api,
        *,
        request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        if request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        self.core_api = core_api
        self.request_timeout_seconds = request_timeout_seconds

    def list_nodes(self) -> list[NodeInfo]:
        try:
            items = self.core_api.list_node(_request_timeout=self.request_timeout_seconds).items
        except ApiException as error:
            raise DirectoryError(
                _format_api_exception_message(
                    operation="list cluster nodes",
                    hint="Confirm cluster connectivity and RBAC verbs for nodes.",
                    error=error,
                )
            ) from error
        except Exception as error:
            raise DirectoryError(
                f"Kubernetes request failed while trying to list cluster nodes: {error}. "
                "Confirm cluster connectivity and RBAC verbs for nodes."
            ) from error

        nodes: list[NodeInfo] = []
        for item in items or []:
            metadata = item.metadata
            if metadata is None or not metadata.name:
                continue
            nodes.append(NodeInfo(name=metadata.name, labels=dict(metadata.labels or {})))
        return nodes


class KubeletSummaryClient:
    def __init__(
        self,
        core_api: client.CoreV1Api,
        *,
        request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        if request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        self.core_api = core_api
        self.request_timeout_seconds = request_timeout_seconds

    def fetch_summary(self, node_name: str) -> bytes:
        try:
            response = self.core_api.connect_get_node_proxy_with_path(
                name=node_name,
                path=SUMMARY_PROXY_PATH,
                _preload_content=False,
                _request_timeout=self.request_timeout_seconds,
            )
            return response.data
        except ApiException as error:
            raise TelemetryUnavailable(
                _format_api_exception_message(
                    operation=f"read kubelet summary for node '{node_name}'",
                    hint="Verify the node is Ready and RBAC allows get on nodes/proxy.",
                    error=error,
                )
            ) from error
        except Exception as error:
            raise TelemetryUnavailable(
                f"Kubernetes request failed while trying to read kubelet summary for node '{node_name}': "
                f"{error}. Verify the node is reachable through the API server proxy."
            ) from error


class KubernetesClaimResolver:
    def __init__(
        self,
        core_api: client.CoreV1Api,
        *,
        request_timeout_seconds: int = DEFAULT_REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        if request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        self.core_api = core_api
        self.request_timeout_seconds = request_timeout_seconds

    def get_claim(self, namespace: str, name: str) -> ClaimRecord | None:
        try:
            pvc = self.core_api.read_namespaced_persistent_volume_claim(
                name=name,
                namespace=namespace,
                _request_timeout=self.request_timeout_seconds,
            )
        except ApiException as error:
            if error.status == 404:
                return None
            raise ClaimLookupError(
                _format_api_exception_message(
                    operation=f"read PVC '{namespace}/{name}'",
                    hint="Verify RBAC allows get on persistentvolumeclaims.",
                    error=error,
                )
            ) from error
        except Exception as error:
            raise ClaimLookupError(
                f"Kubernetes request failed while trying to read PVC '{namespace}/{name}': {error}."
            ) from error

        volume_name = pvc.spec.volume_name if pvc.spec else None
        return ClaimRecord(namespace=namespace, name=name, volume_name=volume_name or None)

    def get_volume(self, volume_name: str) -> PersistentVolumeRecord | None:
        try:
            pv = self.core_api.read_persistent_volume(
                name=volume_name,
                _request_timeout=self.request_timeout_seconds,
            )
        except ApiException as error:
            if error.status == 404:
                return None
            raise ClaimLookupError(
                _format_api_exception_message(
                    operation=f"read PV '{volume_name}'",
                    hint="Verify RBAC allows get on persistentvolumes.",
                    error=error,
                )
            ) from error
        except Exception as error:
            raise ClaimLookupError(
                f"Kubernetes request failed while trying to read PV '{volume_name}': {error}."
            ) from error

        csi = pv.spec.csi if pv.spec else None
        annotations = pv.metadata.annotations if pv.metadata and pv.metadata.annotations else {}
        return PersistentVolumeRecord(
            name=volume_name,
            volume_handle=csi.volume_handle if csi else None,
            volume_attributes=dict(csi.volume_attributes or {}) if csi else None,
            annotations=dict(annotations),
        )


def _format_api_exception_message(*, operation: str, hint: str, error: ApiException) -> str:
    status = error.status if error.status is not None else "unknown"
    reason = error.reason or "no reason provided"
    return (
        f"Kubernetes request failed while trying to {operation}: "
        f"API status {status} ({reason}). {hint}"
    )


def _expand_kubeconfig_path(kubeconfig_path: str | None) -> str | None:
    if kubeconfig_path is None:
        return None
    stripped = kubeconfig_path.strip()
    if not stripped:
        return None
    return str(Path(stripped).expanduser())


def _format_authentication_error(
    *,
    in_cluster: bool,
    kubeconfig_path: str | None,
    context: str | None,
    error: Exception,
) -> str:
    reason = str(error).strip() or error.__class__.__name__
    if in_cluster:
        return (
            "Kubernetes authentication setup failed while loading in-cluster service account credentials: "
            f"{reason}. Ensure the pod has a mounted service account token and Kubernetes service host "
            "environment variables."
        )

    kubeconfig_source = kubeconfig_path or "default kubeconfig search path"
    context_message = f" with context '{context}'" if context else ""
    return (
        "Kubernetes authentication setup failed while loading kubeconfig "
        f"from '{kubeconfig_source}'{context_message}: {reason}. "
        "Verify the kubeconfig path and context are valid."
    )
