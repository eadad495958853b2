from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import Mock

import pytest
from kubernetes.client import ApiException

from pvc_usage_dashboard.k8s import (
    ClaimLookupError,
    DirectoryError,
    KubeletSummaryClient,
    KubernetesAuthenticationError,
    KubernetesClaimResolver,
    KubernetesTopologySource,
    TelemetryUnavailable,
    list_context_names,
    load_kubernetes_clients,
)


def _node(*, name: str, labels: dict[str, str] | None = None) -> SimpleNamespace:
    return SimpleNamespace(metadata=SimpleNamespace(name=name, labels=labels))


def _pvc(*, volume_name: str | None) -> SimpleNamespace:
    return SimpleNamespace(spec=SimpleNamespace(volume_name=volume_name))


def _pv(
    *,
    csi: SimpleNamespace | None = None,
    annotations: dict[str, str] | None = None,
) -> SimpleNamespace:
    return SimpleNamespace(
        metadata=SimpleNamespace(annotations=annotations),
        spec=SimpleNamespace(csi=csi),
    )


def test_list_nodes_with_region_labels_returns_node_infos() -> None:
    core_api = Mock()
    core_api.list_node.return_value = SimpleNamespace(
        items=[
            _node(name="node-a", labels={"topology.kubernetes.io/region": "us-east-1"}),
            _node(name="node-b", labels=None),
        ]
    )

    nodes = KubernetesTopologySource(core_api, request_timeout_seconds=7).list_nodes()

    assert [node.name for node in nodes] == ["node-a", "node-b"]
    assert nodes[0].region == "us-east-1"
    assert nodes[1].region == ""
    core_api.list_node.assert_called_once_with(_request_timeout=7)


def test_list_nodes_with_api_exception_raises_directory_error() -> None:
    core_api = Mock()
    core_api.list_node.side_effect = ApiException(status=403, reason="Forbidden")

    with pytest.raises(DirectoryError, match="list cluster nodes: API status 403"):
        KubernetesTopologySource(core_api).list_nodes()


def test_list_nodes_with_transport_failure_raises_directory_error() -> None:
    core_api = Mock()
    core_api.list_node.side_effect = ConnectionError("connection refused")

    with pytest.raises(DirectoryError, match="connection refused"):
        KubernetesTopologySource(core_api).list_nodes()


def test_topology_source_with_non_positive_timeout_raises_value_error() -> None:
    with pytest.raises(ValueError, match="request_timeout_seconds"):
        KubernetesTopologySource(Mock(), request_timeout_seconds=0)


def test_fetch_summary_with_reachable_node_returns_raw_payload() -> None:
    core_api = Mock()
    core_api.connect_get_node_proxy_with_path.return_value = SimpleNamespace(data=b'{"pods": []}')

    payload = KubeletSummaryClient(core_api, request_timeout_seconds=5).fetch_summary("node-a")

    assert payload == b'{"pods": []}'
    core_api.connect_get_node_proxy_with_path.assert_called_once_with(
        name="node-a",
        path="stats/summary",
        _preload_content=False,
        _request_timeout=5,
    )


def test_fetch_summary_with_proxy_error_raises_telemetry_unavailable() -> None:
    core_api = Mock()
    core_api.connect_get_node_proxy_with_path.side_effect = ApiException(status=503, reason="Service Unavailable")

    with pytest.raises(TelemetryUnavailable, match="node 'node-b'"):
        KubeletSummaryClient(core_api).fetch_summary("node-b")


def test_fetch_summary_with_timeout_raises_telemetry_unavailable() -> None:
    core_api = Mock()
    core_api.connect_get_node_proxy_with_path.side_effect = TimeoutError("read timed out")

    with pytest.raises(TelemetryUnavailable, match="read timed out"):
        KubeletSummaryClient(core_api).fetch_summary("node-b")


def test_get_claim_with_bound_pvc_returns_volume_name() -> None:
    core_api = Mock()
    core_api.read_namespaced_persistent_volume_claim.return_value = _pvc(volume_name="pv-123")

    claim = KubernetesClaimResolver(core_api).get_claim("ns1", "pvc-a")

    assert claim is not None
    assert claim.namespace == "ns1"
    assert claim.name == "pvc-a"
    assert claim.volume_name == "pv-123"


def test_get_claim_with_pending_pvc_returns_unbound_claim() -> None:
    core_api = Mock()
    core_api.read_namespaced_persistent_volume_claim.return_value = _pvc(volume_name="")

    claim = KubernetesClaimResolver(core_api).get_claim("ns1", "pvc-a")

    assert claim is not None
    assert claim.volume_name is None


def test_get_claim_with_missing_pvc_returns_none() -> None:
    core_api = Mock()
    core_api.read_namespaced_persistent_volume_claim.side_effect = ApiException(status=404, reason="Not Found")

    assert KubernetesClaimResolver(core_api).get_claim("ns1", "missing") is None


def test_get_claim_with_permission_error_raises_claim_lookup_error() -> None:
    core_api = Mock()
    core_api.read_namespaced_persistent_volume_claim.side_effect = ApiException(status=403, reason="Forbidden")

    with pytest.raises(ClaimLookupError, match="PVC 'ns1/pvc-a'"):
        KubernetesClaimResolver(core_api).get_claim("ns1", "pvc-a")


def test_get_volume_with_csi_source_returns_handle_attributes_and_annotations() -> None:
    core_api = Mock()
    core_api.read_persistent_volume.return_value = _pv(
        csi=SimpleNamespace(volume_handle="vol-0abc", volume_attributes={"encrypted": "true"}),
        annotations={"ebs.csi.aws.com/iops": "6000"},
    )

    volume = KubernetesClaimResolver(core_api, request_timeout_seconds=3).get_volume("pv-123")

    assert volume is not None
    assert volume.volume_handle == "vol-0abc"
    assert volume.volume_attributes == {"encrypted": "true"}
    assert volume.annotations == {"ebs.csi.aws.com/iops": "6000"}
    core_api.read_persistent_volume.assert_called_once_with(name="pv-123", _request_timeout=3)


def test_get_volume_without_csi_source_returns_no_device_attributes() -> None:
    core_api = Mock()
    core_api.read_persistent_volume.return_value = _pv(csi=None, annotations=None)

    volume = KubernetesClaimResolver(core_api).get_volume("pv-hostpath")

    assert volume is not None
    assert volume.has_csi_source is False
    assert volume.volume_handle is None
    assert volume.annotations == {}


def test_get_volume_with_csi_source_and_no_attributes_returns_empty_attribute_map() -> None:
    core_api = Mock()
    core_api.read_persistent_volume.return_value = _pv(
        csi=SimpleNamespace(volume_handle="vol-0abc", volume_attributes=None),
    )

    volume = KubernetesClaimResolver(core_api).get_volume("pv-123")

    assert volume is not None
    assert volume.has_csi_source is True
    assert volume.volume_attributes == {}


def test_get_volume_with_missing_pv_returns_none() -> None:
    core_api = Mock()
    core_api.read_persistent_volume.side_effect = ApiException(status=404, reason="Not Found")

    assert KubernetesClaimResolver(core_api).get_volume("pv-gone") is None


def test_get_volume_with_server_error_raises_claim_lookup_error() -> None:
    core_api = Mock()
    core_api.read_persistent_volume.side_effect = ApiException(status=500, reason="boom")

    with pytest.raises(ClaimLookupError, match="PV 'pv-123': API status 500"):
        KubernetesClaimResolver(core_api).get_volume("pv-123")


def test_load_kubernetes_clients_with_in_cluster_mode_uses_incluster_auth(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    load_incluster_config = Mock()
    load_kube_config = Mock()
    api_client = Mock()
    core_api = Mock()

    monkeypatch.setattr(
        "pvc_usage_dashboard.k8s.config.load_incluster_config",
        load_incluster_config,
    )
    monkeypatch.setattr(
        "pvc_usage_dashboard.k8s.config.load_kube_config",
        load_kube_config,
    )
    monkeypatch.setattr(
        "pvc_usage_dashboard.k8s.client.ApiClient",
        Mock(return_value=api_client),
    )
    monkeypatch.setattr(
        "pvc_usage_dashboard.k8s.client.CoreV1Api",
        Mock(return_value=core_api),
    )

    clients = load_kubernetes_clients(
        kubeconfig_path="~/.kube/config",
        context="ignored-context",
        in_cluster=True,
    )

    load_incluster_config.assert_called_once_with()
    load_kube_config.assert_not_called()
    assert clients.api_client is api_client
    assert clients.core_api is core_api


def test_load_kubernetes_clients_with_kubeconfig_mode_expands_path_and_context(monkeypatch: pytest.MonkeyPatch) -> None:
    load_incluster_config = Mock()
    load_kube_config = Mock()

    monkeypatch.setenv("HOME", "/tmp/pud-home")
    monkeypatch.setattr(
        "pvc_usage_dashboard.k8s.config.load_incluster_config",
        load_incluster_config,
    )
    monkeypatch.setattr(
        "pvc_usage_dashboard.k8s.config.load_kube_config",
        load_kube_config,
    )
    monkeypatch.setattr("pvc_usage_dashboard.k8s.client.ApiClient", Mock(return_value=Mock()))
    monkeypatch.setattr("pvc_usage_dashboard.k8s.client.CoreV1Api", Mock(return_value=Mock()))

    load_kubernetes_clients(
        kubeconfig_path="~/.kube/config",
        context="dev-cluster",
        in_cluster=False,
    )

    load_incluster_config.assert_not_called()
    load_kube_config.assert_called_once_with(
        config_file="/tmp/pud-home/.kube/config",
        context="dev-cluster",
    )


def test_load_kubernetes_clients_with_invalid_context_raises_authentication_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(
        "pvc_usage_dashboard.k8s.config.load_kube_config",
        Mock(side_effect=RuntimeError("context does not exist")),
    )

    with pytest.raises(KubernetesAuthenticationError, match="context does not exist"):
        load_kubernetes_clients(
            kubeconfig_path="/etc/pud/remote/config",
            context="missing-context",
            in_cluster=False,
        )


def test_load_kubernetes_clients_with_missing_service_account_raises_authentication_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(
        "pvc_usage_dashboard.k8s.config.load_incluster_config",
        Mock(side_effect=RuntimeError("Service host/port is not set.")),
    )

    with pytest.raises(KubernetesAuthenticationError, match="in-cluster service account credentials"):
        load_kubernetes_clients(kubeconfig_path=None, context=None, in_cluster=True)


def test_list_context_names_with_mixed_contexts_returns_sorted_names(monkeypatch: pytest.MonkeyPatch) -> None:
    list_contexts = Mock(
        return_value=(
            [{"name": "zeta"}, {"name": "alpha"}, {"name": "delta"}],
            {"name": "delta"},
        )
    )
    monkeypatch.setenv("HOME", "/tmp/pud-home")
    monkeypatch.setattr(
        "pvc_usage_dashboard.k8s.config.list_kube_config_contexts",
        list_contexts,
    )

    names = list_context_names("~/.kube/config")

    assert names == ["alpha", "delta", "zeta"]
    list_contexts.assert_called_once_with(config_file="/tmp/pud-home/.kube/config")


def test_list_context_names_with_invalid_kubeconfig_raises_authentication_error(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(
        "pvc_usage_dashboard.k8s.config.list_kube_config_contexts",
        Mock(side_effect=RuntimeError("parse failure")),
    )

    with pytest.raises(KubernetesAuthenticationError, match="Unable to list kubeconfig contexts"):
        list_context_names("/tmp/invalid-config")
