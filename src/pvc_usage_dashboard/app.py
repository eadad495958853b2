from __future__ import annotations

from pathlib import Path
from typing import Iterable
import os

import streamlit as st
import yaml

from pvc_usage_dashboard.config import AppConfig
from pvc_usage_dashboard.k8s import (
    DirectoryError,
    KubernetesAuthenticationError,
    list_context_names,
    load_kubernetes_clients,
)
from pvc_usage_dashboard.logging_config import setup_logging
from pvc_usage_dashboard.models import VolumeUsageRecord
from pvc_usage_dashboard.server import build_aggregator

_AUTH_MODE_USE_KUBECONFIG_PATH = "Use kubeconfig path"
_AUTH_MODE_IN_CLUSTER = "In-cluster service account"

_SERVICE_ACCOUNT_TOKEN = Path("/var/run/secrets/kubernetes.io/serviceaccount/token")


def _initialize_state() -> None:
    defaults = {
        "connected": False,
        "clients": None,
        "usage_records": [],
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value


def _build_usage_rows(records: list[VolumeUsageRecord]) -> list[dict[str, str]]:
    rows: list[dict[str, str]] = []
    for record in records:
        rows.append(
            {
                "namespace": record.namespace,
                "pvc": record.name,
                "node": record.node,
                "region": record.region or "unknown",
                "used_gib": f"{record.used_gb:.2f}",
                "total_gib": f"{record.total_gb:.2f}",
                "percent": f"{record.percent:.1f}",
                "volume_id": record.volume_id,
                "iops": record.iops,
                "throughput": record.throughput,
                "encrypted": "yes" if record.encrypted else "no",
            }
        )
    return rows


def _build_usage_summary(records: list[VolumeUsageRecord]) -> dict[str, float | int]:
    return {
        "reporting_nodes": len({record.node for record in records}),
        "volumes": len(records),
        "used_gib": round(sum(record.used_gb for record in records), 2),
        "provisioned_gib": round(sum(record.total_gb for record in records), 2),
    }


def _filter_records(records: list[VolumeUsageRecord], namespaces: Iterable[str]) -> list[VolumeUsageRecord]:
    wanted = {namespace.strip() for namespace in namespaces if namespace and namespace.strip()}
    if not wanted:
        return list(records)
    return [record for record in records if record.namespace in wanted]


def _connection_error(auth_mode: str, kubeconfig_path_input: str) -> str | None:
    if auth_mode == _AUTH_MODE_IN_CLUSTER:
        if _running_in_pod():
            return None
        return "In-cluster mode needs KUBERNETES_SERVICE_HOST and a mounted service-account token."
    return _kubeconfig_file_error(kubeconfig_path_input)


def _kubeconfig_file_error(kubeconfig_path_input: str) -> str | None:
    path_value = kubeconfig_path_input.strip()
    if not path_value:
        return "Enter a kubeconfig path."

    kubeconfig_file = Path(path_value).expanduser()
    if not kubeconfig_file.is_file():
        return f"No kubeconfig file at {kubeconfig_file}."
    try:
        document = yaml.safe_load(kubeconfig_file.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
        return f"Cannot parse kubeconfig {kubeconfig_file} ({error.__class__.__name__})."
    if not isinstance(document, dict) or not document.get("contexts"):
        return f"Kubeconfig {kubeconfig_file} defines no contexts."
    return None


def _context_hint(kubeconfig_path_input: str) -> str:
    problem = _kubeconfig_file_error(kubeconfig_path_input)
    if problem is not None:
        return problem
    try:
        names = list_context_names(kubeconfig_path_input)
    except KubernetesAuthenticationError as error:
        return str(error)
    return f"Available contexts: {', '.join(names)}"


def _default_auth_mode() -> str:
    return _AUTH_MODE_IN_CLUSTER if _running_in_pod() else _AUTH_MODE_USE_KUBECONFIG_PATH


def _running_in_pod() -> bool:
    return bool(os.getenv("KUBERNETES_SERVICE_HOST")) and _SERVICE_ACCOUNT_TOKEN.exists()


def main() -> None:
    st.set_page_config(page_title="PVC Usage Dashboard", layout="wide")
    _initialize_state()

    base_config = AppConfig()
    setup_logging("dashboard", base_config.log_level)

    st.title("PVC Usage Dashboard")
    st.caption("Cluster-wide PVC capacity, node placement, and EBS device attributes.")

    st.sidebar.header("Cluster Connection")
    auth_options = [_AUTH_MODE_USE_KUBECONFIG_PATH, _AUTH_MODE_IN_CLUSTER]
    auth_mode = st.sidebar.radio(
        "Authentication",
        options=auth_options,
        index=auth_options.index(_default_auth_mode()),
    )
    context = st.sidebar.text_input("Kubernetes context (optional)", value="")

    kubeconfig_path_input = ""
    if auth_mode == _AUTH_MODE_USE_KUBECONFIG_PATH:
        kubeconfig_path_input = st.sidebar.text_input("Kubeconfig path", value="~/.kube/config")
        st.sidebar.caption(_context_hint(kubeconfig_path_input))

    if st.sidebar.button("Connect", type="primary"):
        connection_error = _connection_error(auth_mode, kubeconfig_path_input)
        if connection_error:
            st.sidebar.error(connection_error)
        else:
            try:
                st.session_state.clients = load_kubernetes_clients(
                    kubeconfig_path=kubeconfig_path_input or None,
                    context=context or None,
                    in_cluster=auth_mode == _AUTH_MODE_IN_CLUSTER,
                )
                st.session_state.connected = True
                st.session_state.usage_records = []
                st.success("Connected to Kubernetes cluster.")
            except Exception as error:  # pylint: disable=broad-except
                st.session_state.connected = False
                st.session_state.clients = None
                st.error(f"Connection failed: {error}")

    if st.sidebar.button("Disconnect"):
        st.session_state.connected = False
        st.session_state.clients = None
        st.session_state.usage_records = []

    if not st.session_state.connected or st.session_state.clients is None:
        st.info("Connect to a cluster from the sidebar to load volume usage.")
        return

    namespace_filter_input = st.text_input(
        "Namespace filter (comma-separated, optional)",
        value="",
        help="Leave blank to show all namespaces.",
    )

    if st.button("Refresh usage"):
        with st.spinner("Collecting kubelet summaries and PV attributes..."):
            try:
                aggregator = build_aggregator(st.session_state.clients, base_config)
                st.session_state.usage_records = aggregator.collect()
                if not st.session_state.usage_records:
                    st.warning("Collection completed, but no PVC-backed volumes reported usage.")
            except DirectoryError as error:
                st.session_state.usage_records = []
                st.error(str(error))

    records = _filter_records(st.session_state.usage_records, namespace_filter_input.split(","))
    if not st.session_state.usage_records:
        st.info("Click 'Refresh usage' to load PVC utilization.")
        return
    if not records:
        st.warning("No volumes match the current namespace filter.")
        return

    summary = _build_usage_summary(records)
    summary_columns = st.columns(4)
    summary_columns[0].metric("Reporting nodes", summary["reporting_nodes"])
    summary_columns[1].metric("Volumes", summary["volumes"])
    summary_columns[2].metric("Used GiB", summary["used_gib"])
    summary_columns[3].metric("Provisioned GiB", summary["provisioned_gib"])

    st.subheader("Volume Usage")
    st.dataframe(_build_usage_rows(records), use_container_width=True, hide_index=True)


if __name__ == "__main__":
    main()
