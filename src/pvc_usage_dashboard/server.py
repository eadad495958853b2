"""HTTP surface for volume usage snapshots.

``GET /api/data`` runs one full collection per request and returns the records
as a JSON array. A failed collection still answers with an empty array so
polling front-ends never see a 5xx for upstream trouble.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Protocol

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
import uvicorn

from .aggregator import MetricsAggregator
from .config import AppConfig, validate_config
from .k8s import (
    DirectoryError,
    KubeletSummaryClient,
    KubernetesClaimResolver,
    KubernetesClients,
    KubernetesTopologySource,
    load_kubernetes_clients,
)
from .logging_config import server_log_level, setup_logging
from .models import VolumeUsageRecord

logger = logging.getLogger(__name__)


class UsageCollector(Protocol):
    def collect(self) -> list[VolumeUsageRecord]: ...


def build_aggregator(clients: KubernetesClients, config: AppConfig) -> MetricsAggregator:
    timeout = config.request_timeout_seconds
    return MetricsAggregator(
        topology=KubernetesTopologySource(clients.core_api, request_timeout_seconds=timeout),
        telemetry=KubeletSummaryClient(clients.core_api, request_timeout_seconds=timeout),
        resolver=KubernetesClaimResolver(clients.core_api, request_timeout_seconds=timeout),
        max_workers=config.max_workers,
    )


def create_app(collector: UsageCollector, *, static_dir: Path | None = None) -> FastAPI:
    app = FastAPI(title="PVC Usage Dashboard")

    @app.get("/api/data")
    def volume_usage() -> list[dict[str, Any]]:
        try:
            records = collector.collect()
        except DirectoryError as error:
            logger.error("Volume usage collection failed: %s", error)
            return []
        except Exception:  # pylint: disable=broad-except
            logger.exception("Unexpected failure while collecting volume usage")
            return []
        return [record.to_dict() for record in records]

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    if static_dir is not None and static_dir.is_dir():
        app.mount("/", StaticFiles(directory=str(static_dir), html=True), name="frontend")
    elif static_dir is not None:
        logger.info("Static front-end directory %s not found; serving API only", static_dir)

    return app


def main() -> None:
    config = AppConfig()
    validate_config(config)
    setup_logging("server", config.log_level)

    clients = load_kubernetes_clients(
        kubeconfig_path=config.kubeconfig_path,
        context=config.kube_context,
        in_cluster=config.in_cluster,
    )
    app = create_app(build_aggregator(clients, config), static_dir=config.static_dir)
    logger.info("Serving volume usage on %s:%d", config.host, config.port)
    uvicorn.run(app, host=config.host, port=config.port, log_level=server_log_level(config.log_level))


if __name__ == "__main__":
    main()
