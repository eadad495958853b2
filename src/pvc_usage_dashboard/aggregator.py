from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import logging
from typing import Protocol

from .attributes import ClaimResolver, resolve_volume_attributes
from .k8s import TelemetryUnavailable
from .models import NodeInfo, VolumeUsageRecord, build_usage_record
from .summary import decode_node_summary

logger = logging.getLogger(__name__)


class TopologySource(Protocol):
    def list_nodes(self) -> list[NodeInfo]: ...


class TelemetryClient(Protocol):
    def fetch_summary(self, node_name: str) -> bytes: ...


class MetricsAggregator:
    """Joins node topology, kubelet usage and PV attributes into usage records.

    Only a failed node listing escapes ``collect``; unreachable nodes and
    malformed summaries are skipped, and unresolved claims keep their record
    with sentinel attributes.
    """

    def __init__(
        self,
        topology: TopologySource,
        telemetry: TelemetryClient,
        resolver: ClaimResolver,
        *,
        max_workers: int = 1,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.topology = topology
        self.telemetry = telemetry
        self.resolver = resolver
        self.max_workers = max_workers

    def collect(self) -> list[VolumeUsageRecord]:
        nodes = self.topology.list_nodes()

        if self.max_workers == 1 or len(nodes) <= 1:
            per_node = [self._collect_node(node) for node in nodes]
        else:
            # executor.map keeps one result slot per node in input order
            with ThreadPoolExecutor(max_workers=min(self.max_workers, len(nodes))) as executor:
                per_node = list(executor.map(self._collect_node, nodes))

        records = [record for node_records in per_node for record in node_records]
        reporting_nodes = sum(1 for node_records in per_node if node_records)
        logger.info(
            "Collected %d volume record(s) from %d of %d node(s)",
            len(records),
            reporting_nodes,
            len(nodes),
        )
        return records

    def _collect_node(self, node: NodeInfo) -> list[VolumeUsageRecord]:
        try:
            payload = self.telemetry.fetch_summary(node.name)
        except TelemetryUnavailable as error:
            logger.warning("Skipping node %s: %s", node.name, error)
            return []

        decoded = decode_node_summary(payload)
        if not decoded.ok:
            logger.warning("Discarding kubelet summary from node %s: %s", node.name, decoded.error)
            return []

        records: list[VolumeUsageRecord] = []
        for entry in decoded.entries:
            attributes = resolve_volume_attributes(entry.claim, self.resolver)
            records.append(build_usage_record(node, entry, attributes))
        return records
