from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

REGION_LABEL = "topology.kubernetes.io/region"
IOPS_ANNOTATION = "ebs.csi.aws.com/iops"
THROUGHPUT_ANNOTATION = "ebs.csi.aws.com/throughput"

SENTINEL_VOLUME_ID = "fetching..."
SENTINEL_PERFORMANCE = "---"
DEFAULT_IOPS = "3000"
DEFAULT_THROUGHPUT = "125"

BYTES_PER_GIB = 1024**3


@dataclass(frozen=True)
class NodeInfo:
    name: str
    labels: dict[str, str] = field(default_factory=dict)

    @property
    def region(self) -> str:
        return self.labels.get(REGION_LABEL, "")


@dataclass(frozen=True)
class ClaimReference:
    namespace: str
    name: str


@dataclass(frozen=True)
class VolumeUsageEntry:
    claim_namespace: str
    claim_name: str
    used_bytes: int
    capacity_bytes: int

    @property
    def claim(self) -> ClaimReference:
        return ClaimReference(namespace=self.claim_namespace, name=self.claim_name)


@dataclass(frozen=True)
class ClaimRecord:
    namespace: str
    name: str
    volume_name: str | None


@dataclass(frozen=True)
class PersistentVolumeRecord:
    name: str
    volume_handle: str | None
    volume_attributes: dict[str, str] | None
    annotations: dict[str, str] = field(default_factory=dict)

    @property
    def has_csi_source(self) -> bool:
        return self.volume_attributes is not None


@dataclass(frozen=True)
class VolumeAttributes:
    volume_id: str = SENTINEL_VOLUME_ID
    encrypted: bool = False
    iops: str = SENTINEL_PERFORMANCE
    throughput: str = SENTINEL_PERFORMANCE


UNRESOLVED_ATTRIBUTES = VolumeAttributes()


@dataclass(frozen=True)
class VolumeUsageRecord:
    namespace: str
    name: str
    node: str
    used_bytes: int
    capacity_bytes: int
    volume_id: str
    region: str
    iops: str
    throughput: str
    encrypted: bool

    @property
    def used_gb(self) -> float:
        return self.used_bytes / BYTES_PER_GIB

    @property
    def total_gb(self) -> float:
        return self.capacity_bytes / BYTES_PER_GIB

    @property
    def percent(self) -> float:
        total = self.total_gb
        if total > 0:
            return self.used_gb / total * 100
        return 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "namespace": self.namespace,
            "name": self.name,
            "node": self.node,
            "used_gb": self.used_gb,
            "total_gb": self.total_gb,
            "percent": self.percent,
            "volume_id": self.volume_id,
            "region": self.region,
            "iops": self.iops,
            "throughput": self.throughput,
            "encrypted": self.encrypted,
        }


def build_usage_record(node: NodeInfo, entry: VolumeUsageEntry, attributes: VolumeAttributes) -> VolumeUsageRecord:
    return VolumeUsageRecord(
        namespace=entry.claim_namespace,
        name=entry.claim_name,
        node=node.name,
        used_bytes=entry.used_bytes,
        capacity_bytes=entry.capacity_bytes,
        volume_id=attributes.volume_id,
        region=node.region,
        iops=attributes.iops,
        throughput=attributes.throughput,
        encrypted=attributes.encrypted,
    )
