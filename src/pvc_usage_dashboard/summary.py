"""Decode kubelet ``stats/summary`` payloads into per-claim usage entries.

Decoding is tolerant: a payload that does not match the expected shape is
discarded as a whole and reported through ``SummaryDecodeResult.error`` so the
caller can log it and move on to the next node.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from typing import Any

from .models import VolumeUsageEntry


@dataclass(frozen=True)
class SummaryDecodeResult:
    entries: list[VolumeUsageEntry] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class _MalformedSummary(ValueError):
    pass


def decode_node_summary(payload: bytes | str) -> SummaryDecodeResult:
    try:
        document = json.loads(payload)
    except (TypeError, ValueError) as error:
        return SummaryDecodeResult(error=f"payload is not valid JSON: {error.__class__.__name__}")

    try:
        entries = _decode_document(document)
    except _MalformedSummary as error:
        return SummaryDecodeResult(error=str(error))
    return SummaryDecodeResult(entries=entries)


def _decode_document(document: Any) -> list[VolumeUsageEntry]:
    if not isinstance(document, dict):
        raise _MalformedSummary("summary root must be a JSON object")

    pods = document.get("pods")
    if pods is None:
        return []
    if not isinstance(pods, list):
        raise _MalformedSummary("'pods' must be a list")

    entries: list[VolumeUsageEntry] = []
    for pod_index, pod in enumerate(pods):
        if not isinstance(pod, dict):
            raise _MalformedSummary(f"pods[{pod_index}] must be an object")

        volumes = pod.get("volume")
        if volumes is None:
            continue
        if not isinstance(volumes, list):
            raise _MalformedSummary(f"pods[{pod_index}].volume must be a list")

        for volume_index, volume in enumerate(volumes):
            location = f"pods[{pod_index}].volume[{volume_index}]"
            if not isinstance(volume, dict):
                raise _MalformedSummary(f"{location} must be an object")

            pvc_ref = _optional_mapping(volume.get("pvcRef"), f"{location}.pvcRef")
            used_bytes = _byte_counter(volume.get("usedBytes"), f"{location}.usedBytes")
            capacity_bytes = _byte_counter(volume.get("capacityBytes"), f"{location}.capacityBytes")

            claim_name = _optional_string(pvc_ref.get("name"), f"{location}.pvcRef.name")
            if not claim_name:
                continue

            entries.append(
                VolumeUsageEntry(
                    claim_namespace=_optional_string(pvc_ref.get("namespace"), f"{location}.pvcRef.namespace"),
                    claim_name=claim_name,
                    used_bytes=used_bytes,
                    capacity_bytes=capacity_bytes,
                )
            )

    return entries


def _optional_mapping(value: Any, location: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise _MalformedSummary(f"{location} must be an object")
    return value


def _optional_string(value: Any, location: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise _MalformedSummary(f"{location} must be a string")
    return value


def _byte_counter(value: Any, location: str) -> int:
    # Missing counters decode as zero, matching the kubelet's omitempty fields.
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise _MalformedSummary(f"{location} must be an integer")
    if value < 0:
        raise _MalformedSummary(f"{location} must be non-negative")
    return value
