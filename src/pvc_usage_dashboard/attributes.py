"""Resolve a claim reference to the device attributes of its backing volume.

Resolution walks PVC -> PV -> CSI attributes. Any step that cannot complete
returns the unresolved defaults instead of raising; callers always receive a
fully populated ``VolumeAttributes``.

Encryption is reported only when the CSI attribute ``encrypted`` is exactly the
string ``"true"``. Values such as ``"True"`` or ``"1"`` are reported as
unencrypted.
"""

from __future__ import annotations

import logging
from typing import Protocol

from .k8s import ClaimLookupError
from .models import (
    DEFAULT_IOPS,
    DEFAULT_THROUGHPUT,
    IOPS_ANNOTATION,
    THROUGHPUT_ANNOTATION,
    UNRESOLVED_ATTRIBUTES,
    ClaimRecord,
    ClaimReference,
    PersistentVolumeRecord,
    VolumeAttributes,
)

logger = logging.getLogger(__name__)


class ClaimResolver(Protocol):
    def get_claim(self, namespace: str, name: str) -> ClaimRecord | None: ...

    def get_volume(self, volume_name: str) -> PersistentVolumeRecord | None: ...


def resolve_volume_attributes(claim_ref: ClaimReference, resolver: ClaimResolver) -> VolumeAttributes:
    try:
        claim = resolver.get_claim(claim_ref.namespace, claim_ref.name)
    except ClaimLookupError as error:
        logger.warning("Claim lookup for %s/%s degraded to defaults: %s", claim_ref.namespace, claim_ref.name, error)
        return UNRESOLVED_ATTRIBUTES
    if claim is None or not claim.volume_name:
        return UNRESOLVED_ATTRIBUTES

    try:
        volume = resolver.get_volume(claim.volume_name)
    except ClaimLookupError as error:
        logger.warning("Volume lookup for %s degraded to defaults: %s", claim.volume_name, error)
        return UNRESOLVED_ATTRIBUTES
    if volume is None:
        return UNRESOLVED_ATTRIBUTES

    return attributes_from_volume(volume)


def attributes_from_volume(volume: PersistentVolumeRecord) -> VolumeAttributes:
    volume_id = UNRESOLVED_ATTRIBUTES.volume_id
    encrypted = False
    if volume.has_csi_source:
        volume_id = volume.volume_handle or ""
        encrypted = (volume.volume_attributes or {}).get("encrypted") == "true"

    return VolumeAttributes(
        volume_id=volume_id,
        encrypted=encrypted,
        iops=volume.annotations.get(IOPS_ANNOTATION, DEFAULT_IOPS),
        throughput=volume.annotations.get(THROUGHPUT_ANNOTATION, DEFAULT_THROUGHPUT),
    )
