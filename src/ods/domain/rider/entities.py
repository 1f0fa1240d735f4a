from __future__ import annotations

from dataclasses import dataclass

from ods.domain.common.ids import RiderId


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class RiderLocation:
    rider_id: RiderId
    location: Location


@dataclass(frozen=True)
class Availability:
    is_available: bool
