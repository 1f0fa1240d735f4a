from __future__ import annotations

from typing import Protocol

from ods.application.use_cases.context import ProcessingContext
from ods.domain.common.ids import RiderId
from ods.domain.rider.entities import Availability, RiderLocation


class DirectoryError(Exception):
    pass


class RiderDirectory(Protocol):
    def find_nearby(
        self,
        latitude: float,
        longitude: float,
        radius: int,
        ctx: ProcessingContext,
    ) -> list[RiderLocation]: ...

    def set_availability(
        self,
        rider_id: RiderId,
        availability: Availability,
        ctx: ProcessingContext,
    ) -> None: ...
