"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from fleetflow.domain.entities import Location
from fleetflow.domain.enums import (
    DriverStatus,
    TripStatus,
    VehicleStatus,
    VehicleType,
)


# ── Requests ──────────────────────────────────────────────────────────


class LocationIn(BaseModel):
    address: str = Field(..., min_length=1, max_length=255)
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)

    def to_domain(self) -> Location:
        return Location(self.address, self.lat, self.lng)


class TripCreateRequest(BaseModel):
    origin: LocationIn
    destination: LocationIn
    cargo_weight_kg: float = Field(..., ge=0)
    vehicle_id: int = Field(..., gt=0)
    driver_id: int = Field(..., gt=0)
    revenue: float = Field(0.0, ge=0)
    notes: str = Field("", max_length=2000)


class TripCompleteRequest(BaseModel):
    end_odometer: float = Field(..., ge=0)
    fuel_liters: Optional[float] = Field(
        None, ge=0, description="Recorded as a fuel expense when > 0."
    )
    fuel_cost: Optional[float] = Field(
        None, ge=0, description="Recorded as a fuel expense when > 0."
    )


class VehicleStatusRequest(BaseModel):
    status: VehicleStatus


class DriverStatusRequest(BaseModel):
    status: DriverStatus


class MaintenanceCreateRequest(BaseModel):
    maintenance_type: str = Field(
        ..., min_length=1, max_length=100, description='e.g. "Oil Change"'
    )
    provider: str = Field("", max_length=100)
    cost: float = Field(..., ge=0)
    service_date: Optional[datetime] = Field(
        None, description="Defaults to the time of the request."
    )
    resolved: bool = False


class FuelExpenseCreateRequest(BaseModel):
    vehicle_id: int = Field(..., gt=0)
    trip_id: Optional[int] = Field(None, gt=0)
    liters: float = Field(0.0, ge=0)
    cost: float = Field(0.0, ge=0)
    expense_date: Optional[datetime] = Field(
        None, description="Defaults to the time of the request."
    )


# ── Responses ─────────────────────────────────────────────────────────


class LocationOut(BaseModel):
    address: str
    lat: Optional[float] = None
    lng: Optional[float] = None


class TripResponse(BaseModel):
    id: int
    reference_code: str
    origin: LocationOut
    destination: LocationOut
    cargo_weight_kg: float
    vehicle_id: int
    driver_id: int
    status: TripStatus
    created_at: datetime
    dispatched_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    start_odometer: float
    end_odometer: Optional[float] = None
    revenue: float
    notes: str

    @classmethod
    def from_model(cls, trip) -> "TripResponse":
        return cls(
            id=trip.id,
            reference_code=trip.reference_code,
            origin=LocationOut(
                address=trip.origin_address, lat=trip.origin_lat, lng=trip.origin_lng
            ),
            destination=LocationOut(
                address=trip.destination_address,
                lat=trip.destination_lat,
                lng=trip.destination_lng,
            ),
            cargo_weight_kg=trip.cargo_weight_kg,
            vehicle_id=trip.vehicle_id,
            driver_id=trip.driver_id,
            status=trip.status,
            created_at=trip.created_at,
            dispatched_at=trip.dispatched_at,
            completed_at=trip.completed_at,
            cancelled_at=trip.cancelled_at,
            start_odometer=trip.start_odometer,
            end_odometer=trip.end_odometer,
            revenue=trip.revenue,
            notes=trip.notes,
        )


class VehicleResponse(BaseModel):
    id: int
    name: str
    license_plate: str
    vehicle_type: VehicleType
    max_load_kg: float
    odometer_km: float
    status: VehicleStatus

    model_config = {"from_attributes": True}


class DriverResponse(BaseModel):
    id: int
    name: str
    license_number: str
    license_expiry: date
    categories: list[VehicleType] = []
    status: DriverStatus
    assigned_vehicle_id: Optional[int] = None

    model_config = {"from_attributes": True}


class FuelExpenseResponse(BaseModel):
    id: int
    vehicle_id: int
    trip_id: Optional[int] = None
    liters: float
    cost: float
    expense_date: datetime
    created_by: int

    model_config = {"from_attributes": True}


class MaintenanceResponse(BaseModel):
    id: int
    vehicle_id: int
    maintenance_type: str
    provider: str
    cost: float
    service_date: datetime
    resolved: bool
    created_by: int

    model_config = {"from_attributes": True}


class MaintenanceResult(BaseModel):
    maintenance: MaintenanceResponse
    vehicle: VehicleResponse


class AuditEntryResponse(BaseModel):
    id: int
    action: str
    entity_type: str
    entity_id: int
    actor_id: int
    details: dict[str, Any] = {}
    created_at: datetime

    model_config = {"from_attributes": True}


class TripPage(BaseModel):
    items: list[TripResponse]
    total: int
    page: int
    total_pages: int


class VehiclePage(BaseModel):
    items: list[VehicleResponse]
    total: int
    page: int
    total_pages: int


class DriverPage(BaseModel):
    items: list[DriverResponse]
    total: int
    page: int
    total_pages: int


class FuelExpensePage(BaseModel):
    items: list[FuelExpenseResponse]
    total: int
    page: int
    total_pages: int


class MaintenancePage(BaseModel):
    items: list[MaintenanceResponse]
    total: int
    page: int
    total_pages: int


class AuditPage(BaseModel):
    items: list[AuditEntryResponse]
    total: int
    page: int
    total_pages: int


class HealthResponse(BaseModel):
    status: str = "ok"
    subscribers: int = 0


class ErrorResponse(BaseModel):
    detail: str
    code: str
    context: dict[str, Any] = {}
