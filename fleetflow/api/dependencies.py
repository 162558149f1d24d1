"""FastAPI dependency injection helpers."""

from fastapi import Header, Query, Request

from fleetflow.config import settings
from fleetflow.services.audit import AuditRecorder
from fleetflow.services.expenses import ExpenseService
from fleetflow.services.resources import ResourceService
from fleetflow.services.trips import TripService


def get_trip_service(request: Request) -> TripService:
    return request.app.state.trip_service


def get_resource_service(request: Request) -> ResourceService:
    return request.app.state.resource_service


def get_expense_service(request: Request) -> ExpenseService:
    return request.app.state.expense_service


def get_audit_recorder(request: Request) -> AuditRecorder:
    return request.app.state.audit


def get_actor_id(
    x_user_id: int = Header(
        ..., alias="X-User-Id", gt=0, description="Acting operator's user id."
    ),
) -> int:
    """Identity of the acting operator (authentication happens upstream)."""
    return x_user_id


class Pagination:
    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    ):
        self.page = page
        self.limit = limit

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def total_pages(self, total: int) -> int:
        return -(-total // self.limit)
