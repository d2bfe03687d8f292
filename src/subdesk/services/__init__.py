"""
Subdesk services: workflow logic for substitute coordination.

The coordination service is the public entry point. The ledger, register
and workflow classes are the per-entity building blocks it composes
inside one transaction.

Usage:
    from subdesk.services import CoordinationService

    service = CoordinationService()
    user = service.resolve_acting_user("u-42", ["captain"])
    service.decide(assignment_id=9, decision="approve", acting_user=user)
"""

from subdesk.services.assignments import AssignmentWorkflow
from subdesk.services.availability import AvailabilityLedger
from subdesk.services.coordination import (
    AvailabilityChange,
    CoordinationService,
    club_today,
)
from subdesk.services.requests import RequestArchival, SubstituteRequestRegister

__all__ = [
    # Facade
    "CoordinationService",
    "AvailabilityChange",
    "club_today",
    # Building blocks
    "AvailabilityLedger",
    "SubstituteRequestRegister",
    "RequestArchival",
    "AssignmentWorkflow",
]
