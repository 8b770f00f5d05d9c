"""ORM model package."""

from resource_planner.models.entities import (
    Allocation,
    AllocationHistory,
    AppUser,
    Calendar,
    CalendarHoliday,
    Consultant,
    Customer,
    Project,
    Role,
    Team,
)

__all__ = [
    "Allocation",
    "AllocationHistory",
    "AppUser",
    "Calendar",
    "CalendarHoliday",
    "Consultant",
    "Customer",
    "Project",
    "Role",
    "Team",
]
