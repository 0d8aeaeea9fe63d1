class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class SchedulerError(AppError):
    """Raised when the scheduler encounters a logical error or invalid state."""
    def __init__(self, message: str, details: dict = None, status_code: int = 400):
        super().__init__(message, status_code=status_code, details=details)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)


# Grid cell errors

class InvalidSlot(SchedulerError):
    """The slot is outside the grid or is a fixed break/lunch period."""
    def __init__(self, day: str, period: int, reason: str = "slot is not assignable"):
        self.day = day
        self.period = period
        super().__init__(
            f"Invalid slot {day} P{period}: {reason}",
            details={"day": day, "period": period, "reason": reason},
        )

class CellOccupied(SchedulerError):
    def __init__(self, day: str, period: int, occupant: str | None = None):
        self.day = day
        self.period = period
        super().__init__(
            f"Cell {day} P{period} is already occupied",
            details={"day": day, "period": period, "occupant": occupant},
            status_code=409,
        )

class CellNotAssignable(SchedulerError):
    """Only class and lab cells can be cleared."""
    def __init__(self, day: str, period: int, kind: str):
        self.day = day
        self.period = period
        super().__init__(
            f"Cell {day} P{period} holds {kind} and cannot be cleared",
            details={"day": day, "period": period, "kind": kind},
        )


# Conflict index errors

class FacultyConflict(SchedulerError):
    def __init__(self, day: str, period: int, faculty_id: str, existing_section: str):
        self.day = day
        self.period = period
        self.faculty_id = faculty_id
        self.existing_section = existing_section
        super().__init__(
            f"Faculty {faculty_id} already teaches {existing_section} on {day} P{period}",
            details={
                "day": day,
                "period": period,
                "faculty_id": faculty_id,
                "existing_section": existing_section,
            },
            status_code=409,
        )

class NoSuchReservation(SchedulerError):
    def __init__(self, day: str, period: int, faculty_id: str):
        super().__init__(
            f"Faculty {faculty_id} holds no reservation on {day} P{period}",
            details={"day": day, "period": period, "faculty_id": faculty_id},
        )


# Generation preconditions

class InsufficientStations(SchedulerError):
    def __init__(self, batch_count: int, station_count: int, section: str | None = None, subject: str | None = None):
        self.batch_count = batch_count
        self.station_count = station_count
        label = f" for {subject} in {section}" if subject and section else ""
        super().__init__(
            f"Lab rotation{label} needs {batch_count} stations but only {station_count} are configured",
            details={
                "section": section,
                "subject": subject,
                "batch_count": batch_count,
                "station_count": station_count,
            },
        )

class RequirementExceedsCapacity(SchedulerError):
    def __init__(self, section: str, subject: str, weekly_hours: int, capacity: int):
        super().__init__(
            f"{subject} in {section} needs {weekly_hours} periods but the grid only offers {capacity}",
            details={
                "section": section,
                "subject": subject,
                "weekly_hours": weekly_hours,
                "capacity": capacity,
            },
        )

class InvalidRequirement(SchedulerError):
    def __init__(self, section: str, subject: str, reason: str):
        super().__init__(
            f"Invalid requirement {subject} in {section}: {reason}",
            details={"section": section, "subject": subject, "reason": reason},
        )


# Terminal outcomes

class Infeasible(SchedulerError):
    """No complete assignment exists for the submitted sections."""
    def __init__(self, reason: str, details: dict = None):
        self.reason = reason
        super().__init__(f"No valid timetable exists: {reason}", details=details, status_code=422)

class ValidationFailed(SchedulerError):
    def __init__(self, conflicts: list):
        self.conflicts = list(conflicts)
        super().__init__(
            f"Timetable has {len(self.conflicts)} faculty collision(s)",
            details={"conflicts": [conflict.as_dict() for conflict in self.conflicts]},
            status_code=422,
        )

class RequirementUnmet(SchedulerError):
    def __init__(self, section: str, subject: str, hours_short: int):
        self.section = section
        self.subject = subject
        self.hours_short = hours_short
        super().__init__(
            f"{subject} in {section} is {hours_short} period(s) short of its weekly hours",
            details={"section": section, "subject": subject, "hours_short": hours_short},
            status_code=422,
        )

class SearchAborted(SchedulerError):
    """The search gave up before proving feasibility or infeasibility."""
    def __init__(self, reason: str, nodes_visited: int, elapsed_ms: int):
        self.reason = reason
        self.nodes_visited = nodes_visited
        super().__init__(
            f"Timetable search aborted ({reason}) after {nodes_visited} placements",
            details={"reason": reason, "nodes_visited": nodes_visited, "elapsed_ms": elapsed_ms},
            status_code=503,
        )
