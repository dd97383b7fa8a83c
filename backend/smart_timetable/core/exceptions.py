class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class SchedulerError(AppError):
    """Raised when the scheduler encounters a logical error or invalid state."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)

class ConfigurationError(AppError):
    """Raised when system configuration is invalid."""
    def __init__(self, message: str):
        super().__init__(message, status_code=500)

class NoCoursesFoundError(SchedulerError):
    """Raised when a program/semester filter leaves nothing to schedule."""
    def __init__(self, program: str, semester: int):
        super().__init__(
            f"No courses found for {program} Semester {semester}",
            details={"program": program, "semester": semester},
        )
        self.status_code = 404
        self.program = program
        self.semester = semester

class ResolutionStrategyFailure(SchedulerError):
    """A single repair strategy found no valid alternative. Never fatal."""
    def __init__(self, strategy: str, reason: str, conflict_id: str | None = None):
        super().__init__(
            f"Strategy {strategy} failed: {reason}",
            details={"strategy": strategy, "reason": reason, "conflict_id": conflict_id},
        )
        self.strategy = strategy
        self.reason = reason

class TimetableGenerationError(AppError):
    """Wraps any unexpected failure inside the optimize/resolve pipeline."""
    def __init__(self, program: str, semester: int, cause: BaseException):
        super().__init__(
            f"Timetable generation failed for {program} Semester {semester}: {cause}",
            status_code=500,
            details={"program": program, "semester": semester, "cause": repr(cause)},
        )
        self.program = program
        self.semester = semester
        self.cause = cause

class UnscheduledSessionWarning(UserWarning):
    """Sessions kept with "unassigned" faculty/room because no placement fit."""
