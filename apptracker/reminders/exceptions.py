class ReminderError(Exception):
    """Base class for reminder core errors."""


class UserNotFoundError(ReminderError):
    def __init__(self, user_id: str):
        super().__init__(f"User {user_id!r} not found")
        self.user_id = user_id


class UserDirectoryError(ReminderError):
    """The directory could not be queried (network, auth or configuration problem)."""


class InvalidReminderError(ReminderError, ValueError):
    pass


class AppointmentNotFoundError(ReminderError, LookupError):
    def __init__(self, appointment_id: int):
        super().__init__(f"Appointment {appointment_id} not found")
        self.appointment_id = appointment_id


class SchedulerAlreadyRunningError(ReminderError, RuntimeError):
    """A reminder scheduler is already running in this process."""
