from .user import User
from .category import Category
from .appointment import Appointment, AppointmentLike
from .reminder import Reminder
from .sweep_lease import SweepLease
