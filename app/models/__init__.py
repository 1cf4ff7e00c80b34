from app.models.event import Event  # noqa: F401
from app.models.event_session import EventSession  # noqa: F401
from app.models.student import Student  # noqa: F401
from app.models.attendance import Attendance  # noqa: F401
