"""Import every model so Base.metadata knows about them."""
from clubflow.models.user import User, Role  # noqa: F401
from clubflow.models.club import Club  # noqa: F401
from clubflow.models.event import Event, EventStatus  # noqa: F401
from clubflow.models.registration import EventRegistration, RegistrationStatus  # noqa: F401
from clubflow.models.feedback import EventFeedback  # noqa: F401
from clubflow.models.news import NewsPost, NewsStatus  # noqa: F401
from clubflow.models.activity_log import ActivityLogEntry  # noqa: F401
from clubflow.models.notification import Notification  # noqa: F401
from clubflow.models.membership import ClubMember, ClubModerator  # noqa: F401
