from .calendar_mirror import (
    CalendarMirror,
    CalendarMirrorError,
    NullCalendarMirror,
    WebhookCalendarMirror,
    build_calendar_mirror,
)
from .redemption_mailer import (
    BookingSummary,
    ConsoleRedemptionMailer,
    RedemptionMailer,
    ResendRedemptionMailer,
    build_redemption_mailer,
)

__all__ = [
    "BookingSummary",
    "CalendarMirror",
    "CalendarMirrorError",
    "ConsoleRedemptionMailer",
    "NullCalendarMirror",
    "RedemptionMailer",
    "ResendRedemptionMailer",
    "WebhookCalendarMirror",
    "build_calendar_mirror",
    "build_redemption_mailer",
]
