"""Reason strings returned by the eligibility pipeline, in stage order."""

REASON_ALLOWED = "allowed"
DENIED_INACTIVE = "denied: inactive"
DENIED_SCHEDULE = "denied: schedule_closed"
DENIED_SETTLED = "denied: settled"
DENIED_SHOWN_ONCE = "denied: shown_once"
DENIED_SHOWN_THIS_SESSION = "denied: shown_this_session"
DENIED_AUDIENCE = "denied: audience"
DENIED_INVALID_RULE = "denied: invalid_rule"
DENIED_SEGMENT_MISSING = "denied: segment_missing"
DENIED_TRIGGER = "denied: trigger"
