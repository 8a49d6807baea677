from services.notify.service import (
    NotifyService,
    approval_ready_message,
    digest_message,
    get_app_base_url,
    DIGEST_LINES,
)

__all__ = [
    "NotifyService",
    "approval_ready_message",
    "digest_message",
    "get_app_base_url",
    "DIGEST_LINES",
]
