from services.approval.service import (
    Actor,
    Role,
    ApprovalResult,
    ApprovalItem,
    ContactDetail,
    ApprovalService,
    MAX_REASON_LENGTH,
)

__all__ = [
    "Actor",
    "Role",
    "ApprovalResult",
    "ApprovalItem",
    "ContactDetail",
    "ApprovalService",
    "MAX_REASON_LENGTH",
]
