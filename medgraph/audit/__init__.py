"""
Query audit trail and user feedback for compliance reporting.
"""

from .audit_log import AuditLog
from .models import QueryRecord, FeedbackRecord

__all__ = ["AuditLog", "QueryRecord", "FeedbackRecord"]
