"""
Applications Module

Handles the tutor programme application workflow:
1. Applicants fill in a draft, submit it and track its status
2. Admins record an internal decision and release it
3. Accepted applicants confirm enrollment and download an offer letter
4. Background retry of notifications that failed to send

API Endpoints:
- /applications/... - Applicant endpoints (own application only)
- /admin/applications/... - Admin endpoints (admin claim required)

Background Jobs (via APScheduler):
- retry_pending_notifications: Runs every 15 minutes, up to 5 attempts
"""

from .admin_router import router as admin_router
from .jobs import register_application_jobs
from .router import router

__all__ = ["router", "admin_router", "register_application_jobs"]
