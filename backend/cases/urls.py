"""
Cases app URL configuration.

All routes are registered under the ``/api/cases/`` prefix.

Route Hierarchy
---------------
  /api/cases/                                → list / report
  /api/cases/{case_id}/                      → retrieve

  ── Workflow @actions (resource-level RPC) ──────────────────────
  POST /api/cases/{case_id}/claim/            → helper joins the case
  POST /api/cases/{case_id}/begin-work/       → assigned → in_progress
  POST /api/cases/{case_id}/status-updates/   → progress note + photos
  POST /api/cases/{case_id}/transfer/         → back to the open pool
  POST /api/cases/{case_id}/resolve/          → helper marks resolved
  POST /api/cases/{case_id}/reporter-approve/ → reporter closes the case
  POST /api/cases/{case_id}/reporter-reject/  → reporter reopens it

  ── Sub-resource @actions ───────────────────────────────────────
  GET  /api/cases/{case_id}/timeline/
  GET  /api/cases/{case_id}/messages/
  POST /api/cases/{case_id}/messages/
  POST /api/cases/{case_id}/messages/mark-read/
  GET  /api/cases/{case_id}/messages/unread-count/
"""

from rest_framework.routers import DefaultRouter

from .views import CaseViewSet

router = DefaultRouter()
router.register(
    prefix=r"cases",
    viewset=CaseViewSet,
    basename="case",
)

urlpatterns = router.urls
