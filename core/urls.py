from rest_framework.routers import DefaultRouter

from core.views import AuditLogViewSet, LocationViewSet

router = DefaultRouter()
router.register(r"locations", LocationViewSet, basename="location")
router.register(r"audit-logs", AuditLogViewSet, basename="audit-log")

urlpatterns = router.urls
