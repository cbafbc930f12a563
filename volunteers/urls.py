from django.urls import path
from rest_framework.routers import DefaultRouter

from volunteers.views import VolunteerSessionViewSet, VolunteerStatsView

router = DefaultRouter()
router.register(r"volunteers/sessions", VolunteerSessionViewSet, basename="volunteer-session")

urlpatterns = [
    path("volunteers/stats/", VolunteerStatsView.as_view(), name="volunteer-stats"),
]
urlpatterns += router.urls
