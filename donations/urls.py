from django.urls import path
from rest_framework.routers import DefaultRouter

from donations.views import (
    CategoryViewSet,
    DonatedItemViewSet,
    ExportView,
    ImportView,
    PhotoDetailView,
    SizeViewSet,
)

router = DefaultRouter()
router.register(r"categories", CategoryViewSet, basename="category")
router.register(r"sizes", SizeViewSet, basename="size")
router.register(r"donated-items", DonatedItemViewSet, basename="donated-item")

urlpatterns = [
    path("photos/<uuid:photo_id>/", PhotoDetailView.as_view(), name="photo-detail"),
    path("import/", ImportView.as_view(), name="donations-import"),
    path("export/", ExportView.as_view(), name="donations-export"),
]
urlpatterns += router.urls
