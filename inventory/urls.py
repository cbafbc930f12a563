from django.urls import path
from rest_framework.routers import DefaultRouter

from inventory.reports import (
    CheckoutsReportView,
    CurrentInventoryReportView,
    DailyVolunteersReportView,
    ItemMasterReportView,
    LowStockReportView,
    MonthlyMovementsReportView,
    MonthlySummaryReportView,
    PopularItemsReportView,
    ReportExportView,
    TransactionHistoryReportView,
    VolunteerHoursReportView,
)
from inventory.views import (
    AdditionViewSet,
    AdjustStockQuantityView,
    AdjustmentViewSet,
    CheckoutViewSet,
    ItemViewSet,
    SetStockQuantityView,
    TransferViewSet,
)

router = DefaultRouter()
router.register(r"items", ItemViewSet, basename="item")
router.register(r"checkouts", CheckoutViewSet, basename="checkout")
router.register(r"additions", AdditionViewSet, basename="addition")
router.register(r"transfers", TransferViewSet, basename="transfer")
router.register(r"adjustments", AdjustmentViewSet, basename="adjustment")

urlpatterns = [
    path("items/sizes/<uuid:size_id>/quantity/", SetStockQuantityView.as_view(), name="item-size-quantity"),
    path("items/sizes/<uuid:size_id>/adjust/", AdjustStockQuantityView.as_view(), name="item-size-adjust"),
    path("reports/current-inventory/", CurrentInventoryReportView.as_view(), name="report-current-inventory"),
    path("reports/low-stock/", LowStockReportView.as_view(), name="report-low-stock"),
    path("reports/checkouts/", CheckoutsReportView.as_view(), name="report-checkouts"),
    path("reports/popular-items/", PopularItemsReportView.as_view(), name="report-popular-items"),
    path("reports/volunteer-hours/", VolunteerHoursReportView.as_view(), name="report-volunteer-hours"),
    path("reports/daily-volunteers/", DailyVolunteersReportView.as_view(), name="report-daily-volunteers"),
    path("reports/item-master/", ItemMasterReportView.as_view(), name="report-item-master"),
    path("reports/monthly-summary/", MonthlySummaryReportView.as_view(), name="report-monthly-summary"),
    path("reports/monthly-movements/", MonthlyMovementsReportView.as_view(), name="report-monthly-movements"),
    path(
        "reports/transaction-history/<uuid:item_id>/",
        TransactionHistoryReportView.as_view(),
        name="report-transaction-history",
    ),
    path("reports/export/<slug:report_type>/", ReportExportView.as_view(), name="report-export"),
]
urlpatterns += router.urls
