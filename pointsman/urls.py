from django.urls import path

from .views import (
    BalanceView,
    CardScanView,
    CardTokenView,
    HistoryView,
    RedeemView,
    UseCodeView,
)

app_name = "pointsman"

urlpatterns = [
    path("cards/token/", CardTokenView.as_view(), name="card-token"),
    path("cards/scan/", CardScanView.as_view(), name="card-scan"),
    path("redemptions/", RedeemView.as_view(), name="redeem"),
    path("redemptions/use/", UseCodeView.as_view(), name="use-code"),
    path("accounts/<str:branch_ref>/<str:client_ref>/balance/", BalanceView.as_view(), name="balance"),
    path("accounts/<str:branch_ref>/<str:client_ref>/history/", HistoryView.as_view(), name="history"),
]
