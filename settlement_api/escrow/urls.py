from django.urls import path

from . import views

urlpatterns = [
    path("", views.EscrowAccountListView.as_view(), name="escrow-list"),
    path("projects/<int:project_id>/fund/", views.FundEscrowView.as_view(), name="escrow-fund"),
    path("<int:pk>/", views.EscrowAccountDetailView.as_view(), name="escrow-detail"),
    path("<int:pk>/transactions/", views.EscrowTransactionListView.as_view(), name="escrow-transactions"),
    path("<int:pk>/releases/", views.EscrowReleasesView.as_view(), name="escrow-releases"),
    path("releases/<int:pk>/approve/", views.ApproveReleaseView.as_view(), name="escrow-release-approve"),
    path("<int:pk>/refund/", views.RefundEscrowView.as_view(), name="escrow-refund"),
    path("<int:pk>/lock/", views.EscrowLockToggleView.as_view(), name="escrow-lock"),
    path("<int:pk>/verify/", views.VerifyLedgerView.as_view(), name="escrow-verify"),
]
