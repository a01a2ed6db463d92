from django.urls import path

from . import views as my_views

urlpatterns = [
    path('', my_views.ContractListCreateAPIView.as_view(), name='contract-list'),
    path('<int:id>/', my_views.ContractDetailAPIView.as_view(), name='contract-detail'),
    path('<int:id>/sign/', my_views.SignContractAPIView.as_view(), name='contract-sign'),
    path('<int:id>/status/', my_views.ContractStatusAPIView.as_view(), name='contract-status'),
]
