from django.urls import path

from . import views

urlpatterns = [
    path('', views.NotificationListAPIView.as_view(), name='notification-list'),
    path('read/', views.MarkNotificationsReadAPIView.as_view(), name='notification-mark-read'),
]
