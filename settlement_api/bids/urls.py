from django.urls import path

from . import views as my_views

urlpatterns = [
    path('mine/', my_views.MyBidsAPIView.as_view(), name='my-bids'),
    path('projects/<int:project_id>/', my_views.ProjectBidsAPIView.as_view(), name='project-bids'),
    path('projects/<int:project_id>/<int:id>/accept/', my_views.AcceptBidAPIView.as_view(), name='bid-accept'),
    path('<int:id>/', my_views.UpdateBidAPIView.as_view(), name='bid-update'),
    path('<int:id>/withdraw/', my_views.WithdrawBidAPIView.as_view(), name='bid-withdraw'),
    path('<int:id>/reject/', my_views.RejectBidAPIView.as_view(), name='bid-reject'),
    path('<int:id>/interview/', my_views.ScheduleInterviewAPIView.as_view(), name='bid-interview'),
]
