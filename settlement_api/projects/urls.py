from django.urls import path

from . import views as my_views

urlpatterns = [
    path('', my_views.ProjectListCreateAPIView.as_view(), name='project-list-create'),
    path('<int:id>/', my_views.ProjectDetailAPIView.as_view(), name='project-detail'),
    path('<int:id>/transition/', my_views.ProjectTransitionAPIView.as_view(), name='project-transition'),
    path('<int:id>/history/', my_views.ProjectHistoryAPIView.as_view(), name='project-history'),

    # invites
    path('<int:id>/invite/', my_views.InviteExpertAPIView.as_view(), name='project-invite'),
    path('<int:id>/invite/respond/', my_views.RespondToInviteAPIView.as_view(), name='project-invite-respond'),

    # milestones
    path('<int:project_id>/milestones/', my_views.MilestoneListCreateAPIView.as_view(), name='milestone-list-create'),
    path('milestones/<int:id>/submit/', my_views.SubmitMilestoneAPIView.as_view(), name='milestone-submit'),
    path('milestones/<int:id>/review/', my_views.ReviewMilestoneAPIView.as_view(), name='milestone-review'),
]
