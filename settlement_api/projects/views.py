from django.db.models import Q
from rest_framework import generics, status, views
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend
from drf_yasg.utils import swagger_auto_schema

from accounts.permissions import IsClient, IsExpert
from workflow.mixins import OrchestratorMixin

from . import serializers as my_serializers
from .models import Milestone, Project


class ProjectListCreateAPIView(OrchestratorMixin, generics.ListCreateAPIView):
    """
    Clients see their own projects, experts see projects open for bidding
    and the ones they were hired on, staff see everything.
    """
    serializer_class = my_serializers.ProjectSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_fields = ['state', 'open_for_bidding', 'expert_status']
    search_fields = ['title', 'description']
    ordering_fields = ['created_at', 'max_budget']

    def get_queryset(self):
        user = self.request.user
        queryset = Project.objects.select_related('client', 'selected_expert')
        if user.is_staff:
            return queryset
        if user.user_type == 'client':
            return queryset.filter(client=user)
        return queryset.filter(is_archived=False).filter(
            Q(open_for_bidding=True) | Q(selected_expert=user) | Q(invited_expert=user)
        )

    @swagger_auto_schema(request_body=my_serializers.CreateProjectSerializer,
                         responses={201: my_serializers.ProjectSerializer()})
    def post(self, request, *args, **kwargs):
        serializer = my_serializers.CreateProjectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        project = self.get_orchestrator().create_project(request.user, **serializer.validated_data)
        return Response({
            'detail': "Project created successfully.",
            'project': my_serializers.ProjectSerializer(project).data,
        }, status=status.HTTP_201_CREATED)


class ProjectDetailAPIView(OrchestratorMixin, views.APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(responses={200: my_serializers.ProjectSerializer()})
    def get(self, request, id):
        project = self.get_orchestrator().get_project(id, request.user)
        return Response(my_serializers.ProjectSerializer(project).data)

    @swagger_auto_schema(operation_summary="Archive a project (soft delete)")
    def delete(self, request, id):
        self.get_orchestrator().archive_project(id, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


class ProjectTransitionAPIView(OrchestratorMixin, views.APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(request_body=my_serializers.TransitionSerializer,
                         responses={200: my_serializers.ProjectSerializer()})
    def post(self, request, id):
        serializer = my_serializers.TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        project = self.get_orchestrator().transition_project(id, actor=request.user, **serializer.validated_data)
        return Response(my_serializers.ProjectSerializer(project).data)


class ProjectHistoryAPIView(OrchestratorMixin, views.APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(responses={200: my_serializers.StateTransitionSerializer(many=True)})
    def get(self, request, id):
        history = self.get_orchestrator().project_history(id, request.user)
        return Response(my_serializers.StateTransitionSerializer(history, many=True).data)


class InviteExpertAPIView(OrchestratorMixin, views.APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(request_body=my_serializers.InviteExpertSerializer)
    def post(self, request, id):
        serializer = my_serializers.InviteExpertSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        project = self.get_orchestrator().invite_expert(
            id, serializer.validated_data['expert'], request.user,
            expires_at=serializer.validated_data.get('expires_at'),
        )
        return Response({
            'detail': "Invitation sent.",
            'project': my_serializers.ProjectSerializer(project).data,
        })


class RespondToInviteAPIView(OrchestratorMixin, views.APIView):
    permission_classes = [IsAuthenticated, IsExpert]

    @swagger_auto_schema(request_body=my_serializers.InviteResponseSerializer)
    def post(self, request, id):
        serializer = my_serializers.InviteResponseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        accept = serializer.validated_data['accept']
        project, contract = self.get_orchestrator().respond_to_invite(id, request.user, accept)
        return Response({
            'detail': "Invitation accepted." if accept else "Invitation declined.",
            'project': my_serializers.ProjectSerializer(project).data,
            'contract_id': contract.pk if contract else None,
        })


class MilestoneListCreateAPIView(OrchestratorMixin, generics.ListCreateAPIView):
    serializer_class = my_serializers.MilestoneSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        project = self.get_orchestrator().get_project(self.kwargs['project_id'], self.request.user)
        if not (self.request.user.is_staff or project.is_participant(self.request.user)):
            return Milestone.objects.none()
        return project.milestones.order_by('created_at')

    def post(self, request, project_id):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        milestone = self.get_orchestrator().create_milestone(project_id, request.user, **serializer.validated_data)
        return Response(self.get_serializer(milestone).data, status=status.HTTP_201_CREATED)


class SubmitMilestoneAPIView(OrchestratorMixin, views.APIView):
    permission_classes = [IsAuthenticated, IsExpert]

    def post(self, request, id):
        milestone = self.get_orchestrator().submit_milestone(id, request.user)
        return Response(my_serializers.MilestoneSerializer(milestone).data)


class ReviewMilestoneAPIView(OrchestratorMixin, views.APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(request_body=my_serializers.MilestoneReviewSerializer)
    def post(self, request, id):
        serializer = my_serializers.MilestoneReviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        milestone = self.get_orchestrator().approve_milestone(id, request.user, **serializer.validated_data)
        return Response(my_serializers.MilestoneSerializer(milestone).data)
