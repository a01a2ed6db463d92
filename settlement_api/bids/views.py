from rest_framework import generics, status, views
from rest_framework.filters import OrderingFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend
from drf_yasg.utils import swagger_auto_schema

from accounts.permissions import IsClient, IsExpert
from projects.serializers import ProjectSerializer
from workflow.mixins import OrchestratorMixin

from . import serializers as my_serializers


class ProjectBidsAPIView(OrchestratorMixin, generics.ListCreateAPIView):
    """
    GET lists the bids of a project (project owners see all, experts their own).
    POST submits a bid as the authenticated expert.
    """
    serializer_class = my_serializers.BidSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_fields = ['status']
    ordering_fields = ['created_at', 'amount']
    ordering = ['-created_at']

    def get_queryset(self):
        return self.get_orchestrator().list_bids(self.kwargs['project_id'], self.request.user)

    @swagger_auto_schema(request_body=my_serializers.SubmitBidSerializer,
                         responses={201: my_serializers.BidSerializer()})
    def post(self, request, project_id):
        serializer = my_serializers.SubmitBidSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        bid = self.get_orchestrator().submit_bid(project_id, request.user, **serializer.validated_data)
        return Response({
            'detail': "Bid submitted successfully.",
            'bid': my_serializers.BidSerializer(bid).data,
        }, status=status.HTTP_201_CREATED)


class MyBidsAPIView(OrchestratorMixin, generics.ListAPIView):
    """Bids the authenticated expert has submitted, across projects."""
    serializer_class = my_serializers.BidSerializer
    permission_classes = [IsAuthenticated, IsExpert]
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_fields = ['status', 'project']
    ordering_fields = ['created_at', 'amount']
    ordering = ['-created_at']

    def get_queryset(self):
        return self.get_orchestrator().list_my_bids(self.request.user)


class UpdateBidAPIView(OrchestratorMixin, views.APIView):
    permission_classes = [IsAuthenticated, IsExpert]

    @swagger_auto_schema(request_body=my_serializers.UpdateBidSerializer,
                         responses={200: my_serializers.BidSerializer()})
    def patch(self, request, id):
        serializer = my_serializers.UpdateBidSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        bid = self.get_orchestrator().update_bid(id, request.user, **serializer.validated_data)
        return Response(my_serializers.BidSerializer(bid).data)


class WithdrawBidAPIView(OrchestratorMixin, views.APIView):
    permission_classes = [IsAuthenticated, IsExpert]

    def post(self, request, id):
        bid = self.get_orchestrator().withdraw_bid(id, request.user)
        return Response({'detail': "Bid withdrawn.", 'bid': my_serializers.BidSerializer(bid).data})


class RejectBidAPIView(OrchestratorMixin, views.APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, id):
        bid = self.get_orchestrator().reject_bid(id, request.user)
        return Response({'detail': "Bid rejected.", 'bid': my_serializers.BidSerializer(bid).data})


class AcceptBidAPIView(OrchestratorMixin, views.APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, project_id, id):
        acceptance = self.get_orchestrator().accept_bid(project_id, id, request.user)
        return Response({
            'detail': "Bid accepted.",
            'bid': my_serializers.BidSerializer(acceptance.bid).data,
            'project': ProjectSerializer(acceptance.project).data,
            'rejected_bids': [bid.pk for bid in acceptance.rejected_bids],
        })


class ScheduleInterviewAPIView(OrchestratorMixin, views.APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(request_body=my_serializers.ScheduleInterviewSerializer)
    def post(self, request, id):
        serializer = my_serializers.ScheduleInterviewSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        bid = self.get_orchestrator().schedule_interview(id, request.user, serializer.validated_data['scheduled_at'])
        return Response(my_serializers.BidSerializer(bid).data)
