from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import generics, permissions, status, views
from rest_framework.response import Response
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

from workflow.mixins import OrchestratorMixin

from . import serializers as my_serializers


class EscrowAccountListView(OrchestratorMixin, generics.ListAPIView):
    """List escrow accounts relevant to the authenticated user."""
    serializer_class = my_serializers.EscrowAccountSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        return self.get_orchestrator().list_escrow_accounts(self.request.user)


class EscrowAccountDetailView(OrchestratorMixin, views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    @swagger_auto_schema(responses={200: my_serializers.EscrowAccountSerializer(), 404: "Not found"})
    def get(self, request, pk):
        account = self.get_orchestrator().get_escrow_account(pk, request.user)
        return Response(my_serializers.EscrowAccountSerializer(account).data)


class EscrowTransactionListView(OrchestratorMixin, generics.ListAPIView):
    serializer_class = my_serializers.TransactionSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        account = self.get_orchestrator().get_escrow_account(self.kwargs['pk'], self.request.user)
        return account.transactions.all()


class FundEscrowView(OrchestratorMixin, views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    @swagger_auto_schema(
        operation_summary="Fund the escrow of a project",
        request_body=my_serializers.FundEscrowSerializer,
        responses={
            201: my_serializers.TransactionSerializer(),
            403: "Forbidden",
            409: "No signed contract",
            502: "Gateway failure",
        },
    )
    def post(self, request, project_id):
        serializer = my_serializers.FundEscrowSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        metadata = {}
        if serializer.validated_data.get('payment_method'):
            metadata['payment_method'] = serializer.validated_data['payment_method']
        funding = self.get_orchestrator().fund_escrow(
            project_id, serializer.validated_data['amount'], request.user, metadata=metadata,
        )
        return Response({
            'detail': "Escrow funded successfully.",
            'escrow_account_id': funding.escrow_account_id,
            'transaction': my_serializers.TransactionSerializer(funding).data,
        }, status=status.HTTP_201_CREATED)


class EscrowReleasesView(OrchestratorMixin, generics.ListCreateAPIView):
    """
    GET lists the releases of an escrow account.
    POST requests a new release from it.
    """
    serializer_class = my_serializers.PaymentReleaseSerializer
    permission_classes = [permissions.IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['status', 'milestone']

    def get_queryset(self):
        return self.get_orchestrator().list_releases(self.kwargs['pk'], self.request.user)

    @swagger_auto_schema(
        operation_summary="Request a release from an escrow",
        manual_parameters=[
            openapi.Parameter('pk', openapi.IN_PATH, description="Escrow account ID", type=openapi.TYPE_INTEGER),
        ],
        request_body=my_serializers.ReleaseRequestSerializer,
        responses={201: my_serializers.PaymentReleaseSerializer(), 409: "Insufficient balance"},
    )
    def post(self, request, pk):
        serializer = my_serializers.ReleaseRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        release = self.get_orchestrator().request_release(
            pk, serializer.validated_data.get('amount'), request.user,
            milestone_id=serializer.validated_data.get('milestone_id'),
        )
        return Response(my_serializers.PaymentReleaseSerializer(release).data, status=status.HTTP_201_CREATED)


class ApproveReleaseView(OrchestratorMixin, views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    @swagger_auto_schema(
        operation_summary="Approve and pay out a pending release",
        responses={
            200: my_serializers.PaymentReleaseSerializer(),
            409: "Insufficient balance or release not pending",
            502: "Gateway failure, release rejected",
        },
    )
    def post(self, request, pk):
        release = self.get_orchestrator().approve_release(pk, request.user)
        return Response(my_serializers.PaymentReleaseSerializer(release).data)


class RefundEscrowView(OrchestratorMixin, views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    @swagger_auto_schema(request_body=my_serializers.RefundSerializer,
                         responses={200: my_serializers.TransactionSerializer()})
    def post(self, request, pk):
        serializer = my_serializers.RefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        refund = self.get_orchestrator().refund_escrow(pk, request.user, **serializer.validated_data)
        return Response(my_serializers.TransactionSerializer(refund).data)


class EscrowLockToggleView(OrchestratorMixin, views.APIView):
    permission_classes = [permissions.IsAdminUser]

    @swagger_auto_schema(
        operation_summary="Lock or unlock an escrow for a dispute",
        request_body=my_serializers.EscrowLockSerializer,
        responses={200: my_serializers.EscrowAccountSerializer()},
    )
    def post(self, request, pk):
        serializer = my_serializers.EscrowLockSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        account = self.get_orchestrator().set_dispute_lock(pk, serializer.validated_data['locked'], request.user)
        return Response(my_serializers.EscrowAccountSerializer(account).data)


class VerifyLedgerView(OrchestratorMixin, views.APIView):
    permission_classes = [permissions.IsAdminUser]

    def post(self, request, pk):
        report = self.get_orchestrator().verify_ledger(pk, request.user)
        return Response({
            'balance': str(report['balance']),
            'drift': {field: [str(cached), str(ledger)] for field, (cached, ledger) in report['drift'].items()},
        })
