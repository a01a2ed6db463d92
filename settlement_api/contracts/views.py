from django.utils import timezone
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import generics, status, views
from rest_framework.filters import OrderingFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_yasg.utils import swagger_auto_schema

from settlement_api.middleware import get_client_ip
from workflow.mixins import OrchestratorMixin

from . import serializers as my_serializers


class ContractListCreateAPIView(OrchestratorMixin, generics.ListCreateAPIView):
    """
    GET lists the contracts the user is a party to (all of them for staff).
    POST creates a contract for the expert selected on a project.
    """
    serializer_class = my_serializers.ContractSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_fields = ['status', 'project']
    ordering_fields = ['created_at', 'amount']
    ordering = ['-created_at']

    def get_queryset(self):
        return self.get_orchestrator().list_contracts(self.request.user)

    @swagger_auto_schema(request_body=my_serializers.CreateContractSerializer,
                         responses={201: my_serializers.ContractSerializer()})
    def post(self, request):
        serializer = my_serializers.CreateContractSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        contract = self.get_orchestrator().create_contract(
            data['project'].pk, data['expert'], request.user, terms=data['terms'], amount=data.get('amount'),
        )
        return Response(my_serializers.ContractSerializer(contract).data, status=status.HTTP_201_CREATED)


class ContractDetailAPIView(OrchestratorMixin, views.APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(responses={200: my_serializers.ContractSerializer()})
    def get(self, request, id):
        contract = self.get_orchestrator().get_contract(id, request.user)
        return Response(my_serializers.ContractSerializer(contract).data)


class SignContractAPIView(OrchestratorMixin, views.APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(request_body=my_serializers.SignContractSerializer,
                         responses={200: my_serializers.ContractSerializer()})
    def post(self, request, id):
        serializer = my_serializers.SignContractSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        signature_metadata = {
            'ip_address': get_client_ip(request),
            'user_agent': request.META.get('HTTP_USER_AGENT', ''),
            'consent': True,
            'consented_at': timezone.now().isoformat(),
        }
        contract = self.get_orchestrator().sign_contract(id, request.user, signature_metadata)
        return Response({
            'detail': "Contract signed.",
            'contract': my_serializers.ContractSerializer(contract).data,
        })


class ContractStatusAPIView(OrchestratorMixin, views.APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(request_body=my_serializers.ContractStatusSerializer,
                         responses={200: my_serializers.ContractSerializer()})
    def post(self, request, id):
        serializer = my_serializers.ContractStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        contract = self.get_orchestrator().update_contract_status(
            id, serializer.validated_data['status'], request.user,
        )
        return Response(my_serializers.ContractSerializer(contract).data)
