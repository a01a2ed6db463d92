from rest_framework import generics, views
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend
from drf_yasg.utils import swagger_auto_schema

from .models import Notification
from .serializers import MarkReadSerializer, NotificationSerializer
from .services import NotificationService


class NotificationListAPIView(generics.ListAPIView):
    serializer_class = NotificationSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['event_type', 'is_read']

    def get_queryset(self):
        return Notification.objects.filter(user=self.request.user)


class MarkNotificationsReadAPIView(views.APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(request_body=MarkReadSerializer)
    def post(self, request):
        serializer = MarkReadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        updated = NotificationService().mark_read(request.user, serializer.validated_data.get('ids'))
        return Response({'updated': updated})
