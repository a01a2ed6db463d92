from rest_framework import serializers

from .models import Bid


class BidSerializer(serializers.ModelSerializer):
    expert_email = serializers.EmailField(source='expert.email', read_only=True)

    class Meta:
        model = Bid
        fields = [
            'id', 'project', 'expert', 'expert_email', 'amount', 'proposed_timeline', 'proposed_duration',
            'cover_letter', 'status', 'accepted_at', 'interview_at', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class SubmitBidSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    proposed_timeline = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    proposed_duration = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    cover_letter = serializers.CharField(required=False, allow_blank=True, default='')


class UpdateBidSerializer(serializers.Serializer):
    """Partial edit of a pending bid; only the fields sent are changed."""
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    proposed_timeline = serializers.CharField(max_length=255, required=False, allow_blank=True)
    proposed_duration = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    cover_letter = serializers.CharField(required=False, allow_blank=True)


class ScheduleInterviewSerializer(serializers.Serializer):
    scheduled_at = serializers.DateTimeField()
