from rest_framework import serializers
from django.contrib.auth import get_user_model

from . import states
from .models import Milestone, Project, ProjectStateTransition

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    """
    Serializer for lightweight user references.

    Fields (all read-only): id, first_name, last_name, email.
    """
    class Meta:
        model = User
        fields = ['id', 'first_name', 'last_name', 'email']


class ProjectSerializer(serializers.ModelSerializer):
    client = UserSerializer(read_only=True)
    selected_expert = UserSerializer(read_only=True)

    class Meta:
        model = Project
        fields = [
            'id', 'client', 'title', 'description', 'min_budget', 'max_budget', 'state',
            'rejection_reason', 'expert_status', 'invited_expert', 'invite_expires_at',
            'selected_expert', 'open_for_bidding', 'bidding_deadline', 'is_archived',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class CreateProjectSerializer(serializers.Serializer):
    """
    Input for clients creating a project.

    Budgets are optional; when both are given the minimum cannot exceed the maximum.
    """
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    min_budget = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True, min_value=0)
    max_budget = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True, min_value=0)
    open_for_bidding = serializers.BooleanField(required=False, default=True)
    bidding_deadline = serializers.DateTimeField(required=False, allow_null=True)

    def validate(self, attrs):
        low, high = attrs.get('min_budget'), attrs.get('max_budget')
        if low is not None and high is not None and low > high:
            raise serializers.ValidationError({'min_budget': "Minimum budget cannot exceed maximum budget."})
        return attrs


class TransitionSerializer(serializers.Serializer):
    to_state = serializers.ChoiceField(choices=states.STATE_CHOICES)
    reason = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    metadata = serializers.DictField(required=False, default=dict)


class StateTransitionSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProjectStateTransition
        fields = ['id', 'from_state', 'to_state', 'triggered_by', 'reason', 'metadata', 'created_at']
        read_only_fields = fields


class InviteExpertSerializer(serializers.Serializer):
    expert = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(user_type='expert'))
    expires_at = serializers.DateTimeField(required=False, allow_null=True)


class InviteResponseSerializer(serializers.Serializer):
    accept = serializers.BooleanField()


class MilestoneSerializer(serializers.ModelSerializer):
    """
    Milestone progress and payment status.

    Only title, description, amount and due_date are writable; status moves
    through the submit/review endpoints.
    """
    class Meta:
        model = Milestone
        fields = [
            'id', 'project', 'title', 'description', 'amount', 'status', 'submitted_at',
            'approved_at', 'due_date', 'is_paid', 'created_at',
        ]
        read_only_fields = ['id', 'project', 'status', 'submitted_at', 'approved_at', 'is_paid', 'created_at']

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Please enter a valid amount.")
        return value


class MilestoneReviewSerializer(serializers.Serializer):
    approve = serializers.BooleanField(default=True)
