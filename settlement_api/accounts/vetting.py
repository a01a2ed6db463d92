from .models import ExpertProfile


class ProfileVettingService:
    """Read-only vetting query backed by ``ExpertProfile``."""

    def is_verified(self, expert) -> bool:
        return ExpertProfile.objects.filter(user=expert, vetting_status='verified').exists()

    def payout_destination(self, expert):
        profile = ExpertProfile.objects.filter(user=expert).first()
        if profile and profile.payout_account_id:
            return profile.payout_account_id
        return f"expert-{expert.pk}"
