import logging

from django.utils import timezone

from ledger.exceptions import Forbidden, InvalidState
from ledger.money import ZERO, to_money
from ledger.store import fetch, lock, unit_of_work

from . import states
from .models import Milestone, Project

logger = logging.getLogger(__name__)


class MilestoneService:
    """Milestone bookkeeping. Payment of a milestone happens in the escrow ledger."""

    def create_milestone(self, project_id, actor, title, amount, description='', due_date=None):
        project = fetch(Project.objects, pk=project_id)
        if project.client_id != actor.pk:
            raise Forbidden("Only the project client can add milestones.")
        if project.state in states.TERMINAL_STATES or project.is_archived:
            raise InvalidState(f"Cannot add milestones to a {project.state} project.")
        amount = to_money(amount)
        if amount <= ZERO:
            raise InvalidState("Milestone amount must be greater than zero.")

        milestone = Milestone.objects.create(
            project=project,
            title=title,
            description=description or '',
            amount=amount,
            due_date=due_date,
        )
        logger.info("Milestone %s created on project %s", milestone.pk, project.pk)
        return milestone

    def submit_milestone(self, milestone_id, actor):
        with unit_of_work():
            milestone = lock(Milestone.objects.select_related('project'), pk=milestone_id)
            if milestone.project.selected_expert_id != actor.pk:
                raise Forbidden("Only the selected expert can submit milestones.")
            if milestone.status not in ('pending', 'rejected'):
                raise InvalidState(f"Cannot submit a {milestone.status} milestone.")
            milestone.status = 'submitted'
            milestone.submitted_at = timezone.now()
            milestone.save(update_fields=['status', 'submitted_at'])
        return milestone

    def review_milestone(self, milestone_id, actor, approve=True):
        with unit_of_work():
            milestone = lock(Milestone.objects.select_related('project'), pk=milestone_id)
            if milestone.project.client_id != actor.pk:
                raise Forbidden("Only the project client can review milestones.")
            if milestone.status != 'submitted':
                raise InvalidState("Only submitted milestones can be reviewed.")
            if approve:
                milestone.status = 'approved'
                milestone.approved_at = timezone.now()
            else:
                milestone.status = 'rejected'
            milestone.save(update_fields=['status', 'approved_at'])
        logger.info("Milestone %s %s", milestone.pk, milestone.status)
        return milestone
