import logging
from dataclasses import dataclass, field

from django.db import IntegrityError
from django.utils import timezone

from ledger.exceptions import (
    BudgetOutOfRange,
    ConflictRetryable,
    DuplicateBid,
    Forbidden,
    InvalidState,
    ProjectNotBiddable,
)
from ledger.money import to_money
from ledger.store import fetch, lock, unit_of_work
from projects import states
from projects.models import Project
from projects.state_machine import ProjectStateMachine

from .models import Bid

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ('amount', 'proposed_timeline', 'proposed_duration', 'cover_letter')


@dataclass
class BidAcceptance:
    bid: Bid
    project: Project
    rejected_bids: list = field(default_factory=list)


class BidLedger:
    """Bid submission, edits and the accept/reject-others operation."""

    def __init__(self, state_machine=None):
        self.state_machine = state_machine or ProjectStateMachine()

    def list_bids(self, project_id, status=None):
        queryset = Bid.objects.filter(project_id=project_id).select_related('expert')
        if status:
            queryset = queryset.filter(status=status)
        return queryset

    def bids_by_expert(self, expert, status=None):
        queryset = Bid.objects.filter(expert=expert).select_related('project')
        if status:
            queryset = queryset.filter(status=status)
        return queryset

    def submit_bid(self, project_id, expert, amount, proposed_timeline='', proposed_duration=None,
                   cover_letter='', now=None):
        if expert.user_type != 'expert':
            raise Forbidden("Only experts can submit bids.")

        project = fetch(Project.objects, pk=project_id)
        amount = to_money(amount)

        if Bid.objects.filter(project=project, expert=expert, status__in=Bid.ACTIVE_STATUSES).exists():
            raise DuplicateBid()
        self._check_biddable(project, now or timezone.now())
        self._check_budget(project, amount)

        try:
            with unit_of_work():
                bid = Bid.objects.create(
                    project=project,
                    expert=expert,
                    amount=amount,
                    proposed_timeline=proposed_timeline or '',
                    proposed_duration=proposed_duration,
                    cover_letter=cover_letter or '',
                )
        except IntegrityError as exc:
            # a concurrent submission won the unique index
            raise DuplicateBid() from exc

        logger.info("Bid %s submitted on project %s by expert %s", bid.pk, project.pk, expert.pk)
        return bid

    def update_bid(self, bid_id, actor, **changes):
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise InvalidState(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

        with unit_of_work():
            bid = lock(Bid.objects.select_related('project'), pk=bid_id)
            self._check_owner(bid, actor)
            self._check_pending(bid, "Can only update pending bids.")

            if 'amount' in changes:
                changes['amount'] = to_money(changes['amount'])
                self._check_budget(bid.project, changes['amount'])
            for attr, value in changes.items():
                setattr(bid, attr, value)
            bid.save()
        return bid

    def withdraw_bid(self, bid_id, actor):
        with unit_of_work():
            bid = lock(Bid.objects.select_related('project'), pk=bid_id)
            self._check_owner(bid, actor)
            self._check_pending(bid, "Can only withdraw pending bids.")
            bid.status = 'withdrawn'
            bid.save(update_fields=['status', 'updated_at'])
        logger.info("Bid %s withdrawn", bid.pk)
        return bid

    def reject_bid(self, bid_id, actor):
        with unit_of_work():
            bid = lock(Bid.objects.select_related('project'), pk=bid_id)
            self._check_project_owner(bid.project, actor, "Not authorized to reject bids for this project.")
            self._check_pending(bid, "Only pending bids can be rejected.")
            bid.status = 'rejected'
            bid.save(update_fields=['status', 'updated_at'])
        return bid

    def accept_bid(self, project_id, bid_id, actor):
        """
        Accept one bid and reject every other pending bid of the project.

        The project row is locked for the whole unit of work, so two
        concurrent acceptances serialize: the second one sees the accepted
        bid and fails with InvalidState. The partial unique index on
        accepted bids backs this up; hitting it surfaces as ConflictRetryable.
        """
        bid = fetch(Bid.objects.select_related('project'), pk=bid_id, project_id=project_id)
        self._check_project_owner(bid.project, actor, "Not authorized to accept bids for this project.")

        try:
            with unit_of_work():
                project = lock(Project.objects, pk=project_id)
                if project.bids.filter(status='accepted').exists():
                    raise InvalidState("A bid has already been accepted for this project.")
                if project.selected_expert_id is not None:
                    raise InvalidState("An expert has already been selected for this project.")

                bid = lock(Bid.objects, pk=bid_id)
                self._check_pending(bid, "Only pending bids can be accepted.")

                now = timezone.now()
                bid.status = 'accepted'
                bid.accepted_at = now
                bid.save(update_fields=['status', 'accepted_at', 'updated_at'])

                project.selected_expert_id = bid.expert_id
                project.open_for_bidding = False
                update_fields = ['selected_expert', 'open_for_bidding', 'updated_at']
                if project.expert_status == 'pending':
                    # an outstanding invite loses to the accepted bid
                    project.expert_status = 'rejected'
                    update_fields.append('expert_status')
                project.save(update_fields=update_fields)
                self.state_machine.apply_path(
                    project, states.ACCEPTED, actor=actor,
                    reason="Bid accepted", metadata={'bid_id': bid.pk},
                )

                rejected = self.reject_pending_bids(project, now=now)
        except IntegrityError as exc:
            raise ConflictRetryable() from exc

        logger.info(
            "Bid %s accepted on project %s, %s other bids rejected",
            bid.pk, project.pk, len(rejected),
        )
        return BidAcceptance(bid=bid, project=project, rejected_bids=rejected)

    @staticmethod
    def reject_pending_bids(project, now=None):
        """Reject every pending bid of a locked project; returns the rejected bids."""
        rejected = list(project.bids.select_for_update().filter(status='pending'))
        Bid.objects.filter(pk__in=[bid.pk for bid in rejected]).update(
            status='rejected', updated_at=now or timezone.now(),
        )
        for bid in rejected:
            bid.status = 'rejected'
        return rejected

    def schedule_interview(self, bid_id, actor, scheduled_at):
        with unit_of_work():
            bid = lock(Bid.objects.select_related('project'), pk=bid_id)
            self._check_project_owner(bid.project, actor, "Not authorized to interview bidders on this project.")
            self._check_pending(bid, "Interviews can only be scheduled for pending bids.")
            bid.interview_at = scheduled_at
            bid.save(update_fields=['interview_at', 'updated_at'])
        return bid

    @staticmethod
    def _check_biddable(project, now):
        if project.is_archived or project.state in states.TERMINAL_STATES or not project.open_for_bidding:
            raise ProjectNotBiddable()
        if project.bidding_deadline and project.bidding_deadline < now:
            raise ProjectNotBiddable("Bidding deadline has passed.")

    @staticmethod
    def _check_budget(project, amount):
        if amount <= 0:
            raise BudgetOutOfRange("Bid amount must be greater than zero.")
        if project.min_budget is not None and amount < project.min_budget:
            raise BudgetOutOfRange(f"Bid amount must be at least {project.min_budget}.")
        if project.max_budget is not None and amount > project.max_budget:
            raise BudgetOutOfRange(f"Bid amount must not exceed {project.max_budget}.")

    @staticmethod
    def _check_owner(bid, actor):
        if bid.expert_id != actor.pk:
            raise Forbidden("Not authorized to change this bid.")

    @staticmethod
    def _check_project_owner(project, actor, message):
        if not (actor.is_staff or project.client_id == actor.pk):
            raise Forbidden(message)

    @staticmethod
    def _check_pending(bid, message):
        if bid.status != 'pending':
            raise InvalidState(message)
