"""
Workflow orchestrator.

Coordinates the state machine, bid ledger, contract manager and escrow
ledger for the API layer. Cross-component steps (signing a contract moves
the project, accepting an invite creates a contract) run in one unit of
work. Notifications are sent after commit and never fail an operation.
"""
import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from accounts.vetting import ProfileVettingService
from bids.services import BidLedger
from contracts.services import ContractManager
from escrow.services import EscrowLedger
from ledger.exceptions import (
    BudgetOutOfRange,
    ConflictRetryable,
    ExpertNotVerified,
    Forbidden,
    InvalidState,
)
from ledger.money import to_money
from ledger.store import fetch, lock, retry_on_conflict, unit_of_work
from notifications import events
from notifications.services import NotificationService
from payments.services import PaymentService
from projects import states
from projects.milestones import MilestoneService
from projects.models import Project
from projects.state_machine import ProjectStateMachine

logger = logging.getLogger(__name__)

INVITE_EXPIRED = 'invite_expired'


class SettlementOrchestrator:

    def __init__(self, state_machine, bids, contracts, escrow, notifier, milestones=None, vetting=None):
        self.state_machine = state_machine
        self.bids = bids
        self.contracts = contracts
        self.escrow = escrow
        self.notifier = notifier
        self.milestones = milestones or MilestoneService()
        self.vetting = vetting or ProfileVettingService()

    @classmethod
    def build(cls, notifier=None, payments=None, vetting=None):
        """Wire the default collaborators from settings."""
        vetting = vetting or ProfileVettingService()
        state_machine = ProjectStateMachine()
        return cls(
            state_machine=state_machine,
            bids=BidLedger(state_machine=state_machine),
            contracts=ContractManager(vetting=vetting),
            escrow=EscrowLedger(payments=payments or PaymentService(), vetting=vetting),
            notifier=notifier or NotificationService(),
            milestones=MilestoneService(),
            vetting=vetting,
        )

    # notifications

    def _notify(self, user_id, event_type, payload=None):
        if user_id is None:
            return

        def send():
            try:
                self.notifier.notify(user_id, event_type, payload or {})
            except Exception:
                logger.exception("Notification %s for user %s failed", event_type, user_id)

        transaction.on_commit(send)

    def _notify_state_change(self, project, from_state, actor=None):
        if project.state == from_state:
            return
        payload = {
            'project_id': project.pk,
            'from_state': from_state,
            'to_state': project.state,
        }
        for user_id in {project.client_id, project.selected_expert_id} - {None, getattr(actor, 'pk', None)}:
            self._notify(user_id, events.PROJECT_STATE_CHANGED, payload)

    # projects

    def create_project(self, client, title, description='', min_budget=None, max_budget=None,
                       open_for_bidding=True, bidding_deadline=None):
        if not (client.is_staff or client.user_type == 'client'):
            raise Forbidden("Only clients can create projects.")
        min_budget = to_money(min_budget) if min_budget is not None else None
        max_budget = to_money(max_budget) if max_budget is not None else None
        if min_budget is not None and max_budget is not None and min_budget > max_budget:
            raise BudgetOutOfRange("Minimum budget cannot exceed maximum budget.")

        project = Project.objects.create(
            client=client,
            title=title,
            description=description or '',
            min_budget=min_budget,
            max_budget=max_budget,
            open_for_bidding=open_for_bidding,
            bidding_deadline=bidding_deadline,
        )
        logger.info("Project %s created by client %s", project.pk, client.pk)
        return project

    def get_project(self, project_id, actor):
        project = fetch(Project.objects, pk=project_id)
        if project.is_archived and not (actor.is_staff or project.client_id == actor.pk):
            raise Forbidden("This project has been archived.")
        return project

    def transition_project(self, project_id, to_state, actor, reason=None, metadata=None):
        project = fetch(Project.objects, pk=project_id)
        if not (actor.is_staff or project.client_id == actor.pk):
            raise Forbidden("Not authorized to change the state of this project.")
        from_state = project.state
        project = self.state_machine.transition(project_id, to_state, actor=actor, reason=reason, metadata=metadata)
        self._notify_state_change(project, from_state, actor)
        return project

    def project_history(self, project_id, actor):
        project = fetch(Project.objects, pk=project_id)
        if not (actor.is_staff or project.is_participant(actor)):
            raise Forbidden("Not authorized to view the history of this project.")
        return self.state_machine.history(project_id)

    def archive_project(self, project_id, actor):
        """Soft delete: archived projects keep their contracts and ledger rows."""
        with unit_of_work():
            project = lock(Project.objects, pk=project_id)
            if not (actor.is_staff or project.client_id == actor.pk):
                raise Forbidden("Not authorized to archive this project.")
            project.is_archived = True
            project.open_for_bidding = False
            project.save(update_fields=['is_archived', 'open_for_bidding', 'updated_at'])
        logger.info("Project %s archived by %s", project.pk, actor.pk)
        return project

    # bids

    def list_bids(self, project_id, actor, status=None):
        project = fetch(Project.objects, pk=project_id)
        bids = self.bids.list_bids(project_id, status=status)
        if actor.is_staff or project.client_id == actor.pk:
            return bids
        return bids.filter(expert=actor)

    def list_my_bids(self, actor, status=None):
        if actor.user_type != 'expert':
            raise Forbidden("Only experts have bids.")
        return self.bids.bids_by_expert(actor, status=status)

    def submit_bid(self, project_id, expert, amount, **fields):
        bid = self.bids.submit_bid(project_id, expert, amount, **fields)
        self._notify(bid.project.client_id, events.BID_SUBMITTED, {
            'project_id': project_id,
            'bid_id': bid.pk,
            'amount': bid.amount,
        })
        return bid

    def update_bid(self, bid_id, actor, **changes):
        return self.bids.update_bid(bid_id, actor, **changes)

    def withdraw_bid(self, bid_id, actor):
        bid = self.bids.withdraw_bid(bid_id, actor)
        self._notify(bid.project.client_id, events.BID_WITHDRAWN, {
            'project_id': bid.project_id,
            'bid_id': bid.pk,
        })
        return bid

    def reject_bid(self, bid_id, actor):
        bid = self.bids.reject_bid(bid_id, actor)
        self._notify(bid.expert_id, events.BID_REJECTED, {'project_id': bid.project_id, 'bid_id': bid.pk})
        return bid

    def schedule_interview(self, bid_id, actor, scheduled_at):
        bid = self.bids.schedule_interview(bid_id, actor, scheduled_at)
        self._notify(bid.expert_id, events.INTERVIEW_SCHEDULED, {
            'project_id': bid.project_id,
            'bid_id': bid.pk,
            'scheduled_at': scheduled_at,
        })
        return bid

    @retry_on_conflict
    def accept_bid(self, project_id, bid_id, actor):
        from_state = fetch(Project.objects, pk=project_id).state
        acceptance = self.bids.accept_bid(project_id, bid_id, actor)

        self._notify(acceptance.bid.expert_id, events.BID_ACCEPTED, {
            'project_id': project_id,
            'bid_id': acceptance.bid.pk,
        })
        for rejected in acceptance.rejected_bids:
            self._notify(rejected.expert_id, events.BID_REJECTED, {
                'project_id': project_id,
                'bid_id': rejected.pk,
            })
        self._notify_state_change(acceptance.project, from_state, actor)
        return acceptance

    # invites

    def invite_expert(self, project_id, expert, actor, expires_at=None):
        if expert.user_type != 'expert':
            raise InvalidState("Only experts can be invited.")

        with unit_of_work():
            project = lock(Project.objects, pk=project_id)
            if project.client_id != actor.pk:
                raise Forbidden("Only the project client can invite experts.")
            if project.selected_expert_id is not None:
                raise InvalidState("An expert has already been selected for this project.")
            if project.is_archived:
                raise InvalidState("Cannot invite experts to an archived project.")

            from_state = project.state
            project.invited_expert = expert
            project.expert_status = 'pending'
            project.invite_expires_at = expires_at or (
                timezone.now() + timedelta(hours=getattr(settings, 'INVITE_TTL_HOURS', 72))
            )
            project.save(update_fields=['invited_expert', 'expert_status', 'invite_expires_at', 'updated_at'])
            self.state_machine.apply_path(
                project, states.EXPERT_REVIEW, actor=actor,
                reason="Expert invited", metadata={'expert_id': expert.pk},
            )

        self._notify(expert.pk, events.PROJECT_INVITE, {
            'project_id': project.pk,
            'title': project.title,
            'expires_at': project.invite_expires_at,
        })
        self._notify_state_change(project, from_state, actor)
        return project

    def respond_to_invite(self, project_id, expert, accept, now=None):
        """
        Accept or decline a pending invite.

        Accepting selects the expert, closes bidding, rejects pending bids,
        moves the project to ``accepted`` and opens a pending contract for
        the project budget.
        """
        now = now or timezone.now()
        contract = None
        rejected = []

        with unit_of_work():
            project = lock(Project.objects, pk=project_id)
            if project.invited_expert_id != expert.pk:
                raise Forbidden("This invite was not sent to you.")
            if project.expert_status != 'pending':
                raise InvalidState("This invite has already been answered.")
            if project.invite_expires_at and project.invite_expires_at < now:
                raise InvalidState("This invite has expired.")
            if accept and project.selected_expert_id is not None:
                raise InvalidState("An expert has already been selected for this project.")

            from_state = project.state
            if not accept:
                project.expert_status = 'rejected'
                project.save(update_fields=['expert_status', 'updated_at'])
            else:
                if not self.vetting.is_verified(expert):
                    raise ExpertNotVerified()
                project.expert_status = 'accepted'
                project.selected_expert = expert
                project.open_for_bidding = False
                project.save(update_fields=['expert_status', 'selected_expert', 'open_for_bidding', 'updated_at'])
                self.state_machine.apply_path(
                    project, states.ACCEPTED, actor=expert,
                    reason="Invite accepted", metadata={'expert_id': expert.pk},
                )
                rejected = self.bids.reject_pending_bids(project, now=now)
                contract = self.contracts.create_contract(project.pk, expert, actor=project.client)

        self._notify(
            project.client_id,
            events.INVITE_ACCEPTED if accept else events.INVITE_DECLINED,
            {'project_id': project.pk, 'expert_id': expert.pk},
        )
        for bid in rejected:
            self._notify(bid.expert_id, events.BID_REJECTED, {'project_id': project.pk, 'bid_id': bid.pk})
        self._notify_state_change(project, from_state, expert)
        return project, contract

    def expire_invites(self, now=None):
        """
        Cancel projects whose pending invite ran out.

        Runs as the system actor; a project whose row is busy is skipped and
        picked up by the next sweep. Returns the ids of cancelled projects.
        """
        now = now or timezone.now()
        candidates = Project.objects.filter(
            expert_status='pending',
            invite_expires_at__lt=now,
            state__in=(states.SUBMITTED, states.EXPERT_REVIEW),
        ).values_list('pk', flat=True)

        expired = []
        for project_id in list(candidates):
            try:
                with unit_of_work():
                    project = lock(Project.objects, pk=project_id)
                    if project.expert_status != 'pending' or project.invite_expires_at >= now:
                        continue
                    from_state = project.state
                    project.expert_status = 'rejected'
                    project.open_for_bidding = False
                    project.save(update_fields=['expert_status', 'open_for_bidding', 'updated_at'])
                    self.state_machine.apply(
                        project, states.CANCELLED, actor=None, reason=INVITE_EXPIRED,
                        metadata={'invited_expert_id': project.invited_expert_id},
                    )
            except ConflictRetryable:
                logger.warning("Project %s is busy, invite expiry deferred", project_id)
                continue
            expired.append(project.pk)
            self._notify_state_change(project, from_state)

        if expired:
            logger.info("Expired invites on %s projects", len(expired))
        return expired

    # contracts

    def get_contract(self, contract_id, actor):
        return self.contracts.get_contract(contract_id, actor)

    def list_contracts(self, actor, status=None):
        return self.contracts.list_contracts(actor, status=status)

    def create_contract(self, project_id, expert, actor, terms='', amount=None):
        return self.contracts.create_contract(project_id, expert, actor, terms=terms, amount=amount)

    def sign_contract(self, contract_id, actor, signature_metadata=None):
        with unit_of_work():
            contract = self.contracts.sign_contract(contract_id, actor, signature_metadata)
            project = lock(Project.objects, pk=contract.project_id)
            from_state = project.state
            self.state_machine.apply_path(
                project, states.ACTIVE, actor=actor,
                reason="Contract signed", metadata={'contract_id': contract.pk},
            )

        other_party = contract.expert_id if actor.pk == contract.client_id else contract.client_id
        self._notify(other_party, events.CONTRACT_SIGNED, {
            'contract_id': contract.pk,
            'project_id': contract.project_id,
        })
        self._notify_state_change(project, from_state, actor)
        return contract

    def update_contract_status(self, contract_id, status, actor):
        with unit_of_work():
            contract = self.contracts.update_contract_status(contract_id, status, actor)
            project = lock(Project.objects, pk=contract.project_id)
            from_state = project.state
            if contract.status == 'completed':
                self.state_machine.apply_path(
                    project, states.COMPLETED, actor=actor,
                    reason="Contract completed", metadata={'contract_id': contract.pk},
                )
        self._notify_state_change(project, from_state, actor)
        return contract

    # milestones

    def create_milestone(self, project_id, actor, title, amount, description='', due_date=None):
        return self.milestones.create_milestone(
            project_id, actor, title, amount, description=description, due_date=due_date,
        )

    def submit_milestone(self, milestone_id, actor):
        return self.milestones.submit_milestone(milestone_id, actor)

    def approve_milestone(self, milestone_id, actor, approve=True):
        return self.milestones.review_milestone(milestone_id, actor, approve=approve)

    # escrow

    def get_escrow_account(self, escrow_account_id, actor):
        return self.escrow.get_account(escrow_account_id, actor)

    def list_escrow_accounts(self, actor):
        return self.escrow.list_accounts(actor)

    def escrow_balance(self, escrow_account_id, actor):
        return self.escrow.balance(self.escrow.get_account(escrow_account_id, actor))

    def list_releases(self, escrow_account_id, actor, status=None):
        return self.escrow.list_releases(escrow_account_id, actor, status=status)

    def fund_escrow(self, project_id, amount, actor, metadata=None):
        funding = self.escrow.fund_escrow(project_id, amount, actor, metadata=metadata)
        self._notify(funding.project.selected_expert_id, events.ESCROW_FUNDED, {
            'project_id': project_id,
            'amount': funding.amount,
        })
        return funding

    def request_release(self, escrow_account_id, amount, requested_by, milestone_id=None):
        release = self.escrow.request_release(escrow_account_id, amount, requested_by, milestone_id=milestone_id)
        self._notify(release.escrow_account.project.client_id, events.RELEASE_REQUESTED, {
            'release_id': release.pk,
            'amount': release.amount,
        })
        return release

    def approve_release(self, release_id, approver):
        release = self.escrow.approve_release(release_id, approver)
        project = release.escrow_account.project
        self._notify(project.selected_expert_id, events.FUNDS_RELEASED, {
            'project_id': project.pk,
            'release_id': release.pk,
            'amount': release.amount,
            'platform_fee': release.platform_fee,
            'expert_receives': release.expert_receives,
        })
        return release

    def refund_escrow(self, escrow_account_id, actor, amount=None, reason=''):
        refund = self.escrow.refund_escrow(escrow_account_id, actor, amount=amount, reason=reason)
        self._notify(refund.project.client_id, events.FUNDS_REFUNDED, {
            'project_id': refund.project_id,
            'amount': refund.amount,
            'reason': reason,
        })
        return refund

    def set_dispute_lock(self, escrow_account_id, locked, actor):
        return self.escrow.set_dispute_lock(escrow_account_id, locked, actor)

    def verify_ledger(self, escrow_account_id, actor):
        if not actor.is_staff:
            raise Forbidden("Only admins can verify the escrow ledger.")
        return self.escrow.verify_ledger(escrow_account_id)
