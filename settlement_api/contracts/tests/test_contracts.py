from decimal import Decimal

import pytest

from conftest import ContractFactory, ExpertFactory, ProjectFactory
from contracts.services import ContractManager
from ledger.exceptions import ExpertNotVerified, Forbidden, InvalidState


@pytest.fixture
def manager():
    return ContractManager()


@pytest.fixture
def selected_project(client_user, expert):
    return ProjectFactory(client=client_user, selected_expert=expert)


@pytest.mark.django_db
class TestCreateContract:

    def test_defaults_amount_to_max_budget(self, manager, selected_project, client_user, expert):
        contract = manager.create_contract(selected_project.pk, expert, client_user, terms='Deliver the report')
        assert contract.status == 'pending'
        assert contract.amount == Decimal('1000.00')
        assert contract.client_id == client_user.pk
        assert contract.signature_metadata is None

    def test_explicit_amount(self, manager, selected_project, client_user, expert):
        contract = manager.create_contract(selected_project.pk, expert, client_user, amount='640.50')
        assert contract.amount == Decimal('640.50')

    def test_unverified_expert_is_refused(self, manager, client_user):
        unverified = ExpertFactory(profile__vetting_status='pending')
        project = ProjectFactory(client=client_user, selected_expert=unverified)
        with pytest.raises(ExpertNotVerified):
            manager.create_contract(project.pk, unverified, client_user)
        assert not project.contracts.exists()

    def test_expert_must_be_selected(self, manager, project, selected_project, client_user, expert, other_expert):
        with pytest.raises(InvalidState):
            manager.create_contract(project.pk, expert, client_user)
        with pytest.raises(InvalidState):
            manager.create_contract(selected_project.pk, other_expert, client_user)
        assert not project.contracts.exists()
        assert not selected_project.contracts.exists()

    def test_only_project_client(self, manager, selected_project, expert, other_expert):
        with pytest.raises(Forbidden):
            manager.create_contract(selected_project.pk, expert, other_expert)

    def test_get_contract_for_outsider(self, manager, project, other_expert):
        contract = ContractFactory(project=project)
        with pytest.raises(Forbidden):
            manager.get_contract(contract.pk, other_expert)


@pytest.mark.django_db
class TestSignContract:

    def test_records_signature_once(self, manager, project, client_user):
        contract = ContractFactory(project=project)
        metadata = {'ip': '10.0.0.1', 'user_agent': 'pytest', 'consent': True}

        contract = manager.sign_contract(contract.pk, client_user, signature_metadata=metadata)

        assert contract.status == 'signed'
        assert contract.signed_by == client_user
        assert contract.signed_at is not None
        assert contract.signature_metadata == metadata

    def test_second_signature_keeps_first_metadata(self, manager, project, client_user):
        contract = ContractFactory(project=project)
        manager.sign_contract(contract.pk, client_user, signature_metadata={'ip': '10.0.0.1'})

        with pytest.raises(InvalidState):
            manager.sign_contract(contract.pk, contract.expert, signature_metadata={'ip': '10.0.0.2'})

        contract.refresh_from_db()
        assert contract.signature_metadata == {'ip': '10.0.0.1'}
        assert contract.signed_by == client_user

    def test_outsider_cannot_sign(self, manager, project, other_expert):
        contract = ContractFactory(project=project)
        with pytest.raises(Forbidden):
            manager.sign_contract(contract.pk, other_expert)


@pytest.mark.django_db
class TestContractStatus:

    def test_unknown_status(self, manager, project, client_user):
        contract = ContractFactory(project=project)
        with pytest.raises(InvalidState):
            manager.update_contract_status(contract.pk, 'archived', client_user)

    def test_pending_must_be_signed_first(self, manager, project, client_user):
        contract = ContractFactory(project=project)
        with pytest.raises(InvalidState):
            manager.update_contract_status(contract.pk, 'active', client_user)

    def test_forward_moves(self, manager, project, client_user):
        contract = ContractFactory(project=project)
        for status in ('signed', 'active', 'completed'):
            contract = manager.update_contract_status(contract.pk, status, client_user)
            assert contract.status == status
        assert contract.signed_at is not None

    def test_no_backward_moves(self, manager, project, client_user):
        contract = ContractFactory(project=project, status='active', signed_by=client_user)
        with pytest.raises(InvalidState):
            manager.update_contract_status(contract.pk, 'signed', client_user)

    @pytest.mark.parametrize('terminal', ['completed', 'cancelled'])
    def test_terminal_statuses_are_final(self, manager, project, client_user, terminal):
        contract = ContractFactory(project=project, status=terminal)
        with pytest.raises(InvalidState):
            manager.update_contract_status(contract.pk, 'cancelled' if terminal == 'completed' else 'active', client_user)

    def test_cancel_from_pending(self, manager, project, client_user):
        contract = ContractFactory(project=project)
        contract = manager.update_contract_status(contract.pk, 'cancelled', client_user)
        assert contract.status == 'cancelled'

    def test_fundable_contract_prefers_latest_signed(self, manager, client_user):
        project = ProjectFactory(client=client_user)
        ContractFactory(project=project, status='cancelled')
        assert manager.fundable_contract(project) is None
        signed = ContractFactory(project=project, status='signed')
        assert manager.fundable_contract(project) == signed
