import pytest
from rest_framework.test import APIClient

from conftest import BidFactory, ContractFactory
from notifications.models import Notification


def _client(user=None):
    api = APIClient()
    if user is not None:
        api.force_authenticate(user=user)
    return api


@pytest.mark.django_db
def test_requires_authentication():
    response = _client().get('/projects/')
    assert response.status_code == 401


@pytest.mark.django_db
def test_client_creates_project(client_user):
    response = _client(client_user).post('/projects/', {
        'title': "Landing page",
        'min_budget': '100.00',
        'max_budget': '400.00',
    }, format='json')

    assert response.status_code == 201
    assert response.data['project']['state'] == 'draft'
    assert response.data['project']['client']['id'] == client_user.pk


@pytest.mark.django_db
def test_inverted_budget_is_a_validation_error(client_user):
    response = _client(client_user).post('/projects/', {
        'title': "Landing page", 'min_budget': '500', 'max_budget': '100',
    }, format='json')
    assert response.status_code == 400


@pytest.mark.django_db
def test_settlement_errors_carry_kind(project, expert):
    api = _client(expert)
    assert api.post(f'/bids/projects/{project.pk}/', {'amount': '700'}, format='json').status_code == 201

    duplicate = api.post(f'/bids/projects/{project.pk}/', {'amount': '750'}, format='json')
    assert duplicate.status_code == 409
    assert duplicate.data['kind'] == 'duplicate_bid'
    assert duplicate.data['detail']


@pytest.mark.django_db
def test_bid_outside_budget(project, expert):
    response = _client(expert).post(f'/bids/projects/{project.pk}/', {'amount': '5000'}, format='json')
    assert response.status_code == 400
    assert response.data['kind'] == 'budget_out_of_range'


@pytest.mark.django_db
def test_expert_sees_only_own_bids(project, expert, client_user):
    own = BidFactory(project=project, expert=expert)
    BidFactory(project=project)

    expert_view = _client(expert).get(f'/bids/projects/{project.pk}/')
    client_view = _client(client_user).get(f'/bids/projects/{project.pk}/')

    assert [bid['id'] for bid in expert_view.data['results']] == [own.pk]
    assert len(client_view.data['results']) == 2


@pytest.mark.django_db
def test_accept_bid_endpoint(project, client_user):
    bid = BidFactory(project=project)
    other = BidFactory(project=project)

    response = _client(client_user).post(f'/bids/projects/{project.pk}/{bid.pk}/accept/')

    assert response.status_code == 200
    assert response.data['project']['state'] == 'accepted'
    assert response.data['rejected_bids'] == [other.pk]


@pytest.mark.django_db
def test_sign_records_request_metadata(client_user, expert, project):
    contract = ContractFactory(project=project, expert=expert)
    project.state = 'accepted'
    project.selected_expert = expert
    project.save()

    response = _client(expert).post(
        f'/contracts/{contract.pk}/sign/', {'consent': True}, format='json',
        HTTP_USER_AGENT='pytest-agent', HTTP_X_FORWARDED_FOR='203.0.113.7, 10.0.0.1',
    )

    assert response.status_code == 200
    metadata = response.data['contract']['signature_metadata']
    assert metadata['ip_address'] == '203.0.113.7'
    assert metadata['user_agent'] == 'pytest-agent'
    assert metadata['consent'] is True


@pytest.mark.django_db
def test_sign_without_consent(client_user, project, expert):
    contract = ContractFactory(project=project, expert=expert)
    response = _client(client_user).post(f'/contracts/{contract.pk}/sign/', {'consent': False}, format='json')
    assert response.status_code == 400


@pytest.mark.django_db
def test_fund_and_read_escrow(hired_project, client_user):
    api = _client(client_user)

    funded = api.post(f'/escrow/projects/{hired_project.pk}/fund/', {'amount': '1000.00'}, format='json')
    assert funded.status_code == 201

    account_id = funded.data['escrow_account_id']
    detail = api.get(f'/escrow/{account_id}/')
    assert detail.status_code == 200
    assert detail.data['balance'] == '1000.00'
    assert detail.data['status'] == 'active'


@pytest.mark.django_db
def test_fund_without_contract(project, client_user):
    response = _client(client_user).post(f'/escrow/projects/{project.pk}/fund/', {'amount': '10'}, format='json')
    assert response.status_code == 409
    assert response.data['kind'] == 'no_active_contract'


@pytest.mark.django_db
def test_release_flow_over_http(funded_escrow, client_user, expert):
    requested = _client(expert).post(f'/escrow/{funded_escrow.pk}/releases/', {'amount': '300'}, format='json')
    assert requested.status_code == 201

    approved = _client(client_user).post(f"/escrow/releases/{requested.data['id']}/approve/")
    assert approved.status_code == 200
    assert approved.data['status'] == 'released'
    assert approved.data['expert_receives'] == '270.00'



@pytest.mark.django_db
def test_contract_list_is_per_party(hired_project, client_user, expert, other_expert):
    contract = hired_project.contracts.get()

    mine = _client(expert).get('/contracts/')
    assert mine.status_code == 200
    assert [row['id'] for row in mine.data['results']] == [contract.pk]
    assert _client(client_user).get('/contracts/?status=signed').data['count'] == 1
    assert _client(client_user).get('/contracts/?status=completed').data['count'] == 0
    assert _client(other_expert).get('/contracts/').data['count'] == 0


@pytest.mark.django_db
def test_contract_for_unselected_expert(project, client_user, expert):
    response = _client(client_user).post('/contracts/', {
        'project': project.pk, 'expert': expert.pk, 'terms': 'Audit',
    }, format='json')
    assert response.status_code == 409
    assert response.data['kind'] == 'invalid_state'


@pytest.mark.django_db
def test_my_bids(project, client_user, expert, other_expert):
    BidFactory(project=project, expert=other_expert)
    own = BidFactory(project=project, expert=expert)

    response = _client(expert).get('/bids/mine/')
    assert response.status_code == 200
    assert [row['id'] for row in response.data['results']] == [own.pk]
    assert _client(client_user).get('/bids/mine/').status_code == 403


@pytest.mark.django_db
def test_release_list(funded_escrow, client_user, expert, other_expert):
    requested = _client(expert).post(f'/escrow/{funded_escrow.pk}/releases/', {'amount': '300'}, format='json')

    listed = _client(client_user).get(f'/escrow/{funded_escrow.pk}/releases/?status=pending')
    assert listed.status_code == 200
    assert [row['id'] for row in listed.data['results']] == [requested.data['id']]
    assert _client(other_expert).get(f'/escrow/{funded_escrow.pk}/releases/').status_code == 403

@pytest.mark.django_db
def test_dispute_lock_is_admin_only(funded_escrow, client_user, staff_user):
    denied = _client(client_user).post(f'/escrow/{funded_escrow.pk}/lock/', {'locked': True}, format='json')
    assert denied.status_code == 403

    locked = _client(staff_user).post(f'/escrow/{funded_escrow.pk}/lock/', {'locked': True}, format='json')
    assert locked.status_code == 200
    assert locked.data['status'] == 'disputed'


@pytest.mark.django_db
def test_missing_project(client_user):
    response = _client(client_user).get('/projects/999999/')
    assert response.status_code == 404
    assert response.data['kind'] == 'not_found'


@pytest.mark.django_db
def test_notification_inbox(client_user):
    Notification.objects.create(user=client_user, event_type='bid_submitted', message="Bid submitted")
    api = _client(client_user)

    inbox = api.get('/notifications/?is_read=false')
    assert inbox.data['count'] == 1

    marked = api.post('/notifications/read/', {}, format='json')
    assert marked.data == {'updated': 1}
    assert api.get('/notifications/?is_read=false').data['count'] == 0
