"""HTTP surface: search gating, saved contracts, contract detail and service endpoints.

Invariants:
    - Anonymous searches are allowed and never recorded
    - A signed-in search on page 1 is recorded with its result count; later pages are free
    - A free user over the monthly allowance gets 402 before any search runs
    - Saving requires a Pro plan; removing and listing do not
"""

from datetime import datetime, timezone

import pytest

from contract_search.core.config import Config
from contract_search.schemas.enhance import EnhancedQuery
from contract_search.services import query_enhancer

from .conftest import FREE_TOKEN, FREE_USER_ID, PRO_TOKEN, PRO_USER_ID, auth_header


def _exhaust(store, user_id, count):
    now = datetime.now(timezone.utc).isoformat()
    store.seed('search_usage', [
        {'user_id': user_id, 'search_query': 'q', 'results_count': 0, 'created_at': now}
        for _ in range(count)
    ])


# -- search ---------------------------------------------------------------------------

def test_anonymous_search(client, contracts):
    res = client.post('/api/contracts/search', json={'sources': ['OMNIA Partners']})

    assert res.status_code == 200
    body = res.json()
    assert body['total'] == 2
    assert body['limit_info'] is None
    assert body['saved_ids'] == []
    assert contracts.tables['search_usage'] == []


def test_anonymous_search_can_be_disabled(client, contracts, monkeypatch):
    monkeypatch.setattr(Config, 'ALLOW_ANONYMOUS_SEARCH', False)

    assert client.post('/api/contracts/search', json={}).status_code == 401


def test_signed_in_search_is_recorded(client, contracts, users):
    res = client.post('/api/contracts/search', json={'search': ' janitorial '}, headers=auth_header(FREE_TOKEN))

    assert res.status_code == 200
    body = res.json()
    (usage,) = users.tables['search_usage']
    assert usage['user_id'] == FREE_USER_ID
    assert usage['search_query'] == 'janitorial'
    assert usage['results_count'] == body['total']
    assert body['limit_info'] == {
        'can_search': True,
        'remaining': Config.FREE_SEARCH_LIMIT - 1,
        'limit_count': Config.FREE_SEARCH_LIMIT,
        'is_pro': False,
    }


def test_later_pages_are_not_counted(client, contracts, users):
    res = client.post('/api/contracts/search', json={'page': 2, 'limit': 2}, headers=auth_header(FREE_TOKEN))

    assert res.status_code == 200
    assert [c['id'] for c in res.json()['contracts']] == ['c2', 'c1']
    assert users.tables['search_usage'] == []


def test_exhausted_free_user_gets_402(client, contracts, users):
    _exhaust(users, FREE_USER_ID, Config.FREE_SEARCH_LIMIT)

    res = client.post('/api/contracts/search', json={'search': 'laptops'}, headers=auth_header(FREE_TOKEN))

    assert res.status_code == 402
    assert 'Search limit reached' in res.json()['detail']
    assert len(users.tables['search_usage']) == Config.FREE_SEARCH_LIMIT
    assert not any(table == 'contracts' for table, _, _ in users.calls)


def test_exhausted_free_user_can_still_page(client, contracts, users):
    _exhaust(users, FREE_USER_ID, Config.FREE_SEARCH_LIMIT)

    res = client.post('/api/contracts/search', json={'page': 2}, headers=auth_header(FREE_TOKEN))

    assert res.status_code == 200


def test_pro_user_is_unlimited(client, contracts, users):
    _exhaust(users, PRO_USER_ID, 50)

    res = client.post('/api/contracts/search', json={'search': 'dell'}, headers=auth_header(PRO_TOKEN))

    assert res.status_code == 200
    assert res.json()['limit_info']['remaining'] is None


def test_search_reports_saved_ids(client, contracts, users):
    users.seed('saved_contracts', [{'id': 's1', 'user_id': PRO_USER_ID, 'contract_id': 'c2'}])

    res = client.post('/api/contracts/search', json={}, headers=auth_header(PRO_TOKEN))

    assert res.json()['saved_ids'] == ['c2']


def test_search_with_enhancement_broadens_text_predicate(client, contracts, monkeypatch):
    async def fake_enhance(query):
        return EnhancedQuery(original_query=query, keywords=['notebooks'], suppliers=['Lenovo'])

    monkeypatch.setattr(query_enhancer.get_query_enhancer(), 'enhance', fake_enhance)

    res = client.post('/api/contracts/search', json={'search': 'laptops', 'enhance': True})

    assert res.status_code == 200
    assert res.json()['enhancement']['keywords'] == ['notebooks']
    or_steps = [s for s in contracts.steps_for('contracts') if s[0] == 'or_']
    clause = or_steps[0][1][0]
    assert '%laptops%' in clause and '%notebooks%' in clause and '%Lenovo%' in clause


def test_search_without_enhance_flag_skips_model(client, contracts):
    res = client.post('/api/contracts/search', json={'search': 'laptops'})

    assert res.json()['enhancement'] is None


@pytest.mark.parametrize('payload', [
    {'search': 'x' * 201},
    {'date_start': '2025-01-01', 'date_end': '2024-01-01'},
])
def test_search_rejects_bad_input(client, contracts, payload):
    assert client.post('/api/contracts/search', json=payload).status_code == 400


@pytest.mark.parametrize('payload', [{'page': 0}, {'limit': 101}, {'sort_by': 'price'}])
def test_search_validates_filter_schema(client, contracts, payload):
    assert client.post('/api/contracts/search', json=payload).status_code == 422


def test_search_store_failure_is_502(client, contracts):
    contracts.fail('contracts', 'select')

    assert client.post('/api/contracts/search', json={}).status_code == 502


# -- contracts -------------------------------------------------------------------------

def test_filter_options(client, contracts):
    res = client.get('/api/contracts/filters')

    assert res.json() == {
        'sources': ['E&I', 'OMNIA Partners', 'Sourcewell'],
        'categories': ['Facilities', 'Furniture', 'Technology'],
    }


def test_contract_detail(client, contracts):
    res = client.get('/api/contracts/c1')

    assert res.status_code == 200
    body = res.json()
    assert body['contract_id'] == 'R-2024-01'
    assert body['period'] == 'January 1, 2024 - January 1, 2027'
    assert [c['id'] for c in body['related']] == ['c4']


def test_contract_detail_without_related(client, contracts):
    res = client.get('/api/contracts/c3', params={'related_limit': 0})

    assert res.json()['related'] == []
    assert res.json()['period'] == 'Not Provided'


def test_contract_detail_related_for_unmapped_source(client, contracts):
    contracts.seed('contracts', [
        {'id': 'c7', 'purchasing_org': 'NASPO', 'vendor_name': 'Acme'},
        {'id': 'c8', 'purchasing_org': 'NASPO', 'vendor_name': 'Globex'},
    ])

    body = client.get('/api/contracts/c7').json()

    assert body['source'] == 'Other'
    assert [c['id'] for c in body['related']] == ['c8']


def test_contract_detail_missing(client, contracts):
    assert client.get('/api/contracts/zzz').status_code == 404


def test_contract_detail_bad_id(client, contracts):
    assert client.get('/api/contracts/bad%20id').status_code == 400


def test_batch(client, contracts):
    res = client.get('/api/contracts/batch', params=[('ids', 'c1'), ('ids', 'c4')])

    assert sorted(c['id'] for c in res.json()) == ['c1', 'c4']


def test_batch_too_many_ids(client, contracts):
    res = client.get('/api/contracts/batch', params=[('ids', f'c{i}') for i in range(101)])

    assert res.status_code == 400


# -- saved ---------------------------------------------------------------------------

def test_free_user_cannot_save(client, contracts, users):
    res = client.post('/api/saved/c1', headers=auth_header(FREE_TOKEN))

    assert res.status_code == 403
    assert users.tables['saved_contracts'] == []


def test_free_user_can_save_when_allowed(client, contracts, users, monkeypatch):
    monkeypatch.setattr(Config, 'SAVED_CONTRACTS_PRO_ONLY', False)

    res = client.post('/api/saved/c1', headers=auth_header(FREE_TOKEN))

    assert res.status_code == 201


def test_pro_save_flow(client, contracts, users):
    headers = auth_header(PRO_TOKEN)

    first = client.post('/api/saved/c1', headers=headers)
    second = client.post('/api/saved/c1', headers=headers)

    assert first.status_code == 201
    assert first.json() == {'contract_id': 'c1', 'saved': True, 'created': True}
    assert second.json()['created'] is False
    assert client.get('/api/saved/c1', headers=headers).json() == {'contract_id': 'c1', 'saved': True}

    listing = client.get('/api/saved', headers=headers).json()
    assert [entry['contract']['id'] for entry in listing] == ['c1']

    removed = client.delete('/api/saved/c1', headers=headers)
    assert removed.json() == {'contract_id': 'c1', 'saved': False, 'removed': True}
    assert client.get('/api/saved', headers=headers).json() == []


def test_save_unknown_contract_is_404(client, contracts, users):
    assert client.post('/api/saved/nope', headers=auth_header(PRO_TOKEN)).status_code == 404


def test_saved_requires_auth(client, contracts, users):
    assert client.get('/api/saved').status_code == 401


# -- account --------------------------------------------------------------------------

def test_usage_and_history(client, contracts, users):
    headers = auth_header(FREE_TOKEN)
    client.post('/api/contracts/search', json={'search': 'dell'}, headers=headers)

    usage = client.get('/api/account/usage', headers=headers).json()
    history = client.get('/api/account/history', headers=headers).json()

    assert usage['remaining'] == Config.FREE_SEARCH_LIMIT - 1
    assert [h['search_query'] for h in history] == ['dell']


def test_checkout_endpoint_unconfigured(client, users):
    res = client.post('/api/account/billing/checkout', json={'plan': 'monthly'}, headers=auth_header(FREE_TOKEN))

    assert res.status_code == 503


# -- service ----------------------------------------------------------------------------

def test_health(client, contracts):
    body = client.get('/health').json()

    assert body['status'] == 'healthy'
    assert body['service'] == 'contract-search-api'
    assert body['query_cache'] == {'total': 0, 'valid': 0, 'expired': 0}


def test_health_reports_store_failure(client, contracts):
    contracts.fail('contracts', 'select')

    body = client.get('/health').json()

    assert body['status'] == 'unhealthy'


def test_root_lists_endpoints(client):
    body = client.get('/').json()

    assert body['endpoints']['search'] == '/api/contracts/search'
    assert body['endpoints']['stripe_webhook'] == '/api/webhooks/stripe'


def test_unhandled_errors_return_generic_500(client, contracts, monkeypatch):
    def boom():
        raise RuntimeError('connection reset')

    monkeypatch.setattr('contract_search.services.contract_service.get_all_sources', boom)

    res = client.get('/api/contracts/filters', headers={'Origin': 'http://localhost:3000'})

    assert res.status_code == 500
    assert res.json() == {'detail': 'Internal server error'}
    assert res.headers['access-control-allow-origin'] == 'http://localhost:3000'
