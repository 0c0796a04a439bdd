import asyncio

import pytest
from sqlalchemy.exc import OperationalError

from brandvigilante.models.brand import Brand, BrandMarketplace
from brandvigilante.models.listing import Listing, listing_brand_tmterms
from brandvigilante.models.marketplace import Marketplace
from brandvigilante.models.product import Product
from brandvigilante.models.seller import Seller, SellerListing
from brandvigilante.models.trademark_term import TrademarkTerm
from brandvigilante.models.user import User
from brandvigilante.routes import api_routes


@pytest.fixture
def admin(make_user, login):
    user = make_user(email='admin@janusipm.com', role='admin')
    login(user)
    return user


@pytest.fixture
def catalog(db):
    brand = Brand(name='acme', display_name='ACME Corp')
    marketplace = Marketplace(
        platform_name='Amazon',
        country_code='US',
        currency_code='USD',
        base_url='https://www.amazon.com',
    )
    product = Product(title='Rocket Skates', upc='012345678905')
    db.add_all([brand, marketplace, product])
    db.flush()
    term = TrademarkTerm(brand_id=brand.id, term='ACME')
    db.add(term)
    db.commit()
    return {'brand': brand, 'marketplace': marketplace, 'product': product, 'term': term}


def _listing_payload(catalog, **overrides) -> dict:
    payload = {
        'product_id': catalog['product'].id,
        'marketplace_id': catalog['marketplace'].id,
        'url': 'https://www.amazon.com/dp/B000000001',
        'external_id': 'B000000001',
        'price': '19.99',
        'currency': 'usd',
        'trademark_term_ids': [catalog['term'].id],
    }
    payload.update(overrides)
    return payload


def test_api_requires_session(client) -> None:
    response = client.get('/api/listings')

    assert response.status_code == 401
    assert response.json() == {'error': 'Authentication required', 'code': 'UNAUTHENTICATED'}


def test_api_rejects_non_admin(client, make_user, login) -> None:
    login(make_user(role='user'))

    response = client.get('/api/listings')

    assert response.status_code == 403
    assert response.json() == {'error': 'Admin access required', 'code': 'FORBIDDEN'}


def test_assign_and_remove_brand_users(client, db, admin, catalog, make_user) -> None:
    member = make_user(email='member@janusipm.com')
    brand_id = catalog['brand'].id

    added = client.post(f'/api/brands/{brand_id}/users', json={'user_ids': [member.id]})
    db.expire_all()
    assert added.json() == {'success': True}
    assert [user.email for user in db.get(Brand, brand_id).users] == ['member@janusipm.com']

    removed = client.request('DELETE', f'/api/brands/{brand_id}/users', json={'user_ids': [member.id]})
    db.expire_all()
    assert removed.json() == {'success': True}
    assert db.get(Brand, brand_id).users == []


def test_assign_unknown_user_is_rejected(client, admin, catalog) -> None:
    response = client.post(f'/api/brands/{catalog["brand"].id}/users', json={'user_ids': [999]})

    assert response.status_code == 400
    assert response.json()['code'] == 'INVALID_REFERENCE'


def test_assign_with_empty_ids_is_a_validation_error(client, admin, catalog) -> None:
    response = client.post(f'/api/brands/{catalog["brand"].id}/users', json={'user_ids': []})

    assert response.status_code == 400
    assert response.json()['field_errors']['user_ids'] == ['Invalid user IDs']


def test_brand_marketplace_links_and_status(client, db, admin, catalog) -> None:
    brand_id = catalog['brand'].id
    marketplace_id = catalog['marketplace'].id

    linked = client.post(f'/api/brands/{brand_id}/marketplaces', json={'marketplace_ids': [marketplace_id]})
    status_changed = client.put(
        f'/api/brands/{brand_id}/marketplaces/{marketplace_id}/status',
        json={'status': 'inactive'},
    )

    assert linked.json() == {'success': True}
    assert status_changed.json() == {'success': True}
    db.expire_all()
    assert db.get(BrandMarketplace, (brand_id, marketplace_id)).status == 'inactive'

    client.request('DELETE', f'/api/brands/{brand_id}/marketplaces', json={'marketplace_ids': [marketplace_id]})
    db.expire_all()
    assert db.get(BrandMarketplace, (brand_id, marketplace_id)) is None


def test_status_for_unlinked_marketplace_is_not_found(client, admin, catalog) -> None:
    response = client.put(
        f'/api/brands/{catalog["brand"].id}/marketplaces/{catalog["marketplace"].id}/status',
        json={'status': 'active'},
    )

    assert response.status_code == 404


def test_admin_cannot_delete_own_account(client, db, admin) -> None:
    response = client.delete(f'/api/users/{admin.id}')

    assert response.status_code == 400
    assert response.json() == {'error': 'Cannot delete your own account', 'code': 'SELF_DELETE'}
    assert db.get(User, admin.id) is not None


def test_admin_deletes_other_user(client, db, admin, make_user) -> None:
    member = make_user(email='member@janusipm.com')

    response = client.delete(f'/api/users/{member.id}')

    assert response.json() == {'success': True}
    db.expire_all()
    assert db.query(User).filter(User.email == 'member@janusipm.com').first() is None


def test_lead_creates_lead_account_and_sends_confirmation(client, db, outbox) -> None:
    response = client.post('/api/leads', json={
        'first_name': 'Wile',
        'last_name': 'Coyote',
        'email': 'Wile@JanusIPM.com',
        'company': 'Desert Hunting LLC',
        'phone': '555-0100',
    })

    assert response.status_code == 200
    assert response.json()['success'] is True
    lead = db.query(User).filter(User.email == 'wile@janusipm.com').one()
    assert lead.role == 'lead'
    assert lead.hashed_password is None
    assert lead.phone == '5550100'
    assert [message['to'] for message in outbox] == ['wile@janusipm.com']


def test_lead_for_existing_account_creates_nothing(client, db, make_user, monkeypatch) -> None:
    make_user(email='wile@janusipm.com')
    notified = []
    monkeypatch.setattr(api_routes, 'send_lead_notification', lambda lead, existing_user: notified.append(existing_user))

    response = client.post('/api/leads', json={
        'first_name': 'Wile',
        'last_name': 'Coyote',
        'email': 'wile@janusipm.com',
    })

    assert response.json()['existing_user'] is True
    assert notified == [True]
    assert db.query(User).count() == 1


def test_create_listing_links_trademark_terms(client, db, admin, catalog) -> None:
    response = client.post('/api/listings', json=_listing_payload(catalog))

    assert response.status_code == 201
    body = response.json()
    assert body['price'] == '19.99'
    assert body['currency'] == 'USD'
    assert body['product']['title'] == 'Rocket Skates'
    assert [term['term'] for term in body['trademark_terms']] == ['ACME']


def test_create_listing_rejects_unknown_references(client, admin, catalog) -> None:
    response = client.post('/api/listings', json=_listing_payload(catalog, trademark_term_ids=[999]))

    assert response.status_code == 400
    assert response.json()['code'] == 'INVALID_REFERENCE'


def test_create_listing_rolls_back_when_activity_write_fails(client, db, admin, catalog, monkeypatch) -> None:
    def failing_record_activity(*args, **kwargs):
        raise OperationalError('INSERT INTO activity_logs', {}, Exception('disk I/O error'))

    monkeypatch.setattr('brandvigilante.services.listings.record_activity', failing_record_activity)

    response = client.post('/api/listings', json=_listing_payload(catalog))

    assert response.status_code == 503
    assert response.json()['code'] == 'CONNECTION_ERROR'
    db.expire_all()
    assert db.query(Listing).count() == 0
    assert db.query(listing_brand_tmterms).count() == 0


def test_update_and_delete_listing(client, db, admin, catalog) -> None:
    listing_id = client.post('/api/listings', json=_listing_payload(catalog)).json()['id']

    updated = client.put(f'/api/listings/{listing_id}', json=_listing_payload(catalog, price='5', trademark_term_ids=[]))

    assert updated.json()['price'] == '5.00'
    assert updated.json()['trademark_terms'] == []

    deleted = client.delete(f'/api/listings/{listing_id}')

    assert deleted.json() == {'success': True}
    assert client.get(f'/api/listings/{listing_id}').status_code == 404


def test_listing_search_and_pagination(client, admin, catalog) -> None:
    for index in range(3):
        client.post('/api/listings', json=_listing_payload(catalog, external_id=f'B00{index}'))

    page = client.get('/api/listings', params={'per_page': 2, 'search': 'skates'}).json()
    empty = client.get('/api/listings', params={'search': 'nothing-matches'}).json()

    assert page['pagination'] == {'page': 1, 'per_page': 2, 'total': 3, 'total_pages': 2}
    assert len(page['listings']) == 2
    assert empty['listings'] == []


def test_signed_in_user_can_browse_listings(client, make_user, login, catalog, db) -> None:
    db.add(Listing(product_id=catalog['product'].id, marketplace_id=catalog['marketplace'].id))
    db.commit()
    login(make_user())

    response = client.get('/listings')

    assert response.status_code == 200
    assert response.json()['pagination']['total'] == 1


def test_seller_crud_and_duplicate(client, admin) -> None:
    payload = {'external_seller_id': 'A1B2C3', 'seller_name': 'Roadrunner Goods'}

    created = client.post('/api/sellers', json=payload)
    duplicate = client.post('/api/sellers', json=payload)

    assert created.status_code == 201
    assert duplicate.status_code == 409
    assert duplicate.json()['code'] == 'DUPLICATE_SELLER'

    seller_id = created.json()['id']
    renamed = client.put(f'/api/sellers/{seller_id}', json=dict(payload, seller_name='Roadrunner Outlet'))
    assert renamed.json()['seller_name'] == 'Roadrunner Outlet'
    assert [seller['seller_name'] for seller in client.get('/api/sellers', params={'search': 'outlet'}).json()] == [
        'Roadrunner Outlet'
    ]
    assert client.delete(f'/api/sellers/{seller_id}').json() == {'success': True}


def test_create_product(client, admin) -> None:
    response = client.post('/api/products', json={'title': ' Anvil ', 'upc': '', 'ean': '4006381333931'})

    assert response.status_code == 201
    assert response.json()['title'] == 'Anvil'
    assert response.json()['upc'] is None


def test_health_reports_working_database(client) -> None:
    response = client.get('/api/health')

    assert response.status_code == 200
    assert response.json() == {'status': 'ok', 'database': 'working'}


def test_health_reports_connection_error(client, monkeypatch) -> None:
    def failing_ping() -> None:
        raise OperationalError('SELECT 1', {}, Exception('connection refused'))

    monkeypatch.setattr(api_routes, 'ping_database', failing_ping)

    response = client.get('/api/health')

    assert response.status_code == 503
    assert response.json() == {'error': 'Database connection error occurred', 'code': 'CONNECTION_ERROR'}


def test_health_reports_timeout(client, monkeypatch) -> None:
    monkeypatch.setattr(api_routes.config, 'QUERY_TIMEOUT_SECONDS', 0.01)

    async def never_finishes(func):
        await asyncio.sleep(5)

    monkeypatch.setattr(api_routes, 'run_in_threadpool', never_finishes)

    response = client.get('/api/health')

    assert response.status_code == 503
    assert response.json()['code'] == 'QUERY_TIMEOUT'


def test_test_email_requires_admin_and_reports_failure(client, admin, monkeypatch) -> None:
    sent = client.post('/api/test-email', json={'to': 'ops@janusipm.com'})
    monkeypatch.setattr(api_routes, 'send_test_email', lambda to: False)
    failed = client.post('/api/test-email', json={'to': 'ops@janusipm.com'})

    assert sent.json()['success'] is True
    assert failed.status_code == 500
    assert failed.json()['code'] == 'EMAIL_SEND_FAILED'


def test_update_without_term_ids_keeps_existing_links(client, admin, catalog) -> None:
    listing_id = client.post('/api/listings', json=_listing_payload(catalog)).json()['id']
    payload = _listing_payload(catalog, price='7.50')
    del payload['trademark_term_ids']

    updated = client.put(f'/api/listings/{listing_id}', json=payload)

    assert updated.status_code == 200
    assert updated.json()['price'] == '7.50'
    assert [term['id'] for term in updated.json()['trademark_terms']] == [catalog['term'].id]


def test_create_listing_without_term_ids(client, admin, catalog) -> None:
    payload = _listing_payload(catalog)
    del payload['trademark_term_ids']

    response = client.post('/api/listings', json=payload)

    assert response.status_code == 201
    assert response.json()['trademark_terms'] == []


def test_delete_seller_with_listings_is_a_conflict(client, db, admin, catalog) -> None:
    seller_id = client.post('/api/sellers', json={'external_seller_id': 'S1', 'seller_name': 'Coyote Supply'}).json()['id']
    client.post('/api/listings', json=_listing_payload(catalog, seller_id=seller_id))

    response = client.delete(f'/api/sellers/{seller_id}')

    assert response.status_code == 409
    assert response.json() == {'error': 'This seller still has listings', 'code': 'SELLER_IN_USE'}
    assert db.get(Seller, seller_id) is not None


def test_seller_offers_keep_a_single_buybox_winner(client, db, admin, catalog) -> None:
    first = client.post('/api/sellers', json={'external_seller_id': 'S1', 'seller_name': 'Coyote Supply'}).json()
    second = client.post('/api/sellers', json={'external_seller_id': 'S2', 'seller_name': 'Roadrunner Goods'}).json()
    listing_id = client.post('/api/listings', json=_listing_payload(catalog)).json()['id']

    won = client.post(f'/api/sellers/{first["id"]}/listings', json={'listing_id': listing_id, 'is_buybox_winner': True})
    taken = client.post(f'/api/sellers/{second["id"]}/listings', json={'listing_id': listing_id, 'is_buybox_winner': True})

    assert won.status_code == 201
    assert taken.status_code == 201
    db.expire_all()
    winners = db.query(SellerListing).filter(SellerListing.is_buybox_winner.is_(True)).all()
    assert [offer.seller_id for offer in winners] == [second['id']]
    assert client.get(f'/api/sellers/{first["id"]}/listings').json() == [
        {'id': won.json()['id'], 'seller_id': first['id'], 'listing_id': listing_id, 'is_buybox_winner': False},
    ]


def test_seller_offer_for_unknown_listing_is_not_found(client, admin) -> None:
    seller_id = client.post('/api/sellers', json={'external_seller_id': 'S1', 'seller_name': 'Coyote Supply'}).json()['id']

    response = client.post(f'/api/sellers/{seller_id}/listings', json={'listing_id': 999})

    assert response.status_code == 404
    assert response.json() == {'error': 'Listing not found', 'code': 'NOT_FOUND'}


def test_deleting_listing_removes_its_seller_offers(client, db, admin, catalog) -> None:
    seller_id = client.post('/api/sellers', json={'external_seller_id': 'S1', 'seller_name': 'Coyote Supply'}).json()['id']
    listing_id = client.post('/api/listings', json=_listing_payload(catalog)).json()['id']
    client.post(f'/api/sellers/{seller_id}/listings', json={'listing_id': listing_id})

    client.delete(f'/api/listings/{listing_id}')

    assert db.query(SellerListing).count() == 0
    assert client.delete(f'/api/sellers/{seller_id}').json() == {'success': True}
