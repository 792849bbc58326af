# Overview: Pytest coverage for the JSON API: status codes and error bodies.

from tests.conftest import actor_headers


class TestIdentity:
    def test_mutating_route_requires_actor(self, client, db_session, item, farmer):
        response = client.post('/api/disbursements', json={
            'farmer_id': farmer.id, 'item_id': item.id, 'quantity': 1,
        })
        assert response.status_code == 401
        assert response.json['error'] == 'unauthenticated'
        assert item.quantity == 10

    def test_non_integer_actor(self, client, db_session, item, farmer):
        response = client.post(
            '/api/disbursements',
            json={'farmer_id': farmer.id, 'item_id': item.id, 'quantity': 1},
            headers={'X-Actor-Id': 'ana'},
        )
        assert response.status_code == 401

    def test_read_routes_are_open(self, client, db_session, item):
        assert client.get('/api/items').status_code == 200
        assert client.get('/api/health').status_code == 200


class TestItemRoutes:
    def test_register_and_lookup(self, client, db_session, staff):
        response = client.post('/api/items', json={
            'name': 'Corn seed', 'quantity': 12, 'barcode': '4800099', 'unit': 'sack',
        }, headers=actor_headers(staff.id))
        assert response.status_code == 201
        item_id = response.json['item']['id']

        response = client.get('/api/items/barcode/4800099')
        assert response.status_code == 200
        assert response.json['item']['id'] == item_id

        response = client.get(f'/api/items/{item_id}')
        assert response.json['summary']['quantity_on_hand'] == 12

    def test_unknown_item(self, client, db_session):
        response = client.get('/api/items/99999')
        assert response.status_code == 404
        assert response.json['error'] == 'not_found'

    def test_receive(self, client, db_session, item, staff):
        response = client.post(f'/api/items/{item.id}/receive', json={'quantity': 5},
                               headers=actor_headers(staff.id))
        assert response.status_code == 200
        assert response.json['item']['quantity'] == 15

    def test_adjust_to_count(self, client, db_session, item, staff):
        response = client.post(f'/api/items/{item.id}/adjust', json={'counted_quantity': 8, 'note': 'count'},
                               headers=actor_headers(staff.id))
        assert response.status_code == 200
        assert response.json['item']['quantity'] == 8

        response = client.post(f'/api/items/{item.id}/adjust', json={'counted_quantity': -1},
                               headers=actor_headers(staff.id))
        assert response.status_code == 400

    def test_patch_item(self, client, db_session, item, staff):
        response = client.patch(f'/api/items/{item.id}', json={'name': 'Inbred rice seed'},
                                headers=actor_headers(staff.id))
        assert response.status_code == 200
        assert response.json['item']['name'] == 'Inbred rice seed'
        assert response.json['item']['barcode'] == '4800016'

    def test_patch_cannot_set_quantity(self, client, db_session, item, staff):
        response = client.patch(f'/api/items/{item.id}', json={'quantity': 500},
                                headers=actor_headers(staff.id))
        assert response.status_code == 400
        assert client.get(f'/api/items/{item.id}').json['item']['quantity'] == 10

    def test_delete_item(self, client, db_session, item, farmer, staff):
        client.post('/api/disbursements', json={
            'farmer_id': farmer.id, 'item_id': item.id, 'quantity': 1,
        }, headers=actor_headers(staff.id))
        response = client.delete(f'/api/items/{item.id}', headers=actor_headers(staff.id))
        assert response.status_code == 400

        spare_id = client.post('/api/items', json={'name': 'Spare twine'},
                               headers=actor_headers(staff.id)).json['item']['id']
        response = client.delete(f'/api/items/{spare_id}', headers=actor_headers(staff.id))
        assert response.status_code == 200
        assert client.get(f'/api/items/{spare_id}').status_code == 404


class TestDisbursementRoutes:
    def test_single_disbursement(self, client, db_session, item, farmer, staff):
        response = client.post('/api/disbursements', json={
            'farmer_id': farmer.id, 'item_id': item.id, 'quantity': 4,
        }, headers=actor_headers(staff.id))

        assert response.status_code == 201
        assert response.json['disbursement']['quantity'] == 4
        assert response.json['disbursement']['staff_id'] == staff.id
        assert item.quantity == 6

    def test_insufficient_stock_is_409_with_shortages(self, client, db_session, item, farmer, staff):
        response = client.post('/api/disbursements', json={
            'farmer_id': farmer.id, 'item_id': item.id, 'quantity': 11,
        }, headers=actor_headers(staff.id))

        assert response.status_code == 409
        assert response.json['error'] == 'insufficient_stock'
        assert response.json['details']['shortages'][0]['available'] == 10

    def test_float_quantity_is_400(self, client, db_session, item, farmer, staff):
        response = client.post('/api/disbursements', json={
            'farmer_id': farmer.id, 'item_id': item.id, 'quantity': 2.5,
        }, headers=actor_headers(staff.id))
        assert response.status_code == 400
        assert response.json['error'] == 'validation_error'

    def test_superscript_digit_quantity_is_400(self, client, db_session, item, farmer, staff):
        response = client.post('/api/disbursements', json={
            'farmer_id': farmer.id, 'item_id': item.id, 'quantity': '²',
        }, headers=actor_headers(staff.id))
        assert response.status_code == 400
        assert response.json['error'] == 'validation_error'
        assert item.quantity == 10

    def test_batch_disbursement(self, client, db_session, item, fertilizer, farmer, staff):
        response = client.post('/api/disbursements', json={
            'farmer_id': farmer.id,
            'lines': [{'item_id': item.id, 'quantity': 2}, {'item_id': fertilizer.id, 'quantity': 1}],
        }, headers=actor_headers(staff.id))

        assert response.status_code == 201
        assert len(response.json['disbursements']) == 2
        reference = response.json['batch_reference']

        listed = client.get(f'/api/disbursements?batch_reference={reference}')
        assert len(listed.json['disbursements']) == 2

    def test_unknown_staff_actor_is_404(self, client, db_session, item, farmer):
        response = client.post('/api/disbursements', json={
            'farmer_id': farmer.id, 'item_id': item.id, 'quantity': 1,
        }, headers=actor_headers(99999))
        assert response.status_code == 404


class TestReturnRoutes:
    def test_file_and_review(self, client, db_session, item, farmer, staff):
        disbursed = client.post('/api/disbursements', json={
            'farmer_id': farmer.id, 'item_id': item.id, 'quantity': 4,
        }, headers=actor_headers(staff.id)).json['disbursement']

        response = client.post('/api/returns/', json={
            'disbursement_id': disbursed['id'], 'quantity': 3, 'reason': 'wet',
        }, headers=actor_headers(staff.id))
        assert response.status_code == 201
        return_id = response.json['return']['id']
        assert response.json['return']['status'] == 'pending'

        response = client.post(f'/api/returns/{return_id}/status', json={'status': 'returned'},
                               headers=actor_headers(staff.id))
        assert response.status_code == 200
        assert response.json['item']['quantity'] == 9

        response = client.post(f'/api/returns/{return_id}/status', json={'status': 'rejected'},
                               headers=actor_headers(staff.id))
        assert response.json['return']['status'] == 'rejected'
        assert response.json['item']['quantity'] == 6

        pending = client.get('/api/returns/?status=pending')
        assert pending.json['returns'] == []

    def test_bad_status_is_400(self, client, db_session, item, farmer, staff):
        disbursed = client.post('/api/disbursements', json={
            'farmer_id': farmer.id, 'item_id': item.id, 'quantity': 1,
        }, headers=actor_headers(staff.id)).json['disbursement']
        return_id = client.post('/api/returns/', json={
            'disbursement_id': disbursed['id'], 'quantity': 1,
        }, headers=actor_headers(staff.id)).json['return']['id']

        response = client.post(f'/api/returns/{return_id}/status', json={'status': 'lost'},
                               headers=actor_headers(staff.id))
        assert response.status_code == 400

    def test_reviving_rejected_claim_over_cap_is_400(self, client, db_session, item, farmer, staff):
        disbursed = client.post('/api/disbursements', json={
            'farmer_id': farmer.id, 'item_id': item.id, 'quantity': 5,
        }, headers=actor_headers(staff.id)).json['disbursement']

        def file_claim():
            return client.post('/api/returns/', json={
                'disbursement_id': disbursed['id'], 'quantity': 5,
            }, headers=actor_headers(staff.id)).json['return']['id']

        first = file_claim()
        client.post(f'/api/returns/{first}/status', json={'status': 'rejected'}, headers=actor_headers(staff.id))
        second = file_claim()
        client.post(f'/api/returns/{second}/status', json={'status': 'returned'}, headers=actor_headers(staff.id))

        response = client.post(f'/api/returns/{first}/status', json={'status': 'returned'},
                               headers=actor_headers(staff.id))
        assert response.status_code == 400
        assert client.get(f'/api/items/{item.id}').json['item']['quantity'] == 10


class TestAssetRoutes:
    def test_borrow_conflict_and_return(self, client, db_session, asset, farmer, other_farmer, staff):
        body = {'farmer_id': farmer.id, 'date_borrowed': '2026-05-01', 'scheduled_return': '2026-05-08'}
        response = client.post(f'/api/assets/{asset.id}/borrow', json=body, headers=actor_headers(staff.id))
        assert response.status_code == 201
        assert response.json['asset']['is_available'] is False

        body['farmer_id'] = other_farmer.id
        response = client.post(f'/api/assets/{asset.id}/borrow', json=body, headers=actor_headers(staff.id))
        assert response.status_code == 409
        assert response.json['error'] == 'asset_unavailable'

        response = client.get('/api/assets/reference/TRC-001')
        assert response.json['open_loan']['farmer_id'] == farmer.id

        response = client.post(f'/api/assets/{asset.id}/return', json={'remarks': 'ok'},
                               headers=actor_headers(staff.id))
        assert response.status_code == 200
        assert response.json['asset']['is_available'] is True
        assert response.json['loan']['remarks'] == 'ok'

    def test_return_without_loan_is_409(self, client, db_session, asset, staff):
        response = client.post(f'/api/assets/{asset.id}/return', json={}, headers=actor_headers(staff.id))
        assert response.status_code == 409
        assert response.json['error'] == 'no_open_loan'

    def test_patch_asset(self, client, db_session, asset, staff):
        response = client.patch(f'/api/assets/{asset.id}', json={'condition': 'needs-repair'},
                                headers=actor_headers(staff.id))
        assert response.status_code == 200
        assert response.json['asset']['condition'] == 'needs-repair'
        assert response.json['asset']['name'] == 'Hand tractor'

        response = client.patch(f'/api/assets/{asset.id}', json={'is_available': False},
                                headers=actor_headers(staff.id))
        assert response.status_code == 400

    def test_delete_asset(self, client, db_session, asset, farmer, staff):
        body = {'farmer_id': farmer.id, 'date_borrowed': '2026-05-01', 'scheduled_return': '2026-05-08'}
        client.post(f'/api/assets/{asset.id}/borrow', json=body, headers=actor_headers(staff.id))
        response = client.delete(f'/api/assets/{asset.id}', headers=actor_headers(staff.id))
        assert response.status_code == 409

        spare = client.post('/api/assets', json={'reference_number': 'PMP-001', 'name': 'Water pump'},
                            headers=actor_headers(staff.id)).json['asset']
        response = client.delete(f"/api/assets/{spare['id']}", headers=actor_headers(staff.id))
        assert response.status_code == 200
        assert client.get('/api/assets/reference/PMP-001').status_code == 404

    def test_overdue_listing(self, client, db_session, asset, farmer, staff):
        client.post(f'/api/assets/{asset.id}/borrow', json={
            'farmer_id': farmer.id, 'date_borrowed': '2026-05-01', 'scheduled_return': '2026-05-08',
        }, headers=actor_headers(staff.id))

        response = client.get('/api/loans/overdue?as_of=2026-06-01')
        assert response.status_code == 200
        assert [loan['asset_id'] for loan in response.json['loans']] == [asset.id]

        response = client.get('/api/loans/overdue?as_of=not-a-date')
        assert response.status_code == 400


class TestRequestRoutes:
    def test_submit_and_decide_short(self, client, db_session, fertilizer, staff, admin):
        response = client.post('/api/requests/', json={
            'lines': [{'item_id': fertilizer.id, 'quantity': 5}],
        }, headers=actor_headers(staff.id))
        assert response.status_code == 201
        request_id = response.json['request']['id']

        response = client.post(f'/api/requests/{request_id}/decision', json={'decision': 'approved'},
                               headers=actor_headers(admin.id))
        assert response.status_code == 409
        assert response.json['error'] == 'insufficient_stock'

        response = client.get(f'/api/requests/{request_id}')
        assert response.json['request']['status'] == 'pending'

        response = client.put(f'/api/requests/{request_id}/lines', json={
            'lines': [{'item_id': fertilizer.id, 'quantity': 3}],
        }, headers=actor_headers(staff.id))
        assert response.status_code == 200

        response = client.post(f'/api/requests/{request_id}/decision', json={'decision': 'approved'},
                               headers=actor_headers(admin.id))
        assert response.status_code == 200
        assert response.json['request']['status'] == 'approved'

        response = client.delete(f'/api/requests/{request_id}', headers=actor_headers(staff.id))
        assert response.status_code == 409
        assert response.json['error'] == 'request_closed'

    def test_cancel(self, client, db_session, item, staff):
        request_id = client.post('/api/requests/', json={
            'lines': [{'item_id': item.id, 'quantity': 1}],
        }, headers=actor_headers(staff.id)).json['request']['id']

        response = client.delete(f'/api/requests/{request_id}', headers=actor_headers(staff.id))
        assert response.status_code == 200
        assert client.get(f'/api/requests/{request_id}').status_code == 404

    def test_empty_lines_is_400(self, client, db_session, staff):
        response = client.post('/api/requests/', json={'lines': []}, headers=actor_headers(staff.id))
        assert response.status_code == 400


class TestLedgerEvents:
    def test_events_listed_for_item(self, client, db_session, item, farmer, staff):
        client.post('/api/disbursements', json={
            'farmer_id': farmer.id, 'item_id': item.id, 'quantity': 2,
        }, headers=actor_headers(staff.id))

        response = client.get(f'/api/ledger/events?entity_type=item&entity_id={item.id}')
        assert response.status_code == 200
        assert [e['event_type'] for e in response.json['events']] == ['stock.disbursed']
