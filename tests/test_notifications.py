# Overview: Pytest coverage for change-event delivery after commit.

import threading

import pytest

from agriledger.extensions import db, events
from agriledger.errors import InsufficientStock
from agriledger.models import Item
from agriledger.services import approval_service, stock_service, lending_service
from agriledger.services.notifications import ChangeEvent, EventBus, ENTITY_ITEM, ENTITY_ASSET, ENTITY_REQUEST


@pytest.fixture
def received(db_session):
    """Collects every published ChangeEvent."""
    collected = []
    lock = threading.Lock()

    def handler(event):
        with lock:
            collected.append(event)

    events.subscribe(handler)
    yield collected
    events.unsubscribe(handler)


class TestDelivery:
    def test_disburse_publishes_new_quantity(self, db_session, received, item, farmer, staff):
        stock_service.disburse(item.id, farmer.id, staff.id, 4)
        assert events.flush(timeout=5)

        assert len(received) == 1
        event = received[0]
        assert event.entity_type == ENTITY_ITEM
        assert event.entity_id == item.id
        assert event.new_value == 6
        assert event.event_type == "stock.disbursed"

    def test_subscriber_sees_committed_state(self, app, db_session, item, farmer, staff):
        seen = []

        def handler(event):
            with app.app_context():
                try:
                    seen.append(db.session.get(Item, event.entity_id).quantity)
                finally:
                    db.session.remove()

        events.subscribe(handler)
        stock_service.disburse(item.id, farmer.id, staff.id, 4)
        assert events.flush(timeout=5)

        assert seen == [6]

    def test_no_event_when_command_fails(self, db_session, received, item, farmer, staff):
        with pytest.raises(InsufficientStock):
            stock_service.disburse(item.id, farmer.id, staff.id, 99)
        events.flush(timeout=5)

        assert received == []

    def test_failing_subscriber_does_not_fail_command(self, db_session, received, item, farmer, staff):
        def broken(event):
            raise RuntimeError("dashboard offline")

        events.subscribe(broken)
        record = stock_service.disburse(item.id, farmer.id, staff.id, 1)
        assert events.flush(timeout=5)

        assert record.id is not None
        assert item.quantity == 9
        assert len(received) == 1

    def test_batch_publishes_one_event_per_item(self, db_session, received, item, fertilizer, farmer, staff):
        stock_service.disburse_batch(farmer.id, staff.id, [(item.id, 1), (fertilizer.id, 1), (item.id, 1)])
        assert events.flush(timeout=5)

        by_item = {event.entity_id: event.new_value for event in received}
        assert by_item == {item.id: 8, fertilizer.id: 2}

    def test_asset_events_carry_availability(self, db_session, received, asset, farmer):
        lending_service.borrow(asset.id, farmer.id, "2026-05-01", "2026-05-08")
        lending_service.return_asset(asset.id)
        assert events.flush(timeout=5)

        values = sorted((e.event_type, e.new_value) for e in received if e.entity_type == ENTITY_ASSET)
        assert values == [("asset.borrowed", False), ("asset.returned", True)]

    def test_noop_review_publishes_nothing(self, db_session, item, farmer, staff):
        record = stock_service.disburse(item.id, farmer.id, staff.id, 2)
        claim = stock_service.create_return(record.id, 1)
        stock_service.set_return_status(claim.id, "returned")
        events.flush(timeout=5)

        collected = []
        events.subscribe(collected.append)
        stock_service.set_return_status(claim.id, "returned")
        events.flush(timeout=5)

        assert collected == []

    def test_request_edit_and_cancel_publish(self, db_session, received, staff, item, fertilizer):
        request = approval_service.submit(staff.id, [(item.id, 1)])
        request_id = request.id
        approval_service.edit_lines(request_id, [(fertilizer.id, 2)])
        approval_service.cancel(request_id)
        assert events.flush(timeout=5)

        assert {(e.entity_type, e.entity_id) for e in received} == {(ENTITY_REQUEST, request_id)}
        assert {e.event_type: e.new_value for e in received} == {
            "request.submitted": "pending",
            "request.edited": "pending",
            "request.cancelled": None,
        }

    def test_register_asset_publishes(self, db_session, received):
        asset = lending_service.register_asset("PMP-001", "Water pump")
        assert events.flush(timeout=5)

        assert [(e.entity_id, e.new_value, e.event_type) for e in received] == [
            (asset.id, True, "asset.registered"),
        ]

    def test_adjust_publishes_counted_quantity(self, db_session, received, item):
        stock_service.adjust_stock(item.id, 4)
        assert events.flush(timeout=5)

        assert [(e.entity_id, e.new_value, e.event_type) for e in received] == [
            (item.id, 4, "stock.adjusted"),
        ]


class TestEventBus:
    def test_publish_without_subscribers_is_noop(self):
        bus = EventBus(max_workers=1)
        bus.publish(ChangeEvent(ENTITY_ITEM, 1, 5, "stock.received"))
        assert bus.flush(timeout=1)
        bus.shutdown()

    def test_subscribe_is_idempotent(self):
        bus = EventBus(max_workers=1)
        calls = []
        bus.subscribe(calls.append)
        bus.subscribe(calls.append)

        bus.publish(ChangeEvent(ENTITY_ITEM, 1, 5, "stock.received"))
        assert bus.flush(timeout=5)
        bus.shutdown()

        assert len(calls) == 1

    def test_to_dict(self):
        event = ChangeEvent(ENTITY_ASSET, 3, False, "asset.borrowed")
        body = event.to_dict()

        assert body["entity_type"] == "asset"
        assert body["entity_id"] == 3
        assert body["new_value"] is False
        assert body["timestamp"].endswith("Z")
