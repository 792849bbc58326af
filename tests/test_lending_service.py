# Overview: Pytest coverage for the asset lending state machine.

from datetime import datetime, timedelta
import logging

import pytest

from agriledger.errors import AssetUnavailable, NoOpenLoan, NotFound, ValidationError
from agriledger.models import AssetLoanRecord
from agriledger.services import lending_service
from agriledger.services.integrity_service import find_invariant_violations


D1 = datetime(2026, 5, 1, 8, 0)
D2 = datetime(2026, 5, 8, 17, 0)


class TestBorrowAndReturn:
    def test_borrow_then_second_borrow_then_return(self, db_session, asset, farmer, other_farmer):
        loan = lending_service.borrow(asset.id, farmer.id, D1, D2)
        assert asset.is_available is False
        assert loan.is_open

        with pytest.raises(AssetUnavailable):
            lending_service.borrow(asset.id, other_farmer.id, D1, D2)
        assert db_session.query(AssetLoanRecord).count() == 1

        closed = lending_service.return_asset(asset.id, "ok")
        assert closed.id == loan.id
        assert closed.remarks == "ok"
        assert closed.actual_return is not None
        assert asset.is_available is True

    def test_return_default_remarks(self, db_session, asset, farmer):
        lending_service.borrow(asset.id, farmer.id, D1, D2)
        loan = lending_service.return_asset(asset.id)
        assert loan.remarks == lending_service.DEFAULT_RETURN_REMARKS

    def test_return_updates_condition(self, db_session, asset, farmer):
        lending_service.borrow(asset.id, farmer.id, D1, D2)
        lending_service.return_asset(asset.id, "engine noisy", condition="needs-repair")
        assert asset.condition == "needs-repair"

    def test_return_without_open_loan(self, db_session, asset):
        with pytest.raises(NoOpenLoan):
            lending_service.return_asset(asset.id)
        assert asset.is_available is True

    def test_can_borrow_again_after_return(self, db_session, asset, farmer, other_farmer):
        lending_service.borrow(asset.id, farmer.id, D1, D2)
        lending_service.return_asset(asset.id)
        lending_service.borrow(asset.id, other_farmer.id, D2, D2 + timedelta(days=3))

        assert asset.is_available is False
        assert len(lending_service.list_loans(asset_id=asset.id)) == 2
        assert len(lending_service.list_loans(asset_id=asset.id, open_only=True)) == 1

    def test_iso_strings_accepted(self, db_session, asset, farmer):
        loan = lending_service.borrow(asset.id, farmer.id, "2026-05-01", "2026-05-08T17:00:00Z")
        assert loan.date_borrowed == datetime(2026, 5, 1)
        assert loan.scheduled_return == datetime(2026, 5, 8, 17, 0)

    def test_scheduled_return_required(self, db_session, asset, farmer):
        with pytest.raises(ValidationError):
            lending_service.borrow(asset.id, farmer.id, D1, None)

    def test_scheduled_return_before_borrow(self, db_session, asset, farmer):
        with pytest.raises(ValidationError):
            lending_service.borrow(asset.id, farmer.id, D2, D1)
        assert asset.is_available is True

    def test_bad_date(self, db_session, asset, farmer):
        with pytest.raises(ValidationError):
            lending_service.borrow(asset.id, farmer.id, "next tuesday", D2)

    def test_unknown_asset_or_farmer(self, db_session, asset, farmer):
        with pytest.raises(NotFound):
            lending_service.borrow(99999, farmer.id, D1, D2)
        with pytest.raises(NotFound):
            lending_service.borrow(asset.id, 99999, D1, D2)
        assert asset.is_available is True


class TestMultipleOpenLoans:
    def test_closes_most_recent_and_stays_unavailable(self, db_session, asset, farmer, other_farmer, caplog):
        # Two open loans can only come from data written outside the lending commands
        older = AssetLoanRecord(asset_id=asset.id, farmer_id=farmer.id, date_borrowed=D1, scheduled_return=D2)
        newer = AssetLoanRecord(
            asset_id=asset.id,
            farmer_id=other_farmer.id,
            date_borrowed=D1 + timedelta(days=1),
            scheduled_return=D2,
        )
        asset.is_available = False
        db_session.add_all([older, newer])
        db_session.commit()

        kinds = {v["kind"] for v in find_invariant_violations()}
        assert "multiple_open_loans" in kinds

        with caplog.at_level(logging.WARNING):
            closed = lending_service.return_asset(asset.id)

        assert closed.id == newer.id
        assert older.actual_return is None
        assert asset.is_available is False
        assert any("open loans" in r.getMessage() for r in caplog.records)

        lending_service.return_asset(asset.id)
        assert asset.is_available is True
        assert find_invariant_violations() == []


class TestQueries:
    def test_overdue_loans(self, db_session, asset, farmer, db_asset_factory):
        lending_service.borrow(asset.id, farmer.id, D1, D2)
        on_time = db_asset_factory("TRC-002")
        lending_service.borrow(on_time.id, farmer.id, D1, D2 + timedelta(days=30))

        overdue = lending_service.list_overdue_loans(D2 + timedelta(days=1))
        assert [loan.asset_id for loan in overdue] == [asset.id]

        lending_service.return_asset(asset.id)
        assert lending_service.list_overdue_loans(D2 + timedelta(days=1)) == []

    def test_find_by_reference_and_open_loan(self, db_session, asset, farmer):
        assert lending_service.find_asset_by_reference("TRC-001").id == asset.id
        assert lending_service.get_open_loan(asset.id) is None

        loan = lending_service.borrow(asset.id, farmer.id, D1, D2)
        assert lending_service.get_open_loan(asset.id).id == loan.id

        with pytest.raises(NotFound):
            lending_service.find_asset_by_reference("NOPE")

    def test_register_asset(self, db_session):
        asset = lending_service.register_asset("PMP-001", "Water pump")
        assert asset.is_available is True
        assert asset.condition == "okay"

        with pytest.raises(ValidationError):
            lending_service.register_asset("PMP-001", "Another pump")

    def test_list_assets_by_availability(self, db_session, asset, farmer, db_asset_factory):
        spare = db_asset_factory("TRC-002")
        lending_service.borrow(asset.id, farmer.id, D1, D2)

        assert [a.id for a in lending_service.list_assets(available=True)] == [spare.id]
        assert [a.id for a in lending_service.list_assets(available=False)] == [asset.id]


class TestEditAndDelete:
    def test_update_name_and_condition(self, db_session, asset):
        lending_service.update_asset(asset.id, name="Hand tractor (blue)", condition="needs-repair")

        assert asset.name == "Hand tractor (blue)"
        assert asset.condition == "needs-repair"
        assert asset.is_available is True

    def test_update_keeps_borrowed_state(self, db_session, asset, farmer):
        lending_service.borrow(asset.id, farmer.id, D1, D2)
        lending_service.update_asset(asset.id, condition="worn")

        assert asset.is_available is False
        assert find_invariant_violations() == []

    def test_update_rejects_empty_name(self, db_session, asset):
        with pytest.raises(ValidationError):
            lending_service.update_asset(asset.id, name=" ")

    def test_delete_never_lent_asset(self, db_session, asset):
        asset_id = asset.id
        lending_service.delete_asset(asset_id)

        with pytest.raises(NotFound):
            lending_service.get_asset(asset_id)

    def test_delete_borrowed_asset_refused(self, db_session, asset, farmer):
        lending_service.borrow(asset.id, farmer.id, D1, D2)

        with pytest.raises(AssetUnavailable):
            lending_service.delete_asset(asset.id)
        assert lending_service.get_asset(asset.id).is_available is False

    def test_delete_asset_with_history_refused(self, db_session, asset, farmer):
        lending_service.borrow(asset.id, farmer.id, D1, D2)
        lending_service.return_asset(asset.id)

        with pytest.raises(ValidationError):
            lending_service.delete_asset(asset.id)


@pytest.fixture
def db_asset_factory(db_session):
    def make(reference_number):
        return lending_service.register_asset(reference_number, f"Asset {reference_number}")
    return make
