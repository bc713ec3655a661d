"""
Concurrency tests.

Optimistic version checks must never lose a scan: every scan that reports
success is reflected in the final counters, and losers of a race get a
ConcurrencyConflictError (or a PersistenceError when SQLite stays locked)
instead of silently overwriting.
"""

import threading
from datetime import datetime

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from lottoledger import create_app
from lottoledger.errors import ConcurrencyConflictError, LedgerError, PersistenceError, ValidationError
from lottoledger.extensions import db
from lottoledger.models import Box, Store, TicketPack
from lottoledger.services import box_service, ticket_service
from lottoledger.services.concurrency import run_with_retry


DAY_ONE = datetime(2026, 3, 14, 12, 0, 0)


class TestRunWithRetry:
    def test_stale_data_exhausts_into_conflict(self, db_session):
        calls = []

        def always_stale():
            calls.append(1)
            raise StaleDataError("version mismatch")

        with pytest.raises(ConcurrencyConflictError) as exc:
            run_with_retry(always_stale, attempts=3, backoff_base=0)

        assert len(calls) == 3
        assert exc.value.status_code == 409

    def test_operational_error_exhausts_into_persistence_error(self, db_session):
        def locked():
            raise OperationalError("UPDATE boxes", {}, Exception("database is locked"))

        with pytest.raises(PersistenceError) as exc:
            run_with_retry(locked, attempts=2, backoff_base=0)

        assert exc.value.status_code == 500

    def test_recovers_after_transient_conflict(self, db_session):
        attempts = []

        def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise StaleDataError("version mismatch")
            return "ok"

        assert run_with_retry(flaky, backoff_base=0) == "ok"
        assert len(attempts) == 2

    def test_ledger_errors_are_not_retried(self, db_session):
        calls = []

        def invalid():
            calls.append(1)
            raise ValidationError("bad input")

        with pytest.raises(ValidationError):
            run_with_retry(invalid, backoff_base=0)
        assert len(calls) == 1


@pytest.fixture
def file_app(tmp_path):
    """App on a file-backed SQLite database so threads use separate connections."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'ledger.sqlite3'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'timeout': 10}},
    })
    with app.app_context():
        db.create_all()
        store = Store(name="Race Store", code="RACE", timezone="UTC")
        db.session.add(store)
        db.session.commit()

        box = Box(
            store_id=store.id,
            box_number="1",
            game_number="1234",
            ticket_serial="1234-0000001",
            ticket_cost_cents=100,
            opening_number=0,
            closing_number=0,
            is_active=True,
            last_updated=DAY_ONE,
        )
        pack = TicketPack(
            store_id=store.id,
            game_number="1234",
            game_name="Race Pack",
            start_serial="000",
            end_serial="099",
            ticket_price_cents=100,
            total_tickets=100,
            remaining_tickets=100,
            scanned_count=0,
            status="active",
            activation_date=DAY_ONE,
        )
        db.session.add_all([box, pack])
        db.session.commit()
        ids = {"box": box.id, "pack": pack.id}

    yield app, ids

    with app.app_context():
        db.drop_all()
        db.engine.dispose()


def _hammer(app, n_threads, per_thread, command):
    successes = []
    conflicts = []
    unexpected = []

    def worker(worker_id):
        with app.app_context():
            for i in range(per_thread):
                try:
                    command(worker_id, i)
                    successes.append(1)
                except (ConcurrencyConflictError, PersistenceError):
                    conflicts.append(1)
                except LedgerError as e:
                    unexpected.append(e)
                finally:
                    db.session.remove()

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(n_threads)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    return successes, conflicts, unexpected


class TestConcurrentScans:
    def test_box_scans_are_never_lost(self, file_app):
        app, ids = file_app

        successes, conflicts, unexpected = _hammer(
            app, 4, 5,
            lambda worker_id, i: box_service.record_scan(ids["box"], now=DAY_ONE),
        )

        assert unexpected == []
        assert len(successes) + len(conflicts) == 20
        assert len(successes) >= 1
        with app.app_context():
            box = db.session.get(Box, ids["box"])
            assert box.closing_number == len(successes)
            assert box.opening_number == 0

    def test_pack_inventory_matches_accepted_scans(self, file_app):
        app, ids = file_app

        successes, conflicts, unexpected = _hammer(
            app, 4, 5,
            lambda worker_id, i: ticket_service.scan(ids["pack"], f"{worker_id * 5 + i:03d}", now=DAY_ONE),
        )

        assert unexpected == []
        with app.app_context():
            pack = db.session.get(TicketPack, ids["pack"])
            assert pack.scanned_count == len(successes)
            assert pack.remaining_tickets == 100 - len(successes)
            assert pack.remaining_tickets + pack.scanned_count == pack.total_tickets


class TestVersionCheck:
    def test_stale_copy_cannot_overwrite(self, file_app):
        """A second session holding an old version must fail its update."""
        app, ids = file_app
        with app.app_context():
            other = db.session.session_factory()
            try:
                stale = other.get(Box, ids["box"])
                assert stale.closing_number == 0

                box_service.record_scan(ids["box"], now=DAY_ONE)

                stale.closing_number = 99
                with pytest.raises(StaleDataError):
                    other.commit()
            finally:
                other.rollback()
                other.close()

            box = db.session.get(Box, ids["box"])
            assert box.closing_number == 1
            assert box.version_id == 2
