import pytest
from sqlalchemy.orm.exc import StaleDataError

from app.services import concurrency


class TestRunWithRetry:
    def test_retries_then_succeeds(self, db_session, monkeypatch):
        monkeypatch.setattr(concurrency.time, "sleep", lambda seconds: None)
        attempts = []

        def flaky():
            attempts.append(1)
            if len(attempts) < 2:
                raise StaleDataError("order row changed")
            return "done"

        assert concurrency.run_with_retry(flaky) == "done"
        assert len(attempts) == 2

    def test_gives_up_after_last_attempt(self, db_session, monkeypatch):
        monkeypatch.setattr(concurrency.time, "sleep", lambda seconds: None)

        def always_stale():
            raise StaleDataError("order row changed")

        with pytest.raises(StaleDataError):
            concurrency.run_with_retry(always_stale, attempts=2)

    def test_other_errors_are_not_retried(self, db_session):
        calls = []

        def broken():
            calls.append(1)
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            concurrency.run_with_retry(broken)
        assert len(calls) == 1
