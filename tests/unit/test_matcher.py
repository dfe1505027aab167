"""
Unit tests for Matcher and ResultSink.

Run with: pytest tests/unit/test_matcher.py -v
"""

from pathfuzz.core.matcher import DEFAULT_STATUS_CODES, MatchDecision, Matcher
from pathfuzz.core.models import Outcome, ProbeResult
from pathfuzz.core.sink import ResultSink
from pathfuzz.sources import Candidate, Origin


def _result(status=200, body="ok", outcome=Outcome.SUCCESS, tag="admin", url="http://x/admin"):
    ok = outcome is Outcome.SUCCESS
    return ProbeResult(
        candidate=Candidate(url, Origin.WORDLIST, payload_tag=tag),
        outcome=outcome,
        attempt_count=1,
        elapsed=0.01,
        status_code=status if ok else None,
        body_length=len(body) if ok else None,
        content_type="text/html" if ok else None,
        body=body if ok else None,
        error=None if ok else "boom",
    )


class TestMatcher:
    """Test suite for Matcher"""

    def test_default_status_codes(self):
        assert Matcher().status_codes == DEFAULT_STATUS_CODES
        assert DEFAULT_STATUS_CODES == {200, 301, 302, 401, 403, 405, 500}

    def test_acceptance_is_set_membership(self):
        """Test accepted exactly when status is in the configured set"""
        matcher = Matcher(status_codes={200, 403})

        for status in (100, 200, 204, 301, 403, 404, 500, 599):
            assert matcher.classify(_result(status=status)) is (status in {200, 403})

    def test_failed_probes_never_accepted(self):
        matcher = Matcher(status_codes={200})
        decision = matcher.evaluate(_result(outcome=Outcome.NETWORK_ERROR))
        assert decision == MatchDecision(accepted=False)

    def test_reflection_and_error_signals(self):
        """Test auxiliary signals do not change acceptance"""
        matcher = Matcher(status_codes={200})

        decision = matcher.evaluate(_result(status=404, body="No ADMIN here. Traceback (most recent call last)"))

        assert not decision.accepted
        assert decision.reflected
        assert decision.error_detected
        assert not decision.reportable

    def test_anomaly_relative_to_baseline(self):
        matcher = Matcher(status_codes={200}, anomaly_threshold=0.5, baseline_length=100)

        assert matcher.evaluate(_result(status=404, body="x" * 100)).anomalous is False
        assert matcher.evaluate(_result(status=404, body="x" * 140)).anomalous is False
        decision = matcher.evaluate(_result(status=404, body="x" * 300))
        assert decision.anomalous and not decision.accepted
        assert decision.reportable

    def test_anomaly_disabled_without_baseline(self):
        matcher = Matcher(anomaly_threshold=0.1)
        assert not matcher.is_anomalous(_result(body="x" * 1000))
        matcher.set_baseline(10)
        assert matcher.is_anomalous(_result(body="x" * 1000))


class TestResultSink:
    """Test suite for ResultSink"""

    def test_only_reportable_or_errored_results_recorded(self):
        matcher = Matcher(status_codes={200})
        sink = ResultSink()

        for result in (
            _result(status=200, url="http://x/a"),
            _result(status=404, url="http://x/b"),
            _result(outcome=Outcome.TIMEOUT, url="http://x/c"),
        ):
            sink.record(result, matcher.evaluate(result))

        assert [r.url for r in sink.records()] == ["http://x/a", "http://x/c"]
        assert [r.url for r in sink.accepted()] == ["http://x/a"]
        assert [r.outcome for r in sink.errored()] == ["timeout"]
        assert sink.get_statistics()["rejected"] == 1

    def test_export_records_excludes_errors_by_default(self):
        matcher = Matcher(status_codes={200})
        sink = ResultSink()
        ok = _result(status=200, url="http://x/a")
        failed = _result(outcome=Outcome.NETWORK_ERROR, url="http://x/b")
        sink.record(ok, matcher.evaluate(ok))
        sink.record(failed, matcher.evaluate(failed))

        assert len(sink.export_records()) == 1
        assert len(sink.export_records(include_errors=True)) == 2

    def test_observers_notified_and_isolated(self):
        """Test a failing observer does not break recording"""
        sink = ResultSink()
        seen = []

        def broken(record):
            raise RuntimeError("observer bug")

        sink.subscribe(broken)
        sink.subscribe(seen.append)

        result = _result(status=200)
        assert sink.record(result, Matcher().evaluate(result))
        assert [r.url for r in seen] == ["http://x/admin"]
        assert len(sink) == 1
