"""
Unit Tests for the survey eligibility prober
Tests for: role gate, throttle, dedupe, failure handling
"""
import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from alumnitrack.auth import SessionInfo
from alumnitrack.eligibility import EligibilityProber, parse_eligibility
from alumnitrack.exceptions import APIConnectionError
from alumnitrack.survey_schema import SurveyStub


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += minutes * 60


@pytest.fixture
def clock():
    return FakeClock()


def make_prober(fetch, history, session, clock, throttle_minutes=60):
    return EligibilityProber(
        fetch,
        lambda: session,
        history,
        throttle_minutes=throttle_minutes,
        clock=clock
    )


class TestParseEligibility:
    """Test parse_eligibility"""

    def test_non_list_is_empty(self):
        """Test unexpected shapes give no stubs"""
        assert parse_eligibility({"surveys": []}) == []
        assert parse_eligibility(None) == []

    def test_skips_malformed_items(self):
        """Test items without id are skipped"""
        stubs = parse_eligibility([{"_id": "s1"}, {"title": "no id"}, "junk", {"id": "s2"}])

        assert [s.id for s in stubs] == ["s1", "s2"]


class TestRoleGate:
    """Test the prober only runs for students and alumni"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("session", [
        SessionInfo(is_authenticated=False, role="student"),
        SessionInfo(is_authenticated=True, role="admin"),
        SessionInfo(is_authenticated=True, role=None),
    ])
    async def test_no_call_without_eligible_session(self, session, history, clock):
        """Test no network call for anonymous users or other roles"""
        fetch = AsyncMock(return_value=[{"_id": "s1"}])
        prober = make_prober(fetch, history, session, clock)

        result = await prober.probe()

        assert result is None
        fetch.assert_not_called()
        assert history.get_last_checked() == 0

    @pytest.mark.asyncio
    async def test_alumni_are_eligible(self, history, clock):
        """Test alumni get probed"""
        fetch = AsyncMock(return_value=[{"_id": "s1"}])
        prober = make_prober(fetch, history, SessionInfo(True, "alumni"), clock)

        result = await prober.probe()

        assert result == SurveyStub(id="s1")


class TestThrottle:
    """Test the time-based throttle"""

    @pytest.mark.asyncio
    async def test_two_triggers_make_one_call(self, history, student_session, clock):
        """Test a second trigger inside the window does not call the API"""
        fetch = AsyncMock(return_value=[])
        prober = make_prober(fetch, history, student_session, clock)

        await prober.probe()
        clock.advance(5)
        await prober.probe()

        assert fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_call_again_after_window(self, history, student_session, clock):
        """Test the API is called again once the window has passed"""
        fetch = AsyncMock(return_value=[])
        prober = make_prober(fetch, history, student_session, clock, throttle_minutes=30)

        await prober.probe()
        clock.advance(31)
        await prober.probe()

        assert fetch.await_count == 2

    @pytest.mark.asyncio
    async def test_concurrent_triggers_make_one_call(self, history, student_session, clock):
        """Test overlapping triggers share one in-flight check"""
        release = asyncio.Event()

        async def slow_fetch():
            await release.wait()
            return [{"_id": "s1"}]

        fetch = AsyncMock(side_effect=slow_fetch)
        prober = make_prober(fetch, history, student_session, clock)

        first = asyncio.ensure_future(prober.probe())
        await asyncio.sleep(0)
        second = await prober.probe()
        release.set()

        assert second is None
        assert (await first).id == "s1"
        assert fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_timestamp_written_on_success(self, history, student_session, clock):
        """Test last-checked is stored in milliseconds"""
        prober = make_prober(AsyncMock(return_value=[]), history, student_session, clock)

        await prober.probe()

        assert history.get_last_checked() == int(clock.now * 1000)

    @pytest.mark.asyncio
    async def test_timestamp_written_on_failure(self, history, student_session, clock):
        """Test a failed call still starts the throttle window"""
        fetch = AsyncMock(side_effect=APIConnectionError("down"))
        prober = make_prober(fetch, history, student_session, clock)

        await prober.probe()
        await prober.probe()

        assert history.get_last_checked() == int(clock.now * 1000)
        assert fetch.await_count == 1


class TestSelection:
    """Test prompted-set dedupe and the found callback"""

    @pytest.mark.asyncio
    async def test_skips_already_prompted(self, history, student_session, clock):
        """Test the first survey not yet prompted is selected"""
        history.mark_prompted("s1")
        fetch = AsyncMock(return_value=[{"_id": "s1"}, {"_id": "s2"}])
        prober = make_prober(fetch, history, student_session, clock)

        result = await prober.probe()

        assert result.id == "s2"
        assert history.prompted_ids() == ["s1", "s2"]

    @pytest.mark.asyncio
    async def test_nothing_new(self, history, student_session, clock):
        """Test no selection when everything was prompted"""
        history.mark_prompted("s1")
        on_found = MagicMock()
        prober = make_prober(AsyncMock(return_value=[{"_id": "s1"}]), history, student_session, clock)

        result = await prober.probe(on_found)

        assert result is None
        on_found.assert_not_called()

    @pytest.mark.asyncio
    async def test_marked_before_callback(self, history, student_session, clock):
        """Test the id is persisted before on_found runs"""
        seen = []

        def on_found(stub):
            seen.append((stub.id, history.has_prompted(stub.id)))

        prober = make_prober(
            AsyncMock(return_value=[{"_id": "s7", "title": "Pulse"}]),
            history, student_session, clock
        )

        await prober.probe(on_found)

        assert seen == [("s7", True)]

    @pytest.mark.asyncio
    async def test_same_survey_never_offered_twice(self, history, student_session, clock):
        """Test re-running after the window does not offer the same survey"""
        fetch = AsyncMock(return_value=[{"_id": "s1"}])
        prober = make_prober(fetch, history, student_session, clock)

        first = await prober.probe()
        clock.advance(120)
        second = await prober.probe()

        assert first.id == "s1"
        assert second is None


class TestFailureHandling:
    """Test failures are swallowed"""

    @pytest.mark.asyncio
    async def test_failure_returns_none(self, history, student_session, clock, caplog):
        """Test a failing call is logged, not raised"""
        fetch = AsyncMock(side_effect=RuntimeError("boom"))
        prober = make_prober(fetch, history, student_session, clock)

        with caplog.at_level("WARNING", logger="alumnitrack.eligibility"):
            result = await prober.probe()

        assert result is None
        assert "survey check failed" in caplog.text

    @pytest.mark.asyncio
    async def test_failure_does_not_disable_probing(self, history, student_session, clock):
        """Test the next window probes again"""
        fetch = AsyncMock(side_effect=[RuntimeError("boom"), [{"_id": "s1"}]])
        prober = make_prober(fetch, history, student_session, clock)

        assert await prober.probe() is None
        clock.advance(61)
        assert (await prober.probe()).id == "s1"

    @pytest.mark.asyncio
    async def test_history_write_failure_returns_none(self, history, student_session, clock, caplog):
        """Test a prompt history that cannot be saved does not escape the check"""
        fetch = AsyncMock(return_value=[{"_id": "s1"}])
        on_found = MagicMock()
        prober = make_prober(fetch, history, student_session, clock)

        with patch.object(history, "mark_prompted", side_effect=OSError("disk full")), \
                caplog.at_level("WARNING", logger="alumnitrack.eligibility"):
            result = await prober.probe(on_found=on_found)

        assert result is None
        on_found.assert_not_called()
        assert "disk full" in caplog.text
        assert prober._in_flight is False
