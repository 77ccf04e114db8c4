"""Tests for the availability check and forward suggestion search."""

import pytest

from calendar_api.availability import AvailabilityEngine, AvailabilityQuery
from calendar_api.errors import UpstreamError, ValidationError
from calendar_api.time_window import add_minutes, local_instant

from conftest import TZ, FakeGateway


def _query(**overrides) -> AvailabilityQuery:
    fields = dict(calendar_id="barber@group.calendar.google.com", date="2024-05-10", time="10:00", timezone=TZ)
    fields.update(overrides)
    return AvailabilityQuery(**fields)


class TestPrimarySlot:
    @pytest.mark.asyncio
    async def test_free_slot_short_circuits(self):
        gateway = FakeGateway(free_starts={"10:00"})
        result = await AvailabilityEngine(gateway).check(_query())
        assert result.available is True
        assert result.suggestions == []
        assert gateway.queried == ["10:00"]


class TestForwardSearch:
    @pytest.mark.asyncio
    async def test_everything_busy_until_cap(self):
        gateway = FakeGateway()
        result = await AvailabilityEngine(gateway).check(_query())
        assert result.available is False
        assert result.suggestions == []
        # primary + offsets 15..180
        assert len(gateway.queried) == 13
        assert gateway.queried[-1] == "13:00"

    @pytest.mark.asyncio
    async def test_first_free_after_two_busy_candidates(self):
        gateway = FakeGateway(free_starts={"10:45"})
        result = await AvailabilityEngine(gateway).check(_query(step_min=15, max_suggestions=3))
        assert result.available is False
        assert result.suggestions == ["10:45"]
        assert gateway.queried[:4] == ["10:00", "10:15", "10:30", "10:45"]
        assert len(gateway.queried) == 13

    @pytest.mark.asyncio
    async def test_stops_at_max_suggestions(self):
        gateway = FakeGateway(free_starts={"10:15", "10:30", "10:45", "11:00"})
        result = await AvailabilityEngine(gateway).check(_query(max_suggestions=3))
        assert result.suggestions == ["10:15", "10:30", "10:45"]
        assert gateway.queried == ["10:00", "10:15", "10:30", "10:45"]

    @pytest.mark.asyncio
    async def test_never_suggests_past_the_cap(self):
        gateway = FakeGateway(free_starts={"13:00", "13:15"})
        result = await AvailabilityEngine(gateway).check(_query(max_suggestions=5))
        assert result.suggestions == ["13:00"]
        assert "13:15" not in gateway.queried

    @pytest.mark.asyncio
    async def test_candidate_ending_at_work_end_is_accepted(self):
        gateway = FakeGateway(free_starts={"18:00", "18:15", "18:30"})
        result = await AvailabilityEngine(gateway).check(_query(time="17:45"))
        assert result.suggestions == ["18:00", "18:15"]
        assert gateway.queried == ["17:45", "18:00", "18:15"]

    @pytest.mark.asyncio
    async def test_candidate_starting_before_work_start_stops_search(self):
        gateway = FakeGateway(free_starts={"08:15", "08:30", "09:00"})
        result = await AvailabilityEngine(gateway).check(_query(time="08:00"))
        assert result.available is False
        assert result.suggestions == []
        assert gateway.queried == ["08:00"]

    @pytest.mark.asyncio
    async def test_step_larger_than_cap_yields_nothing(self):
        gateway = FakeGateway()
        result = await AvailabilityEngine(gateway).check(_query(step_min=200))
        assert result.available is False
        assert result.suggestions == []
        assert gateway.queried == ["10:00"]

    @pytest.mark.asyncio
    async def test_suggestions_are_ordered_spaced_and_inside_hours(self):
        free = {f"{h:02d}:{m:02d}" for h in range(9, 19) for m in range(0, 60, 5)}
        free.discard("11:10")
        gateway = FakeGateway(free_starts=free)
        query = _query(time="11:10", step_min=20, duration_min=30, max_suggestions=4)
        result = await AvailabilityEngine(gateway).check(query)

        assert result.suggestions == ["11:30", "11:50", "12:10", "12:30"]
        origin = local_instant(query.date, query.time, TZ)
        work_end = local_instant(query.date, query.work_end, TZ)
        offsets = []
        for hhmm in result.suggestions:
            start = local_instant(query.date, hhmm, TZ)
            offsets.append(int((start - origin).total_seconds() // 60))
            assert add_minutes(start, query.duration_min) <= work_end
        assert max(offsets) <= 180
        assert offsets == sorted(offsets)
        assert all(offset % query.step_min == 0 for offset in offsets)

    @pytest.mark.asyncio
    async def test_repeated_checks_are_identical(self):
        gateway = FakeGateway(free_starts={"10:30", "12:00"})
        engine = AvailabilityEngine(gateway)
        first = await engine.check(_query())
        second = await engine.check(_query())
        assert first == second


class TestFailures:
    @pytest.mark.asyncio
    async def test_failure_mid_scan_aborts_without_partial_result(self):
        gateway = FakeGateway(free_starts={"10:15"}, error_at="10:30")
        with pytest.raises(UpstreamError):
            await AvailabilityEngine(gateway).check(_query())
        assert gateway.queried == ["10:00", "10:15", "10:30"]

    @pytest.mark.asyncio
    async def test_empty_working_hours_rejected_before_querying(self):
        gateway = FakeGateway()
        with pytest.raises(ValidationError):
            await AvailabilityEngine(gateway).check(_query(work_start="19:00", work_end="09:00"))
        assert gateway.queried == []

    @pytest.mark.asyncio
    async def test_non_positive_step_rejected(self):
        gateway = FakeGateway()
        with pytest.raises(ValidationError):
            await AvailabilityEngine(gateway).check(_query(step_min=0))
        assert gateway.queried == []
