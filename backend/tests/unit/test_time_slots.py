from datetime import datetime, time

import pytest

from lounge.core.exceptions import ValidationException
from lounge.services.time_slots import (
    format_clock,
    generate_time_slots,
    parse_clock,
    time_ranges_overlap,
)

OPEN = time(11, 0)
CLOSE = time(23, 0)


class TestGenerateTimeSlots:
    def test_hourly_slots_cover_business_hours(self) -> None:
        slots = generate_time_slots(OPEN, CLOSE, 60)

        assert len(slots) == 12
        assert slots[0].start_time == time(11, 0)
        assert slots[-1].end_time == time(23, 0)
        for previous, current in zip(slots, slots[1:]):
            assert previous.end_time == current.start_time
        assert all(slot.is_available for slot in slots)

    def test_trailing_partial_window_is_dropped(self) -> None:
        slots = generate_time_slots(OPEN, CLOSE, 100)

        assert len(slots) == 7
        assert slots[-1].start_time == time(21, 0)
        assert slots[-1].end_time == time(22, 40)

    def test_past_slots_marked_unavailable_not_removed(self) -> None:
        now = datetime(2030, 1, 14, 14, 30)

        slots = generate_time_slots(OPEN, CLOSE, 60, now=now)

        assert len(slots) == 12
        unavailable = [s.start_time for s in slots if not s.is_available]
        assert unavailable == [time(11), time(12), time(13), time(14)]
        assert slots[4].start_time == time(15) and slots[4].is_available

    def test_slot_starting_exactly_now_is_unavailable(self) -> None:
        slots = generate_time_slots(OPEN, CLOSE, 60, now=datetime(2030, 1, 14, 15, 0))

        assert not slots[4].is_available
        assert slots[5].is_available

    def test_buffer_extends_cutoff(self) -> None:
        slots = generate_time_slots(
            OPEN, CLOSE, 60, now=datetime(2030, 1, 14, 14, 30), buffer_minutes=45
        )

        assert not slots[4].is_available  # 15:00 <= 15:15
        assert slots[5].is_available

    def test_buffer_past_midnight_closes_every_slot(self) -> None:
        slots = generate_time_slots(
            OPEN, CLOSE, 60, now=datetime(2030, 1, 14, 23, 30), buffer_minutes=60
        )

        assert not any(slot.is_available for slot in slots)

    @pytest.mark.parametrize("duration", [0, -30])
    def test_non_positive_duration_rejected(self, duration: int) -> None:
        with pytest.raises(ValidationException):
            generate_time_slots(OPEN, CLOSE, duration)


class TestClockHelpers:
    def test_touching_ranges_do_not_overlap(self) -> None:
        assert not time_ranges_overlap(time(11), time(12), time(12), time(13))
        assert time_ranges_overlap(time(11), time(12, 30), time(12), time(13))
        assert time_ranges_overlap(time(11), time(14), time(12), time(13))

    def test_parse_and_format(self) -> None:
        assert parse_clock(" 09:05 ") == time(9, 5)
        assert format_clock(time(18, 0)) == "18:00"

    def test_parse_rejects_garbage(self) -> None:
        with pytest.raises(ValidationException):
            parse_clock("half past six")
