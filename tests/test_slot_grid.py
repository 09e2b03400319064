"""
Tests for the slot grid generator.
"""

import pytest

from studiobook.domain.exceptions import ConfigurationError
from studiobook.domain.models import Slot
from studiobook.domain.slot_grid import generate_slots, slot_by_index


class TestGenerateSlots:
    """Tests for generate_slots."""

    def test_default_studio_day(self):
        """09:00-20:00 in 30-minute steps yields 22 slots."""
        slots = generate_slots()

        assert len(slots) == 22
        assert slots[0].start_label == "9:00 am"
        assert slots[0].label == "9:00 am-9:30 am"
        assert slots[-1].label == "7:30 pm-8:00 pm"
        assert slots[-1].end_minute == 20 * 60

    @pytest.mark.parametrize(
        "start, end, step",
        [
            (540, 1200, 30),
            (540, 600, 30),
            (0, 1440, 15),
            (600, 1140, 60),
            (480, 485, 5),
        ],
    )
    def test_slots_are_contiguous_and_uniform(self, start, end, step):
        """Count matches the window, every slot is one step, no gaps or overlaps."""
        slots = generate_slots(start, end, step)

        assert len(slots) == (end - start) // step
        assert slots[0].start_minute == start
        assert slots[-1].end_minute == end
        for index, slot in enumerate(slots):
            assert slot.index == index
            assert slot.duration_minutes == step
        for previous, current in zip(slots, slots[1:]):
            assert previous.end_minute == current.start_minute

    @pytest.mark.parametrize(
        "start, end, step",
        [
            (600, 540, 30),   # end before start
            (540, 540, 30),   # empty window
            (540, 600, 45),   # step does not divide
            (540, 600, 0),    # zero step
            (-30, 600, 30),   # before midnight
            (1380, 1500, 30), # past midnight
        ],
    )
    def test_invalid_parameters_raise(self, start, end, step):
        """Invalid grids are a configuration error."""
        with pytest.raises(ConfigurationError):
            generate_slots(start, end, step)

    def test_result_is_cached(self):
        """The same triple returns the same tuple object."""
        assert generate_slots(540, 1200, 30) is generate_slots(540, 1200, 30)

    def test_noon_and_midnight_labels(self):
        """12-hour labels use 12 for noon and midnight."""
        noon = Slot(index=0, start_minute=12 * 60, duration_minutes=30)
        late = Slot(index=0, start_minute=23 * 60 + 30, duration_minutes=30)

        assert noon.start_label == "12:00 pm"
        assert noon.clock_label == "12:00"
        assert late.end_label == "12:00 am"


class TestSlotByIndex:
    def test_lookup(self):
        grid = generate_slots(540, 600, 30)

        assert slot_by_index(grid, 1).clock_label == "09:30"
        assert slot_by_index(grid, 2) is None
        assert slot_by_index(grid, None) is None
        assert slot_by_index(grid, -1) is None
