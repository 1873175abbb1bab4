"""Tests for the alternatives-display policy and the leisure correction."""
from __future__ import annotations

from datetime import date, datetime, timezone

from backend.orchestrator.policy import apply_leisure_correction, determine_alternatives_to_show
from backend.orchestrator.types import (
    CalendarType,
    DateRange,
    EditTemplateCall,
    EventIntent,
    EventTemplate,
    IntentSpecificity,
    TimePreference,
    TimeSlot,
)

UTC = timezone.utc


def slot(day: int, hour: int) -> TimeSlot:
    start = datetime(2026, 3, day, hour, tzinfo=UTC)
    return TimeSlot(start, start.replace(hour=hour + 1))


class TestDetermineAlternativesToShow:
    def test_conflict_shows_times_and_warning(self) -> None:
        display = determine_alternatives_to_show(EventTemplate(), has_valid_time=False)
        assert display.show_times and display.show_conflict_warning
        assert not display.show_places

    def test_time_and_place_fixed_shows_nothing(self) -> None:
        template = EventTemplate(
            preferred_dates=DateRange(date(2026, 3, 7), date(2026, 3, 7)),
            intent_specificity=IntentSpecificity.SPECIFIC_PLACE,
        )
        display = determine_alternatives_to_show(template, True)
        assert display.reason == "fully_constrained"
        assert not (display.show_times or display.show_places)

    def test_time_fixed_shows_places(self) -> None:
        template = EventTemplate(has_explicit_time_request=True)
        display = determine_alternatives_to_show(template, True)
        assert display.show_places and not display.show_times

    def test_edit_time_preference_counts_as_time_constraint(self) -> None:
        edit = EditTemplateCall(time_preference=TimePreference.LATER)
        display = determine_alternatives_to_show(EventTemplate(), True, edit)
        assert display.reason == "time_constrained"

    def test_place_fixed_shows_times(self) -> None:
        edit = EditTemplateCall(new_place_index=1)
        display = determine_alternatives_to_show(EventTemplate(), True, edit)
        assert display.show_times and not display.show_places

    def test_default_shows_places(self) -> None:
        display = determine_alternatives_to_show(EventTemplate(), True)
        assert display.reason == "default"
        assert display.show_places


class TestLeisureCorrection:
    # 2 Mar 2026 is a Monday, 7 Mar a Saturday
    def test_weekday_daytime_moves_to_weekend(self) -> None:
        slots = [slot(2, 10), slot(3, 11), slot(7, 14)]
        template = EventTemplate(intent=EventIntent.CUSTOM)
        assert apply_leisure_correction(slots, 0, template, CalendarType.PERSONAL, "UTC") == (2, True)

    def test_weekday_evening_is_kept(self) -> None:
        slots = [slot(2, 10), slot(3, 18)]
        template = EventTemplate(intent=EventIntent.CUSTOM)
        assert apply_leisure_correction(slots, 1, template, CalendarType.PERSONAL, "UTC") == (1, False)

    def test_first_evening_candidate_wins(self) -> None:
        slots = [slot(2, 10), slot(3, 18), slot(7, 14)]
        template = EventTemplate(intent=EventIntent.CUSTOM)
        assert apply_leisure_correction(slots, 0, template, CalendarType.PERSONAL, "UTC") == (1, True)

    def test_no_alternative_keeps_selection(self) -> None:
        slots = [slot(2, 10), slot(3, 11)]
        template = EventTemplate(intent=EventIntent.CUSTOM)
        assert apply_leisure_correction(slots, 1, template, CalendarType.PERSONAL, "UTC") == (1, False)

    def test_not_applied_to_work_or_non_leisure(self) -> None:
        slots = [slot(2, 10), slot(7, 14)]
        assert apply_leisure_correction(
            slots, 0, EventTemplate(intent=EventIntent.CUSTOM), CalendarType.WORK, "UTC"
        ) == (0, False)
        assert apply_leisure_correction(
            slots, 0, EventTemplate(intent=EventIntent.LUNCH), CalendarType.PERSONAL, "UTC"
        ) == (0, False)

    def test_local_time_decides(self) -> None:
        # 22:00 UTC Monday is 17:00 in New York
        slots = [slot(2, 22), slot(7, 14)]
        template = EventTemplate(intent=EventIntent.CUSTOM)
        assert apply_leisure_correction(slots, 0, template, CalendarType.PERSONAL, "America/New_York") == (0, False)
