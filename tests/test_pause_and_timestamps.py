"""
Unit tests for the pause controller and the timestamp projector.
"""

from datetime import datetime, timedelta, timezone

from tcp_log_viewer.log_record import DisplayRecord
from tcp_log_viewer.pause_controller import PauseController
from tcp_log_viewer.timestamp_projector import (
    TimestampProjector,
    format_absolute,
    format_relative,
    parse_local,
)


def rows(*messages):
    return [DisplayRecord("t", "Log", "c", m) for m in messages]


class TestPauseController:
    def test_toggle_flips_once_per_call(self):
        pc = PauseController()
        assert pc.toggle(lambda: []) is True
        assert pc.toggle(lambda: []) is False
        assert pc.toggle(lambda: []) is True
        assert pc.is_paused

    def test_snapshot_is_a_copy(self):
        visible = rows("a", "b")
        pc = PauseController()
        pc.toggle(lambda: visible)
        visible.append(rows("c")[0])
        assert [r.message for r in pc.displayed_records()] == ["a", "b"]
        assert pc.shown_count() == 2

    def test_resume_discards_snapshot(self):
        pc = PauseController()
        pc.toggle(lambda: rows("a"))
        pc.toggle()
        assert pc.displayed_records() == []
        assert pc.shown_count() is None

    def test_view_clear_while_paused(self):
        pc = PauseController()
        pc.toggle(lambda: rows("a", "b"))
        pc.reset_for_view_clear()
        assert pc.is_paused
        assert pc.shown_count() == 0
        assert pc.displayed_records() == []

    def test_recapture_only_while_paused(self):
        pc = PauseController()
        pc.recapture(lambda: rows("x"))
        assert pc.shown_count() is None
        pc.toggle(lambda: rows("a"))
        pc.recapture(lambda: rows("x", "y"))
        assert pc.shown_count() == 2


class TestParsing:
    def test_trailing_z_is_read_as_local_time(self):
        assert parse_local("2024-05-01T10:20:30.456Z") == datetime(2024, 5, 1, 10, 20, 30, 456000)

    def test_explicit_offset_is_converted_to_local_time(self):
        instant = datetime(2024, 5, 1, 10, 20, 30, tzinfo=timezone(timedelta(hours=2)))
        expected = instant.astimezone().replace(tzinfo=None)
        assert parse_local("2024-05-01T10:20:30+02:00") == expected

    def test_offset_and_trailing_z_differ(self):
        """A trailing Z is read as local time; +00:00 is a real UTC instant."""
        utc = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
        assert parse_local("2024-05-01T08:00:00+00:00") == utc
        assert parse_local("2024-05-01T08:00:00Z") == datetime(2024, 5, 1, 8, 0)

    def test_unparseable(self):
        assert parse_local("yesterday") is None


class TestFormatting:
    def test_relative_zero_padding(self):
        assert format_relative(0) == "+00:00:00.000"
        assert format_relative(61_005) == "+00:01:01.005"

    def test_relative_hours_accumulate_past_a_day(self):
        ms = (25 * 3600 + 2 * 60 + 3) * 1000 + 4
        assert format_relative(ms) == "+25:02:03.004"

    def test_relative_negative_clamps_to_zero(self):
        assert format_relative(-500) == "+00:00:00.000"

    def test_absolute_default_layout(self):
        assert format_absolute(datetime(2024, 5, 1, 7, 8, 9, 12000)) == "07:08:09.012"

    def test_absolute_custom_tokens(self):
        dt = datetime(2024, 5, 1, 7, 8, 9)
        assert format_absolute(dt, "YYYY-MM-DD HH:mm") == "2024-05-01 07:08"


class TestProjector:
    def test_absolute_render(self):
        p = TimestampProjector()
        assert p.render("2024-05-01T23:59:58.250Z") == "23:59:58.250"

    def test_absolute_render_with_offset_uses_local_clock(self):
        instant = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        local = instant.astimezone()
        expected = f"{local.hour:02d}:{local.minute:02d}:{local.second:02d}.000"
        assert TimestampProjector().render("2024-05-01T10:00:00.000+02:00") == expected

    def test_relative_render_with_offset(self):
        instant = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        epoch = instant.astimezone().replace(tzinfo=None)
        p = TimestampProjector(relative=True, reset_epoch=epoch)
        assert p.render("2024-05-01T10:00:02.000+02:00") == "+00:00:02.000"

    def test_relative_render_since_epoch(self):
        epoch = datetime(2024, 5, 1, 10, 0, 0)
        p = TimestampProjector(relative=True, reset_epoch=epoch)
        assert p.render("2024-05-01T10:00:01.500Z") == "+00:00:01.500"

    def test_relative_before_epoch_is_zero(self):
        p = TimestampProjector(relative=True, reset_epoch=datetime(2024, 5, 1, 10, 0, 0))
        assert p.render("2024-05-01T09:00:00Z") == "+00:00:00.000"

    def test_reset_epoch(self):
        p = TimestampProjector(relative=True, reset_epoch=datetime(2024, 1, 1))
        later = datetime(2024, 5, 1, 10, 0, 0)
        p.reset_epoch(later)
        assert p.epoch == later
        assert p.render((later + timedelta(seconds=3)).isoformat()) == "+00:00:03.000"

    def test_unparseable_is_shown_unchanged(self):
        assert TimestampProjector().render("not a time") == "not a time"

    def test_update_options(self):
        p = TimestampProjector()
        p.update_options(True, "")
        assert p.relative is True
        assert p.timestamp_format == "HH:mm:ss.SSS"
