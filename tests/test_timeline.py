"""Tests for burnflow.lib.timeline formatting."""

from datetime import datetime, timedelta

from burnflow.lib.timeline import (
    COLORS,
    format_amount,
    format_point_oneline,
    point_to_dict,
)
from burnflow.lib.types import DeltaPoint, PointKind

T0 = datetime(2024, 3, 4, 9, 0)


class TestFormatAmount:
    """Tests for format_amount."""

    def test_duration(self):
        """Durations use the board notation."""
        assert format_amount(timedelta(hours=1, minutes=30)) == "1h 30m"

    def test_series_value(self):
        """Series values get two decimals and the unit suffix."""
        assert format_amount(1.5) == "1.50h"
        assert format_amount(90.0, "minutes") == "90.00m"


class TestFormatPointOneline:
    """Tests for format_point_oneline."""

    def test_plain(self):
        """Without color the line is timestamp, symbol, amount, summary."""
        point = DeltaPoint(T0, 2.0, PointKind.WORKLOG, 10)
        line = format_point_oneline(point, "2.00h", "Tim Tam logged 1h on Login page", colorize=False)
        assert line == "2024-03-04 09:00 [*]      2.00h  Tim Tam logged 1h on Login page"

    def test_default_summary(self):
        """Without a summary the kind and id are shown; anchors say start."""
        point = DeltaPoint(T0, 2.0, PointKind.SCOPE_CHANGE, 20)
        assert format_point_oneline(point, "2.00h", colorize=False).endswith("scope_change 20")
        anchor = DeltaPoint(T0, 0.0)
        assert format_point_oneline(anchor, "0.00h", colorize=False).endswith("start")

    def test_colorized(self):
        """Colorized lines use the kind's color."""
        point = DeltaPoint(T0, 2.0, PointKind.NEW_TASK, 1)
        line = format_point_oneline(point, "2.00h")
        assert f"{COLORS['cyan']}[+]" in line


class TestPointToDict:
    """Tests for point_to_dict."""

    def test_delta_point(self):
        """Durations are serialized as strings."""
        point = DeltaPoint(T0, -timedelta(hours=2), PointKind.STAGE_CHANGE, 30)
        assert point_to_dict(point) == {
            "moment": "2024-03-04T09:00:00",
            "value": "-2h",
            "kind": "stage_change",
            "subject_id": 30,
        }

    def test_series_point(self):
        """Series values stay numeric."""
        assert point_to_dict(DeltaPoint(T0, 1.5))["value"] == 1.5
