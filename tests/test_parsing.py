import pytest

from warden.errors import ParseError
from warden.services.parsing import format_duration, parse_duration, parse_time_of_day


class TestParseDuration:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("10m", 600_000),
            ("2h", 7_200_000),
            ("3d", 259_200_000),
            ("45 min", 2_700_000),
            ("2 horas", 7_200_000),
            ("1 Day", 86_400_000),
            ("  5minutos ", 300_000),
        ],
    )
    def test_valid_durations(self, text, expected):
        assert parse_duration(text) == expected

    @pytest.mark.parametrize("text", ["soon", "10", "m10", "10 weeks", "1.5h", "-5m", "10m30s"])
    def test_invalid_durations(self, text):
        with pytest.raises(ParseError):
            parse_duration(text)

    def test_zero_rejected(self):
        with pytest.raises(ParseError, match="greater than zero"):
            parse_duration("0m")

    def test_empty_rejected(self):
        with pytest.raises(ParseError):
            parse_duration("")
        with pytest.raises(ParseError):
            parse_duration(None)

    def test_years_not_supported(self):
        with pytest.raises(ParseError, match="Unknown duration unit"):
            parse_duration("1ano")


class TestParseTimeOfDay:
    @pytest.mark.parametrize(
        "text,hour,minute",
        [
            ("22:00", 22, 0),
            ("7:05", 7, 5),
            ("7h30", 7, 30),
            ("6h", 6, 0),
            ("23", 23, 0),
            ("midnight", 0, 0),
            ("Meia-Noite", 0, 0),
            ("noon", 12, 0),
        ],
    )
    def test_valid_times(self, text, hour, minute):
        parsed = parse_time_of_day(text)

        assert (parsed.hour, parsed.minute) == (hour, minute)

    @pytest.mark.parametrize("text", ["24:00", "12:60", "7pm", "evening", "1:5"])
    def test_invalid_times(self, text):
        with pytest.raises(ParseError):
            parse_time_of_day(text)

    def test_empty_rejected(self):
        with pytest.raises(ParseError):
            parse_time_of_day("  ")

    def test_named_times_are_copies(self):
        first = parse_time_of_day("noon")
        first.hour = 13

        assert parse_time_of_day("noon").hour == 12

    def test_str_is_zero_padded(self):
        assert str(parse_time_of_day("7h05")) == "07:05"


class TestFormatDuration:
    def test_days(self):
        assert format_duration(259_200_000) == "3 day(s)"

    def test_hours(self):
        assert format_duration(7_200_000) == "2 hour(s)"

    def test_minutes(self):
        assert format_duration(600_000) == "10 minute(s)"

    def test_seconds(self):
        assert format_duration(5_000) == "5 second(s)"

    def test_zero(self):
        assert format_duration(0) == "0"
