import math

from builders import T0
from squirrel_away.core.protocol.timestamps import NEVER, deserialize_date, serialize_date, to_ms


def test_serialize_date_format() -> None:
    assert serialize_date(0) == "1970-01-01T00:00:00.000Z"
    assert serialize_date(T0 + 1234.9) == "2024-01-01T00:00:01.234Z"


def test_never_round_trips_through_infinity() -> None:
    assert serialize_date(math.inf) == NEVER
    assert deserialize_date(NEVER) == math.inf


def test_dates_past_year_9999_are_never() -> None:
    assert serialize_date(1e20) == NEVER


def test_deserialize_is_exact_to_the_millisecond() -> None:
    assert deserialize_date("2024-01-01T00:00:01.234Z") == T0 + 1234
    assert deserialize_date("2024-01-01T00:00:01.234+00:00") == T0 + 1234


def test_to_ms_floors() -> None:
    assert to_ms(1.999) == 1
    assert to_ms(math.inf) == math.inf
