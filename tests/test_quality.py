import pytest

from services.quality import FAIR, GOOD, POOR, UNKNOWN, classify_water_quality


@pytest.mark.parametrize(
    ("temperature", "ph", "mortality", "expected"),
    [
        (27.0, 7.0, 0, ("Good", 90)),
        (31.0, 7.0, 2, ("Fair", 70)),
        (31.0, 9.0, 5, ("Poor", 40)),
        (None, 7.0, 0, ("Unknown", None)),
    ],
)
def test_reference_classifications(temperature, ph, mortality, expected) -> None:
    quality = classify_water_quality(temperature, ph, mortality)

    assert (quality.label, quality.score) == expected


def test_range_limits_are_inclusive() -> None:
    assert classify_water_quality(24.0, 6.5) is GOOD
    assert classify_water_quality(30.0, 8.5) is GOOD
    assert classify_water_quality(23.9, 7.0) is FAIR


def test_in_range_with_heavy_mortality_is_fair() -> None:
    assert classify_water_quality(27.0, 7.0, mortality=10) is FAIR


def test_out_of_range_mortality_threshold() -> None:
    assert classify_water_quality(35.0, 5.0, mortality=3) is FAIR
    assert classify_water_quality(35.0, 5.0, mortality=4) is POOR


def test_missing_ph_is_unknown() -> None:
    assert classify_water_quality(27.0, None) is UNKNOWN
