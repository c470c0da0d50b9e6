import pytest

from airguard.tracking.classifier import CLASSIFICATION_RULES, AircraftCategory, classify


@pytest.mark.parametrize('callsign, expected', [
    ('DLH123', AircraftCategory.COMMERCIAL),
    ('dlh123 ', AircraftCategory.COMMERCIAL),
    ('N123AB', AircraftCategory.GENERAL_AVIATION),
    ('S5-ABC', AircraftCategory.GENERAL_AVIATION),
    ('POLICE', AircraftCategory.HELICOPTER),
    ('HELI1', AircraftCategory.HELICOPTER),
    ('GLIDER', AircraftCategory.LIGHT),
    ('XYZ', AircraftCategory.UNKNOWN),
])
def test_classify(callsign, expected):
    assert classify(callsign) == expected


@pytest.mark.parametrize('callsign', [None, '', '   '])
def test_missing_callsign_is_unknown(callsign):
    assert classify(callsign) == AircraftCategory.UNKNOWN


def test_rules_end_with_unconditional_default():
    predicate, category = CLASSIFICATION_RULES[-1]

    assert category == AircraftCategory.UNKNOWN
    assert predicate('ANYTHING')


def test_display_names():
    assert AircraftCategory.MILITARY.display_name == 'Military/Government'
    assert all(category.display_name for category in AircraftCategory)
