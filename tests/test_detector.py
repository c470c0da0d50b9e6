import pytest

from airguard.airspace.detector import ViolationDetector
from airguard.airspace.zones import AltitudeBound, AltitudeDatum, RestrictionFlags
from airguard.errors import MalformedZone

from conftest import T0, make_entity, make_zone

FEET_3000_IN_M = 3000 / 3.28084


def _detector(**kwargs):
    defaults = dict(
        restricted_classes=('DANGER', 'PROHIBITED', 'RESTRICTED'),
        freshness_seconds=300,
        history_limit=1000,
        terrain_buffer_ft=1000,
    )
    defaults.update(kwargs)
    return ViolationDetector(**defaults)


def test_entry_then_exit_produces_one_detected_and_one_resolved():
    detector = _detector()
    zone = make_zone(classification='Danger')
    inside = make_entity(longitude=14.5, latitude=46.0, altitude_m=FEET_3000_IN_M, last_contact=T0)

    first = detector.check_violations([inside], [zone], T0)

    assert len(first.detected) == 1
    assert first.resolved == []
    violation = first.detected[0]
    assert violation.entity_id == 'abc123'
    assert violation.zone_id == 'z1'
    assert violation.alertable is True
    assert violation.id == f'abc123_z1_{int(T0 * 1000)}'

    outside = make_entity(longitude=16.0, latitude=46.0, altitude_m=FEET_3000_IN_M, last_contact=T0 + 30)
    second = detector.check_violations([outside], [zone], T0 + 30)

    assert second.detected == []
    assert len(second.resolved) == 1
    assert second.resolved[0] is violation
    assert violation.resolved is True
    assert violation.resolved_at == T0 + 30
    assert len(detector.history()) == 1
    assert detector.active_violations() == []


def test_repeated_containment_detects_once():
    detector = _detector()
    zone = make_zone()

    detected = []
    for i in range(3):
        entity = make_entity(last_contact=T0 + i * 30)
        detected.extend(detector.check_violations([entity], [zone], T0 + i * 30).detected)

    assert len(detected) == 1
    assert len(detector.active_violations()) == 1


def test_reentry_opens_new_violation():
    detector = _detector()
    zone = make_zone()

    detector.check_violations([make_entity()], [zone], T0)
    detector.check_violations([], [zone], T0 + 30)
    result = detector.check_violations([make_entity(last_contact=T0 + 60)], [zone], T0 + 60)

    assert len(result.detected) == 1
    assert len(detector.history()) == 2


def test_altitude_band_is_respected():
    detector = _detector()
    # Lower bound 1000ft AGL becomes 2000ft with the terrain buffer
    zone = make_zone(lower=AltitudeBound('1000FT', AltitudeDatum.AGL), upper=AltitudeBound('FL100'))

    low = make_entity(entity_id='low111', altitude_m=1500 / 3.28084)
    high = make_entity(entity_id='high22', altitude_m=11000 / 3.28084)
    within = make_entity(entity_id='mid333', altitude_m=5000 / 3.28084)
    no_altitude = make_entity(entity_id='none44', altitude_m=None)

    result = detector.check_violations([low, high, within, no_altitude], [zone], T0)

    assert [v.entity_id for v in result.detected] == ['mid333']


def test_stale_entity_is_not_evaluated():
    detector = _detector()
    stale = make_entity(last_contact=T0 - 301)

    result = detector.check_violations([stale], [make_zone()], T0)

    assert result.detected == []


def test_zero_freshness_is_honoured():
    detector = _detector(freshness_seconds=0)

    result = detector.check_violations(
        [make_entity('now111', last_contact=T0), make_entity('old222', last_contact=T0 - 1)],
        [make_zone()],
        T0,
    )

    assert detector.freshness_seconds == 0
    assert [v.entity_id for v in result.detected] == ['now111']


def test_contains_single_pair():
    detector = _detector()
    zone = make_zone(lower=AltitudeBound('1000FT', AltitudeDatum.AGL), upper=AltitudeBound('FL100'))

    assert detector.contains(zone, make_entity(altitude_m=5000 / 3.28084)) is True
    assert detector.contains(zone, make_entity(altitude_m=1500 / 3.28084)) is False
    assert detector.contains(zone, make_entity(longitude=16.0, altitude_m=5000 / 3.28084)) is False

    with pytest.raises(MalformedZone):
        detector.contains(make_zone(upper=AltitudeBound('lots')), make_entity())


def test_unrestricted_zone_is_ignored():
    detector = _detector()
    zone = make_zone(classification='C', name='LJLJ CTR')

    assert detector.is_restricted(zone) is False
    assert detector.check_violations([make_entity()], [zone], T0).detected == []


def test_restricted_by_flags_and_name():
    detector = _detector()

    assert detector.is_restricted(make_zone(classification='D', name='LJR5 MILITARY'))
    assert detector.is_restricted(
        make_zone(classification='G', name='Glider area', restrictions=RestrictionFlags(by_notam=True))
    )
    assert detector.is_restricted(
        make_zone(classification='G', name='TRA', restrictions=RestrictionFlags(special_agreement=True))
    )
    assert detector.is_restricted(make_zone(classification='restricted', name='R1'))


def test_alertable_zones():
    detector = _detector()

    assert detector.is_alertable(make_zone(classification='PROHIBITED', name='P1'))
    assert detector.is_alertable(make_zone(classification='RESTRICTED', name='Military training'))
    assert not detector.is_alertable(make_zone(classification='RESTRICTED', name='R1'))
    # Class D is not Danger
    assert not detector.is_alertable(make_zone(classification='D', name='CTR'))


def test_malformed_zone_is_skipped_without_affecting_others():
    detector = _detector()
    two_vertices = make_zone(zone_id='bad1', polygon=((14.0, 45.0), (15.0, 47.0)))
    bad_bound = make_zone(zone_id='bad2', upper=AltitudeBound('lots'))
    good = make_zone(zone_id='good')

    result = detector.check_violations([make_entity()], [two_vertices, bad_bound, good], T0)

    assert [v.zone_id for v in result.detected] == ['good']


def test_history_is_bounded():
    detector = _detector(history_limit=2)
    zones = [make_zone(zone_id=f'z{i}') for i in range(3)]

    detector.check_violations([make_entity()], zones, T0)

    history = detector.history()
    assert len(history) == 2
    assert [v.zone_id for v in history] == ['z1', 'z2']


def test_statistics():
    detector = _detector()
    zones = [make_zone(zone_id='z1', name='Danger One'), make_zone(zone_id='z2', name='Prohibited Two', classification='PROHIBITED')]

    detector.check_violations([make_entity()], zones, T0)
    stats = detector.statistics(T0 + 60)

    assert stats['active_violations'] == 2
    assert stats['total_violations'] == 2
    assert stats['by_classification'] == {'DANGER': 1, 'PROHIBITED': 1}
    assert stats['by_zone'] == {'Danger One': 1, 'Prohibited Two': 1}
    assert stats['recent_violations'] == 2
    assert detector.statistics(T0 + 25 * 3600)['recent_violations'] == 0


def test_disable_clears_active_violations():
    detector = _detector()
    detector.check_violations([make_entity()], [make_zone()], T0)

    detector.set_enabled(False)

    assert detector.active_violations() == []
    assert detector.check_violations([make_entity()], [make_zone()], T0).detected == []


def test_set_restricted_classes():
    detector = _detector()
    zone = make_zone(classification='C', name='CTR')

    detector.set_restricted_classes(['c'])

    assert detector.is_restricted(zone)


def test_reset():
    detector = _detector()
    detector.check_violations([make_entity()], [make_zone()], T0)

    detector.reset()

    assert detector.active_violations() == []
    assert detector.history() == []
