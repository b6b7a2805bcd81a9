import math

import pytest

from neo_tracker.risk import assess_risk, risk_level, to_float
from neo_tracker.schemas import CloseApproach, NearEarthObject, RiskLevel
from neo_tracker.services import parse_neo


def make_neo(hazardous=False, diameter=(0.0, 0.0), distances=()):
    return NearEarthObject(
        neo_id="1",
        name="Test",
        is_potentially_hazardous=hazardous,
        diameter_min_km=diameter[0],
        diameter_max_km=diameter[1],
        close_approach_data=[CloseApproach(miss_distance_km=d) for d in distances],
    )


def test_hazardous_medium_sized_close_object(neo_record):
    neo = parse_neo(
        neo_record(hazardous=True, diameter=(0.4, 0.5), approaches=[("2026-01-01", "2000000")])
    )
    risk = assess_risk(neo)
    assert risk.score == 70
    assert risk.level == RiskLevel.HIGH


def test_small_far_object_is_low(neo_record):
    neo = parse_neo(
        neo_record(hazardous=False, diameter=(0.04, 0.05), approaches=[("2026-01-01", "10000000")])
    )
    risk = assess_risk(neo)
    assert risk.score == 10
    assert risk.level == RiskLevel.LOW


def test_maximum_score_is_critical():
    risk = assess_risk(make_neo(hazardous=True, diameter=(1.0, 1.4), distances=[384400.0]))
    assert risk.score == 100
    assert risk.level == RiskLevel.CRITICAL


@pytest.mark.parametrize("distances,expected", [((), 5), ((10_000_000.0,), 10), ((25_000_000.0,), 10)])
def test_small_harmless_objects(distances, expected):
    risk = assess_risk(make_neo(diameter=(0.01, 0.02), distances=distances))
    assert risk.score == expected
    assert risk.level == RiskLevel.LOW


def test_no_approaches_scores_less_than_far_approach():
    none = assess_risk(make_neo(diameter=(0.2, 0.2)))
    far = assess_risk(make_neo(diameter=(0.2, 0.2), distances=[50_000_000.0]))
    assert far.score - none.score == 5


@pytest.mark.parametrize(
    "avg,points",
    [(0.0, 5), (0.099, 5), (0.1, 10), (0.49, 10), (0.5, 20), (0.99, 20), (1.0, 30), (12.0, 30)],
)
def test_size_bands(avg, points):
    assert assess_risk(make_neo(diameter=(avg, avg))).score == points


@pytest.mark.parametrize(
    "distance,points",
    [(0.0, 30), (999_999.0, 30), (1_000_000.0, 20), (4_999_999.0, 20), (5_000_000.0, 10), (10_000_000.0, 5)],
)
def test_proximity_bands(distance, points):
    assert assess_risk(make_neo(distances=[distance])).score == 5 + points


def test_proximity_uses_minimum_distance():
    neo = make_neo(distances=[40_000_000.0, 800_000.0, 7_000_000.0])
    assert assess_risk(neo).score == 35


def test_monotonic_in_each_factor():
    sizes = [0.0, 0.05, 0.1, 0.3, 0.5, 0.8, 1.0, 3.0]
    distances = [20_000_000.0, 9_000_000.0, 3_000_000.0, 500_000.0]
    for hazardous in (False, True):
        for dist in distances:
            scores = [assess_risk(make_neo(hazardous, (s, s), [dist])).score for s in sizes]
            assert scores == sorted(scores)
    for size in sizes:
        for dist in distances:
            plain = assess_risk(make_neo(False, (size, size), [dist])).score
            flagged = assess_risk(make_neo(True, (size, size), [dist])).score
            assert flagged >= plain
    for size in sizes:
        scores = [assess_risk(make_neo(False, (size, size), [d])).score for d in distances]
        assert scores == sorted(scores)


@pytest.mark.parametrize(
    "score,level",
    [
        (100, RiskLevel.CRITICAL),
        (80, RiskLevel.CRITICAL),
        (79, RiskLevel.HIGH),
        (60, RiskLevel.HIGH),
        (59, RiskLevel.MEDIUM),
        (40, RiskLevel.MEDIUM),
        (39, RiskLevel.LOW),
        (0, RiskLevel.LOW),
    ],
)
def test_level_cutoffs(score, level):
    assert risk_level(score) == level


@pytest.mark.parametrize(
    "raw,expected",
    [("2000000", 2_000_000.0), ("0.45", 0.45), (3, 3.0), (None, None), ("", None),
     ("n/a", None), ("nan", None), ("inf", None), ("-5", None), (True, None)],
)
def test_to_float(raw, expected):
    assert to_float(raw) == expected


def test_unparseable_distances_do_not_poison_score(neo_record):
    neo = parse_neo(
        neo_record(
            hazardous=True,
            diameter=(0.4, 0.5),
            approaches=[("2026-01-01", "garbage"), ("2026-01-03", "4000000")],
        )
    )
    assert neo.close_approach_data[0].miss_distance_km is None
    assert assess_risk(neo).score == 70


def test_only_unparseable_distances_count_as_no_approach(neo_record):
    neo = parse_neo(neo_record(diameter=(0.04, 0.05), approaches=[("2026-01-01", "NaN")]))
    risk = assess_risk(neo)
    assert risk.score == 5
    assert not math.isnan(risk.score)


def test_missing_diameter_defaults_to_smallest_band(neo_record):
    raw = neo_record(hazardous=True)
    del raw["estimated_diameter"]
    neo = parse_neo(raw)
    assert neo.diameter_min_km == 0.0
    assert assess_risk(neo).score == 45


def test_assess_risk_is_deterministic():
    neo = make_neo(True, (0.6, 0.7), [2_500_000.0])
    assert assess_risk(neo) == assess_risk(neo)
