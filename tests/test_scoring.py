import pytest

from app.utils.scoring import calculate_bet_points, prediction_difference


def test_exact_prediction_scores_ten():
    assert calculate_bet_points(7, False, actual_time=7) == 10


@pytest.mark.parametrize(
    "prediction,actual,expected",
    [(5, 7, 8), (10, 0, 0), (-3, 2, 5), (20, 11, 1), (0, 10, 0), (0, 25, 0)],
)
def test_points_drop_one_per_minute_off(prediction, actual, expected):
    assert calculate_bet_points(prediction, False, actual_time=actual) == expected


def test_wont_come_bet_wins_bonus_when_she_did_not_come():
    assert calculate_bet_points(0, True, didnt_come=True) == 15


def test_time_bet_scores_nothing_when_she_did_not_come():
    assert calculate_bet_points(5, False, didnt_come=True) == 0


def test_wont_come_bet_scores_nothing_when_she_came():
    # Prediction is irrelevant, even when it happens to match
    assert calculate_bet_points(3, True, actual_time=3) == 0


def test_configurable_points():
    assert (
        calculate_bet_points(5, False, actual_time=5, exact_hit_points=20) == 20
    )
    assert (
        calculate_bet_points(0, True, didnt_come=True, wont_come_bonus=30) == 30
    )


def test_prediction_difference():
    assert prediction_difference(5, 7) == 2
    assert prediction_difference(9, 7) == 2
    assert prediction_difference(5, None, didnt_come=True) == 0
