"""
Scoring Engine for the Lucka betting application

This module handles point calculations for individual bets.
Applying the awards to bets and players happens in
app/services/settlement_service.py.
"""

EXACT_HIT_POINTS = 10
WONT_COME_BONUS = 15


def calculate_bet_points(
    prediction,
    is_wont_come_bet,
    actual_time=None,
    didnt_come=False,
    exact_hit_points=EXACT_HIT_POINTS,
    wont_come_bonus=WONT_COME_BONUS,
):
    """
    Calculate points for a single bet against a revealed outcome.

    Returns:
        wont_come_bonus for a won't-come bet when she did not come
        max(0, exact_hit_points - minutes off) for a time bet when she came
        0 otherwise

    Args:
        prediction: predicted minutes late (ignored for won't-come bets)
        is_wont_come_bet: the bet says she will not come at all
        actual_time: minutes late she arrived (None when she did not come)
        didnt_come: she did not come
    """
    if didnt_come:
        return wont_come_bonus if is_wont_come_bet else 0

    if is_wont_come_bet or actual_time is None:
        return 0

    return max(0, exact_hit_points - abs(prediction - actual_time))


def prediction_difference(prediction, actual_time, didnt_come=False):
    """Absolute minutes between prediction and outcome (0 when she did not come)"""
    if didnt_come or actual_time is None:
        return 0
    return abs((prediction or 0) - actual_time)
