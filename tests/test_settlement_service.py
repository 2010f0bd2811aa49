import pytest

from app import db
from app.errors import AlreadySettled, NotFound, SessionClosed, ValidationError
from app.models import Bet, Game, GameOutcome, GameType, Player
from app.services import betting_service, settlement_service


def settle_tuesday_morning(clock, **outcome):
    clock.set(2024, 1, 16, 9, 0)
    return settlement_service.settle_current(**outcome)


def test_close_prediction_earns_points(app, clock):
    betting_service.place_bet("Alice", prediction=5)

    game, results = settle_tuesday_morning(clock, actual_time=7)

    assert game.outcome == GameOutcome.ARRIVED
    assert game.actual_time == 7
    assert results == [
        {
            "playerName": "Alice",
            "prediction": 5,
            "isWontComeBet": False,
            "betAmount": 0,
            "winnings": 8,
            "netChange": 8,
            "newPoints": 8,
            "difference": 2,
        }
    ]

    alice = Player.get_by_name("Alice")
    assert alice.points == 8
    assert alice.games_won == 1
    assert alice.games_lost == 0


def test_far_off_prediction_counts_as_loss(app, clock):
    betting_service.place_bet("Bob", prediction=30)

    settle_tuesday_morning(clock, actual_time=2)

    bob = Player.get_by_name("Bob")
    assert bob.points == 0
    assert bob.games_won == 0
    assert bob.games_lost == 1


def test_didnt_come_pays_wont_come_bets_only(app, clock):
    betting_service.place_bet("Alice", is_wont_come_bet=True)
    betting_service.place_bet("Bob", prediction=0)

    game, results = settle_tuesday_morning(clock, didnt_come=True)

    assert game.didnt_come
    assert game.actual_time is None
    assert [(r["playerName"], r["winnings"]) for r in results] == [
        ("Alice", 15),
        ("Bob", 0),
    ]
    assert all(r["difference"] == 0 for r in results)
    assert Player.get_by_name("Alice").points == 15


def test_wont_come_bet_loses_when_she_arrives(app, clock):
    betting_service.place_bet("Alice", is_wont_come_bet=True)

    _, results = settle_tuesday_morning(clock, actual_time=0)

    assert results[0]["winnings"] == 0
    assert Player.get_by_name("Alice").games_lost == 1


def test_results_sorted_by_winnings(app, clock):
    betting_service.place_bet("Carol", prediction=40)
    betting_service.place_bet("Alice", prediction=9)
    betting_service.place_bet("Bob", prediction=10)
    betting_service.place_bet("Dave", prediction=11)

    _, results = settle_tuesday_morning(clock, actual_time=10)

    # Alice and Dave tie; bet order breaks it
    assert [r["playerName"] for r in results] == ["Bob", "Alice", "Dave", "Carol"]
    assert [r["winnings"] for r in results] == [10, 9, 9, 0]


def test_winnings_stored_on_bets(app, clock):
    betting_service.place_bet("Alice", prediction=5)

    settle_tuesday_morning(clock, actual_time=6)

    bet = Bet.query.one()
    assert bet.winnings == 9
    assert bet.difference == 1


def test_second_settlement_changes_nothing(app, clock):
    betting_service.place_bet("Alice", prediction=5)
    game, _ = settle_tuesday_morning(clock, actual_time=5)

    with pytest.raises(AlreadySettled):
        settlement_service.settle_game(game.id, actual_time=40)

    db.session.expire_all()
    game = db.session.get(Game, game.id)
    assert game.actual_time == 5
    assert Player.get_by_name("Alice").points == 10
    assert Player.get_by_name("Alice").games_won == 1


def test_settle_current_twice_is_rejected(app, clock):
    betting_service.place_bet("Alice", prediction=5)
    settle_tuesday_morning(clock, actual_time=5)

    with pytest.raises(AlreadySettled):
        settlement_service.settle_current(didnt_come=True)

    assert Player.get_by_name("Alice").points == 10


def test_points_accumulate_across_sessions(app, clock):
    betting_service.place_bet("Alice", prediction=5)
    settle_tuesday_morning(clock, actual_time=5)

    clock.set(2024, 1, 16, 19, 0)
    betting_service.place_bet("Alice", prediction=5)
    clock.set(2024, 1, 17, 9, 0)
    settlement_service.settle_current(actual_time=8)

    alice = Player.get_by_name("Alice")
    assert alice.points == 17
    assert alice.games_won == 2
    assert alice.total_games == 2


def test_cannot_settle_while_betting_is_open(app, clock):
    betting_service.place_bet("Alice", prediction=5)

    with pytest.raises(SessionClosed):
        settlement_service.settle_current(actual_time=5)

    game = Game.query.one()
    assert not game.is_settled


def test_cannot_settle_open_session_by_id(app, clock):
    bet = betting_service.place_bet("Alice", prediction=5)

    with pytest.raises(SessionClosed):
        settlement_service.settle_game(bet.game_id, actual_time=5)


def test_trip_game_settles_any_time(app, clock):
    betting_service.create_game(GameType.TRIP)
    betting_service.place_bet("Alice", prediction=3)

    game, results = settlement_service.settle_current(actual_time=3)

    assert game.is_trip
    assert results[0]["winnings"] == 10


def test_empty_session_still_records_outcome(app, clock):
    clock.set(2024, 1, 16, 9, 0)

    game, results = settlement_service.settle_current(didnt_come=True)

    assert results == []
    assert game.didnt_come
    assert Game.query.count() == 1


def test_empty_open_session_cannot_be_settled(app, clock):
    with pytest.raises(SessionClosed):
        settlement_service.settle_current(actual_time=1)

    assert Game.query.count() == 0


def test_open_window_points_to_last_nights_unsettled_game(app, clock):
    game_id = betting_service.place_bet("Alice", prediction=5).game_id
    clock.set(2024, 1, 16, 19, 0)

    with pytest.raises(SessionClosed) as exc:
        settlement_service.settle_current(actual_time=5)

    assert f"POST /api/games/{game_id}/settle" in exc.value.message

    game, results = settlement_service.settle_game(game_id, actual_time=5)
    assert game.is_settled
    assert results[0]["winnings"] == 10


def test_unknown_game(app, clock):
    with pytest.raises(NotFound):
        settlement_service.settle_game(999, actual_time=1)


@pytest.mark.parametrize(
    "outcome",
    [{}, {"actual_time": 5, "didnt_come": True}, {"actual_time": "5"}],
)
def test_outcome_must_be_unambiguous(app, clock, outcome):
    betting_service.place_bet("Alice", prediction=5)
    clock.set(2024, 1, 16, 9, 0)

    with pytest.raises(ValidationError):
        settlement_service.settle_current(**outcome)

    assert not Game.query.one().is_settled
