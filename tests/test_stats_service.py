import pytest

from app import db
from app.errors import NotFound
from app.models import Player, Role
from app.services import betting_service, settlement_service, stats_service
from tests.conftest import make_user


def play_session(clock, day, bets, **outcome):
    """Place bets on the evening of `day` (January 2024) and settle next morning"""
    clock.set(2024, 1, day, 19, 0)
    for name, prediction in bets.items():
        if prediction is None:
            betting_service.place_bet(name, is_wont_come_bet=True)
        else:
            betting_service.place_bet(name, prediction=prediction)

    clock.set(2024, 1, day + 1, 9, 0)
    return settlement_service.settle_current(**outcome)


class TestLeaderboard:
    def test_ordered_by_points(self, app, clock):
        play_session(clock, 15, {"Alice": 5, "Bob": 9}, actual_time=9)

        board = stats_service.leaderboard()

        assert [p["name"] for p in board] == ["Bob", "Alice"]
        assert board[0]["points"] == 10
        assert board[1]["points"] == 6

    def test_admin_profiles_are_hidden(self, app, clock):
        admin = make_user("boss", role=Role.ADMIN)
        admin.ensure_player()
        Player.get_or_create("Alice")
        db.session.commit()

        assert [p["name"] for p in stats_service.leaderboard()] == ["Alice"]


class TestStreak:
    class FakeBet:
        def __init__(self, winnings):
            self.winnings = winnings

    def streak(self, *winnings):
        return stats_service.calculate_streak([self.FakeBet(w) for w in winnings])

    def test_empty(self):
        assert self.streak() == {"type": "none", "count": 0}

    def test_winning_streak(self):
        assert self.streak(3, 10, 0, 5) == {"type": "win", "count": 2}

    def test_losing_streak(self):
        assert self.streak(0, 0, 0, 8) == {"type": "loss", "count": 3}


class TestPlayerStats:
    def test_unknown_player(self, app):
        with pytest.raises(NotFound):
            stats_service.player_stats("Nobody")

    def test_history_and_accuracy(self, app, clock):
        play_session(clock, 15, {"Alice": 5}, actual_time=7)
        play_session(clock, 16, {"Alice": 10}, actual_time=30)
        play_session(clock, 17, {"Alice": None}, didnt_come=True)

        data = stats_service.player_stats("Alice")
        stats = data["stats"]

        assert data["player"]["points"] == 8 + 0 + 15
        assert stats["totalGames"] == 3
        assert stats["gamesWon"] == 2
        assert stats["gamesLost"] == 1
        assert stats["totalPointsEarned"] == 23
        assert stats["avgAccuracy"] == 11.0
        assert stats["bestPrediction"]["difference"] == 2
        assert stats["currentStreak"] == {"type": "win", "count": 1}
        assert len(data["recentGames"]) == 3
        assert data["recentGames"][0]["didntCome"] is True
        assert data["monthlyPerformance"][0]["games"] == 3

    def test_unsettled_bets_are_ignored(self, app, clock):
        betting_service.place_bet("Alice", prediction=5)

        stats = stats_service.player_stats("Alice")["stats"]

        assert stats["totalGames"] == 0
        assert stats["winRate"] == 0
        assert stats["bestPrediction"] is None


class TestGlobalStats:
    def test_without_games(self, app, clock):
        data = stats_service.global_stats()

        assert data["totalGames"] == 0
        assert data["averageActualTime"] is None
        assert data["predictionDistribution"] == []

    def test_aggregates(self, app, clock):
        play_session(clock, 15, {"Alice": 5, "Bob": 12}, actual_time=10)
        play_session(clock, 16, {"Alice": 6, "Bob": None}, didnt_come=True)

        data = stats_service.global_stats()

        assert data["totalGames"] == 2
        assert data["totalBets"] == 4
        assert data["totalPlayers"] == 2
        assert data["averageActualTime"] == 10.0
        assert data["didntComeCount"] == 1
        assert data["didntComePercentage"] == 50.0
        assert data["mostCommonPrediction"] == 5
        # Not enough bets for anyone to qualify
        assert data["mostAccuratePlayer"] is None
        assert {"label": "Late (10 to 30)", "count": 1} in data[
            "actualTimeDistribution"
        ]

    def test_most_accurate_player_needs_three_bets(self, app, clock):
        for day in (15, 16, 17):
            play_session(clock, day, {"Alice": 10, "Bob": 20}, actual_time=11)

        best = stats_service.global_stats()["mostAccuratePlayer"]

        assert best == {"name": "Alice", "averageAccuracy": 1.0, "totalBets": 3}


class TestHistory:
    def test_settled_games_newest_first(self, app, clock):
        play_session(clock, 15, {"Alice": 5, "Bob": 7}, actual_time=7)
        play_session(clock, 16, {"Alice": 0}, actual_time=40)
        clock.set(2024, 1, 17, 19, 0)
        betting_service.place_bet("Alice", prediction=1)

        games = stats_service.game_history()

        assert len(games) == 2
        first, second = games
        assert first["actualTime"] == 40
        assert first["winner"] is None
        assert second["winner"] == "Bob"
        assert [b["playerName"] for b in second["bets"]] == ["Bob", "Alice"]

    def test_limit(self, app, clock):
        play_session(clock, 15, {"Alice": 5}, actual_time=7)
        play_session(clock, 16, {"Alice": 5}, actual_time=7)

        assert len(stats_service.game_history(limit=1)) == 1


def test_admin_dashboard(app, clock):
    make_user("alice")
    betting_service.place_bet("Alice", prediction=5)
    betting_service.place_bet("Bob", is_wont_come_bet=True)

    data = stats_service.admin_dashboard(clock.window())

    assert data["stats"]["totalUsers"] == 1
    assert data["stats"]["totalPlayers"] == 2
    assert data["bettingStatus"]["isOpen"] is True
    assert data["bettingStatus"]["totalBets"] == 2
    assert data["bettingStatus"]["avgPrediction"] == 5
    assert data["currentGame"]["isSettled"] is False
    assert {bet["playerName"] for bet in data["todaysBets"]} == {"Alice", "Bob"}
    assert data["unsettledGames"] == []


def test_admin_dashboard_lists_unsettled_earlier_games(app, clock):
    game_id = betting_service.place_bet("Alice", prediction=5).game_id
    clock.set(2024, 1, 16, 19, 0)

    data = stats_service.admin_dashboard(clock.window())

    assert [game["id"] for game in data["unsettledGames"]] == [game_id]
    assert data["unsettledGames"][0]["betsCount"] == 1
    assert data["currentGame"] is None
