#!/usr/bin/env python3
"""
Lucka Bet Management CLI

This script provides command-line management functionality for the betting application.
"""

import logging

import click
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app import create_app, db
from app.errors import BettingError
from app.models import Player, Role, User
from app.services import betting_service, settlement_service
from app.utils.session_window import get_current_window

app = create_app()


@click.group()
def cli():
    """Lucka Bet Management CLI"""
    pass


@cli.command("init-db")
def init_db():
    """Create all database tables"""
    with app.app_context():
        db.create_all()
        click.echo("✅ Database tables created")


@cli.command("create-admin")
@click.argument("username")
@click.password_option()
def create_admin(username, password):
    """Create an admin user"""
    with app.app_context():
        try:
            user = User(username=username, role=Role.ADMIN)
            user.set_password(password)
            db.session.add(user)
            db.session.commit()
            click.echo(f"✅ Created admin '{username}'")
        except IntegrityError as e:
            db.session.rollback()
            click.echo(f"❌ User '{username}' already exists!")
            logging.error(f"Admin creation failed - integrity error: {e}")
        except SQLAlchemyError as e:
            db.session.rollback()
            click.echo(f"❌ Database error creating admin: {str(e)}")
            logging.error(f"Admin creation failed - SQL error: {e}")


@cli.command("session-status")
def session_status():
    """Show the current betting session"""
    with app.app_context():
        status = betting_service.current_session(get_current_window())
        state = "OPEN" if status["isOpen"] else "CLOSED"
        click.echo(f"Session started: {status['sessionStart']}")
        click.echo(f"Betting is {state} (closes at {status['closingTimeLabel']})")
        click.echo(f"Game type: {status['gameType']}")


@cli.command("settle")
@click.option("--actual-time", type=int, help="Minutes late she arrived")
@click.option("--didnt-come", is_flag=True, help="She did not come at all")
@click.option("--game-id", type=int, help="Settle a specific game instead of the current one")
def settle(actual_time, didnt_come, game_id):
    """Reveal a result and award points"""
    with app.app_context():
        try:
            if game_id:
                game, results = settlement_service.settle_game(
                    game_id, actual_time=actual_time, didnt_come=didnt_come
                )
            else:
                game, results = settlement_service.settle_current(
                    actual_time=actual_time, didnt_come=didnt_come
                )
        except BettingError as e:
            click.echo(f"❌ {e.message}")
            raise SystemExit(1)

        click.echo(f"✅ Game {game.id} settled")
        for result in results:
            click.echo(
                f"  {result['playerName']:<20} +{result['winnings']:<3} "
                f"(total {result['newPoints']})"
            )


@cli.command("leaderboard")
def leaderboard():
    """Print players by points"""
    with app.app_context():
        players = Player.query.order_by(Player.points.desc()).all()
        for rank, player in enumerate(players, start=1):
            click.echo(
                f"{rank:>3}. {player.name:<20} {player.points:>5} pts "
                f"({player.games_won}W/{player.games_lost}L)"
            )


if __name__ == "__main__":
    cli()
