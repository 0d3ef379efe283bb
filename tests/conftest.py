"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.
"""

from datetime import date

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from scoutrank.db.models import Base, Competition, Player, Team
from scoutrank.players.aliases import normalize_name


@pytest.fixture(scope="session")
def test_engine():
    """
    Create a test database engine.

    Uses SQLite in-memory for fast tests that don't need
    PostgreSQL-specific features. pysqlite's own transaction handling
    is switched off so SAVEPOINTs (begin_nested) behave as they do on
    PostgreSQL.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
    )

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest.fixture(scope="session")
def tables(test_engine):
    """
    Create all tables for testing.

    This fixture runs once per test session.
    """
    Base.metadata.create_all(test_engine)
    yield
    Base.metadata.drop_all(test_engine)


@pytest.fixture
def db_session(test_engine, tables):
    """
    Create a database session for a test.

    Each test gets its own session with automatic rollback,
    ensuring tests don't affect each other. Code under test may call
    session.commit(); that only releases a savepoint inside the outer
    transaction.
    """
    connection = test_engine.connect()
    transaction = connection.begin()

    Session = sessionmaker(bind=connection, join_transaction_mode="create_savepoint")
    session = Session()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def competition(db_session):
    """An Eredivisie season from API-Football."""
    comp = Competition(
        name="Eredivisie",
        country="Netherlands",
        provider="api_football",
        provider_league_id="88",
        season="2025",
        tier="Elite",
    )
    db_session.add(comp)
    db_session.flush()
    return comp


@pytest.fixture
def team(db_session, competition):
    club = Team(
        name="Ajax",
        competition_id=competition.id,
        provider="api_football",
        provider_team_id="194",
    )
    db_session.add(club)
    db_session.flush()
    return club


@pytest.fixture
def make_player(db_session):
    """
    Factory for canonical players; field_sources defaults to api_football for set fields.

    Without a position_group the player gets the sourceless MID placeholder,
    as created players with an unknown position do.
    """

    def _make(name, birth_date=None, nationality=None, position_group=None,
              competition_id=None, team_id=None, sources=None, **fields):
        player = Player(
            name=name,
            name_normalized=normalize_name(name),
            birth_date=birth_date,
            nationality=nationality,
            position_group=position_group or "MID",
            competition_id=competition_id,
            team_id=team_id,
            **fields,
        )
        if sources is None:
            sources = {"name": "api_football"}
            for key in ("birth_date", "nationality", *fields):
                if getattr(player, key) is not None:
                    sources[key] = "api_football"
            if position_group is not None:
                sources["position_group"] = "api_football"
        player.field_sources = sources
        db_session.add(player)
        db_session.flush()
        return player

    return _make


@pytest.fixture
def bergwijn(make_player):
    return make_player(
        "Steven Bergwijn",
        birth_date=date(1997, 10, 8),
        nationality="Netherlands",
        position="Attacker",
        position_group="ATT",
    )
