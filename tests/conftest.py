"""Shared fixtures for the intake service tests."""

import json

import pytest
from fastapi.testclient import TestClient
from langchain_core.messages import AIMessage
from sqlalchemy.orm import sessionmaker

from app.database import build_engine, get_db, init_db
from app.main import app, get_chat_model, get_program_model, get_sessions
from coach.core.memory import SessionStore


class RecordingModel:
    """Stands in for the chat model; remembers every message list it receives."""

    def __init__(self, replies=None, error=None):
        self.replies = list(replies or ["OK"])
        self.error = error
        self.calls = []

    def invoke(self, messages):
        self.calls.append(list(messages))
        if self.error is not None:
            raise self.error
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        return AIMessage(content=reply)


SAMPLE_PROGRAM = {
    "workout_plan": {
        "schedule": ["Monday", "Thursday"],
        "exercises": [
            {
                "day": "Monday",
                "routines": [
                    {"name": "Goblet Squat", "sets": 3, "reps": 12},
                    {"name": "Push-up", "sets": "3 sets", "reps": "8-10"},
                ],
            },
            {"day": "Thursday", "routines": [{"name": "Romanian Deadlift", "sets": 3, "reps": 10}]},
        ],
    },
    "diet_plan": {
        "daily_calories": "2,100 kcal",
        "meals": [
            {"name": "Breakfast", "foods": ["Greek yogurt", "Berries"]},
            {"name": "Dinner", "foods": ["Lentil curry", "Rice"]},
        ],
    },
}

COMPLETION_REPLY = "Thank you for the information, kindly click Generate Program!"


@pytest.fixture
def program_json():
    return json.dumps(SAMPLE_PROGRAM)


@pytest.fixture
def db_session():
    engine = build_engine("sqlite://")
    init_db(engine)
    session = sessionmaker(bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def chat_model():
    return RecordingModel(replies=["How old are you?"])


@pytest.fixture
def program_model(program_json):
    return RecordingModel(replies=[program_json])


@pytest.fixture
def store():
    return SessionStore(assistant_name="CodeFlex AI")


@pytest.fixture
def client(db_session, chat_model, program_model, store):
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_chat_model] = lambda: chat_model
    app.dependency_overrides[get_program_model] = lambda: program_model
    app.dependency_overrides[get_sessions] = lambda: store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
