"""
Shared fixtures: a throwaway SQLite database and fake collaborators
"""

import os
import tempfile
from datetime import timedelta

import httpx
from sqlalchemy.orm import sessionmaker

from roast_studio.api.dependencies import (
    get_roast_generator,
    get_speech_synthesizer,
    get_speech_transcriber,
)
from roast_studio.client.api_client import StudioClient
from roast_studio.client.scheduler import PlaybackTiming
from roast_studio.core.database import create_schema, get_db, make_engine
from roast_studio.core.exceptions import CollaboratorError
from roast_studio.main import create_app
from roast_studio.models import Persona
from roast_studio.models.roast_session import LIVE, LOCKED, OPEN
from roast_studio.models import global_round_state as round_states
from roast_studio.services.round_store import RoundStore

# 0.1 s of mp3_44100_128
FAKE_MP3 = b"\xff" * 1600

FAST_TIMING = PlaybackTiming(
    seconds_per_item=0.0,
    tick_interval=0.01,
    roast_char_delay=0.0,
    response_char_delay=0.0,
    transition_pause=0.0,
    item_gap=0.0,
    silent_delay=0.0,
    dialogue_gap=0.0,
)


class TempDatabase:
    """SQLite file with the full schema; removed by dispose()"""

    def __init__(self):
        fd, self.path = tempfile.mkstemp(suffix=".db", prefix="roast_studio_")
        os.close(fd)
        self.engine = make_engine(f"sqlite:///{self.path}")
        create_schema(self.engine)
        self.Session = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)

    def session(self):
        return self.Session()

    def get_db_override(self):
        def _get_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()
        return _get_db

    def dispose(self):
        self.engine.dispose()
        os.remove(self.path)


def add_personas(db, *names):
    personas = [Persona(username=name) for name in names]
    db.add_all(personas)
    db.commit()
    return personas


def open_session(db, persona, now, window_seconds=120):
    """OPEN session pointed at by the global row"""
    store = RoundStore(db)
    state = store.get_global_state()
    return store.create_session_with_state(persona, now, timedelta(seconds=window_seconds), state.version)


def make_live(db, session, live_start):
    """Push an OPEN session straight to LIVE"""
    store = RoundStore(db)
    store.transition(session.id, OPEN, LOCKED)
    store.transition(session.id, LOCKED, LIVE)
    store.write_global_state(
        round_states.LIVE,
        session.id,
        submit_end_time=session.lock_time,
        live_start_time=live_start,
    )


class FakeGenerator:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    async def generate(self, persona_name, user_roast, host_type):
        self.calls.append((persona_name, user_roast, host_type))
        if self.fail:
            raise CollaboratorError("generator down")
        return f"Host {host_type} on {persona_name}: {user_roast}"


class FakeSynthesizer:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    async def synthesize(self, text, voice):
        self.calls.append((text, voice))
        if self.fail:
            raise CollaboratorError("synthesis down")
        return FAKE_MP3


class FakeTranscriber:
    async def transcribe(self, audio, filename="roast.webm", content_type="audio/webm"):
        return "transcribed roast"


def build_app(database, generator=None, synthesizer=None, transcriber=None):
    app = create_app()
    app.dependency_overrides[get_db] = database.get_db_override()
    app.dependency_overrides[get_roast_generator] = lambda: generator or FakeGenerator()
    app.dependency_overrides[get_speech_synthesizer] = lambda: synthesizer or FakeSynthesizer()
    app.dependency_overrides[get_speech_transcriber] = lambda: transcriber or FakeTranscriber()
    return app


def studio_client(app):
    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")
    return StudioClient(client=http), http
