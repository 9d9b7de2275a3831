from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Literal, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
import logging
from langchain_core.language_models.chat_models import BaseChatModel
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.database import get_db, init_db
from app.users import get_user, sync_user
from coach.agent import build_llm, forward_chat
from coach.core.memory import (
    ConversationSession,
    IntakeIncompleteError,
    SessionBusyError,
    SessionNotStartedError,
    SessionStore,
)
from coach.program import JSON_MIME_TYPE, ProgramFormatError, generate_program, program_summary
from config.settings import get_settings


logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s - %(message)s")
logger = logging.getLogger("fitcoach")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Initializing user database...")
    init_db()
    yield


app = FastAPI(title="CodeFlex Fitness Intake", version="1.0.0", lifespan=lifespan)

# CORS: allow local frontend during development
settings = get_settings()
if settings.app_env.lower() in {"dev", "development", "local"}:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

_sessions = SessionStore(
    assistant_name=settings.assistant_name,
    fallback_reply=settings.fallback_reply,
    max_sessions=settings.session_max_count,
    ttl=settings.session_ttl,
)


class ChatTurn(BaseModel):
    role: Literal["user", "assistant", "model"] = Field(..., description="'user' or 'assistant'")
    content: str


class ChatRequest(BaseModel):
    messages: List[ChatTurn] = Field(
        default_factory=list,
        description="Full transcript so far, oldest first (frontend-managed)",
    )


class UserSyncRequest(BaseModel):
    name: str
    email: str
    identity_id: str = Field(..., description="User id issued by the identity provider")
    image: Optional[str] = None


class StartRequest(BaseModel):
    identity_id: Optional[str] = None
    name: Optional[str] = Field(None, description="Overrides the stored display name")


class MessageRequest(BaseModel):
    content: str = Field(..., description="User's latest message")


def get_sessions() -> SessionStore:
    return _sessions


def _model(response_mime_type: Optional[str] = None) -> BaseChatModel:
    try:
        return build_llm(response_mime_type=response_mime_type)
    except RuntimeError as exc:
        raise HTTPException(status_code=500, detail=str(exc))


def get_chat_model() -> BaseChatModel:
    return _model()


def get_program_model() -> BaseChatModel:
    return _model(JSON_MIME_TYPE)


def _require_session(sessions: SessionStore, client_id: str) -> ConversationSession:
    session = sessions.get(client_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Unknown session: {client_id}")
    return session


@app.post("/users/sync")
def users_sync(req: UserSyncRequest, db: Session = Depends(get_db)) -> Dict[str, Any]:
    new_id = sync_user(db, name=req.name, email=req.email, identity_id=req.identity_id, image=req.image)
    return {"id": new_id, "created": new_id is not None}


@app.post("/chat")
def chat(req: ChatRequest, llm: BaseChatModel = Depends(get_chat_model)) -> Dict[str, Any]:
    logger.info("Incoming chat: turns=%s", len(req.messages))
    try:
        reply = forward_chat([t.model_dump() for t in req.messages], llm=llm)
    except Exception as e:
        logger.exception("Gemini error: %s", e)
        raise HTTPException(status_code=500, detail="Gemini request failed")
    return {"reply": reply}


@app.post("/sessions/{client_id}/start")
def start_session(
    client_id: str,
    req: Optional[StartRequest] = None,
    db: Session = Depends(get_db),
    sessions: SessionStore = Depends(get_sessions),
) -> Dict[str, Any]:
    req = req or StartRequest()
    name = req.name
    if not name and req.identity_id:
        user = get_user(db, req.identity_id)
        name = user.name if user else None

    session = sessions.get_or_create(client_id)
    try:
        session.start(name)
    except SessionBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    logger.info("Session started: client_id=%s known_user=%s", client_id, bool(name))
    return session.to_dict()


@app.post("/sessions/{client_id}/messages")
def send_message(
    client_id: str,
    req: MessageRequest,
    llm: BaseChatModel = Depends(get_chat_model),
    sessions: SessionStore = Depends(get_sessions),
) -> Dict[str, Any]:
    session = _require_session(sessions, client_id)
    logger.info(
        "Incoming message: client_id=%s history_turns=%s",
        client_id,
        len(session.messages),
    )
    try:
        result = session.send(req.content, lambda turns: forward_chat(turns, llm=llm))
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except (SessionBusyError, SessionNotStartedError) as exc:
        raise HTTPException(status_code=409, detail=str(exc))

    body = session.to_dict()
    body["ai_response"] = result["ai_response"]
    if result["error"]:
        logger.warning("Reply failed for client_id=%s", client_id)
        body["error"] = " ".join(result["error"].split())[:500]
    return body


@app.get("/sessions/{client_id}")
def get_session_state(client_id: str, sessions: SessionStore = Depends(get_sessions)) -> Dict[str, Any]:
    return _require_session(sessions, client_id).to_dict()


@app.get("/sessions/{client_id}/transcript", response_class=PlainTextResponse)
def get_transcript(client_id: str, sessions: SessionStore = Depends(get_sessions)) -> str:
    return _require_session(sessions, client_id).render()


@app.post("/sessions/{client_id}/program")
def create_program(
    client_id: str,
    llm: BaseChatModel = Depends(get_program_model),
    sessions: SessionStore = Depends(get_sessions),
) -> Dict[str, Any]:
    session = _require_session(sessions, client_id)
    try:
        with session.request():
            if not session.completed:
                raise IntakeIncompleteError("Intake is not complete yet")
            program = generate_program(session.messages, llm=llm)
    except (SessionBusyError, IntakeIncompleteError) as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except ProgramFormatError as exc:
        logger.warning("Program reply unusable for client_id=%s: %s", client_id, exc)
        raise HTTPException(status_code=502, detail=str(exc))
    except Exception as e:
        logger.exception("Program generation failed: %s", e)
        raise HTTPException(status_code=500, detail="Gemini request failed")

    session.program = program.model_dump()
    return {"program": session.program, "summary": program_summary(program)}


@app.delete("/sessions/{client_id}")
def delete_session(client_id: str, sessions: SessionStore = Depends(get_sessions)) -> Dict[str, Any]:
    if not sessions.drop(client_id):
        raise HTTPException(status_code=404, detail=f"Unknown session: {client_id}")
    return {"status": "deleted"}


@app.get("/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=8000)
