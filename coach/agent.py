from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from coach.core.prompt import CONTINUE_MESSAGE, INTAKE_PROMPT
from config.settings import get_settings


logger = logging.getLogger(__name__)

USER_ROLES = ("user", "human")
ASSISTANT_ROLES = ("assistant", "model", "ai")


def build_llm(response_mime_type: Optional[str] = None) -> ChatGoogleGenerativeAI:
    settings = get_settings()
    if not settings.gemini_api_key:
        raise RuntimeError(
            "Missing GEMINI_API_KEY in environment or .env"
        )

    options: Dict[str, Any] = {
        "model": settings.gemini_model,
        "google_api_key": settings.gemini_api_key,
        "temperature": settings.temperature,
        "top_p": settings.top_p,
        "max_retries": settings.max_retries,
        "timeout": settings.timeout,
    }
    mime_type = response_mime_type or settings.response_mime_type
    if mime_type:
        options["response_mime_type"] = mime_type
    return ChatGoogleGenerativeAI(**options)


def is_assistant_role(role: str) -> bool:
    return (role or "").lower() in ASSISTANT_ROLES


def to_lc_messages(history: List[dict]) -> List[BaseMessage]:
    """Map caller turns onto LangChain messages, keeping their order.

    Turns whose content is blank are skipped. An unrecognised role is an
    error rather than a guess.
    """
    messages: List[BaseMessage] = []
    for item in history or []:
        role = (item.get("role") or "").lower()
        content = item.get("content") or ""
        if role not in USER_ROLES and role not in ASSISTANT_ROLES:
            raise ValueError(f"Unsupported turn role: {item.get('role')!r}")
        if not content.strip():
            continue
        if role in USER_ROLES:
            messages.append(HumanMessage(content=content))
        else:
            messages.append(AIMessage(content=content))
    return messages


def build_history(
    history: List[dict], instruction: str = INTAKE_PROMPT
) -> List[BaseMessage]:
    """Instruction turn, then the transcript, then the continuation request."""
    turns = list(history or [])
    # The upstream chat must open with a user turn; the greeting is display-only
    if turns and is_assistant_role(turns[0].get("role")):
        turns = turns[1:]

    messages: List[BaseMessage] = [HumanMessage(content=instruction)]
    messages.extend(to_lc_messages(turns))
    messages.append(HumanMessage(content=CONTINUE_MESSAGE))
    return messages


def message_text(message: Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text") or "")
        content = "".join(parts)
    return (content or "").strip()


def forward_chat(
    history: List[dict],
    llm: Optional[BaseChatModel] = None,
    instruction: str = INTAKE_PROMPT,
) -> str:
    messages = build_history(history, instruction=instruction)
    model = llm or build_llm()
    logger.info("Forwarding %s messages to the model", len(messages))
    reply = model.invoke(messages)
    return message_text(reply)


def run_chat(history: List[dict], llm: Optional[BaseChatModel] = None) -> Dict[str, Optional[str]]:
    try:
        output = forward_chat(history, llm=llm)
    except Exception as exc:
        logger.exception("Model request failed")
        return {"output": "", "error": str(exc)}

    return {"output": output, "error": None}
