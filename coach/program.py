from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from coach.agent import build_llm, is_assistant_role, message_text, to_lc_messages
from coach.core.prompt import PROGRAM_PROMPT


logger = logging.getLogger(__name__)

JSON_MIME_TYPE = "application/json"


class ProgramFormatError(ValueError):
    """The model reply could not be read as a program."""


def _strip_code_fences(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped[3:]
        if stripped.startswith("json"):
            stripped = stripped[len("json"):].lstrip()
        stripped = stripped.rstrip()
        if stripped.endswith("```"):
            stripped = stripped[:-3]
    return stripped.strip()


def _extract_json_segment(text: str) -> Optional[str]:
    start = text.find("{")
    if start == -1:
        return None
    stack = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        ch = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            stack += 1
        elif ch == "}":
            stack -= 1
            if stack == 0:
                return text[start: idx + 1]
    return None


def _leading_int(value: Any) -> Any:
    if isinstance(value, str):
        match = re.search(r"\d+(?:\.\d+)?", value.replace(",", ""))
        if match:
            return round(float(match.group()))
        return None
    if isinstance(value, float):
        return round(value)
    return value


class Routine(BaseModel):
    name: str
    sets: Optional[int] = None
    reps: Optional[str] = None

    @field_validator("sets", mode="before")
    @classmethod
    def _coerce_sets(cls, value):
        return _leading_int(value)

    @field_validator("reps", mode="before")
    @classmethod
    def _coerce_reps(cls, value):
        if isinstance(value, (int, float)):
            return str(int(value))
        return value


class WorkoutDay(BaseModel):
    day: str
    routines: List[Routine] = Field(default_factory=list)


class WorkoutPlan(BaseModel):
    schedule: List[str] = Field(default_factory=list)
    exercises: List[WorkoutDay] = Field(default_factory=list)


class Meal(BaseModel):
    name: str
    foods: List[str] = Field(default_factory=list)


class DietPlan(BaseModel):
    daily_calories: Optional[int] = None
    meals: List[Meal] = Field(default_factory=list)

    @field_validator("daily_calories", mode="before")
    @classmethod
    def _coerce_calories(cls, value):
        return _leading_int(value)


class FitnessProgram(BaseModel):
    workout_plan: WorkoutPlan
    diet_plan: DietPlan

    @model_validator(mode="before")
    @classmethod
    def _unwrap(cls, values):
        # Some replies nest the document one level down, e.g. {"program": {...}}
        if isinstance(values, dict) and "workout_plan" not in values and len(values) == 1:
            inner = next(iter(values.values()))
            if isinstance(inner, dict):
                return inner
        return values


def decode_program(text: str) -> FitnessProgram:
    cleaned = _strip_code_fences(text or "")
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        segment = _extract_json_segment(cleaned)
        if not segment:
            raise ProgramFormatError("Model reply did not contain a JSON object")
        try:
            data = json.loads(segment)
        except json.JSONDecodeError as exc:
            raise ProgramFormatError(f"Model reply contained malformed JSON: {exc}") from exc

    try:
        return FitnessProgram.model_validate(data)
    except ValidationError as exc:
        raise ProgramFormatError(f"Model reply is not a fitness program: {exc}") from exc


def build_program_messages(history: List[dict]) -> List[BaseMessage]:
    turns = list(history or [])
    if turns and is_assistant_role(turns[0].get("role")):
        turns = turns[1:]
    messages = to_lc_messages(turns)
    messages.append(HumanMessage(content=PROGRAM_PROMPT))
    return messages


def generate_program(history: List[dict], llm: Optional[BaseChatModel] = None) -> FitnessProgram:
    messages = build_program_messages(history)
    model = llm or build_llm(response_mime_type=JSON_MIME_TYPE)
    logger.info("Requesting program from %s intake messages", len(messages) - 1)
    reply = model.invoke(messages)
    program = decode_program(message_text(reply))
    logger.info(
        "Program decoded: workout_days=%s meals=%s",
        len(program.workout_plan.exercises),
        len(program.diet_plan.meals),
    )
    return program


def program_summary(program: FitnessProgram) -> Dict[str, Any]:
    return {
        "workout_days": [day.day for day in program.workout_plan.exercises],
        "daily_calories": program.diet_plan.daily_calories,
        "meal_count": len(program.diet_plan.meals),
    }
