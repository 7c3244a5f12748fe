"""Thin wrapper around the OpenAI chat completions API."""

from __future__ import annotations

import json
import logging
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from openai import AsyncOpenAI

from smarttask.config import Settings
from smarttask.dispatch.registry import operation
from smarttask.schemas.schemas import AiAnswer
from smarttask.schemas.schemas import TaskSuggestion
from smarttask.schemas.schemas import TaskSuggestions
from smarttask.services.interfaces import IOpenAiService

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are SmartTask, a concise assistant that helps people organise their work."
SUGGESTION_PROMPT = (
    "Break the user's goal into {count} concrete tasks. Reply with a JSON object of the form "
    '{{"suggestions": [{{"title": "...", "description": "..."}}]}} and nothing else.'
)
MAX_SUGGESTIONS = 10


class OpenAiService(IOpenAiService):
    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None):
        self.settings = settings
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self.settings.openai_api_key:
                raise ValueError("OpenAI API key is not configured (set OPENAI_API_KEY)")
            self._client = AsyncOpenAI(api_key=self.settings.openai_api_key)
        return self._client

    async def _complete(self, messages: List[Dict[str, str]], model: str, **kwargs: Any) -> str:
        response = await self.client.chat.completions.create(model=model, messages=messages, **kwargs)
        return response.choices[0].message.content or ""

    @operation
    async def ask_async(self, prompt: str, system_prompt: Optional[str] = None, model: Optional[str] = None) -> AiAnswer:
        if not prompt or not prompt.strip():
            raise ValueError("prompt must not be empty")

        chosen_model = model or self.settings.openai_model
        messages = [
            {"role": "system", "content": system_prompt or DEFAULT_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
        answer = await self._complete(messages, chosen_model)
        logger.info("OpenAI answered prompt (%d chars) with model %s", len(prompt), chosen_model)
        return AiAnswer(answer=answer, model=chosen_model)

    @operation
    async def suggest_tasks_async(self, goal: str, count: int = 3) -> TaskSuggestions:
        """Ask the model for *count* tasks that move *goal* forward."""

        if not goal or not goal.strip():
            raise ValueError("goal must not be empty")
        if count < 1 or count > MAX_SUGGESTIONS:
            raise ValueError(f"count must be between 1 and {MAX_SUGGESTIONS}")

        chosen_model = self.settings.openai_model
        messages = [
            {"role": "system", "content": SUGGESTION_PROMPT.format(count=count)},
            {"role": "user", "content": goal},
        ]
        raw = await self._complete(messages, chosen_model, response_format={"type": "json_object"})

        try:
            items = json.loads(raw).get("suggestions", [])
        except (json.JSONDecodeError, AttributeError) as exc:
            # Malformed model output is a server-side failure, not a bad argument.
            raise RuntimeError("The model returned malformed task suggestions") from exc

        suggestions = [
            TaskSuggestion(title=str(item["title"]), description=item.get("description"))
            for item in items
            if isinstance(item, dict) and item.get("title")
        ][:count]
        return TaskSuggestions(goal=goal, suggestions=suggestions, model=chosen_model)


__all__ = ["OpenAiService"]
