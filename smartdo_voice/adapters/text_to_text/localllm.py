from typing import Any, Literal

from pydantic import BaseModel, Field

import langchain.agents as lc_agents
from langchain.agents.structured_output import ToolStrategy
from langchain.chat_models import init_chat_model
from langchain.messages import HumanMessage, SystemMessage
from langchain_core.language_models.chat_models import BaseChatModel

from smartdo_voice.core.config import LlmConfig
from smartdo_voice.domain.models import EnergyLevel, Zone

create_agent = lc_agents.create_agent # type: ignore

COMPANION_PERSONA = (
    "You are SmartDo, a kind and supportive productivity companion. "
    "You hate dread and love small progress."
)


class TaskBreakdown(BaseModel):
    steps: list[str] = Field(
        description="3-5 small, manageable, encouraging steps. Concise imperative phrases.",
        min_length=1,
        max_length=5,
    )


class TaskCategory(BaseModel):
    zone: Literal["self", "work", "home", "social", "other"] = Field(description="Life area the task belongs to.")
    energy: Literal["low", "high"] = Field(description="Effort the task demands.")


class LangchainCompanionAdapter:
    def __init__(self, cfg: LlmConfig) -> None:
        model: BaseChatModel = init_chat_model( # type: ignore
            cfg.model,
            model_provider=cfg.provider,
            temperature=cfg.temperature,
            timeout=cfg.timeout,
            **({"base_url": cfg.base_url} if cfg.base_url else {}),
        )
        self._model = model

        self._breakdown_agent: Any = create_agent(
            model=self._model, # type: ignore
            system_prompt=COMPANION_PERSONA + " Break tasks into small steps.",
            response_format=ToolStrategy(
                schema=TaskBreakdown,
                handle_errors="Please emit 3-5 short steps that satisfy the schema.",
            ),
        )
        self._category_agent: Any = create_agent(
            model=self._model, # type: ignore
            system_prompt="You sort personal to-do items into a life zone and an energy level.",
            response_format=ToolStrategy(
                schema=TaskCategory,
                handle_errors="Please emit one zone and one energy level from the allowed values.",
            ),
        )

    def breakdown(self, title: str) -> list[str]:
        result = self._breakdown_agent.invoke({
            "messages": [HumanMessage(content=f'Break down the task "{title}" into 3-5 small, manageable, and encouraging steps. Be concise.')]
        })
        structured: TaskBreakdown = result["structured_response"]
        return list(structured.steps)

    def categorize(self, title: str) -> tuple[Zone, EnergyLevel]:
        result = self._category_agent.invoke({
            "messages": [HumanMessage(content=f'Categorize the task "{title}" into a Zone (self, work, home, social, other) and Energy Level (low, high).')]
        })
        structured: TaskCategory = result["structured_response"]
        return structured.zone, structured.energy

    def reflect(self, completed: list[str], pending: list[str]) -> str:
        prompt = (
            "Reflect on this user's garden of tasks today.\n"
            f"Finished: {', '.join(completed) or 'None yet'}\n"
            f"Still Growing: {', '.join(pending) or 'None'}\n"
            "Write a 3-sentence poetic reflection. Be extremely kind. Focus on the effort and the beauty "
            "of small progress. Avoid making them feel bad about what isn't done. Use garden metaphors."
        )
        return self._ask(prompt)

    def watering_tip(self, title: str) -> str:
        prompt = (
            f'The user is stuck on "{title}". Give them one tiny "watering tip", a specific, very easy way '
            "to start right now that takes less than 2 minutes. Be warm."
        )
        return self._ask(prompt)

    def suggest(self, pending: list[str]) -> str:
        if pending:
            prompt = (
                f"I have these tasks: {', '.join(pending)}. Give me one short sentence of warm encouragement "
                "and suggest which one I should do first to feel good."
            )
        else:
            prompt = "I have no tasks right now. Give me a very short, warm message about resting or finding something small to grow today."
        return self._ask(prompt, system=COMPANION_PERSONA + " Keep responses under 20 words.")

    def _ask(self, prompt: str, system: str | None = None) -> str:
        messages: list[Any] = []
        if system:
            messages.append(SystemMessage(content=system))
        messages.append(HumanMessage(content=prompt))
        reply = self._model.invoke(messages)
        return _message_text(reply.content)


def _message_text(content: Any) -> str:
    if isinstance(content, str):
        return content.strip()
    parts = [
        block.get("text", "") if isinstance(block, dict) else str(block)
        for block in content or []
    ]
    return "".join(parts).strip()
