from dataclasses import dataclass

from smartdo_voice.core.logger import get_logger
from smartdo_voice.domain.models import EnergyLevel, Zone
from smartdo_voice.ports.ttt import CompanionTextPort

logger = get_logger("services.companion")

REFLECTION_FALLBACK = "Your garden is beautiful just as it is. Every seed has its own time to bloom."
TIP_FALLBACK = "Just take one deep breath and set a timer for 2 minutes."
SUGGESTION_FALLBACK = "Take a deep breath. You've got this."
EMPTY_SUGGESTION_FALLBACK = "You're doing great. Just start small."


@dataclass(slots=True)
class CompanionService:
	"""Encouragement copy for the UI. Never fails: model errors fall back to canned text."""

	adapter: CompanionTextPort

	def breakdown(self, title: str) -> list[str]:
		try:
			return [step.strip() for step in self.adapter.breakdown(title) if step.strip()]
		except Exception:
			logger.exception("Task breakdown failed for %r", title)
			return []

	def categorize(self, title: str) -> tuple[Zone, EnergyLevel]:
		try:
			return self.adapter.categorize(title)
		except Exception:
			logger.exception("Task categorization failed for %r", title)
			return "other", "low"

	def reflect(self, completed: list[str], pending: list[str]) -> str:
		try:
			return self.adapter.reflect(completed, pending) or REFLECTION_FALLBACK
		except Exception:
			logger.exception("Daily reflection failed")
			return REFLECTION_FALLBACK

	def watering_tip(self, title: str) -> str:
		try:
			return self.adapter.watering_tip(title) or TIP_FALLBACK
		except Exception:
			logger.exception("Watering tip failed for %r", title)
			return TIP_FALLBACK

	def suggest(self, pending: list[str]) -> str:
		try:
			return self.adapter.suggest(pending) or EMPTY_SUGGESTION_FALLBACK
		except Exception:
			logger.exception("Suggestion failed")
			return SUGGESTION_FALLBACK
