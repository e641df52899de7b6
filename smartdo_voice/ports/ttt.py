from typing import Protocol

from smartdo_voice.domain.models import EnergyLevel, Zone


class CompanionTextPort(Protocol):

	def breakdown(self, title: str) -> list[str]:
		...

	def categorize(self, title: str) -> tuple[Zone, EnergyLevel]:
		...

	def reflect(self, completed: list[str], pending: list[str]) -> str:
		...

	def watering_tip(self, title: str) -> str:
		...

	def suggest(self, pending: list[str]) -> str:
		...
