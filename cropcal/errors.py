"""Domain error taxonomy for the calendar engine.

Caller-facing errors subclass ``ValueError`` / ``LookupError`` so the routers'
``_map_error`` helpers keep mapping them the usual way (400 / 404); the more
specific classes refine the status code where it matters.
"""

from __future__ import annotations


class InvalidProfile(ValueError):
	"""Crop reference data is malformed. Fatal, never retried."""


class InvalidPlantingDate(ValueError):
	"""Planting date lies further in the past than the grace window allows."""


class InvalidObservation(ValueError):
	"""An observation cannot be applied to the calendar as reported."""


class CalendarClosed(ValueError):
	"""The calendar is completed or abandoned and its timeline is frozen."""


class NotFound(LookupError):
	"""Unknown calendar, crop profile or job."""


class EnvironmentalDataUnavailable(RuntimeError):
	"""Snapshot provider failed or timed out; callers degrade instead of failing."""


class RecalculationConflict(RuntimeError):
	"""Another worker holds the recalculation lease for this calendar."""

	def __init__(self, calendar_id: object) -> None:
		super().__init__(f"Recalculation already in progress for calendar {calendar_id}")
		self.calendar_id = calendar_id
