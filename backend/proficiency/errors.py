from __future__ import annotations


class EvaluatorError(Exception):
	"""Base class for every error raised by the evaluation pipeline."""


class TransportError(EvaluatorError):
	"""The realtime data channel is not open."""


class MalformedToolCallError(EvaluatorError):
	"""A tool call carried arguments that are not valid JSON or do not match the observation schema."""

	def __init__(self, message: str, *, call_id: str | None = None) -> None:
		super().__init__(message)
		self.call_id = call_id


class EmptyTranscriptError(EvaluatorError):
	"""Raised before calling the remote model when there is nothing to evaluate."""


class UpstreamSchemaError(EvaluatorError):
	"""The remote model answered, but its output could not be parsed into the evaluation schema."""

	def __init__(self, message: str, *, raw_text: str | None = None) -> None:
		super().__init__(message)
		self.raw_text = raw_text


class UpstreamCallError(EvaluatorError):
	"""Network or HTTP failure while calling the remote model service."""

	def __init__(self, message: str, *, status_code: int | None = None) -> None:
		super().__init__(message)
		self.status_code = status_code
