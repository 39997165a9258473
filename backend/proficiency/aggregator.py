"""
Final Evaluation Aggregator
===========================

Asks the remote model once for a strict-schema rubric of the whole
conversation, then turns it into a trusted FinalEvaluation: every bounded
field clamped, the overall score recomputed from the sub-scores and the CEFR
band re-derived from that score.

Errors:
- EmptyTranscriptError: nothing to evaluate, raised before any network call
- UpstreamCallError: the model call itself failed (no retry)
- UpstreamSchemaError: the model answered with something that is not the rubric
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, ValidationError

from .errors import EmptyTranscriptError, UpstreamSchemaError
from .events import TranscriptTurn
from .openai_client import OpenAIClient
from .prompts import build_evaluation_messages
from .scoring import CEFR_LEVELS, SKILL_NAMES, FinalEvaluation, finalize_evaluation

logger = logging.getLogger(__name__)


# ============================================================================
# REMOTE RUBRIC
# ============================================================================

# Every field required, nothing extra: a partial rubric is an upstream failure,
# not a low score. The defaulted scoring models only back the fallback.

class _Strict(BaseModel):
	model_config = ConfigDict(extra="forbid")


class _RubricSkill(_Strict):
	score: int
	critical_issues: List[str]
	examples: List[str]


class _RubricSkills(_Strict):
	pronunciation: _RubricSkill
	grammar: _RubricSkill
	vocabulary: _RubricSkill
	fluency: _RubricSkill
	listening_comprehension: _RubricSkill


class _RubricDepth(_Strict):
	topics_discussed: List[str]
	complexity_achieved: int
	substantive_discussion: bool
	longest_response_quality: int


class _RubricMeasures(_Strict):
	response_rate: float
	average_response_length: float
	grammar_accuracy: float
	vocabulary_range: float


class _RubricFinalScores(_Strict):
	overall_score: int
	cefr_level: str
	recommended_level: str


class _RubricFeedback(_Strict):
	major_weaknesses: List[str]
	required_improvements: List[str]
	study_recommendations: List[str]


class _Rubric(_Strict):
	skills: _RubricSkills
	conversation_depth: _RubricDepth
	quantitative_measures: _RubricMeasures
	final_scores: _RubricFinalScores
	critical_feedback: _RubricFeedback


SCHEMA_NAME = "final_language_evaluation"


def _strict_object(properties: Dict[str, Any]) -> Dict[str, Any]:
	return {
		"type": "object",
		"properties": properties,
		"required": list(properties),
		"additionalProperties": False,
	}


_STRING_LIST = {"type": "array", "items": {"type": "string"}}

_SKILL_SCHEMA = _strict_object({
	"score": {"type": "integer"},
	"critical_issues": _STRING_LIST,
	"examples": _STRING_LIST,
})

FINAL_EVALUATION_SCHEMA: Dict[str, Any] = _strict_object({
	"skills": _strict_object({name: _SKILL_SCHEMA for name in SKILL_NAMES}),
	"conversation_depth": _strict_object({
		"topics_discussed": _STRING_LIST,
		"complexity_achieved": {"type": "integer"},
		"substantive_discussion": {"type": "boolean"},
		"longest_response_quality": {"type": "integer"},
	}),
	"quantitative_measures": _strict_object({
		"response_rate": {"type": "number"},
		"average_response_length": {"type": "number"},
		"grammar_accuracy": {"type": "number"},
		"vocabulary_range": {"type": "number"},
	}),
	"final_scores": _strict_object({
		"overall_score": {"type": "integer"},
		"cefr_level": {"type": "string", "enum": list(CEFR_LEVELS)},
		"recommended_level": {"type": "string"},
	}),
	"critical_feedback": _strict_object({
		"major_weaknesses": _STRING_LIST,
		"required_improvements": _STRING_LIST,
		"study_recommendations": _STRING_LIST,
	}),
})

REQUIRED_SECTIONS: List[str] = list(FINAL_EVALUATION_SCHEMA["properties"])


def _extract_json_block(text: str) -> Dict[str, Any]:
	"""Parse the model output as JSON, falling back to the first {...} block in it."""
	try:
		return json.loads(text)
	except json.JSONDecodeError:
		pass
	match = re.search(r"\{[\s\S]*\}", text)
	if match:
		try:
			return json.loads(match.group(0))
		except json.JSONDecodeError:
			pass
	raise UpstreamSchemaError("Model output is not valid JSON", raw_text=text)


def parse_evaluation(raw: str) -> FinalEvaluation:
	"""Parse raw model output into an (unclamped) FinalEvaluation.

	Raises:
		UpstreamSchemaError: output is not JSON, misses a section or field, or has wrongly typed fields
	"""
	data = _extract_json_block(raw)
	if not isinstance(data, dict):
		raise UpstreamSchemaError("Model output is not a JSON object", raw_text=raw)
	missing = [section for section in REQUIRED_SECTIONS if not isinstance(data.get(section), dict)]
	if missing:
		raise UpstreamSchemaError(f"Model output is missing sections: {', '.join(missing)}", raw_text=raw)
	try:
		rubric = _Rubric.model_validate(data)
	except ValidationError as err:
		raise UpstreamSchemaError(f"Model output does not match the evaluation schema: {err}", raw_text=raw) from err
	return FinalEvaluation.model_validate(rubric.model_dump())


async def aggregate(
	transcript: Sequence[TranscriptTurn],
	duration_seconds: float,
	*,
	client: Optional[OpenAIClient] = None,
) -> FinalEvaluation:
	"""Produce the final evaluation for one completed session.

	Args:
		transcript: Chronological transcript of the whole session
		duration_seconds: Session length
		client: Model client to use; a fresh one is created and closed otherwise

	Returns:
		Clamped FinalEvaluation with a recomputed overall score and CEFR band
	"""
	if not transcript:
		raise EmptyTranscriptError("Cannot evaluate an empty conversation")

	messages = build_evaluation_messages(transcript, duration_seconds)
	own_client = client is None
	if own_client:
		client = OpenAIClient()
	try:
		raw = await client.complete_json(messages, schema=FINAL_EVALUATION_SCHEMA, schema_name=SCHEMA_NAME)
	finally:
		if own_client:
			await client.aclose()

	evaluation = finalize_evaluation(parse_evaluation(raw))
	logger.info(
		"Evaluated %d turns: overall=%d cefr=%s",
		len(transcript),
		evaluation.final_scores.overall_score,
		evaluation.final_scores.cefr_level,
	)
	return evaluation
