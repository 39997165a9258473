"""
Tool-Call Extractor
===================

During a live interview the realtime model calls an evaluation tool to record
what it has observed so far. This module finds those calls inside protocol
events, validates their arguments against ``EvaluationToolObservation`` and
builds the acknowledgement event the model waits for before it carries on.

A malformed call never aborts the batch it arrived in: it is logged and
dropped, and the remaining calls are still returned.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from .errors import MalformedToolCallError
from .events import ProtocolEvent

logger = logging.getLogger(__name__)

PHASES: List[str] = ["warmup", "basic", "intermediate", "advanced", "closing"]
Phase = Literal["warmup", "basic", "intermediate", "advanced", "closing"]

FUNCTION_CALL_TYPES = frozenset({"function_call", "function"})
ARGUMENTS_DONE_EVENT = "response.function_call_arguments.done"


# ============================================================================
# OBSERVATION SCHEMA
# ============================================================================

class SkillObservation(BaseModel):
	score: int = Field(ge=1, le=5)
	notes: str
	examples: List[str] = Field(default_factory=list)


class ObservedSkills(BaseModel):
	pronunciation: SkillObservation
	grammar: SkillObservation
	vocabulary: SkillObservation
	fluency: SkillObservation
	listening_comprehension: Optional[SkillObservation] = None


class EvaluationToolObservation(BaseModel):
	"""One structured note the interviewer model records mid-session."""
	phase: Phase
	elapsed_time: float = Field(ge=0, description="Minutes since the session started")
	topics_covered: List[str] = Field(default_factory=list)
	skills: ObservedSkills


class ParsedCall(BaseModel):
	call_id: Optional[str] = None
	name: str
	observation: EvaluationToolObservation


def evaluation_tool_definition(tool_name: str) -> Dict[str, Any]:
	"""Realtime-session tool schema; mirrors EvaluationToolObservation."""
	skill = {
		"type": "object",
		"properties": {
			"score": {"type": "integer", "minimum": 1, "maximum": 5},
			"notes": {"type": "string"},
			"examples": {"type": "array", "items": {"type": "string"}},
		},
		"required": ["score", "notes", "examples"],
	}
	return {
		"type": "function",
		"name": tool_name,
		"description": "Record an observation of the candidate's spoken language proficiency for the current interview phase.",
		"parameters": {
			"type": "object",
			"properties": {
				"phase": {"type": "string", "enum": list(PHASES)},
				"elapsed_time": {"type": "number", "description": "Minutes elapsed since the session started"},
				"topics_covered": {"type": "array", "items": {"type": "string"}},
				"skills": {
					"type": "object",
					"properties": {
						"pronunciation": skill,
						"grammar": skill,
						"vocabulary": skill,
						"fluency": skill,
						"listening_comprehension": skill,
					},
					"required": ["pronunciation", "grammar", "vocabulary", "fluency"],
				},
			},
			"required": ["phase", "elapsed_time", "topics_covered", "skills"],
		},
	}


# ============================================================================
# EXTRACTION
# ============================================================================

def _candidates(event: ProtocolEvent) -> List[Dict[str, Any]]:
	found: List[Dict[str, Any]] = []
	response = event.get("response")
	if isinstance(response, dict) and isinstance(response.get("output"), list):
		found.extend(c for c in response["output"] if isinstance(c, dict))
	if isinstance(event.get("tool_calls"), list):
		found.extend(c for c in event["tool_calls"] if isinstance(c, dict))
	if event.get("type") == ARGUMENTS_DONE_EVENT:
		found.append(event)
	return found


def _call_name(candidate: Dict[str, Any]) -> Optional[str]:
	name = candidate.get("name")
	if name:
		return str(name)
	function = candidate.get("function")
	if isinstance(function, dict) and function.get("name"):
		return str(function["name"])
	return None


def _call_id(candidate: Dict[str, Any]) -> Optional[str]:
	# Ids echo back in the ack as strings whatever type the sender used
	call_id = candidate.get("call_id") or candidate.get("id")
	if call_id is None or call_id == "":
		return None
	return str(call_id)


def _call_arguments(candidate: Dict[str, Any]) -> Any:
	if "arguments" in candidate:
		return candidate["arguments"]
	function = candidate.get("function")
	if isinstance(function, dict):
		return function.get("arguments")
	return None


def _is_function_call(candidate: Dict[str, Any]) -> bool:
	return candidate.get("type") in FUNCTION_CALL_TYPES or candidate.get("type") == ARGUMENTS_DONE_EVENT


def parse_observation(arguments: Any, *, call_id: Optional[str] = None) -> EvaluationToolObservation:
	"""Parse a tool call's JSON arguments into a validated observation.

	Raises:
		MalformedToolCallError: arguments are not a JSON object or fail validation
	"""
	if isinstance(arguments, str):
		try:
			data = json.loads(arguments)
		except json.JSONDecodeError as err:
			raise MalformedToolCallError(f"arguments are not valid JSON: {err}", call_id=call_id) from err
	else:
		data = arguments
	if not isinstance(data, dict):
		raise MalformedToolCallError("arguments must be a JSON object", call_id=call_id)
	try:
		return EvaluationToolObservation.model_validate(data)
	except ValidationError as err:
		raise MalformedToolCallError(f"arguments do not match the observation schema: {err}", call_id=call_id) from err


def extract_tool_calls(event: ProtocolEvent, tool_name: str) -> List[ParsedCall]:
	"""Return every well-formed call to ``tool_name`` carried by one protocol event."""
	if not isinstance(event, dict):
		return []
	calls: List[ParsedCall] = []
	for candidate in _candidates(event):
		if not _is_function_call(candidate) or _call_name(candidate) != tool_name:
			continue
		call_id = _call_id(candidate)
		try:
			observation = parse_observation(_call_arguments(candidate), call_id=call_id)
		except MalformedToolCallError as err:
			logger.warning("Dropping malformed %s call %s: %s", tool_name, call_id, err)
			continue
		calls.append(ParsedCall(call_id=call_id, name=tool_name, observation=observation))
	return calls


def find_call_ids(event: ProtocolEvent, tool_name: str) -> List[str]:
	"""Ids of every call to ``tool_name`` in the event, well-formed or not."""
	if not isinstance(event, dict):
		return []
	ids: List[str] = []
	for candidate in _candidates(event):
		if not _is_function_call(candidate) or _call_name(candidate) != tool_name:
			continue
		call_id = _call_id(candidate)
		if call_id:
			ids.append(call_id)
	return ids


def build_tool_ack(call_id: str, output: Optional[Dict[str, Any]] = None) -> ProtocolEvent:
	"""Acknowledgement for a tool call; the model stalls its turn until it receives one."""
	return {
		"type": "conversation.item.create",
		"item": {
			"type": "function_call_output",
			"call_id": call_id,
			"output": json.dumps(output if output is not None else {"success": True}),
		},
	}
