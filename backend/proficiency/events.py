"""
Event Normalizer
================

Turns the raw realtime protocol events relayed from the browser into a clean,
chronological transcript of role-tagged turns.

The session keeps its event log most-recent-first (new events are prepended),
so every function here that needs conversation order reverses the list first.

Only three event kinds carry conversation text:
- completed transcription of the candidate's speech
- completed transcript of the assistant's spoken output
- manually created ``message`` conversation items (typed text)

Everything else (audio deltas, rate limits, session updates, ...) is ignored.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Literal, Union

from pydantic import BaseModel


ProtocolEvent = Dict[str, Any]

USER_TRANSCRIPT_EVENTS = frozenset({
	"conversation.item.input_audio_transcription.completed",
})
ASSISTANT_TRANSCRIPT_EVENTS = frozenset({
	"response.audio_transcript.done",
	"response.output_audio_transcript.done",
})
ITEM_CREATE_EVENT = "conversation.item.create"


class TranscriptTurn(BaseModel):
	role: Literal["user", "assistant"]
	text: str


# ============================================================================
# EVENT VARIANTS
# ============================================================================

@dataclass(frozen=True)
class UserTranscript:
	text: str


@dataclass(frozen=True)
class AssistantTranscript:
	text: str


@dataclass(frozen=True)
class MessageItem:
	role: str
	text: str


@dataclass(frozen=True)
class Ignored:
	event_type: str


TranscriptEvent = Union[UserTranscript, AssistantTranscript, MessageItem, Ignored]


def _message_text(content: Iterable[Any]) -> str:
	parts: List[str] = []
	for part in content:
		if not isinstance(part, dict):
			continue
		text = part.get("text") or part.get("transcript") or ""
		if isinstance(text, str) and text.strip():
			parts.append(text.strip())
	return " ".join(parts).strip()


def classify_event(event: ProtocolEvent) -> TranscriptEvent:
	"""Map one protocol event to the transcript variant it denotes (first match wins)."""
	event_type = str(event.get("type", "")) if isinstance(event, dict) else ""
	if event_type in USER_TRANSCRIPT_EVENTS:
		return UserTranscript(text=str(event.get("transcript") or "").strip())
	if event_type in ASSISTANT_TRANSCRIPT_EVENTS:
		return AssistantTranscript(text=str(event.get("transcript") or "").strip())
	if event_type == ITEM_CREATE_EVENT:
		item = event.get("item")
		if isinstance(item, dict) and item.get("type") == "message":
			content = item.get("content")
			if isinstance(content, list) and content:
				return MessageItem(role=str(item.get("role") or "assistant"), text=_message_text(content))
	return Ignored(event_type=event_type)


def _to_turn(variant: TranscriptEvent) -> TranscriptTurn | None:
	if isinstance(variant, Ignored) or not variant.text:
		return None
	if isinstance(variant, UserTranscript):
		return TranscriptTurn(role="user", text=variant.text)
	if isinstance(variant, AssistantTranscript):
		return TranscriptTurn(role="assistant", text=variant.text)
	# Typed messages keep their author; system/tool items read as the interviewer
	role = "user" if variant.role == "user" else "assistant"
	return TranscriptTurn(role=role, text=variant.text)


def build_transcript(events: List[ProtocolEvent]) -> List[TranscriptTurn]:
	"""Rebuild the conversation from an event log stored most-recent-first.

	Args:
		events: Full accumulated event log, newest event at index 0.

	Returns:
		Transcript turns in the order they happened. An empty log gives an
		empty transcript.
	"""
	turns: List[TranscriptTurn] = []
	for event in reversed(events):
		turn = _to_turn(classify_event(event))
		if turn is not None:
			turns.append(turn)
	return turns


def format_transcript(turns: Iterable[TranscriptTurn]) -> str:
	return "\n".join(f"[{turn.role.upper()}]: {turn.text}" for turn in turns)
