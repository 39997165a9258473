"""
Server-held realtime sessions.

The browser keeps the WebRTC data channel; it relays every event it receives
to ``/sessions/{id}/events`` and forwards the returned ``outbound`` events
(tool acknowledgements, response requests) back over the channel.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..events import TranscriptTurn
from ..openai_client import OpenAIClient, get_client_factory
from ..session import Session, sessions
from ..settings import settings
from ..tools import EvaluationToolObservation
from .evaluation import run_final_evaluation
from .token import mint_realtime_session

router = APIRouter(prefix="/sessions", tags=["sessions"])


class StartRequest(BaseModel):
	language: Optional[str] = None
	duration_minutes: Optional[float] = Field(default=None, gt=0)


class StartResponse(BaseModel):
	session_id: str
	language: str
	duration_minutes: float
	client_secret: Dict[str, Any]
	model: Optional[str] = None
	outbound: List[Dict[str, Any]]


class EventsRequest(BaseModel):
	events: List[Dict[str, Any]]


class EventsResponse(BaseModel):
	outbound: List[Dict[str, Any]]
	observations_recorded: int
	observations_total: int


class TranscriptResponse(BaseModel):
	session_id: str
	turns: List[TranscriptTurn]
	observations: List[EvaluationToolObservation]


def _get_session(session_id: str) -> Session:
	session = sessions.get(session_id)
	if not session:
		raise HTTPException(status_code=404, detail="Session not found or expired")
	return session


@router.post("", response_model=StartResponse)
async def start(req: StartRequest, new_client: Callable[[], OpenAIClient] = Depends(get_client_factory)):
	"""Start a server-held interview session.

	Mints the realtime credentials first, so no session is registered when
	OpenAI refuses. The opening response.create is queued in ``outbound``.

	Args:
		req: Optional language and planned length in minutes
		new_client: OpenAI client factory

	Returns:
		Session id, ephemeral client secret and the first outbound events

	Raises:
		HTTPException: 400 for bad parameters, 502 when OpenAI fails
	"""
	language = (req.language or settings.default_language).strip() or settings.default_language
	duration_minutes = req.duration_minutes or settings.default_duration_minutes
	realtime = await mint_realtime_session(language, duration_minutes, new_client)

	session = sessions.start(
		language=language,
		duration_minutes=duration_minutes,
		tool_name=settings.evaluation_tool_name,
	)
	# The examiner opens the conversation without waiting for the candidate
	session.send_event({"type": "response.create", "response": {"modalities": ["text", "audio"]}})
	return StartResponse(
		session_id=session.session_id,
		language=language,
		duration_minutes=duration_minutes,
		client_secret=realtime["client_secret"],
		model=realtime.get("model"),
		outbound=session.outbound(),
	)


@router.post("/{session_id}/events", response_model=EventsResponse)
async def relay_events(session_id: str, req: EventsRequest):
	"""Feed relayed realtime events into a session.

	Args:
		session_id: Session to feed
		req: Events in the order the data channel delivered them

	Returns:
		Events the browser must send back over the channel, and observation counts

	Raises:
		HTTPException: 404 when the session is unknown or already stopped
	"""
	session = _get_session(session_id)
	for event in req.events:
		session.receive(event)
	recorded = session.process_pending()
	return EventsResponse(
		outbound=session.outbound(),
		observations_recorded=recorded,
		observations_total=len(session.observations),
	)


@router.get("/{session_id}/transcript", response_model=TranscriptResponse)
async def transcript(session_id: str):
	"""Return the live transcript and the observations recorded so far.

	Raises:
		HTTPException: 404 when the session is unknown or already stopped
	"""
	session = _get_session(session_id)
	session.process_pending()
	return TranscriptResponse(
		session_id=session.session_id,
		turns=session.live_transcript,
		observations=session.observations,
	)


@router.post("/{session_id}/stop")
async def stop(session_id: str, new_client: Callable[[], OpenAIClient] = Depends(get_client_factory)):
	"""Stop a session and evaluate its whole transcript.

	The session is disposed whether or not the evaluation succeeds.

	Args:
		session_id: Session to stop
		new_client: OpenAI client factory

	Returns:
		The same envelope as ``POST /finalEvaluation``

	Raises:
		HTTPException: 404 when unknown, 400 when nothing was said, 500 otherwise
	"""
	session = _get_session(session_id)
	try:
		turns = session.stop()
		return await run_final_evaluation(turns, session.elapsed_seconds, new_client)
	finally:
		sessions.dispose(session_id)
