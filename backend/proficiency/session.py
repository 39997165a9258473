"""
Realtime session state
======================

A Session owns everything that belongs to one live interview: the append-only
protocol event log, the tool observation history and the outbound transport.
Sessions are created on start and disposed on stop through SessionRegistry;
nothing is shared between sessions.

Inbound events have one producer (the transport relay) and two independent
consumers that never touch each other's state:
- transcript accumulation, which keeps the live transcript
- tool-call extraction, which records observations and acknowledges calls
Each consumer reads from its own queue on the EventStream.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Protocol, Set

from .errors import TransportError
from .events import ProtocolEvent, TranscriptTurn, build_transcript, classify_event, Ignored
from .settings import settings
from .tools import ARGUMENTS_DONE_EVENT, EvaluationToolObservation, build_tool_ack, extract_tool_calls, find_call_ids

logger = logging.getLogger(__name__)


# ============================================================================
# TRANSPORT
# ============================================================================

class Transport(Protocol):
	@property
	def is_open(self) -> bool: ...

	def send(self, event: ProtocolEvent) -> None: ...


class OutboxTransport:
	"""Queues outbound events for the browser to forward over its data channel."""

	def __init__(self) -> None:
		self._open = True
		self._outbox: Deque[ProtocolEvent] = deque()

	@property
	def is_open(self) -> bool:
		return self._open

	def send(self, event: ProtocolEvent) -> None:
		if not self._open:
			raise TransportError("data channel is closed")
		self._outbox.append(event)

	def drain(self) -> List[ProtocolEvent]:
		events = list(self._outbox)
		self._outbox.clear()
		return events

	def close(self) -> None:
		self._open = False


class EventStream:
	"""Fan-out of inbound events: every subscriber gets its own queue."""

	def __init__(self) -> None:
		self._queues: List[asyncio.Queue] = []

	def subscribe(self) -> asyncio.Queue:
		queue: asyncio.Queue = asyncio.Queue()
		self._queues.append(queue)
		return queue

	def publish(self, event: ProtocolEvent) -> None:
		for queue in self._queues:
			queue.put_nowait(event)


def _drain_queue(queue: asyncio.Queue) -> List[ProtocolEvent]:
	items: List[ProtocolEvent] = []
	while True:
		try:
			items.append(queue.get_nowait())
		except asyncio.QueueEmpty:
			return items


# ============================================================================
# SESSION
# ============================================================================

class Session:
	def __init__(
		self,
		*,
		language: str,
		duration_minutes: float,
		tool_name: str,
		transport: Optional[Transport] = None,
	) -> None:
		self.session_id: str = uuid.uuid4().hex
		self.language = language
		self.duration_minutes = duration_minutes
		self.tool_name = tool_name
		self.transport: Transport = transport or OutboxTransport()
		self.started_at: float = time.monotonic()
		self.stopped_at: Optional[float] = None
		# Most-recent-first
		self.events: List[ProtocolEvent] = []
		self.observations: List[EvaluationToolObservation] = []
		self.live_transcript: List[TranscriptTurn] = []
		self._stream = EventStream()
		self._transcript_queue = self._stream.subscribe()
		self._tool_queue = self._stream.subscribe()
		self._acked_call_ids: Set[str] = set()

	@property
	def elapsed_seconds(self) -> float:
		end = self.stopped_at if self.stopped_at is not None else time.monotonic()
		return end - self.started_at

	def send_event(self, event: ProtocolEvent) -> bool:
		"""Send an event to the model; returns False when it was dropped."""
		if not self.transport.is_open:
			logger.warning("Session %s: channel closed, dropping %s", self.session_id, event.get("type"))
			return False
		outbound = dict(event)
		outbound["event_id"] = outbound.get("event_id") or uuid.uuid4().hex
		try:
			self.transport.send(outbound)
		except TransportError as err:
			logger.warning("Session %s: dropping %s: %s", self.session_id, outbound.get("type"), err)
			return False
		self.events.insert(0, outbound)
		self._stream.publish(outbound)
		return True

	def receive(self, event: ProtocolEvent) -> None:
		self.events.insert(0, event)
		self._stream.publish(event)

	def process_pending(self) -> int:
		"""Run both consumers over everything received so far.

		Returns:
			Number of new observations recorded
		"""
		for event in _drain_queue(self._transcript_queue):
			self._accumulate_transcript(event)
		recorded = 0
		for event in _drain_queue(self._tool_queue):
			recorded += self._handle_tool_calls(event)
		return recorded

	def _accumulate_transcript(self, event: ProtocolEvent) -> None:
		if isinstance(classify_event(event), Ignored):
			return
		# Events arrive in conversation order, so a one-event rebuild appends in place
		self.live_transcript.extend(build_transcript([event]))

	def _handle_tool_calls(self, event: ProtocolEvent) -> int:
		call_ids = find_call_ids(event, self.tool_name)
		valid = extract_tool_calls(event, self.tool_name)
		if not call_ids and not valid:
			return 0
		recorded = 0
		for call in valid:
			if call.call_id is None:
				self.observations.append(call.observation)
				recorded += 1
				logger.warning("Session %s: %s call has no call_id, ack skipped", self.session_id, self.tool_name)
				continue
			# The same call shows up in the arguments-done event and again in response.done
			if call.call_id in self._acked_call_ids:
				continue
			self._acked_call_ids.add(call.call_id)
			self.observations.append(call.observation)
			recorded += 1
			self.send_event(build_tool_ack(call.call_id, {"success": True}))
		for call_id in call_ids:
			if call_id in self._acked_call_ids:
				continue
			self._acked_call_ids.add(call_id)
			self.send_event(build_tool_ack(call_id, {"success": False, "error": "arguments did not match the tool schema"}))
		# response.create is rejected while a response is active; wait for the one carrying the calls to finish
		if event.get("type") != ARGUMENTS_DONE_EVENT:
			self.send_event({"type": "response.create"})
		return recorded

	def outbound(self) -> List[ProtocolEvent]:
		if isinstance(self.transport, OutboxTransport):
			return self.transport.drain()
		return []

	def transcript(self) -> List[TranscriptTurn]:
		return build_transcript(self.events)

	def stop(self) -> List[TranscriptTurn]:
		"""Close the channel and rebuild the final transcript from the full log."""
		if self.stopped_at is None:
			self.stopped_at = time.monotonic()
		close = getattr(self.transport, "close", None)
		if callable(close):
			close()
		return self.transcript()


class SessionRegistry:
	def __init__(self, ttl_seconds: Optional[float] = None) -> None:
		self._sessions: Dict[str, Session] = {}
		self.ttl_seconds = ttl_seconds

	def start(self, **kwargs: Any) -> Session:
		self.sweep_expired()
		session = Session(**kwargs)
		self._sessions[session.session_id] = session
		logger.info("Session %s started (%s, %s min)", session.session_id, session.language, session.duration_minutes)
		return session

	def sweep_expired(self) -> int:
		"""Stop and dispose sessions older than the TTL; returns how many went."""
		if self.ttl_seconds is None:
			return 0
		expired = [sid for sid, s in self._sessions.items() if s.elapsed_seconds > self.ttl_seconds]
		for session_id in expired:
			self._sessions[session_id].stop()
			self.dispose(session_id)
			logger.info("Session %s expired", session_id)
		return len(expired)

	def get(self, session_id: str) -> Optional[Session]:
		return self._sessions.get(session_id)

	def dispose(self, session_id: str) -> None:
		if self._sessions.pop(session_id, None) is not None:
			logger.info("Session %s disposed", session_id)

	def __len__(self) -> int:
		return len(self._sessions)


sessions = SessionRegistry(ttl_seconds=settings.session_ttl_seconds)
