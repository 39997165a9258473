import json
import time

from proficiency.session import EventStream, OutboxTransport, Session, SessionRegistry

TOOL = "record_language_observation"


def observation_args():
	skill = {"score": 4, "notes": "clear", "examples": ["je voudrais un café"]}
	return json.dumps({
		"phase": "intermediate",
		"elapsed_time": 4,
		"topics_covered": ["food"],
		"skills": {"pronunciation": skill, "grammar": skill, "vocabulary": skill, "fluency": skill, "listening_comprehension": skill},
	})


def new_session(**kwargs):
	return Session(language="French", duration_minutes=10, tool_name=TOOL, **kwargs)


def test_send_event_tags_id_and_prepends():
	session = new_session()
	assert session.send_event({"type": "response.create"})
	assert session.send_event({"type": "input_audio_buffer.clear", "event_id": "mine"})
	assert session.events[0]["event_id"] == "mine"
	assert session.events[1]["type"] == "response.create"
	assert session.events[1]["event_id"]
	assert [e["type"] for e in session.outbound()] == ["response.create", "input_audio_buffer.clear"]
	assert session.outbound() == []


def test_sends_on_a_closed_channel_are_dropped(caplog):
	transport = OutboxTransport()
	transport.close()
	session = new_session(transport=transport)
	assert session.send_event({"type": "response.create"}) is False
	assert session.events == []
	assert "dropping" in caplog.text


def test_tool_call_is_recorded_and_acknowledged():
	session = new_session()
	session.receive({
		"type": "response.function_call_arguments.done",
		"name": TOOL,
		"call_id": "call_1",
		"arguments": observation_args(),
	})
	assert session.process_pending() == 1
	assert session.observations[0].phase == "intermediate"
	outbound = session.outbound()
	assert outbound[0]["item"]["type"] == "function_call_output"
	assert outbound[0]["item"]["call_id"] == "call_1"
	# The response carrying the call is still active
	assert [e["type"] for e in outbound] == ["conversation.item.create"]


def test_response_create_waits_for_response_done():
	session = new_session()
	call = {"type": "function_call", "name": TOOL, "call_id": "call_1", "arguments": observation_args()}
	session.receive({"type": "response.function_call_arguments.done", "name": TOOL, "call_id": "call_1", "arguments": observation_args()})
	session.process_pending()
	assert [e["type"] for e in session.outbound()] == ["conversation.item.create"]

	session.receive({"type": "response.done", "response": {"output": [call]}})
	assert session.process_pending() == 0
	assert [e["type"] for e in session.outbound()] == ["response.create"]
	assert len(session.observations) == 1


def test_response_done_without_calls_sends_nothing():
	session = new_session()
	session.receive({"type": "response.done", "response": {"output": [{"type": "message", "role": "assistant", "content": []}]}})
	session.process_pending()
	assert session.outbound() == []


def test_call_without_id_is_recorded_but_not_acknowledged(caplog):
	session = new_session()
	session.receive({"type": "response.done", "response": {"output": [
		{"type": "function_call", "name": TOOL, "arguments": observation_args()},
	]}})
	assert session.process_pending() == 1
	assert session.observations[0].phase == "intermediate"
	assert [e["type"] for e in session.outbound()] == ["response.create"]
	assert "ack skipped" in caplog.text


def test_repeated_call_in_response_done_is_not_recorded_twice():
	session = new_session()
	call = {"type": "function_call", "name": TOOL, "call_id": "call_1", "arguments": observation_args()}
	session.receive({"type": "response.function_call_arguments.done", "name": TOOL, "call_id": "call_1", "arguments": observation_args()})
	session.receive({"type": "response.done", "response": {"output": [call]}})
	assert session.process_pending() == 1
	assert len(session.observations) == 1
	acks = [e for e in session.outbound() if e["type"] == "conversation.item.create"]
	assert len(acks) == 1


def test_malformed_call_is_still_acknowledged():
	session = new_session()
	session.receive({"type": "response.done", "response": {"output": [
		{"type": "function_call", "name": TOOL, "call_id": "call_bad", "arguments": "{oops"},
	]}})
	assert session.process_pending() == 0
	assert session.observations == []
	ack = session.outbound()[0]
	assert ack["item"]["call_id"] == "call_bad"
	assert json.loads(ack["item"]["output"])["success"] is False


def test_live_and_final_transcripts_agree():
	session = new_session()
	session.receive({"type": "response.audio_transcript.done", "transcript": "Bonjour !"})
	session.send_event({
		"type": "conversation.item.create",
		"item": {"type": "message", "role": "user", "content": [{"type": "input_text", "text": "Salut"}]},
	})
	session.receive({"type": "conversation.item.input_audio_transcription.completed", "transcript": " Ça va bien. "})
	session.process_pending()
	assert [(t.role, t.text) for t in session.live_transcript] == [
		("assistant", "Bonjour !"),
		("user", "Salut"),
		("user", "Ça va bien."),
	]
	assert session.stop() == session.live_transcript
	assert session.transport.is_open is False
	assert session.send_event({"type": "response.create"}) is False


def test_event_stream_fans_out_to_every_subscriber():
	stream = EventStream()
	first, second = stream.subscribe(), stream.subscribe()
	stream.publish({"type": "a"})
	assert first.get_nowait() == {"type": "a"}
	assert second.get_nowait() == {"type": "a"}


def test_registry_start_and_dispose():
	registry = SessionRegistry()
	session = registry.start(language="Spanish", duration_minutes=5, tool_name=TOOL)
	assert registry.get(session.session_id) is session
	registry.dispose(session.session_id)
	assert registry.get(session.session_id) is None
	assert len(registry) == 0


def test_abandoned_sessions_expire_on_next_start():
	registry = SessionRegistry(ttl_seconds=60)
	abandoned = registry.start(language="Spanish", duration_minutes=5, tool_name=TOOL)
	abandoned.started_at = time.monotonic() - 120
	fresh = registry.start(language="Spanish", duration_minutes=5, tool_name=TOOL)
	assert registry.get(abandoned.session_id) is None
	assert abandoned.transport.is_open is False
	assert registry.get(fresh.session_id) is fresh
	assert len(registry) == 1


def test_registry_without_ttl_keeps_sessions():
	registry = SessionRegistry()
	old = registry.start(language="Spanish", duration_minutes=5, tool_name=TOOL)
	old.started_at = time.monotonic() - 10 ** 6
	assert registry.sweep_expired() == 0
	assert registry.get(old.session_id) is old
