from proficiency.events import (
	AssistantTranscript,
	Ignored,
	MessageItem,
	TranscriptTurn,
	UserTranscript,
	build_transcript,
	classify_event,
	format_transcript,
)


def user_done(text):
	return {"type": "conversation.item.input_audio_transcription.completed", "item_id": "item_u", "transcript": text}


def assistant_done(text):
	return {"type": "response.audio_transcript.done", "response_id": "resp_1", "transcript": text}


def typed_message(text, role="user"):
	return {
		"type": "conversation.item.create",
		"item": {"type": "message", "role": role, "content": [{"type": "input_text", "text": text}]},
	}


def chronological_events():
	return [
		{"type": "session.created", "session": {"id": "sess_1"}},
		assistant_done("Hello! Let's begin. ¿Cómo te llamas?"),
		{"type": "response.audio.delta", "delta": "AAAA"},
		user_done("  Me llamo Ana.  "),
		typed_message("Vivo en Madrid."),
		{"type": "rate_limits.updated", "rate_limits": []},
		assistant_done("¡Qué bien!"),
	]


def test_empty_event_list_gives_empty_transcript():
	assert build_transcript([]) == []


def test_user_transcription_is_trimmed():
	turns = build_transcript([user_done("  hola  ")])
	assert turns == [TranscriptTurn(role="user", text="hola")]


def test_most_recent_first_log_comes_out_in_conversation_order():
	log = list(reversed(chronological_events()))
	turns = build_transcript(log)
	assert [(t.role, t.text) for t in turns] == [
		("assistant", "Hello! Let's begin. ¿Cómo te llamas?"),
		("user", "Me llamo Ana."),
		("user", "Vivo en Madrid."),
		("assistant", "¡Qué bien!"),
	]


def test_reversing_the_log_reverses_the_transcript():
	log = list(reversed(chronological_events()))
	forward = build_transcript(log)
	backward = build_transcript(list(reversed(log)))
	assert backward == list(reversed(forward))


def test_message_item_defaults_to_assistant_and_joins_content():
	event = {
		"type": "conversation.item.create",
		"item": {
			"type": "message",
			"content": [{"type": "text", "text": "Primera parte."}, {"type": "text", "text": ""}, {"type": "text", "text": " Segunda."}],
		},
	}
	assert build_transcript([event]) == [TranscriptTurn(role="assistant", text="Primera parte. Segunda.")]


def test_whitespace_only_items_are_skipped():
	events = [typed_message("   "), user_done("   "), assistant_done("")]
	assert build_transcript(events) == []


def test_system_messages_read_as_assistant():
	assert build_transcript([typed_message("Be brief.", role="system")])[0].role == "assistant"


def test_classify_event_variants():
	assert isinstance(classify_event(user_done("a")), UserTranscript)
	assert isinstance(classify_event({"type": "response.output_audio_transcript.done", "transcript": "b"}), AssistantTranscript)
	assert isinstance(classify_event(typed_message("c")), MessageItem)
	assert classify_event({"type": "response.audio.delta"}) == Ignored(event_type="response.audio.delta")


def test_non_message_items_are_ignored():
	event = {"type": "conversation.item.create", "item": {"type": "function_call_output", "call_id": "c1", "output": "{}"}}
	assert isinstance(classify_event(event), Ignored)
	empty_content = {"type": "conversation.item.create", "item": {"type": "message", "role": "user", "content": []}}
	assert isinstance(classify_event(empty_content), Ignored)


def test_format_transcript_tags_roles():
	turns = [TranscriptTurn(role="assistant", text="Hola"), TranscriptTurn(role="user", text="Hola")]
	assert format_transcript(turns) == "[ASSISTANT]: Hola\n[USER]: Hola"
