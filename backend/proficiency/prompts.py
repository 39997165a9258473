"""
Session Prompt Builder
======================

Instruction text for the realtime interviewer and the rubric prompt for the
final evaluation. The phase tags used here are the same values the evaluation
tool accepts (see ``tools.PHASES``), so observations can be matched to the
script the interviewer was given.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from .events import TranscriptTurn, format_transcript
from .tools import PHASES

BOOTSTRAP_LANGUAGE = "English"

TOOL_TRIGGERS: Dict[str, str] = {
	"every_turn": "after every candidate turn, before you reply",
	"session_end": "exactly once, at the end of the session, after the wrap-up",
}


@dataclass(frozen=True)
class PhaseSpec:
	name: str
	# Must be one of tools.PHASES
	tag: str
	# Fraction of the session this phase should take
	share: float
	goals: List[str] = field(default_factory=list)

	def __post_init__(self) -> None:
		if self.tag not in PHASES:
			raise ValueError(f"phase tag must be one of {', '.join(PHASES)}")
		if self.share <= 0:
			raise ValueError("phase share must be positive")


DEFAULT_PHASES: List[PhaseSpec] = [
	PhaseSpec(
		name="Greeting",
		tag="warmup",
		share=0.1,
		goals=[f"Greet the candidate in {BOOTSTRAP_LANGUAGE} and explain the session", "Confirm they are ready, then switch language"],
	),
	PhaseSpec(
		name="Warm-up",
		tag="basic",
		share=0.15,
		goals=["Name, hometown, daily routine", "Short, simple questions"],
	),
	PhaseSpec(
		name="Basics",
		tag="intermediate",
		share=0.25,
		goals=["Hobbies, work or studies, recent experiences", "Probe past and future tenses"],
	),
	PhaseSpec(
		name="Practice and abstract discussion",
		tag="advanced",
		share=0.4,
		goals=["Opinions, comparisons, hypotheticals", "Push for longer, connected answers"],
	),
	PhaseSpec(
		name="Wrap-up",
		tag="closing",
		share=0.1,
		goals=["Thank the candidate", "Close the conversation politely"],
	),
]


def _phase_minutes(phases: Sequence[PhaseSpec], duration_minutes: float) -> List[float]:
	total = sum(p.share for p in phases)
	return [round(duration_minutes * p.share / total, 1) for p in phases]


def build_instructions(
	language: str,
	duration_minutes: float,
	phases: Sequence[PhaseSpec] = DEFAULT_PHASES,
	*,
	tool_name: str = "record_language_observation",
	tool_trigger: str = "every_turn",
) -> str:
	"""Build the realtime interviewer instructions.

	The output depends only on the arguments, so the same configuration always
	produces the same session script.

	Args:
		language: Target language the candidate is evaluated in
		duration_minutes: Planned length of the whole session
		phases: Ordered interview phases
		tool_name: Name of the evaluation tool attached to the session
		tool_trigger: "every_turn" or "session_end"

	Returns:
		Instruction string for the realtime session
	"""
	if not phases:
		raise ValueError("at least one phase is required")
	if duration_minutes <= 0:
		raise ValueError("duration_minutes must be positive")
	if tool_trigger not in TOOL_TRIGGERS:
		raise ValueError(f"tool_trigger must be one of {', '.join(TOOL_TRIGGERS)}")

	lines: List[str] = []
	for index, (phase, minutes) in enumerate(zip(phases, _phase_minutes(phases, duration_minutes)), start=1):
		goals = "; ".join(phase.goals) if phase.goals else "Follow the candidate's lead"
		lines.append(f"{index}. {phase.name} [phase: {phase.tag}] (~{minutes:g} min): {goals}")
	phase_list = "\n".join(lines)

	return f"""
You are a friendly oral examiner evaluating a candidate's spoken {language}.
The session lasts about {duration_minutes:g} minutes.

Opening:
- Start speaking immediately, in {BOOTSTRAP_LANGUAGE}. Greet the candidate and explain in one or two sentences that this is a short {language} speaking evaluation.
- After that introduction, switch to {language} and stay in {language} for the rest of the session unless the candidate is completely lost.

Progress through these phases in order:
{phase_list}

Evaluation tool:
- Call the `{tool_name}` tool {TOOL_TRIGGERS[tool_trigger]}.
- Use the phase tag of the phase you are currently in, the elapsed minutes, the topics covered so far, and a 1-5 score with short notes and verbatim examples for pronunciation, grammar, vocabulary, fluency and listening comprehension.
- Never mention the tool or the scores to the candidate.

Style:
- Be concise. Ask one question at a time.
- Let the candidate speak most of the time; your turns should be short.
- Adapt difficulty to the candidate: simplify when they struggle, push for detail when they cope well.
""".strip()


EVALUATION_SYSTEM_PROMPT = """
You are an expert oral proficiency examiner. A candidate and an AI interviewer
had a spoken conversation in the candidate's target language. Evaluate ONLY
the candidate's (USER) language, never the interviewer's.

Be strict and evidence-based: quote the candidate's own words as examples, and
list concrete critical issues. Short or evasive answers limit the scores.

Scoring ranges:
- skills.*.score: integer 0-20 for pronunciation, grammar, vocabulary, fluency, listening_comprehension
- conversation_depth.complexity_achieved: integer 0-5
- conversation_depth.longest_response_quality: integer 0-5
- quantitative_measures.response_rate: 0-100 (% of interviewer questions answered)
- quantitative_measures.average_response_length: average words per candidate turn
- quantitative_measures.grammar_accuracy: 0-100 (% of grammatically correct sentences)
- quantitative_measures.vocabulary_range: 0-100
- final_scores.overall_score: 0-100
- final_scores.cefr_level: one of C2, C1, B2, B1, A2, A1, Below A1

Return JSON that strictly follows the provided schema.
""".strip()


def build_evaluation_messages(transcript: Sequence[TranscriptTurn], duration_seconds: float) -> List[Dict[str, str]]:
	minutes = max(0.0, duration_seconds) / 60
	user_turns = sum(1 for t in transcript if t.role == "user")
	header = f"Session length: {minutes:.1f} minutes. Candidate turns: {user_turns}."
	return [
		{"role": "system", "content": EVALUATION_SYSTEM_PROMPT},
		{"role": "user", "content": f"{header}\n\nConversation:\n{format_transcript(transcript)}"},
	]
