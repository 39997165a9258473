"""
Scoring
=======

FinalEvaluation models, range clamping, the weighted overall score and the
CEFR threshold table.

Nothing the remote model returns is trusted as-is: numeric fields are parsed
without range constraints and then clamped, and the overall score and CEFR
band are always recomputed from the clamped sub-scores.
"""

from __future__ import annotations

import math
from typing import List, Optional, Tuple, TypeVar, Union

from pydantic import BaseModel, Field

SKILL_MAX = 20
DEPTH_MAX = 5
PERCENT_MAX = 100
OVERALL_MAX = 100
# Average words per answer that earns the full length credit
TARGET_RESPONSE_LENGTH = 50

SKILL_WEIGHT = 0.6
COMPLEXITY_WEIGHT = 2.0
SUBSTANTIVE_BONUS = 5.0
LONGEST_RESPONSE_WEIGHT = 1.0
QUANTITATIVE_POINTS = 5.0

# Highest threshold first; first match wins
CEFR_THRESHOLDS: List[Tuple[int, str]] = [
	(95, "C2"),
	(85, "C1"),
	(70, "B2"),
	(55, "B1"),
	(35, "A2"),
	(15, "A1"),
]
BELOW_A1 = "Below A1"
CEFR_LEVELS: List[str] = [level for _, level in CEFR_THRESHOLDS] + [BELOW_A1]

RECOMMENDED_LEVELS = {
	"C2": "Proficient",
	"C1": "Advanced",
	"B2": "Upper Intermediate",
	"B1": "Intermediate",
	"A2": "Elementary",
	"A1": "Beginner",
	BELOW_A1: "Beginner",
}

SKILL_NAMES: List[str] = ["pronunciation", "grammar", "vocabulary", "fluency", "listening_comprehension"]

Number = TypeVar("Number", int, float)


# ============================================================================
# MODELS
# ============================================================================

class SkillScore(BaseModel):
	score: int = 0
	critical_issues: List[str] = Field(default_factory=list)
	examples: List[str] = Field(default_factory=list)


class Skills(BaseModel):
	pronunciation: SkillScore = Field(default_factory=SkillScore)
	grammar: SkillScore = Field(default_factory=SkillScore)
	vocabulary: SkillScore = Field(default_factory=SkillScore)
	fluency: SkillScore = Field(default_factory=SkillScore)
	listening_comprehension: SkillScore = Field(default_factory=SkillScore)


class ConversationDepth(BaseModel):
	topics_discussed: List[str] = Field(default_factory=list)
	complexity_achieved: int = 0
	substantive_discussion: bool = False
	longest_response_quality: int = 0


class QuantitativeMeasures(BaseModel):
	response_rate: float = 0
	average_response_length: float = 0
	grammar_accuracy: float = 0
	vocabulary_range: float = 0


class FinalScores(BaseModel):
	overall_score: int = 0
	cefr_level: str = BELOW_A1
	recommended_level: str = RECOMMENDED_LEVELS[BELOW_A1]


class CriticalFeedback(BaseModel):
	major_weaknesses: List[str] = Field(default_factory=list)
	required_improvements: List[str] = Field(default_factory=list)
	study_recommendations: List[str] = Field(default_factory=list)


class FinalEvaluation(BaseModel):
	skills: Skills = Field(default_factory=Skills)
	conversation_depth: ConversationDepth = Field(default_factory=ConversationDepth)
	quantitative_measures: QuantitativeMeasures = Field(default_factory=QuantitativeMeasures)
	final_scores: FinalScores = Field(default_factory=FinalScores)
	critical_feedback: CriticalFeedback = Field(default_factory=CriticalFeedback)


# ============================================================================
# CLAMPING
# ============================================================================

def clamp_score(value: Number, maximum: Number) -> Number:
	return max(0, min(value, maximum))


def clamp_evaluation(evaluation: FinalEvaluation) -> FinalEvaluation:
	"""Return a copy with every bounded numeric field pulled into its declared range."""
	data = evaluation.model_copy(deep=True)
	for name in SKILL_NAMES:
		skill: SkillScore = getattr(data.skills, name)
		skill.score = clamp_score(skill.score, SKILL_MAX)
	depth = data.conversation_depth
	depth.complexity_achieved = clamp_score(depth.complexity_achieved, DEPTH_MAX)
	depth.longest_response_quality = clamp_score(depth.longest_response_quality, DEPTH_MAX)
	measures = data.quantitative_measures
	measures.response_rate = clamp_score(measures.response_rate, PERCENT_MAX)
	measures.grammar_accuracy = clamp_score(measures.grammar_accuracy, PERCENT_MAX)
	measures.vocabulary_range = clamp_score(measures.vocabulary_range, PERCENT_MAX)
	# Unbounded above, but a negative word count is meaningless
	measures.average_response_length = max(0, measures.average_response_length)
	data.final_scores.overall_score = clamp_score(data.final_scores.overall_score, OVERALL_MAX)
	return data


# ============================================================================
# OVERALL SCORE AND CEFR
# ============================================================================

def _round_half_up(value: float) -> int:
	# Round away float noise first so 97.49999999999999 still counts as 97.5
	return int(math.floor(round(value, 6) + 0.5))


def compute_overall_score(evaluation: FinalEvaluation) -> int:
	"""Weighted overall score out of 100.

	- skills: five 0-20 scores at 0.6 each (60 points)
	- conversation depth: complexity x2, substantive discussion 5, longest response x1 (20 points)
	- quantitative measures: four measures worth 5 points each (20 points)

	Inputs are clamped first, so out-of-range sub-scores cannot push the
	result past its bounds.
	"""
	e = clamp_evaluation(evaluation)
	skills = sum(getattr(e.skills, name).score for name in SKILL_NAMES) * SKILL_WEIGHT

	depth = e.conversation_depth
	depth_points = (
		depth.complexity_achieved * COMPLEXITY_WEIGHT
		+ (SUBSTANTIVE_BONUS if depth.substantive_discussion else 0.0)
		+ depth.longest_response_quality * LONGEST_RESPONSE_WEIGHT
	)

	m = e.quantitative_measures
	length_ratio = min(m.average_response_length, TARGET_RESPONSE_LENGTH) / TARGET_RESPONSE_LENGTH
	quantitative_points = QUANTITATIVE_POINTS * (
		m.response_rate / PERCENT_MAX
		+ length_ratio
		+ m.grammar_accuracy / PERCENT_MAX
		+ m.vocabulary_range / PERCENT_MAX
	)

	return clamp_score(_round_half_up(skills + depth_points + quantitative_points), OVERALL_MAX)


def cefr_for_score(score: Union[int, float]) -> str:
	for threshold, level in CEFR_THRESHOLDS:
		if score >= threshold:
			return level
	return BELOW_A1


def finalize_evaluation(evaluation: FinalEvaluation) -> FinalEvaluation:
	"""Clamp, then overwrite overall score, CEFR band and recommended level."""
	result = clamp_evaluation(evaluation)
	overall = compute_overall_score(result)
	level = cefr_for_score(overall)
	result.final_scores = FinalScores(
		overall_score=overall,
		cefr_level=level,
		recommended_level=RECOMMENDED_LEVELS[level],
	)
	return result


def fallback_evaluation(reason: Optional[str] = None) -> FinalEvaluation:
	"""Zero-valued evaluation with every field populated, for error paths."""
	return FinalEvaluation(
		critical_feedback=CriticalFeedback(major_weaknesses=[reason or "Unable to complete evaluation"]),
	)
