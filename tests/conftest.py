from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from proficiency.openai_client import OpenAIClient


def make_rubric(
	skill_score: int = 20,
	complexity: int = 5,
	substantive: bool = True,
	longest: int = 5,
	response_rate: float = 100,
	average_length: float = 60,
	grammar_accuracy: float = 100,
	vocabulary_range: float = 100,
	overall: int = 42,
	cefr: str = "A2",
) -> Dict[str, Any]:
	skill = {"score": skill_score, "critical_issues": ["tone errors"], "examples": ["wo hen hao"]}
	return {
		"skills": {
			"pronunciation": dict(skill),
			"grammar": dict(skill),
			"vocabulary": dict(skill),
			"fluency": dict(skill),
			"listening_comprehension": dict(skill),
		},
		"conversation_depth": {
			"topics_discussed": ["travel", "work"],
			"complexity_achieved": complexity,
			"substantive_discussion": substantive,
			"longest_response_quality": longest,
		},
		"quantitative_measures": {
			"response_rate": response_rate,
			"average_response_length": average_length,
			"grammar_accuracy": grammar_accuracy,
			"vocabulary_range": vocabulary_range,
		},
		"final_scores": {
			"overall_score": overall,
			"cefr_level": cefr,
			"recommended_level": "Elementary",
		},
		"critical_feedback": {
			"major_weaknesses": ["limited range"],
			"required_improvements": ["use past tense"],
			"study_recommendations": ["shadowing practice"],
		},
	}


class FakeOpenAI:
	"""Records outbound requests and answers them like the OpenAI REST API."""

	def __init__(self) -> None:
		self.requests: List[httpx.Request] = []
		self.completion_content: Optional[str] = json.dumps(make_rubric())
		self.completion_status = 200
		self.session_status = 200
		self.session_body: Dict[str, Any] = {
			"id": "sess_123",
			"model": "gpt-4o-mini-realtime-preview",
			"client_secret": {"value": "ek_test", "expires_at": 1760000000},
		}

	def handler(self, request: httpx.Request) -> httpx.Response:
		self.requests.append(request)
		if request.url.path.endswith("/realtime/sessions"):
			if self.session_status != 200:
				return httpx.Response(self.session_status, json={"error": {"message": "boom"}})
			return httpx.Response(200, json=self.session_body)
		if request.url.path.endswith("/chat/completions"):
			if self.completion_status != 200:
				return httpx.Response(self.completion_status, json={"error": {"message": "boom"}})
			return httpx.Response(200, json={
				"choices": [{"index": 0, "message": {"role": "assistant", "content": self.completion_content}}],
			})
		return httpx.Response(404)

	def client(self) -> OpenAIClient:
		return OpenAIClient(
			api_key="test-key",
			base_url="https://api.test/v1",
			transport=httpx.MockTransport(self.handler),
		)

	def payload(self, index: int = -1) -> Dict[str, Any]:
		return json.loads(self.requests[index].content)


@pytest.fixture
def anyio_backend():
	return "asyncio"


@pytest.fixture
def fake_openai() -> FakeOpenAI:
	return FakeOpenAI()
