from __future__ import annotations
import logging
import httpx
from typing import Any, Callable, Dict, List, Optional
from .errors import UpstreamCallError, UpstreamSchemaError
from .settings import settings

logger = logging.getLogger(__name__)


class OpenAIClient:
	"""Thin async REST client for the two OpenAI calls the evaluator makes.

	Both calls are one-shot: no retries and no fallback provider. Transport
	and HTTP failures surface as UpstreamCallError, a reply whose body does
	not have the expected shape surfaces as UpstreamSchemaError.
	"""

	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.api_key = api_key or settings.openai_api_key
		if not self.api_key:
			raise ValueError("OPENAI_API_KEY is not configured")
		self.model = model or settings.evaluation_model
		self.base_url = (base_url or settings.openai_base_url).rstrip("/")
		self._headers = {
			"Authorization": f"Bearer {self.api_key}",
			"Content-Type": "application/json",
		}
		self._client = httpx.AsyncClient(timeout=settings.request_timeout_seconds, transport=transport)

	async def create_realtime_session(
		self,
		instructions: str,
		*,
		tools: Optional[List[Dict[str, Any]]] = None,
		voice: Optional[str] = None,
	) -> Dict[str, Any]:
		"""Mint an ephemeral realtime credential scoped to one interview."""
		payload: Dict[str, Any] = {
			"model": settings.realtime_model,
			"voice": voice or settings.realtime_voice,
			"instructions": instructions,
			"modalities": ["audio", "text"],
			"input_audio_transcription": {"model": settings.transcription_model},
		}
		if tools:
			payload["tools"] = tools
			payload["tool_choice"] = "auto"
		r = await self._post("/realtime/sessions", payload)
		try:
			data = r.json()
		except ValueError as err:
			raise UpstreamSchemaError("Realtime session response is not JSON", raw_text=r.text) from err
		if not isinstance(data, dict) or not isinstance(data.get("client_secret"), dict):
			raise UpstreamSchemaError("Realtime session response has no client_secret", raw_text=r.text)
		return data

	async def complete_json(
		self,
		messages: List[Dict[str, str]],
		*,
		schema: Dict[str, Any],
		schema_name: str,
		temperature: Optional[float] = None,
		max_tokens: Optional[int] = None,
	) -> str:
		"""Run one chat completion constrained to a strict JSON schema and return the raw text."""
		payload: Dict[str, Any] = {
			"model": self.model,
			"messages": messages,
			"temperature": settings.evaluation_temperature if temperature is None else temperature,
			"max_tokens": max_tokens or settings.evaluation_max_tokens,
			"response_format": {
				"type": "json_schema",
				"json_schema": {"name": schema_name, "strict": True, "schema": schema},
			},
		}
		r = await self._post("/chat/completions", payload)
		try:
			message = r.json()["choices"][0]["message"]
		except (ValueError, KeyError, IndexError, TypeError) as err:
			raise UpstreamSchemaError(f"Unexpected chat completion response: {r.text[:500]}", raw_text=r.text) from err
		if message.get("refusal"):
			raise UpstreamSchemaError(f"Model refused to evaluate: {message['refusal']}")
		content = message.get("content")
		if not isinstance(content, str) or not content.strip():
			raise UpstreamSchemaError("Model returned an empty evaluation", raw_text=r.text)
		return content

	async def _post(self, path: str, payload: Dict[str, Any]) -> httpx.Response:
		url = f"{self.base_url}{path}"
		try:
			r = await self._client.post(url, headers=self._headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			logger.error("OpenAI %s returned HTTP %s: %s", path, http_err.response.status_code, http_err.response.text[:500])
			raise UpstreamCallError(
				f"OpenAI {path} failed with HTTP {http_err.response.status_code}",
				status_code=http_err.response.status_code,
			) from http_err
		except httpx.RequestError as net_err:
			logger.error("OpenAI %s request failed: %s", path, net_err)
			raise UpstreamCallError(f"OpenAI {path} request failed: {net_err}") from net_err
		return r

	async def aclose(self) -> None:
		await self._client.aclose()


def get_client_factory() -> Callable[[], OpenAIClient]:
	"""FastAPI dependency; routes build the client lazily so request validation runs first."""
	return OpenAIClient
