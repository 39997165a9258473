from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..errors import UpstreamCallError, UpstreamSchemaError
from ..openai_client import OpenAIClient, get_client_factory
from ..prompts import DEFAULT_PHASES, build_instructions
from ..settings import settings
from ..tools import evaluation_tool_definition

logger = logging.getLogger(__name__)

router = APIRouter(tags=["token"])


async def mint_realtime_session(
	language: str,
	duration_minutes: float,
	new_client: Callable[[], OpenAIClient],
) -> Dict[str, Any]:
	"""Create an ephemeral realtime session carrying the interview script and evaluation tool.

	Raises:
		HTTPException: 400 for bad parameters, 502 when OpenAI fails, 500 otherwise
	"""
	try:
		instructions = build_instructions(
			language,
			duration_minutes,
			DEFAULT_PHASES,
			tool_name=settings.evaluation_tool_name,
			tool_trigger=settings.evaluation_tool_trigger,
		)
	except ValueError as e:
		raise HTTPException(status_code=400, detail=str(e))
	client = None
	try:
		client = new_client()
		return await client.create_realtime_session(
			instructions,
			tools=[evaluation_tool_definition(settings.evaluation_tool_name)],
		)
	except (UpstreamCallError, UpstreamSchemaError) as e:
		raise HTTPException(status_code=502, detail=str(e))
	except Exception as e:
		logger.exception("Failed to mint realtime session")
		raise HTTPException(status_code=500, detail=str(e))
	finally:
		if client is not None:
			await client.aclose()


@router.get("/token")
async def token(
	language: Optional[str] = None,
	duration: Optional[float] = Query(default=None, gt=0, description="Planned session length in minutes"),
	new_client: Callable[[], OpenAIClient] = Depends(get_client_factory),
):
	"""Mint an ephemeral realtime session for the browser's WebRTC connection.

	Args:
		language: Target language, defaults to DEFAULT_LANGUAGE
		duration: Planned length in minutes, defaults to DEFAULT_DURATION_MINUTES
		new_client: OpenAI client factory

	Returns:
		OpenAI's session object, including ``client_secret``

	Raises:
		HTTPException: 400 for bad parameters, 502 when OpenAI fails, 500 otherwise
	"""
	return await mint_realtime_session(
		(language or settings.default_language).strip() or settings.default_language,
		duration or settings.default_duration_minutes,
		new_client,
	)
