from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..aggregator import aggregate
from ..errors import EmptyTranscriptError, UpstreamCallError, UpstreamSchemaError
from ..events import TranscriptTurn
from ..openai_client import OpenAIClient, get_client_factory
from ..scoring import fallback_evaluation

logger = logging.getLogger(__name__)

router = APIRouter(tags=["evaluation"])


class FinalEvaluationRequest(BaseModel):
	conversation: Optional[List[TranscriptTurn]] = None
	# Session length in milliseconds, as measured by the browser
	duration: float = Field(default=0, ge=0)


async def run_final_evaluation(
	transcript: Sequence[TranscriptTurn],
	duration_seconds: float,
	new_client: Callable[[], OpenAIClient],
) -> Dict[str, Any]:
	"""Evaluate a transcript and wrap the result in the response envelope.

	Upstream failures return ``success: false`` with a zero-valued evaluation,
	so the caller always has a renderable shape.

	Raises:
		HTTPException: 400 for an empty transcript, 500 for anything unexpected
	"""
	if not transcript:
		raise HTTPException(status_code=400, detail="Missing conversation in request body")
	client = None
	try:
		client = new_client()
		evaluation = await aggregate(transcript, duration_seconds, client=client)
	except EmptyTranscriptError as e:
		raise HTTPException(status_code=400, detail=str(e))
	except (UpstreamCallError, UpstreamSchemaError) as e:
		logger.error("Final evaluation failed: %s", e)
		return {
			"success": False,
			"error": str(e),
			"evaluation": fallback_evaluation().model_dump(),
		}
	except Exception as e:
		logger.exception("Unexpected failure during final evaluation")
		raise HTTPException(status_code=500, detail=str(e))
	finally:
		if client is not None:
			await client.aclose()
	return {"success": True, "evaluation": evaluation.model_dump()}


@router.post("/finalEvaluation")
async def final_evaluation(req: FinalEvaluationRequest, new_client: Callable[[], OpenAIClient] = Depends(get_client_factory)):
	"""Evaluate a transcript the browser collected itself.

	Args:
		req: Chronological conversation and its duration in milliseconds
		new_client: OpenAI client factory

	Returns:
		``{"success": true, "evaluation": ...}``, or ``success: false`` with a
		zero-valued evaluation and the error when OpenAI fails

	Raises:
		HTTPException: 400 for a missing conversation, 500 otherwise
	"""
	return await run_final_evaluation(req.conversation or [], req.duration / 1000.0, new_client)
