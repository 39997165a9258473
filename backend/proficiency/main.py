import logging

import uvicorn
from fastapi import FastAPI

from .settings import settings
from .routers import health
from .routers import token
from .routers import evaluation
from .routers import sessions

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
# httpx logs every request at INFO, including the URL
logging.getLogger("httpx").setLevel(logging.WARNING)

app = FastAPI(title="Oral Proficiency Evaluator API")
app.include_router(health.router)
app.include_router(token.router)
app.include_router(evaluation.router)
app.include_router(sessions.router)


@app.get("/info")
def root():
	return {
		"status": "ok",
		"openai_configured": bool(settings.openai_api_key),
		"realtime_model": settings.realtime_model,
		"evaluation_model": settings.evaluation_model,
	}


def run():
	uvicorn.run("proficiency.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())
