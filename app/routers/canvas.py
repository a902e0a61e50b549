"""
Canvas Router: thin HTTP layer
==============================
Canvas Kit endpoints for the Intercom inbox app (/initialize, /submit).
Delegates all business logic to CanvasService. The recommendation job is
handed to its own executor by a background task, after the response is sent.
"""

import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from app.dependencies import get_canvas_service
from app.services.canvas_service import CanvasReply, CanvasService
from app.services.recommendation_service import RecommendationJob
from app.services.signature_service import SIGNATURE_HEADER

logger = logging.getLogger(__name__)

router = APIRouter()


async def _read_body(request: Request) -> tuple[bytes, dict]:
    raw_body = await request.body()
    if not raw_body:
        return raw_body, {}
    try:
        body = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning("Invalid JSON body on %s: %s", request.url.path, e)
        return raw_body, {}
    return raw_body, body if isinstance(body, dict) else {}


async def _schedule(job: RecommendationJob) -> None:
    # Async so Starlette runs it on the event loop; it only queues the job
    job.submit()


def _respond(reply: CanvasReply, background_tasks: BackgroundTasks) -> JSONResponse:
    if reply.job is not None:
        background_tasks.add_task(_schedule, reply.job)
    return JSONResponse(content=reply.body, status_code=reply.status_code)


@router.post("/initialize")
async def initialize(request: Request, background_tasks: BackgroundTasks,
                     service: CanvasService = Depends(get_canvas_service)):
    """Called by Intercom when the app is opened inside a conversation."""
    raw_body, body = await _read_body(request)
    signature = request.headers.get(SIGNATURE_HEADER)
    reply = await run_in_threadpool(service.initialize, body, raw_body, signature)
    return _respond(reply, background_tasks)


@router.post("/submit")
async def submit(request: Request, background_tasks: BackgroundTasks,
                 service: CanvasService = Depends(get_canvas_service)):
    """Called by Intercom when the agent clicks a button in the Canvas."""
    _, body = await _read_body(request)
    reply = await run_in_threadpool(service.submit, body)
    return _respond(reply, background_tasks)
