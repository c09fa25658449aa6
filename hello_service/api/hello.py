from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse, PlainTextResponse

from hello_service.models.schemas import MessageResponse

router = APIRouter(tags=["hello"])

PLAIN_TEXT_GREETING = "Hello, World!"
JSON_GREETING = "Hello, JSON World!"


@router.get("/", response_class=PlainTextResponse)
async def hello() -> PlainTextResponse:
    return PlainTextResponse(PLAIN_TEXT_GREETING, status_code=200)


@router.get("/json", response_model=MessageResponse, response_class=JSONResponse)
async def hello_json() -> MessageResponse:
    return MessageResponse(message=JSON_GREETING)
