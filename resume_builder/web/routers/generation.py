import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from redis.asyncio import Redis

from resume_builder.core.config import settings
from resume_builder.core.models.user import User
from resume_builder.core.rate_limit import enforce_rate_limit
from resume_builder.core.redis_client import get_redis
from resume_builder.core.security import require_user_api
from resume_builder.editor.validation import GenerateSummaryInput, GenerateWorkExperienceInput
from resume_builder.services.generation import generate_summary, generate_work_experience

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai")


async def _throttle(user: User, redis: Redis) -> None:
    await enforce_rate_limit(
        redis,
        f"rl:ai:{user.id}",
        settings.AI_RATE_LIMIT,
        settings.AI_RATE_WINDOW_SECONDS,
    )


def _invalid(exc: ValidationError) -> JSONResponse:
    errors = [{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]
    return JSONResponse({"errors": errors}, status_code=422)


@router.post("/summary")
async def ai_summary(payload: dict, user: User = Depends(require_user_api), redis: Redis = Depends(get_redis)):
    try:
        data = GenerateSummaryInput.model_validate(payload)
    except ValidationError as exc:
        return _invalid(exc)
    await _throttle(user, redis)
    summary = await generate_summary(data)
    return {"summary": summary}


@router.post("/work-experience")
async def ai_work_experience(payload: dict, user: User = Depends(require_user_api), redis: Redis = Depends(get_redis)):
    try:
        data = GenerateWorkExperienceInput.model_validate(payload)
    except ValidationError as exc:
        return _invalid(exc)
    await _throttle(user, redis)
    work_experience = await generate_work_experience(data)
    return {"work_experience": work_experience.model_dump()}
