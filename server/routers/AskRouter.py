from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from server.dependencies.auth import verify_api_key
from server.models.requests import AskRequest
from services.answer.AnswerService import InvalidQueryError
from services.answer.RequestLimiter import RequestLimiter, RequestLimitExceededError
from services.answer.prompts import GENERIC_ERROR_ANSWER, RATE_LIMIT_ANSWER, REQUEST_LIMIT_ANSWER
from shared.clients.ClientErrors import RateLimitError
from shared.models.answer import AnswerResponse

router = APIRouter(prefix="/ask", tags=["ask"])


@router.post("", response_model=AnswerResponse)
async def ask(
    request: Request,
    body: AskRequest,
    _: None = Depends(verify_api_key),
):
    """Answer a resident's question from their condominium's documents.

    Every outcome carries a textual ``answer``: the grounded reply, the
    "not found" text, the validation message (400), a request-limit or
    provider rate-limit notice (429) or a generic apology (500). Stack
    traces never reach the user.

    Args:
        request (Request): FastAPI request (provides app.state.answer_service
            and app.state.request_limiter).
        body (AskRequest): JSON body with query, tenant_id and optional user_id / user_name.
        _ (None): Auth dependency result (unused).
    """
    answer_service = request.app.state.answer_service
    limiter: RequestLimiter = request.app.state.request_limiter
    logging = request.app.state.logging

    try:
        query = answer_service.validate_request(body.query, body.tenant_id)
    except InvalidQueryError as e:
        return _answer_response(400, f"Pergunta inválida: {e}")

    user_id = limiter.identify(body.user_id, body.user_name)
    try:
        await limiter.check_and_record(user_id, body.tenant_id, query)
    except RequestLimitExceededError as e:
        return _answer_response(429, REQUEST_LIMIT_ANSWER.format(limit=e.limit))

    try:
        return await answer_service.answer(query, body.tenant_id, body.user_name)
    except RateLimitError as e:
        logging.warning("Generation rate limited for tenant '%s': %s", body.tenant_id, e)
        return _answer_response(429, RATE_LIMIT_ANSWER)
    except InvalidQueryError as e:
        return _answer_response(400, f"Pergunta inválida: {e}")
    except Exception:
        logging.exception("Answering failed for tenant '%s'.", body.tenant_id)
        return _answer_response(500, GENERIC_ERROR_ANSWER)


def _answer_response(status_code: int, text: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=AnswerResponse(answer=text, sources=[], found=False).model_dump(),
    )
