import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from openai import OpenAIError
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..schemas.free_tools import (
    CompetitorFinderRequest,
    EmailSubjectScorerRequest,
    FreeToolCreated,
    FreeToolGuardFields,
    FreeToolResultOut,
    FreeToolsOut,
    HeadlineAnalyzerRequest,
    MarketingAuditRequest,
    TargetAudienceRequest,
)
from ..services.free_tools import (
    FreeTool,
    FreeToolDuplicate,
    FreeToolInputError,
    FreeToolOutputError,
    create_free_tool_result,
    get_free_tool_result,
    get_tool,
    tool_types,
)
from ..services.guards import guard_free_tool
from ..services.validation import is_disposable_email, is_valid_email

router = APIRouter(tags=["free-tools"])

logger = logging.getLogger(__name__)

RESULT_CACHE_CONTROL = "public, max-age=86400, immutable"


async def _run_tool(
    tool_type: str,
    payload: FreeToolGuardFields,
    request: Request,
    db: Session,
):
    tool: FreeTool = get_tool(tool_type)

    fake = await guard_free_tool(request, payload.website, payload.turnstile_token)
    if fake is not None:
        return fake

    if not payload.email or not is_valid_email(payload.email):
        raise HTTPException(status_code=400, detail="Valid email is required")
    if is_disposable_email(payload.email):
        raise HTTPException(status_code=400, detail="Please use a permanent email address.")

    try:
        result = await create_free_tool_result(db, tool, payload)
    except FreeToolDuplicate as e:
        detail = {"error": e.message}
        if e.existing_slug:
            detail["existing_slug"] = e.existing_slug
        raise HTTPException(status_code=409, detail=detail)
    except FreeToolInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (FreeToolOutputError, OpenAIError, RuntimeError):
        # Provider errors surface to the client like bad model output
        logger.exception("Free tool failed", extra={"tool": tool_type, "step": "free_tool"})
        raise HTTPException(status_code=500, detail="Failed to process request")

    logger.info("Free tool result stored", extra={"tool": tool_type, "step": "free_tool"})
    return FreeToolCreated(slug=result.slug)


@router.post("/headline-analyzer", response_model=FreeToolCreated)
async def headline_analyzer(
    payload: HeadlineAnalyzerRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    return await _run_tool("headline-analyzer", payload, request, db)


@router.post("/email-subject-scorer", response_model=FreeToolCreated)
async def email_subject_scorer(
    payload: EmailSubjectScorerRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    return await _run_tool("email-subject-scorer", payload, request, db)


@router.post("/competitor-finder", response_model=FreeToolCreated)
async def competitor_finder(
    payload: CompetitorFinderRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    return await _run_tool("competitor-finder", payload, request, db)


@router.post("/target-audience", response_model=FreeToolCreated)
async def target_audience(
    payload: TargetAudienceRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    return await _run_tool("target-audience", payload, request, db)


@router.post("/marketing-audit", response_model=FreeToolCreated)
async def marketing_audit(
    payload: MarketingAuditRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    return await _run_tool("marketing-audit", payload, request, db)


@router.get("/free-tools", response_model=FreeToolsOut)
def list_free_tools():
    return FreeToolsOut(tools=tool_types())


@router.get("/free-tools/{tool_type}/{slug}", response_model=FreeToolResultOut)
def read_free_tool_result(
    tool_type: str,
    slug: str,
    response: Response,
    db: Session = Depends(get_db),
):
    if tool_type not in tool_types():
        raise HTTPException(status_code=404, detail="Unknown tool")

    result = get_free_tool_result(db, tool_type, slug)
    if not result:
        raise HTTPException(status_code=404, detail="Result not found")

    if result.status == "complete":
        # Completed results never change
        response.headers["Cache-Control"] = RESULT_CACHE_CONTROL
    return FreeToolResultOut.model_validate(result)
