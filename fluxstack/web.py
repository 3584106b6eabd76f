import json
import logging
from datetime import datetime
from datetime import timezone
from typing import Any
from typing import Optional
from urllib.parse import urlencode

from fasthtml.common import H5
from fasthtml.common import A
from fasthtml.common import Div
from fasthtml.common import Form
from fasthtml.common import Img
from fasthtml.common import Input
from fasthtml.common import Nav
from fasthtml.common import P
from fasthtml.common import Section
from fasthtml.common import Span
from fasthtml.common import Titled
from fasthtml.fastapp import fast_app
from fasthtml.pico import Container
from starlette.concurrency import run_in_threadpool
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from fluxstack.auth import ADMIN_TOKEN_HEADER
from fluxstack.auth import is_admin
from fluxstack.config import get_settings
from fluxstack.enrichment import enrich_url
from fluxstack.errors import DuplicateKeyError
from fluxstack.errors import NotFoundError
from fluxstack.errors import UpstreamUnavailableError
from fluxstack.errors import ValidationError
from fluxstack.logging_config import setup_logging
from fluxstack.moderation import ModerationService
from fluxstack.moderation import url_error
from fluxstack.search import ALL_CATEGORIES
from fluxstack.search import recommend
from fluxstack.search import search_catalog
from fluxstack.storage import get_store

setup_logging(get_settings().log_level, get_settings().log_dir)

logger = logging.getLogger(__name__)

MAX_BODY_BYTES = 1024 * 1024
NO_STORE = {"cache-control": "no-store"}


def json_response(payload: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(payload, status_code=status_code, headers=NO_STORE)


def error_response(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return json_response({"error": message, **extra}, status_code=status_code)


# Error mapping
async def on_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return error_response(400, exc.message, field=exc.field)


async def on_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return error_response(404, str(exc))


async def on_storage_unavailable(request: Request, exc: UpstreamUnavailableError) -> JSONResponse:
    logger.error(f"{request.method} {request.url.path} failed: storage unavailable")
    return error_response(503, "Storage unavailable")


async def on_duplicate_id(request: Request, exc: DuplicateKeyError) -> JSONResponse:
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return error_response(409, "Could not allocate a unique id")


async def on_invalid_json(request: Request, exc: json.JSONDecodeError) -> JSONResponse:
    return error_response(400, "Invalid JSON")


class BodyError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


async def on_body_error(request: Request, exc: BodyError) -> JSONResponse:
    return error_response(exc.status_code, exc.message)


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject oversized bodies from the content-length header before any route parses them."""

    async def dispatch(self, request, call_next):
        length = request.headers.get("content-length", "")
        if length.isdigit() and int(length) > MAX_BODY_BYTES:
            return error_response(413, "Payload too large")
        return await call_next(request)


# App setup
app, rt = fast_app(
    exception_handlers={
        ValidationError: on_validation_error,
        NotFoundError: on_not_found,
        UpstreamUnavailableError: on_storage_unavailable,
        BodyError: on_body_error,
        DuplicateKeyError: on_duplicate_id,
        json.JSONDecodeError: on_invalid_json,
    },
    middleware=[Middleware(BodySizeLimitMiddleware)],
)


def get_service() -> ModerationService:
    return ModerationService(get_store())


def admin_denied(request: Request) -> Optional[JSONResponse]:
    """401 response unless the request carries the admin token."""
    if is_admin(request.headers.get(ADMIN_TOKEN_HEADER), get_settings().admin_token):
        return None
    logger.warning(f"Rejected admin call to {request.url.path}")
    return error_response(401, "Admin token required")


async def read_json(request: Request) -> Any:
    body = await request.body()
    if len(body) > MAX_BODY_BYTES:
        raise BodyError(413, "Payload too large")
    if not body:
        return {}
    try:
        return json.loads(body)
    except ValueError:
        raise BodyError(400, "Invalid JSON")


# Components
def tool_card(tool):
    thumbnail = Img(src=tool.thumbnail_url, alt="", loading="lazy") if tool.thumbnail_url else ""
    return Div(
        thumbnail,
        H5(tool.name),
        Span(tool.category, _class="badge"),
        P(tool.description),
        Div(*[Span(f"#{tag}") for tag in tool.tags], _class="tags"),
        A("Visit Tool →", href=tool.url, target="_blank", rel="noreferrer"),
        Span(f"▲ {tool.votes}", _class="votes"),
        _class="tool-card",
    )


def category_nav(categories, active):
    chips = []
    for category in categories:
        chips.append(
            A(
                category,
                href="/?" + urlencode({"category": category}),
                _class="chip active" if category == active else "chip",
            )
        )
    return Nav(*chips, _class="categories")


# Pages
@rt("/")
async def get(q: str = "", category: str = ALL_CATEGORIES):
    tools = await run_in_threadpool(get_service().list_tools)
    result = search_catalog(tools, q, category)
    count = len(result.tools)

    return Titled(
        "AI Tools Collection",
        Container(
            P("A community-curated directory of AI tools.", _class="intro"),
            Form(
                Input({"type": "search", "name": "q", "value": q, "placeholder": "Search tools..."}),
                Input({"type": "hidden", "name": "category", "value": category}),
                method="get",
                action="/",
            ),
            category_nav(result.categories, category),
            Span(f"{count} tool{'' if count == 1 else 's'}", _class="count"),
            Section(*[tool_card(tool) for tool in result.tools], _class="tools-grid"),
        ),
    )


@rt("/health")
def health():
    return {"status": "ok"}


# API
@app.get("/api/health")
def api_health():
    return json_response({"ok": True, "timestamp": datetime.now(timezone.utc).isoformat()})


@app.get("/api/tools")
async def api_list_tools(request: Request):
    params = request.query_params
    tools = await run_in_threadpool(get_service().list_tools)
    result = search_catalog(
        tools,
        params.get("query", ""),
        params.get("category", ALL_CATEGORIES).strip() or ALL_CATEGORIES,
        params.get("limit"),
    )
    return json_response(result.model_dump(mode="json", by_alias=True))


@app.post("/api/tools")
async def api_publish_tool(request: Request):
    if denied := admin_denied(request):
        return denied
    payload = await read_json(request)
    tool = await run_in_threadpool(get_service().publish, payload)
    return json_response({"ok": True, "tool": tool.to_record()}, status_code=201)


@app.put("/api/tools/{tool_id}")
async def api_edit_tool(request: Request, tool_id: str):
    if denied := admin_denied(request):
        return denied
    payload = await read_json(request)
    tool = await run_in_threadpool(get_service().edit, tool_id, payload)
    return json_response({"ok": True, "tool": tool.to_record()})


@app.delete("/api/tools/{tool_id}")
async def api_delete_tool(request: Request, tool_id: str):
    if denied := admin_denied(request):
        return denied
    await run_in_threadpool(get_service().delete, tool_id)
    return json_response({"ok": True})


@app.post("/api/tools/{tool_id}/vote")
async def api_vote(request: Request, tool_id: str):
    votes = await run_in_threadpool(get_service().vote, tool_id)
    return json_response({"ok": True, "votes": votes})


@app.get("/api/assistant")
async def api_assistant(request: Request):
    query = request.query_params.get("q", "")
    tools = await run_in_threadpool(get_service().list_tools)
    return json_response(recommend(tools, query).model_dump(mode="json", by_alias=True))


@app.post("/api/submissions")
async def api_submit(request: Request):
    payload = await read_json(request)
    submission = await run_in_threadpool(get_service().submit, payload)
    return json_response({"ok": True, "submission": submission.to_record()}, status_code=201)


@app.get("/api/submissions")
async def api_list_submissions(request: Request):
    if denied := admin_denied(request):
        return denied
    submissions = await run_in_threadpool(get_service().list_submissions)
    return json_response({"submissions": [submission.to_record() for submission in submissions]})


@app.post("/api/submissions/{submission_id}/approve")
async def api_approve(request: Request, submission_id: str):
    if denied := admin_denied(request):
        return denied
    tool = await run_in_threadpool(get_service().approve, submission_id)
    return json_response({"ok": True, "toolId": tool.id})


@app.post("/api/submissions/{submission_id}/reject")
async def api_reject(request: Request, submission_id: str):
    if denied := admin_denied(request):
        return denied
    await run_in_threadpool(get_service().reject, submission_id)
    return json_response({"ok": True})


@app.get("/api/enrich")
async def api_enrich(request: Request):
    target = request.query_params.get("url", "").strip()
    if not target:
        raise ValidationError("url", "Invalid url")
    reason = url_error(target)
    if reason:
        raise ValidationError("url", reason)
    enrichment = await enrich_url(target)
    return json_response(enrichment.to_record())


# For direct script execution
if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    print(f"Starting server on port {settings.web_port}")
    uvicorn.run("fluxstack.web:app", host=settings.web_host, port=settings.web_port, reload=True)
