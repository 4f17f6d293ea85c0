import asyncio
import logging
import os
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response

from pagegen.cache import PageCache, build_cache
from pagegen.config import ENV_FILE, load_settings
from pagegen.llm_client import CompletionClient
from pagegen.llm_prompts import build_prompt
from pagegen.render import inject_assets, theme_css

log = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    if not logging.getLogger().handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)


def normalize_path(path: str, query: str) -> str:
    """Cache key for a request: the path, plus ``?query`` when the query is non-empty."""
    return f"{path}?{query}" if query else path


class PageService:
    """Cache-aside page generation: lookup, generate on miss, assemble, store."""

    def __init__(
        self,
        cache: PageCache,
        llm: CompletionClient,
        ttl_seconds: int = 3600,
        model: Optional[str] = None,
        dump_path: Optional[str] = None,
    ) -> None:
        self.cache = cache
        self.llm = llm
        self.ttl_seconds = ttl_seconds
        self.model = model
        self.dump_path = dump_path

    async def _cached(self, key: str) -> Optional[str]:
        try:
            return await self.cache.get(key)
        except Exception:
            log.warning("cache read failed for: %s", key, exc_info=True)
            return None

    async def _store(self, key: str, html: str) -> None:
        try:
            await self.cache.set(key, html, self.ttl_seconds)
        except Exception:
            log.warning("cache write failed for: %s", key, exc_info=True)

    async def render(self, key: str) -> str:
        cached = await self._cached(key)
        if cached is not None:
            log.info("cache hit for: %s", key)
            return cached

        log.info("cache miss for: %s, generating new content", key)
        system_prompt, user_prompt = build_prompt(key)
        raw = await self.llm.complete(system_prompt, user_prompt, "text", self.model)
        html = inject_assets(raw)

        await self._store(key, html)
        await self._dump(html)
        return html

    async def _dump(self, html: str) -> None:
        if not self.dump_path:
            return
        try:
            await asyncio.to_thread(Path(self.dump_path).write_text, html, encoding="utf-8")
        except OSError as exc:
            log.warning("page dump to %s failed: %s", self.dump_path, exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = load_settings(ENV_FILE)
    configure_logging(settings.log_level)
    cache = build_cache(settings)
    await cache.connect()
    llm = CompletionClient.from_settings(settings)
    if not llm.api_key:
        log.warning("OPENROUTER_API_KEY is not set; page generation requests will fail")
    app.state.settings = settings
    app.state.page_service = PageService(
        cache,
        llm,
        ttl_seconds=settings.cache_ttl_seconds,
        model=settings.openrouter_model,
        dump_path=settings.page_dump_path,
    )
    try:
        yield
    finally:
        await llm.aclose()
        await cache.close()


app = FastAPI(lifespan=lifespan)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = str(uuid.uuid4())
    start = time.time()
    request.state.request_id = rid
    response = None
    try:
        response = await call_next(request)
        return response
    finally:
        dur_ms = int((time.time() - start) * 1000)
        log.info(
            "rid=%s method=%s path=%s status=%s dur_ms=%d",
            rid,
            request.method,
            request.url.path,
            getattr(response, "status_code", "?"),
            dur_ms,
        )


def get_page_service(request: Request) -> PageService:
    return request.app.state.page_service


@app.get("/theme.css")
def theme() -> Response:
    return Response(theme_css(), media_type="text/css")


@app.get("/favicon.ico")
def favicon() -> PlainTextResponse:
    return PlainTextResponse("")


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.get("/llm/status")
def llm_status_endpoint(service: PageService = Depends(get_page_service)) -> Dict[str, Any]:
    body = service.llm.status()
    body["cache_enabled"] = bool(service.cache.enabled)
    return body


@app.get("/{full_path:path}")
async def generate_page(request: Request, service: PageService = Depends(get_page_service)) -> Response:
    key = normalize_path(request.url.path, request.url.query)
    try:
        html = await service.render(key)
    except Exception as exc:
        log.exception("Error generating webpage for %s", key)
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to generate webpage", "details": str(exc) or "Unknown error"},
        )
    return HTMLResponse(html)


def run() -> None:
    import uvicorn

    uvicorn.run(
        "pagegen.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3000") or 3000),
        timeout_keep_alive=255,
    )
