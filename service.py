import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, Response

import config
from api.cover import build_cover_from_query
from api.share import build_share_page, request_base_url

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    logger.info(
        "ddripp cover server ready (port %s, providers: %s)",
        config.PORT, ", ".join(config.IMAGE_PROVIDERS) or "none",
    )
    yield


app = FastAPI(title="ddripp cover", lifespan=lifespan)


# Sync handlers run in FastAPI's threadpool, so blocking provider calls
# don't stall other requests.
@app.get("/dynamic-cover")
def dynamic_cover(dest: Optional[str] = None, date: Optional[str] = None):
    """
    Render the cover card for a destination and date as PNG.

    Background acquisition never fails (it falls back to a placeholder);
    anything else that breaks during rendering becomes a plain 500.
    """
    try:
        cover_bytes = build_cover_from_query({"dest": dest or "", "date": date or ""})
    except Exception:
        logger.exception("Cover rendering failed for dest=%r", dest)
        return PlainTextResponse("Erro interno", status_code=500)
    return Response(content=cover_bytes, media_type="image/png")


@app.get("/share", response_class=HTMLResponse)
def share(
    request: Request,
    title: Optional[str] = None,
    date: Optional[str] = None,
    dest: Optional[str] = None,
    data: Optional[str] = None,
):
    """Open Graph page pointing at /dynamic-cover, redirecting to the front-end app."""
    base_url = request_base_url(request.headers, request.url.scheme, request.headers.get("host", request.url.netloc))
    params = {"title": title or "", "date": date or "", "dest": dest or "", "data": data or ""}
    return HTMLResponse(build_share_page(params, base_url))


@app.get("/health")
def health():
    return {"status": "ok"}


def main():
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=config.PORT)


if __name__ == "__main__":
    main()
