"""Room Visualizer: AI renovation concept API."""

import logging

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import VisualizationError
from .models.schemas import ErrorCode
from .routes import visualizations

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Let detached metrics writes finish before shutdown
    pipeline = visualizations._pipeline
    if pipeline is not None and pipeline.metrics is not None:
        await pipeline.metrics.drain()


app = FastAPI(title="Room Visualizer", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    # The visualize endpoint answers bad bodies in its own error shape
    if request.url.path == "/api/ai/visualize":
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ())[1:]) or "body"
        err = VisualizationError(
            ErrorCode.INVALID_IMAGE, "Invalid request", f"{field}: {first.get('msg', 'invalid request')}",
        )
        return JSONResponse(status_code=err.status_code, content=err.to_body())
    return await request_validation_exception_handler(request, exc)


app.include_router(visualizations.router)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@app.get("/health")
async def health():
    return {"status": "ok", "service": "room-visualizer"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8100)
