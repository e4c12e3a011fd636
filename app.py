"""HTTP Application - Recipe/Cocktail Recommendation Service.

Single entry point for the recommendation service:
- Builds the orchestrator (store, seed data, providers) in the app lifespan
- POST /ai-chat: chat recommendations, or recipe rescaling with action="rescale"
- POST /weekly-planner: archetype-constrained weekly batch for one user
- GET /health: liveness check
- Permissive CORS; OPTIONS preflights answer 200

Errors are returned as {"error": "..."} with 400/403/500 status codes.

Run with: python app.py
"""

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from src.models.models import ChatRequest, WeeklyBatchRequest
from src.orchestrator.errors import OrchestrationError
from src.orchestrator.orchestrator import RecommendationOrchestrator, initialize_orchestrator
from src.utils.config import config
from src.utils.logger import logger


def create_app(orchestrator: Optional[RecommendationOrchestrator] = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        orchestrator: Pre-built orchestrator (tests); built in the lifespan when omitted.

    Returns:
        FastAPI: Configured application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_orchestrator = orchestrator is None
        app.state.orchestrator = orchestrator or await initialize_orchestrator()
        yield
        if owns_orchestrator:
            await app.state.orchestrator.store.close()

    app = FastAPI(
        title="Sous Recommendation Service",
        description="Recipe and cocktail recommendations over interchangeable LLM providers",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origin_list,
        allow_credentials="*" not in config.cors_origin_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(OrchestrationError)
    async def orchestration_error_handler(request: Request, exc: OrchestrationError):
        log = logger.warning if exc.status_code < 500 else logger.error
        log(f"{request.url.path} failed with {exc.status_code}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
            for error in exc.errors()
        )
        return JSONResponse(status_code=400, content={"error": f"Invalid request: {details}"})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(exc) or "Unknown error occurred"})

    @app.options("/{path:path}")
    async def options_ok(path: str):
        # CORSMiddleware answers real preflights; this covers bare OPTIONS requests
        return Response(status_code=200)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post("/ai-chat")
    async def ai_chat(body: ChatRequest, request: Request):
        return await request.app.state.orchestrator.handle(body)

    @app.post("/weekly-planner")
    async def weekly_planner(body: WeeklyBatchRequest, request: Request):
        return await request.app.state.orchestrator.generate_weekly(body.user_id)

    return app


app = create_app()


if __name__ == "__main__":
    logger.info(f"Starting Recommendation Service on port {config.PORT}")
    logger.info(f"Cuisine mode: {config.CUISINE_MODE}")
    logger.info(f"API docs available at: http://localhost:{config.PORT}/docs")
    uvicorn.run("app:app", host="0.0.0.0", port=config.PORT)
