"""Lang2Lang: word-by-word phrase translation with a shared vocabulary cache."""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from log import get_logger
from errors import CacheUnavailable
from llm import TranslationGateway
from routes import router
from vocab_store import VocabularyStore

logger = get_logger("lang2lang.backend")


def create_app(store: VocabularyStore = None, gateway: TranslationGateway = None) -> FastAPI:
    """Build the API app. Tests pass their own store and gateway."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.vocab_store.init_db()
        logger.info("Lang2Lang started", extra={
            "component": "backend", "detail": str(app.state.vocab_store.db_path),
        })
        yield

    app = FastAPI(title="Lang2Lang", lifespan=lifespan)
    app.state.vocab_store = store or VocabularyStore()
    app.state.gateway = gateway or TranslationGateway()

    @app.exception_handler(CacheUnavailable)
    async def cache_unavailable_handler(request: Request, exc: CacheUnavailable):
        logger.error("Vocabulary store unavailable", extra={
            "component": "backend", "endpoint": request.url.path, "detail": str(exc),
        })
        return JSONResponse(status_code=503, content={"message": str(exc)})

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8847)
