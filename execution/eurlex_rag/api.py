"""
FastAPI Backend for the EUR-Lex RAG

Answers questions about ingested EU legislation with passage citations.

Run with: uvicorn execution.eurlex_rag.api:app --host 0.0.0.0 --port 8000
"""

import os
import logging

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

from . import __version__
from .answerer import GroundedAnswerer
from .api_models import (
    CHAT_DEFAULT_K,
    AskRequest,
    AskResponse,
    ChatRequest,
    ChatResponse,
    ChatSource,
    CitationInfo,
    ErrorResponse,
    HealthResponse,
)
from .citation import parse_citation
from .exceptions import ValidationError
from .language_config import LanguageConfig

# Load environment variables
load_dotenv()
logger = logging.getLogger(__name__)


app = FastAPI(
    title="EUR-Lex RAG API",
    description="Grounded question answering over EU legislation",
    version=__version__,
)

# Configure CORS: use CORS_ORIGINS env var (comma-separated) or default to localhost
_cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in _cors_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Service Container - lazily builds and caches the query-path services
# =============================================================================

class ServiceContainer:
    """Singleton that caches the store, embedding service and answerer."""

    def __init__(self):
        self._store = None
        self._answerer = None
        self._language_config = LanguageConfig.for_language(os.getenv("EURLEX_LANG", "ro"))

    def get_store(self):
        if self._store is None:
            from .vector_store import VectorStore, VectorStoreConfig
            self._store = VectorStore(VectorStoreConfig(
                embedding_dimensions=self._language_config.embedding_dimensions,
            ))
            self._store.connect()
        return self._store

    def get_answerer(self) -> GroundedAnswerer:
        if self._answerer is None:
            from .embeddings import get_embedding_service
            from .retriever import PassageRetriever

            embeddings = get_embedding_service(language_config=self._language_config)
            retriever = PassageRetriever(self.get_store(), embeddings)
            self._answerer = GroundedAnswerer.from_language_config(retriever, self._language_config)
        return self._answerer


_container = ServiceContainer()


def get_answerer() -> GroundedAnswerer:
    return _container.get_answerer()


# =============================================================================
# Error mapping
# =============================================================================

def _error_response(status_code: int, error: str, details: list = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def _error_details(errors: list) -> list[dict]:
    return [
        {
            "loc": [str(part) for part in err.get("loc", ())],
            "msg": err.get("msg", ""),
            "type": err.get("type", ""),
        }
        for err in errors
    ]


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return _error_response(400, "Invalid request", _error_details(exc.errors()))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {type(exc).__name__}: {exc}")
    return _error_response(500, str(exc) or "Internal error")


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/api/v1/health", response_model=HealthResponse)
def health_check():
    """Health check endpoint."""
    try:
        db_status = "connected" if _container.get_store().health_check() else "disconnected"
    except Exception as e:
        logger.warning(f"Health check: database disconnected: {e}")
        db_status = "disconnected"

    return HealthResponse(status="ok", version=__version__, database=db_status)


@app.post(
    "/api/v1/ask",
    response_model=AskResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def ask(request: AskRequest, answerer: GroundedAnswerer = Depends(get_answerer)):
    """Grounded answer with passage citations."""
    try:
        result = answerer.answer(request.text, k=request.k)
    except ValidationError as e:
        return _error_response(400, "Invalid request", e.details or [{"msg": str(e)}])
    except Exception as e:
        logger.error(f"Ask failed: {type(e).__name__}: {e}")
        return _error_response(500, str(e) or "Internal error")

    outcome = "abstained" if result.abstained else f"{len(result.citations)} citations"
    logger.info(f"Answered in {result.latency_ms:.0f}ms ({outcome})")
    return AskResponse(
        text=result.text,
        citations=[CitationInfo(tag=c.tag, score=c.score) for c in result.citations],
    )


@app.post(
    "/api/chat",
    response_model=ChatResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def chat(request: ChatRequest, answerer: GroundedAnswerer = Depends(get_answerer)):
    """Legacy chat endpoint: same answer loop, sources as CELEX/chunk pairs."""
    try:
        result = answerer.answer(request.message.strip(), k=request.k or CHAT_DEFAULT_K)
    except ValidationError as e:
        return _error_response(400, "Invalid request", e.details or [{"msg": str(e)}])
    except Exception as e:
        logger.error(f"Chat failed: {type(e).__name__}: {e}")
        return _error_response(500, str(e) or "Internal error")

    sources = []
    for citation in result.citations:
        celex, chunk_id = parse_citation(citation.tag)
        sources.append(ChatSource(celex=celex, chunk_id=chunk_id, relevance=citation.score))
    return ChatResponse(answer=result.text, sources=sources)
