"""FastAPI server for the closet virtual try-on.

Receives requests from the wardrobe web app with:
- humanImage: URL of the user's full-body photo
- clothingItems: ordered list of {category, imageUrl} to put on

and streams newline-delimited JSON progress events while the garments are
applied one after another.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from closet_tryon.auth import current_user_dependency
from closet_tryon.config import Settings, load_settings
from closet_tryon.models import CreditBalance, DeductCreditsRequest, TryOnRequest
from closet_tryon.pipeline import TryOnPipeline
from closet_tryon.services import CreditLedger, InsufficientCreditsError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if _pipeline is not None:
        await _pipeline.fal.close()


app = FastAPI(
    title="Closet Try-On API",
    description="Streamed multi-garment virtual try-on for the digital closet",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Created on first use so tests can swap them out
_settings: Settings | None = None
_pipeline: TryOnPipeline | None = None
_ledger: CreditLedger | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = load_settings()  # Loads from .env automatically via pydantic-settings
        logging.basicConfig(
            level=_settings.log_level.upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    return _settings


def get_pipeline() -> TryOnPipeline:
    """Get or create the pipeline instance."""
    global _pipeline
    if _pipeline is None:
        _pipeline = TryOnPipeline(get_settings())
    return _pipeline


def get_ledger() -> CreditLedger:
    global _ledger
    if _ledger is None:
        _ledger = CreditLedger(get_settings().credits.ledger_path)
    return _ledger


get_current_user = current_user_dependency(lambda: get_settings().auth)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "Closet Try-On API", "version": "1.0.0"}


@app.get("/health")
async def health():
    """Detailed health check."""
    pipeline = get_pipeline()
    fal_ok = pipeline.fal.is_configured

    return {
        "status": "ok" if fal_ok else "degraded",
        "fal": "configured" if fal_ok else "missing key",
        "failure_policy": pipeline.config.pipeline.failure_policy,
    }


@app.post("/api/virtual-tryon")
async def virtual_tryon(
    request: TryOnRequest,
    user_id: str = Depends(get_current_user),
):
    """Apply the selected garments in order and stream progress.

    Args:
        request: Base photo URL and the garments to apply

    Returns:
        application/x-ndjson stream, one event per line, ending with a
        ``complete`` event or a fatal ``error`` event
    """
    pipeline = get_pipeline()
    logger.info(
        "Try-on for user %s: %s",
        user_id,
        ", ".join(g.category for g in request.garments),
    )

    return StreamingResponse(
        pipeline.stream(request.base_image_url, request.garments),
        media_type="application/x-ndjson",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@app.get("/api/user/credits", response_model=CreditBalance)
async def get_credits(user_id: str = Depends(get_current_user)):
    credits = await get_ledger().balance(user_id)
    return CreditBalance(credits=credits)


@app.post("/api/user/credits", response_model=CreditBalance)
async def deduct_credits(
    request: DeductCreditsRequest,
    user_id: str = Depends(get_current_user),
):
    """Spend credits ahead of a try-on."""
    try:
        remaining = await get_ledger().deduct(user_id, request.amount)
    except InsufficientCreditsError as e:
        logger.info("%s", e)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Insufficient credits",
        ) from e
    return CreditBalance(credits=remaining)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
