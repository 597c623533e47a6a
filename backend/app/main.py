import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.api.router import api_router
from app.api.routes import analysis
from app.core import logging as _logging  # noqa: F401  initialize logging
from app.services.llm.groq_client import GroqClient
from app.services.pharmacogenomics.cpic_loader import get_reference_catalog

logger = logging.getLogger(__name__)

app = FastAPI(
    title="GenoDose API",
    description="Pharmacogenomic VCF analysis: diplotypes, metabolizer phenotypes and CPIC drug risk",
    version="1.0.0"
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API Routers
app.include_router(api_router, prefix="/api/v1")
app.include_router(analysis.router, prefix="/api/v1", tags=["Analysis"])

@app.on_event("startup")
async def startup_event():
    # Build the reference catalog once
    catalog = get_reference_catalog()
    logger.info(f"Reference catalog ready: {len(catalog)} variant definitions")

    if not GroqClient().is_configured:
        logger.warning("GROQ_API_KEY not set: explanations will use the deterministic fallback")

@app.get("/health")
async def health_check():
    return {"status": "ok", "service": "GenoDose"}
