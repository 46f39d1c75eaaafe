# main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from safeballot.config import API_URL, CORS_ORIGINS, STORAGE_BACKEND
from safeballot.dependencies import SESSION_HEADER
from safeballot.routes.flow_routes import router as flow_router
from safeballot.routes.vote_routes import vote_router

# ==============================================================================
# SECTION 1: LOGGING
# ==============================================================================
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# ==============================================================================
# SECTION 2: APPLICATION
# ==============================================================================
app = FastAPI(title="SafeBallot Voter API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[SESSION_HEADER],
)

app.include_router(flow_router)
app.include_router(vote_router)

logger.info(f"Ballot service at {API_URL}, voter state backend: {STORAGE_BACKEND}")

# ==============================================================================
# SECTION 3: GENERAL ENDPOINTS
# ==============================================================================


@app.get("/health", tags=["General"])
def health_check():
    return {"status": "healthy", "storage": STORAGE_BACKEND}


@app.get("/", tags=["Root"])
def read_root():
    return {"message": "Welcome to the SafeBallot Voter API"}
