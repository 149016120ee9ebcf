"""
Transit Hub - Main Server

Customs-brokerage back-office API. Routes are organized in /routes/, business
logic in /services/.
"""

from dotenv import load_dotenv
load_dotenv()  # Load .env file before the services read os.environ

from fastapi import FastAPI, APIRouter, Request
from fastapi.middleware.cors import CORSMiddleware
from motor.motor_asyncio import AsyncIOMotorClient
from contextlib import asynccontextmanager
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# ==================== ROUTERS ====================
from routes import shipments, finance, customs

# ==================== SERVICES ====================
from services import hub_config
from services.ai_capability import AICapability, gemini_probe
from services.shipment_store import ShipmentStore
from services.workflow_engine import ShipmentWorkflowEngine


# ==================== LIFESPAN ====================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logger.info("Starting Transit Hub...")

    mongo_client = AsyncIOMotorClient(hub_config.MONGO_URL)
    store = ShipmentStore(mongo_client[hub_config.DB_NAME])
    engine = ShipmentWorkflowEngine(store)

    shipments.set_dependencies(store, engine)
    finance.set_dependencies(store, engine)

    await store.create_indexes()

    ai = AICapability(
        hub_config.AI_MODELS,
        gemini_probe(hub_config.GEMINI_API_KEY, timeout=hub_config.AI_PROBE_TIMEOUT_SECONDS),
    )
    ai.start()
    app.state.ai = ai

    logger.info("Transit Hub started successfully")

    yield

    logger.info("Shutting down Transit Hub...")
    await ai.close()
    mongo_client.close()


# ==================== APP SETUP ====================
app = FastAPI(
    title="Transit Hub",
    description="Shipment clearance workflow, alerts and customs tooling",
    version="1.0.0",
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API Router with /api prefix
api_router = APIRouter(prefix="/api")

api_router.include_router(shipments.router)
api_router.include_router(finance.router)
api_router.include_router(customs.router)


# ==================== ROOT ENDPOINTS ====================
@api_router.get("/health")
async def health():
    return {
        "status": "healthy",
        "service": "transit-hub"
    }


@api_router.get("/ai/status")
async def ai_status(request: Request):
    ai = getattr(request.app.state, "ai", None)
    if ai is None:
        return {"state": "uninitialized", "model": None}
    return ai.to_dict()


app.include_router(api_router)


@app.get("/")
async def root():
    return {
        "service": "Transit Hub",
        "version": "1.0.0",
        "status": "running"
    }
