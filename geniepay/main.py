import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import SQLModel

from geniepay.core.config import settings
from geniepay.core.errors import GeniePayError
from geniepay.core.providers import build_providers
from geniepay.db.session import engine

# IMPORTANT : On doit importer les modèles ici pour que SQLModel les "voie"
# et puisse créer les tables au démarrage.
from geniepay.models.user import User  # noqa: F401
from geniepay.models.subscription import Subscription  # noqa: F401

from geniepay.api.endpoints import ai, auth, blockchain, notify, payments, subscriptions

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Fonction exécutée au démarrage (avant le yield)
    et à l'arrêt (après le yield) de l'application.
    """
    logger.info("🚀 Démarrage de GeniePay API...")
    logger.info("🛠️ Vérification des tables de base de données...")
    SQLModel.metadata.create_all(engine)
    logger.info("✅ Tables synchronisées.")
    yield
    logger.info("🛑 Arrêt de GeniePay API.")

app = FastAPI(
    title=settings.PROJECT_NAME,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Clients externes (Gemini, SMTP, Twilio, Razorpay, RPC), remplaçables dans les tests
app.state.providers = build_providers(settings)

# Configuration CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.CLIENT_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(GeniePayError)
async def geniepay_error_handler(request: Request, exc: GeniePayError):
    if exc.status_code >= 500:
        logger.error("❌ %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message, **exc.extra})

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err["loc"] if p != "body"), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Validation failed", "errors": errors})

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("💥 Erreur non gérée sur %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})

# Inclusion des routes
app.include_router(auth.router, tags=["Authentication"])
app.include_router(subscriptions.router, prefix="/subscriptions", tags=["Subscriptions"])
app.include_router(ai.router, prefix="/ai", tags=["AI"])
app.include_router(payments.router, prefix="/payments", tags=["Payments"])
app.include_router(blockchain.router, prefix="/blockchain", tags=["Blockchain"])
app.include_router(notify.router, tags=["Notifications"])

@app.get("/")
def read_root():
    return {
        "status": "online",
        "message": "GeniePay API is running 🧞",
        "endpoints": {
            "auth": ["/signup", "/verify-otp", "/resend-otp", "/login", "/auth/phone-login", "/me"],
            "subscriptions": "/subscriptions",
            "ai": "/ai/command",
            "payments": "/payments",
            "blockchain": "/blockchain/execute",
            "notify": "/notify",
        },
    }

@app.get("/health")
def health_check():
    return {"status": "ok"}

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("geniepay.main:app", host="0.0.0.0", port=8000, reload=True)
