import logging
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from create_tables import create_tables
from settings import settings

from esign.common.errors import SigningError
from esign.documents.job import start_premium_expiry_job
from esign.documents.controllers.document_controller import router as document_router
from esign.documents.controllers.signature_controller import router as personal_signature_router
from esign.groups.controllers.group_controller import router as group_router
from esign.groups.controllers.signature_controller import router as group_signature_router
from esign.packages.controllers.package_controller import router as package_router
from esign.verification.controllers.verification_controller import router as verification_router
from esign.notifications.controllers.notification_controller import router as notification_router

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("esign")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- Startup logic ---
    logger.info("Starting application")
    create_tables()
    scheduler = None
    if settings.enable_scheduler:
        scheduler = start_premium_expiry_job()
        logger.info("Premium expiry job scheduled")
    yield
    # --- Shutdown logic ---
    if scheduler is not None:
        scheduler.shutdown(wait=False)
    logger.info("Application stopped")


app = FastAPI(
    title="E-Signature Service",
    description="API untuk tanda tangan dokumen, finalisasi grup dan paket",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    max_age=86400,
)


@app.exception_handler(SigningError)
async def signing_error_handler(request: Request, exc: SigningError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Routers
app.include_router(document_router, prefix="/documents", tags=["documents"])
app.include_router(personal_signature_router, prefix="/signatures", tags=["signatures"])
app.include_router(group_router, prefix="/groups", tags=["groups"])
app.include_router(group_signature_router, prefix="/group-signatures", tags=["group-signatures"])
app.include_router(package_router, prefix="/packages", tags=["packages"])
app.include_router(verification_router, prefix="/verify", tags=["verification"])
app.include_router(notification_router, prefix="/notifications", tags=["notifications"])

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
