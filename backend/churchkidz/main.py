"""
Point d'entrée du service local ChurchKidz (capture des présences offline-first).
Démarrage : uvicorn churchkidz.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from churchkidz.config import settings
from churchkidz.routers import attendance, connectivity, sync
from churchkidz.scheduler import start_scheduler, stop_scheduler
from churchkidz.services.attendance_service import AttendanceCaptureService
from churchkidz.services.connectivity import ConnectivityMonitor
from churchkidz.services.offline_store import OfflineStore
from churchkidz.services.remote_client import SupabaseClient
from churchkidz.services.sync_service import SyncService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Cycle de vie : construit les services une seule fois (base locale ouverte
    à la première utilisation), active la synchronisation automatique et le scheduler.
    """
    store = OfflineStore(settings.OFFLINE_DB_URL)
    remote = SupabaseClient(
        settings.SUPABASE_URL,
        api_key=settings.SUPABASE_KEY,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )
    monitor = ConnectivityMonitor(settings.PROBE_URL, timeout=settings.PROBE_TIMEOUT_SECONDS)
    sync_service = SyncService(store, remote, monitor)
    capture_service = AttendanceCaptureService(store, remote, sync_service, monitor)

    app.state.monitor = monitor
    app.state.sync_service = sync_service
    app.state.capture_service = capture_service

    capture_service.activate()
    scheduler = start_scheduler(monitor)
    yield
    stop_scheduler(scheduler)
    capture_service.deactivate()
    monitor.close()
    remote.close()
    store.close()


app = FastAPI(
    title="ChurchKidz : service de présences",
    description="Capture des présences des enfants, offline-first, synchronisée avec le backend",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# CORS : l'interface tourne sur localhost (navigateur ou coque mobile).
app.add_middleware(
    CORSMiddleware,
    allow_origins=["capacitor://localhost"],
    allow_origin_regex=r"https?://(localhost|127\.0\.0\.1)(:\d+)?",
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


app.include_router(attendance.router)
app.include_router(sync.router)
app.include_router(connectivity.router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Intercepte toutes les exceptions non gérées pour que la réponse 500
    passe par CORSMiddleware (headers CORS présents côté navigateur).
    """
    logger.error("Exception non gérée : %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Une erreur interne est survenue."},
    )


@app.get("/api/health", tags=["Santé"])
def health_check():
    """Vérifie que le service est opérationnel."""
    return {"status": "ok", "service": "ChurchKidz", "version": "0.1.0"}
