"""
Router de la capture des présences.
Roster, feuille de présence d'une date et sauvegarde (en ligne ou file locale).
"""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException

from churchkidz.dependencies import get_capture_service, get_monitor
from churchkidz.exceptions import AttendanceValidationError, NoDataAvailable
from churchkidz.schemas.attendance import (
    AttendanceSaveRequest,
    AttendanceSheet,
    RosterLoad,
    SaveOutcome,
    SaveResult,
)
from churchkidz.services.attendance_service import AttendanceCaptureService
from churchkidz.services.connectivity import ConnectivityMonitor

router = APIRouter(prefix="/api/attendance", tags=["Présences"])


@router.get("/roster", response_model=RosterLoad, summary="Liste des enfants")
def get_roster(
    service: AttendanceCaptureService = Depends(get_capture_service),
    monitor: ConnectivityMonitor = Depends(get_monitor),
):
    """
    Retourne le roster : distant si le backend est joignable, sinon le cache local.
    `source` indique l'origine (remote, cache, degraded).
    503 si hors ligne sans cache récent.
    """
    try:
        return service.load_roster(online=monitor.check_connection())
    except NoDataAvailable as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/{service_date}", response_model=AttendanceSheet, summary="Feuille de présence d'une date")
def get_sheet(
    service_date: date,
    service: AttendanceCaptureService = Depends(get_capture_service),
    monitor: ConnectivityMonitor = Depends(get_monitor),
):
    """
    Une ligne par enfant du roster. Les éditions locales non synchronisées
    priment sur l'état distant (`pending` = True).
    """
    try:
        return service.build_sheet(service_date, online=monitor.check_connection())
    except NoDataAvailable as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.put("/{service_date}", response_model=SaveResult, summary="Enregistrer les présences d'une date")
def save_attendance(
    service_date: date,
    data: AttendanceSaveRequest,
    service: AttendanceCaptureService = Depends(get_capture_service),
    monitor: ConnectivityMonitor = Depends(get_monitor),
):
    """
    Enregistre les présences en ligne, ou dans la file locale si le réseau manque.

    - 200 SAVED_REMOTE  : enregistrées sur le backend
    - 200 SAVED_OFFLINE : en file locale, synchronisées au retour du réseau
    - 422 : saisie invalide (notes trop longues, date future), rien n'est écrit
    - 502 : échec de l'enregistrement, à réessayer
    """
    try:
        result = service.save(
            service_date,
            data.records,
            recorded_by=data.recorded_by,
            online=monitor.check_connection(),
        )
    except AttendanceValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    if result.outcome == SaveOutcome.FAILED:
        raise HTTPException(status_code=502, detail=result.message)
    return result
