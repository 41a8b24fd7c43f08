"""
Planificateur APScheduler de la surveillance de connectivité.

Le job sonde le backend à intervalle régulier et rapporte le résultat au
ConnectivityMonitor comme un évènement plateforme. Le passage hors ligne → en ligne
déclenche la synchronisation automatique de la file locale (listeners du moniteur).
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from churchkidz.config import settings
from churchkidz.services.connectivity import ConnectivityMonitor

logger = logging.getLogger(__name__)


def _watch_connectivity(monitor: ConnectivityMonitor) -> None:
    """Tâche planifiée : sonde le backend et met à jour l'état du moniteur."""
    try:
        reachable = monitor.refresh()
        logger.debug("Sonde de connectivité : %s", "OK" if reachable else "injoignable")
    except Exception as exc:
        logger.error("Erreur lors de la surveillance de connectivité : %s", exc)


def start_scheduler(monitor: ConnectivityMonitor) -> BackgroundScheduler:
    """Démarre le planificateur en arrière-plan (appelé au démarrage de l'API)."""
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        _watch_connectivity,
        trigger="interval",
        seconds=settings.CONNECTIVITY_CHECK_SECONDS,
        args=[monitor],
        id="connectivity_watch",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info(
        "Scheduler démarré, sonde de connectivité toutes les %ds.",
        settings.CONNECTIVITY_CHECK_SECONDS,
    )
    return scheduler


def stop_scheduler(scheduler: BackgroundScheduler) -> None:
    """Arrête le planificateur proprement (appelé à l'arrêt de l'API)."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler arrêté.")
