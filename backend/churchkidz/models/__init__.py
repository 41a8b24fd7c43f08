# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que l'OfflineStore appelle create_all() à la première ouverture.

from churchkidz.models.pending_attendance import PendingAttendance  # noqa: F401
from churchkidz.models.cached_child import CachedChild  # noqa: F401
from churchkidz.models.sync_state import SyncState  # noqa: F401
