"""
Tests du stockage local durable (file d'attente offline + cache du roster).
Couverture : dernière écriture gagnante, atomicité des lots, index + repli,
marquage/purge, fraîcheur du cache, indisponibilité du stockage.
"""

import threading
from contextlib import contextmanager
from datetime import date, datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from churchkidz.exceptions import StorageUnavailable
from churchkidz.schemas.attendance import AttendanceEditInput, RosterChild
from churchkidz.services.offline_store import OfflineStore, create_local_engine, pending_key

D1 = date(2024, 1, 1)
D2 = date(2024, 1, 2)
HOUR_MS = 60 * 60 * 1000


# --- Helper ---

def make_edit(child_id="A", service_date=D1, present=True, notes="", recorded_by="servant-1"):
    return AttendanceEditInput(
        child_id=child_id,
        service_date=service_date,
        present=present,
        notes=notes,
        recorded_by=recorded_by,
    )


# ============================================================
# put / dernière écriture gagnante
# ============================================================

def test_cle_composite():
    assert pending_key("A", D1) == "A_2024-01-01"


def test_put_derniere_ecriture_gagnante(store):
    """Deux put pour le même enfant + date → une seule édition, la dernière."""
    store.put([make_edit(present=True)])
    store.put([make_edit(present=False)])

    records = store.list_unsynced()
    assert len(records) == 1
    assert records[0].id == "A_2024-01-01"
    assert records[0].present is False


def test_put_meme_cle_dans_un_lot(store):
    """Même enfant + date deux fois dans un lot → une seule édition, la dernière du lot."""
    store.put([make_edit(present=True, notes="arrivé"), make_edit(present=False, notes="reparti")])

    records = store.list_unsynced()
    assert [(r.id, r.present, r.notes) for r in records] == [("A_2024-01-01", False, "reparti")]


def test_put_meme_cle_puis_autre_lot(store):
    store.put([make_edit("A"), make_edit("B"), make_edit("A", present=False)])
    store.put([make_edit("B", present=False)])

    records = {r.child_id: r.present for r in store.list_unsynced()}
    assert records == {"A": False, "B": False}


def test_put_horodatage_et_synced(store):
    """Chaque édition est non synchronisée et horodatée de façon croissante."""
    store.put([make_edit("A"), make_edit("B"), make_edit("C")])

    records = store.list_unsynced()
    assert [r.child_id for r in records] == ["A", "B", "C"]
    assert all(r.synced is False for r in records)
    stamps = [r.created_at for r in records]
    assert stamps == sorted(stamps)
    assert len(set(stamps)) == 3


def test_put_lot_vide(store):
    store.put([])
    assert store.count_unsynced() == 0


def test_put_atomique_en_cas_d_echec(store):
    """Lot de 5 dont le dernier viole une contrainte → aucune des 5 éditions persistée."""
    edits = [make_edit(f"C{i}") for i in range(4)]
    edits.append(
        AttendanceEditInput.model_construct(
            child_id=None,
            service_date=D1,
            present=True,
            notes="",
            recorded_by="servant-1",
        )
    )

    with pytest.raises(StorageUnavailable):
        store.put(edits)

    assert store.count_unsynced() == 0
    assert store.list_by_date(D1) == []


# ============================================================
# list_unsynced / list_by_date / count
# ============================================================

def test_list_unsynced_exclut_les_synchronisees(store):
    store.put([make_edit("A"), make_edit("B")])
    store.mark_synced(["A_2024-01-01"])

    records = store.list_unsynced()
    assert [r.child_id for r in records] == ["B"]
    assert store.count_unsynced() == 1


def test_list_unsynced_repli_parcours_complet(store):
    """Si la lecture par index échoue, le parcours complet prend le relais."""
    store.put([make_edit("A"), make_edit("B")])
    store.mark_synced(["B_2024-01-01"])

    original = store._transaction
    calls = {"n": 0}

    @contextmanager
    def flaky_transaction():
        calls["n"] += 1
        if calls["n"] == 1:
            raise StorageUnavailable("index by-synced illisible")
        with original() as db:
            yield db

    store._transaction = flaky_transaction

    records = store.list_unsynced()
    assert [r.child_id for r in records] == ["A"]
    assert calls["n"] == 2


def test_list_by_date_inclut_synchronisees_et_en_attente(store):
    store.put([make_edit("A", D1), make_edit("B", D1), make_edit("A", D2)])
    store.mark_synced(["A_2024-01-01"])

    records = store.list_by_date(D1)
    assert {r.child_id for r in records} == {"A", "B"}
    assert {r.child_id: r.synced for r in records} == {"A": True, "B": False}
    assert [r.child_id for r in store.list_by_date(D2)] == ["A"]


# ============================================================
# mark_synced / prune_synced
# ============================================================

def test_mark_synced_cles_inconnues_ignorees(store):
    store.put([make_edit("A")])
    store.mark_synced(["inconnu_2024-01-01", "A_2024-01-01"])
    assert store.count_unsynced() == 0


def test_prune_supprime_les_synchronisees(store):
    """Après mark_synced + prune, la clé disparaît de list_unsynced ET de list_by_date."""
    store.put([make_edit("A"), make_edit("B")])
    store.mark_synced(["A_2024-01-01"])

    removed = store.prune_synced()

    assert removed == 1
    assert "A_2024-01-01" not in [r.id for r in store.list_unsynced()]
    assert "A_2024-01-01" not in [r.id for r in store.list_by_date(D1)]
    assert [r.id for r in store.list_by_date(D1)] == ["B_2024-01-01"]


def test_prune_sans_synchronisees(store):
    store.put([make_edit("A")])
    assert store.prune_synced() == 0
    assert store.count_unsynced() == 1


# ============================================================
# Cache du roster
# ============================================================

def test_replace_roster_remplace_entierement(store):
    """Le cache est vidé puis rempli : un enfant retiré ne subsiste pas."""
    store.replace_roster([RosterChild(id="1", full_name="Zoé"), RosterChild(id="2", full_name="Adam")])
    store.replace_roster([RosterChild(id="2", full_name="Adam"), RosterChild(id="3", full_name="Marc")])

    roster = store.get_roster()
    assert [(c.id, c.full_name) for c in roster] == [("2", "Adam"), ("3", "Marc")]


def test_cache_vide_jamais_frais(store):
    assert store.is_roster_fresh() is False


def test_fraicheur_limite_24h(store, clock):
    """24h + 1ms → périmé ; 23h → frais (fenêtre par défaut)."""
    store.replace_roster([RosterChild(id="1", full_name="Adam")])

    clock.advance(23 * HOUR_MS)
    assert store.is_roster_fresh() is True

    clock.advance(1 * HOUR_MS + 1)
    assert store.is_roster_fresh() is False


def test_fraicheur_fenetre_personnalisee(store, clock):
    store.replace_roster([RosterChild(id="1", full_name="Adam")])
    clock.advance(2 * HOUR_MS)

    assert store.is_roster_fresh(timedelta(hours=1)) is False
    assert store.is_roster_fresh(timedelta(hours=3)) is True


# ============================================================
# État de synchronisation
# ============================================================

def test_derniere_tentative_de_sync(store):
    assert store.get_last_sync_attempt() is None

    attempted_at = datetime(2024, 3, 10, 9, 30, tzinfo=timezone.utc)
    store.set_last_sync_attempt(attempted_at)

    assert store.get_last_sync_attempt() == attempted_at


# ============================================================
# Stockage indisponible
# ============================================================

def test_ouverture_impossible(tmp_path):
    """Répertoire inexistant → StorageUnavailable, pas d'erreur SQLAlchemy brute."""
    broken = OfflineStore(f"sqlite:///{tmp_path}/absent/offline.db")

    with pytest.raises(StorageUnavailable):
        broken.put([make_edit()])
    with pytest.raises(StorageUnavailable):
        broken.count_unsynced()


def test_ouverture_unique_entre_threads(clock, tmp_path):
    """Premier accès simultané depuis plusieurs threads → un seul moteur, une seule base."""
    shared = OfflineStore(f"sqlite:///{tmp_path}/offline.db", clock=clock)
    barrier = threading.Barrier(4)
    errors = []

    def first_access():
        barrier.wait()
        try:
            shared.count_unsynced()
        except Exception as exc:
            errors.append(exc)

    with patch(
        "churchkidz.services.offline_store.create_local_engine",
        wraps=create_local_engine,
    ) as engine_factory:
        threads = [threading.Thread(target=first_access) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        shared.put([make_edit("A")])
        assert shared.count_unsynced() == 1
        assert engine_factory.call_count == 1

    assert errors == []
    shared.close()
