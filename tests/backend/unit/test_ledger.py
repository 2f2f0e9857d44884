import pytest

from giftexchange.backend.errors import UnknownParticipant
from giftexchange.backend.ledger import CustodyLedger
from giftexchange.backend.models import ItemFingerprint, Participant
from giftexchange.backend.store import InMemoryParticipantStore


def _ledger() -> CustodyLedger:
    store = InMemoryParticipantStore()
    store.save(Participant(id="a", display_name="A"))
    return CustodyLedger(store)


def test_record_appends_in_arrival_order() -> None:
    ledger = _ledger()

    ledger.record("a", [ItemFingerprint(class_identifier="1")])
    held = ledger.record("a", [ItemFingerprint(class_identifier="2"), ItemFingerprint(class_identifier="1")])

    assert [f.class_identifier for f in held] == ["1", "2", "1"]
    assert ledger.pending("a") == held


def test_record_rejects_unknown_participant() -> None:
    with pytest.raises(UnknownParticipant):
        _ledger().record("ghost", [ItemFingerprint(class_identifier="1")])

