"""
Contract creation tests.

A contract is created once per Won offer; its value is twelve months of
recurring revenue plus one-time services.
"""

from datetime import date

import pytest

from dealdesk.extensions import db, storage
from dealdesk.models import Contract, ContractDocument
from dealdesk.services import attachment_service, contract_service
from dealdesk.storage import StorageError
from dealdesk.services.lifecycle_service import LifecycleError
from dealdesk.validation import ConflictError, ValidationError


@pytest.fixture
def won_offer(draft_offer):
    draft_offer.status = "Won"
    db.session.commit()
    return draft_offer


def _create(offer, actor, **overrides):
    kwargs = {
        "actor_id": actor.id,
        "contract_summary": "<p>S</p>",
        "payment_terms": "Net 30",
        "contract_start_date": "2024-01-01",
    }
    kwargs.update(overrides)
    return contract_service.create_contract(offer.id, **kwargs)


class TestTotalContractValue:
    @pytest.mark.parametrize("mrr,services,expected", [
        (1000, 500, 12500),
        (-100, 50, -1150),
        (2000, 300, 24300),
        (0, 0, 0),
        (0, 750, 750),
    ])
    def test_formula(self, mrr, services, expected):
        assert contract_service.compute_total_contract_value(mrr, services) == expected

    def test_offer_rollups(self, draft_offer):
        assert contract_service.compute_offer_revenue(draft_offer) == (2000, 300)


class TestCreateContract:
    def test_creates_draft_contract(self, won_offer, sales_user):
        contract = _create(won_offer, sales_user, total_mrr=2000, total_services_revenue=300)

        assert contract.status == "Draft"
        assert contract.total_contract_value == 24300
        assert contract.contract_start_date == date(2024, 1, 1)
        assert contract.contract_human_id.startswith("CNT")
        assert len(contract.contract_human_id) == 9
        assert contract.created_by == sales_user.id

    def test_totals_default_to_offer_rollups(self, won_offer, sales_user):
        contract = _create(won_offer, sales_user)
        assert (contract.total_mrr, contract.total_services_revenue) == (2000, 300)
        assert contract.total_contract_value == 24300

    def test_offer_status_unchanged(self, won_offer, sales_user):
        _create(won_offer, sales_user)
        assert won_offer.status == "Won"

    def test_second_contract_conflicts(self, won_offer, sales_user):
        _create(won_offer, sales_user)
        with pytest.raises(ConflictError, match="already has a contract"):
            _create(won_offer, sales_user)
        assert db.session.query(Contract).count() == 1

    @pytest.mark.parametrize("status", ["Draft", "Approved", "Sent", "Hold", "Lost"])
    def test_requires_won_offer(self, draft_offer, sales_user, status):
        draft_offer.status = status
        db.session.commit()
        with pytest.raises(LifecycleError, match="Won offers"):
            _create(draft_offer, sales_user)
        assert db.session.query(Contract).count() == 0

    @pytest.mark.parametrize("field,value,message", [
        ("contract_summary", "<p></p>", "Contract summary is required"),
        ("payment_terms", "  ", "Payment terms is required"),
        ("contract_start_date", "", "start date is required"),
        ("contract_start_date", "01/02/2024", "ISO-8601"),
        ("total_services_revenue", "lots", "must be a number"),
    ])
    def test_invalid_input_writes_nothing(self, won_offer, sales_user, field, value, message):
        with pytest.raises(ValidationError, match=message):
            _create(won_offer, sales_user, **{field: value})
        assert db.session.query(Contract).count() == 0

    def test_documents_written_with_contract(self, won_offer, sales_user):
        contract = _create(
            won_offer,
            sales_user,
            documents=[{"name": "msa.pdf", "path": "contracts/1-msa.pdf", "type": "application/pdf", "size": 42}],
        )
        docs = db.session.query(ContractDocument).filter_by(contract_id=contract.id).all()
        assert [(d.name, d.file_size) for d in docs] == [("msa.pdf", 42)]

    def test_negative_totals_are_accepted(self, won_offer, sales_user):
        contract = _create(won_offer, sales_user, total_mrr=-100, total_services_revenue=50)
        assert contract.total_contract_value == -1150

    @pytest.mark.parametrize("name", ["setup.exe", "prices.xlsx", "notes.txt"])
    def test_rejects_other_document_types(self, won_offer, sales_user, name):
        with pytest.raises(ValidationError, match="unsupported type"):
            _create(won_offer, sales_user, documents=[{"name": name, "path": f"contracts/1-{name}"}])
        assert db.session.query(Contract).count() == 0
        assert db.session.query(ContractDocument).count() == 0

    def test_failure_while_recording_documents_writes_nothing(self, won_offer, sales_user, monkeypatch):
        def fail(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(contract_service, "create_document_rows", fail)

        with pytest.raises(RuntimeError):
            _create(won_offer, sales_user, documents=[{"name": "msa.pdf", "path": "contracts/1-msa.pdf"}])
        assert db.session.query(Contract).count() == 0
        assert db.session.query(ContractDocument).count() == 0
        assert won_offer.status == "Won"


class TestUpdateContract:
    def test_update_fields(self, won_offer, sales_user, admin_user):
        contract = _create(won_offer, sales_user)

        contract_service.update_contract(
            contract.id,
            {"status": "Active", "payment_terms": "Net 60"},
            actor_id=admin_user.id,
        )

        assert contract.status == "Active"
        assert contract.payment_terms == "Net 60"
        assert contract.updated_by == admin_user.id
        assert contract.total_contract_value == 24300

    def test_totals_are_not_writable(self, won_offer, sales_user):
        contract = _create(won_offer, sales_user)
        with pytest.raises(ValidationError, match="Field not allowed"):
            contract_service.update_contract(contract.id, {"total_mrr": 1}, actor_id=sales_user.id)

    def test_unknown_status(self, won_offer, sales_user):
        contract = _create(won_offer, sales_user)
        with pytest.raises(ValidationError, match="Invalid status"):
            contract_service.update_contract(contract.id, {"status": "Signed"}, actor_id=sales_user.id)

    def test_save_drops_marked_documents(self, won_offer, sales_user, storage_root):
        meta = attachment_service.upload_file(
            "contract-documents", "contracts", "msa.pdf", b"%PDF", "application/pdf"
        )
        contract = _create(won_offer, sales_user, documents=[meta])
        doc = contract.documents[0]
        attachment_service.mark_for_deletion(ContractDocument, doc.id)

        contract_service.update_contract(contract.id, {"payment_terms": "Net 45"}, actor_id=sales_user.id)

        assert db.session.query(ContractDocument).count() == 0
        assert not (storage_root / "contract-documents" / meta["path"]).exists()

    def test_list_by_status(self, won_offer, sales_user):
        _create(won_offer, sales_user)
        assert len(contract_service.list_contracts(status="Draft")) == 1
        assert contract_service.list_contracts(status="Active") == []


class TestUpdateContractStorageFailure:
    def test_nothing_saved_when_marked_documents_cannot_be_removed(
        self, won_offer, sales_user, storage_root, monkeypatch
    ):
        meta = attachment_service.upload_document("contract", "contracts", "msa.pdf", b"%PDF", "application/pdf")
        contract = _create(won_offer, sales_user, documents=[meta])
        attachment_service.mark_for_deletion(ContractDocument, contract.documents[0].id)

        def fail(bucket, paths):
            raise StorageError("bucket unavailable")

        monkeypatch.setattr(storage.backend, "remove", fail)

        with pytest.raises(StorageError):
            contract_service.update_contract(
                contract.id, {"status": "Active", "payment_terms": "Net 60"}, actor_id=sales_user.id
            )

        db.session.expire_all()
        saved = db.session.get(Contract, contract.id)
        assert (saved.status, saved.payment_terms) == ("Draft", "Net 30")
        assert db.session.query(ContractDocument).count() == 1
