"""
Tests for license process operations against the fake Supabase client.
"""

import asyncio
from datetime import date

import pytest
from pydantic import ValidationError

from common.exceptions import ResourceNotFoundException, SupabaseException
from config.config import settings
from conftest import COLLABORATOR_ID, OTHER_ID, OWNER_ID, FakeSupabase, process_row
from entities.license_process import ProcessCreate, ProcessFilter, ProcessUpdate
from repositories.collaborator_repository import CollaboratorRepository
from repositories.company_repository import CompanyRepository
from repositories.license_process_repository import LicenseProcessRepository
from repositories.process_document_repository import ProcessDocumentRepository
from services.process_service import ProcessService, add_months


def accepted(user_id: str) -> list:
    return [{"user_id": user_id, "status": "accepted", "permission_level": "view"}]


@pytest.fixture
def db():
    return FakeSupabase({
        "license_processes": [
            process_row("P1", OWNER_ID, status="submitted",
                        companies={"id": "co1", "name": "Areia Branca Ltda"}),
            process_row("P2", OWNER_ID, status="aprovado", activity="Suinocultura",
                        companies={"id": "co2", "name": "Fazenda Boa Vista"}),
            process_row("P3", OTHER_ID, status="em_analise", activity="Loteamento",
                        companies={"id": "co3", "name": "Urbaniza SA"},
                        process_collaborators=accepted(COLLABORATOR_ID)),
            process_row("P4", OTHER_ID, status="rejeitado",
                        companies={"id": "co4", "name": "Pendente Ltda"},
                        process_collaborators=[{"user_id": COLLABORATOR_ID, "status": "pending"}]),
            process_row("P5", COLLABORATOR_ID, status="submitted",
                        companies={"id": "co5", "name": "Própria Ltda"},
                        process_collaborators=accepted(COLLABORATOR_ID)),
        ],
        "companies": [],
        "process_collaborators": [],
        "process_documents": [
            {"id": "d1", "process_id": "P1", "name": "memorial.pdf", "file_path": "P1/x-memorial.pdf",
             "file_size": 10, "file_type": "application/pdf", "uploaded_by": OWNER_ID},
        ],
    })


@pytest.fixture
def service(db):
    return ProcessService(
        LicenseProcessRepository(db),
        CompanyRepository(db),
        ProcessDocumentRepository(db),
        CollaboratorRepository(db),
        settings,
    )


def creation(**overrides) -> ProcessCreate:
    data = {
        "license_type": "LP",
        "company": "Nova Mineração Ltda",
        "cnpj": "12.345.678/0001-90",
        "activity": "Extração de argila",
        "state": "MG",
        "city": "Uberaba",
        "location": "Zona rural, km 12",
        "description": "Lavra a céu aberto",
        "estimated_value": "",
    }
    data.update(overrides)
    return ProcessCreate(**data)


class TestListProcesses:

    def test_owned_processes(self, service):
        processes = asyncio.run(service.list_processes(OWNER_ID))
        assert sorted(p.id for p in processes) == ["P1", "P2"]
        assert all(p.is_owner for p in processes)

    def test_includes_accepted_collaborations_only(self, service):
        processes = asyncio.run(service.list_processes(COLLABORATOR_ID))
        ids = [p.id for p in processes]
        assert "P3" in ids
        assert "P4" not in ids

    def test_owned_and_collaborated_listed_once(self, service):
        processes = asyncio.run(service.list_processes(COLLABORATOR_ID))
        ids = [p.id for p in processes]
        assert ids.count("P5") == 1
        assert next(p for p in processes if p.id == "P5").is_owner is True
        assert next(p for p in processes if p.id == "P3").is_owner is False

    def test_status_filter(self, service):
        processes = asyncio.run(service.list_processes(OWNER_ID, ProcessFilter(status="aprovado")))
        assert [p.id for p in processes] == ["P2"]

    def test_status_all_disables_filter(self, service):
        processes = asyncio.run(service.list_processes(OWNER_ID, ProcessFilter(status="all")))
        assert len(processes) == 2

    def test_search_matches_company_or_activity(self, service):
        by_company = asyncio.run(service.list_processes(OWNER_ID, ProcessFilter(search="areia")))
        by_activity = asyncio.run(service.list_processes(OWNER_ID, ProcessFilter(search="SUINO")))
        assert [p.id for p in by_company] == ["P1"]
        assert [p.id for p in by_activity] == ["P2"]

    def test_collaboration_failure_falls_back_to_owned(self, db, service):
        calls = {"n": 0}
        original = service.process_repo.list_collaborated

        async def broken(*args, **kwargs):
            calls["n"] += 1
            raise SupabaseException(detail="boom", table="license_processes", operation="select")

        service.process_repo.list_collaborated = broken
        processes = asyncio.run(service.list_processes(OWNER_ID))
        service.process_repo.list_collaborated = original
        assert calls["n"] == 1
        assert len(processes) == 2


class TestProcessLifecycle:

    def test_create_with_new_company(self, db, service):
        process = asyncio.run(service.create_process(OWNER_ID, "owner@example.com", creation(), today=date(2024, 5, 10)))

        assert process.status == "submitted"
        assert process.progress == 0
        assert process.submit_date == date(2024, 5, 10)
        assert process.expected_date == date(2024, 11, 10)
        assert process.municipality == "Uberaba"
        assert process.estimated_value is None
        company = db.tables["companies"][0]
        assert company["name"] == "Nova Mineração Ltda"
        assert company["email"] == "owner@example.com"
        assert process.company_id == company["id"]

    def test_operating_license_expected_in_36_months(self, service):
        process = asyncio.run(service.create_process(
            OWNER_ID, None, creation(license_type="LO"), today=date(2024, 5, 10)
        ))
        assert process.expected_date == date(2027, 5, 10)

    def test_existing_company_is_reused(self, db, service):
        data = creation(company_id="co1", company=None, cnpj=None)
        process = asyncio.run(service.create_process(OWNER_ID, None, data, today=date(2024, 5, 10)))
        assert process.company_id == "co1"
        assert db.tables["companies"] == []

    def test_company_required_without_company_id(self):
        with pytest.raises(ValidationError):
            creation(company=None)

    def test_blank_text_rejected(self):
        with pytest.raises(ValidationError):
            creation(activity="   ")

    def test_get_is_owner_scoped(self, service):
        assert asyncio.run(service.get_process(OWNER_ID, "P1")).id == "P1"
        with pytest.raises(ResourceNotFoundException):
            asyncio.run(service.get_process(OTHER_ID, "P1"))

    def test_update(self, db, service):
        process = asyncio.run(service.update_process(OWNER_ID, "P1", ProcessUpdate(status="em_analise", progress=40)))
        assert process.status == "em_analise"
        assert process.progress == 40
        assert db.tables["license_processes"][0]["updated_at"]

    def test_update_by_non_owner(self, service):
        with pytest.raises(ResourceNotFoundException):
            asyncio.run(service.update_process(OTHER_ID, "P1", ProcessUpdate(progress=10)))

    def test_delete(self, db, service):
        asyncio.run(service.delete_process(OWNER_ID, "P2"))
        assert "P2" not in [r["id"] for r in db.tables["license_processes"]]
        with pytest.raises(ResourceNotFoundException):
            asyncio.run(service.delete_process(OWNER_ID, "P2"))

    def test_stats(self, service):
        stats = asyncio.run(service.get_process_stats(OWNER_ID))
        assert stats.model_dump() == {
            "total": 2, "pending": 1, "analysis": 0, "approved": 1, "rejected": 0, "expired": 0,
        }

    def test_documents_require_ownership(self, service):
        documents = asyncio.run(service.list_documents(OWNER_ID, "P1"))
        assert [d.name for d in documents] == ["memorial.pdf"]
        with pytest.raises(ResourceNotFoundException):
            asyncio.run(service.list_documents(OTHER_ID, "P1"))


class TestAddMonths:

    def test_plain(self):
        assert add_months(date(2024, 1, 15), 6) == date(2024, 7, 15)

    def test_year_rollover(self):
        assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)

    def test_clamps_to_month_end(self):
        assert add_months(date(2024, 8, 31), 6) == date(2025, 2, 28)
        assert add_months(date(2023, 8, 31), 6) == date(2024, 2, 29)
