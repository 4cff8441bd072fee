"""
Tests for the client-side upload flow.

The broker endpoint and the signed upload target are served by one
httpx.MockTransport; the broker side runs the real AccessBroker.
"""

import asyncio
import json

import httpx
import pytest

from common.exceptions import BaseLicensingException, BusinessLogicException, StorageUnavailableException
from conftest import OWNER_ID
from entities.upload import FileCandidate, UploadAttempt, UploadRequest, UploadState
from repositories.collaborator_repository import CollaboratorRepository
from repositories.license_process_repository import LicenseProcessRepository
from repositories.process_document_repository import ProcessDocumentRepository
from services.access_broker import AccessBroker
from services.auth_service import AuthService
from services.upload_orchestrator import SynthesizedProgress, UploadOrchestrator

BROKER_URL = "http://api.test/v1/uploads/signed-url"
PDF = b"%PDF-1.7 test document"


class StorageBackend:
    """Answers credential requests through AccessBroker and stores PUT bodies."""

    def __init__(self, supabase, storage, put_status: int = 200):
        self.broker = AccessBroker(AuthService(supabase), LicenseProcessRepository(supabase), storage)
        self.storage = storage
        self.put_status = put_status
        self.requests = []

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST" and str(request.url) == BROKER_URL:
            auth = request.headers.get("authorization", "")
            token = auth[len("Bearer "):] if auth.startswith("Bearer ") else None
            body = UploadRequest.model_validate(json.loads(request.content))
            try:
                credential = await self.broker.issue_write_credential(token, body)
            except BaseLicensingException as e:
                return httpx.Response(
                    e.status_code,
                    json={"success": False, "error": {"code": e.error_code, "message": e.detail}},
                )
            return httpx.Response(200, json=credential.to_wire())

        if request.method == "PUT":
            if self.put_status >= 400:
                return httpx.Response(self.put_status)
            path = request.url.path.split("/docs/", 1)[1]
            self.storage.objects[path] = request.content
            return httpx.Response(200, json={"Key": f"docs/{path}"})

        return httpx.Response(404)

    def methods(self):
        return [r.method for r in self.requests]


@pytest.fixture
def collaborator_supabase(supabase):
    supabase.tables["process_collaborators"].append({
        "id": "c1",
        "process_id": "P1",
        "user_id": "user-collaborator",
        "status": "accepted",
        "procuracao_file_id": None,
        "procuracao_storage_path": None,
        "procuracao_file_metadata": None,
    })
    supabase.tables["process_documents"] = []
    return supabase


def make_orchestrator(backend: StorageBackend, supabase) -> UploadOrchestrator:
    return UploadOrchestrator(
        broker_url=BROKER_URL,
        storage=backend.storage,
        collaborator_repository=CollaboratorRepository(supabase),
        document_repository=ProcessDocumentRepository(supabase),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(backend.handler)),
        progress_interval=0.001,
    )


def load_collaborator(supabase):
    return asyncio.run(CollaboratorRepository(supabase).get_by_id("c1"))


class TestUpload:

    def test_procuration_upload_persists_matching_metadata(self, collaborator_supabase, storage):
        backend = StorageBackend(collaborator_supabase, storage)
        orchestrator = make_orchestrator(backend, collaborator_supabase)
        states, progress = [], []
        candidate = FileCandidate("contrato.pdf", "application/pdf", PDF)

        result = asyncio.run(orchestrator.upload_procuration(
            "P1", "c1", candidate, "owner-token",
            on_progress=progress.append, on_state=states.append,
        ))

        assert result.success, result.error
        assert result.storage_path.startswith("P1/")
        assert storage.objects[result.storage_path] == PDF

        collaborator = load_collaborator(collaborator_supabase)
        assert collaborator.procuracao_storage_path == result.storage_path
        assert collaborator.procuracao_file_id == result.file_id
        metadata = collaborator.procuracao_file_metadata
        assert (metadata.filename, metadata.file_size, metadata.file_type) == (
            "contrato.pdf", len(PDF), "application/pdf"
        )
        assert metadata.uploaded_at

        assert states == [
            UploadState.SELECTED,
            UploadState.VALIDATING,
            UploadState.VALIDATED,
            UploadState.REQUESTING_CREDENTIAL,
            UploadState.TRANSFERRING,
            UploadState.PERSISTING,
            UploadState.DONE,
        ]
        assert progress[-1] == 100

    def test_upload_sends_token_and_transfer_headers(self, collaborator_supabase, storage):
        backend = StorageBackend(collaborator_supabase, storage)
        orchestrator = make_orchestrator(backend, collaborator_supabase)

        result = asyncio.run(orchestrator.upload(
            "P1", FileCandidate("planta.png", "image/png", b"png-bytes"), "owner-token"
        ))

        assert result.success
        post, put = backend.requests
        assert post.headers["authorization"] == "Bearer owner-token"
        assert json.loads(post.content) == {
            "process_id": "P1", "filename": "planta.png", "contentType": "image/png",
        }
        assert put.method == "PUT"
        assert put.headers["content-type"] == "image/png"
        assert put.headers["x-upsert"] == "true"
        assert put.content == b"png-bytes"

    def test_invalid_type_rejected_without_network(self, collaborator_supabase, storage):
        backend = StorageBackend(collaborator_supabase, storage)
        orchestrator = make_orchestrator(backend, collaborator_supabase)
        states = []

        result = asyncio.run(orchestrator.upload(
            "P1", FileCandidate("notes.txt", "text/plain", b"hi"), "owner-token", on_state=states.append
        ))

        assert result.success is False
        assert result.error_code == "INVALID_FILE"
        assert backend.requests == []
        assert states == [UploadState.SELECTED, UploadState.VALIDATING, UploadState.REJECTED, UploadState.IDLE]

    def test_oversized_file_rejected_without_network(self, collaborator_supabase, storage):
        backend = StorageBackend(collaborator_supabase, storage)
        orchestrator = make_orchestrator(backend, collaborator_supabase)

        result = asyncio.run(orchestrator.upload(
            "P1", FileCandidate("big.pdf", "application/pdf", size=60 * 1024 * 1024), "owner-token"
        ))

        assert result.success is False
        assert "50MB" in result.error
        assert backend.requests == []

    def test_forbidden_surfaces_broker_message(self, collaborator_supabase, storage):
        backend = StorageBackend(collaborator_supabase, storage)
        orchestrator = make_orchestrator(backend, collaborator_supabase)
        states, progress = [], []

        result = asyncio.run(orchestrator.upload(
            "P1", FileCandidate("contrato.pdf", "application/pdf", PDF), "other-token",
            on_progress=progress.append, on_state=states.append,
        ))

        assert result.success is False
        assert result.error == "You do not have permission to upload files to this process"
        assert result.error_code == "ACCESS_DENIED"
        assert backend.methods() == ["POST"]
        assert states[-2:] == [UploadState.FAILED, UploadState.IDLE]
        assert progress[-1] == 0

    def test_unauthenticated_upload(self, collaborator_supabase, storage):
        backend = StorageBackend(collaborator_supabase, storage)
        orchestrator = make_orchestrator(backend, collaborator_supabase)

        result = asyncio.run(orchestrator.upload(
            "P1", FileCandidate("contrato.pdf", "application/pdf", PDF), "expired-token"
        ))

        assert result.success is False
        assert result.error_code == "AUTH_FAILED"

    @pytest.mark.parametrize("answer", [
        httpx.Response(200, text="<html>ok</html>"),
        httpx.Response(200, json={"uploadUrl": "https://storage.test/x"}),
    ])
    def test_unusable_broker_answer_fails_attempt(self, collaborator_supabase, storage, answer):
        async def handler(request):
            return answer

        orchestrator = UploadOrchestrator(
            broker_url=BROKER_URL,
            storage=storage,
            collaborator_repository=CollaboratorRepository(collaborator_supabase),
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
            progress_interval=0.001,
        )
        states = []

        result = asyncio.run(orchestrator.upload(
            "P1", FileCandidate("contrato.pdf", "application/pdf", PDF), "owner-token", on_state=states.append
        ))

        assert result.success is False
        assert result.error == "Invalid response from upload broker"
        assert result.error_code == "STORAGE_UNAVAILABLE"
        assert states[-2:] == [UploadState.FAILED, UploadState.IDLE]

    def test_transfer_failure_leaves_metadata_untouched(self, collaborator_supabase, storage):
        backend = StorageBackend(collaborator_supabase, storage, put_status=500)
        orchestrator = make_orchestrator(backend, collaborator_supabase)

        result = asyncio.run(orchestrator.upload_procuration(
            "P1", "c1", FileCandidate("contrato.pdf", "application/pdf", PDF), "owner-token"
        ))

        assert result.success is False
        assert result.error_code == "TRANSFER_FAILED"
        assert load_collaborator(collaborator_supabase).procuracao_storage_path is None

    def test_persist_failure_is_reported(self, collaborator_supabase, storage):
        collaborator_supabase.errors[("process_collaborators", "update")] = Exception("permission denied")
        backend = StorageBackend(collaborator_supabase, storage)
        orchestrator = make_orchestrator(backend, collaborator_supabase)

        result = asyncio.run(orchestrator.upload_procuration(
            "P1", "c1", FileCandidate("contrato.pdf", "application/pdf", PDF), "owner-token"
        ))

        assert result.success is False
        assert result.error_code == "PERSIST_FAILED"
        # The object was already transferred and is left in place
        assert len(storage.objects) == 1


class TestDelete:

    def _uploaded(self, supabase, storage):
        backend = StorageBackend(supabase, storage)
        orchestrator = make_orchestrator(backend, supabase)
        result = asyncio.run(orchestrator.upload_procuration(
            "P1", "c1", FileCandidate("contrato.pdf", "application/pdf", PDF), "owner-token"
        ))
        assert result.success
        return orchestrator, result.storage_path

    def test_delete_removes_object_and_clears_metadata(self, collaborator_supabase, storage):
        orchestrator, path = self._uploaded(collaborator_supabase, storage)

        outcome = asyncio.run(orchestrator.delete(path, "c1"))

        assert outcome.storage_removed is True
        assert outcome.metadata_cleared is True
        assert path not in storage.objects
        collaborator = load_collaborator(collaborator_supabase)
        assert collaborator.procuracao_storage_path == ""
        assert collaborator.procuracao_file_metadata.is_cleared()
        with pytest.raises(StorageUnavailableException):
            asyncio.run(orchestrator.get_download_url(path))

    def test_silent_remove_failure_drifts(self, collaborator_supabase, storage):
        orchestrator, path = self._uploaded(collaborator_supabase, storage)
        storage.silent_remove = True

        outcome = asyncio.run(orchestrator.delete(path, "c1"))

        assert outcome.storage_removed is False
        assert load_collaborator(collaborator_supabase).procuracao_storage_path == ""
        # Metadata reads as cleared while the object is still downloadable
        url = asyncio.run(orchestrator.get_download_url(path))
        assert path in url

    def test_remove_error_still_clears_metadata(self, collaborator_supabase, storage):
        orchestrator, path = self._uploaded(collaborator_supabase, storage)
        storage.fail_remove = True

        outcome = asyncio.run(orchestrator.delete(path, "c1"))

        assert outcome.storage_removed is False
        assert outcome.storage_error == "Erro ao excluir arquivo"
        assert load_collaborator(collaborator_supabase).procuracao_file_metadata.is_cleared()


class TestProcessDocuments:

    def test_uploads_and_records_each_file(self, collaborator_supabase, storage):
        backend = StorageBackend(collaborator_supabase, storage)
        orchestrator = make_orchestrator(backend, collaborator_supabase)
        candidates = [
            FileCandidate("memorial.pdf", "application/pdf", PDF),
            FileCandidate("mapa.png", "image/png", b"png"),
        ]

        documents = asyncio.run(orchestrator.upload_process_documents("P1", candidates, "owner-token", OWNER_ID))

        assert [d.name for d in documents] == ["memorial.pdf", "mapa.png"]
        assert all(d.file_path.startswith("P1/") for d in documents)
        assert len({d.file_path for d in documents}) == 2
        rows = collaborator_supabase.tables["process_documents"]
        assert {r["uploaded_by"] for r in rows} == {OWNER_ID}

    def test_failed_file_raises(self, collaborator_supabase, storage):
        backend = StorageBackend(collaborator_supabase, storage)
        orchestrator = make_orchestrator(backend, collaborator_supabase)
        candidates = [FileCandidate("notes.txt", "text/plain", b"x")]

        with pytest.raises(BusinessLogicException) as exc:
            asyncio.run(orchestrator.upload_process_documents("P1", candidates, "owner-token", OWNER_ID))
        assert exc.value.detail.startswith("Erro ao fazer upload de notes.txt:")

    def test_batch_waits_for_every_file_and_raises_first_failure(self, collaborator_supabase, storage):
        backend = StorageBackend(collaborator_supabase, storage)
        orchestrator = make_orchestrator(backend, collaborator_supabase)
        candidates = [
            FileCandidate("notes.txt", "text/plain", b"x"),
            FileCandidate("memorial.pdf", "application/pdf", PDF),
            FileCandidate("script.sh", "text/x-shellscript", b"y"),
        ]

        with pytest.raises(BusinessLogicException) as exc:
            asyncio.run(orchestrator.upload_process_documents("P1", candidates, "owner-token", OWNER_ID))

        assert exc.value.detail.startswith("Erro ao fazer upload de notes.txt:")
        rows = collaborator_supabase.tables["process_documents"]
        assert [r["name"] for r in rows] == ["memorial.pdf"]


class TestProgressAndStates:

    def test_progress_is_capped_then_snapped_to_100(self):
        values = []

        async def run():
            progress = SynthesizedProgress(values.append, step=10, interval=0.001, ceiling=90)
            progress.start()
            await asyncio.sleep(0.1)
            await progress.finish(success=True)

        asyncio.run(run())
        assert values[-1] == 100
        assert max(values[:-1]) <= 90
        assert values[:-1] == sorted(values[:-1])

    def test_progress_resets_on_failure(self):
        values = []

        async def run():
            progress = SynthesizedProgress(values.append, interval=0.001)
            progress.start()
            await asyncio.sleep(0.01)
            await progress.finish(success=False)
            return progress.value

        assert asyncio.run(run()) == 0
        assert values[-1] == 0

    def test_finished_attempt_cannot_fail(self, collaborator_supabase, storage):
        orchestrator = make_orchestrator(StorageBackend(collaborator_supabase, storage), collaborator_supabase)
        attempt = UploadAttempt(state=UploadState.DONE)
        with pytest.raises(RuntimeError):
            asyncio.run(orchestrator._transition(attempt, UploadState.FAILED))

    def test_illegal_transition(self, collaborator_supabase, storage):
        orchestrator = make_orchestrator(StorageBackend(collaborator_supabase, storage), collaborator_supabase)
        attempt = UploadAttempt()
        with pytest.raises(RuntimeError):
            asyncio.run(orchestrator._transition(attempt, UploadState.TRANSFERRING))
