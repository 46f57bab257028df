"""Note and tag routes. All require an authenticated caller."""

from uuid import UUID

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from api.base import success_response
from core.exceptions import NoteNotFoundError
from core.models import NoteCreate, NoteFilters, NoteUpdate
from core.services.note_service import NoteService


def _parse_note_id(note_id: str) -> UUID:
    # A malformed ID cannot name an existing note
    try:
        return UUID(note_id)
    except ValueError:
        raise NoteNotFoundError(note_id)


def create_notes_router(note_service: NoteService) -> APIRouter:
    router = APIRouter(prefix="/api", tags=["notes"])

    @router.get("/notes")
    def list_notes(
        request: Request,
        search: str | None = Query(None),
        tag: str | None = Query(None),
        pinned: bool = Query(False),
        archived: bool = Query(False),
    ):
        filters = NoteFilters(search=search, tag=tag, pinned=pinned, archived=archived)
        result = note_service.list_notes(request.state.user_id, filters)
        return success_response(result.model_dump(mode="json")).model_dump(mode="json")

    @router.post("/notes", status_code=201)
    def create_note(request: Request, body: NoteCreate):
        note = note_service.create(request.state.user_id, body)
        return JSONResponse(
            status_code=201,
            content=success_response({"note": note.model_dump(mode="json")}).model_dump(mode="json"),
        )

    @router.get("/notes/{note_id}")
    def get_note(request: Request, note_id: str):
        note = note_service.get(request.state.user_id, _parse_note_id(note_id))
        return success_response({"note": note.model_dump(mode="json")}).model_dump(mode="json")

    @router.put("/notes/{note_id}")
    def update_note(request: Request, note_id: str, body: NoteUpdate):
        note = note_service.update(request.state.user_id, _parse_note_id(note_id), body)
        return success_response({"note": note.model_dump(mode="json")}).model_dump(mode="json")

    @router.delete("/notes/{note_id}")
    def delete_note(request: Request, note_id: str):
        note_service.delete(request.state.user_id, _parse_note_id(note_id))
        return success_response({"message": "Note deleted successfully"}).model_dump(mode="json")

    @router.post("/notes/{note_id}/pin")
    def toggle_pin(request: Request, note_id: str):
        note = note_service.toggle_pin(request.state.user_id, _parse_note_id(note_id))
        return success_response({"note": note.model_dump(mode="json")}).model_dump(mode="json")

    @router.post("/notes/{note_id}/archive")
    def toggle_archive(request: Request, note_id: str):
        note = note_service.toggle_archive(request.state.user_id, _parse_note_id(note_id))
        return success_response({"note": note.model_dump(mode="json")}).model_dump(mode="json")

    @router.get("/tags")
    def list_tags(request: Request):
        tags = note_service.tags(request.state.user_id)
        return success_response({
            "tags": [t.model_dump(mode="json") for t in tags],
        }).model_dump(mode="json")

    return router
