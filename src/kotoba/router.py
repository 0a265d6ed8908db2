from datetime import datetime
from typing import Dict, List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .config import Settings
from .database import recent_logs
from .dependencies import (
    get_errors,
    get_importer,
    get_session_id,
    get_sessions,
    get_settings,
    get_store,
)
from .errors import ErrorState
from .exporter import export_source, write_export
from .importer import WordSourceImporter
from .models import DEFAULT_LEVEL, Word, WordSource, new_source, new_word
from .quiz import QuizSession, ReadingOptionGenerator
from .repository import WordSourceStore
from .sessions import ActiveSession, SessionRegistry

router = APIRouter(prefix="/api")


# ---------- Schemas ----------

class WordOut(BaseModel):
    id: str
    word: str
    pronunciation: str
    meaning: str
    example: str
    level: str
    category: Optional[str] = None

    @classmethod
    def from_word(cls, word: Word) -> "WordOut":
        return cls(id=word.id, **word.model_dump())


class SourceOut(BaseModel):
    id: str
    name: str
    description: str
    version: str
    created_date: datetime
    word_count: int

    @classmethod
    def from_source(cls, source: WordSource) -> "SourceOut":
        return cls(
            id=source.id,
            name=source.name,
            description=source.description,
            version=source.version,
            created_date=source.created_date,
            word_count=len(source.words),
        )


class SourceDetail(SourceOut):
    words: List[WordOut]

    @classmethod
    def from_source(cls, source: WordSource) -> "SourceDetail":
        return cls(
            **SourceOut.from_source(source).model_dump(),
            words=[WordOut.from_word(w) for w in source.words],
        )


class WordIn(BaseModel):
    word: str
    pronunciation: str
    meaning: str
    example: str = ""
    level: str = DEFAULT_LEVEL
    category: Optional[str] = None


class SourceCreate(BaseModel):
    name: str
    description: str = ""
    words: List[WordIn]


class FileImportRequest(BaseModel):
    path: str


class CsvImportRequest(BaseModel):
    path: str
    name: str
    description: str = ""


class RemoteImportRequest(BaseModel):
    url: str


class QuizStart(BaseModel):
    source_id: str


class AnswerIn(BaseModel):
    answer: str


# ---------- Word sources ----------

@router.get("/sources", response_model=List[SourceOut])
def list_sources(store: WordSourceStore = Depends(get_store)):
    return [SourceOut.from_source(s) for s in store.list_sources()]


@router.get("/sources/{source_id}", response_model=SourceDetail)
def get_source(source_id: str, store: WordSourceStore = Depends(get_store)):
    return SourceDetail.from_source(store.get(source_id))


@router.post("/sources", response_model=SourceDetail, status_code=status.HTTP_201_CREATED)
def create_source(payload: SourceCreate, store: WordSourceStore = Depends(get_store)):
    words = [new_word(**w.model_dump()) for w in payload.words]
    source = new_source(payload.name, payload.description, words)
    store.add(source)
    return SourceDetail.from_source(source)


@router.delete("/sources/{source_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_source(source_id: str, store: WordSourceStore = Depends(get_store)):
    store.remove(source_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/sources/{source_id}/export")
def download_export(source_id: str, store: WordSourceStore = Depends(get_store)):
    result = export_source(store.get(source_id))
    return Response(
        content=result.content,
        media_type="application/json",
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(result.filename)}"
        },
    )


@router.post("/sources/{source_id}/export")
def save_export(
    source_id: str,
    store: WordSourceStore = Depends(get_store),
    app_settings: Settings = Depends(get_settings),
):
    path = write_export(store.get(source_id), app_settings.EXPORT_DIR)
    return {"path": str(path), "filename": path.name}


# ---------- Import ----------

def _import_response(source: Optional[WordSource]):
    if source is None:
        return {"status": "cancelled"}
    return {"status": "imported", "source": SourceOut.from_source(source)}


@router.get("/import")
def import_status(importer: WordSourceImporter = Depends(get_importer)):
    job = importer.current_job
    return {"loading": importer.is_loading, "job": job.description if job else None}


@router.post("/import/file")
async def import_file(
    payload: FileImportRequest, importer: WordSourceImporter = Depends(get_importer)
):
    job = importer.start_file_import(payload.path)
    return _import_response(await job.wait())


@router.post("/import/csv")
async def import_csv(
    payload: CsvImportRequest, importer: WordSourceImporter = Depends(get_importer)
):
    job = importer.start_csv_import(payload.path, payload.name, payload.description)
    return _import_response(await job.wait())


@router.post("/import/remote")
async def import_remote(
    payload: RemoteImportRequest, importer: WordSourceImporter = Depends(get_importer)
):
    job = importer.start_remote_import(payload.url)
    return _import_response(await job.wait())


@router.delete("/import")
async def cancel_import(importer: WordSourceImporter = Depends(get_importer)):
    return {"cancelled": importer.cancel_current()}


# ---------- Words ----------

@router.get("/words", response_model=List[WordOut])
def search_words(q: str = "", store: WordSourceStore = Depends(get_store)):
    return [WordOut.from_word(w) for w in store.search(q)]


@router.get("/words/by-level", response_model=Dict[str, List[WordOut]])
def words_by_level(store: WordSourceStore = Depends(get_store)):
    return {
        level: [WordOut.from_word(w) for w in words]
        for level, words in store.group_by_level().items()
    }


# ---------- Quiz ----------

def _session_invalid():
    return JSONResponse({"error": "Session invalid"}, status_code=401)


def _quiz_payload(active: ActiveSession) -> dict:
    data = active.quiz.state.model_dump(mode="json")
    data["source_id"] = active.source_id
    if active.quiz.summary is not None:
        data["answers"] = [a.model_dump() for a in active.quiz.answers]
    return data


@router.post("/quiz/start")
def start_quiz(
    payload: QuizStart,
    store: WordSourceStore = Depends(get_store),
    sessions: SessionRegistry = Depends(get_sessions),
    app_settings: Settings = Depends(get_settings),
):
    source = store.get(payload.source_id)
    quiz = QuizSession(
        source,
        option_generator=ReadingOptionGenerator(
            option_count=app_settings.QUIZ_OPTION_COUNT
        ),
    )
    session_id = sessions.create(quiz, source.id)
    active = sessions.get(session_id)
    response = JSONResponse(_quiz_payload(active))
    response.set_cookie(
        key=app_settings.SESSION_COOKIE_NAME,
        value=session_id,
        httponly=True,
        samesite="lax",
    )
    return response


@router.get("/quiz")
def get_quiz(
    session_id: Optional[str] = Depends(get_session_id),
    sessions: SessionRegistry = Depends(get_sessions),
):
    active = sessions.get(session_id)
    if not active:
        return _session_invalid()
    with active.lock:
        return _quiz_payload(active)


@router.post("/quiz/answer")
def submit_answer(
    payload: AnswerIn,
    session_id: Optional[str] = Depends(get_session_id),
    sessions: SessionRegistry = Depends(get_sessions),
):
    active = sessions.get(session_id)
    if not active:
        return _session_invalid()
    with active.lock:
        active.quiz.select_answer(payload.answer)
        return _quiz_payload(active)


@router.post("/quiz/advance")
def advance_quiz(
    session_id: Optional[str] = Depends(get_session_id),
    sessions: SessionRegistry = Depends(get_sessions),
):
    active = sessions.get(session_id)
    if not active:
        return _session_invalid()
    with active.lock:
        active.quiz.advance()
        return _quiz_payload(active)


@router.post("/quiz/restart")
def restart_quiz(
    session_id: Optional[str] = Depends(get_session_id),
    sessions: SessionRegistry = Depends(get_sessions),
):
    active = sessions.get(session_id)
    if not active:
        return _session_invalid()
    with active.lock:
        active.quiz.restart()
        return _quiz_payload(active)


@router.post("/quiz/exit")
def exit_quiz(
    response: Response,
    session_id: Optional[str] = Depends(get_session_id),
    sessions: SessionRegistry = Depends(get_sessions),
    app_settings: Settings = Depends(get_settings),
):
    sessions.discard(session_id)
    response.delete_cookie(app_settings.SESSION_COOKIE_NAME)
    return {"status": "success"}


# ---------- Errors & logs ----------

@router.get("/error")
def current_error(errors: ErrorState = Depends(get_errors)):
    return {"current": errors.as_dict()}


@router.delete("/error")
def dismiss_error(errors: ErrorState = Depends(get_errors)):
    errors.dismiss()
    return {"current": None}


@router.get("/logs")
def logs(limit: int = 50, app_settings: Settings = Depends(get_settings)):
    return recent_logs(app_settings.db_path, limit)
