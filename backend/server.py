import json
from typing import Any, Dict, Literal, Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from langchain_core.runnables import Runnable
from pydantic import BaseModel, Field
from dotenv import load_dotenv

from resumegpt.core.errors import (
    GenerationInProgress,
    MalformedOutput,
    ModelUnavailable,
    PersistenceFailure,
    RenderError,
    SessionNotFound,
)
from resumegpt.core.store import JSONFileSessionStore, SessionStore, validate_session_id
from resumegpt.core.validator import PatchValidator
from resumegpt.factories.agent_factory import SpecialisedAgentFactory, build_chat_model
from resumegpt.render.latex import compile_latex, render_cover_letter_latex, render_resume_latex
from resumegpt.spec.document_models import CoverLetter, Resume
from resumegpt.spec.models import TEMPLATES, ChatConfig
from resumegpt.spec.output_models import TurnResult
from resumegpt.utils.logger import JSONLLogger
from resumegpt.workflows.conversation import MessageTooLong, ResumeConversation
from resumegpt.workflows.cover_letter import CoverLetterWriter
from resumegpt.workflows.sync import SessionRegistry

CONFIG_PATH = "config/chat.yml"

# =====================================================================
# REQUEST MODELS
# =====================================================================

class ChatRequest(BaseModel):
    chatId: str
    message: str

class RenameRequest(BaseModel):
    newName: str = Field(min_length=1, max_length=200)

class TemplateRequest(BaseModel):
    template: Literal["classic", "modern", "minimal"]

class PDFRequest(BaseModel):
    chatId: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    template: Optional[Literal["classic", "modern", "minimal"]] = None

class CoverLetterRequest(BaseModel):
    chatId: Optional[str] = None
    resumeData: Optional[Dict[str, Any]] = None
    jobDescription: str = ""
    companyName: str
    jobTitle: str
    recipientName: Optional[str] = None
    tone: Literal["professional", "friendly", "enthusiastic"] = "professional"

class CoverLetterPDFRequest(BaseModel):
    data: Dict[str, Any]


def get_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """The gateway in front of this service authenticates and forwards the user id."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id


def create_app(
    config: Optional[ChatConfig] = None,
    llm: Optional[Runnable] = None,
    store: Optional[SessionStore] = None,
    logger: Optional[JSONLLogger] = None,
) -> FastAPI:
    load_dotenv()

    if config is None:
        config = ChatConfig.from_yaml(CONFIG_PATH)
    if logger is None:
        logger = JSONLLogger(log_path=config.log_path)
    if store is None:
        store = JSONFileSessionStore(data_path=config.data_path)
    if llm is None:
        llm = build_chat_model(config.model)

    agent_factory = SpecialisedAgentFactory(llm=llm)
    validator = PatchValidator(Resume, logger=logger)
    cover_letter_validator = PatchValidator(CoverLetter, logger=logger)
    registry = SessionRegistry(
        store=store,
        validator=validator,
        logger=logger,
        max_history_turns=config.max_history_turns,
        max_sessions=config.max_live_sessions,
    )
    conversation = ResumeConversation(agent_factory, config, logger=logger, validator=validator)
    cover_letter_writer = CoverLetterWriter(agent_factory, config, logger=logger)

    app = FastAPI(title="ResumeGPT")

    # Allow CORS for the frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def check_size(payload: Any) -> None:
        if len(json.dumps(payload, ensure_ascii=False).encode("utf-8")) > config.max_document_size:
            raise HTTPException(status_code=413, detail="Document too large")

    def session_id_or_400(chat_id: str) -> str:
        try:
            return validate_session_id(chat_id)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    def load_session(chat_id: str, user_id: str):
        try:
            return registry.get(session_id_or_400(chat_id), user_id)
        except PersistenceFailure as e:
            raise HTTPException(status_code=503, detail=str(e))

    def render_pdf(source: str, filename: str) -> Response:
        try:
            pdf = compile_latex(source, timeout=config.latex_timeout_seconds)
        except RenderError as e:
            status = 408 if e.timed_out else 500
            raise HTTPException(status_code=status, detail=f"PDF generation failed: {e}")
        return Response(
            content=pdf,
            media_type="application/pdf",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )

    # =====================================================================
    # CHAT ROUTES
    # =====================================================================

    @app.post("/chat", response_model=TurnResult)
    def chat(request: ChatRequest, user_id: str = Depends(get_user_id)):
        session = load_session(request.chatId, user_id)
        try:
            return conversation.run_turn(session, request.message)
        except MessageTooLong as e:
            raise HTTPException(status_code=400, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except GenerationInProgress as e:
            raise HTTPException(status_code=409, detail=str(e))

    @app.get("/chats")
    def list_chats(user_id: str = Depends(get_user_id)):
        try:
            records = store.list_sessions(user_id)
        except PersistenceFailure as e:
            raise HTTPException(status_code=503, detail=str(e))
        return {"chats": [{"id": r.id, "title": r.title} for r in records]}

    @app.get("/chats/{chat_id}")
    def get_chat(chat_id: str, user_id: str = Depends(get_user_id)):
        try:
            record = store.require_session(session_id_or_400(chat_id), user_id)
        except SessionNotFound:
            raise HTTPException(status_code=404, detail="Chat not found")
        except PersistenceFailure as e:
            raise HTTPException(status_code=503, detail=str(e))
        session = load_session(chat_id, user_id)
        return {
            "id": record.id,
            "title": record.title,
            "template": record.template,
            "resumeData": session.document.model_dump(),
            "messages": [turn.model_dump() for turn in session.history],
            "status": session.status.value,
        }

    @app.put("/chats/{chat_id}")
    def rename_chat(chat_id: str, request: RenameRequest, user_id: str = Depends(get_user_id)):
        if not store.rename_session(session_id_or_400(chat_id), user_id, request.newName):
            raise HTTPException(status_code=404, detail="Chat not found")
        return {"message": "Chat updated successfully"}

    @app.delete("/chats/{chat_id}")
    def delete_chat(chat_id: str, user_id: str = Depends(get_user_id)):
        chat_id = session_id_or_400(chat_id)
        if not store.delete_session(chat_id, user_id):
            raise HTTPException(status_code=404, detail="Chat not found")
        registry.forget(chat_id, user_id)
        return {"message": "Chat deleted successfully"}

    @app.patch("/chats/{chat_id}/document")
    def edit_document(chat_id: str, edit: Dict[str, Any], user_id: str = Depends(get_user_id)):
        check_size(edit)
        session = load_session(chat_id, user_id)
        try:
            document, warnings = session.apply_manual_edit(edit, validator)
        except MalformedOutput as e:
            raise HTTPException(status_code=400, detail=str(e))
        saved = session.persist()
        return {
            "resumeData": document.model_dump(),
            "warnings": [w.to_dict() for w in warnings],
            "saved": saved,
        }

    @app.put("/chats/{chat_id}/template")
    def set_template(chat_id: str, request: TemplateRequest, user_id: str = Depends(get_user_id)):
        if not store.set_template(session_id_or_400(chat_id), user_id, request.template):
            raise HTTPException(status_code=404, detail="Chat not found")
        return {"template": request.template}

    # =====================================================================
    # DOCUMENT ROUTES
    # =====================================================================

    @app.post("/generate_pdf")
    def generate_pdf(request: PDFRequest, user_id: str = Depends(get_user_id)):
        if request.data is not None:
            check_size(request.data)
            resume, _ = validator.coerce(request.data)
        elif request.chatId is not None:
            resume = load_session(request.chatId, user_id).document
        else:
            raise HTTPException(status_code=400, detail="Either chatId or data is required")

        template = request.template or config.default_template
        return render_pdf(render_resume_latex(resume, template), "resume.pdf")

    @app.post("/cover_letter/generate")
    def generate_cover_letter(request: CoverLetterRequest, user_id: str = Depends(get_user_id)):
        if request.resumeData is not None:
            check_size(request.resumeData)
            resume, _ = validator.coerce(request.resumeData)
        elif request.chatId is not None:
            resume = load_session(request.chatId, user_id).document
        else:
            raise HTTPException(status_code=400, detail="Either chatId or resumeData is required")

        try:
            letter, warnings = cover_letter_writer.generate(
                resume=resume,
                job_description=request.jobDescription,
                company_name=request.companyName,
                job_title=request.jobTitle,
                recipient_name=request.recipientName,
                tone=request.tone,
                owner_id=user_id,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except MalformedOutput as e:
            raise HTTPException(status_code=502, detail=f"Cover letter generation failed: {e}")
        except ModelUnavailable as e:
            raise HTTPException(status_code=503, detail=str(e))

        return {
            "coverLetterData": letter.model_dump(),
            "warnings": [w.to_dict() for w in warnings],
        }

    @app.post("/generate_cover_letter_pdf")
    def generate_cover_letter_pdf(request: CoverLetterPDFRequest, user_id: str = Depends(get_user_id)):
        check_size(request.data)
        letter, _ = cover_letter_validator.coerce(request.data)
        return render_pdf(render_cover_letter_latex(letter), "cover-letter.pdf")

    # =====================================================================
    # SERVICE ROUTES
    # =====================================================================

    @app.get("/health")
    def health():
        return {"status": "ok", "templates": list(TEMPLATES)}

    @app.get("/logs")
    def get_logs(user_id: str = Depends(get_user_id)):
        """Return the caller's own entries from the diagnostics log file"""
        content = logger.read_for_owner(user_id)
        return {"logs": content or "No log entries yet."}

    return app


if __name__ == "__main__":
    import uvicorn

    print("\n" + "="*60)
    print("ResumeGPT API available at: http://localhost:8000")
    print("="*60 + "\n")

    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
