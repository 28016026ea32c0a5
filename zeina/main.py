from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from .agents.assistant import ConversationSession
from .appointments import AppointmentStore, BookingChannel
from .catalog import SERVICES, ExpertCatalog
from .config import Settings, settings as default_settings
from .db.repository import Repositories, build_repositories
from .errors import (
    AppointmentNotFoundError,
    InvalidStatusTransitionError,
    SlotUnavailableError,
    StoreCorruptionError,
    StoreWriteError,
    UserNotFoundError,
)
from .ratings import RatingAggregator
from .schemas import (
    Appointment,
    BookingRequest,
    CatalogService,
    ChatReply,
    Expert,
    LanguageRequest,
    MessageRequest,
    ProfileRequest,
    RatingSummary,
    Review,
    ReviewRequest,
    SessionStartRequest,
    SessionStartResponse,
    StatusChangeRequest,
    ToolCallEvent,
    UserProfile,
)
from .services.gemini import GeminiImageGenerator, GeminiModelClient, ImageGenerator, ModelClient
from .store import SessionRegistry
from .tools.dispatcher import ToolDispatcher
from .tools.slots import build_slot_policy, normalize_date, normalize_time

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _error_response(status_code: int):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    return handler


def create_app(
    settings: Optional[Settings] = None,
    repositories: Optional[Repositories] = None,
    model: Optional[ModelClient] = None,
    image_generator: Optional[ImageGenerator] = None,
) -> FastAPI:
    settings = settings or default_settings
    repositories = repositories or build_repositories(settings)
    model = model or GeminiModelClient(settings.gemini_api_key, settings.gemini_model)
    image_generator = image_generator or GeminiImageGenerator(
        settings.gemini_api_key, settings.gemini_image_model
    )

    experts = ExpertCatalog()
    ratings = RatingAggregator(repositories.reviews)
    appointments = AppointmentStore(
        repositories.appointments,
        slot_policy=build_slot_policy(settings.slot_conflict_buffer_minutes),
        meeting_link_template=settings.meeting_link_template,
    )
    dispatcher = ToolDispatcher(appointments, experts, image_generator)

    def new_session(language: Optional[str] = None, user_id: Optional[str] = None) -> ConversationSession:
        return ConversationSession(
            model, dispatcher, experts, ratings, settings, language=language, user_id=user_id
        )

    registry = SessionRegistry(new_session)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        registry.close_all()

    app = FastAPI(title="Zeina Assistant API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(AppointmentNotFoundError, _error_response(404))
    app.add_exception_handler(UserNotFoundError, _error_response(404))
    app.add_exception_handler(InvalidStatusTransitionError, _error_response(409))
    app.add_exception_handler(SlotUnavailableError, _error_response(409))
    app.add_exception_handler(StoreCorruptionError, _error_response(503))
    app.add_exception_handler(StoreWriteError, _error_response(503))

    app.state.settings = settings
    app.state.registry = registry
    app.state.appointments = appointments
    app.state.ratings = ratings

    def _session(session_id: str) -> ConversationSession:
        session = registry.get(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return session

    def _user(user_id: str) -> UserProfile:
        user = repositories.users.get(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def _expert_summary(expert: Expert) -> RatingSummary:
        return ratings.summary(expert.id, expert.rating, settings.expert_seed_review_count)

    def _service_summary(service: CatalogService) -> RatingSummary:
        return ratings.summary(service.id, service.rating, service.review_count)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.post("/session/start", response_model=SessionStartResponse)
    def start_session(payload: Optional[SessionStartRequest] = None) -> SessionStartResponse:
        payload = payload or SessionStartRequest()
        session = registry.create_session(language=payload.language, user_id=payload.user_id)
        if payload.user_id:
            profile = repositories.users.get(payload.user_id)
            if profile is not None:
                session.set_user_profile(profile)
        return SessionStartResponse(
            session_id=session.session_id,
            language=session.language,
            user_id=session.user_id,
        )

    @app.post("/session/{session_id}/messages", response_model=ChatReply)
    async def send_message(session_id: str, payload: MessageRequest) -> ChatReply:
        return await _session(session_id).send_message(payload.text)

    @app.put("/session/{session_id}/language", response_model=SessionStartResponse)
    async def set_language(session_id: str, payload: LanguageRequest) -> SessionStartResponse:
        session = _session(session_id)
        session.set_language(payload.language)
        return SessionStartResponse(
            session_id=session.session_id, language=session.language, user_id=session.user_id
        )

    @app.put("/session/{session_id}/profile", response_model=SessionStartResponse)
    def set_profile(session_id: str, payload: ProfileRequest) -> SessionStartResponse:
        session = _session(session_id)
        session.set_user_profile(_user(payload.user_id) if payload.user_id else None)
        return SessionStartResponse(
            session_id=session.session_id, language=session.language, user_id=session.user_id
        )

    @app.delete("/session/{session_id}")
    async def close_session(session_id: str) -> dict:
        if not registry.close_session(session_id):
            raise HTTPException(status_code=404, detail="Session not found")
        return {"session_id": session_id, "closed": True}

    @app.get("/session/{session_id}/tools", response_model=list[ToolCallEvent])
    async def get_tool_calls(session_id: str) -> list[ToolCallEvent]:
        _session(session_id)
        return registry.list_tool_calls(session_id)

    @app.get("/appointments/user/{user_id}", response_model=list[Appointment])
    def list_user_appointments(user_id: str) -> list[Appointment]:
        return appointments.list_for_user(user_id)

    @app.get("/appointments/expert/{expert_id}", response_model=list[Appointment])
    def list_expert_appointments(expert_id: str) -> list[Appointment]:
        return appointments.list_for_expert(expert_id)

    @app.post("/appointments", response_model=Appointment, status_code=201)
    def create_appointment(payload: BookingRequest) -> Appointment:
        expert = experts.get(payload.expert_id)
        if expert is None:
            raise HTTPException(status_code=404, detail=f"Expert {payload.expert_id!r} not found")
        try:
            date, time = normalize_date(payload.date), normalize_time(payload.time)
        except (ValueError, OverflowError) as exc:
            raise HTTPException(status_code=422, detail="Invalid date or time") from exc
        return appointments.book(
            user_id=payload.user_id,
            expert=expert,
            date=date,
            time=time,
            channel=BookingChannel.WEB,
            notes=payload.notes,
        )

    @app.post("/appointments/{appointment_id}/status", response_model=Appointment)
    def change_status(appointment_id: str, payload: StatusChangeRequest) -> Appointment:
        return appointments.update_status(appointment_id, payload.status)

    @app.post("/reviews", response_model=Review, status_code=201)
    def submit_review(payload: ReviewRequest) -> Review:
        return ratings.submit_review(
            item_id=payload.item_id,
            user_id=payload.user_id,
            user_name=payload.user_name,
            rating=payload.rating,
            comment=payload.comment,
        )

    @app.get("/ratings/{item_id}", response_model=RatingSummary)
    def get_rating(item_id: str) -> RatingSummary:
        expert = experts.get(item_id)
        if expert is not None:
            return _expert_summary(expert)
        for service in SERVICES:
            if service.id == item_id:
                return _service_summary(service)
        raise HTTPException(status_code=404, detail=f"Unknown catalog item {item_id!r}")

    @app.get("/experts", response_model=list[Expert])
    def list_experts(language: str = "en") -> list[Expert]:
        return [
            expert.model_copy(update={"rating": _expert_summary(expert).rating})
            for expert in experts.experts(language)
        ]

    @app.get("/services", response_model=list[CatalogService])
    def list_services() -> list[CatalogService]:
        listed = []
        for service in SERVICES:
            summary = _service_summary(service)
            listed.append(service.model_copy(update={"rating": summary.rating, "review_count": summary.count}))
        return listed

    @app.get("/users/current", response_model=UserProfile)
    def get_current_user() -> UserProfile:
        user_id = repositories.users.get_current_user_id()
        if user_id is None:
            raise HTTPException(status_code=404, detail="No user is signed in")
        return _user(user_id)

    @app.put("/users/current", response_model=UserProfile)
    def set_current_user(profile: UserProfile) -> UserProfile:
        saved = repositories.users.save(profile)
        repositories.users.set_current_user_id(saved.id)
        logger.info("Current user set to %s", saved.id)
        return saved

    return app


configure_logging(default_settings)
app = create_app()
