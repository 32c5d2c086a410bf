from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Callable, Dict, List, Optional

from dateutil import parser as date_parser
from dotenv import load_dotenv

from fastapi import FastAPI, Header, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from .config import settings
from .errors import SessionBusyError, SessionClosedError, SlotParseError
from .schedule.controller import SlotSessionController
from .schedule.transcoder import parse_clock
from .schemas import (
    BufferDateUpdate,
    DayView,
    EditBufferView,
    Notification,
    OperationResponse,
    RowUpdate,
    ScheduleView,
    SessionStartResponse,
)
from .services.doctors import DoctorScheduleService, ScheduleService
from .store import InMemoryStore, ViewSession

logger = logging.getLogger(__name__)

ServiceFactory = Callable[[Optional[str]], ScheduleService]


class ConnectionManager:
    def __init__(self) -> None:
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, session_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        self.active_connections.setdefault(session_id, []).append(websocket)

    def disconnect(self, session_id: str, websocket: WebSocket) -> None:
        connections = self.active_connections.get(session_id, [])
        if websocket in connections:
            connections.remove(websocket)
        if not connections:
            self.active_connections.pop(session_id, None)

    async def broadcast(self, session_id: str, payload: dict) -> None:
        for websocket in list(self.active_connections.get(session_id, [])):
            await websocket.send_json(payload)


class SessionNotifier:
    """Records notifications on the view session and pushes them to its websockets."""

    def __init__(self, session_id: str, store: InMemoryStore, manager: ConnectionManager) -> None:
        self.session_id = session_id
        self.store = store
        self.manager = manager

    async def _emit(self, level: str, message: str) -> None:
        notification = Notification(id=uuid.uuid4().hex, level=level, message=message)
        self.store.add_notification(self.session_id, notification)
        await self.manager.broadcast(
            self.session_id,
            {"type": "notification", "payload": notification.model_dump(mode="json")},
        )

    async def success(self, message: str) -> None:
        await self._emit("success", message)

    async def error(self, message: str) -> None:
        await self._emit("error", message)

    async def info(self, message: str) -> None:
        await self._emit("info", message)


def default_service_factory(token: Optional[str]) -> ScheduleService:
    return DoctorScheduleService(
        settings.backend_base_url,
        token=token or settings.backend_token,
        timeout=settings.request_timeout,
    )


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _parse_date(value: str) -> date:
    # Accepts ISO dates as well as the long display form.
    try:
        return date_parser.parse(value, fuzzy=True).date()
    except (ValueError, OverflowError) as exc:
        raise SlotParseError(f"Invalid date {value!r}") from exc


def build_view(controller: SlotSessionController) -> ScheduleView:
    return ScheduleView(
        doctor_id=controller.doctor_id,
        phase=controller.phase.value,
        is_loading=controller.is_loading,
        is_saving=controller.is_saving,
        load_error=controller.load_error,
        days=[DayView.from_day(day) for day in controller.days],
        buffer=EditBufferView.from_buffer(controller.buffer),
    )


def create_app(
    service_factory: Optional[ServiceFactory] = None,
    store: Optional[InMemoryStore] = None,
) -> FastAPI:
    """Create the schedule view app.

    Args:
        service_factory: Builds the backend client for a new view from the
            caller's bearer token. Defaults to :class:`DoctorScheduleService`.
        store: Registry of open views. A fresh in-memory store by default.
    """
    logging.basicConfig(level=settings.log_level)

    app = FastAPI(title="Clinic Slots API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.service_factory = service_factory or default_service_factory
    app.state.store = store or InMemoryStore()
    app.state.manager = ConnectionManager()

    def _session(session_id: str) -> ViewSession:
        try:
            return app.state.store.get_session(session_id)
        except KeyError:
            raise HTTPException(status_code=404, detail="Session not found") from None

    def _controller(session_id: str) -> SlotSessionController:
        return _session(session_id).controller

    @app.exception_handler(SessionBusyError)
    async def _busy(request: Request, exc: SessionBusyError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(SessionClosedError)
    async def _closed(request: Request, exc: SessionClosedError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(IndexError)
    async def _missing_index(request: Request, exc: IndexError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(SlotParseError)
    async def _unparseable(request: Request, exc: SlotParseError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.post("/doctors/{doctor_id}/schedule/sessions", response_model=SessionStartResponse)
    async def open_session(
        doctor_id: int, authorization: Optional[str] = Header(default=None)
    ) -> SessionStartResponse:
        store: InMemoryStore = app.state.store
        session = store.create_session(doctor_id)
        session.controller = SlotSessionController(
            doctor_id,
            app.state.service_factory(_bearer_token(authorization)),
            SessionNotifier(session.session_id, store, app.state.manager),
        )
        await session.controller.load()
        return SessionStartResponse(
            session_id=session.session_id,
            ws_url=f"{settings.ws_base_url}/sessions/{session.session_id}/events",
            view=build_view(session.controller),
        )

    @app.get("/sessions/{session_id}", response_model=ScheduleView)
    async def get_view(session_id: str) -> ScheduleView:
        return build_view(_controller(session_id))

    @app.post("/sessions/{session_id}/reload", response_model=OperationResponse)
    async def reload(session_id: str) -> OperationResponse:
        controller = _controller(session_id)
        ok = await controller.load()
        return OperationResponse(ok=ok, view=build_view(controller))

    @app.post("/sessions/{session_id}/days/{day_index}/edit", response_model=ScheduleView)
    async def edit_day(session_id: str, day_index: int) -> ScheduleView:
        controller = _controller(session_id)
        await controller.edit_day(day_index)
        return build_view(controller)

    @app.post(
        "/sessions/{session_id}/days/{day_index}/windows/{window_index}/toggle",
        response_model=OperationResponse,
    )
    async def toggle_window(session_id: str, day_index: int, window_index: int) -> OperationResponse:
        controller = _controller(session_id)
        ok = await controller.toggle(day_index, window_index)
        return OperationResponse(ok=ok, view=build_view(controller))

    @app.put("/sessions/{session_id}/buffer/date", response_model=ScheduleView)
    async def set_buffer_date(session_id: str, payload: BufferDateUpdate) -> ScheduleView:
        controller = _controller(session_id)
        controller.set_date(_parse_date(payload.date))
        return build_view(controller)

    @app.post("/sessions/{session_id}/buffer/rows", response_model=ScheduleView, status_code=201)
    async def add_row(session_id: str) -> ScheduleView:
        controller = _controller(session_id)
        controller.add_row()
        return build_view(controller)

    @app.patch("/sessions/{session_id}/buffer/rows/{index}", response_model=ScheduleView)
    async def update_row(session_id: str, index: int, payload: RowUpdate) -> ScheduleView:
        controller = _controller(session_id)
        # Parse everything first so a bad value leaves the row untouched.
        start = parse_clock(payload.start_time) if payload.start_time is not None else None
        end = parse_clock(payload.end_time) if payload.end_time is not None else None
        if start is not None:
            controller.set_time(index, "start_time", start)
        if end is not None:
            controller.set_time(index, "end_time", end)
        if payload.capacity is not None:
            controller.set_capacity(index, payload.capacity)
        return build_view(controller)

    @app.delete("/sessions/{session_id}/buffer/rows/{index}", response_model=OperationResponse)
    async def remove_row(session_id: str, index: int) -> OperationResponse:
        controller = _controller(session_id)
        ok = controller.remove_row(index)
        return OperationResponse(ok=ok, view=build_view(controller))

    @app.post("/sessions/{session_id}/buffer/reset", response_model=ScheduleView)
    async def reset_buffer(session_id: str) -> ScheduleView:
        controller = _controller(session_id)
        controller.cancel_edit()
        return build_view(controller)

    @app.post("/sessions/{session_id}/submit", response_model=OperationResponse)
    async def submit(session_id: str) -> OperationResponse:
        controller = _controller(session_id)
        ok = await controller.submit()
        return OperationResponse(ok=ok, view=build_view(controller))

    @app.get("/sessions/{session_id}/notifications", response_model=list[Notification])
    async def list_notifications(session_id: str) -> list[Notification]:
        _session(session_id)
        return app.state.store.list_notifications(session_id)

    @app.delete("/sessions/{session_id}", status_code=204)
    async def close_session(session_id: str) -> None:
        _session(session_id)
        app.state.store.close_session(session_id)
        await app.state.manager.broadcast(
            session_id, {"type": "session_closed", "payload": {"session_id": session_id}}
        )

    @app.websocket("/sessions/{session_id}/events")
    async def session_events(session_id: str, websocket: WebSocket) -> None:
        manager: ConnectionManager = app.state.manager
        await manager.connect(session_id, websocket)
        await manager.broadcast(
            session_id,
            {
                "type": "status",
                "payload": {"session_id": session_id, "state": "connected"},
            },
        )
        try:
            while True:
                message = await websocket.receive_json()
                if message.get("type") == "ping":
                    await websocket.send_json(
                        {"type": "pong", "payload": {"at": datetime.now(timezone.utc).isoformat()}}
                    )
        except WebSocketDisconnect:
            manager.disconnect(session_id, websocket)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("clinic_slots.main:app", host="0.0.0.0", port=8080, reload=True)
