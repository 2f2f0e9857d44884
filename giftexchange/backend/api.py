"""FastAPI endpoints for signup, custody receipts, pairing and redistribution."""

from __future__ import annotations

from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .errors import (
    AssignmentIntegrityError,
    DuplicateSignup,
    GiftExchangeError,
    InsufficientParticipants,
    InvalidObservation,
    InvalidSignup,
    NoAssignment,
    RedistributionInProgress,
    TransientFetchError,
    UnknownParticipant,
)
from .models import Participant, StatusReport
from .security import verify_token
from .service import GiftExchangeService, build_context


class SignupRequest(BaseModel):
    participant_id: str = Field(min_length=1, max_length=100)
    display_name: str = Field(min_length=1, max_length=200)
    trade_link: str = Field(min_length=1, max_length=500)
    interests: list[str] = Field(default_factory=list)


class ParticipantResponse(BaseModel):
    participant: dict[str, Any]


class BriefingResponse(BaseModel):
    briefing: dict[str, Any]


class ReceiptRequest(BaseModel):
    items: list[dict[str, Any]] = Field(min_length=1)


class ReceiptResponse(BaseModel):
    recorded: list[dict[str, Any]]


class RollRequest(BaseModel):
    ids: list[str] | None = None


class RollResponse(BaseModel):
    assignment: dict[str, str]


class RedistributionResponse(BaseModel):
    transfers: list[dict[str, Any]]
    issues: list[dict[str, Any]]


class ResetRequest(BaseModel):
    clear_participants: bool = False


_STATUS_CODES: dict[type[GiftExchangeError], int] = {
    UnknownParticipant: 404,
    DuplicateSignup: 409,
    InsufficientParticipants: 409,
    NoAssignment: 409,
    RedistributionInProgress: 409,
    InvalidSignup: 422,
    InvalidObservation: 422,
    TransientFetchError: 503,
    AssignmentIntegrityError: 500,
}


def _status_for(exc: GiftExchangeError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in _STATUS_CODES:
            return _STATUS_CODES[error_type]
    return 400


def _participant_payload(participant: Participant) -> dict[str, Any]:
    # Recipient identity stays private to the giver; it is not echoed here.
    return {
        "id": participant.id,
        "displayName": participant.display_name,
        "interests": participant.interests,
        "hasAssignment": participant.assigned_recipient_id is not None,
        "receivedItems": [item.to_dict() for item in participant.received_items],
    }


def _status_payload(report: StatusReport) -> dict[str, Any]:
    last_run = None
    if report.last_run is not None:
        last_run = {
            "finishedAt": report.last_run.finished_at.isoformat(),
            "transferCount": report.last_run.transfer_count,
            "itemCount": report.last_run.item_count,
            "issueCount": report.last_run.issue_count,
        }
    return {
        "participantCount": report.participant_count,
        "assignedCount": report.assigned_count,
        "pendingItemCount": report.pending_item_count,
        "withoutDestination": report.without_destination,
        "redistributionState": report.redistribution_state,
        "lastRun": last_run,
    }


def create_app(
    service: GiftExchangeService | None = None,
    admin_token_hash: str | None = None,
    server_salt: str | None = None,
) -> FastAPI:
    app = FastAPI(title="Gift Exchange API", version="0.1.0")
    exchange = service if service is not None else GiftExchangeService(build_context())
    settings = exchange.context.settings
    expected_hash = admin_token_hash if admin_token_hash is not None else settings.admin_token_hash
    salt = server_salt if server_salt is not None else settings.server_salt
    app.state.exchange = exchange

    @app.exception_handler(GiftExchangeError)
    async def handle_exchange_error(request: Request, exc: GiftExchangeError) -> JSONResponse:
        return JSONResponse(status_code=_status_for(exc), content={"detail": str(exc)})

    def get_service() -> GiftExchangeService:
        return exchange

    def require_admin(x_admin_token: str | None = Header(default=None)) -> None:
        if x_admin_token is None or not verify_token(x_admin_token, expected_hash, salt):
            raise HTTPException(status_code=403, detail="Admin token required")

    @app.post("/api/participants", response_model=ParticipantResponse)
    def signup(
        payload: SignupRequest,
        local_service: GiftExchangeService = Depends(get_service),
    ) -> ParticipantResponse:
        participant = local_service.signup(
            participant_id=payload.participant_id,
            display_name=payload.display_name,
            trade_link=payload.trade_link,
            interests=payload.interests,
        )
        return ParticipantResponse(participant=_participant_payload(participant))

    @app.get("/api/participants/{participant_id}", response_model=ParticipantResponse)
    def get_participant(
        participant_id: str,
        local_service: GiftExchangeService = Depends(get_service),
    ) -> ParticipantResponse:
        participant = local_service.get_participant(participant_id)
        return ParticipantResponse(participant=_participant_payload(participant))

    @app.get("/api/participants/{participant_id}/recipient", response_model=BriefingResponse)
    def recipient_briefing(
        participant_id: str,
        local_service: GiftExchangeService = Depends(get_service),
    ) -> BriefingResponse:
        return BriefingResponse(briefing=local_service.recipient_briefing(participant_id).to_dict())

    @app.post("/api/participants/{participant_id}/receipts", response_model=ReceiptResponse)
    def record_receipt(
        participant_id: str,
        payload: ReceiptRequest,
        local_service: GiftExchangeService = Depends(get_service),
    ) -> ReceiptResponse:
        fingerprints = local_service.record_receipt(participant_id, payload.items)
        return ReceiptResponse(recorded=[fingerprint.to_dict() for fingerprint in fingerprints])

    @app.post("/api/assignments", response_model=RollResponse, dependencies=[Depends(require_admin)])
    def roll_assignment(
        payload: RollRequest | None = None,
        local_service: GiftExchangeService = Depends(get_service),
    ) -> RollResponse:
        ids = payload.ids if payload is not None else None
        return RollResponse(assignment=local_service.roll_assignment(ids))

    @app.post("/api/redistributions", response_model=RedistributionResponse, dependencies=[Depends(require_admin)])
    async def run_redistribution(
        local_service: GiftExchangeService = Depends(get_service),
    ) -> RedistributionResponse:
        result = await local_service.run_redistribution()
        return RedistributionResponse(
            transfers=[transfer.to_dict() for transfer in result.transfers],
            issues=[issue.to_dict() for issue in result.issues],
        )

    @app.post("/api/admin/reset", dependencies=[Depends(require_admin)])
    def reset(
        payload: ResetRequest | None = None,
        local_service: GiftExchangeService = Depends(get_service),
    ) -> dict[str, Any]:
        clear_participants = payload.clear_participants if payload is not None else False
        local_service.reset(clear_participants=clear_participants)
        return {"reset": True, "clearParticipants": clear_participants}

    @app.get("/api/status")
    def status(local_service: GiftExchangeService = Depends(get_service)) -> dict[str, Any]:
        return _status_payload(local_service.status_report())

    return app
