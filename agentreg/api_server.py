"""
AGENTREG API Server

FastAPI transport over an explicitly supplied Registry:
- Ed25519 signed requests resolve the caller identity (auth.py)
- Owner-gated mutations, open execution, read-only lookups
- Hash-chained notification log queries

Run: python -m agentreg serve
"""

import base64
import binascii
from typing import List, Literal, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import config
from .auth import KEY_HEADER, SIGNATURE_HEADER, SIGNED_AT_HEADER, SignatureReplayCache, authenticate_request
from .errors import AgentInactiveError, AgentNotFoundError, NotOwnerError, RegistryError
from .logging import get_logger
from .models import Agent, RegistryEvent
from .observability import instrument_app
from .registry import Registry

logger = get_logger("api")

_ERROR_STATUS = {
    AgentNotFoundError: status.HTTP_404_NOT_FOUND,
    NotOwnerError: status.HTTP_403_FORBIDDEN,
    AgentInactiveError: status.HTTP_409_CONFLICT,
}

# =============================================================================
# PYDANTIC MODELS
# =============================================================================


class RegisterRequest(BaseModel):
    capability_ref: str = Field(..., max_length=4096)


class RegisterResponse(BaseModel):
    agent_id: int
    owner: str


class CapabilityRequest(BaseModel):
    capability_ref: str = Field(..., max_length=4096)


class PayloadRequest(BaseModel):
    payload: str = ""
    encoding: Literal["utf-8", "hex", "base64"] = "utf-8"


class ActiveRequest(BaseModel):
    active: bool


class AgentResponse(BaseModel):
    agent_id: int
    owner: str
    capability_ref: str
    state_fingerprint: str
    active: bool
    created_at: str
    updated_at: str


class OwnerResponse(BaseModel):
    agent_id: int
    owner: str


class CountResponse(BaseModel):
    total: int


class StateResponse(BaseModel):
    agent_id: int
    state_fingerprint: str


class StatusResponse(BaseModel):
    agent_id: int
    active: bool


class ExecuteResponse(BaseModel):
    agent_id: int
    result_fingerprint: str


class EventResponse(BaseModel):
    seq: int
    kind: str
    agent_id: int
    data: dict
    timestamp: str
    prev_hash: Optional[str]
    hash: str


def _agent_response(agent: Agent) -> AgentResponse:
    return AgentResponse(**agent.to_dict())


def _event_response(event: RegistryEvent) -> EventResponse:
    return EventResponse(**event.to_dict())


def decode_payload(body: PayloadRequest) -> bytes:
    try:
        if body.encoding == "hex":
            return bytes.fromhex(body.payload)
        if body.encoding == "base64":
            return base64.b64decode(body.payload, validate=True)
    except (ValueError, binascii.Error):
        raise HTTPException(status_code=400, detail=f"Payload is not valid {body.encoding}")
    return body.payload.encode("utf-8")


# =============================================================================
# AUTH
# =============================================================================


async def get_caller(
    request: Request,
    x_agent_key: Optional[str] = Header(None, alias=KEY_HEADER),
    x_agent_signature: Optional[str] = Header(None, alias=SIGNATURE_HEADER),
    x_agent_signed_at: Optional[str] = Header(None, alias=SIGNED_AT_HEADER),
) -> str:
    body = await request.body()
    result = authenticate_request(
        method=request.method,
        path=request.url.path,
        body=body,
        public_key_hex=x_agent_key,
        signature_hex=x_agent_signature,
        signed_at=x_agent_signed_at,
        max_age_seconds=config.get_signature_max_age(),
        replay_cache=request.app.state.replay_cache,
    )
    if not result.success:
        raise HTTPException(status_code=401, detail=result.error)
    return result.address


# =============================================================================
# APP
# =============================================================================


def create_app(registry: Registry) -> FastAPI:
    """Build the HTTP transport around ``registry``."""
    app = FastAPI(
        title="AGENTREG -- Agent Registry",
        description="Owner-gated registry of agent capability and state fingerprints",
        version=config.AGENTREG_VERSION,
        docs_url="/docs",
    )
    app.state.registry = registry
    app.state.replay_cache = SignatureReplayCache(config.get_signature_max_age())

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type", KEY_HEADER, SIGNATURE_HEADER, SIGNED_AT_HEADER],
    )
    instrument_app(app)

    @app.exception_handler(RegistryError)
    async def registry_error_handler(request: Request, exc: RegistryError):
        status_code = _ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status_code, content={"detail": exc.message, "code": exc.code})

    # -------------------------------------------------------------------------
    # AGENTS
    # -------------------------------------------------------------------------

    @app.post("/agents", status_code=201, response_model=RegisterResponse)
    def register_agent(body: RegisterRequest, caller: str = Depends(get_caller)):
        agent_id = registry.register(body.capability_ref, caller)
        return RegisterResponse(agent_id=agent_id, owner=caller)

    @app.get("/agents", response_model=List[AgentResponse])
    def list_agents(
        owner: Optional[str] = None,
        limit: int = Query(config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
        offset: int = Query(0, ge=0),
    ):
        return [_agent_response(a) for a in registry.list_agents(owner=owner, limit=limit, offset=offset)]

    @app.get("/agents/count", response_model=CountResponse)
    def total_count():
        return CountResponse(total=registry.total_count())

    @app.get("/agents/{agent_id}", response_model=AgentResponse)
    def get_agent(agent_id: int):
        return _agent_response(registry.get_agent(agent_id))

    @app.get("/agents/{agent_id}/owner", response_model=OwnerResponse)
    def owner_of(agent_id: int):
        return OwnerResponse(agent_id=agent_id, owner=registry.owner_of(agent_id))

    @app.put("/agents/{agent_id}/capability", response_model=AgentResponse)
    def update_capability(agent_id: int, body: CapabilityRequest, caller: str = Depends(get_caller)):
        registry.update_capability(agent_id, body.capability_ref, caller)
        return _agent_response(registry.get_agent(agent_id))

    @app.put("/agents/{agent_id}/state", response_model=StateResponse)
    def update_state(agent_id: int, body: PayloadRequest, caller: str = Depends(get_caller)):
        fingerprint = registry.update_state(agent_id, decode_payload(body), caller)
        return StateResponse(agent_id=agent_id, state_fingerprint=fingerprint.hex())

    @app.put("/agents/{agent_id}/active", response_model=StatusResponse)
    def set_active(agent_id: int, body: ActiveRequest, caller: str = Depends(get_caller)):
        registry.set_active(agent_id, body.active, caller)
        return StatusResponse(agent_id=agent_id, active=body.active)

    @app.post("/agents/{agent_id}/execute", response_model=ExecuteResponse)
    def execute(agent_id: int, body: PayloadRequest):
        result = registry.execute(agent_id, decode_payload(body))
        return ExecuteResponse(agent_id=agent_id, result_fingerprint=result.hex())

    # -------------------------------------------------------------------------
    # NOTIFICATIONS
    # -------------------------------------------------------------------------

    @app.get("/events", response_model=List[EventResponse])
    def list_events(
        agent_id: Optional[int] = None,
        limit: int = Query(config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
        offset: int = Query(0, ge=0),
    ):
        return [_event_response(e) for e in registry.list_events(agent_id=agent_id, limit=limit, offset=offset)]

    @app.get("/events/verify")
    def verify_events():
        return {"valid": registry.verify_events()}

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "version": config.AGENTREG_VERSION,
            "agents": registry.total_count(),
            "hash_algorithm": registry.hasher.algorithm,
        }

    return app


def main() -> None:
    import uvicorn

    from .logging import configure_logging
    from .observability import configure_observability

    configure_logging(config.get_log_level())
    configure_observability()
    host, port = config.get_server_address()
    uvicorn.run(create_app(Registry.from_config()), host=host, port=port)


if __name__ == "__main__":
    main()
