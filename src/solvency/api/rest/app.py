"""
REST API for the solvency service.

Writes (ownership submission, ownership finalization, solvency submission)
need a bearer token whose subject is the caller; reads are open. Domain
errors map to HTTP statuses in ``STATUS_FOR_ERROR``.
"""

import logging

logger = logging.getLogger(__name__)
import secrets
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field, field_validator, model_validator
import uvicorn

from ...config import SolvencyConfig
from ...core.types import AddressOwnershipProof, Asset
from ...crypto.merkle_sum import InclusionWitness, MerkleSumNode
from ...errors.exceptions import (
    AuthorizationError,
    ConfigurationError,
    DuplicateError,
    InvalidStateError,
    NotFoundError,
    ProofVerificationError,
    SolvencyError,
    ValidationError,
)
from ...service import SolvencyService
from ..auth import JWTAuth, TokenError

STATUS_FOR_ERROR = (
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (DuplicateError, 409),
    (InvalidStateError, 409),
    (ProofVerificationError, 422),
    (ValidationError, 400),
    (ConfigurationError, 500),
)


def _hex_bytes(value: str, field_name: str) -> bytes:
    try:
        data = bytes.fromhex(value[2:] if value.startswith("0x") else value)
    except ValueError:
        raise ValueError(f"{field_name} must be hex encoded")
    if not data:
        raise ValueError(f"{field_name} cannot be empty")
    return data


# Request/Response models
class OwnershipProofModel(BaseModel):
    """One address-ownership attestation."""
    address: str = Field(..., min_length=1)
    chain_id: str = Field(..., min_length=1)
    signature: str = Field(..., description="Hex-encoded signature")
    message: str = Field(..., description="Hex-encoded signed message")

    @field_validator("signature", "message")
    @classmethod
    def validate_hex(cls, v):
        _hex_bytes(v, "value")
        return v

    def to_proof(self) -> AddressOwnershipProof:
        return AddressOwnershipProof(
            address=self.address,
            chain_id=self.chain_id,
            signature=_hex_bytes(self.signature, "signature"),
            message=_hex_bytes(self.message, "message"),
        )


class OwnershipSubmitRequest(BaseModel):
    proofs: List[OwnershipProofModel]


class OwnershipFinalizeRequest(BaseModel):
    verified: bool
    reason: Optional[str] = None


class MerkleSumNodeModel(BaseModel):
    hash: str = Field(..., description="Hex-encoded 32-byte digest")
    sum: int = Field(..., ge=0)

    @field_validator("hash")
    @classmethod
    def validate_hash(cls, v):
        if len(v) != 64:
            raise ValueError("hash must be 64 hex characters")
        _hex_bytes(v, "hash")
        return v.lower()

    def to_node(self) -> MerkleSumNode:
        return MerkleSumNode.from_dict({"hash": self.hash, "sum": self.sum})


class AssetModel(BaseModel):
    name: str
    chain_id: str
    amount: int

    def to_asset(self) -> Asset:
        return Asset(name=self.name, chain_id=self.chain_id, amount=self.amount)


class SolvencySubmitRequest(BaseModel):
    """A snapshot commitment and the proof that it is solvent."""
    timestamp: int
    mst_root: MerkleSumNodeModel
    assets: List[AssetModel]
    proof: str = Field(..., description="Hex-encoded serialized proof")

    @field_validator("proof")
    @classmethod
    def validate_proof(cls, v):
        _hex_bytes(v, "proof")
        return v


class InclusionVerifyRequest(BaseModel):
    """Either a serialized proof or a raw witness."""
    timestamp: int
    proof: Optional[str] = Field(None, description="Hex-encoded serialized inclusion proof")
    witness: Optional[Dict[str, Any]] = None

    @model_validator(mode="after")
    def validate_one_of(self):
        if (self.witness is None) == (self.proof is None):
            raise ValueError("exactly one of proof or witness is required")
        return self


class InclusionVerifyResponse(BaseModel):
    timestamp: int
    valid: bool


def _error_response(status_code: int, error: str, message: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "timestamp": datetime.now().isoformat(),
            "details": details,
        },
    )


def create_app(
    service: Optional[SolvencyService] = None, auth: Optional[JWTAuth] = None
) -> FastAPI:
    """Build the API around ``service``; a default in-memory service is created if omitted."""
    service = service or SolvencyService()
    config = service.config
    if auth is None:
        secret = config.jwt_secret
        if not secret:
            secret = secrets.token_urlsafe(32)
            logger.warning("No JWT secret configured; generated an ephemeral one")
        auth = JWTAuth(secret, config.jwt_algorithm, config.jwt_ttl)

    app = FastAPI(
        title="Solvency API",
        description="Proof-of-solvency anchoring and inclusion verification",
        version="1.0.0",
    )
    app.state.service = service
    app.state.auth = auth

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    security = HTTPBearer(auto_error=False)

    # Authentication dependency
    async def get_caller(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    ) -> str:
        if credentials is None:
            raise HTTPException(status_code=401, detail="Missing bearer token")
        try:
            return auth.caller_of(credentials.credentials)
        except TokenError as e:
            raise HTTPException(status_code=401, detail=str(e))

    @app.get("/health")
    async def health_check():
        latest = service.ledger.latest()
        return {
            "status": "healthy",
            "records": len(service.ledger),
            "latest_timestamp": latest.timestamp if latest else None,
        }

    # Ownership endpoints
    @app.post("/v1/ownership", status_code=201)
    async def submit_ownership(request: OwnershipSubmitRequest, caller: str = Depends(get_caller)):
        """Submit address-ownership proofs."""
        entries = service.submit_proof_of_address_ownership(
            [item.to_proof() for item in request.proofs], caller
        )
        return {"entries": [entry.to_dict() for entry in entries]}

    @app.post("/v1/ownership/{address}/finalize")
    async def finalize_ownership(
        address: str, request: OwnershipFinalizeRequest, caller: str = Depends(get_caller)
    ):
        """Record an external verifier's verdict."""
        entry = service.finalize_ownership(address, request.verified, caller, request.reason)
        return entry.to_dict()

    @app.get("/v1/ownership/{address}")
    async def get_ownership(address: str):
        return service.get_ownership(address).to_dict()

    # Solvency endpoints
    @app.post("/v1/solvency", status_code=201)
    async def submit_solvency(request: SolvencySubmitRequest, caller: str = Depends(get_caller)):
        """Anchor a snapshot after verifying its solvency proof."""
        record = service.submit_proof_of_solvency(
            request.mst_root.to_node(),
            [asset.to_asset() for asset in request.assets],
            _hex_bytes(request.proof, "proof"),
            request.timestamp,
            caller,
        )
        return record.to_dict()

    @app.get("/v1/solvency/{timestamp}")
    async def get_solvency_record(timestamp: int):
        return service.get_record(timestamp).to_dict()

    @app.get("/v1/solvency/{timestamp}/root")
    async def lookup_root(timestamp: int):
        return service.lookup_root(timestamp).to_dict()

    # Inclusion endpoints
    @app.post("/v1/inclusion/verify", response_model=InclusionVerifyResponse)
    async def verify_inclusion(request: InclusionVerifyRequest):
        """Check an inclusion proof against the root anchored at ``timestamp``."""
        if request.witness is not None:
            proof = InclusionWitness.from_dict(request.witness)
        else:
            proof = _hex_bytes(request.proof, "proof")
        valid = service.verify_proof_of_inclusion(proof, request.timestamp)
        return InclusionVerifyResponse(timestamp=request.timestamp, valid=valid)

    @app.get("/v1/stats")
    async def get_stats():
        return service.get_stats()

    # Error handlers
    @app.exception_handler(SolvencyError)
    async def solvency_exception_handler(request: Request, exc: SolvencyError):
        status_code = 500
        for error_type, code in STATUS_FOR_ERROR:
            if isinstance(exc, error_type):
                status_code = code
                break
        return _error_response(
            status_code,
            exc.error_code or exc.__class__.__name__,
            exc.message,
            {"type": exc.__class__.__name__, "category": exc.category.value},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return _error_response(exc.status_code, str(exc.detail), str(exc.detail))

    return app


def run(
    service: Optional[SolvencyService] = None, host: str = "127.0.0.1", port: int = 8000
) -> None:
    """Serve the API with uvicorn."""
    uvicorn.run(create_app(service), host=host, port=port)


def main() -> None:
    """Serve a service configured from ``SOLVENCY_*`` environment variables."""
    config = SolvencyConfig.from_env()
    with SolvencyService(config) as service:
        run(service)


if __name__ == "__main__":
    main()
