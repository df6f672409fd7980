"""REST API adapter for the record store.

This module provides a FastAPI-based REST API over a CrmBackend.

Endpoints:
    GET /health - Health check
    GET /stats - Store statistics
    POST /customers - Create a customer
    GET /customers - Search customers (name, email, phone, page_size, page_number)
    GET|PUT|DELETE /customers/{customer_id}
    POST /interactions - Create an interaction
    GET|PUT|DELETE /interactions/{interaction_id}

Error mapping:
    NotFoundError -> 404, InvalidInputError -> 400, backend not started -> 503.
    Ids outside the u64 range are rejected by request validation with 422.
    Storage errors are left to FastAPI and surface as 500.

Usage:
    from crm_store.adapters.inbound.rest_api import create_app
    from crm_store.application import CrmBackend

    backend = CrmBackend(data_dir="/path/to/data")
    backend.start()

    app = create_app(backend)
    # Run with uvicorn: uvicorn app:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Path, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from crm_store import __version__
from crm_store.application import CrmBackend
from crm_store.domain.entities import Customer, Interaction, InteractionPayload
from crm_store.domain.errors import CrmError, InvalidInputError, NotFoundError
from crm_store.domain.value_objects import MAX_RECORD_KEY
from crm_store.infrastructure.logging import get_logger

logger = get_logger(__name__)

RecordId = Annotated[int, Path(ge=0, le=MAX_RECORD_KEY, description="Record id (u64)")]


class CustomerRequest(BaseModel):
    """Request body for creating or updating a customer."""

    name: str = Field(..., description="Customer name")
    email: str = Field(..., description="Email address, must contain '@'")
    phone: str = Field(..., description="Phone number, must contain a digit")


class CustomerResponse(BaseModel):
    """A stored customer."""

    id: int
    name: str
    email: str
    phone: str
    created_at: int = Field(..., description="Creation time in nanoseconds since the epoch")

    @classmethod
    def from_entity(cls, customer: Customer) -> CustomerResponse:
        return cls(
            id=customer.id,
            name=customer.name,
            email=customer.email,
            phone=customer.phone,
            created_at=customer.created_at,
        )


class InteractionRequest(BaseModel):
    """Request body for creating or updating an interaction."""

    customer_id: int = Field(
        ..., ge=0, le=MAX_RECORD_KEY, description="Customer the interaction belongs to"
    )
    interaction_type: str = Field(..., description="Free-form kind, e.g. 'call'")
    content: str = Field(..., description="Interaction notes")

    def to_payload(self) -> InteractionPayload:
        return InteractionPayload(
            customer_id=self.customer_id,
            interaction_type=self.interaction_type,
            content=self.content,
        )


class InteractionResponse(BaseModel):
    """A stored interaction."""

    id: int
    customer_id: int
    interaction_type: str
    content: str
    created_at: int
    updated_at: int | None = None

    @classmethod
    def from_entity(cls, interaction: Interaction) -> InteractionResponse:
        return cls(
            id=interaction.id,
            customer_id=interaction.customer_id,
            interaction_type=interaction.interaction_type,
            content=interaction.content,
            created_at=interaction.created_at,
            updated_at=interaction.updated_at,
        )


class SearchResponse(BaseModel):
    """One page of customer search results."""

    total_items: int = Field(..., description="Number of matches across all pages")
    items: list[CustomerResponse] = Field(default_factory=list)


class StatsResponse(BaseModel):
    """Response model for store statistics."""

    started: bool
    data_dir: str | None = None
    page_size: int
    customers: int = 0
    interactions: int = 0
    last_id: int = 0
    backing_pages: int = 0


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(..., description="Health status")
    version: str = Field(..., description="API version")


class ErrorResponse(BaseModel):
    """Body returned for record service errors."""

    kind: str
    detail: str


def create_app(backend: CrmBackend) -> FastAPI:
    """Create a FastAPI application for the record store.

    Args:
        backend: The backend to serve. It may be started after the app
            is created; until then record endpoints answer 503.

    Returns:
        A configured FastAPI application.
    """
    app = FastAPI(
        title="CRM Store API",
        description="REST API for customers and their interactions",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CrmError)
    async def crm_error_handler(request: Request, exc: CrmError) -> JSONResponse:
        if isinstance(exc, NotFoundError):
            status_code = 404
        elif isinstance(exc, InvalidInputError):
            status_code = 400
        else:
            status_code = 500
        logger.info(
            "request_rejected",
            path=request.url.path,
            kind=exc.kind,
            status_code=status_code,
        )
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(kind=exc.kind, detail=exc.msg).model_dump(),
        )

    def started_backend() -> CrmBackend:
        if not backend.is_started:
            raise HTTPException(status_code=503, detail="CRM backend not started")
        return backend

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="healthy" if backend.is_started else "unhealthy",
            version=__version__,
        )

    @app.get("/stats", response_model=StatsResponse, tags=["Stats"])
    async def get_stats(db: CrmBackend = Depends(started_backend)) -> StatsResponse:
        """Get store statistics."""
        return StatsResponse(**db.get_stats())

    # Customers

    @app.post("/customers", response_model=CustomerResponse, status_code=201, tags=["Customers"])
    async def add_customer(
        request: CustomerRequest, db: CrmBackend = Depends(started_backend)
    ) -> CustomerResponse:
        customer = db.add_customer(request.name, request.email, request.phone)
        return CustomerResponse.from_entity(customer)

    @app.get("/customers", response_model=SearchResponse, tags=["Customers"])
    async def search_customers(
        name: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        page_size: int = 10,
        page_number: int = 1,
        db: CrmBackend = Depends(started_backend),
    ) -> SearchResponse:
        """Search customers by exact name, email and phone.

        Range checks on page_size and page_number happen in the record
        service and answer 400.
        """
        result = db.search_customers(
            name=name,
            email=email,
            phone=phone,
            page_size=page_size,
            page_number=page_number,
        )
        return SearchResponse(
            total_items=result.total_items,
            items=[CustomerResponse.from_entity(c) for c in result.items],
        )

    @app.get("/customers/{customer_id}", response_model=CustomerResponse, tags=["Customers"])
    async def get_customer(
        customer_id: RecordId, db: CrmBackend = Depends(started_backend)
    ) -> CustomerResponse:
        return CustomerResponse.from_entity(db.get_customer(customer_id))

    @app.put("/customers/{customer_id}", response_model=CustomerResponse, tags=["Customers"])
    async def update_customer(
        customer_id: RecordId,
        request: CustomerRequest,
        db: CrmBackend = Depends(started_backend),
    ) -> CustomerResponse:
        customer = db.update_customer(customer_id, request.name, request.email, request.phone)
        return CustomerResponse.from_entity(customer)

    @app.delete("/customers/{customer_id}", response_model=CustomerResponse, tags=["Customers"])
    async def delete_customer(
        customer_id: RecordId, db: CrmBackend = Depends(started_backend)
    ) -> CustomerResponse:
        return CustomerResponse.from_entity(db.delete_customer(customer_id))

    # Interactions

    @app.post(
        "/interactions",
        response_model=InteractionResponse,
        status_code=201,
        tags=["Interactions"],
    )
    async def add_interaction(
        request: InteractionRequest, db: CrmBackend = Depends(started_backend)
    ) -> InteractionResponse:
        interaction = db.add_interaction(request.to_payload())
        return InteractionResponse.from_entity(interaction)

    @app.get(
        "/interactions/{interaction_id}",
        response_model=InteractionResponse,
        tags=["Interactions"],
    )
    async def get_interaction(
        interaction_id: RecordId, db: CrmBackend = Depends(started_backend)
    ) -> InteractionResponse:
        return InteractionResponse.from_entity(db.get_interaction(interaction_id))

    @app.put(
        "/interactions/{interaction_id}",
        response_model=InteractionResponse,
        tags=["Interactions"],
    )
    async def update_interaction(
        interaction_id: RecordId,
        request: InteractionRequest,
        db: CrmBackend = Depends(started_backend),
    ) -> InteractionResponse:
        interaction = db.update_interaction(interaction_id, request.to_payload())
        return InteractionResponse.from_entity(interaction)

    @app.delete(
        "/interactions/{interaction_id}",
        response_model=InteractionResponse,
        tags=["Interactions"],
    )
    async def delete_interaction(
        interaction_id: RecordId, db: CrmBackend = Depends(started_backend)
    ) -> InteractionResponse:
        return InteractionResponse.from_entity(db.delete_interaction(interaction_id))

    return app


def run_server(
    backend: CrmBackend,
    host: str = "0.0.0.0",
    port: int = 8000,
) -> None:
    """Run the REST API server.

    Args:
        backend: The record store backend.
        host: Host to bind to.
        port: Port to bind to.
    """
    import uvicorn

    app = create_app(backend)
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    from crm_store.infrastructure.container import build_container
    from crm_store.infrastructure.config import Config
    from crm_store.infrastructure.logging import setup_logging_from_config
    from crm_store.infrastructure.metrics import setup_metrics
    from crm_store.infrastructure.tracing import setup_tracing_from_config

    config = Config()
    config.ensure_directories()
    setup_logging_from_config(config.observability)
    setup_tracing_from_config(config.observability)
    metrics = setup_metrics(port=config.server.metrics_port)

    container = build_container(config, metrics)
    with container.resolve(CrmBackend) as backend:
        logger.info("server_starting", data_dir=str(backend.data_dir), port=config.server.port)
        run_server(backend, host=config.server.host, port=config.server.port)
