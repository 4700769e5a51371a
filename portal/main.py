import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from portal.api.routes import ping, push, tickets
from portal.core.config import Settings, get_settings
from portal.core.logging import configure_logging, init_tracer, shutdown_tracer
from portal.notifications import HttpEmailSender, NotificationDispatcher, WebPushGatewaySender
from portal.tickets import (
    DEFAULT_AREAS,
    AuthorizationMatrix,
    InMemoryTicketRepository,
    SqlTicketRepository,
    StaticAreaExceptionPolicy,
    TicketService,
    TicketStateMachine,
    TicketStore,
)

logger = logging.getLogger(__name__)


def _to_asyncpg_dsn(dsn: str) -> str:
    """Ensure the SQLAlchemy DSN uses the asyncpg driver."""

    if dsn.startswith("postgresql+asyncpg://"):
        return dsn
    if dsn.startswith("postgresql://"):
        return "postgresql+asyncpg://" + dsn[len("postgresql://") :]
    return dsn


async def build_store(settings: Settings) -> tuple[TicketStore, AsyncEngine | None]:
    if settings.storage_backend == "memory":
        return InMemoryTicketRepository(areas=DEFAULT_AREAS), None

    engine = create_async_engine(_to_asyncpg_dsn(settings.postgres_dsn), future=True)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    repository = SqlTicketRepository(session_factory, engine=engine)
    try:
        await repository.ensure_schema()
    except Exception:
        await engine.dispose()
        raise
    return repository, engine


def build_dispatcher(settings: Settings, store: TicketStore) -> NotificationDispatcher:
    email_sender = None
    if settings.email_api_url:
        email_sender = HttpEmailSender(
            settings.email_api_url,
            settings.email_api_key,
            settings.email_from,
            timeout=settings.notification_timeout_seconds,
        )
    push_sender = None
    if settings.push_gateway_url:
        push_sender = WebPushGatewaySender(
            settings.push_gateway_url,
            settings.push_gateway_token,
            timeout=settings.notification_timeout_seconds,
        )
    return NotificationDispatcher(
        store,
        email_sender=email_sender,
        push_sender=push_sender,
        workers=settings.notification_workers,
        queue_size=settings.notification_queue_size,
        timeout=settings.notification_timeout_seconds,
    )


def build_service(settings: Settings, store: TicketStore, dispatcher: NotificationDispatcher) -> TicketService:
    policy = StaticAreaExceptionPolicy(settings.manager_area_exceptions)
    return TicketService(
        store,
        notifier=dispatcher,
        state_machine=TicketStateMachine(AuthorizationMatrix(policy)),
        base_url=settings.public_base_url,
        identifier_max_attempts=settings.identifier_max_attempts,
        bulk_timeout=settings.bulk_timeout_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    app.state.logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)
    app.state.tracer_provider = tracer_provider

    db_engine = None
    dispatcher = None
    app.state.ticket_service = None
    try:
        store, db_engine = await build_store(settings)
        dispatcher = build_dispatcher(settings, store)
        await dispatcher.start()
        app.state.ticket_service = build_service(settings, store, dispatcher)
    except Exception:
        logger.exception("Ticket service initialisation failed")
    app.state.db_engine = db_engine
    app.state.notification_dispatcher = dispatcher
    try:
        yield
    finally:
        if dispatcher is not None:
            await dispatcher.stop()
            await dispatcher.close()
        if db_engine is not None:
            await db_engine.dispose()
        shutdown_tracer(tracer_provider)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.include_router(ping.router)
    app.include_router(tickets.router)
    app.include_router(push.router)
    return app


app = create_app()
