from __future__ import annotations
import asyncio
import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
import structlog

from .api.routes import router as api_router
from .config import load_settings
from .context import AppContext, build_context
from .logging import setup_logging
from .scheduler import build_scheduler, start_scheduler
from .sync.engine import SyncEngine

access_log = structlog.get_logger("qtmon.http")


def _engine_done(ctx: AppContext):
    def _cb(task: asyncio.Task):
        if task.cancelled():
            ctx.log.info("sync_engine_cancelled")
            return
        exc = task.exception()
        if exc is not None:
            ctx.log.critical("sync_engine_exited", err=str(exc), err_type=type(exc).__name__)
    return _cb


def create_app(ctx: AppContext | None = None, run_engine: bool = True) -> FastAPI:
    """
    Build the HTTP app. Without `ctx` the context is built from the environment at startup.
    `run_engine=False` serves the store without syncing (tests, read-only replicas).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "ctx", None) is None:
            settings = load_settings()
            setup_logging(settings)
            app.state.ctx = build_context(settings)
            app.state.engine = SyncEngine(app.state.ctx)
        ctx_ = app.state.ctx
        engine = app.state.engine
        task = None
        sched = None
        if run_engine:
            task = asyncio.create_task(engine.run_forever(), name="qtmon-sync")
            task.add_done_callback(_engine_done(ctx_))
            sched = build_scheduler(ctx_, engine)
            start_scheduler(sched, ctx_)
        ctx_.log.info("http_server_started", host=ctx_.settings.http_host, port=ctx_.settings.http_port)
        try:
            yield
        finally:
            if sched is not None:
                sched.shutdown(wait=False)
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
            ctx_.log.info("http_server_stopped")

    app = FastAPI(title="qtmon", lifespan=lifespan)
    app.state.ctx = ctx
    app.state.engine = SyncEngine(ctx) if ctx is not None else None

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_us = int((time.perf_counter() - started) * 1_000_000)
        fields = dict(
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            elapsed_us=elapsed_us,
        )
        if response.status_code == 200:
            access_log.info("http_request", **fields)
        elif response.status_code >= 500:
            access_log.error("http_request", **fields)
        else:
            access_log.warning("http_request", **fields)
        return response

    app.include_router(api_router)
    return app


app = create_app()
