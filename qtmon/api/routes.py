from datetime import date, time
from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import PlainTextResponse

from .schemas import AccountSummary, CycleSummary, HealthResponse
from .statusbar import referenced_symbols, render_statusbar
from ..context import AppContext
from ..storage.errors import NoPositionForDayError, NoPositionsAtAllSyncedError, RetrieveError
from ..sync.engine import SyncState
from ..utils import parse_date, parse_time

router = APIRouter()


def _ctx(request: Request) -> AppContext:
    return request.app.state.ctx


def _day(ctx: AppContext, value: str | None) -> date:
    if value is None:
        return ctx.today()
    try:
        return parse_date(value)
    except ValueError:
        raise HTTPException(400, 'date must be YYYY-MM-DD')


def _at(value: str) -> time:
    try:
        return parse_time(value)
    except ValueError:
        raise HTTPException(400, 'time must be HH:MM')


@router.get(
    '/health',
    response_model=HealthResponse,
    summary="Health check",
    description="Returns the sync engine state and the report of the last finished cycle.",
    tags=["Health"],
)
def health(request: Request):
    engine = request.app.state.engine
    if engine.state == SyncState.STOPPED:
        raise HTTPException(503, f'sync_engine_stopped: {engine.error}')
    last = None
    if engine.last_report is not None:
        r = engine.last_report
        last = CycleSummary(
            started_at_utc=r.started_at_utc,
            finished_at_utc=r.finished_at_utc,
            accounts_synced=r.accounts_synced,
            balances_inserted=r.balances_inserted,
            positions_inserted=r.positions_inserted,
            duplicates=r.duplicates,
            timeouts=r.timeouts,
            errors=r.errors,
        )
    return HealthResponse(ok=True, state=engine.state.value, error=engine.error, last_cycle=last)


# *** accounts ***

@router.get(
    '/raw/account/list',
    summary="List accounts",
    description="Aliases of every synced account.",
    tags=["Accounts"],
)
async def account_list(request: Request):
    try:
        return await _ctx(request).guard.get_account_list()
    except RetrieveError as e:
        raise HTTPException(404, str(e))


@router.get(
    '/raw/account/{ident}',
    response_model=AccountSummary,
    summary="Account info",
    description="Classification of one account, addressed by alias or account number.",
    tags=["Accounts"],
)
async def account_info(request: Request, ident: str):
    try:
        info = await _ctx(request).guard.get_account_info(ident)
    except RetrieveError as e:
        raise HTTPException(404, str(e))
    acct = info.account
    return AccountSummary(
        alias=info.alias,
        number=acct.number,
        type=acct.type,
        client_account_type=acct.client_account_type,
        status=acct.status,
        is_primary=acct.is_primary,
        is_billing=acct.is_billing,
    )


# *** balances ***

async def _sod_balance(request: Request, ident: str, day: str | None):
    ctx = _ctx(request)
    d = _day(ctx, day)
    try:
        snap = await ctx.guard.get_start_of_day_balance(ident, d)
    except RetrieveError as e:
        raise HTTPException(404, str(e))
    return snap.model_dump(mode="json")


async def _latest_balance(request: Request, ident: str, day: str | None):
    ctx = _ctx(request)
    d = _day(ctx, day)
    try:
        snap = await ctx.guard.get_latest_balance(ident, d)
    except RetrieveError as e:
        raise HTTPException(404, str(e))
    return snap.model_dump(mode="json")


@router.get(
    '/raw/balance/{ident}/sod',
    summary="Start-of-day balance (today)",
    description="Balance reported as the start of today's trading day.",
    tags=["Balances"],
)
async def balance_sod_today(request: Request, ident: str):
    return await _sod_balance(request, ident, None)


@router.get(
    '/raw/balance/{ident}/latest',
    summary="Latest balance (today)",
    description="Most recent balance synced today; the start-of-day balance when none yet.",
    tags=["Balances"],
)
async def balance_latest_today(request: Request, ident: str):
    return await _latest_balance(request, ident, None)


@router.get(
    '/raw/balance/{ident}/{day}/sod',
    summary="Start-of-day balance",
    description="Start-of-day balance for a date (YYYY-MM-DD).",
    tags=["Balances"],
)
async def balance_sod(request: Request, ident: str, day: str):
    return await _sod_balance(request, ident, day)


@router.get(
    '/raw/balance/{ident}/{day}/latest',
    summary="Latest balance",
    description="Most recent balance synced on a date (YYYY-MM-DD).",
    tags=["Balances"],
)
async def balance_latest(request: Request, ident: str, day: str):
    return await _latest_balance(request, ident, day)


@router.get(
    '/raw/balance/{ident}/{day}/{at}',
    summary="Closest balance",
    description="Balance synced closest to a local time (HH:MM) on a date, start-of-day included.",
    tags=["Balances"],
)
async def balance_closest(request: Request, ident: str, day: str, at: str):
    ctx = _ctx(request)
    d = _day(ctx, day)
    t = _at(at)
    try:
        snap = await ctx.guard.get_closest_balance(ident, d, t)
    except RetrieveError as e:
        raise HTTPException(404, str(e))
    return snap.model_dump(mode="json")


# *** positions ***

@router.get(
    '/raw/position/{ident}/list',
    summary="List position symbols",
    description="Every symbol with at least one synced position for the account.",
    tags=["Positions"],
)
async def position_list(request: Request, ident: str):
    try:
        return await _ctx(request).guard.get_position_symbols(ident)
    except RetrieveError as e:
        raise HTTPException(404, str(e))


async def _latest_position(request: Request, ident: str, symbol: str, day: str | None):
    ctx = _ctx(request)
    d = _day(ctx, day)
    try:
        snap = await ctx.guard.get_latest_position(ident, symbol, d)
    except RetrieveError as e:
        raise HTTPException(404, str(e))
    return snap.model_dump(mode="json")


@router.get(
    '/raw/position/{ident}/{symbol}/latest',
    summary="Latest position (today)",
    description="Most recent snapshot of one position synced today.",
    tags=["Positions"],
)
async def position_latest_today(request: Request, ident: str, symbol: str):
    return await _latest_position(request, ident, symbol, None)


@router.get(
    '/raw/position/{ident}/{symbol}/{day}/latest',
    summary="Latest position",
    description="Most recent snapshot of one position synced on a date (YYYY-MM-DD).",
    tags=["Positions"],
)
async def position_latest(request: Request, ident: str, symbol: str, day: str):
    return await _latest_position(request, ident, symbol, day)


@router.get(
    '/raw/position/{ident}/{symbol}/{day}/{at}',
    summary="Closest position",
    description="Position snapshot synced closest to a local time (HH:MM) on a date.",
    tags=["Positions"],
)
async def position_closest(request: Request, ident: str, symbol: str, day: str, at: str):
    ctx = _ctx(request)
    d = _day(ctx, day)
    t = _at(at)
    try:
        snap = await ctx.guard.get_closest_position(ident, symbol, d, t)
    except RetrieveError as e:
        raise HTTPException(404, str(e))
    return snap.model_dump(mode="json")


# *** status bar ***

@router.get(
    '/statusbar/{ident}/{template}',
    response_class=PlainTextResponse,
    summary="Status bar line",
    description=(
        "Fills %sod.*, %bal.* and %SYMBOL.* placeholders in the template with today's values. "
        "Underscores become spaces; %dollar and %slash become $ and /."
    ),
    tags=["Status bar"],
)
async def statusbar(request: Request, ident: str, template: str):
    ctx = _ctx(request)
    today = ctx.today()
    try:
        sod = await ctx.guard.get_start_of_day_balance(ident, today)
        latest = await ctx.guard.get_latest_balance(ident, today)
        try:
            symbols = await ctx.guard.get_position_symbols(ident)
        except NoPositionsAtAllSyncedError:
            symbols = []
        positions = []
        for sym in referenced_symbols(symbols, template):
            try:
                positions.append(await ctx.guard.get_latest_position(ident, sym, today))
            except NoPositionForDayError:
                # held before but not synced today; placeholder stays as written
                continue
    except RetrieveError as e:
        raise HTTPException(404, str(e))
    return render_statusbar(positions, sod, latest, template)
