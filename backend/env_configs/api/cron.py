from fastapi import APIRouter, Depends
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from env_configs.core.api_key import require_shared_api_key
from env_configs.core.dependencies import EnvConfigsDep

router = APIRouter(prefix='/cron', tags=['cron'])


class CronRunResponse(BaseModel):
    ran: int


class ScheduledEventModel(BaseModel):
    id: int
    hook: str
    timestamp: float
    args: list = []


class PendingEventsResponse(BaseModel):
    events: list[ScheduledEventModel]


# Public: the spawned cron request carries no API key.
@router.api_route('/run', methods=['GET', 'POST'], response_model=CronRunResponse)
async def run_cron(env: EnvConfigsDep):
    """Fire every scheduled event whose time has come."""
    ran = await run_in_threadpool(env.scheduler.run_due)
    return CronRunResponse(ran=ran)


@router.get('/events', response_model=PendingEventsResponse, dependencies=[Depends(require_shared_api_key)])
async def pending_events(env: EnvConfigsDep, hook: str | None = None):
    """List events waiting for the next cron run (soonest first)."""
    rows = await run_in_threadpool(env.scheduler.pending, hook)
    return PendingEventsResponse(events=[ScheduledEventModel(**row.as_dict()) for row in rows])
