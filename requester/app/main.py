from fastapi import FastAPI, HTTPException, Depends, Query, status

from .dependencies import get_execution_controller, get_response_store
from ..exceptions import ConfigurationError, ExecutionInProgressError
from ..execution.engine import ExecutionController
from ..repositories.response_store import ResponseStore
from .schemas import JobRequest, RunResponse, StoredResponses

app = FastAPI(title="Request Execution Engine")

# --- Endpoints ---

@app.post("/runs", response_model=RunResponse)
async def create_run(
    job_request: JobRequest,
    controller: ExecutionController = Depends(get_execution_controller),
):
    """
    Executes one job to completion and returns its outcome and event log.
    Invalid configurations are rejected before anything is sent.
    """
    job = job_request.to_job()
    try:
        outcome = await controller.run(job)
    except ConfigurationError as e:
        raise HTTPException(status_code=422,detail=str(e))
    except ExecutionInProgressError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    return RunResponse(
        run_id=controller.state.run_id,
        outcome=outcome,
        log=list(controller.event_log.entries),
    )


@app.get("/responses", response_model=StoredResponses)
def list_responses(
    limit: int = Query(20, ge=1, le=500),
    store: ResponseStore = Depends(get_response_store),
):
    """Most recent payloads persisted by successful runs."""
    return StoredResponses(payloads=store.list_recent(limit))
