"""
Triggers API - Runs the transition reactor and the HR timeout sweep on demand.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from requisition_lifecycle_api.application.interfaces.di_container import get_timeout_sweeper, get_transition_reactor
from requisition_lifecycle_api.application.services.timeout_sweeper import HrTimeoutSweeper
from requisition_lifecycle_api.application.services.transition_reactor import TransitionReactor
from shared.utils.exceptions import InvalidRequisitionEventException
from shared.utils.logging_config import get_logger

logger = get_logger(__name__)

router = APIRouter(
    responses={
        400: {"description": "Bad request"},
        500: {"description": "Internal server error"},
    }
)


class RequisitionWriteEvent(BaseModel):
    """One write to a requisition record."""

    before: Optional[Dict[str, Any]] = Field(
        None, description="Stored value before the write, null on creation"
    )
    after: Optional[Dict[str, Any]] = Field(
        None, description="Stored value after the write, null on deletion"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "before": {"status": "pending", "programme": "KPMD"},
                "after": {"status": "approved", "programme": "KPMD", "approvedBy": "Jane"},
            }
        }
    )


@router.post("/requisitions/{requisition_id}")
async def handle_requisition_write(
    requisition_id: str,
    event: RequisitionWriteEvent,
    reactor: TransitionReactor = Depends(get_transition_reactor),
) -> List[dict]:
    """Run the transition reactor for one requisition write and report what fired."""

    logger.info("Processing requisition write", extra={"requisition_id": requisition_id})

    try:
        results = await reactor.handle_write(requisition_id, event.before, event.after)
        return [result.to_dict() for result in results]

    except InvalidRequisitionEventException as e:
        logger.warning(
            "Invalid requisition write event",
            extra={"requisition_id": requisition_id, "error_details": str(e)},
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    except Exception as e:
        logger.error(
            "Unexpected error processing requisition write",
            extra={
                "requisition_id": requisition_id,
                "error_type": "UnexpectedError",
                "error_details": str(e),
            },
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )


@router.post("/hr-timeout-sweep")
async def run_hr_timeout_sweep(
    sweeper: HrTimeoutSweeper = Depends(get_timeout_sweeper),
) -> dict:
    """Run one HR approval timeout sweep."""

    try:
        summary = await sweeper.run()
        return summary.to_dict()

    except Exception as e:
        logger.error(
            "HR timeout sweep failed",
            extra={"error_type": "SweepError", "error_details": str(e)},
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to run HR timeout sweep",
        )
