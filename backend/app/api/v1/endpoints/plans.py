from fastapi import APIRouter

from app.schemas.plans import PlanResponse
from app.services.plans import list_plans

router = APIRouter()


@router.get("/", response_model=list[PlanResponse])
def get_plans():
    """List the plan catalog, cheapest first."""
    return list_plans()
