from fastapi import APIRouter

from expoflow.api.v1.budget import router as budget_router
from expoflow.api.v1.budget_additions import router as budget_additions_router
from expoflow.api.v1.materials import router as materials_router
from expoflow.api.v1.quote import router as quote_router

v1_router = APIRouter()

v1_router.include_router(materials_router)
v1_router.include_router(budget_router)
v1_router.include_router(budget_additions_router)
v1_router.include_router(quote_router)
