from fastapi import APIRouter

from tokei_badges.api.v1 import badges, internal

api_router = APIRouter()

api_router.include_router(badges.router)
api_router.include_router(internal.router)
