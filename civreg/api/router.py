# civreg/api/router.py
from fastapi import APIRouter
from civreg.api.routes import lifecycles, requests

api_router = APIRouter()
# lifecycles first: /{resource} would otherwise capture it
api_router.include_router(lifecycles.router, prefix="/lifecycles", tags=["lifecycles"])
api_router.include_router(requests.router, tags=["requests"])
