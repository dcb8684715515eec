from fastapi import APIRouter

from leaveflow.api.balances import employee_balance_router
from leaveflow.api.employees import employees_router
from leaveflow.api.requests import requests_router

api_router = APIRouter()
api_router.include_router(requests_router)
api_router.include_router(employee_balance_router)
api_router.include_router(employees_router)
