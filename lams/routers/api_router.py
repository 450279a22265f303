from fastapi import APIRouter
from lams.routers import leave, approvals, slack, admin, attendance, reimbursements

# Centralized API router hub: main.py only imports this one
api_router = APIRouter()

api_router.include_router(leave.router, tags=["Leave"])
api_router.include_router(approvals.router, tags=["Approvals"])
api_router.include_router(slack.router, tags=["Slack"])
api_router.include_router(admin.router, tags=["Administration"])
api_router.include_router(attendance.router, tags=["Attendance"])
api_router.include_router(reimbursements.router, tags=["Reimbursements"])
