"""
Lease Tracker HTTP API

FastAPI application and routers for ordered project lists.
"""
