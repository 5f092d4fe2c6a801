"""
API v1 routes aggregation
"""
from fastapi import APIRouter
from pinfall.api.v1 import auth, tournaments, reservations, registrations, bowlers, results, email_templates

api_router = APIRouter()

# Authentication
api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])

# Tournaments, squads, results and advancement
api_router.include_router(tournaments.router, tags=["tournaments"])

# Squad holds
api_router.include_router(reservations.router, tags=["reservations"])

# Registrations and score entry
api_router.include_router(registrations.router, tags=["registrations"])

# Bowler profiles
api_router.include_router(bowlers.router, tags=["bowlers"])

# Externally recorded tournament results
api_router.include_router(results.router, tags=["results"])

# Email templates
api_router.include_router(email_templates.router, tags=["email-templates"])
