"""
Database models for the Pinfall backend

All models should be imported here so Base.metadata knows every table.
"""
from pinfall.models.tournament import Tournament, Squad
from pinfall.models.registration import Registration, StageScore, registration_squads
from pinfall.models.reservation import SpotReservation, reservation_squads
from pinfall.models.bowler import Bowler, BowlerTournament, TournamentResult
from pinfall.models.email_template import EmailTemplate

__all__ = [
    # Tournament
    "Tournament",
    "Squad",
    # Registration
    "Registration",
    "StageScore",
    "registration_squads",
    # Reservation
    "SpotReservation",
    "reservation_squads",
    # Bowler
    "Bowler",
    "BowlerTournament",
    "TournamentResult",
    # Email
    "EmailTemplate",
]
