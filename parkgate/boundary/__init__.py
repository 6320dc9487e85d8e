"""
Boundary

Pipeline de requête, routage et traduction des erreurs.
"""

from .interfaces import ErrorResponse, GateRequest, GateResponse
from .error_mapper import ErrorMapper, status_text
from .app import ParkGateApp, Route, ROUTES, build_app, load_app

__all__ = [
    # Data classes
    "ErrorResponse",
    "GateRequest",
    "GateResponse",
    "Route",
    "ROUTES",
    # Implementations
    "ErrorMapper",
    "ParkGateApp",
    # Fonctions
    "build_app",
    "load_app",
    "status_text",
]
