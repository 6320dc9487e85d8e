"""
Boundary - Interfaces

Requête/réponse indépendantes du transport, et corps d'erreur.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from pydantic import BaseModel


@dataclass
class GateRequest:
    """Requête entrante (méthode, chemin, headers, corps JSON décodé)."""

    method: str
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Dict[str, Any]] = None

    def header(self, name: str) -> Optional[str]:
        for key, value in self.headers.items():
            if key.lower() == name.lower():
                return value
        return None


@dataclass
class GateResponse:
    status: int
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Corps JSON d'une erreur."""

    path: str
    method: str
    status: int
    status_text: str
    message: str
    errors: Optional[Dict[str, str]] = None
