"""
Logging - Sensitive Masker

Masquage automatique des données sensibles avant écriture des logs.
"""

from typing import Any, Dict, List, Optional

from .interfaces import ISensitiveMasker


class SensitiveMasker(ISensitiveMasker):
    """
    Masquage récursif des données sensibles.

    - Clés sensibles (password, token, secret...) : valeur remplacée
    - Identifiants personnels (national_id) : seuls les 2 derniers caractères restent

    Example:
        masker = SensitiveMasker()
        masker.mask({"password": "secret123", "national_id": "52998224725"})
        # {"password": "***MASKED***", "national_id": "*********25"}
    """

    PARTIAL_VISIBLE: int = 2

    def __init__(self, additional_patterns: Optional[List[str]] = None) -> None:
        self._patterns: List[str] = [p.lower() for p in self.SENSITIVE_PATTERNS]
        for pattern in additional_patterns or []:
            if pattern and pattern.lower() not in self._patterns:
                self._patterns.append(pattern.lower())
        self._partial: List[str] = [p.lower() for p in self.PARTIAL_PATTERNS]

    @property
    def patterns(self) -> List[str]:
        """Retourne les patterns sensibles configurés."""
        return list(self._patterns)

    def mask(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Masque récursivement toutes les données sensibles.

        Args:
            data: Dictionnaire à masquer

        Returns:
            Copie avec données sensibles masquées
        """
        if not isinstance(data, dict):
            return data

        result: Dict[str, Any] = {}

        for key, value in data.items():
            if self.is_sensitive_key(key):
                result[key] = self.MASK_VALUE
            elif self._is_partial_key(key) and isinstance(value, str):
                result[key] = self.mask_string(value, visible=self.PARTIAL_VISIBLE)
            elif isinstance(value, dict):
                result[key] = self.mask(value)
            elif isinstance(value, list):
                result[key] = self._mask_list(value)
            else:
                result[key] = value

        return result

    def _mask_list(self, items: List[Any]) -> List[Any]:
        result = []
        for item in items:
            if isinstance(item, dict):
                result.append(self.mask(item))
            elif isinstance(item, list):
                result.append(self._mask_list(item))
            else:
                result.append(item)
        return result

    def mask_string(self, value: str, visible: int = 0) -> str:
        """
        Masque une valeur string.

        Args:
            value: Valeur à masquer
            visible: Nombre de caractères de fin laissés en clair

        Returns:
            MASK_VALUE si visible=0, sinon '*' * (len - visible) + suffixe
        """
        if visible <= 0 or len(value) <= visible:
            return self.MASK_VALUE
        return "*" * (len(value) - visible) + value[-visible:]

    def is_sensitive_key(self, key: str) -> bool:
        """Vérifie (case-insensitive) si la clé contient un pattern sensible."""
        if not key:
            return False
        key_lower = key.lower()
        return any(pattern in key_lower for pattern in self._patterns)

    def _is_partial_key(self, key: str) -> bool:
        if not key:
            return False
        key_lower = key.lower()
        return any(pattern in key_lower for pattern in self._partial)

    def add_pattern(self, pattern: str) -> None:
        """
        Ajoute pattern sensible personnalisé.

        Raises:
            ValueError: Si pattern vide
        """
        if not pattern or not pattern.strip():
            raise ValueError("Pattern cannot be empty")

        pattern_lower = pattern.lower().strip()
        if pattern_lower not in self._patterns:
            self._patterns.append(pattern_lower)
