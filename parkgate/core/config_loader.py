"""
ParkGate - Config Loader Implementation
Charge la configuration depuis fichiers YAML et résout les secrets.
"""

import os
from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import ValidationError as PydanticValidationError

from .interfaces import IConfigLoader, ParkGateSettings


class ConfigIntegrityError(Exception):
    """Erreur d'intégrité de configuration."""

    pass


class ConfigLoader(IConfigLoader):
    """Chargement des configurations depuis fichiers YAML."""

    def __init__(self, configs_path: str = "fixtures/configs"):
        self.configs_path = Path(configs_path)

    async def load(self, name: str) -> ParkGateSettings:
        """
        Charge une configuration nommée.

        Args:
            name: Nom du fichier (sans extension .yaml)

        Returns:
            ParkGateSettings avec secrets résolus

        Raises:
            ConfigIntegrityError: Si fichier inexistant, YAML invalide,
                structure invalide ou variable d'environnement absente
        """
        config_file = self.configs_path / f"{name}.yaml"

        if not config_file.exists():
            raise ConfigIntegrityError(f"Configuration non trouvée: {name}")

        try:
            with open(config_file, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigIntegrityError(f"Erreur de parsing YAML: {e}")
        except OSError as e:
            raise ConfigIntegrityError(f"Erreur de lecture fichier: {e}")

        if not isinstance(raw, dict):
            raise ConfigIntegrityError("Configuration doit être un objet YAML")

        return self.parse(raw)

    def parse(self, raw: Dict[str, Any]) -> ParkGateSettings:
        """
        Construit les settings depuis un dictionnaire déjà chargé.

        Raises:
            ConfigIntegrityError: Structure invalide ou secret introuvable
        """
        try:
            settings = ParkGateSettings.model_validate(self._normalize(raw))
        except PydanticValidationError as e:
            raise ConfigIntegrityError(f"Structure de configuration invalide: {e}")

        self._resolve_secrets(settings)
        return settings

    def _resolve_secrets(self, settings: ParkGateSettings) -> None:
        """Résout les secrets fournis par variable d'environnement."""
        for key in settings.security.signing_keys:
            if key.secret:
                continue
            if not key.secret_env:
                raise ConfigIntegrityError(f"Clé {key.id}: secret ou secret_env obligatoire")
            value = os.environ.get(key.secret_env)
            if not value:
                raise ConfigIntegrityError(
                    f"Clé {key.id}: variable d'environnement {key.secret_env} absente"
                )
            key.secret = value

    def _normalize(self, value: Any) -> Any:
        # Les flottants YAML passent par str pour un Decimal exact
        if isinstance(value, dict):
            return {k: self._normalize(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._normalize(v) for v in value]
        if isinstance(value, float):
            return str(value)
        return value
