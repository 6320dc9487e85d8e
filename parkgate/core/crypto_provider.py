"""
ParkGate - Crypto Provider Implementation
Signature ECDSA-P384 et hachage SHA-384 de la piste d'audit.
"""

import hashlib
from typing import Dict, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.ec import EllipticCurvePrivateKey

from .interfaces import ICryptoProvider


class CryptoProvider(ICryptoProvider):
    """
    Opérations cryptographiques de l'audit.

    Les clés sont générées à la demande par key_id, ou injectées
    (clé chargée depuis un coffre en production).
    """

    def __init__(self, keys: Optional[Dict[str, EllipticCurvePrivateKey]] = None):
        self._keys: Dict[str, EllipticCurvePrivateKey] = dict(keys or {})

    def _get_or_create_key(self, key_id: str) -> EllipticCurvePrivateKey:
        """Récupère ou crée une clé ECDSA-P384."""
        if key_id not in self._keys:
            self._keys[key_id] = ec.generate_private_key(ec.SECP384R1())
        return self._keys[key_id]

    def sign(self, data: bytes, key_id: str) -> bytes:
        """
        Signe des données avec ECDSA-P384.

        Args:
            data: Données à signer
            key_id: ID de la clé

        Returns:
            Signature DER-encoded
        """
        private_key = self._get_or_create_key(key_id)
        return private_key.sign(data, ec.ECDSA(hashes.SHA384()))

    def verify_signature(self, data: bytes, signature: bytes, key_id: str) -> bool:
        """Vérifie une signature ECDSA-P384."""
        if key_id not in self._keys:
            return False
        public_key = self._keys[key_id].public_key()
        try:
            public_key.verify(signature, data, ec.ECDSA(hashes.SHA384()))
        except InvalidSignature:
            return False
        return True

    def hash(self, data: bytes) -> str:
        """
        Calcule hash SHA-384.

        Returns:
            Hash hex string (96 caractères)
        """
        return hashlib.sha384(data).hexdigest()
