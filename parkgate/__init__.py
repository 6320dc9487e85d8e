"""
ParkGate - Sessions de stationnement derrière une passerelle d'accès par token.

Sous-packages:
- auth: tokens signés, passerelle d'authentification, politique d'accès
- parking: tarification, allocation de places, cycle de vie des sessions
- core: configuration, exceptions, cryptographie
- logging: logging JSON structuré
- audit: piste d'audit signée
- boundary: traduction des erreurs et façade applicative
"""

__version__ = "0.1.0"
