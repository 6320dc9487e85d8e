"""
Parking - Pricing Engine

Tarification pure, en Decimal (jamais de float).

Grille par défaut (minutes m tronquées):
    m <= 15       -> 5.00
    15 < m <= 60  -> 9.25
    m > 60        -> 9.25 + 1.75 * ceil((m - 60) / 15)

Remise fidélité: 30 % lorsque le nombre de sessions clôturées est un
multiple non nul de 10. Arrondi ROUND_HALF_EVEN à 2 décimales.
"""

from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Optional

from ..core.interfaces import PricingConfig


CENT = Decimal("0.01")
ZERO = Decimal("0.00")


class PricingError(ValueError):
    """Entrée invalide (durée négative, compteur négatif)."""

    pass


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_EVEN)


class PricingEngine:
    """
    Example:
        engine = PricingEngine()
        fee = engine.fee(entry, entry + timedelta(minutes=61))  # Decimal("11.00")
        engine.discount(fee, 10)                                 # Decimal("3.30")
    """

    def __init__(self, config: Optional[PricingConfig] = None):
        self.config = config or PricingConfig()

    def minutes_between(self, entry_time: datetime, exit_time: datetime) -> int:
        """
        Minutes entières écoulées (troncature), calculées en UTC.

        Raises:
            PricingError: exit antérieur à entry
        """
        # Même tzinfo des deux côtés : Python soustrait l'heure murale (DST ignoré)
        delta = exit_time.astimezone(timezone.utc) - entry_time.astimezone(timezone.utc)
        if delta < timedelta(0):
            raise PricingError(f"Durée négative: entrée {entry_time.isoformat()} après sortie {exit_time.isoformat()}")
        return delta // timedelta(minutes=1)

    def fee(self, entry_time: datetime, exit_time: datetime) -> Decimal:
        return self.fee_for_minutes(self.minutes_between(entry_time, exit_time))

    def fee_for_minutes(self, minutes: int) -> Decimal:
        if minutes < 0:
            raise PricingError(f"Durée négative: {minutes} min")

        cfg = self.config
        if minutes <= cfg.first_tier_minutes:
            total = cfg.first_tier_fee
        elif minutes <= cfg.second_tier_minutes:
            total = cfg.second_tier_fee
        else:
            extra = minutes - cfg.second_tier_minutes
            blocks = -(-extra // cfg.block_minutes)
            total = cfg.second_tier_fee + cfg.block_fee * blocks

        return quantize(total)

    def discount(self, fee: Decimal, completed_count: int) -> Decimal:
        """
        Remise fidélité à partir du nombre de sessions déjà clôturées.

        Raises:
            PricingError: compteur négatif
        """
        if completed_count < 0:
            raise PricingError(f"Compteur de sessions négatif: {completed_count}")

        every = self.config.loyalty_every
        if completed_count > 0 and completed_count % every == 0:
            return quantize(fee * self.config.loyalty_rate)
        return ZERO
