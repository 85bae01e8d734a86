"""Utilitaires pour le traitement des montants et nombres."""

import re
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional

CENTIME = Decimal("0.01")

# Prefixe numerique lu comme le ferait parseFloat : "12.5abc" -> 12.5
_PREFIXE_NUMERIQUE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)")


def parser_nombre(valeur: str) -> Optional[Decimal]:
    """Parse un nombre au format francais (1 234,56). Retourne None si illisible."""
    if not valeur:
        return None
    v = re.sub(r"\s", "", valeur).replace(",", ".")
    m = _PREFIXE_NUMERIQUE.match(v)
    if not m:
        return None
    try:
        return Decimal(m.group(0))
    except InvalidOperation:
        return None


def arrondir(valeur: Decimal) -> Decimal:
    """Arrondi au centime, demi-unite eloignee de zero."""
    return valeur.quantize(CENTIME, rounding=ROUND_HALF_UP)


def formater_montant(montant: Decimal) -> str:
    """Formate un montant en format francais."""
    signe = "-" if montant < 0 else ""
    abs_montant = arrondir(abs(montant))
    partie_entiere = int(abs_montant)
    decimales = f"{abs_montant - partie_entiere:.2f}"[1:].replace(".", ",")

    # Separateur de milliers
    s = str(partie_entiere)
    groupes = []
    while s:
        groupes.insert(0, s[-3:])
        s = s[:-3]
    entier_formate = " ".join(groupes)

    return f"{signe}{entier_formate}{decimales} EUR"
