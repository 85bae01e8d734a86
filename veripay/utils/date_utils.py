"""Utilitaires de parsing et manipulation de dates."""

from datetime import date, datetime
from typing import Optional

from veripay.config.constants import MOIS_FR

FORMATS_DATE = [
    "%d/%m/%Y",
    "%Y-%m-%d",
    "%d/%m/%y",
]


def parser_date(valeur: str) -> Optional[date]:
    """Tente de parser une date a partir de differents formats courants."""
    valeur = valeur.strip()
    if not valeur:
        return None

    for fmt in FORMATS_DATE:
        try:
            return datetime.strptime(valeur, fmt).date()
        except ValueError:
            continue
    return None


def formater_periode(date_debut: str, date_fin: str = "") -> str:
    """Libelle de periode : "mars 2026". Repli sur "debut → fin" si la date est illisible."""
    if not date_debut:
        return ""
    d = parser_date(date_debut)
    if d is None:
        return f"{date_debut} → {date_fin}"
    return f"{MOIS_FR[d.month - 1]} {d.year}"
