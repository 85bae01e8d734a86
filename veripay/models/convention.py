"""Modeles de la convention collective : regles de cotisation et parametres."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from veripay.config.constants import BaseType, SituationRegle, StatutSalarie


@dataclass(frozen=True)
class RegleCotisation:
    """Une regle de cotisation (taux en %)."""
    libelle: str
    base: BaseType
    taux_salarie: Decimal = Decimal("0")
    taux_employeur: Decimal = Decimal("0")
    code: Optional[str] = None
    forfait_salarie: Optional[Decimal] = None
    forfait_employeur: Optional[Decimal] = None
    categorie: str = ""
    # None = s'applique a tous (cadre + non-cadre)
    statut: Optional[StatutSalarie] = None
    # None = situation courante ; sinon la regle ne s'applique que si le
    # code figure sur le bulletin ou si la situation est reconnue
    situation: Optional[SituationRegle] = None

    def s_applique_a(self, statut: StatutSalarie, apprenti: bool = False) -> bool:
        if self.statut is not None and self.statut != statut:
            return False
        if self.situation is None:
            return True
        return self.situation == SituationRegle.APPRENTI and apprenti


@dataclass(frozen=True)
class ConventionCollective:
    """Parametres et regles d'une convention, dans l'ordre d'application."""
    id: str
    nom: str
    plafond_securite_sociale: Decimal
    taux_assiette_csg: Decimal
    regles: tuple[RegleCotisation, ...]

    def regle(self, code: str) -> Optional[RegleCotisation]:
        for r in self.regles:
            if r.code == code:
                return r
        return None
