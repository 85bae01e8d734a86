"""Modeles des resultats : recalcul, verification et analyse des erreurs de parametrage."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from veripay.config.constants import StatutSalarie, TypeBulletin, TypeErreur
from veripay.models.bulletins import Bulletin


# --- Recalcul ---

@dataclass(frozen=True)
class LigneCalculee:
    """Une cotisation recalculee a partir de la convention."""
    code: Optional[str]
    libelle: str
    base: Decimal
    taux_salarie: Decimal
    montant_salarie: Decimal       # negatif = retenue
    taux_employeur: Decimal
    montant_employeur: Decimal


@dataclass(frozen=True)
class PrelevementSource:
    base: Decimal
    taux: Decimal
    montant: Decimal


@dataclass(frozen=True)
class ResultatCalcul:
    """Resultat complet du recalcul d'un bulletin."""
    lignes: tuple[LigneCalculee, ...]
    base_csg: Decimal
    total_retenues: Decimal
    total_patronal: Decimal
    net_social: Decimal
    net_imposable: Decimal
    net_a_payer_avant_pas: Decimal
    pas: PrelevementSource
    net_paye: Decimal

    def ligne(self, code: str) -> Optional[LigneCalculee]:
        for l in self.lignes:
            if l.code == code:
                return l
        return None


# --- Verification ---

@dataclass(frozen=True)
class EcartConvention:
    """Ecart entre une valeur du bulletin et la valeur recalculee."""
    champ: str
    bulletin: Decimal
    calcul: Decimal
    ecart: Decimal


@dataclass(frozen=True)
class EcartCoherence:
    """Ecart entre une valeur attendue par construction et la valeur extraite."""
    champ: str
    attendu: Decimal
    extrait: Decimal
    ecart: Decimal


@dataclass(frozen=True)
class EcartLigne:
    """Ecart ligne a ligne (par code) entre bulletin et recalcul."""
    code: str
    libelle: str
    champ: str                     # montant_salarie / montant_employeur
    bulletin: Decimal
    calcul: Decimal
    ecart: Decimal


@dataclass
class Coherence:
    valide: bool = True
    ecarts: list[EcartCoherence] = field(default_factory=list)


@dataclass
class ResultatVerification:
    """Verification d'un bulletin : convention OU coherence interne."""
    statut_detecte: StatutSalarie
    calcul: ResultatCalcul
    ecarts: list[EcartConvention] = field(default_factory=list)
    ecarts_lignes: list[EcartLigne] = field(default_factory=list)
    coherence: Coherence = field(default_factory=Coherence)
    valide: bool = True


@dataclass
class ResultatExtraction:
    """Un bulletin extrait d'un document, avec sa verification."""
    type_detecte: TypeBulletin
    bulletin: Bulletin
    verification: ResultatVerification
    nombre_pages: int = 0


# --- Erreurs de parametrage ---

@dataclass(frozen=True)
class ErreurParametrage:
    type: TypeErreur
    message: str


@dataclass
class ResultatBulletin:
    """Resultat de l'analyse d'un bulletin."""
    salarie: str
    periode: str
    valide: bool = True
    erreurs: list[ErreurParametrage] = field(default_factory=list)


@dataclass
class ResultatAnalyse:
    """Resultat de l'analyse d'un document (lot de bulletins)."""
    nombre_bulletins: int = 0
    nombre_pages: int = 0
    bulletins: list[ResultatBulletin] = field(default_factory=list)

    @property
    def nombre_invalides(self) -> int:
        return sum(1 for b in self.bulletins if not b.valide)


# --- Session (CLI / rapports) ---

@dataclass
class RapportDocument:
    """Resultats d'un document (fichier) analyse."""
    nom_fichier: str
    analyse: ResultatAnalyse
    extractions: list[ResultatExtraction] = field(default_factory=list)


@dataclass
class SessionAnalyse:
    """Ensemble des documents analyses en une execution."""
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    date_analyse: datetime = field(default_factory=datetime.now)
    duree_secondes: float = 0.0
    documents: list[RapportDocument] = field(default_factory=list)

    @property
    def nombre_bulletins(self) -> int:
        return sum(d.analyse.nombre_bulletins for d in self.documents)

    @property
    def nombre_invalides(self) -> int:
        return sum(d.analyse.nombre_invalides for d in self.documents)
