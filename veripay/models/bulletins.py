"""Modeles de donnees des bulletins de paie extraits (detaille et clarifie)."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import TypeAdapter

from veripay.config.constants import TypeBulletin


# --- Identite ---

@dataclass(frozen=True)
class Employeur:
    """Bloc employeur du bulletin."""
    nom: str = ""
    siret: str = ""
    adresse: Optional[str] = None
    code_postal: Optional[str] = None
    ville: Optional[str] = None
    ape: Optional[str] = None
    urssaf: Optional[str] = None
    numero_cotisant: Optional[str] = None


@dataclass(frozen=True)
class Salarie:
    """Bloc salarie du bulletin."""
    nom: str = ""
    matricule: str = ""
    adresse: Optional[str] = None
    code_postal: Optional[str] = None
    ville: Optional[str] = None
    numero_securite_sociale: Optional[str] = None
    date_entree: Optional[str] = None          # JJ/MM/AAAA
    emploi: Optional[str] = None
    qualification_conventionnelle: Optional[str] = None
    coefficient: Optional[Decimal] = None
    echelon: Optional[str] = None
    convention_collective: Optional[str] = None
    taux_emploi: Optional[Decimal] = None      # 100 = temps plein


@dataclass(frozen=True)
class Periode:
    date_debut: str = ""                       # JJ/MM/AAAA
    date_fin: str = ""


# --- Lignes ---

@dataclass(frozen=True)
class LigneElementSalaire:
    """Element de remuneration (salaire indiciaire, indemnite, ...)."""
    libelle: str
    montant: Decimal = Decimal("0")
    base: Optional[Decimal] = None
    taux: Optional[Decimal] = None
    montant_employeur: Optional[Decimal] = None
    code: Optional[str] = None


@dataclass(frozen=True)
class LigneCotisation:
    """Ligne de cotisation : retenue salariale (negative) et/ou part patronale (positive)."""
    libelle: str
    code: Optional[str] = None
    base: Optional[Decimal] = None
    taux_salarie: Optional[Decimal] = None
    montant_salarie: Decimal = Decimal("0")
    taux_employeur: Optional[Decimal] = None
    montant_employeur: Optional[Decimal] = None


@dataclass(frozen=True)
class LigneRemboursement:
    """Remboursement ou element non soumis (transport, ...)."""
    libelle: str
    montant: Decimal = Decimal("0")
    code: Optional[str] = None


@dataclass(frozen=True)
class CompteurConges:
    periode: str                               # ex : "25/26"
    type: str                                  # "N", "N-1", "N-2"
    solde: Decimal = Decimal("0")


@dataclass(frozen=True)
class Allegement:
    libelle: str
    montant: Decimal = Decimal("0")


@dataclass(frozen=True)
class ImpotRevenu:
    """Prelevement a la source."""
    base: Decimal = Decimal("0")
    montant: Decimal = Decimal("0")
    taux_personnalise: Optional[Decimal] = None


@dataclass(frozen=True)
class Cumuls:
    brut: Optional[Decimal] = None
    heures: Optional[Decimal] = None
    net_imposable: Optional[Decimal] = None
    net_social: Optional[Decimal] = None


@dataclass(frozen=True)
class BlocCotisations:
    """Bloc du bulletin clarifie (SANTE, RETRAITE, ...)."""
    nom: str
    lignes: list[LigneCotisation] = field(default_factory=list)
    total_retenues: Optional[Decimal] = None
    total_employeur: Optional[Decimal] = None


# --- Bulletins ---

@dataclass(frozen=True)
class BulletinBase:
    """Champs communs aux deux mises en page."""
    type: TypeBulletin = TypeBulletin.DETAILLE
    numero_bulletin: Optional[str] = None
    employeur: Employeur = field(default_factory=Employeur)
    salarie: Salarie = field(default_factory=Salarie)
    periode: Periode = field(default_factory=Periode)
    elements_salaire: list[LigneElementSalaire] = field(default_factory=list)
    brut_cotisation: Decimal = Decimal("0")
    remboursements: list[LigneRemboursement] = field(default_factory=list)
    total_retenues: Optional[Decimal] = None
    total_cotisations_patronales: Optional[Decimal] = None
    net_social: Optional[Decimal] = None
    net_a_payer_avant_impot: Optional[Decimal] = None
    impot_sur_le_revenu: Optional[ImpotRevenu] = None
    net_paye: Optional[Decimal] = None
    cumuls: Optional[Cumuls] = None
    allegements: list[Allegement] = field(default_factory=list)
    conges: list[CompteurConges] = field(default_factory=list)

    def toutes_cotisations(self) -> list[LigneCotisation]:
        return []

    @property
    def total_remboursements(self) -> Decimal:
        return sum((r.montant for r in self.remboursements), Decimal("0"))


@dataclass(frozen=True)
class BulletinDetaille(BulletinBase):
    """Bulletin detaille : une ligne par cotisation, avec code a 5 chiffres."""
    type: TypeBulletin = TypeBulletin.DETAILLE
    cotisations: list[LigneCotisation] = field(default_factory=list)

    def toutes_cotisations(self) -> list[LigneCotisation]:
        return list(self.cotisations)


@dataclass(frozen=True)
class BulletinClarifie(BulletinBase):
    """Bulletin clarifie : cotisations regroupees par blocs."""
    type: TypeBulletin = TypeBulletin.CLARIFIE
    blocs_cotisations: list[BlocCotisations] = field(default_factory=list)

    def toutes_cotisations(self) -> list[LigneCotisation]:
        return [ligne for bloc in self.blocs_cotisations for ligne in bloc.lignes]


Bulletin = Union[BulletinDetaille, BulletinClarifie]

_ADAPTATEURS = {
    TypeBulletin.DETAILLE: TypeAdapter(BulletinDetaille),
    TypeBulletin.CLARIFIE: TypeAdapter(BulletinClarifie),
}


def bulletin_depuis_dict(donnees: dict[str, Any]) -> Bulletin:
    """Construit un bulletin a partir d'un dict JSON (cle "type", detaille par defaut).

    Leve ValueError (dont pydantic.ValidationError) si le contenu ne respecte pas le modele.
    """
    type_bulletin = TypeBulletin(donnees.get("type", TypeBulletin.DETAILLE.value))
    return _ADAPTATEURS[type_bulletin].validate_python(donnees)


def bulletin_vers_dict(bulletin: Bulletin) -> dict[str, Any]:
    """Serialise un bulletin en types JSON (les Decimal deviennent des chaines)."""
    return _ADAPTATEURS[bulletin.type].dump_python(bulletin, mode="json")
