"""Classe de base abstraite pour les parseurs de bulletins."""

import re
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

from veripay.config.constants import TypeBulletin
from veripay.models.bulletins import Bulletin, Periode
from veripay.parsers.commun import (
    LIGNE_DU_AU, LIGNE_NOM_SALARIE, date_iso, lignes, trouver_toutes_dates,
)
from veripay.parsers.normalisation import ARTEFACTS_IDENTITE, normaliser
from veripay.utils.number_utils import parser_nombre

CP_VILLE = re.compile(r"^(\d{5})\s+(.+)$")
LIGNE_CP_VILLE = re.compile(r"^\d{5}\s+[A-ZÀ-Ÿ]")
LIGNE_ADRESSE = re.compile(r"^\d+\s+[A-ZÀ-Ÿ]")
SIRET = re.compile(r"Siret\s*:\s*(\d{10,14})", re.IGNORECASE)
CONVENTION = re.compile(r"Convent?\s*ion\s+collect?\s*ive\s+du", re.IGNORECASE)
EMPLOI = re.compile(r"RESP\s*ONSABLE|DIRECTEUR|EDUCATEUR|AIDE|CHEF|INFIRMIER", re.IGNORECASE)
QUALIFICATION = re.compile(r"CADRE\s+CLASSE|EMPLOYE|OUVRIER|TECHNICIEN|AGENT", re.IGNORECASE)
NUMERO_BULLETIN = re.compile(r"Bulletin n[°o]\s*:", re.IGNORECASE)


class BaseBulletinParser(ABC):
    """Interface commune et extractions partagees par les deux mises en page.

    Les champs absents restent a None : un parseur ne leve jamais d'exception
    pour une information manquante.
    """

    type_bulletin: TypeBulletin
    # Nombre de lignes explorees apres "Matricule :" quand "du au" est absent
    fenetre_matricule = 10

    @abstractmethod
    def parser(self, texte: str) -> Bulletin:
        """Construit le bulletin a partir du texte d'un bloc."""

    def lignes(self, texte: str) -> list[str]:
        return lignes(texte)

    # --- Periode ---

    def extraire_periode(self, lines: list[str]) -> Periode:
        """Premiere ligne (parmi les 10 premieres) portant deux dates ; ordre chronologique."""
        for l in lines[:10]:
            dates = trouver_toutes_dates(l)
            if len(dates) >= 2:
                isos = sorted(date_iso(d) for d in dates)
                return Periode(date_debut=isos[0], date_fin=isos[-1])
        return Periode()

    # --- Employeur ---

    def extraire_siret(self, texte: str) -> str:
        m = SIRET.search(texte)
        return m.group(1) if m else ""

    def extraire_cp_ville(self, lines: list[str]) -> tuple[Optional[str], Optional[str]]:
        for l in lines:
            if LIGNE_CP_VILLE.match(l):
                m = CP_VILLE.match(l)
                ville = re.sub(r"\s+Siret.*$", "", m.group(2), flags=re.IGNORECASE).strip()
                return m.group(1), ville
        return None, None

    def extraire_adresse(self, lines: list[str]) -> Optional[str]:
        if lines and LIGNE_ADRESSE.match(lines[0]):
            return lines[0]
        return None

    def extraire_nom_employeur(self, lines: list[str]) -> str:
        """Le nom de l'etablissement suit la ligne "du au"."""
        idx = self._index(lines, LIGNE_DU_AU)
        if idx is not None and idx + 1 < len(lines):
            candidat = lines[idx + 1]
            if re.match(r"^[A-ZÀ-Ÿ]", candidat) and not LIGNE_NOM_SALARIE.match(candidat):
                return candidat
        return ""

    # --- Salarie ---

    def extraire_nom_salarie(self, lines: list[str]) -> str:
        for l in lines:
            if LIGNE_NOM_SALARIE.match(l):
                return l
        return ""

    def extraire_matricule_coefficient(self, lines: list[str]) -> tuple[str, Optional[Decimal]]:
        """Entre "Matricule :" et "du au" : matricule entier seul, coefficient avec virgule."""
        idx_matricule = self._index(lines, re.compile(r"Matricule\s*:", re.IGNORECASE))
        if idx_matricule is None:
            return "", None
        idx_du_au = self._index(lines, LIGNE_DU_AU)
        fin = idx_du_au if idx_du_au is not None else min(
            idx_matricule + self.fenetre_matricule, len(lines))

        matricule = ""
        coefficient = None
        for l in lines[idx_matricule + 1:fin]:
            if not matricule and re.match(r"^\d{1,6}$", l):
                matricule = l
                continue
            if coefficient is None and re.match(r"^\d{2,4},\d{1,2}$", l):
                coefficient = parser_nombre(l)
        return matricule, coefficient

    def extraire_convention(self, lines: list[str]) -> Optional[str]:
        for l in lines:
            if CONVENTION.search(l):
                return normaliser(l, ARTEFACTS_IDENTITE)
        return None

    def extraire_emploi(self, lines: list[str]) -> Optional[str]:
        for l in lines:
            if EMPLOI.search(l):
                emploi = normaliser(l, ARTEFACTS_IDENTITE)
                return re.sub(r"\s*\d+\s*$", "", emploi).strip()
        return None

    def extraire_qualification(self, lines: list[str]) -> Optional[str]:
        for l in lines:
            if QUALIFICATION.search(l):
                l = re.sub(r"\s*D[ée]but\s+de\s+contrat.*$", "", l, flags=re.IGNORECASE)
                return normaliser(l, ARTEFACTS_IDENTITE)
        return None

    def extraire_numero_bulletin(self, lines: list[str]) -> Optional[str]:
        idx = self._index(lines, NUMERO_BULLETIN)
        if idx is None:
            return None
        valeur = re.sub(r".*Bulletin n[°o]\s*:\s*", "", lines[idx], flags=re.IGNORECASE).strip()
        if 0 < len(valeur) < 20:
            return valeur
        for l in lines[idx + 1:idx + 3]:
            if re.match(r"^\d{1,6}$", l):
                return l
        return None

    @staticmethod
    def _index(lines: list[str], pattern: re.Pattern) -> Optional[int]:
        for i, l in enumerate(lines):
            if pattern.search(l):
                return i
        return None
