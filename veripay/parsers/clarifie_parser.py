"""Parseur du bulletin CLARIFIE : texte extrait -> BulletinClarifie.

Les cotisations sont regroupees en blocs (SANTE, RETRAITE, FAMILLE,
ASSURANCE CHOMAGE, ...). Comme pour le detaille, les colonnes sortent
inversees :
  4 valeurs            Montant_Empl | Montant_Sal | Taux_Sal | Base
  3 valeurs (1re < 0)  Montant_Sal | Taux | Base
  3 valeurs            Montant_Empl | Taux | Base
  2 valeurs (2e < 0)   Montant_Empl | Montant_Sal   (forfait)
  2 valeurs            Montant_Empl | Base
"""

import logging
import re
from decimal import Decimal
from typing import Optional

from veripay.config.constants import TypeBulletin
from veripay.models.bulletins import (
    Allegement, BlocCotisations, BulletinClarifie, Cumuls, Employeur,
    ImpotRevenu, LigneCotisation, LigneElementSalaire, LigneRemboursement,
    Salarie,
)
from veripay.parsers.base_parser import BaseBulletinParser
from veripay.parsers.commun import (
    date_iso, disposer_colonnes, extraire_conges, extraire_nombres,
    extraire_nombres_et_libelle,
)
from veripay.parsers.normalisation import ARTEFACTS_CLARIFIE, normaliser
from veripay.utils.number_utils import arrondir, parser_nombre

logger = logging.getLogger("veripay.parsers")

COLONNES_CLARIFIE = {
    (4, False): ("montant_employeur", "montant_salarie", "taux_salarie", "base"),
    (3, True): ("montant_salarie", "taux_salarie", "base"),
    (3, False): ("montant_employeur", "taux_employeur", "base"),
    (2, True): ("montant_employeur", "montant_salarie"),
    (2, False): ("montant_employeur", "base"),
    (1, True): ("montant_salarie",),
    (1, False): ("montant_employeur",),
}
DISCRIMINANTS_CLARIFIE = {3: 0, 2: 1, 1: 0}

TAUX_EMPLOI = re.compile(r"T\s*aux d.emploi", re.IGNORECASE)
DEBUT_ELEMENTS = re.compile(r"Salaire indiciaire|T\s*aux d.emploi|Indemnit", re.IGNORECASE)
BRUT_SOUMIS = re.compile(r"B\s*rut\s+soumis", re.IGNORECASE)
DEBUT_COTISATIONS = re.compile(r"Cotisations et contributions", re.IGNORECASE)
TITRE_COTISATIONS = re.compile(r"Cotisations et contributions sociales", re.IGNORECASE)
SECTION_SEULE = re.compile(r"^\s*(SANTE|RETRAITE|ASSURANCE\s+CH[OÔ]MAG?\s*E)\s*$", re.IGNORECASE)
FIN_COTISATIONS = re.compile(r"TOTAL DES COTISATIONS|TOTAL DES CONTRIB|^NET SOCIAL|NET A PAYER", re.IGNORECASE)
EXONERATION = re.compile(r"EXONERATION|ALL[ÉE]GEMENT|ECRETEMENT", re.IGNORECASE)
CSG_CRDS = re.compile(r"CSG|CRDS", re.IGNORECASE)
LIGNE_IMPOT = re.compile(r"Imp[oô]t sur le revenu pr[ée]lev|Pr[ée]l[eè]vement [àa] la source", re.IGNORECASE)


def disposer_colonnes_clarifie(nombres: list[Decimal]) -> dict[str, Decimal]:
    return disposer_colonnes(nombres, COLONNES_CLARIFIE, DISCRIMINANTS_CLARIFIE, 4)


def ligne_cotisation(nombres: list[Decimal], libelle: str) -> LigneCotisation:
    return LigneCotisation(
        libelle=normaliser(libelle, ARTEFACTS_CLARIFIE),
        **disposer_colonnes_clarifie(nombres),
    )


class ClarifieParser(BaseBulletinParser):
    """Parse un bloc de texte de bulletin clarifie."""

    type_bulletin = TypeBulletin.CLARIFIE
    fenetre_matricule = 8

    def parser(self, texte: str) -> BulletinClarifie:
        lines = self.lignes(texte)
        elements, brut = self._elements_salaire(lines)
        if brut is None:
            logger.warning("Ligne 'Brut soumis a cotisation' introuvable")
        totaux = self._totaux(lines)

        return BulletinClarifie(
            numero_bulletin=self.extraire_numero_bulletin(lines),
            employeur=self._employeur(lines, texte),
            salarie=self._salarie(lines, texte),
            periode=self.extraire_periode(lines),
            elements_salaire=elements,
            brut_cotisation=brut if brut is not None else Decimal("0"),
            blocs_cotisations=self._blocs_cotisations(lines),
            remboursements=self._remboursements(lines),
            total_retenues=totaux["total_retenues"],
            total_cotisations_patronales=totaux["total_patronal"],
            net_social=totaux["net_social"],
            net_a_payer_avant_impot=totaux["net_avant_impot"],
            impot_sur_le_revenu=self._impot(lines),
            net_paye=self._net_paye(lines),
            cumuls=self._cumuls(lines, texte),
            allegements=self._allegements(lines),
            conges=extraire_conges(lines),
        )

    # --- Elements de salaire ---

    def _elements_salaire(self, lines: list[str]) -> tuple[list[LigneElementSalaire], Optional[Decimal]]:
        """Zone de 20 lignes au plus, jusqu'au brut soumis ou au debut des cotisations."""
        elements: list[LigneElementSalaire] = []
        debut = self._index(lines, DEBUT_ELEMENTS)
        if debut is None:
            return elements, None

        for l in lines[debut:debut + 20]:
            nombres, libelle = extraire_nombres_et_libelle(l)
            if BRUT_SOUMIS.search(l):
                return elements, (nombres[0] if nombres else None)
            if re.search(r"Remboursement", l, re.IGNORECASE):
                break
            if DEBUT_COTISATIONS.search(l) or re.match(r"^\s*SANTE\s*$", l, re.IGNORECASE):
                break
            if not nombres or not libelle or re.search(r"El[ée]ments|Salari[ée]|B\s*aseTaux", libelle, re.IGNORECASE):
                continue

            if TAUX_EMPLOI.search(l):
                elements.append(LigneElementSalaire(libelle="Taux d'emploi", montant=nombres[0], base=nombres[0]))
                continue

            libelle = normaliser(libelle, ARTEFACTS_CLARIFIE)
            if len(nombres) >= 3:
                elements.append(LigneElementSalaire(libelle=libelle, montant=nombres[0], taux=nombres[1], base=nombres[2]))
            elif len(nombres) == 2:
                elements.append(LigneElementSalaire(libelle=libelle, montant=nombres[0], base=nombres[1]))
            else:
                elements.append(LigneElementSalaire(libelle=libelle, montant=nombres[0]))

        return elements, None

    # --- Cotisations ---

    def _blocs_cotisations(self, lines: list[str]) -> list[BlocCotisations]:
        debut = None
        for i, l in enumerate(lines):
            if TITRE_COTISATIONS.search(l) or re.match(r"^SANTE$", l, re.IGNORECASE):
                debut = i
                break
        if debut is None:
            return []

        blocs: list[BlocCotisations] = []
        nom_courant: Optional[str] = None
        lignes_courantes: list[LigneCotisation] = []

        def fermer_bloc():
            nonlocal nom_courant, lignes_courantes
            if nom_courant and lignes_courantes:
                blocs.append(BlocCotisations(nom=nom_courant, lignes=lignes_courantes))
            nom_courant, lignes_courantes = None, []

        for l in lines[debut:]:
            if FIN_COTISATIONS.search(l):
                break
            # Exonerations : traitees a part
            if EXONERATION.search(l) and re.search(r"\d", l):
                fermer_bloc()
                continue
            if TITRE_COTISATIONS.search(l):
                continue

            nombres, libelle = extraire_nombres_et_libelle(l)

            if not nombres and SECTION_SEULE.match(l):
                fermer_bloc()
                nom_courant = re.sub(r"ASSURANCE\s+CH[OÔ]MAG?\s*E", "ASSURANCE_CHOMAGE", l.strip().upper())
                continue

            if not nombres or len(libelle) <= 1:
                continue

            # Sections totalisees sur une seule ligne
            if re.match(r"^FAMILLE$", libelle, re.IGNORECASE):
                fermer_bloc()
                blocs.append(BlocCotisations(nom="FAMILLE", lignes=[ligne_cotisation(nombres, libelle)]))
                continue
            if re.search(r"AUTRES\s+CONTRIB\s*UTIONS", libelle, re.IGNORECASE):
                fermer_bloc()
                blocs.append(BlocCotisations(nom="AUTRES_CONTRIBUTIONS", lignes=[ligne_cotisation(nombres, libelle)]))
                continue

            if CSG_CRDS.search(libelle):
                if not nom_courant or "CSG" not in nom_courant.upper():
                    fermer_bloc()
                    nom_courant = "CSG_CRDS"
                lignes_courantes.append(ligne_cotisation(nombres, libelle))
                continue

            if not nom_courant:
                # Ligne orpheline
                nom_courant = "AUTRES"
            lignes_courantes.append(ligne_cotisation(nombres, libelle))

        fermer_bloc()
        return blocs

    def _remboursements(self, lines: list[str]) -> list[LigneRemboursement]:
        for l in lines:
            if re.search(r"Remboursement transport", l, re.IGNORECASE):
                nombres = extraire_nombres(l)
                if nombres:
                    return [LigneRemboursement(libelle="Remboursement transport", montant=nombres[0])]
        return []

    # --- Totaux ---

    def _totaux(self, lines: list[str]) -> dict[str, Optional[Decimal]]:
        totaux = dict.fromkeys(("total_retenues", "total_patronal", "net_social", "net_avant_impot"))

        for i, l in enumerate(lines):
            # "2 605,381 057,87 TOTAL DES COTISATIONS ET CONTRIBUTIONS"
            if re.search(r"TOTAL DES COTIS|TOTAL DES CONTRIB", l, re.IGNORECASE):
                nombres = extraire_nombres(l)
                if len(nombres) >= 2:
                    totaux["total_patronal"] = nombres[0]
                    totaux["total_retenues"] = nombres[1]

            if (re.search(r"NET SOCIAL", l, re.IGNORECASE)
                    and not re.search(r"Cumul|Annuel|Mensuel", l, re.IGNORECASE)):
                nombres = extraire_nombres(l)
                if nombres:
                    totaux["net_social"] = nombres[0]

            # Le montant precede souvent le libelle sur la ligne d'avant
            if re.search(r"NET A PAYER AVANT IMP[OÔ]T", l, re.IGNORECASE):
                nombres = extraire_nombres(l) or (extraire_nombres(lines[i - 1]) if i > 0 else [])
                if nombres:
                    totaux["net_avant_impot"] = nombres[0]

        return totaux

    def _impot(self, lines: list[str]) -> Optional[ImpotRevenu]:
        """PAS reparti sur 1 a 3 lignes : base, taux, puis montant."""
        idx = self._index(lines, LIGNE_IMPOT)
        if idx is None:
            return None
        nombres: list[Decimal] = []
        for l in lines[idx:idx + 3]:
            nombres.extend(extraire_nombres(l))
            if len(nombres) >= 3:
                break
        if len(nombres) < 2:
            return None
        base, taux = nombres[0], nombres[1]
        montant = nombres[2] if len(nombres) >= 3 else -arrondir(base * taux / 100)
        return ImpotRevenu(base=base, taux_personnalise=taux, montant=montant)

    def _net_paye(self, lines: list[str]) -> Optional[Decimal]:
        for i, l in enumerate(lines):
            if re.search(r"Net pay[ée] en euros", l, re.IGNORECASE):
                nombres = extraire_nombres(l)
                if not nombres and i + 1 < len(lines):
                    nombres = extraire_nombres(lines[i + 1])
                if nombres:
                    return nombres[0]
        for l in lines:
            if re.search(r"Net pay[ée]", l, re.IGNORECASE):
                nombres = extraire_nombres(l)
                return nombres[0] if nombres else None
        return None

    def _cumuls(self, lines: list[str], texte: str) -> Cumuls:
        net_imposable = None
        for pattern in (r"Cumul\s+Net\s+Imposable\s*(\d[\d\s]*,\d{2,3})",
                        r"Net\s+Imposable\s+mensuel\s*(\d[\d\s]*,\d{2,3})"):
            m = re.search(pattern, texte, re.IGNORECASE)
            if m:
                net_imposable = parser_nombre(m.group(1))
            if net_imposable:
                break

        net_social = None
        for l in lines:
            if re.search(r"Cumul\s+Net\s+Social", l, re.IGNORECASE):
                nombres = extraire_nombres(l)
                if nombres:
                    net_social = nombres[0]

        m = re.search(r"Cumul\s+Brut.*?(\d[\d\s]*,\d{2})", texte, re.IGNORECASE | re.DOTALL)
        brut = parser_nombre(m.group(1)) if m else None

        heures = None
        m = re.search(r"Cumul\s+Heures\s*(\d[\d\s]*,\d{2})", texte, re.IGNORECASE)
        if m:
            heures = parser_nombre(m.group(1))
        else:
            # Valeur collee apres "N-1" en fin de ligne
            for l in lines:
                m = re.search(r"N-1(\d{2,3},\d{2})\s*$", l)
                v = parser_nombre(m.group(1)) if m else None
                if v is not None and 100 < v < 300:
                    heures = v
                    break

        return Cumuls(brut=brut, heures=heures, net_imposable=net_imposable, net_social=net_social)

    def _allegements(self, lines: list[str]) -> list[Allegement]:
        allegements = []
        for l in lines:
            if EXONERATION.search(l):
                nombres, libelle = extraire_nombres_et_libelle(l)
                if nombres and len(libelle) > 2:
                    allegements.append(Allegement(libelle=libelle, montant=nombres[0]))
        return allegements

    # --- Identite ---

    def _employeur(self, lines: list[str], texte: str) -> Employeur:
        code_postal, ville = self.extraire_cp_ville(lines)
        m = re.search(r"APE\s*:\s*([A-Z0-9]{4,5})", texte, re.IGNORECASE)

        urssaf = None
        numero_cotisant = None
        for l in lines:
            if urssaf is None and re.search(r"URSSAF\s*:", l, re.IGNORECASE):
                urssaf = re.sub(r"URSSAF\s*:\s*", "", l, flags=re.IGNORECASE).strip()
            if numero_cotisant is None and re.search(r"N° de cotisant", l, re.IGNORECASE):
                numero_cotisant = re.sub(r"N° de cotisant\s*:\s*", "", l, flags=re.IGNORECASE).strip()

        return Employeur(
            nom=self.extraire_nom_employeur(lines),
            siret=self.extraire_siret(texte),
            adresse=self.extraire_adresse(lines),
            code_postal=code_postal,
            ville=ville,
            ape=m.group(1) if m else None,
            urssaf=urssaf,
            numero_cotisant=numero_cotisant,
        )

    def _salarie(self, lines: list[str], texte: str) -> Salarie:
        matricule, coefficient = self.extraire_matricule_coefficient(lines)

        m = re.search(r"D[ée]but\s+de\s+contrat\s*:\s*(\d{1,2}/\d{1,2}/\d{4})", texte, re.IGNORECASE)
        date_entree = date_iso(m.group(1)) if m else None

        taux_emploi = None
        for l in lines:
            if TAUX_EMPLOI.search(l):
                nombres = extraire_nombres(l)
                taux_emploi = nombres[0] if nombres else None
                break

        return Salarie(
            nom=self.extraire_nom_salarie(lines),
            matricule=matricule,
            date_entree=date_entree,
            emploi=self.extraire_emploi(lines),
            qualification_conventionnelle=self.extraire_qualification(lines),
            coefficient=coefficient,
            echelon=self._echelon(lines),
            convention_collective=self.extraire_convention(lines),
            taux_emploi=taux_emploi,
        )

    def _echelon(self, lines: list[str]) -> Optional[str]:
        """Chiffre en fin de ligne "Echelon :", sinon sur une ligne seule dans les 5 suivantes."""
        idx = self._index(lines, re.compile(r"Echelon\s*:", re.IGNORECASE))
        if idx is None:
            return None
        valeur = re.sub(r"Echelon\s*:\s*", "", lines[idx], flags=re.IGNORECASE).strip()
        m = re.search(r"(\d+)\s*$", valeur)
        if m and not re.search(r"ANS\s*$", valeur, re.IGNORECASE):
            return m.group(1)
        for l in lines[idx + 1:idx + 6]:
            if re.match(r"^\d{1,2}$", l):
                return l
        return None
