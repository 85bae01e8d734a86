"""Parseur du bulletin DETAILLE : texte extrait -> BulletinDetaille.

Chaque ligne de donnees se termine par un code a 5 chiffres qui donne sa
nature (plus fiable que le libelle, souvent coupe par l'extraction) :

  00001-09999  elements de salaire (01xxx : sous-totaux)
  10000        brut soumis a cotisation
  20000-69999  cotisations sociales
  73000-75999  CSG / CRDS / forfait social / allegements (RGDU)
  76041        impot sur le revenu (PAS)
  80000-89999  remboursements
  90010        net a payer avant impot
  94142        net social

Les colonnes sortent inversees : Montant | Taux | Base | Libelle.
"""

import logging
import re
from decimal import Decimal
from typing import Iterator, Optional

from veripay.config.constants import (
    CODE_BRUT_SOUMIS, CODE_IMPOT_REVENU, CODE_NET_A_PAYER_AVANT_IMPOT,
    CODE_NET_SOCIAL, CODE_TAUX_EMPLOI, PLAGE_COTISATIONS, PLAGE_CSG_CRDS,
    PLAGE_ELEMENTS_SALAIRE, PLAGE_REMBOURSEMENTS, TypeBulletin,
)
from veripay.models.bulletins import (
    Allegement, BulletinDetaille, Cumuls, Employeur, ImpotRevenu,
    LigneCotisation, LigneElementSalaire, LigneRemboursement, Salarie,
)
from veripay.parsers.base_parser import BaseBulletinParser
from veripay.parsers.commun import (
    MONTANT_SEUL, date_iso, disposer_colonnes, extraire_conges,
    extraire_nombres, extraire_nombres_et_libelle,
)
from veripay.parsers.normalisation import ARTEFACTS_DETAILLE, normaliser
from veripay.utils.number_utils import arrondir, parser_nombre

logger = logging.getLogger("veripay.parsers")

CODE_FIN_LIGNE = re.compile(r"(\d{5})\s*$")

# Disposition des colonnes d'une cotisation, cle (nombre de valeurs, discriminant negatif)
COLONNES_DETAILLE = {
    (5, False): ("montant_employeur", "taux_employeur", "montant_salarie", "taux_salarie", "base"),
    (4, True): ("montant_employeur", "taux_employeur", "montant_salarie", "base"),
    (4, False): ("montant_employeur", "taux_employeur", "taux_salarie", "base"),
    (3, True): ("montant_salarie", "taux_salarie", "base"),
    (3, False): ("montant_employeur", "taux_employeur", "base"),
    # Forfait (mutuelle) : employeur + salarie, sans base
    (2, True): ("montant_employeur", "montant_salarie"),
    (2, False): ("montant_employeur", "base"),
    (1, True): ("montant_salarie",),
    (1, False): ("montant_employeur",),
}
# Index de la valeur dont le signe departage les dispositions
DISCRIMINANTS_DETAILLE = {4: 2, 3: 0, 2: 1, 1: 0}

ENTETE_TABLE = re.compile(r"N°|Li\s*be\s*l\s*l", re.IGNORECASE)
ALLEGEMENT = re.compile(r"All[ée]gement|RGDU", re.IGNORECASE)


def disposer_colonnes_detaille(nombres: list[Decimal]) -> dict[str, Decimal]:
    return disposer_colonnes(nombres, COLONNES_DETAILLE, DISCRIMINANTS_DETAILLE, 5)


def separer_code(ligne: str) -> tuple[str, Optional[str]]:
    """Retire le code a 5 chiffres de fin de ligne."""
    m = CODE_FIN_LIGNE.search(ligne)
    if not m:
        return ligne, None
    return ligne[:m.start()], m.group(1)


class DetailleParser(BaseBulletinParser):
    """Parse un bloc de texte de bulletin detaille."""

    type_bulletin = TypeBulletin.DETAILLE

    def parser(self, texte: str) -> BulletinDetaille:
        lines = self.lignes(texte)

        elements: list[LigneElementSalaire] = []
        cotisations: list[LigneCotisation] = []
        allegements: list[Allegement] = []
        remboursements: list[LigneRemboursement] = []
        brut: Optional[Decimal] = None
        net_social: Optional[Decimal] = None
        net_avant_impot: Optional[Decimal] = None
        impot: Optional[ImpotRevenu] = None

        for sans_code, code in self._lignes_codees(lines):
            n = int(code)
            nombres, brut_libelle = extraire_nombres_et_libelle(sans_code)
            if not nombres:
                continue
            libelle = normaliser(brut_libelle, ARTEFACTS_DETAILLE)

            if PLAGE_ELEMENTS_SALAIRE[0] <= n < PLAGE_ELEMENTS_SALAIRE[1]:
                element = self._element_salaire(nombres, libelle, code)
                if element:
                    elements.append(element)
            elif n == CODE_BRUT_SOUMIS:
                brut = nombres[0]
            elif PLAGE_COTISATIONS[0] <= n < PLAGE_COTISATIONS[1]:
                if len(libelle) >= 2:
                    cotisations.append(self._cotisation(nombres, libelle, code))
            elif PLAGE_CSG_CRDS[0] <= n < PLAGE_CSG_CRDS[1]:
                if ALLEGEMENT.search(brut_libelle):
                    allegements.append(Allegement(libelle=libelle, montant=nombres[0]))
                else:
                    cotisations.append(self._cotisation(nombres, libelle, code))
            elif code == CODE_IMPOT_REVENU:
                impot = impot or self._impot(nombres)
            elif PLAGE_REMBOURSEMENTS[0] <= n < PLAGE_REMBOURSEMENTS[1]:
                if libelle:
                    remboursements.append(LigneRemboursement(libelle=libelle, montant=nombres[0], code=code))
            elif n == CODE_NET_A_PAYER_AVANT_IMPOT:
                net_avant_impot = nombres[0]
            elif n == CODE_NET_SOCIAL:
                net_social = nombres[-1]

        if brut is None:
            logger.warning("Brut soumis a cotisation (code %s) introuvable", CODE_BRUT_SOUMIS)

        # Le bulletin detaille n'imprime pas de totaux : ils sont reconstitues
        total_retenues = arrondir(sum((abs(c.montant_salarie) for c in cotisations), Decimal("0")))
        total_patronal = arrondir(sum((c.montant_employeur or Decimal("0") for c in cotisations), Decimal("0")))

        return BulletinDetaille(
            numero_bulletin=self.extraire_numero_bulletin(lines),
            employeur=self._employeur(lines, texte),
            salarie=self._salarie(lines, texte, elements),
            periode=self.extraire_periode(lines),
            elements_salaire=elements,
            brut_cotisation=brut if brut is not None else Decimal("0"),
            cotisations=cotisations,
            remboursements=remboursements,
            total_retenues=total_retenues,
            total_cotisations_patronales=total_patronal,
            net_social=net_social,
            net_a_payer_avant_impot=net_avant_impot,
            impot_sur_le_revenu=impot,
            net_paye=self._net_paye(lines),
            cumuls=self._cumuls(lines, texte),
            allegements=allegements,
            conges=extraire_conges(lines),
        )

    def _lignes_codees(self, lines: list[str]) -> Iterator[tuple[str, str]]:
        for l in lines:
            sans_code, code = separer_code(l)
            if code:
                yield sans_code, code

    # --- Lignes ---

    def _element_salaire(self, nombres, libelle, code) -> Optional[LigneElementSalaire]:
        # Montant | Taux | Base
        if not libelle or ENTETE_TABLE.search(libelle):
            return None
        if len(nombres) >= 3:
            return LigneElementSalaire(libelle=libelle, montant=nombres[0], taux=nombres[1], base=nombres[2], code=code)
        if len(nombres) == 2:
            return LigneElementSalaire(libelle=libelle, montant=nombres[0], base=nombres[1], code=code)
        return LigneElementSalaire(libelle=libelle, montant=nombres[0], code=code)

    def _cotisation(self, nombres, libelle, code) -> LigneCotisation:
        return LigneCotisation(libelle=libelle, code=code, **disposer_colonnes_detaille(nombres))

    def _impot(self, nombres) -> Optional[ImpotRevenu]:
        # Montant | Taux | Base (le montant peut manquer)
        if len(nombres) >= 3:
            return ImpotRevenu(base=nombres[2], taux_personnalise=nombres[1], montant=nombres[0])
        if len(nombres) == 2:
            return ImpotRevenu(base=nombres[1], taux_personnalise=nombres[0], montant=Decimal("0"))
        return None

    def _net_paye(self, lines: list[str]) -> Optional[Decimal]:
        """Montant seul dans les 5 lignes qui precedent le dernier "Euros"."""
        for i in range(len(lines) - 1, -1, -1):
            if not re.match(r"^Euros$", lines[i], re.IGNORECASE):
                continue
            for j in range(i - 1, max(0, i - 5) - 1, -1):
                if MONTANT_SEUL.match(lines[j]):
                    valeur = parser_nombre(lines[j])
                    if valeur is not None and valeur > 0:
                        return valeur
        return None

    def _cumuls(self, lines: list[str], texte: str) -> Cumuls:
        # Le net imposable mensuel est propre au bulletin ; le cumul peut
        # agreger plusieurs contrats
        net_imposable = None
        for pattern in (r"Net\s+Imposable\s+mensuel\s*(\d[\d\s]*,\d{2,3})",
                        r"Cumul\s+Net\s+Imposable\s*(\d[\d\s]*,\d{2,3})"):
            m = re.search(pattern, texte, re.IGNORECASE)
            if m:
                net_imposable = parser_nombre(m.group(1))
            if net_imposable:
                break

        m = re.search(r"Cumul\s+Heures\s*(\d[\d\s]*,\d{2,3})", texte, re.IGNORECASE)
        heures = parser_nombre(m.group(1)) if m else None

        net_social = None
        for l in lines:
            if re.search(r"Cumul\s+Net\s+Social", l, re.IGNORECASE):
                nombres = extraire_nombres(l)
                if nombres:
                    net_social = nombres[0]

        # La valeur peut etre collee plus loin (ex : "SOLDE congés 25/26 N4 354,68")
        m = re.search(r"Cumul\s+Brut.*?(\d[\d\s]*,\d{2})", texte, re.IGNORECASE | re.DOTALL)
        brut = parser_nombre(m.group(1)) if m else None

        return Cumuls(brut=brut, heures=heures, net_imposable=net_imposable, net_social=net_social)

    # --- Identite ---

    def _employeur(self, lines: list[str], texte: str) -> Employeur:
        code_postal, ville = self.extraire_cp_ville(lines)

        urssaf = None
        for l in lines:
            if re.match(r"^URSSAF\s+[A-ZÀ-Ÿ]", l, re.IGNORECASE) and not re.match(r"^URSSAF\s*:", l, re.IGNORECASE):
                urssaf = l
                break
        numero_cotisant = next((l for l in lines if re.match(r"^\d{15,20}$", l)), None)

        return Employeur(
            nom=self.extraire_nom_employeur(lines),
            siret=self.extraire_siret(texte),
            adresse=self.extraire_adresse(lines),
            code_postal=code_postal,
            ville=ville,
            ape=self._ape(lines),
            urssaf=urssaf,
            numero_cotisant=numero_cotisant,
        )

    def _ape(self, lines: list[str]) -> Optional[str]:
        """Code APE sur la ligne "APE :" ou sur l'une des 3 lignes suivantes."""
        idx = self._index(lines, re.compile(r"APE\s*:", re.IGNORECASE))
        if idx is None:
            return None
        m = re.search(r"APE\s*:\s*([A-Z0-9]{4,5})\s*$", lines[idx], re.IGNORECASE)
        if m:
            return m.group(1)
        for l in lines[idx + 1:idx + 4]:
            if re.match(r"^[A-Z0-9]{4,5}$", l, re.IGNORECASE):
                return l
        return None

    def _salarie(self, lines: list[str], texte: str, elements: list[LigneElementSalaire]) -> Salarie:
        matricule, coefficient = self.extraire_matricule_coefficient(lines)

        nss = next((l for l in lines if re.match(r"^\d{13,15}\s*\d{0,2}$", l)), None)
        m = re.search(r"Date d.entr[ée]e?\s*:\s*(\d{1,2}/\d{1,2}/\d{4})", texte, re.IGNORECASE)
        date_entree = date_iso(m.group(1)) if m else None

        # "Echelon :AP RES 15 ANSRESP ONSABLE QUALIT E6" : le chiffre est en fin de ligne
        echelon = None
        idx = self._index(lines, re.compile(r"Echelon\s*:", re.IGNORECASE))
        if idx is not None:
            m = re.search(r"(\d+)\s*$", lines[idx])
            if m:
                echelon = m.group(1)

        taux_emploi = next((e.montant for e in elements if e.code == CODE_TAUX_EMPLOI), None)

        return Salarie(
            nom=self.extraire_nom_salarie(lines),
            matricule=matricule,
            numero_securite_sociale=re.sub(r"\s", "", nss) if nss else None,
            date_entree=date_entree,
            emploi=self.extraire_emploi(lines),
            qualification_conventionnelle=self.extraire_qualification(lines),
            coefficient=coefficient,
            echelon=echelon,
            convention_collective=self.extraire_convention(lines),
            taux_emploi=taux_emploi,
        )
