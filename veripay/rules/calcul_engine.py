"""Moteur de recalcul des cotisations a partir du brut et de la convention collective.

Flux de calcul :
  1. Selection des regles actives (codes presents sur le bulletin, sinon statut
     hors regles reservees a une situation particuliere)
  2. Bases : brut, T1 = min(brut, PMSS), T2 = max(0, brut - PMSS)
  3. Passe 1 : toutes les cotisations hors CSG/CRDS et forfait social,
     en cumulant la patronale prevoyance + mutuelle
  4. Base CSG = brut x 98,25% + patronale prevoyance/mutuelle
  5. Passe 2 : CSG deductible, CSG non deductible, CRDS
  6. Forfait social = 8% de la patronale prevoyance/mutuelle
  7. Totaux, net social, net imposable, net avant PAS, PAS, net paye

Chaque multiplication ou division est arrondie au centime immediatement,
comme le fait le logiciel de paie.
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from veripay.config.constants import (
    BaseType,
    StatutSalarie,
    TypeBulletin,
    CODE_ACCIDENT_TRAVAIL,
    CODE_CRDS,
    CODE_CSG_DEDUCTIBLE,
    CODE_CSG_NON_DEDUCTIBLE,
    CODE_FORFAIT_SOCIAL,
    CODE_MALADIE_NON_RESIDENT,
    CODE_MUTUELLE,
    CODE_VIEILLESSE_TA,
    CODES_APPRENTI,
    CODES_CADRE,
    CODES_NON_CADRE,
    PREFIXES_PREVOYANCE,
    TAUX_FORFAIT_SOCIAL,
)
from veripay.models.bulletins import Bulletin
from veripay.models.convention import ConventionCollective, RegleCotisation
from veripay.models.resultats import LigneCalculee, PrelevementSource, ResultatCalcul
from veripay.utils.number_utils import arrondir

logger = logging.getLogger("veripay.engine")

ZERO = Decimal("0")
CENT = Decimal("100")

_CADRE = re.compile(r"\bCADRE\b", re.IGNORECASE)


@dataclass(frozen=True)
class OptionsCalcul:
    """Contexte du recalcul, lu sur le bulletin par construire_options()."""
    statut: StatutSalarie = StatutSalarie.CADRE
    remboursements: Decimal = ZERO
    taux_pas: Decimal = ZERO
    # Si fourni, seules les regles dont le code est present sont calculees
    codes_presents: Optional[frozenset] = None
    # PMSS proratise (mois incomplet, temps partiel)
    plafond_prorate: Optional[Decimal] = None
    # Taux AT reel de l'etablissement (code 57100)
    taux_at: Optional[Decimal] = None
    apprenti: bool = False


def _est_prevoyance(code: Optional[str]) -> bool:
    return bool(code) and code.startswith(PREFIXES_PREVOYANCE)


def regles_actives(convention: ConventionCollective, options: OptionsCalcul) -> list[RegleCotisation]:
    """Regles a appliquer, dans l'ordre de la convention."""
    if options.codes_presents is None:
        return [r for r in convention.regles if r.s_applique_a(options.statut, options.apprenti)]

    # Les codes du bulletin refletent la situation reelle : pas de filtre par statut
    codes = set(options.codes_presents)
    # Forfait social present => CSG/CRDS dues, sauf non-resident fiscal ou apprenti
    if (CODE_FORFAIT_SOCIAL in codes and CODE_MALADIE_NON_RESIDENT not in codes
            and not options.apprenti):
        codes.update({CODE_CSG_DEDUCTIBLE, CODE_CSG_NON_DEDUCTIBLE, CODE_CRDS})
    return [r for r in convention.regles if r.code is not None and r.code in codes]


def calculer_bulletin(
    brut: Decimal,
    convention: ConventionCollective,
    options: Optional[OptionsCalcul] = None,
) -> ResultatCalcul:
    """Recalcule toutes les cotisations et les nets d'un bulletin a partir du brut.

    Fonction pure : deux appels avec les memes entrees donnent le meme resultat.
    """
    options = options or OptionsCalcul()
    regles = regles_actives(convention, options)

    pmss = options.plafond_prorate if options.plafond_prorate is not None \
        else convention.plafond_securite_sociale
    t1 = min(brut, pmss)
    t2 = max(ZERO, arrondir(brut - pmss))
    # Apprenti : la base non exoneree remplace le brut
    brut_cotisations = options.plafond_prorate \
        if options.apprenti and options.plafond_prorate else brut

    lignes: list[LigneCalculee] = []
    patronale_prevoyance = ZERO

    # Passe 1 : hors CSG/CRDS et forfait social
    for regle in regles:
        if regle.base == BaseType.CSG or regle.code == CODE_FORFAIT_SOCIAL:
            continue

        tx_sal = regle.taux_salarie
        tx_empl = regle.taux_employeur
        if regle.code == CODE_ACCIDENT_TRAVAIL and options.taux_at is not None:
            tx_empl = options.taux_at

        if regle.base == BaseType.FORFAIT:
            base = ZERO
            montant_sal = regle.forfait_salarie or ZERO
            montant_empl = regle.forfait_employeur or ZERO
        else:
            if regle.base == BaseType.T1:
                base = t1
            elif regle.base == BaseType.T2:
                base = t2
            else:
                base = brut_cotisations
            # Apprenti : prevoyance calculee sur le brut reel
            if options.apprenti and _est_prevoyance(regle.code):
                base = min(brut, convention.plafond_securite_sociale)
            montant_sal = -arrondir(base * tx_sal / CENT)
            montant_empl = arrondir(base * tx_empl / CENT)

        lignes.append(LigneCalculee(
            code=regle.code,
            libelle=regle.libelle,
            base=base,
            taux_salarie=tx_sal,
            montant_salarie=montant_sal,
            taux_employeur=tx_empl,
            montant_employeur=montant_empl,
        ))

        if _est_prevoyance(regle.code) or regle.code == CODE_MUTUELLE:
            patronale_prevoyance += montant_empl

    # Passe 2 : CSG / CRDS
    base_csg = arrondir(brut * convention.taux_assiette_csg / CENT + patronale_prevoyance)
    for regle in regles:
        if regle.base != BaseType.CSG:
            continue
        lignes.append(LigneCalculee(
            code=regle.code,
            libelle=regle.libelle,
            base=base_csg,
            taux_salarie=regle.taux_salarie,
            montant_salarie=-arrondir(base_csg * regle.taux_salarie / CENT),
            taux_employeur=regle.taux_employeur,
            montant_employeur=arrondir(base_csg * regle.taux_employeur / CENT),
        ))

    # Forfait social
    if any(r.code == CODE_FORFAIT_SOCIAL for r in regles):
        base_forfait = arrondir(patronale_prevoyance)
        lignes.append(LigneCalculee(
            code=CODE_FORFAIT_SOCIAL,
            libelle="Forfait Social 8%",
            base=base_forfait,
            taux_salarie=ZERO,
            montant_salarie=ZERO,
            taux_employeur=TAUX_FORFAIT_SOCIAL,
            montant_employeur=arrondir(base_forfait * TAUX_FORFAIT_SOCIAL / CENT),
        ))

    total_retenues = arrondir(sum((abs(l.montant_salarie) for l in lignes), ZERO))
    total_patronal = arrondir(sum((l.montant_employeur for l in lignes), ZERO))
    net_social = arrondir(brut - total_retenues)

    def _montant(code: str, champ: str) -> Decimal:
        for l in lignes:
            if l.code == code:
                return getattr(l, champ)
        return ZERO

    csg_non_deductible = abs(_montant(CODE_CSG_NON_DEDUCTIBLE, "montant_salarie"))
    crds = abs(_montant(CODE_CRDS, "montant_salarie"))
    patronale_mutuelle = _montant(CODE_MUTUELLE, "montant_employeur")
    net_imposable = arrondir(
        brut - (total_retenues - csg_non_deductible - crds) + patronale_mutuelle
    )

    net_avant_pas = arrondir(net_social + options.remboursements)
    montant_pas = arrondir(net_imposable * options.taux_pas / CENT)
    net_paye = arrondir(net_avant_pas - montant_pas)

    logger.debug(
        "Recalcul brut=%s : %d ligne(s), retenues=%s, patronal=%s, net paye=%s",
        brut, len(lignes), total_retenues, total_patronal, net_paye,
    )

    return ResultatCalcul(
        lignes=tuple(lignes),
        base_csg=base_csg,
        total_retenues=total_retenues,
        total_patronal=total_patronal,
        net_social=net_social,
        net_imposable=net_imposable,
        net_a_payer_avant_pas=net_avant_pas,
        pas=PrelevementSource(base=net_imposable, taux=options.taux_pas, montant=montant_pas),
        net_paye=net_paye,
    )


# --- Contexte lu sur le bulletin ---

def detecter_statut(bulletin: Bulletin) -> StatutSalarie:
    """CADRE dans la qualification, sinon codes specifiques, sinon cadre."""
    qualification = bulletin.salarie.qualification_conventionnelle or ""
    if _CADRE.search(qualification):
        return StatutSalarie.CADRE
    if bulletin.type == TypeBulletin.DETAILLE:
        codes = {c.code for c in bulletin.toutes_cotisations()}
        if codes & CODES_CADRE:
            return StatutSalarie.CADRE
        if codes & CODES_NON_CADRE:
            return StatutSalarie.NON_CADRE
    return StatutSalarie.CADRE


def construire_options(
    bulletin: Bulletin,
    convention: ConventionCollective,
    statut: Optional[StatutSalarie] = None,
) -> OptionsCalcul:
    """Construit le contexte de recalcul a partir des lignes du bulletin.

    Codes presents, plafond proratise, taux AT et statut apprenti ne sont lus
    que sur le bulletin detaille (le clarifie ne porte pas de codes).
    """
    statut = statut or detecter_statut(bulletin)
    taux_pas = ZERO
    if bulletin.impot_sur_le_revenu and bulletin.impot_sur_le_revenu.taux_personnalise is not None:
        taux_pas = bulletin.impot_sur_le_revenu.taux_personnalise

    if bulletin.type != TypeBulletin.DETAILLE:
        return OptionsCalcul(
            statut=statut,
            remboursements=bulletin.total_remboursements,
            taux_pas=taux_pas,
        )

    cotisations = bulletin.toutes_cotisations()
    par_code = {}
    for c in cotisations:
        if c.code and c.code not in par_code:
            par_code[c.code] = c

    plafond_prorate = None
    vieillesse = par_code.get(CODE_VIEILLESSE_TA)
    if vieillesse is not None and vieillesse.base:
        t1_standard = min(bulletin.brut_cotisation, convention.plafond_securite_sociale)
        if vieillesse.base < t1_standard - Decimal("0.01"):
            plafond_prorate = vieillesse.base
            logger.debug("PMSS proratise detecte : %s", plafond_prorate)

    taux_at = None
    at = par_code.get(CODE_ACCIDENT_TRAVAIL)
    if at is not None and at.montant_employeur and at.base:
        taux_at = arrondir(at.montant_employeur / at.base * Decimal("10000")) / CENT

    return OptionsCalcul(
        statut=statut,
        remboursements=bulletin.total_remboursements,
        taux_pas=taux_pas,
        codes_presents=frozenset(par_code),
        plafond_prorate=plafond_prorate,
        taux_at=taux_at,
        apprenti=bool(CODES_APPRENTI & set(par_code)),
    )
