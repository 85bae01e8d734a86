"""Verification d'un bulletin : convention OU coherence interne.

Deux controles independants :
- convention : les totaux et les lignes codees recalcules a partir de la
  CCNT 66 sont compares aux valeurs extraites du bulletin (tolerance 0,005) ;
- coherence interne : les sommes que le bulletin doit respecter par
  construction, sans reference a la convention (tolerance 0,02).

Un bulletin est valide si l'un des deux controles est sans ecart : un bulletin
coherent mais different du recalcul releve le plus souvent d'une variante de
convention non modelisee.
"""

import logging
from decimal import Decimal
from typing import Optional

from veripay.analyzers.base_analyzer import BaseAnalyzer
from veripay.config.convention_ccnt66 import CONVENTION_CCNT66
from veripay.config.settings import AnalysisConfig
from veripay.models.bulletins import Bulletin
from veripay.models.convention import ConventionCollective
from veripay.models.resultats import (
    Coherence,
    EcartCoherence,
    EcartConvention,
    EcartLigne,
    ResultatCalcul,
    ResultatVerification,
)
from veripay.rules.calcul_engine import calculer_bulletin, construire_options, detecter_statut
from veripay.utils.number_utils import arrondir

logger = logging.getLogger("veripay.verification")

ZERO = Decimal("0")
# Au-dela, un net imposable extrait est un cumul multi-contrats
MARGE_CUMUL_NET_IMPOSABLE = Decimal("1.1")


def comparer_convention(
    bulletin: Bulletin,
    calcul: ResultatCalcul,
    tolerance: Decimal,
) -> list[EcartConvention]:
    """Compare les totaux recalcules aux totaux extraits ; les valeurs absentes sont ignorees."""
    ecarts: list[EcartConvention] = []

    def check(champ: str, extrait: Optional[Decimal], calcule: Decimal) -> None:
        if extrait is None:
            return
        diff = arrondir(calcule - extrait)
        if abs(diff) > tolerance:
            ecarts.append(EcartConvention(champ=champ, bulletin=extrait, calcul=calcule, ecart=diff))

    check("total_retenues", bulletin.total_retenues, calcul.total_retenues)
    check("total_patronal", bulletin.total_cotisations_patronales, calcul.total_patronal)
    check("net_social", bulletin.net_social, calcul.net_social)

    net_imposable = bulletin.cumuls.net_imposable if bulletin.cumuls else None
    est_cumul = net_imposable is not None and (
        net_imposable > bulletin.brut_cotisation
        or net_imposable > calcul.net_imposable * MARGE_CUMUL_NET_IMPOSABLE
    )
    if est_cumul:
        logger.debug("Net imposable %s ignore (cumul multi-contrats)", net_imposable)
    else:
        check("net_imposable", net_imposable, calcul.net_imposable)

    check("net_a_payer_avant_pas", bulletin.net_a_payer_avant_impot, calcul.net_a_payer_avant_pas)
    check("net_paye", bulletin.net_paye, calcul.net_paye)
    return ecarts


def verifier_coherence(bulletin: Bulletin, tolerance: Decimal) -> Coherence:
    """Sommes internes du bulletin, independantes de la convention."""
    ecarts: list[EcartCoherence] = []

    def check(champ: str, attendu: Decimal, extrait: Optional[Decimal]) -> None:
        if extrait is None:
            return
        diff = arrondir(attendu - extrait)
        if abs(diff) > tolerance:
            ecarts.append(EcartCoherence(champ=champ, attendu=attendu, extrait=extrait, ecart=diff))

    # Sommes des lignes contre les totaux imprimes, quelle que soit la mise en page
    cotisations = bulletin.toutes_cotisations()
    if cotisations:
        somme_salariale = arrondir(sum((abs(c.montant_salarie) for c in cotisations), ZERO))
        somme_patronale = arrondir(sum((c.montant_employeur or ZERO for c in cotisations), ZERO))
        check("somme_salariale/total_retenues", somme_salariale, bulletin.total_retenues)
        check("somme_patronale/total_patronal", somme_patronale, bulletin.total_cotisations_patronales)

    if bulletin.total_retenues is not None:
        check(
            "brut-retenues/net_social",
            arrondir(bulletin.brut_cotisation - bulletin.total_retenues),
            bulletin.net_social,
        )
    if bulletin.net_social is not None:
        check(
            "net_social+remboursements/net_avant_pas",
            arrondir(bulletin.net_social + bulletin.total_remboursements),
            bulletin.net_a_payer_avant_impot,
        )
    if bulletin.net_a_payer_avant_impot is not None:
        montant_pas = abs(bulletin.impot_sur_le_revenu.montant) if bulletin.impot_sur_le_revenu else ZERO
        check(
            "net_avant_pas-pas/net_paye",
            arrondir(bulletin.net_a_payer_avant_impot - montant_pas),
            bulletin.net_paye,
        )

    return Coherence(valide=not ecarts, ecarts=ecarts)


def comparer_lignes(
    calcul: ResultatCalcul,
    bulletin: Bulletin,
    tolerance: Decimal = Decimal("0.005"),
) -> list[EcartLigne]:
    """Compare chaque ligne recalculee a la ligne du bulletin portant le meme code.

    Seuls les montants non nuls du bulletin sont compares.
    """
    par_code = {}
    for c in bulletin.toutes_cotisations():
        if c.code and c.code not in par_code:
            par_code[c.code] = c

    ecarts: list[EcartLigne] = []
    for lc in calcul.lignes:
        lb = par_code.get(lc.code) if lc.code else None
        if lb is None:
            continue
        for champ, extrait, calcule in (
            ("montant_salarie", lb.montant_salarie, lc.montant_salarie),
            ("montant_employeur", lb.montant_employeur, lc.montant_employeur),
        ):
            if not extrait:
                continue
            diff = arrondir(calcule - extrait)
            if abs(diff) > tolerance:
                ecarts.append(EcartLigne(
                    code=lc.code, libelle=lc.libelle, champ=champ,
                    bulletin=extrait, calcul=calcule, ecart=diff,
                ))
    return ecarts


class ConsistencyChecker(BaseAnalyzer):
    """Recalcule et verifie chaque bulletin d'un lot."""

    def __init__(
        self,
        config: Optional[AnalysisConfig] = None,
        convention: ConventionCollective = CONVENTION_CCNT66,
    ):
        self.config = config or AnalysisConfig()
        self.convention = convention

    @property
    def nom(self) -> str:
        return "Verificateur convention / coherence"

    def analyser(self, bulletins: list[Bulletin]) -> list[ResultatVerification]:
        return [self.verifier(b) for b in bulletins]

    def verifier(self, bulletin: Bulletin) -> ResultatVerification:
        statut = detecter_statut(bulletin)
        options = construire_options(bulletin, self.convention, statut)
        calcul = calculer_bulletin(bulletin.brut_cotisation, self.convention, options)

        ecarts = comparer_convention(bulletin, calcul, self.config.tolerance_convention)
        ecarts_lignes = comparer_lignes(calcul, bulletin, self.config.tolerance_convention)
        coherence = verifier_coherence(bulletin, self.config.tolerance_coherence)
        valide = not (ecarts or ecarts_lignes) or coherence.valide

        if ecarts or ecarts_lignes:
            logger.info(
                "Bulletin %s : %d ecart(s) convention, %d ligne(s), coherence %s",
                bulletin.salarie.nom or "?", len(ecarts), len(ecarts_lignes),
                "OK" if coherence.valide else "KO",
            )
        return ResultatVerification(
            statut_detecte=statut,
            calcul=calcul,
            ecarts=ecarts,
            ecarts_lignes=ecarts_lignes,
            coherence=coherence,
            valide=valide,
        )


def verifier_bulletin(bulletin: Bulletin, config: Optional[AnalysisConfig] = None) -> ResultatVerification:
    """Raccourci : verifie un bulletin avec la convention CCNT 66."""
    return ConsistencyChecker(config).verifier(bulletin)
