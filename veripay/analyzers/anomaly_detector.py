"""Detection des erreurs de parametrage du logiciel de paie (annee 2026).

Erreurs connues :
- TIAFM : plafond mensuel de la securite sociale laisse a la valeur 2025
- AAICO : faute de frappe sur le SMIC mensuel (151,67 h)
- RGDUB : coefficient T delta de la RGDU mal renseigne

Le PMSS est lisible directement sur les bases tranche 1 des cotisations.
Le SMIC et le T delta sont detectes indirectement, en confrontant le montant
de RGDU du bulletin a quatre recalculs (SMIC correct/errone x T delta
correct/errone).
"""

import logging
from decimal import Decimal
from typing import Optional

from veripay.analyzers.base_analyzer import BaseAnalyzer
from veripay.config.constants import (
    CODE_TAUX_EMPLOI,
    CODES_T1,
    ERREURS_CONNUES,
    MESSAGES_ERREURS,
    PASS_MENSUEL,
    RGDU_PUISSANCE,
    RGDU_SEUIL_SMIC_MULTIPLE,
    RGDU_T_DELTA,
    RGDU_T_MIN,
    SMIC_MENSUEL_BRUT,
    TypeBulletin,
    TypeErreur,
)
from veripay.config.settings import AnalysisConfig
from veripay.models.bulletins import Bulletin
from veripay.models.resultats import ErreurParametrage, ResultatAnalyse, ResultatBulletin
from veripay.utils.date_utils import formater_periode
from veripay.utils.number_utils import arrondir

logger = logging.getLogger("veripay.anomalies")

ZERO = Decimal("0")
UN = Decimal("1")
DEMI = Decimal("0.5")
CENT = Decimal("100")

ORDRE_TYPES = (TypeErreur.PLAFOND, TypeErreur.SMIC, TypeErreur.COEFFICIENT_RGDU)


# ---------------------------------------------------------------------------
# RGDU
# ---------------------------------------------------------------------------

def coefficient_rgdu(
    brut: Decimal,
    smic: Decimal,
    t_delta: Decimal,
    t_min: Decimal = RGDU_T_MIN,
    puissance: Decimal = RGDU_PUISSANCE,
) -> Decimal:
    """C = T_min + T_delta x [(1/2) x (3 x SMIC / brut - 1)]^P, nul si brut >= 3 SMIC."""
    if brut <= 0:
        return ZERO
    if brut >= RGDU_SEUIL_SMIC_MULTIPLE * smic:
        return ZERO
    interieur = DEMI * (RGDU_SEUIL_SMIC_MULTIPLE * smic / brut - UN)
    if interieur <= 0:
        return ZERO
    coefficient = t_min + t_delta * min(interieur, UN) ** puissance
    return min(coefficient, t_min + t_delta)


def montant_rgdu(brut: Decimal, smic: Decimal, t_delta: Decimal) -> Decimal:
    return arrondir(brut * coefficient_rgdu(brut, smic, t_delta))


# ---------------------------------------------------------------------------
# Lecture du bulletin
# ---------------------------------------------------------------------------

def extraire_taux_emploi(bulletin: Bulletin) -> Decimal:
    """Taux d'emploi en % (element 00035), 100 par defaut."""
    for e in bulletin.elements_salaire:
        if e.code == CODE_TAUX_EMPLOI:
            return e.montant
    return CENT


def extraire_pmss_utilise(bulletin: Bulletin) -> Optional[Decimal]:
    """Base de la premiere cotisation tranche 1 inferieure au brut."""
    for c in bulletin.toutes_cotisations():
        if not c.code or not c.base or c.code not in CODES_T1:
            continue
        if c.base < bulletin.brut_cotisation - Decimal("0.01"):
            return c.base
    return None


def extraire_montant_rgdu(bulletin: Bulletin) -> Decimal:
    for a in bulletin.allegements:
        if "RGDU" in a.libelle.upper():
            return abs(a.montant)
    return ZERO


# ---------------------------------------------------------------------------
# Accumulateur du lot
# ---------------------------------------------------------------------------

class AccumulateurErreurs:
    """Types d'erreurs confirmes sur le lot en cours (un document)."""

    def __init__(self):
        self._types: set[TypeErreur] = set()

    def ajouter(self, type_erreur: TypeErreur) -> None:
        if type_erreur not in self._types:
            logger.info("Erreur de parametrage confirmee sur le lot : %s", type_erreur.value)
        self._types.add(type_erreur)

    def contient(self, type_erreur: TypeErreur) -> bool:
        return type_erreur in self._types

    def types(self) -> list[TypeErreur]:
        return [t for t in ORDRE_TYPES if t in self._types]

    def __len__(self) -> int:
        return len(self._types)


def _erreur(type_erreur: TypeErreur) -> ErreurParametrage:
    return ErreurParametrage(type=type_erreur, message=MESSAGES_ERREURS[type_erreur])


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------

def detecter_sur_bulletin(
    bulletin: Bulletin,
    accumulateur: AccumulateurErreurs,
    config: Optional[AnalysisConfig] = None,
) -> list[ErreurParametrage]:
    """Erreurs de parametrage detectables sur un seul bulletin.

    Alimente l'accumulateur du lot ; seuls les bulletins detailles sont evalues.
    """
    config = config or AnalysisConfig()
    erreurs: list[ErreurParametrage] = []
    if bulletin.type != TypeBulletin.DETAILLE:
        return erreurs

    # TIAFM : plafond
    plafond_errone = ERREURS_CONNUES[TypeErreur.PLAFOND]["valeur_erronee"]
    pmss = extraire_pmss_utilise(bulletin)
    if pmss is not None and abs(pmss - PASS_MENSUEL) > config.tolerance_plafond:
        logger.debug("PMSS utilise %s (attendu %s)", pmss, PASS_MENSUEL)
        accumulateur.ajouter(TypeErreur.PLAFOND)
        erreurs.append(_erreur(TypeErreur.PLAFOND))
    elif (accumulateur.contient(TypeErreur.PLAFOND)
          and bulletin.brut_cotisation > plafond_errone + config.tolerance_plafond):
        # Brut au-dessus des deux plafonds : l'erreur ne se voit pas sur ce seul bulletin
        erreurs.append(_erreur(TypeErreur.PLAFOND))

    # AAICO / RGDUB : via le montant de RGDU
    observe = extraire_montant_rgdu(bulletin)
    if observe <= 0:
        return erreurs

    brut = bulletin.brut_cotisation
    taux_emploi = extraire_taux_emploi(bulletin) / CENT
    smic = SMIC_MENSUEL_BRUT * taux_emploi
    smic_errone = ERREURS_CONNUES[TypeErreur.SMIC]["valeur_erronee"] * taux_emploi
    t_delta_errone = ERREURS_CONNUES[TypeErreur.COEFFICIENT_RGDU]["valeur_erronee"]

    ecart_correct = abs(observe - montant_rgdu(brut, smic, RGDU_T_DELTA))
    ecart_smic = abs(observe - montant_rgdu(brut, smic_errone, RGDU_T_DELTA))
    ecart_t_delta = abs(observe - montant_rgdu(brut, smic, t_delta_errone))
    ecart_deux = abs(observe - montant_rgdu(brut, smic_errone, t_delta_errone))
    meilleur = min(ecart_smic, ecart_t_delta, ecart_deux)

    if ecart_correct <= config.seuil_bruit_rgdu or meilleur >= ecart_correct * config.ratio_hypothese_rgdu:
        return erreurs

    logger.debug(
        "RGDU observee %s : ecarts correct=%s smic=%s tdelta=%s deux=%s",
        observe, ecart_correct, ecart_smic, ecart_t_delta, ecart_deux,
    )
    if ecart_smic <= ecart_t_delta and ecart_smic <= ecart_deux:
        types = [TypeErreur.SMIC]
    elif ecart_t_delta <= ecart_smic and ecart_t_delta <= ecart_deux:
        types = [TypeErreur.COEFFICIENT_RGDU]
    else:
        types = [TypeErreur.SMIC, TypeErreur.COEFFICIENT_RGDU]
    for t in types:
        accumulateur.ajouter(t)
        erreurs.append(_erreur(t))
    return erreurs


def propager_erreurs_rgdu(
    bulletin: Bulletin,
    erreurs: list[ErreurParametrage],
    accumulateur: AccumulateurErreurs,
) -> None:
    """Ajoute les erreurs SMIC / T delta du lot a un bulletin portant une RGDU."""
    if extraire_montant_rgdu(bulletin) <= 0:
        return
    deja = {e.type for e in erreurs}
    for t in (TypeErreur.SMIC, TypeErreur.COEFFICIENT_RGDU):
        if accumulateur.contient(t) and t not in deja:
            erreurs.append(_erreur(t))


class AnomalyDetector(BaseAnalyzer):
    """Detecte les erreurs de parametrage sur un lot de bulletins."""

    def __init__(self, config: Optional[AnalysisConfig] = None):
        self.config = config or AnalysisConfig()

    @property
    def nom(self) -> str:
        return "Detecteur d'erreurs de parametrage"

    def analyser(
        self,
        bulletins: list[Bulletin],
        nombre_pages: int = 0,
        erreurs_initiales: Optional[list[list[ErreurParametrage]]] = None,
    ) -> ResultatAnalyse:
        """Deux passes : detection par bulletin, puis propagation des erreurs du lot.

        `erreurs_initiales` permet d'ajouter des constats obtenus en amont
        (bulletin illisible, ...) avant la detection.
        """
        accumulateur = AccumulateurErreurs()
        erreurs_par_bulletin = []
        for i, b in enumerate(bulletins):
            erreurs = list(erreurs_initiales[i]) if erreurs_initiales else []
            erreurs.extend(detecter_sur_bulletin(b, accumulateur, self.config))
            erreurs_par_bulletin.append(erreurs)

        # Propagation : bulletins dont le residu RGDU etait trop faible seul
        for b, erreurs in zip(bulletins, erreurs_par_bulletin):
            propager_erreurs_rgdu(b, erreurs, accumulateur)

        resultats = [
            ResultatBulletin(
                salarie=b.salarie.nom or "Inconnu",
                periode=formater_periode(b.periode.date_debut, b.periode.date_fin),
                valide=not erreurs,
                erreurs=erreurs,
            )
            for b, erreurs in zip(bulletins, erreurs_par_bulletin)
        ]
        logger.info(
            "%d bulletin(s) analyse(s), %d invalide(s), erreurs du lot : %s",
            len(resultats), sum(1 for r in resultats if not r.valide),
            ", ".join(t.value for t in accumulateur.types()) or "aucune",
        )
        return ResultatAnalyse(
            nombre_bulletins=len(bulletins),
            nombre_pages=nombre_pages,
            bulletins=resultats,
        )


def analyser_bulletins(
    bulletins: list[Bulletin],
    nombre_pages: int = 0,
    config: Optional[AnalysisConfig] = None,
) -> ResultatAnalyse:
    return AnomalyDetector(config).analyser(bulletins, nombre_pages)
