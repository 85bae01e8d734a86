"""
Convention collective du 15 mars 1966 (CCNT 66), taux 2026.

Taux extraits des bulletins detailles de reference.

Bases :
  brut    = totalite du salaire brut
  T1      = min(brut, PMSS)
  T2      = max(0, brut - PMSS)
  csg     = brut x 98,25% + patronale prevoyance + patronale mutuelle
  forfait = montant fixe (ex : mutuelle)
"""

from decimal import Decimal

from veripay.config.constants import (
    BaseType, SituationRegle, StatutSalarie, PASS_MENSUEL, TAUX_ASSIETTE_CSG,
)
from veripay.models.convention import ConventionCollective, RegleCotisation

D = Decimal
CADRE = StatutSalarie.CADRE
NON_CADRE = StatutSalarie.NON_CADRE


def _regle(code, libelle, base, taux_sal, taux_empl, categorie, statut=None, **autres):
    return RegleCotisation(
        code=code,
        libelle=libelle,
        base=base,
        taux_salarie=D(taux_sal),
        taux_employeur=D(taux_empl),
        categorie=categorie,
        statut=statut,
        **autres,
    )


REGLES_CCNT66 = (
    # --- Maladie ---
    _regle("20000", "Cotisation Maladie sur Totalité", BaseType.BRUT, "0", "7", "SANTE"),
    _regle("20002", "Majo Alsace Moselle/Maladie Totalité", BaseType.BRUT, "1.3", "0", "SANTE"),
    _regle("20082", "Cotisation Maladie Sup.", BaseType.BRUT, "0", "6", "SANTE"),
    _regle("20085", "Cotisation Maladie Sup. édition BS", BaseType.BRUT, "0", "6", "SANTE",
           situation=SituationRegle.EDITION),
    # Non-residents fiscaux FR : remplace CSG/CRDS
    _regle("20065", "Cotisation Maladie sup non résident FR", BaseType.BRUT, "5.5", "0", "SANTE",
           situation=SituationRegle.NON_RESIDENT),
    # Apprenti, variante Alsace-Moselle
    _regle("20003", "Majo Alsace Moselle/Maladie Appr non exo", BaseType.BRUT, "1.3", "0", "SANTE",
           situation=SituationRegle.APPRENTI),

    # --- Vieillesse ---
    _regle("20200", "Cotisation Vieillesse Tranche A", BaseType.T1, "6.9", "8.55", "RETRAITE"),
    _regle("20300", "Cotisation Vieillesse déplafonnée", BaseType.BRUT, "0.4", "2.11", "RETRAITE"),

    # --- Allocations familiales ---
    _regle("20400", "Allocations familiales Totalité", BaseType.BRUT, "0", "3.45", "FAMILLE"),
    _regle("20700", "Allocations familiales sup", BaseType.BRUT, "0", "1.8", "FAMILLE"),

    _regle("21000", "Contribution de Solidarité", BaseType.BRUT, "0", "0.3", "AUTRES"),

    # --- Chomage ---
    _regle("30005", "Assedic Tranche A Cadre", BaseType.T1, "0", "4", "CHOMAGE", CADRE),
    _regle("30205", "Assedic Tranche B Cadre", BaseType.T2, "0", "4", "CHOMAGE", CADRE),
    _regle("30405", "A.G.S. sur T A Cadre", BaseType.T1, "0", "0.25", "CHOMAGE", CADRE),
    _regle("30455", "A.G.S. sur T B Cadre", BaseType.T2, "0", "0.25", "CHOMAGE", CADRE),
    _regle("30002", "Assedic Tranche A NC", BaseType.T1, "0", "4", "CHOMAGE", NON_CADRE),
    _regle("30202", "Assedic Tranche B NC", BaseType.T2, "0", "4", "CHOMAGE", NON_CADRE),
    _regle("30402", "A.G.S. sur T A NC", BaseType.T1, "0", "0.25", "CHOMAGE", NON_CADRE),
    _regle("30450", "A.G.S. sur T B Non Cadre", BaseType.T2, "0", "0.25", "CHOMAGE", NON_CADRE),

    # --- Retraite complementaire ---
    _regle("46000", "Retraite sur T 1", BaseType.T1, "3.81", "6.35", "RETRAITE"),
    _regle("46100", "Retraite sur T 2 NC", BaseType.T2, "8.10", "13.49", "RETRAITE", NON_CADRE),
    _regle("46150", "Retraite sur T 2 Cadre", BaseType.T2, "8.64", "12.95", "RETRAITE", CADRE),
    _regle("46350", "Contrib. d'Equil. Général T 1", BaseType.T1, "0.86", "1.29", "RETRAITE"),
    _regle("46400", "Contrib. d'Equil. Général T 2", BaseType.T2, "1.08", "1.62", "RETRAITE", CADRE),
    _regle("46500", "Contrib. d'Equil. Technique T 1", BaseType.T1, "0.14", "0.21", "RETRAITE", CADRE),
    _regle("46530", "Contrib. d'Equil. Technique T 2", BaseType.T2, "0.14", "0.21", "RETRAITE", CADRE),
    _regle("46550", "APEC sur T 1 Cadre", BaseType.T1, "0.024", "0.036", "CHOMAGE", CADRE),
    _regle("46600", "APEC sur T 2 Cadre", BaseType.T2, "0.024", "0.036", "CHOMAGE", CADRE),

    # --- Prevoyance ---
    _regle("51005", "Prévoyance sur Tranche A Cadre", BaseType.T1, "0.65", "1.84", "SANTE", CADRE),
    _regle("52005", "Prévoyance sur Tranche B Cadre", BaseType.T2, "1.875", "1.875", "SANTE", CADRE),
    _regle("51000", "Prévoyance sur Tranche A Non cadre", BaseType.T1, "1.245", "1.245", "SANTE", NON_CADRE),
    _regle("51052", "Prévoyance Apprenti non exo", BaseType.T1, "1.245", "1.245", "SANTE",
           situation=SituationRegle.APPRENTI),
    _regle("52000", "Prévoyance sur Tranche B Non cadre", BaseType.T2, "1.245", "1.245", "SANTE", NON_CADRE),

    # Taux moyen ; le taux reel de l'etablissement est lu sur le bulletin
    _regle("57100", "Accident du travail", BaseType.BRUT, "0", "3.02", "SANTE"),
    _regle("57200", "FNAL sur brut", BaseType.BRUT, "0", "0.5", "AUTRES"),
    _regle("57500", "Contribution au dialogue social", BaseType.BRUT, "0", "0.016", "AUTRES"),

    _regle(
        "58000", "Mutuelle CPM Régime local", BaseType.FORFAIT, "0", "0", "SANTE",
        forfait_salarie=D("-21.83"), forfait_employeur=D("21.83"),
    ),

    # --- Formation professionnelle ---
    _regle("60710", "Contribution Formation Pro", BaseType.BRUT, "0", "1", "AUTRES"),
    # Taux affiche 1,303% ; taux reel 1,3033%
    _regle("60720", "Contribution supplé. Formation Pro", BaseType.BRUT, "0", "1.3033", "AUTRES"),
    _regle("60730", "Formation supp. CDD", BaseType.BRUT, "0", "1", "AUTRES"),

    # --- CSG / CRDS ---
    _regle("73000", "C.S.G. Déductible", BaseType.CSG, "6.8", "0", "CSG_CRDS"),
    _regle("75050", "C.S.G. non Déductible", BaseType.CSG, "2.4", "0", "CSG_CRDS"),
    _regle("75060", "C.R.D.S.", BaseType.CSG, "0.5", "0", "CSG_CRDS"),

    # Calcule sur la patronale prevoyance + mutuelle
    _regle("73355", "Forfait Social 8%", BaseType.FORFAIT, "0", "0", "AUTRES"),
)


CONVENTION_CCNT66 = ConventionCollective(
    id="ccnt66",
    nom="Convention collective du 15 mars 1966",
    plafond_securite_sociale=PASS_MENSUEL,
    taux_assiette_csg=TAUX_ASSIETTE_CSG,
    regles=REGLES_CCNT66,
)
