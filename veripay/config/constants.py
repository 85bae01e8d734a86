"""
Constantes reglementaires 2026 et parametres de detection.

Sources :
- urssaf.fr : Ce qu'il faut savoir au 1er janvier 2026
- Convention collective nationale du 15 mars 1966 (CCNT 66)
- Bulletins detailles de reference (taux effectivement appliques)
"""

from decimal import Decimal
from enum import Enum


# --- Plafonds et SMIC 2026 ---

PASS_MENSUEL = Decimal("4005.00")
SMIC_MENSUEL_BRUT = Decimal("1823.03")     # 151,67 h

# Assiette CSG/CRDS : 98,25% du brut (+ patronale prevoyance/mutuelle)
TAUX_ASSIETTE_CSG = Decimal("98.25")

# --- RGDU (Reduction Generale Degressive Unique) 2026 ---
# C = T_min + T_delta x [(1/2) x (3 x SMIC / brut - 1)]^P

RGDU_T_MIN = Decimal("0.02")
RGDU_T_DELTA = Decimal("0.3821")
RGDU_PUISSANCE = Decimal("1.75")
RGDU_SEUIL_SMIC_MULTIPLE = Decimal("3")

# Forfait social sur la patronale prevoyance + mutuelle
TAUX_FORFAIT_SOCIAL = Decimal("8")


class TypeBulletin(str, Enum):
    """Mise en page du bulletin."""
    DETAILLE = "detaille"
    CLARIFIE = "clarifie"


class StatutSalarie(str, Enum):
    CADRE = "cadre"
    NON_CADRE = "non_cadre"


class SituationRegle(str, Enum):
    """Situation particuliere a laquelle une regle est reservee."""
    NON_RESIDENT = "non_resident"
    APPRENTI = "apprenti"
    # Ligne dupliquee par certaines editions du bulletin
    EDITION = "edition"


class BaseType(str, Enum):
    """Assiette d'une regle de cotisation."""
    BRUT = "brut"
    T1 = "T1"          # min(brut, PMSS)
    T2 = "T2"          # max(0, brut - PMSS)
    CSG = "csg"        # brut x 98,25% + patronale prevoyance/mutuelle
    FORFAIT = "forfait"


class TypeErreur(str, Enum):
    """Erreurs de parametrage connues."""
    PLAFOND = "TIAFM"
    SMIC = "AAICO"
    COEFFICIENT_RGDU = "RGDUB"
    AUTRE = "autre"


# --- Erreurs de parametrage connues (valeur attendue / valeur erronee) ---

ERREURS_CONNUES = {
    TypeErreur.PLAFOND: {
        "valeur_attendue": PASS_MENSUEL,
        "valeur_erronee": Decimal("3925.00"),   # PMSS 2025
    },
    TypeErreur.SMIC: {
        "valeur_attendue": SMIC_MENSUEL_BRUT,
        "valeur_erronee": Decimal("1832.03"),
    },
    TypeErreur.COEFFICIENT_RGDU: {
        "valeur_attendue": RGDU_T_DELTA,
        "valeur_erronee": Decimal("0.3241"),
    },
}

MESSAGES_ERREURS = {
    TypeErreur.PLAFOND: "Plafond de SS laissé au montant 2025",
    TypeErreur.SMIC: "Erreur de frappe sur le smic",
    TypeErreur.COEFFICIENT_RGDU: "Coef de RGDU T delta mal renseigné",
    TypeErreur.AUTRE: "Bulletin illisible ou incomplet",
}


# --- Codes du bulletin detaille ---

# Plages de codes (fin de ligne, 5 chiffres)
PLAGE_ELEMENTS_SALAIRE = (1, 10000)
CODE_BRUT_SOUMIS = 10000
PLAGE_COTISATIONS = (20000, 70000)
PLAGE_CSG_CRDS = (73000, 76000)
PLAGE_REMBOURSEMENTS = (80000, 90000)
CODE_IMPOT_REVENU = "76041"
CODE_NET_A_PAYER_AVANT_IMPOT = 90010
CODE_NET_SOCIAL = 94142
CODE_TAUX_EMPLOI = "00035"

CODE_VIEILLESSE_TA = "20200"
CODE_ACCIDENT_TRAVAIL = "57100"
CODE_MUTUELLE = "58000"
CODE_CSG_DEDUCTIBLE = "73000"
CODE_CSG_NON_DEDUCTIBLE = "75050"
CODE_CRDS = "75060"
CODE_FORFAIT_SOCIAL = "73355"
CODE_MALADIE_NON_RESIDENT = "20065"

# Codes cotisant sur la tranche 1 (base = PMSS utilise si brut > PMSS)
CODES_T1 = frozenset({
    "20200", "30005", "30002", "30405", "30402",
    "46000", "46350", "46500", "46550", "51005", "51000",
})

# Prevoyance (51xxx, 52xxx) : alimente l'assiette CSG et le forfait social
PREFIXES_PREVOYANCE = ("51", "52")

CODES_CADRE = frozenset({"46500", "46550", "51005"})
CODES_NON_CADRE = frozenset({"51000", "30002"})
CODES_APPRENTI = frozenset({"20020", "20290", "30300", "46050"})

# Formats d'entree supportes
SUPPORTED_EXTENSIONS = {
    ".pdf": "pdf",
    ".txt": "texte",
}

MOIS_FR = [
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
]
