"""Detection de la mise en page d'un bulletin (detaille ou clarifie)."""

import re
from typing import Optional, Union

from veripay.config.constants import TypeBulletin

ENTETE_TABLE_DETAILLE = re.compile(
    r"N°\s*Libe\s*llé\s*s|Montants\s+Re\s*te\s*nue\s*s\s+Patronale\s*s",
    re.IGNORECASE,
)
CODE_FIN_LIGNE = re.compile(r"\s\d{5}\s*$", re.MULTILINE)
MONTANT = re.compile(r"\d[\d \t\u00a0]*,\d{2}")
ASSURANCE_CHOMAGE = re.compile(r"ASSURANCE\s+CH[OÔ]MAGE")


def type_par_nom_fichier(nom_fichier: Optional[str]) -> Optional[TypeBulletin]:
    """Indice tire du nom du fichier televerse ("..._detaille.pdf", "..._clarifie.pdf")."""
    if not nom_fichier:
        return None
    nom = nom_fichier.lower()
    if "detaille" in nom:
        return TypeBulletin.DETAILLE
    if "clarifie" in nom or "simplifie" in nom:
        return TypeBulletin.CLARIFIE
    return None


def type_par_contenu(
    texte: str, defaut: TypeBulletin = TypeBulletin.DETAILLE,
) -> TypeBulletin:
    """Detection par le contenu : en-tete de table + codes a 5 chiffres, ou blocs SANTE/RETRAITE/FAMILLE."""
    a_table = bool(ENTETE_TABLE_DETAILLE.search(texte))
    # Codes en fin de ligne, une fois les montants retires
    a_codes = bool(CODE_FIN_LIGNE.search(MONTANT.sub("", texte)))
    if a_table and a_codes:
        return TypeBulletin.DETAILLE

    normalise = re.sub(r"\s+", " ", texte).upper()
    a_blocs = (
        ("SANTE" in normalise and "RETRAITE" in normalise and "FAMILLE" in normalise)
        or bool(ASSURANCE_CHOMAGE.search(normalise))
    )
    if a_blocs:
        return TypeBulletin.CLARIFIE
    return defaut


def detecter_type_bulletin(
    texte: str,
    type_force: Optional[Union[TypeBulletin, str]] = None,
    nom_fichier: Optional[str] = None,
    defaut: TypeBulletin = TypeBulletin.DETAILLE,
) -> TypeBulletin:
    """Priorite : type force > nom du fichier > contenu du bloc."""
    if type_force:
        return TypeBulletin(type_force)
    return type_par_nom_fichier(nom_fichier) or type_par_contenu(texte, defaut)
