"""Fiches d'explication des erreurs de parametrage.

Consommees par le service de conversation externe pour construire le contexte
de la question posee ; aucune generation de texte n'est faite ici.
"""

from decimal import Decimal
from typing import Optional

from veripay.config.constants import TypeErreur
from veripay.utils.number_utils import formater_montant

EXPLICATIONS_ERREURS = {
    TypeErreur.PLAFOND: {
        "label": "PMSS incorrect",
        "description": (
            "Le plafond mensuel de la Sécurité sociale est resté à la valeur 2025 "
            "(3 925 €) au lieu de 4 005 € en 2026."
        ),
        "valeur_attendue": "4 005 €",
        "valeur_erronee": "3 925 €",
    },
    TypeErreur.SMIC: {
        "label": "SMIC erroné",
        "description": "Erreur de frappe sur le SMIC mensuel (1 832,03 € au lieu de 1 823,03 €).",
        "valeur_attendue": "1 823,03 €",
        "valeur_erronee": "1 832,03 €",
    },
    TypeErreur.COEFFICIENT_RGDU: {
        "label": "Coefficient RGDU",
        "description": (
            "Le coefficient T delta de la RGDU est mal paramétré (0,3241 au lieu de 0,3821)."
        ),
        "valeur_attendue": "0,3821",
        "valeur_erronee": "0,3241",
    },
}


def construire_contexte_explication(
    type_erreur: str,
    salarie: Optional[str] = None,
    periode: Optional[str] = None,
    brut: Optional[Decimal] = None,
) -> str:
    """Bloc de contexte (erreur + bulletin) transmis au service d'explication."""
    try:
        fiche = EXPLICATIONS_ERREURS.get(TypeErreur(type_erreur))
    except ValueError:
        fiche = None

    if fiche:
        lignes = [
            f"Erreur détectée : {type_erreur} - {fiche['label']}",
            f"Description : {fiche['description']}",
            f"Valeur attendue : {fiche['valeur_attendue']}",
            f"Valeur erronée : {fiche['valeur_erronee']}",
        ]
    else:
        lignes = [f"Erreur détectée : {type_erreur}"]

    if salarie is not None or periode is not None or brut is not None:
        lignes += [
            "Contexte du bulletin :",
            f"- Salarié : {salarie or 'non renseigné'}",
            f"- Période : {periode or 'non renseignée'}",
            f"- Brut : {formater_montant(brut) if brut is not None else 'non renseigné'}",
        ]
    return "\n".join(lignes)
