"""Utilitaires communs aux parseurs de bulletins : nombres, lignes, dates, conges.

L'extraction texte des PDF concatene souvent les montants sans separateur :
"3 841,583,930977,50Salaire indiciaire" -> [3841.58, 3.930, 977.50].
Une regex globale ne suffit pas : on decoupe a partir des positions des
virgules decimales et des longueurs decimales connues du bulletin francais
(montants a 2 decimales, taux a 3 decimales).
"""

import re
from decimal import Decimal
from typing import NamedTuple, Optional

from veripay.models.bulletins import CompteurConges
from veripay.utils.number_utils import parser_nombre

# Longueurs decimales attendues selon le nombre de valeurs sur la ligne
LONGUEURS_DECIMALES = {
    1: [2],
    2: [2, 2],
    3: [2, 3, 2],
    4: [2, 2, 3, 2],
    5: [2, 3, 2, 3, 2],
}

MONTANT_SEUL = re.compile(r"^\d[\d\s]*,\d{2}$")
MONTANT_FIN_LIGNE = re.compile(r"(\d[\d\s]*,\d{2})\s*$")
DATE_JJMMAAAA = re.compile(r"(\d{1,2}/\d{1,2}/\d{4})")
LIGNE_NOM_SALARIE = re.compile(r"^(Mme|M\.|Monsieur|Madame)\s", re.IGNORECASE)
LIGNE_DU_AU = re.compile(r"^du\s*au$", re.IGNORECASE)


class NombresEtLibelle(NamedTuple):
    nombres: list[Decimal]
    libelle: str


def longueurs_decimales(nb_virgules: int) -> list[int]:
    """Longueurs des parties decimales, de gauche a droite."""
    if nb_virgules in LONGUEURS_DECIMALES:
        return list(LONGUEURS_DECIMALES[nb_virgules])
    longueurs = [2] * nb_virgules
    if nb_virgules >= 3:
        longueurs[-2] = 3     # le taux est l'avant-dernier
    return longueurs


def _virgules_decimales(texte: str) -> list[int]:
    """Positions des virgules encadrees par deux chiffres."""
    return [
        i for i in range(1, len(texte) - 1)
        if texte[i] == "," and texte[i - 1].isdigit() and texte[i + 1].isdigit()
    ]


def extraire_nombres_et_libelle(ligne: str) -> NombresEtLibelle:
    """Extrait les nombres (ordre du texte) et le libelle residuel d'une ligne."""
    virgules = _virgules_decimales(ligne)
    if not virgules:
        return NombresEtLibelle([], ligne.strip())

    # Fin de la partie decimale du dernier nombre
    fin = virgules[-1] + 1
    while fin < len(ligne) and ligne[fin].isdigit():
        fin += 1

    partie_nombres = ligne[:fin]
    libelle = re.sub(r"\s+", " ", ligne[fin:]).strip()

    virgules = _virgules_decimales(partie_nombres)
    longueurs = longueurs_decimales(len(virgules))

    nombres = []
    pos = 0
    for virgule, longueur in zip(virgules, longueurs):
        entier = partie_nombres[pos:virgule]
        decimales = partie_nombres[virgule + 1:virgule + 1 + longueur]
        valeur = parser_nombre(f"{entier},{decimales}".strip())
        if valeur is not None:
            nombres.append(valeur)
        pos = virgule + 1 + longueur

    return NombresEtLibelle(nombres, libelle)


def extraire_nombres(ligne: str) -> list[Decimal]:
    return extraire_nombres_et_libelle(ligne).nombres


def extraire_libelle(ligne: str) -> str:
    return extraire_nombres_et_libelle(ligne).libelle


def lignes(texte: str) -> list[str]:
    """Decoupe le texte en lignes nettoyees (espaces normalises, lignes vides retirees)."""
    resultat = []
    for brute in re.split(r"\r?\n", texte):
        l = re.sub(r"\s+", " ", brute.strip())
        if l:
            resultat.append(l)
    return resultat


def trouver_toutes_dates(texte: str) -> list[str]:
    return DATE_JJMMAAAA.findall(texte)


def date_iso(jjmmaaaa: str) -> str:
    """JJ/MM/AAAA (ou JJ-MM-AAAA) -> AAAA-MM-JJ ; la valeur est rendue telle quelle sinon."""
    m = re.search(r"(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})", jjmmaaaa.strip())
    if not m:
        return jjmmaaaa
    return f"{m.group(3)}-{m.group(2).zfill(2)}-{m.group(1).zfill(2)}"


def disposer_colonnes(
    nombres: list[Decimal],
    table: dict[tuple[int, bool], tuple[str, ...]],
    discriminants: dict[int, int],
    max_colonnes: int,
) -> dict[str, Decimal]:
    """Affecte chaque nombre a son champ selon (nombre de valeurs, signe du discriminant).

    `discriminants` donne, pour un nombre de valeurs, l'index de la valeur dont le
    signe (negatif = retenue salariale) departage les dispositions possibles.
    """
    n = min(len(nombres), max_colonnes)
    if n == 0:
        return {}
    index = discriminants.get(n)
    negatif = index is not None and nombres[index] < 0
    champs = table[(n, negatif)]
    return dict(zip(champs, nombres))


# --- Conges ---

_LABELS_CONGES = (
    ("N-2", re.compile(r"SOLDE\s+congés\s+(\d{2}/\d{2})\s+N-2", re.IGNORECASE)),
    ("N-1", re.compile(r"SOLDE\s+congés\s+(\d{2}/\d{2})\s+N-1", re.IGNORECASE)),
    ("N", re.compile(r"SOLDE\s+congés\s+(\d{2}/\d{2})\s+N(?!-)", re.IGNORECASE)),
)
_ORDRE_CONGES = {"N": 0, "N-1": 1, "N-2": 2}
_SOLDE_MAX = Decimal("100")


def _solde_plausible(texte: Optional[str]) -> Optional[Decimal]:
    if texte is None:
        return None
    v = parser_nombre(texte)
    if v is not None and v < _SOLDE_MAX:
        return v
    return None


def extraire_conges(lines: list[str]) -> list[CompteurConges]:
    """Compteurs de conges (solde N, N-1, N-2).

    Trois dispositions rencontrees :
      1. valeur collee apres le label : "SOLDE congés 25/26 N16,64"
      2. valeur collee avant le label : "2,50SOLDE congés 23/24 N-2"
      3. valeur sur une ligne separee apres le label (ou, a defaut, en fin
         d'une ligne precedente)
    """
    resultat: list[CompteurConges] = []
    en_attente: list[tuple[str, str, int]] = []   # (periode, type, index de ligne)
    lignes_utilisees: set[int] = set()

    for i, l in enumerate(lines):
        for type_conges, pattern in _LABELS_CONGES:
            m = pattern.search(l)
            if not m:
                continue
            apres = re.match(r"(\d[\d\s]*,\d{2})", l[m.end():])
            avant = MONTANT_FIN_LIGNE.search(l[:m.start()])
            solde = _solde_plausible(apres.group(1) if apres else None)
            if solde is None:
                solde = _solde_plausible(avant.group(1) if avant else None)
            if solde is not None:
                resultat.append(CompteurConges(periode=m.group(1), type=type_conges, solde=solde))
                lignes_utilisees.add(i)
            else:
                en_attente.append((m.group(1), type_conges, i))
            break

    if en_attente:
        # Valeurs autonomes ("16,64") apres le premier label en attente
        debut = min(idx for _, _, idx in en_attente)
        autonomes = []
        for j in range(debut + 1, min(debut + 12, len(lines))):
            if j in lignes_utilisees or not MONTANT_SEUL.match(lines[j]):
                continue
            v = _solde_plausible(lines[j])
            if v is not None:
                autonomes.append((j, v))

        restants = []
        for k, (periode, type_conges, idx) in enumerate(en_attente):
            if k < len(autonomes):
                j, v = autonomes[k]
                resultat.append(CompteurConges(periode=periode, type=type_conges, solde=v))
                lignes_utilisees.add(j)
            else:
                restants.append((periode, type_conges, idx))

        # Repli : nombre en fin de ligne precedente
        valeurs_utilisees = {c.solde for c in resultat}
        for periode, type_conges, idx in restants:
            for j in range(idx - 1, max(0, idx - 5) - 1, -1):
                if j in lignes_utilisees:
                    continue
                m = MONTANT_FIN_LIGNE.search(lines[j])
                v = _solde_plausible(m.group(1) if m else None)
                if v is not None and v not in valeurs_utilisees:
                    resultat.append(CompteurConges(periode=periode, type=type_conges, solde=v))
                    valeurs_utilisees.add(v)
                    break

    return sorted(resultat, key=lambda c: _ORDRE_CONGES.get(c.type, 99))
