"""Decoupage d'un texte extrait en un bloc par bulletin.

Chaque page commence par "Entreprise :". Une page qui contient des elements
de salaire ouvre un nouveau bulletin ; les autres sont des pages de
continuation rattachees au bulletin en cours.
"""

import logging
import re

logger = logging.getLogger("veripay.parsers")

MARQUEUR_PAGE = re.compile(r"(?=Entreprise\s*:)")
ENTREPRISE = re.compile(r"Entreprise\s*:", re.IGNORECASE)

INDICES_ELEMENTS_SALAIRE = (
    # Detaille : code 00xxx / 01xxx en fin de ligne, pas au milieu d'un nombre plus long
    re.compile(r"(?<!\d)0[01]\d{3}\s*$"),
    # Clarifie
    re.compile(r"Salaire\s+(indiciaire|de\s+base|brut)", re.IGNORECASE),
    re.compile(r"ELEMENTS?\s+DE\s+R[EÉ]MUN[EÉ]RATION", re.IGNORECASE),
)
LIGNE_INDEMNITE = re.compile(r"^Indemnit[eé]\s+", re.IGNORECASE)
COTIS = re.compile(r"cotis", re.IGNORECASE)


def contient_elements_salaire(segment: str) -> bool:
    """Vrai si le segment porte une section d'elements de salaire (debut de bulletin)."""
    for brute in re.split(r"\r?\n", segment):
        l = brute.strip()
        if not l:
            continue
        if any(p.search(l) for p in INDICES_ELEMENTS_SALAIRE):
            return True
        if LIGNE_INDEMNITE.match(l) and not COTIS.search(l):
            return True
    return False


def decouper_en_bulletins(texte: str) -> list[str]:
    """Retourne un texte par bulletin. Sans marqueur de page, le texte entier est un bulletin."""
    segments = [s for s in MARQUEUR_PAGE.split(texte) if s.strip()]
    if len(segments) <= 1:
        return [texte]

    blocs: list[str] = []
    courant = ""

    for segment in segments:
        if not contient_elements_salaire(segment):
            # Page de continuation, ou pre-texte avant le premier bulletin
            courant = f"{courant}\n{segment}" if courant else segment
            continue

        if courant.strip():
            if ENTREPRISE.search(courant) and contient_elements_salaire(courant):
                blocs.append(courant)
            else:
                # Pre-texte : rattache au bulletin qui commence
                courant = f"{courant}\n{segment}"
                continue
        courant = segment

    if courant.strip():
        blocs.append(courant)

    if len(blocs) <= 1:
        return [texte]

    logger.info("%d bulletins detectes dans le document", len(blocs))
    return blocs
