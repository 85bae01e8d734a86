"""Nettoyage des artefacts d'extraction (espaces inseres au milieu des mots).

Chaque table est une liste ordonnee de (pattern, remplacement) appliquee une
seule fois ; ajouter un artefact ne demande pas de toucher aux parseurs.
"""

import re

I = re.IGNORECASE


def _table(*regles):
    return tuple((re.compile(pattern, flags), remplacement) for pattern, remplacement, flags in regles)


# Libelles du bulletin detaille
ARTEFACTS_DETAILLE = _table(
    (r"Cot\s*isat\s*ion", "Cotisation", I),
    (r"T\s*ot\s*alit\s*[ée]", "Totalité", I),
    (r"Allocat\s*ions", "Allocations", I),
    (r"Cont\s*ribut?\s*ion", "Contribution", I),
    (r"Cont\s*rib\s*\.", "Contrib.", I),
    (r"Format\s*ion", "Formation", I),
    (r"Ret\s*rait\s*e", "Retraite", I),
    (r"Assedic\s*", "Assedic ", I),
    (r"T\s*ranche", "Tranche", I),
    (r"P\s*revoyance", "Prévoyance", I),
    (r"P\s*rélèvement", "Prélèvement", I),
    (r"Deduct\s*ible", "Déductible", I),
    (r"Mut\s*uelle", "Mutuelle", I),
    (r"Accident\s*", "Accident ", I),
    (r"t\s*ravail", "travail", I),
    (r"Indemnit\s*[ée]", "Indemnité", I),
    (r"sujet\s*ion", "sujétion", I),
    (r"permanent\s*e", "permanente", I),
    (r"Forfait\s*", "Forfait ", I),
    (r"Evolut\s*ion", "Evolution", I),
    (r"Réduct\s*ion", "Réduction", I),
    (r"AP\s*EC", "APEC", 0),
    (r"Solidarit\s*[ée]", "Solidarité", I),
    (r"deplafonnee", "déplafonnée", I),
    (r"supplé\s*\.", "supplé.", I),
    (r"CCNT\s+66", "CCNT66", I),
    (r"T\s*aux d.emploi", "Taux d'emploi", I),
    (r"B\s*r\s*u\s*t\s*s\s*o\s*u\s*m\s*i\s*s", "Brut soumis", I),
    (r"Allégement\s*", "Allégement ", I),
    (r"RGDU", "RGDU", I),
    (r"T\s+echnique", "Technique", I),
    (r"P\s+ro\b", "Pro", I),
    (r"t\s+ransport", "transport", I),
    (r"t\s+ous", "tous", I),
    (r"édit\s+ion", "édition", I),
)

# Libelles du bulletin clarifie
ARTEFACTS_CLARIFIE = _table(
    (r"CONTRIB\s+UTIONS", "CONTRIBUTIONS", I),
    (r"ALLEG\s*EMENTS", "ALLEGEMENTS", I),
    (r"ADMINIST\s*RAT\s*IF", "ADMINISTRATIF", I),
    (r"RESP\s*ONSABLE", "RESPONSABLE", I),
    (r"QUALIT\s*E\b", "QUALITE", I),
    (r"CH[OÔ]MAG?\s*E", "CHÔMAGE", I),
    (r"CCNT\s*66", "CCNT66", I),
)

# Champs d'identite du salarie (communs aux deux mises en page)
ARTEFACTS_IDENTITE = _table(
    (r"Convent\s*ion", "Convention", I),
    (r"collect\s*ive", "collective", I),
    (r"RESP\s*ONSABLE", "RESPONSABLE", I),
    (r"QUALIT\s*E", "QUALITE", I),
    (r"ADMINIST\s*RAT\s*IF", "ADMINISTRATIF", I),
)


def normaliser(texte: str, artefacts) -> str:
    """Applique la table d'artefacts puis normalise les espaces."""
    for pattern, remplacement in artefacts:
        texte = pattern.sub(remplacement, texte)
    return re.sub(r"\s+", " ", texte).strip()
