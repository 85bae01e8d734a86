"""Extraction du texte des PDF de bulletins (une ou plusieurs pages)."""

import io
import logging
from dataclasses import dataclass
from pathlib import Path

import pdfplumber

from veripay.core.exceptions import ExtractionError

logger = logging.getLogger("veripay.parsers")


@dataclass(frozen=True)
class ExtractionPdf:
    texte: str
    nombre_pages: int


def extraire_texte_pdf(contenu: bytes) -> ExtractionPdf:
    """Extrait le texte de toutes les pages. Un PDF sans texte est une erreur."""
    try:
        with pdfplumber.open(io.BytesIO(contenu)) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
    except Exception as e:
        raise ExtractionError(f"Impossible de lire le PDF : {e}") from e

    texte = "\n".join(pages)
    if not texte.strip():
        raise ExtractionError(
            "Aucun texte extractible (PDF scanne ou protege ?)"
        )
    logger.debug("PDF lu : %d page(s), %d caracteres", len(pages), len(texte))
    return ExtractionPdf(texte=texte, nombre_pages=len(pages))


def extraire_texte_fichier(chemin: Path) -> ExtractionPdf:
    """Lit un fichier PDF ou texte deja extrait (une page par fichier texte)."""
    if chemin.suffix.lower() == ".pdf":
        return extraire_texte_pdf(chemin.read_bytes())
    texte = chemin.read_text(encoding="utf-8")
    if not texte.strip():
        raise ExtractionError(f"Fichier vide : {chemin.name}")
    return ExtractionPdf(texte=texte, nombre_pages=max(1, texte.count("\f") + 1))
