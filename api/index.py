"""VeriPay - API de verification des bulletins de paie CCNT 66.

Point d'entree web : upload d'un PDF de bulletins (extraction detaillee ou
analyse des erreurs de parametrage), verification d'un bulletin deja extrait.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI, File, UploadFile, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ValidationError

sys.path.insert(0, str(Path(__file__).parent.parent))

from veripay.config.constants import TypeBulletin
from veripay.config.settings import AppConfig
from veripay.core.exceptions import VeriPayError
from veripay.core.orchestrator import Orchestrator
from veripay.models.bulletins import bulletin_depuis_dict

logger = logging.getLogger("veripay.api")

app = FastAPI(
    title="VeriPay",
    description="Verification des bulletins de paie CCNT 66 et detection des erreurs de parametrage",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

_config = AppConfig()


class CorpsVerification(BaseModel):
    bulletin: dict[str, Any]


def _orchestrator() -> Orchestrator:
    return Orchestrator(_config)


async def _lire_pdf(pdf: Optional[UploadFile]) -> bytes:
    """Contenu du champ "pdf" ; 400 si absent ou pas un PDF, 413 si trop volumineux."""
    if pdf is None:
        raise HTTPException(400, "Aucun fichier PDF fourni (attendu: champ 'pdf')")
    nom = (pdf.filename or "").lower()
    if pdf.content_type != "application/pdf" and not nom.endswith(".pdf"):
        raise HTTPException(400, "Seuls les fichiers PDF sont acceptes")
    contenu = await pdf.read()
    max_octets = _config.analysis.max_file_size_mb * 1024 * 1024
    if len(contenu) > max_octets:
        raise HTTPException(413, f"Fichier trop volumineux (maximum {_config.analysis.max_file_size_mb} Mo)")
    return contenu


# ==============================
# BULLETINS
# ==============================

@app.post("/bulletins/upload")
async def extraire_bulletins(
    pdf: Optional[UploadFile] = File(None),
    type: Optional[TypeBulletin] = Query(None),
):
    """Extraction et verification detaillee de chaque bulletin du PDF."""
    contenu = await _lire_pdf(pdf)
    orchestrator = _orchestrator()
    try:
        extractions, nombre_pages = orchestrator.extraire_pdf(contenu, pdf.filename, type)
    except VeriPayError as e:
        raise HTTPException(422, str(e))
    except Exception as e:
        logger.exception("Erreur lors de l'extraction des bulletins")
        raise HTTPException(500, f"Erreur interne : {str(e)}")
    return orchestrator.report_generator.construire_extractions(extractions, nombre_pages)


@app.post("/bulletins/analyser")
async def analyser_bulletins(
    pdf: Optional[UploadFile] = File(None),
    type: Optional[TypeBulletin] = Query(None),
):
    """Erreurs de parametrage par bulletin : { nombreBulletins, nombrePages, bulletins }."""
    contenu = await _lire_pdf(pdf)
    orchestrator = _orchestrator()
    try:
        analyse = orchestrator.analyser_pdf(contenu, pdf.filename, type)
    except VeriPayError as e:
        raise HTTPException(422, str(e))
    except Exception as e:
        logger.exception("Erreur lors de l'analyse des bulletins")
        raise HTTPException(500, f"Erreur interne : {str(e)}")
    return orchestrator.report_generator.construire_enveloppe(analyse)


@app.post("/bulletins/verifier")
async def verifier_bulletin(corps: CorpsVerification):
    """Verification d'un bulletin deja extrait (JSON, cle "type" detaille ou clarifie)."""
    if corps.bulletin.get("type") not in {t.value for t in TypeBulletin}:
        raise HTTPException(400, "Objet 'bulletin' doit avoir type 'detaille' ou 'clarifie'")
    try:
        bulletin = bulletin_depuis_dict(corps.bulletin)
    except ValidationError as e:
        raise HTTPException(422, f"Bulletin invalide : {e.error_count()} erreur(s) de validation")

    orchestrator = _orchestrator()
    try:
        verification = orchestrator.checker.verifier(bulletin)
    except VeriPayError as e:
        raise HTTPException(422, str(e))
    except Exception as e:
        logger.exception("Erreur lors de la verification")
        raise HTTPException(500, f"Erreur interne : {str(e)}")
    return orchestrator.report_generator.construire_verification(verification)


@app.get("/bulletins/sante")
async def sante():
    return {"statut": "ok", "message": "API VeriPay bulletins"}
