"""Generateur de rapports de verification des bulletins.

Produit :
- l'enveloppe JSON plate renvoyee par l'API (nombreBulletins, nombrePages, bulletins)
- le detail d'extraction et de verification d'un bulletin
- des rapports de session en HTML et JSON pour la ligne de commande
"""

import html
import json
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

from veripay.core.exceptions import ReportError
from veripay.models.bulletins import bulletin_vers_dict
from veripay.models.resultats import (
    RapportDocument,
    ResultatAnalyse,
    ResultatExtraction,
    ResultatVerification,
    SessionAnalyse,
)


def _montant(valeur: Optional[Decimal]) -> Optional[str]:
    return None if valeur is None else str(valeur)


class ReportGenerator:
    """Genere les sorties JSON et HTML des analyses."""

    # --- Structures JSON ---

    @staticmethod
    def construire_enveloppe(analyse: ResultatAnalyse) -> dict[str, Any]:
        """Enveloppe de reponse : un booleen de validite et les erreurs par bulletin."""
        return {
            "nombreBulletins": analyse.nombre_bulletins,
            "nombrePages": analyse.nombre_pages,
            "bulletins": [
                {
                    "salarie": b.salarie,
                    "periode": b.periode,
                    "valide": b.valide,
                    "erreurs": [{"type": e.type.value, "message": e.message} for e in b.erreurs],
                }
                for b in analyse.bulletins
            ],
        }

    @staticmethod
    def construire_verification(verification: ResultatVerification) -> dict[str, Any]:
        calcul = verification.calcul
        return {
            "statutDetecte": verification.statut_detecte.value,
            "calcul": {
                "baseCSG": _montant(calcul.base_csg),
                "totalRetenues": _montant(calcul.total_retenues),
                "totalPatronal": _montant(calcul.total_patronal),
                "netSocial": _montant(calcul.net_social),
                "netImposable": _montant(calcul.net_imposable),
                "netAPayerAvantPAS": _montant(calcul.net_a_payer_avant_pas),
                "pas": {
                    "base": _montant(calcul.pas.base),
                    "taux": _montant(calcul.pas.taux),
                    "montant": _montant(calcul.pas.montant),
                },
                "netPaye": _montant(calcul.net_paye),
            },
            "ecarts": [
                {
                    "champ": e.champ,
                    "pdf": _montant(e.bulletin),
                    "calcul": _montant(e.calcul),
                    "ecart": _montant(e.ecart),
                }
                for e in verification.ecarts
            ],
            "ecartsLignes": [
                {
                    "code": e.code,
                    "libelle": e.libelle,
                    "champ": e.champ,
                    "pdf": _montant(e.bulletin),
                    "calcul": _montant(e.calcul),
                    "ecart": _montant(e.ecart),
                }
                for e in verification.ecarts_lignes
            ],
            "coherence": {
                "valide": verification.coherence.valide,
                "ecarts": [
                    {
                        "champ": e.champ,
                        "attendu": _montant(e.attendu),
                        "extrait": _montant(e.extrait),
                        "ecart": _montant(e.ecart),
                    }
                    for e in verification.coherence.ecarts
                ],
            },
            "valide": verification.valide,
        }

    def construire_extraction(self, extraction: ResultatExtraction) -> dict[str, Any]:
        """Detail d'un bulletin : donnees extraites et verification."""
        return {
            "typeDetecte": extraction.type_detecte.value,
            "bulletin": bulletin_vers_dict(extraction.bulletin),
            "verification": self.construire_verification(extraction.verification),
            "nombrePages": extraction.nombre_pages,
        }

    def construire_extractions(self, extractions: list[ResultatExtraction], nombre_pages: int) -> dict[str, Any]:
        return {
            "bulletins": [self.construire_extraction(e) for e in extractions],
            "nombreBulletins": len(extractions),
            "nombrePages": nombre_pages,
        }

    # --- Rapports de session ---

    def generer_json(self, session: SessionAnalyse, chemin_sortie: Path) -> Path:
        """Genere un rapport JSON structure."""
        data = self._construire_json(session)
        return self._ecrire(chemin_sortie, json.dumps(data, ensure_ascii=False, indent=2, default=str))

    def generer_html(self, session: SessionAnalyse, chemin_sortie: Path) -> Path:
        """Genere un rapport HTML lisible."""
        return self._ecrire(chemin_sortie, self._construire_html(session))

    @staticmethod
    def _ecrire(chemin_sortie: Path, contenu: str) -> Path:
        try:
            chemin_sortie.parent.mkdir(parents=True, exist_ok=True)
            with open(chemin_sortie, "w", encoding="utf-8") as f:
                f.write(contenu)
        except OSError as e:
            raise ReportError(f"Impossible d'ecrire le rapport {chemin_sortie} : {e}") from e
        return chemin_sortie

    def _construire_json(self, session: SessionAnalyse) -> dict:
        return {
            "metadata": {
                "session_id": session.session_id,
                "date_analyse": session.date_analyse.isoformat(),
                "duree_secondes": session.duree_secondes,
                "nb_documents": len(session.documents),
            },
            "synthese": {
                "nb_bulletins": session.nombre_bulletins,
                "nb_invalides": session.nombre_invalides,
            },
            "documents": [
                {
                    "nom": d.nom_fichier,
                    **self.construire_enveloppe(d.analyse),
                    "verifications": [self.construire_extraction(e) for e in d.extractions],
                }
                for d in session.documents
            ],
        }

    def _construire_html(self, session: SessionAnalyse) -> str:
        documents_html = "".join(self._generer_document_html(d) for d in session.documents)
        return f"""<!DOCTYPE html>
<html lang="fr">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<title>Verification des bulletins - {session.date_analyse.strftime('%d/%m/%Y')}</title>
<style>
:root {{
    --bleu: #003d7a;
    --bleu-clair: #e8f0fe;
    --rouge: #d32f2f;
    --vert: #388e3c;
    --gris: #757575;
    --bg: #f5f5f5;
}}
* {{ margin: 0; padding: 0; box-sizing: border-box; }}
body {{ font-family: 'Segoe UI', system-ui, sans-serif; background: var(--bg); color: #333; line-height: 1.6; }}
.container {{ max-width: 1200px; margin: 0 auto; padding: 20px; }}
header {{ background: var(--bleu); color: white; padding: 30px; border-radius: 8px 8px 0 0; }}
header h1 {{ font-size: 1.8em; margin-bottom: 5px; }}
header .meta {{ opacity: 0.8; font-size: 0.9em; }}
.dashboard {{ display: grid; grid-template-columns: repeat(auto-fit, minmax(200px, 1fr)); gap: 15px; margin: 20px 0; }}
.card {{ background: white; border-radius: 8px; padding: 20px; box-shadow: 0 2px 4px rgba(0,0,0,0.1); text-align: center; }}
.card .value {{ font-size: 2em; font-weight: bold; }}
.card .label {{ color: var(--gris); font-size: 0.85em; margin-top: 5px; }}
.card.invalide .value {{ color: var(--rouge); }}
.card.valide .value {{ color: var(--vert); }}
section {{ background: white; border-radius: 8px; padding: 25px; margin: 20px 0; box-shadow: 0 2px 4px rgba(0,0,0,0.1); }}
section h2 {{ color: var(--bleu); border-bottom: 2px solid var(--bleu-clair); padding-bottom: 10px; margin-bottom: 15px; }}
table {{ width: 100%; border-collapse: collapse; margin: 10px 0; }}
th {{ background: var(--bleu); color: white; padding: 10px; text-align: left; font-size: 0.85em; }}
td {{ padding: 10px; border-bottom: 1px solid #eee; font-size: 0.9em; }}
.badge {{ display: inline-block; padding: 3px 10px; border-radius: 12px; font-size: 0.8em; font-weight: bold; color: white; }}
.badge.valide {{ background: var(--vert); }}
.badge.invalide {{ background: var(--rouge); }}
footer {{ text-align: center; color: var(--gris); padding: 20px; font-size: 0.85em; }}
</style>
</head>
<body>
<div class="container">

<header>
    <h1>Verification des bulletins de paie (CCNT 66)</h1>
    <div class="meta">
        Session : {session.session_id}<br>
        Date d'analyse : {session.date_analyse.strftime('%d/%m/%Y a %H:%M')}<br>
        Duree : {session.duree_secondes:.1f} secondes<br>
        Documents analyses : {len(session.documents)}
    </div>
</header>

<div class="dashboard">
    <div class="card">
        <div class="value">{session.nombre_bulletins}</div>
        <div class="label">Bulletins</div>
    </div>
    <div class="card valide">
        <div class="value">{session.nombre_bulletins - session.nombre_invalides}</div>
        <div class="label">Valides</div>
    </div>
    <div class="card invalide">
        <div class="value">{session.nombre_invalides}</div>
        <div class="label">Avec erreur de parametrage</div>
    </div>
</div>

{documents_html}

<footer>
    Rapport genere par VeriPay - {session.date_analyse.strftime('%d/%m/%Y %H:%M')}
</footer>

</div>
</body>
</html>"""

    def _generer_document_html(self, document: RapportDocument) -> str:
        analyse = document.analyse
        if not analyse.bulletins:
            return f"""
<section>
    <h2>{html.escape(document.nom_fichier)}</h2>
    <p>Aucun bulletin detecte.</p>
</section>"""

        rows = []
        for b in analyse.bulletins:
            statut = "valide" if b.valide else "invalide"
            erreurs = "<br>".join(
                f"<strong>{e.type.value}</strong> : {html.escape(e.message)}" for e in b.erreurs
            ) or "-"
            rows.append(f"""
    <tr>
        <td>{html.escape(b.salarie)}</td>
        <td>{html.escape(b.periode) or 'N/A'}</td>
        <td><span class="badge {statut}">{statut.upper()}</span></td>
        <td>{erreurs}</td>
    </tr>""")

        return f"""
<section>
    <h2>{html.escape(document.nom_fichier)} ({analyse.nombre_bulletins} bulletin(s), {analyse.nombre_pages} page(s))</h2>
    <table>
        <tr><th>Salarie</th><th>Periode</th><th>Statut</th><th>Erreurs</th></tr>
        {''.join(rows)}
    </table>
</section>"""
