"""Tests de l'API web des bulletins."""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from fastapi.testclient import TestClient

from api import index
from veripay.core.exceptions import ExtractionError
from veripay.models.bulletins import bulletin_vers_dict
from veripay.parsers.detaille_parser import DetailleParser
from veripay.parsers.pdf_parser import ExtractionPdf

FIXTURES = Path(__file__).parent.parent / "fixtures"
TEXTE_DETAILLE = (FIXTURES / "bulletin_detaille.txt").read_text(encoding="utf-8")
PDF = ("bulletins_mars.pdf", b"%PDF-1.4 contenu", "application/pdf")


class TestApiBulletins:
    """Tests des routes /bulletins."""

    def setup_method(self):
        self.client = TestClient(index.app)

    def _texte_pdf(self, monkeypatch, texte=TEXTE_DETAILLE, nombre_pages=1):
        monkeypatch.setattr(
            "veripay.core.orchestrator.extraire_texte_pdf",
            lambda contenu: ExtractionPdf(texte=texte, nombre_pages=nombre_pages),
        )

    def test_sante(self):
        response = self.client.get("/bulletins/sante")
        assert response.status_code == 200
        assert response.json() == {"statut": "ok", "message": "API VeriPay bulletins"}

    def test_upload_sans_fichier(self):
        response = self.client.post("/bulletins/upload")
        assert response.status_code == 400
        assert "champ 'pdf'" in response.json()["detail"]

    def test_upload_pas_un_pdf(self):
        response = self.client.post(
            "/bulletins/analyser", files={"pdf": ("notes.txt", b"texte", "text/plain")})
        assert response.status_code == 400

    def test_fichier_trop_volumineux(self, monkeypatch):
        monkeypatch.setattr(index._config.analysis, "max_file_size_mb", 0)
        response = self.client.post("/bulletins/analyser", files={"pdf": PDF})
        assert response.status_code == 413

    def test_type_inconnu(self):
        response = self.client.post("/bulletins/analyser?type=simplifie", files={"pdf": PDF})
        assert response.status_code == 422

    def test_analyser(self, monkeypatch):
        self._texte_pdf(monkeypatch, nombre_pages=2)
        response = self.client.post("/bulletins/analyser", files={"pdf": PDF})
        assert response.status_code == 200
        data = response.json()
        assert data["nombreBulletins"] == 1
        assert data["nombrePages"] == 2
        assert data["bulletins"] == [{
            "salarie": "Mme DUPONT MARIE",
            "periode": "mars 2026",
            "valide": True,
            "erreurs": [],
        }]

    def test_upload(self, monkeypatch):
        self._texte_pdf(monkeypatch)
        response = self.client.post("/bulletins/upload?type=detaille", files={"pdf": PDF})
        assert response.status_code == 200
        data = response.json()
        assert data["nombreBulletins"] == 1
        extraction = data["bulletins"][0]
        assert extraction["typeDetecte"] == "detaille"
        assert extraction["bulletin"]["brut_cotisation"] == "2500.00"
        assert extraction["verification"]["valide"] is True
        assert extraction["verification"]["statutDetecte"] == "non_cadre"
        assert extraction["verification"]["calcul"]["netPaye"] == "1972.09"
        assert extraction["verification"]["calcul"]["pas"]["taux"] == "3.500"

    def test_pdf_illisible(self, monkeypatch):
        def echec(contenu):
            raise ExtractionError("Aucun texte extractible")
        monkeypatch.setattr("veripay.core.orchestrator.extraire_texte_pdf", echec)
        response = self.client.post("/bulletins/analyser", files={"pdf": PDF})
        assert response.status_code == 422
        assert response.json()["detail"] == "Aucun texte extractible"

    def test_verifier(self):
        bulletin = bulletin_vers_dict(DetailleParser().parser(TEXTE_DETAILLE))
        response = self.client.post("/bulletins/verifier", json={"bulletin": bulletin})
        assert response.status_code == 200
        data = response.json()
        assert data["valide"] is True
        assert data["ecarts"] == []
        assert data["ecartsLignes"] == []
        assert data["coherence"] == {"valide": True, "ecarts": []}
        assert data["calcul"]["baseCSG"] == "2509.21"

    def test_verifier_ecarts(self):
        bulletin = {
            "type": "clarifie",
            "brut_cotisation": "2000.00",
            "total_retenues": "400.00",
            "net_social": "1500.00",
        }
        response = self.client.post("/bulletins/verifier", json={"bulletin": bulletin})
        assert response.status_code == 200
        data = response.json()
        assert data["valide"] is False
        assert data["coherence"]["ecarts"] == [{
            "champ": "brut-retenues/net_social",
            "attendu": "1600.00",
            "extrait": "1500.00",
            "ecart": "100.00",
        }]

    def test_verifier_ecart_de_ligne(self):
        bulletin = bulletin_vers_dict(DetailleParser().parser(TEXTE_DETAILLE))
        for ligne in bulletin["cotisations"]:
            if ligne["code"] == "20200":
                ligne["montant_salarie"] = "-170.00"
        response = self.client.post("/bulletins/verifier", json={"bulletin": bulletin})
        assert response.status_code == 200
        data = response.json()
        assert data["ecarts"] == []
        assert data["ecartsLignes"] == [{
            "code": "20200",
            "libelle": "Cotisation Vieillesse Tranche A",
            "champ": "montant_salarie",
            "pdf": "-170.00",
            "calcul": "-172.50",
            "ecart": "-2.50",
        }]
        assert data["valide"] is False

    def test_verifier_type_manquant(self):
        response = self.client.post("/bulletins/verifier", json={"bulletin": {"brut_cotisation": "2000"}})
        assert response.status_code == 400

    def test_verifier_bulletin_invalide(self):
        bulletin = {"type": "detaille", "brut_cotisation": "pas un nombre"}
        response = self.client.post("/bulletins/verifier", json={"bulletin": bulletin})
        assert response.status_code == 422
        assert response.json()["detail"].startswith("Bulletin invalide")
