"""Tests des analyseurs : verification convention / coherence et erreurs de parametrage."""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from dataclasses import replace
from decimal import Decimal

from veripay.analyzers.anomaly_detector import (
    AccumulateurErreurs, AnomalyDetector, analyser_bulletins, coefficient_rgdu,
    extraire_pmss_utilise, montant_rgdu,
)
from veripay.analyzers.consistency_checker import (
    ConsistencyChecker, comparer_convention, comparer_lignes, verifier_bulletin, verifier_coherence,
)
from veripay.analyzers.explications import EXPLICATIONS_ERREURS, construire_contexte_explication
from veripay.config.constants import (
    PASS_MENSUEL, RGDU_T_DELTA, SMIC_MENSUEL_BRUT, StatutSalarie, TypeErreur,
)
from veripay.config.settings import AnalysisConfig
from veripay.models.bulletins import (
    Allegement, BulletinClarifie, BulletinDetaille, Cumuls, ImpotRevenu,
    LigneCotisation, LigneElementSalaire, Periode, Salarie,
)
from veripay.models.resultats import ErreurParametrage
from veripay.parsers.clarifie_parser import ClarifieParser
from veripay.parsers.detaille_parser import DetailleParser
from veripay.utils.number_utils import arrondir

D = Decimal
FIXTURES = Path(__file__).parent.parent / "fixtures"

SMIC_ERRONE = D("1832.03")
T_DELTA_ERRONE = D("0.3241")


def bulletin_rgdu(brut, base_t1=None, rgdu=None, nom="Mme TEST", elements=None):
    """Bulletin detaille minimal : une cotisation tranche 1 et, si fourni, une RGDU."""
    base = base_t1 if base_t1 is not None else min(brut, PASS_MENSUEL)
    return BulletinDetaille(
        salarie=Salarie(nom=nom),
        periode=Periode(date_debut="2026-03-01", date_fin="2026-03-31"),
        elements_salaire=elements or [],
        brut_cotisation=brut,
        cotisations=[LigneCotisation(
            libelle="Cotisation Vieillesse Tranche A", code="20200", base=base,
            taux_salarie=D("6.9"), montant_salarie=-arrondir(base * D("6.9") / 100),
        )],
        allegements=[Allegement(libelle="Allégement RGDU", montant=-rgdu)] if rgdu else [],
    )


def types_erreurs(resultat_bulletin):
    return [e.type for e in resultat_bulletin.erreurs]


class TestCoefficientRgdu:
    """Tests de la formule RGDU."""

    def test_au_smic(self):
        # (1/2 x (3 - 1))^P = 1 : coefficient maximal
        assert coefficient_rgdu(SMIC_MENSUEL_BRUT, SMIC_MENSUEL_BRUT, RGDU_T_DELTA) == D("0.4021")

    def test_au_dela_de_trois_smic(self):
        assert coefficient_rgdu(3 * SMIC_MENSUEL_BRUT, SMIC_MENSUEL_BRUT, RGDU_T_DELTA) == 0
        assert coefficient_rgdu(D("6000"), SMIC_MENSUEL_BRUT, RGDU_T_DELTA) == 0

    def test_brut_nul(self):
        assert coefficient_rgdu(D("0"), SMIC_MENSUEL_BRUT, RGDU_T_DELTA) == 0

    def test_degressif(self):
        assert montant_rgdu(D("2500"), SMIC_MENSUEL_BRUT, RGDU_T_DELTA) > \
            montant_rgdu(D("2500"), SMIC_MENSUEL_BRUT, T_DELTA_ERRONE)
        assert coefficient_rgdu(D("2000"), SMIC_MENSUEL_BRUT, RGDU_T_DELTA) > \
            coefficient_rgdu(D("4000"), SMIC_MENSUEL_BRUT, RGDU_T_DELTA)


class TestAnomalyDetector:
    """Tests de la detection des erreurs de parametrage."""

    def setup_method(self):
        self.detector = AnomalyDetector()

    def test_bulletin_conforme(self):
        rgdu = montant_rgdu(D("2500.00"), SMIC_MENSUEL_BRUT, RGDU_T_DELTA)
        resultat = self.detector.analyser([bulletin_rgdu(D("2500.00"), rgdu=rgdu)], nombre_pages=1)
        assert resultat.nombre_bulletins == 1
        assert resultat.nombre_pages == 1
        assert resultat.bulletins[0].valide
        assert resultat.bulletins[0].erreurs == []
        assert resultat.bulletins[0].salarie == "Mme TEST"
        assert resultat.bulletins[0].periode == "mars 2026"

    def test_plafond_2025(self):
        resultat = self.detector.analyser([bulletin_rgdu(D("4200.00"), base_t1=D("3925.00"))])
        b = resultat.bulletins[0]
        assert not b.valide
        assert types_erreurs(b) == [TypeErreur.PLAFOND]
        assert b.erreurs[0].message == "Plafond de SS laissé au montant 2025"

    def test_plafond_herite_sur_le_lot(self):
        resultat = self.detector.analyser([
            bulletin_rgdu(D("4200.00"), base_t1=D("3925.00")),
            # Brut entre les deux plafonds : la base ne trahit rien
            bulletin_rgdu(D("3950.00")),
            bulletin_rgdu(D("2000.00")),
        ])
        assert types_erreurs(resultat.bulletins[1]) == [TypeErreur.PLAFOND]
        assert resultat.bulletins[2].valide
        assert resultat.nombre_invalides == 2

    def test_pmss_utilise(self):
        assert extraire_pmss_utilise(bulletin_rgdu(D("4200.00"), base_t1=D("3925.00"))) == D("3925.00")
        assert extraire_pmss_utilise(bulletin_rgdu(D("2500.00"))) is None

    def test_smic_errone(self):
        rgdu = montant_rgdu(D("2500.00"), SMIC_ERRONE, RGDU_T_DELTA)
        resultat = self.detector.analyser([bulletin_rgdu(D("2500.00"), rgdu=rgdu)])
        assert types_erreurs(resultat.bulletins[0]) == [TypeErreur.SMIC]

    def test_t_delta_errone(self):
        rgdu = montant_rgdu(D("2500.00"), SMIC_MENSUEL_BRUT, T_DELTA_ERRONE)
        resultat = self.detector.analyser([bulletin_rgdu(D("2500.00"), rgdu=rgdu)])
        assert types_erreurs(resultat.bulletins[0]) == [TypeErreur.COEFFICIENT_RGDU]
        assert resultat.bulletins[0].erreurs[0].message == "Coef de RGDU T delta mal renseigné"

    def test_smic_et_t_delta_errones(self):
        rgdu = montant_rgdu(D("2500.00"), SMIC_ERRONE, T_DELTA_ERRONE)
        resultat = self.detector.analyser([bulletin_rgdu(D("2500.00"), rgdu=rgdu)])
        assert types_erreurs(resultat.bulletins[0]) == [TypeErreur.SMIC, TypeErreur.COEFFICIENT_RGDU]

    def test_residu_sous_le_seuil(self):
        rgdu = montant_rgdu(D("2500.00"), SMIC_MENSUEL_BRUT, RGDU_T_DELTA) + D("2.00")
        resultat = self.detector.analyser([bulletin_rgdu(D("2500.00"), rgdu=rgdu)])
        assert resultat.bulletins[0].valide

    def test_seuil_configurable(self):
        rgdu = montant_rgdu(D("2500.00"), SMIC_ERRONE, RGDU_T_DELTA)
        detector = AnomalyDetector(AnalysisConfig(seuil_bruit_rgdu=D("10")))
        assert detector.analyser([bulletin_rgdu(D("2500.00"), rgdu=rgdu)]).bulletins[0].valide

    def test_propagation_smic(self):
        # A 5 000 EUR l'erreur de SMIC deplace la RGDU de moins d'un euro
        resultat = self.detector.analyser([
            bulletin_rgdu(D("5000.00"), rgdu=montant_rgdu(D("5000.00"), SMIC_ERRONE, RGDU_T_DELTA)),
            bulletin_rgdu(D("2500.00"), rgdu=montant_rgdu(D("2500.00"), SMIC_ERRONE, RGDU_T_DELTA)),
            bulletin_rgdu(D("4500.00")),
        ])
        assert types_erreurs(resultat.bulletins[0]) == [TypeErreur.SMIC]
        assert types_erreurs(resultat.bulletins[1]) == [TypeErreur.SMIC]
        # Sans RGDU sur le bulletin, rien a propager
        assert resultat.bulletins[2].valide

    def test_temps_partiel(self):
        taux_emploi = LigneElementSalaire(libelle="Taux d'emploi", montant=D("50.00"), code="00035")
        smic_proratise = SMIC_MENSUEL_BRUT * D("50.00") / 100
        rgdu = montant_rgdu(D("1250.00"), smic_proratise, RGDU_T_DELTA)
        resultat = self.detector.analyser([bulletin_rgdu(D("1250.00"), rgdu=rgdu, elements=[taux_emploi])])
        assert resultat.bulletins[0].valide

    def test_bulletin_clarifie_non_evalue(self):
        b = BulletinClarifie(brut_cotisation=D("4200.00"))
        assert analyser_bulletins([b]).bulletins[0].valide

    def test_nom_inconnu(self):
        resultat = self.detector.analyser([bulletin_rgdu(D("2500.00"), nom="")])
        assert resultat.bulletins[0].salarie == "Inconnu"

    def test_erreurs_initiales(self):
        autre = ErreurParametrage(type=TypeErreur.AUTRE, message="Bulletin illisible ou incomplet")
        resultat = self.detector.analyser(
            [BulletinDetaille(), bulletin_rgdu(D("2500.00"))],
            erreurs_initiales=[[autre], []],
        )
        assert types_erreurs(resultat.bulletins[0]) == [TypeErreur.AUTRE]
        assert resultat.bulletins[0].periode == ""
        assert resultat.bulletins[1].valide

    def test_accumulateur(self):
        acc = AccumulateurErreurs()
        acc.ajouter(TypeErreur.COEFFICIENT_RGDU)
        acc.ajouter(TypeErreur.PLAFOND)
        acc.ajouter(TypeErreur.PLAFOND)
        assert len(acc) == 2
        assert acc.contient(TypeErreur.PLAFOND)
        assert not acc.contient(TypeErreur.SMIC)
        assert acc.types() == [TypeErreur.PLAFOND, TypeErreur.COEFFICIENT_RGDU]


class TestConsistencyChecker:
    """Tests de la verification convention / coherence."""

    def setup_method(self):
        self.checker = ConsistencyChecker()

    def _fixture(self, nom, parser):
        return parser.parser((FIXTURES / nom).read_text(encoding="utf-8"))

    def test_bulletin_detaille_conforme(self):
        bulletin = self._fixture("bulletin_detaille.txt", DetailleParser())
        verification = self.checker.verifier(bulletin)
        assert verification.statut_detecte == StatutSalarie.NON_CADRE
        assert verification.ecarts == []
        assert verification.coherence.valide
        assert verification.valide
        assert verification.calcul.net_paye == D("1972.09")
        assert comparer_lignes(verification.calcul, bulletin) == []

    def test_bulletin_clarifie_coherent(self):
        bulletin = self._fixture("bulletin_clarifie.txt", ClarifieParser())
        verification = verifier_bulletin(bulletin)
        # Sans codes, toutes les regles courantes du statut s'appliquent : le recalcul s'ecarte
        assert verification.ecarts
        assert verification.coherence.valide
        assert verification.valide

    def test_coherent_mais_hors_convention(self):
        bulletin = BulletinDetaille(
            brut_cotisation=D("2000.00"),
            cotisations=[LigneCotisation(
                libelle="Vieillesse", code="20200", base=D("2000.00"),
                montant_salarie=D("-100.00"), montant_employeur=D("50.00"),
            )],
            total_retenues=D("100.00"),
            total_cotisations_patronales=D("50.00"),
            net_social=D("1900.00"),
            net_a_payer_avant_impot=D("1900.00"),
            net_paye=D("1900.00"),
        )
        verification = self.checker.verifier(bulletin)
        assert [e.champ for e in verification.ecarts][:2] == ["total_retenues", "total_patronal"]
        assert verification.ecarts[0].ecart == D("38.00")
        assert verification.coherence.valide
        assert verification.valide

    def test_incoherent_et_hors_convention(self):
        bulletin = BulletinDetaille(
            brut_cotisation=D("2000.00"),
            total_retenues=D("100.00"),
            total_cotisations_patronales=D("0.00"),
            net_social=D("1850.00"),
        )
        verification = self.checker.verifier(bulletin)
        assert verification.ecarts
        assert not verification.coherence.valide
        assert not verification.valide

    def test_ecarts_de_coherence(self):
        bulletin = BulletinClarifie(
            brut_cotisation=D("2000.00"),
            total_retenues=D("400.00"),
            net_social=D("1600.00"),
            net_a_payer_avant_impot=D("1600.00"),
            impot_sur_le_revenu=ImpotRevenu(base=D("1700"), montant=D("-50.00"), taux_personnalise=D("3")),
            net_paye=D("1560.00"),
        )
        coherence = verifier_coherence(bulletin, D("0.02"))
        assert not coherence.valide
        assert len(coherence.ecarts) == 1
        ecart = coherence.ecarts[0]
        assert ecart.champ == "net_avant_pas-pas/net_paye"
        assert ecart.attendu == D("1550.00")
        assert ecart.ecart == D("-10.00")

    def test_tolerance_coherence(self):
        bulletin = BulletinClarifie(
            brut_cotisation=D("2000.00"),
            total_retenues=D("400.00"),
            net_social=D("1600.02"),
        )
        assert verifier_coherence(bulletin, D("0.02")).valide
        assert not verifier_coherence(bulletin, D("0.01")).valide

    def test_total_clarifie_different_des_lignes(self):
        bulletin = self._fixture("bulletin_clarifie.txt", ClarifieParser())
        cent = D("100.00")
        modifie = replace(
            bulletin,
            total_retenues=bulletin.total_retenues + cent,
            net_social=bulletin.net_social - cent,
            net_a_payer_avant_impot=bulletin.net_a_payer_avant_impot - cent,
            net_paye=bulletin.net_paye - cent,
        )
        coherence = verifier_coherence(modifie, D("0.02"))
        assert not coherence.valide
        assert len(coherence.ecarts) == 1
        ecart = coherence.ecarts[0]
        assert ecart.champ == "somme_salariale/total_retenues"
        assert ecart.attendu == D("495.19")
        assert ecart.extrait == D("595.19")
        assert ecart.ecart == D("-100.00")
        assert not self.checker.verifier(modifie).valide

    def test_total_patronal_clarifie_different_des_lignes(self):
        bulletin = self._fixture("bulletin_clarifie.txt", ClarifieParser())
        assert verifier_coherence(bulletin, D("0.02")).valide
        modifie = replace(bulletin, total_cotisations_patronales=D("700.00"))
        coherence = verifier_coherence(modifie, D("0.02"))
        assert [e.champ for e in coherence.ecarts] == ["somme_patronale/total_patronal"]
        assert coherence.ecarts[0].attendu == D("794.91")

    def test_ecarts_par_ligne(self):
        bulletin = self._fixture("bulletin_detaille.txt", DetailleParser())
        cotisations = [
            replace(c, montant_salarie=D("-170.00")) if c.code == "20200" else c
            for c in bulletin.cotisations
        ]
        verification = self.checker.verifier(replace(bulletin, cotisations=cotisations))
        assert verification.ecarts == []
        assert len(verification.ecarts_lignes) == 1
        ecart = verification.ecarts_lignes[0]
        assert (ecart.code, ecart.champ) == ("20200", "montant_salarie")
        assert ecart.calcul == D("-172.50")
        assert ecart.ecart == D("-2.50")
        # La somme des lignes ne correspond plus au total : ni convention ni coherence
        assert not verification.coherence.valide
        assert not verification.valide

    def test_valeurs_absentes_ignorees(self):
        bulletin = BulletinDetaille(brut_cotisation=D("2000.00"))
        calcul = self.checker.verifier(bulletin).calcul
        assert comparer_convention(bulletin, calcul, D("0.005")) == []

    def test_net_imposable_cumule_ignore(self):
        bulletin = BulletinDetaille(
            brut_cotisation=D("2000.00"),
            cumuls=Cumuls(net_imposable=D("9800.00")),
        )
        verification = self.checker.verifier(bulletin)
        assert "net_imposable" not in [e.champ for e in verification.ecarts]

    def test_analyser_lot(self):
        resultats = self.checker.analyser([BulletinDetaille(), BulletinClarifie()])
        assert len(resultats) == 2
        assert self.checker.nom


class TestExplications:
    """Tests des fiches d'explication."""

    def test_fiches_connues(self):
        assert set(EXPLICATIONS_ERREURS) == {
            TypeErreur.PLAFOND, TypeErreur.SMIC, TypeErreur.COEFFICIENT_RGDU,
        }

    def test_contexte_complet(self):
        contexte = construire_contexte_explication(
            "TIAFM", salarie="Mme DUPONT MARIE", periode="mars 2026", brut=D("4200"),
        )
        lignes = contexte.split("\n")
        assert lignes[0] == "Erreur détectée : TIAFM - PMSS incorrect"
        assert "Valeur attendue : 4 005 €" in lignes
        assert "- Salarié : Mme DUPONT MARIE" in lignes
        assert "- Brut : 4 200,00 EUR" in lignes

    def test_sans_contexte_bulletin(self):
        contexte = construire_contexte_explication("RGDUB")
        assert "Contexte du bulletin" not in contexte
        assert "0,3241" in contexte

    def test_type_inconnu(self):
        assert construire_contexte_explication("XYZ") == "Erreur détectée : XYZ"

    def test_champs_non_renseignes(self):
        contexte = construire_contexte_explication("AAICO", periode="mars 2026")
        assert "- Salarié : non renseigné" in contexte
        assert "- Brut : non renseigné" in contexte
