"""Tests du moteur de recalcul CCNT 66."""

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from decimal import Decimal

from veripay.config.constants import PASS_MENSUEL, SituationRegle, StatutSalarie
from veripay.config.convention_ccnt66 import CONVENTION_CCNT66
from veripay.models.bulletins import (
    BulletinClarifie, BulletinDetaille, ImpotRevenu, LigneCotisation,
    LigneRemboursement, Salarie,
)
from veripay.rules.calcul_engine import (
    OptionsCalcul, calculer_bulletin, construire_options, detecter_statut, regles_actives,
)

D = Decimal

# Bulletin non cadre a 2 500 EUR : codes effectivement imprimes
CODES_NON_CADRE = frozenset({"20000", "20200", "20300", "51000", "58000", "73355"})


class TestConvention:
    """Tests de la table de regles CCNT 66."""

    def test_codes_uniques(self):
        codes = [r.code for r in CONVENTION_CCNT66.regles]
        assert len(codes) == len(set(codes))

    def test_taux_vieillesse(self):
        regle = CONVENTION_CCNT66.regle("20200")
        assert regle.taux_salarie == D("6.9")
        assert regle.taux_employeur == D("8.55")

    def test_regle_inconnue(self):
        assert CONVENTION_CCNT66.regle("99999") is None


class TestReglesActives:
    """Tests de la selection des regles."""

    def test_filtre_par_statut(self):
        codes = {r.code for r in regles_actives(CONVENTION_CCNT66, OptionsCalcul(statut=StatutSalarie.NON_CADRE))}
        assert "30002" in codes
        assert "30005" not in codes
        assert "20200" in codes

    def test_codes_presents_sans_filtre_statut(self):
        options = OptionsCalcul(statut=StatutSalarie.CADRE, codes_presents=frozenset({"30002"}))
        assert [r.code for r in regles_actives(CONVENTION_CCNT66, options)] == ["30002"]

    def test_forfait_social_ajoute_csg(self):
        options = OptionsCalcul(codes_presents=frozenset({"73355"}))
        codes = [r.code for r in regles_actives(CONVENTION_CCNT66, options)]
        assert codes == ["73000", "75050", "75060", "73355"]

    def test_non_resident_sans_csg(self):
        options = OptionsCalcul(codes_presents=frozenset({"73355", "20065"}))
        codes = {r.code for r in regles_actives(CONVENTION_CCNT66, options)}
        assert codes == {"73355", "20065"}

    def test_apprenti_sans_csg(self):
        options = OptionsCalcul(codes_presents=frozenset({"73355"}), apprenti=True)
        codes = {r.code for r in regles_actives(CONVENTION_CCNT66, options)}
        assert codes == {"73355"}

    def test_filtre_par_statut_hors_situations_particulieres(self):
        for statut in StatutSalarie:
            codes = {r.code for r in regles_actives(CONVENTION_CCNT66, OptionsCalcul(statut=statut))}
            assert codes.isdisjoint({"20065", "20003", "51052", "20085"})
            assert "20082" in codes

    def test_filtre_par_statut_apprenti(self):
        options = OptionsCalcul(statut=StatutSalarie.NON_CADRE, apprenti=True)
        codes = {r.code for r in regles_actives(CONVENTION_CCNT66, options)}
        assert {"20003", "51052"} <= codes
        assert codes.isdisjoint({"20065", "20085"})

    def test_situation_retenue_si_code_present(self):
        options = OptionsCalcul(codes_presents=frozenset({"20065", "20085"}))
        codes = [r.code for r in regles_actives(CONVENTION_CCNT66, options)]
        assert codes == ["20085", "20065"]

    def test_regle_de_situation(self):
        regle = CONVENTION_CCNT66.regle("51052")
        assert regle.situation == SituationRegle.APPRENTI
        assert not regle.s_applique_a(StatutSalarie.CADRE)
        assert regle.s_applique_a(StatutSalarie.CADRE, apprenti=True)
        assert not CONVENTION_CCNT66.regle("20065").s_applique_a(StatutSalarie.NON_CADRE, apprenti=True)


class TestCalculBulletin:
    """Tests du recalcul complet."""

    def setup_method(self):
        self.options = OptionsCalcul(
            statut=StatutSalarie.NON_CADRE,
            remboursements=D("25.00"),
            taux_pas=D("3.500"),
            codes_presents=CODES_NON_CADRE,
        )

    def test_non_cadre_2500(self):
        r = calculer_bulletin(D("2500.00"), CONVENTION_CCNT66, self.options)

        assert r.ligne("20200").montant_salarie == D("-172.50")
        assert r.ligne("20200").montant_employeur == D("213.75")
        # 2 500 x 1,245% = 31,125 -> 31,13
        assert r.ligne("51000").montant_employeur == D("31.13")
        assert r.ligne("58000").montant_salarie == D("-21.83")

        # 2 500 x 98,25% + 31,13 + 21,83
        assert r.base_csg == D("2509.21")
        assert r.ligne("73000").montant_salarie == D("-170.63")
        assert r.ligne("75050").montant_salarie == D("-60.22")
        assert r.ligne("75060").montant_salarie == D("-12.55")
        assert r.ligne("73355").base == D("52.96")
        assert r.ligne("73355").montant_employeur == D("4.24")

        assert r.total_retenues == D("478.86")
        assert r.total_patronal == D("498.70")
        assert r.net_social == D("2021.14")
        assert r.net_imposable == D("2115.74")
        assert r.net_a_payer_avant_pas == D("2046.14")
        assert r.pas.montant == D("74.05")
        assert r.net_paye == D("1972.09")

    def test_idempotent(self):
        premier = calculer_bulletin(D("3120.45"), CONVENTION_CCNT66, self.options)
        second = calculer_bulletin(D("3120.45"), CONVENTION_CCNT66, self.options)
        assert premier == second

    def test_brut_egal_au_plafond(self):
        r = calculer_bulletin(PASS_MENSUEL, CONVENTION_CCNT66)
        assert r.ligne("20200").base == PASS_MENSUEL
        assert r.ligne("46150").base == 0
        assert r.ligne("46150").montant_salarie == 0

    def test_brut_au_dessus_du_plafond(self):
        r = calculer_bulletin(D("5000.00"), CONVENTION_CCNT66)
        assert r.ligne("20200").base == PASS_MENSUEL
        assert r.ligne("46150").base == D("995.00")

    def test_plafond_proratise(self):
        options = OptionsCalcul(codes_presents=frozenset({"20200", "46100"}), plafond_prorate=D("2000.00"))
        r = calculer_bulletin(D("2500.00"), CONVENTION_CCNT66, options)
        assert r.ligne("20200").base == D("2000.00")
        assert r.ligne("46100").base == D("500.00")

    def test_taux_accident_travail(self):
        options = OptionsCalcul(codes_presents=frozenset({"57100"}), taux_at=D("1.5"))
        r = calculer_bulletin(D("2500.00"), CONVENTION_CCNT66, options)
        assert r.ligne("57100").montant_employeur == D("37.50")

    def test_sans_regle(self):
        r = calculer_bulletin(D("1800.00"), CONVENTION_CCNT66, OptionsCalcul(codes_presents=frozenset()))
        assert r.lignes == ()
        assert r.total_retenues == 0
        assert r.net_paye == D("1800.00")


class TestContexteBulletin:
    """Tests de la lecture du contexte de recalcul sur le bulletin."""

    def _bulletin(self, cotisations, brut=D("2500.00"), **kwargs):
        return BulletinDetaille(brut_cotisation=brut, cotisations=cotisations, **kwargs)

    def test_statut_par_qualification(self):
        b = BulletinClarifie(salarie=Salarie(qualification_conventionnelle="CADRE CLASSE 2 NIVEAU 1"))
        assert detecter_statut(b) == StatutSalarie.CADRE

    def test_statut_par_codes(self):
        b = self._bulletin([LigneCotisation(libelle="Prévoyance NC", code="51000")])
        assert detecter_statut(b) == StatutSalarie.NON_CADRE
        b = self._bulletin([LigneCotisation(libelle="APEC", code="46550")])
        assert detecter_statut(b) == StatutSalarie.CADRE

    def test_statut_par_defaut(self):
        assert detecter_statut(BulletinClarifie()) == StatutSalarie.CADRE

    def test_options_detaille(self):
        b = self._bulletin(
            [
                LigneCotisation(libelle="Vieillesse TA", code="20200", base=D("2500.00")),
                LigneCotisation(libelle="Accident du travail", code="57100",
                                base=D("2500.00"), montant_employeur=D("75.50")),
            ],
            remboursements=[LigneRemboursement(libelle="Transport", montant=D("25.00"))],
            impot_sur_le_revenu=ImpotRevenu(base=D("2000"), montant=D("-70"), taux_personnalise=D("3.5")),
        )
        options = construire_options(b, CONVENTION_CCNT66)
        assert options.codes_presents == frozenset({"20200", "57100"})
        assert options.plafond_prorate is None
        assert options.taux_at == D("3.02")
        assert options.taux_pas == D("3.5")
        assert options.remboursements == D("25.00")
        assert options.apprenti is False

    def test_plafond_proratise_detecte(self):
        b = self._bulletin(
            [LigneCotisation(libelle="Vieillesse TA", code="20200", base=D("3925.00"))],
            brut=D("4200.00"),
        )
        assert construire_options(b, CONVENTION_CCNT66).plafond_prorate == D("3925.00")

    def test_apprenti(self):
        b = self._bulletin([LigneCotisation(libelle="Vieillesse apprenti", code="20290")])
        assert construire_options(b, CONVENTION_CCNT66).apprenti is True

    def test_options_clarifie(self):
        options = construire_options(BulletinClarifie(), CONVENTION_CCNT66)
        assert options.codes_presents is None
        assert options.taux_pas == 0
