import unittest

from compensation.benefits import BenefitsEngine
from compensation.models import (
    BenefitsConfig,
    FlexibleWork,
    FundContribution,
    HealthInsurance,
    Laptop,
    Meals,
    PerksConfig,
)


class TestBenefitsValue(unittest.TestCase):
    def setUp(self):
        self.engine = BenefitsEngine()

    def test_should_value_pension_below_ceiling(self):
        self.assertAlmostEqual(self.engine.compute_pension_value(20000), 20000 * 0.06 * 12)

    def test_should_cap_pension_value_at_ceiling(self):
        self.assertAlmostEqual(self.engine.compute_pension_value(50000), 42480 * 0.06 * 12)

    def test_should_cap_study_fund_value_at_ceiling(self):
        self.assertAlmostEqual(self.engine.compute_study_fund_value(40000), 33500 * 0.075 * 12)
        self.assertAlmostEqual(self.engine.compute_study_fund_value(40000, 0.05), 33500 * 0.05 * 12)

    def test_should_value_health_insurance_by_coverage(self):
        self.assertEqual(self.engine.compute_health_insurance_value("none", 500), 0)
        self.assertEqual(self.engine.compute_health_insurance_value("basic"), 1800)
        self.assertEqual(self.engine.compute_health_insurance_value("premium"), 3600)
        self.assertEqual(self.engine.compute_health_insurance_value("basic", 200), 2400)

    def test_should_value_vacation_at_daily_rate(self):
        # 25000 * 12 / 250 = 1200 per day
        self.assertAlmostEqual(self.engine.compute_pto_value(25000, 20), 24000)

    def test_should_value_only_sick_days_above_legal_minimum(self):
        self.assertEqual(self.engine.compute_sick_days_value(25000, 7), 0)
        self.assertEqual(self.engine.compute_sick_days_value(25000, 3), 0)
        self.assertAlmostEqual(self.engine.compute_sick_days_value(25000, 12), 5 * 1200 * 0.5)
        self.assertAlmostEqual(self.engine.compute_sick_days_value(25000, "unlimited"), 10 * 1200 * 0.5)

    def test_should_value_extra_parental_leave(self):
        self.assertEqual(self.engine.compute_parental_leave_value(25000, 0), 0)
        self.assertAlmostEqual(self.engine.compute_parental_leave_value(25000, 10), 10 * 1200 * 0.3)


class TestComprehensiveBenefits(unittest.TestCase):
    def setUp(self):
        self.engine = BenefitsEngine()

    def test_should_sum_components_with_net_equal_to_gross(self):
        # Precondition
        benefits = BenefitsConfig(sick_days=18, parental_leave=5)

        # Under test
        result = self.engine.calculate_comprehensive_benefits(25000, benefits)

        # Postcondition
        self.assertEqual(set(result.components),
                         {"pension_fund", "study_fund", "health_insurance", "vacation_days",
                          "sick_days", "parental_leave"})
        self.assertAlmostEqual(result.gross, sum(c.value for c in result.components.values()))
        self.assertEqual(result.net, result.gross)
        self.assertAlmostEqual(result.components["pension_fund"].value, 25000 * 0.06 * 12)
        self.assertAlmostEqual(result.components["study_fund"].value, 25000 * 0.075 * 12)

    def test_should_use_configured_employer_percentages(self):
        benefits = BenefitsConfig(pension_fund=FundContribution(6, 6.5), study_fund=FundContribution(2.5, 5))

        result = self.engine.calculate_comprehensive_benefits(10000, benefits)

        self.assertAlmostEqual(result.components["pension_fund"].value, 10000 * 0.065 * 12)
        self.assertAlmostEqual(result.components["study_fund"].value, 10000 * 0.05 * 12)

    def test_should_omit_zero_valued_leave_components(self):
        benefits = BenefitsConfig(sick_days=7, parental_leave=0,
                                  health_insurance=HealthInsurance(coverage="none"))

        result = self.engine.calculate_comprehensive_benefits(25000, benefits)

        self.assertNotIn("sick_days", result.components)
        self.assertNotIn("parental_leave", result.components)
        self.assertEqual(result.components["health_insurance"].value, 0)

    def test_should_compute_total_employer_cost(self):
        cost = self.engine.compute_total_employer_cost(20000, BenefitsConfig())

        self.assertAlmostEqual(cost.base_salary, 240000)
        self.assertAlmostEqual(cost.mandatory_benefits, 20000 * 0.135 * 12)
        self.assertAlmostEqual(cost.additional_benefits, 1800)
        self.assertAlmostEqual(cost.total_cost, 240000 + 32400 + 1800)
        self.assertAlmostEqual(cost.cost_percentage, (32400 + 1800) / 240000 * 100)

    def test_should_benchmark_known_and_unknown_roles(self):
        senior = self.engine.get_benefits_benchmark("Senior")
        self.assertAlmostEqual(senior.pension_contribution, 32000 * 0.06 * 12)
        self.assertAlmostEqual(senior.study_fund_contribution, 32000 * 0.075 * 12)
        self.assertAlmostEqual(senior.total_benefits_value, 23040 + 28800 + 1800 + 32000 * 12 / 250 * 20)

        unknown = self.engine.get_benefits_benchmark("wizard")
        self.assertAlmostEqual(unknown.pension_contribution, 30000 * 0.06 * 12)


class TestPerksValue(unittest.TestCase):
    def setUp(self):
        self.engine = BenefitsEngine()

    def test_should_value_nothing_given_default_perks(self):
        value = self.engine.compute_perks_value(PerksConfig())

        self.assertEqual(value.total_annual_value, 0)
        self.assertEqual(value.breakdown, {})

    def test_should_annualize_monthly_perks(self):
        # Precondition
        perks = PerksConfig(
            laptop=Laptop(provided=True),
            internet_stipend=100,
            meals=Meals(type="allowance", value=500),
            learning_budget=5000,
            flexible_work=FlexibleWork(remote_allowed=True, hybrid_days=2),
        )

        # Under test
        value = self.engine.compute_perks_value(perks)

        # Postcondition
        self.assertEqual(value.breakdown["laptop"], 8000)
        self.assertEqual(value.breakdown["internet_stipend"], 1200)
        self.assertEqual(value.breakdown["meals"], 6000)
        self.assertEqual(value.breakdown["learning_budget"], 5000)
        self.assertAlmostEqual(value.breakdown["flexible_work"], 2 / 5 * 300 * 12)
        self.assertAlmostEqual(value.total_annual_value, sum(value.breakdown.values()))

    def test_should_ignore_meal_value_when_no_meals(self):
        value = self.engine.compute_perks_value(PerksConfig(meals=Meals(type="none", value=500)))

        self.assertNotIn("meals", value.breakdown)

    def test_should_value_full_remote_as_saved_commute(self):
        value = self.engine.compute_perks_value(PerksConfig(flexible_work=FlexibleWork(remote_allowed=True)))

        self.assertEqual(value.breakdown["flexible_work"], 3600)

    def test_should_prefer_explicit_laptop_value(self):
        value = self.engine.compute_perks_value(PerksConfig(laptop=Laptop(provided=True, annual_value=12000)))

        self.assertEqual(value.breakdown["laptop"], 12000)


if __name__ == '__main__':
    unittest.main()
