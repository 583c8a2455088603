"""
Test Suite: Affiliate Ledger
"""
import pytest
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.errors import AffiliateCodeTaken
from app.services.affiliate_ledger import (
    MOCK_AFFILIATE_CODE,
    MOCK_EMPLOYEE_EMAIL,
    NO_CODE,
    AffiliateLedger,
)

EMPLOYEE = "employee@example.com"


@pytest.fixture
def ledger(store, clock):
    return AffiliateLedger(store, clock=clock)


class TestStats:
    def test_no_code_gives_zero_stats(self, ledger):
        stats = ledger.get_affiliate_data("nobody@example.com")
        assert stats.code == NO_CODE
        assert (stats.total_signups, stats.total_earnings, stats.total_points) == (0, 0.0, 0)

    def test_code_without_entries(self, ledger):
        ledger.assign_code(EMPLOYEE, "EMP1")
        stats = ledger.get_affiliate_data(EMPLOYEE)
        assert stats.code == "EMP1"
        assert stats.total_signups == 0
        assert stats.total_earnings == 0.0

    def test_credit_increases_stats(self, ledger):
        ledger.assign_code(EMPLOYEE, "EMP1")
        before = ledger.get_affiliate_data(EMPLOYEE)

        assert ledger.credit_affiliate("EMP1", "new@example.com", 50, used_discount=False)

        after = ledger.get_affiliate_data(EMPLOYEE)
        assert after.total_signups == before.total_signups + 1
        assert after.total_points == before.total_points + 1
        assert after.total_earnings == pytest.approx(before.total_earnings + 2.50)

    def test_earnings_rounded_to_cents(self, ledger):
        ledger.assign_code(EMPLOYEE, "EMP1")
        for amount in (19.99, 19.99, 19.99):
            ledger.credit_affiliate("EMP1", "r@example.com", amount, used_discount=True)
        # 3 * 19.99 * 0.05 = 2.9985
        assert ledger.get_affiliate_data(EMPLOYEE).total_earnings == 3.00


class TestCodes:
    def test_lookup_ignores_case(self, ledger):
        ledger.assign_code(EMPLOYEE, "Emp123")
        assert ledger.find_employee_by_code("emp123") == EMPLOYEE
        assert ledger.find_employee_by_code("EMP123") == EMPLOYEE

    def test_unknown_code_is_noop(self, ledger, store):
        ledger.assign_code(EMPLOYEE, "EMP1")
        assert not ledger.credit_affiliate("NOPE", "new@example.com", 50, used_discount=False)
        assert store.affiliate_entries.get_all() == {}

    def test_blank_code_matches_nobody(self, ledger):
        ledger.assign_code(EMPLOYEE, "EMP1")
        assert ledger.find_employee_by_code("  ") is None

    def test_code_taken_by_another_employee(self, ledger):
        ledger.assign_code(EMPLOYEE, "EMP1")
        with pytest.raises(AffiliateCodeTaken):
            ledger.assign_code("other@example.com", "emp1")

    def test_reassigning_own_code(self, ledger):
        ledger.assign_code(EMPLOYEE, "EMP1")
        ledger.assign_code(EMPLOYEE, "EMP2")
        assert ledger.get_affiliate_data(EMPLOYEE).code == "EMP2"
        assert ledger.find_employee_by_code("EMP1") is None


class TestMockAffiliates:
    def test_seeds_two_referrals(self, ledger):
        assert ledger.initialize_mock_affiliates()
        stats = ledger.get_affiliate_data(MOCK_EMPLOYEE_EMAIL)
        assert stats.code == MOCK_AFFILIATE_CODE
        assert stats.total_signups == 2
        assert stats.total_earnings == 5.00

    def test_idempotent(self, ledger):
        ledger.initialize_mock_affiliates()
        assert not ledger.initialize_mock_affiliates()
        assert ledger.get_affiliate_data(MOCK_EMPLOYEE_EMAIL).total_signups == 2

    def test_referral_against_mock_code(self, ledger):
        ledger.initialize_mock_affiliates()
        before = ledger.get_affiliate_data(MOCK_EMPLOYEE_EMAIL).total_earnings
        ledger.credit_affiliate(MOCK_AFFILIATE_CODE, "r@x.com", subscription_amount=50, used_discount=False)
        after = ledger.get_affiliate_data(MOCK_EMPLOYEE_EMAIL).total_earnings
        assert after - before == pytest.approx(2.50)

    def test_code_held_by_someone_else_skips_seeding(self, ledger, store):
        ledger.assign_code("other@example.com", MOCK_AFFILIATE_CODE.lower())

        assert not ledger.initialize_mock_affiliates()
        assert store.affiliate_codes.get_all() == {"other@example.com": MOCK_AFFILIATE_CODE.lower()}
        assert store.affiliate_entries.get_all().get(MOCK_EMPLOYEE_EMAIL) is None
        assert ledger.find_employee_by_code(MOCK_AFFILIATE_CODE) == "other@example.com"
