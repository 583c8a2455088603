"""
Affiliate Ledger

Referral crediting for employees. Each employee may hold one affiliate code;
new users present it at signup and the employee is credited with an
append-only entry. Stats are derived from the entries on every read:

    total_signups = number of entries
    total_earnings = sum(subscription_amount * 5%), rounded to cents
    total_points  = number of entries (1 point per referred user)
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Optional

from app.errors import AffiliateCodeTaken
from app.models.records import AffiliateEntry, AffiliateStats, normalize_email, utc_now
from app.services.record_store import RecordStore

logger = logging.getLogger(__name__)

COMMISSION_RATE = Decimal("0.05")
POINTS_PER_SIGNUP = 1
NO_CODE = "N/A"

MOCK_EMPLOYEE_EMAIL = "employee@example.com"
MOCK_AFFILIATE_CODE = "EMP123XYZ"


class AffiliateLedger:
    """Credits referrals and aggregates per-employee stats over a RecordStore."""

    def __init__(self, store: RecordStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def find_employee_by_code(self, code: str) -> Optional[str]:
        """Employee email whose code matches `code` exactly, ignoring case."""
        wanted = (code or "").strip().lower()
        if not wanted:
            return None
        for employee_email, assigned in self.store.affiliate_codes.get_all().items():
            if assigned.lower() == wanted:
                return employee_email
        return None

    def assign_code(self, employee_email: str, code: str) -> None:
        """Give `employee_email` the referral code `code` (replacing any previous one)."""
        employee_email = normalize_email(employee_email)
        code = code.strip()
        codes = self.store.affiliate_codes.get_all()
        for holder, assigned in codes.items():
            if holder != employee_email and assigned.lower() == code.lower():
                raise AffiliateCodeTaken()
        codes[employee_email] = code
        self.store.affiliate_codes.save_all(codes)
        logger.info(f"Assigned affiliate code {code} to {employee_email}")

    def credit_affiliate(
        self,
        code: str,
        referred_user_email: str,
        subscription_amount: float,
        used_discount: bool,
    ) -> bool:
        """
        Credit a referred signup to the employee owning `code`.

        An unknown code is logged and ignored; it must never fail the signup
        that triggered it. Returns True when an entry was appended.
        """
        employee_email = self.find_employee_by_code(code)
        if employee_email is None:
            logger.warning(f"Affiliate code {code} not found.")
            return False

        entry = AffiliateEntry(
            referred_user_email=normalize_email(referred_user_email),
            subscription_amount=float(subscription_amount),
            used_discount=bool(used_discount),
            timestamp=self.clock(),
        )
        self.store.affiliate_entries.append(employee_email, entry)
        logger.info(f"Credited referral for {entry.referred_user_email} to {employee_email}")
        return True

    def get_affiliate_data(self, employee_email: str) -> AffiliateStats:
        """Aggregate stats for one employee. Zeroed, never an error, when there is nothing to count."""
        employee_email = normalize_email(employee_email)
        code = self.store.affiliate_codes.get_all().get(employee_email)
        if not code:
            return AffiliateStats(code=NO_CODE, total_signups=0, total_earnings=0.0, total_points=0)

        entries = self.store.affiliate_entries.get_all().get(employee_email, [])
        earnings = sum(
            (Decimal(str(entry.subscription_amount)) * COMMISSION_RATE for entry in entries),
            Decimal("0"),
        )
        return AffiliateStats(
            code=code,
            total_signups=len(entries),
            total_earnings=float(earnings.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)),
            total_points=len(entries) * POINTS_PER_SIGNUP,
        )

    def initialize_mock_affiliates(self) -> bool:
        """
        Seed the demo employee code and two referrals.
        Guarded so repeat calls never duplicate data, and skipped when the
        code already belongs to someone else. Returns True when seeded.
        """
        if MOCK_EMPLOYEE_EMAIL in self.store.affiliate_codes.get_all():
            return False
        try:
            self.assign_code(MOCK_EMPLOYEE_EMAIL, MOCK_AFFILIATE_CODE)
        except AffiliateCodeTaken:
            logger.warning(f"Mock affiliate code {MOCK_AFFILIATE_CODE} already belongs to another employee, not seeding")
            return False

        if not self.store.affiliate_entries.get_all().get(MOCK_EMPLOYEE_EMAIL):
            now = self.clock()
            for entry in (
                AffiliateEntry("referred1@example.com", 50.0, True, now - timedelta(days=1)),
                AffiliateEntry("referred2@example.com", 50.0, False, now),
            ):
                self.store.affiliate_entries.append(MOCK_EMPLOYEE_EMAIL, entry)
        logger.info(f"Seeded mock affiliate {MOCK_AFFILIATE_CODE} for {MOCK_EMPLOYEE_EMAIL}")
        return True
