from decimal import Decimal
from types import SimpleNamespace

from stockbook.services.totals_service import LineAmounts, compute_totals, printed_totals


D = Decimal


class TestComputeTotals:

    def test_rate_based_tax(self):
        totals = compute_totals(
            [
                LineAmounts(2, D("10.00"), D("1.00")),
                LineAmounts(3, D("5.00")),
            ],
            tax_rate=D("0.18"),
        )

        assert totals.sub_total == D("35.00")
        assert totals.line_discount_total == D("2.00")
        assert totals.net_total == D("33.00")
        assert totals.tax_amount == D("5.9400")
        assert totals.grand_total == D("38.9400")
        assert totals.line_totals == (D("18.00"), D("15.00"))

    def test_explicit_tax_amount_wins(self):
        totals = compute_totals([LineAmounts(1, D("100"))], tax_rate=D("0.18"), tax_amount=D("7.25"))

        assert totals.tax_rate is None
        assert totals.tax_amount == D("7.25")
        assert totals.grand_total == D("107.25")

    def test_no_tax(self):
        totals = compute_totals([LineAmounts(4, D("2.50"))])

        assert totals.tax_amount == D("0")
        assert totals.grand_total == D("10.00")

    def test_zero_quantity_line_contributes_nothing(self):
        totals = compute_totals([LineAmounts(0, D("9.99"), D("1.00"))], tax_rate=D("0.1"))

        assert totals.grand_total == D("0")
        assert totals.line_totals == (D("0"),)

    def test_amounts_are_not_rounded_until_presented(self):
        totals = compute_totals([LineAmounts(3, D("0.333"))], tax_rate=D("0.05"))

        assert totals.sub_total == D("0.999")
        assert totals.to_dict()["sub_total"] == "1.00"
        assert totals.to_dict()["tax_amount"] == "0.05"

    def test_to_dict_keeps_rate(self):
        totals = compute_totals([LineAmounts(1, D("10"))], tax_rate=D("0.18"))

        assert totals.to_dict()["tax_rate"] == "0.18"
        assert totals.to_dict()["grand_total"] == "11.80"


class TestPrintedTotals:

    def _invoice(self):
        return SimpleNamespace(
            sub_total=D("100.00"),
            line_discount_total=D("10.00"),
            tax_amount=D("16.20"),
            grand_total=D("106.20"),
        )

    def test_final_discount_reduces_printed_total_only(self):
        invoice = self._invoice()
        totals = printed_totals(invoice, D("5.00"))

        assert totals.net_total == D("90.00")
        assert totals.printed_total == D("101.20")
        assert totals.stored_grand_total == D("106.20")
        assert invoice.grand_total == D("106.20")

    def test_tax_is_not_recomputed(self):
        totals = printed_totals(self._invoice(), D("50.00"))

        assert totals.tax_amount == D("16.20")
        assert totals.to_dict()["printed_total"] == "56.20"

    def test_without_final_discount_matches_stored_total(self):
        totals = printed_totals(self._invoice())

        assert totals.printed_total == totals.stored_grand_total
