import unittest
from decimal import Decimal

from forecasting.currency_conversion import (
    DEFAULT_RATES,
    StaticRateProvider,
    convert_amount,
    to_reference,
)


class CurrencyConversionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.provider = StaticRateProvider(
            rates={
                "EUR": Decimal("1"),
                "USD": Decimal("0.5"),
                "JPY": Decimal("0.25"),
            }
        )

    def test_same_currency_returns_original_amount(self) -> None:
        amount = convert_amount(
            Decimal("12.50"),
            "USD",
            "USD",
            rate_provider=self.provider,
        )

        self.assertEqual(amount, Decimal("12.50"))

    def test_conversion_goes_through_eur_rates(self) -> None:
        amount = convert_amount(
            Decimal("10"),
            "USD",
            "JPY",
            rate_provider=self.provider,
        )

        self.assertEqual(amount, Decimal("20"))

    def test_normalizes_currency_codes(self) -> None:
        amount = convert_amount(
            Decimal("6"),
            " usd ",
            "jpy",
            rate_provider=self.provider,
        )

        self.assertEqual(amount, Decimal("12"))

    def test_missing_currency_raises(self) -> None:
        with self.assertRaises(ValueError):
            convert_amount(
                Decimal("5"),
                "USD",
                "CAD",
                rate_provider=self.provider,
            )

    def test_rejects_malformed_currency_code(self) -> None:
        with self.assertRaises(ValueError):
            convert_amount(Decimal("5"), "US", "EUR", rate_provider=self.provider)

    def test_default_table_is_eur_per_unit(self) -> None:
        self.assertEqual(DEFAULT_RATES["EUR"], Decimal("1"))
        self.assertEqual(to_reference(Decimal("100"), "USD", reference_currency="EUR"), Decimal("93"))
        self.assertEqual(to_reference(Decimal("10"), "GBP", reference_currency="EUR"), Decimal("11.8"))
        self.assertEqual(to_reference(Decimal("2"), "BTC", reference_currency="EUR"), Decimal("130000"))

    def test_converts_from_reference_into_other_currency(self) -> None:
        amount = convert_amount(Decimal("65000"), "EUR", "BTC")

        self.assertEqual(amount, Decimal("1"))

    def test_accepts_numeric_strings(self) -> None:
        amount = convert_amount("4", "JPY", "EUR", rate_provider=self.provider)

        self.assertEqual(amount, Decimal("1"))


if __name__ == "__main__":
    unittest.main()
