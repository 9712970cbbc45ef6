import unittest
from decimal import Decimal

from networth.entities import CategoryType, GroupBy, validate_amount


class ValidateAmountTests(unittest.TestCase):
    def test_accepts_cent_precision(self) -> None:
        for raw in ("0", "0.01", "1234.5", "1234.56", "48000000"):
            with self.subTest(raw=raw):
                self.assertEqual(validate_amount(Decimal(raw)), Decimal(raw))

    def test_trailing_zeros_are_not_extra_precision(self) -> None:
        self.assertEqual(validate_amount(Decimal("10.5000")), Decimal("10.5"))

    def test_rejects_sub_cent_precision(self) -> None:
        for raw in ("0.005", "1234.5678", "1.001"):
            with self.subTest(raw=raw):
                with self.assertRaises(ValueError):
                    validate_amount(Decimal(raw))

    def test_rejects_negative_and_non_finite(self) -> None:
        for raw in ("-0.01", "NaN", "Infinity"):
            with self.subTest(raw=raw):
                with self.assertRaises(ValueError):
                    validate_amount(Decimal(raw))


class ValidatorTests(unittest.TestCase):
    def test_category_type_is_case_insensitive(self) -> None:
        self.assertEqual(CategoryType.validate(" liability "), CategoryType.LIABILITY)
        with self.assertRaises(ValueError):
            CategoryType.validate("equity")

    def test_group_by_accepts_known_dimensions(self) -> None:
        self.assertEqual(GroupBy.validate("ACCOUNT"), GroupBy.ACCOUNT)
        with self.assertRaises(ValueError):
            GroupBy.validate("owner")


if __name__ == "__main__":
    unittest.main()
