import itertools
import random
import unittest
from datetime import date
from decimal import Decimal

from networth.demo_data import DEMO_ACCOUNTS, generate_demo_data
from networth.time_series import build_series


def sequential_ids():
    counter = itertools.count(1)
    return lambda: f"demo-{next(counter)}"


class DemoDataTests(unittest.TestCase):
    def test_generates_twelve_months_for_every_account(self) -> None:
        entities = generate_demo_data(sequential_ids(), today=date(2024, 3, 2), rng=random.Random(7))

        self.assertEqual(len(entities.accounts), len(DEMO_ACCOUNTS))
        self.assertEqual(len(entities.records), 12 * len(DEMO_ACCOUNTS))
        self.assertEqual({owner.name for owner in entities.owners}, {"John", "Mary", "Joint"})
        months = sorted({record.date for record in entities.records})
        self.assertEqual(months[0], date(2023, 4, 15))
        self.assertEqual(months[-1], date(2024, 3, 15))

    def test_same_seed_gives_same_data(self) -> None:
        first = generate_demo_data(sequential_ids(), today=date(2024, 3, 2), rng=random.Random(1))
        second = generate_demo_data(sequential_ids(), today=date(2024, 3, 2), rng=random.Random(1))

        self.assertEqual(first, second)

    def test_amounts_are_whole_and_non_negative(self) -> None:
        entities = generate_demo_data(sequential_ids(), today=date(2024, 3, 2), rng=random.Random(3))

        for record in entities.records:
            self.assertGreaterEqual(record.amount, Decimal("0"))
            self.assertEqual(record.amount, record.amount.to_integral_value())

    def test_car_loan_has_no_volatility(self) -> None:
        entities = generate_demo_data(sequential_ids(), today=date(2024, 3, 2), rng=random.Random(3))
        car = next(account for account in entities.accounts if account.name == "Car Loan")

        amounts = [record.amount for record in entities.records if record.account_id == car.id]

        self.assertEqual(amounts[0], Decimal("18000"))
        self.assertEqual(amounts[-1], Decimal("18000") - Decimal("350") * 11)

    def test_demo_data_feeds_the_series(self) -> None:
        entities = generate_demo_data(sequential_ids(), today=date(2024, 3, 2), rng=random.Random(3))

        series = build_series(entities.records, entities.accounts, entities.categories, "CAD")

        self.assertEqual(len(series.months), 12)
        self.assertTrue(all(entry.total_liabilities > 0 for entry in series.months))


if __name__ == "__main__":
    unittest.main()
