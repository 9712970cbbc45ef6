import itertools
import os
import tempfile
import unittest
from decimal import Decimal

_DB_DIR = tempfile.mkdtemp(prefix="networth-test-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"

from fastapi.testclient import TestClient  # noqa: E402

from networth import main  # noqa: E402


class ApiTests(unittest.TestCase):
    def setUp(self) -> None:
        main.metadata.drop_all(main.engine)
        main.metadata.create_all(main.engine)
        counter = itertools.count(1)
        clock = itertools.count(1000)
        main.app.dependency_overrides[main.get_id_factory] = lambda: (lambda: f"id{next(counter)}")
        main.app.dependency_overrides[main.get_clock] = lambda: (lambda: next(clock))
        self.client = TestClient(main.app)

    def tearDown(self) -> None:
        main.app.dependency_overrides.clear()

    def _household(self) -> dict:
        owner = self.client.post("/owners", json={"name": "John"}).json()
        cash = self.client.post(
            "/categories", json={"name": "CASH", "type": "ASSET", "color": "#10b981"}
        ).json()
        loan = self.client.post(
            "/categories", json={"name": "LOAN", "type": "liability", "color": "#ef4444"}
        ).json()
        checking = self.client.post(
            "/accounts",
            json={"name": "Chase Checking", "currency": "USD", "category_id": cash["id"], "owner_id": owner["id"]},
        ).json()
        car = self.client.post(
            "/accounts",
            json={"name": "Car Loan", "currency": "usd", "category_id": loan["id"], "owner_id": owner["id"]},
        ).json()
        return {"owner": owner, "cash": cash, "loan": loan, "checking": checking, "car": car}

    def test_health(self) -> None:
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})

    def test_settings_round_trip(self) -> None:
        self.assertEqual(self.client.get("/settings").json()["default_currency"], "USD")

        response = self.client.put("/settings", json={"default_currency": "eur"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get("/settings").json()["default_currency"], "EUR")
        self.assertEqual(
            self.client.put("/settings", json={"default_currency": "XYZ"}).status_code, 400
        )

    def test_default_categories_seeded(self) -> None:
        names = [category["name"] for category in self.client.get("/categories").json()]

        self.assertIn("Liability (Loan/Debt)", names)
        self.assertEqual(len(names), 7)

    def test_net_worth_series(self) -> None:
        household = self._household()
        for day, account, amount in (
            ("2024-01-15", household["checking"]["id"], 8000),
            ("2024-03-15", household["checking"]["id"], 8400),
            ("2024-01-15", household["car"]["id"], 18000),
        ):
            response = self.client.post(
                "/records", json={"date": day, "account_id": account, "amount": amount}
            )
            self.assertEqual(response.status_code, 200)

        body = self.client.get("/reports/net-worth", params={"timeframe": "all"}).json()

        self.assertEqual([month["month"] for month in body["months"]], ["2024-01", "2024-03"])
        self.assertEqual(Decimal(body["months"][0]["net_worth"]), Decimal("-10000"))
        self.assertEqual(Decimal(body["months"][1]["total_assets"]), Decimal("8400"))
        self.assertEqual(body["available_years"], ["2024"])
        loan_bucket = next(item for item in body["months"][0]["breakdown"] if item["label"] == "LOAN")
        self.assertTrue(loan_bucket["is_liability"])
        self.assertEqual(Decimal(loan_bucket["signed_value"]), Decimal("-18000"))
        self.assertEqual(Decimal(body["trend"][0]["net_worth"]), Decimal("-10000"))

    def test_summary_splits_allocation(self) -> None:
        household = self._household()
        self.client.post(
            "/records",
            json={"date": "2024-01-15", "account_id": household["checking"]["id"], "amount": 500},
        )
        self.client.post(
            "/records",
            json={"date": "2024-01-15", "account_id": household["car"]["id"], "amount": 200},
        )

        body = self.client.get("/reports/summary", params={"group_by": "account"}).json()

        self.assertEqual(Decimal(body["net_worth"]), Decimal("300"))
        self.assertEqual([item["label"] for item in body["asset_allocation"]], ["Chase Checking"])
        self.assertEqual([item["label"] for item in body["liability_allocation"]], ["Car Loan"])

    def test_summary_lists_liabilities_per_account_when_grouped_by_category(self) -> None:
        household = self._household()
        mortgage = self.client.post(
            "/accounts",
            json={
                "name": "Mortgage",
                "currency": "USD",
                "category_id": household["loan"]["id"],
                "owner_id": household["owner"]["id"],
            },
        ).json()
        for account, amount in (
            (household["checking"]["id"], 500),
            (household["car"]["id"], 200),
            (mortgage["id"], 900),
        ):
            self.client.post(
                "/records", json={"date": "2024-01-15", "account_id": account, "amount": amount}
            )

        body = self.client.get("/reports/summary", params={"group_by": "category"}).json()

        self.assertEqual(body["group_by"], "category")
        self.assertEqual([item["label"] for item in body["asset_allocation"]], ["CASH"])
        liabilities = body["liability_allocation"]
        self.assertEqual([item["label"] for item in liabilities], ["Mortgage", "Car Loan"])
        self.assertEqual({item["kind"] for item in liabilities}, {"account"})
        self.assertEqual(Decimal(liabilities[0]["magnitude"]), Decimal("900"))
        self.assertEqual(Decimal(body["net_worth"]), Decimal("-600"))

    def test_report_parameters_validated(self) -> None:
        self.assertEqual(
            self.client.get("/reports/net-worth", params={"group_by": "owner"}).status_code, 400
        )
        self.assertEqual(
            self.client.get("/reports/net-worth", params={"timeframe": "year"}).status_code, 400
        )

    def test_usage_guards(self) -> None:
        household = self._household()
        record = self.client.post(
            "/records",
            json={"date": "2024-01-15", "account_id": household["checking"]["id"], "amount": 1},
        ).json()

        self.assertEqual(self.client.delete(f"/owners/{household['owner']['id']}").status_code, 409)
        self.assertEqual(self.client.delete(f"/categories/{household['cash']['id']}").status_code, 409)
        self.assertEqual(
            self.client.delete(f"/accounts/{household['checking']['id']}").status_code, 409
        )
        self.assertEqual(self.client.delete(f"/records/{record['id']}").status_code, 200)
        self.assertEqual(
            self.client.delete(f"/accounts/{household['checking']['id']}").status_code, 200
        )
        self.assertEqual(self.client.delete("/records/nope").status_code, 404)

    def test_record_validation(self) -> None:
        household = self._household()

        negative = self.client.post(
            "/records",
            json={"date": "2024-01-15", "account_id": household["checking"]["id"], "amount": -5},
        )
        unknown = self.client.post(
            "/records", json={"date": "2024-01-15", "account_id": "missing", "amount": 5}
        )

        self.assertEqual(negative.status_code, 400)
        self.assertEqual(unknown.status_code, 400)

    def test_sub_cent_amounts_rejected_instead_of_rounded(self) -> None:
        household = self._household()
        account_id = household["checking"]["id"]

        for amount in ("1234.5678", "0.005"):
            with self.subTest(amount=amount):
                response = self.client.post(
                    "/records", json={"date": "2024-01-15", "account_id": account_id, "amount": amount}
                )
                self.assertEqual(response.status_code, 400)
        self.assertEqual(self.client.get("/records").json(), [])

        created = self.client.post(
            "/records", json={"date": "2024-01-15", "account_id": account_id, "amount": "1234.56"}
        )
        self.assertEqual(created.status_code, 200)
        listed = self.client.get("/records").json()
        self.assertEqual(Decimal(listed[0]["amount"]), Decimal(created.json()["amount"]))
        self.assertEqual(Decimal(listed[0]["amount"]), Decimal("1234.56"))

        rejected_update = self.client.put(
            f"/records/{created.json()['id']}",
            json={"date": "2024-01-15", "account_id": account_id, "amount": "1.001"},
        )
        self.assertEqual(rejected_update.status_code, 400)

    def test_update_record_preserves_timestamp(self) -> None:
        household = self._household()
        created = self.client.post(
            "/records",
            json={"date": "2024-01-15", "account_id": household["checking"]["id"], "amount": 1},
        ).json()

        updated = self.client.put(
            f"/records/{created['id']}",
            json={"date": "2024-02-01", "account_id": household["checking"]["id"], "amount": 2},
        ).json()

        self.assertEqual(updated["timestamp"], created["timestamp"])
        listed = self.client.get("/records", params={"owner_id": household["owner"]["id"]}).json()
        self.assertEqual(listed[0]["date"], "2024-02-01")

    def test_records_listed_newest_first(self) -> None:
        household = self._household()
        for day in ("2024-01-01", "2024-03-01", "2024-02-01"):
            self.client.post(
                "/records",
                json={"date": day, "account_id": household["checking"]["id"], "amount": 1},
            )

        listed = self.client.get("/records").json()

        self.assertEqual([item["date"] for item in listed], ["2024-03-01", "2024-02-01", "2024-01-01"])

    def test_backup_round_trip_and_csv(self) -> None:
        household = self._household()
        self.client.post(
            "/records",
            json={"date": "2024-01-15", "account_id": household["car"]["id"], "amount": 18000},
        )

        backup = self.client.get("/export/backup").json()
        csv_response = self.client.get("/export/csv")
        self.client.delete("/data")
        self.assertEqual(self.client.get("/records").json(), [])
        restored = self.client.post("/import", json=backup)

        self.assertEqual(restored.status_code, 200)
        self.assertEqual(restored.json()["records"], 1)
        self.assertIn("Car Loan", csv_response.text)
        self.assertTrue(csv_response.headers["content-type"].startswith("text/csv"))
        summary = self.client.get("/reports/summary").json()
        self.assertEqual(Decimal(summary["net_worth"]), Decimal("-18000"))

    def test_import_legacy_file(self) -> None:
        content = (
            b'[{"id": "r1", "date": "2024-01-15", "accountName": "Wallet", "owner": "Mary",'
            b' "currency": "CAD", "amount": 100, "category": "Cryptocurrency"}]'
        )

        response = self.client.post(
            "/import/file", files={"file": ("backup.json", content, "application/json")}
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["accounts"], 1)

    def test_import_rejects_bad_payload(self) -> None:
        self.assertEqual(self.client.post("/import", json={"nothing": True}).status_code, 400)
        self.assertEqual(
            self.client.post(
                "/import/file", files={"file": ("backup.json", b"not json", "application/json")}
            ).status_code,
            400,
        )

    def test_demo_data_loads(self) -> None:
        response = self.client.post("/demo")

        self.assertEqual(response.status_code, 200)
        body = self.client.get("/reports/net-worth", params={"timeframe": "all"}).json()
        self.assertEqual(len(body["months"]), 12)


if __name__ == "__main__":
    unittest.main()
