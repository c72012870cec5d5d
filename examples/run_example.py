import json
import logging
import os
import sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from billinsight.cohort import FixtureCohort
from billinsight.config import config_from_env
from billinsight.errors import IncompleteBillError
from billinsight.pipeline import analyze_bill
from billinsight.scoring import score_history

logging.basicConfig(level=logging.INFO)

SAMPLE_BILL = {
    "accountNumber": "1234-5678",
    "billingPeriod": "Mar 1, 2024 - Mar 31, 2024",
    "totalAmount": "$142.67",
    "dueDate": "Apr 15, 2024",
    "energyUsage": "450 kWh",
    "previousUsage": 380,
    "averageDailyUsage": 14.5,
    "location": {"latitude": -33.86, "longitude": 151.21},
    "solarGeneration": 320,
    "rates": {"Tier 1 (0-500 kWh)": 0.12, "Tier 2 (501+ kWh)": 0.15},
    "charges": {"Energy Charge": 98.5, "Delivery Charge": 32.17, "Taxes & Fees": 12.0},
}


def main():
    bill_file = sys.argv[1] if len(sys.argv) > 1 else None
    if bill_file:
        with open(bill_file) as f:
            raw = json.load(f)
    else:
        raw = SAMPLE_BILL

    # Without SOLCAST_API_KEY the solar branch is skipped and the bundle has no solar block.
    config = config_from_env()
    cohort = FixtureCohort(seed=42)
    try:
        bundle = analyze_bill(raw, config, cohort_source=cohort)
    except IncompleteBillError as e:
        print(f"Cannot analyse bill: {e}")
        return 1

    print(json.dumps(bundle.to_dict(), indent=2))
    if bundle.comparison is not None:
        print("\nHistorical trend:")
        for month in score_history(cohort.history()):
            print(f"  {month['month']}: {month['score']}%")
    return 0


if __name__ == "__main__":
    sys.exit(main())
