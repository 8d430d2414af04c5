from fastapi import Depends
from clinic_lab.features.billing.service import BillingLedger
from clinic_lab.features.test_requests.dependencies import get_workflow
from clinic_lab.features.test_requests.service import TestRequestWorkflow


def get_billing_ledger(engine: TestRequestWorkflow = Depends(get_workflow)) -> BillingLedger:
    return BillingLedger(engine)
