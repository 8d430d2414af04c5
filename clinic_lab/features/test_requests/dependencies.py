from clinic_lab.features.test_requests.service import TestRequestWorkflow


def get_workflow() -> TestRequestWorkflow:
    """Workflow engine wired to MongoDB, the directory, notifications and the report store."""
    return TestRequestWorkflow()
