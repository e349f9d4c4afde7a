from prometheus_client import Counter

REQUEST_COUNTER = Counter("examhub_api_requests_total", "Total API requests", ["path"])
ATTEMPTS_STARTED = Counter("examhub_attempts_started_total", "Exam attempts created")
ATTEMPTS_SUBMITTED = Counter(
    "examhub_attempts_submitted_total", "Exam attempts graded and completed", ["forced"]
)
ACCESS_CODE_COLLISIONS = Counter(
    "examhub_access_code_collisions_total", "Generated access codes that were already taken"
)
