import os
import tempfile

# Keep attempt records out of the checkout while tests run.
os.environ.setdefault(
    "ATTEMPT_LOG_FILE",
    os.path.join(tempfile.gettempdir(), "estimator_attempts_test.log"),
)
