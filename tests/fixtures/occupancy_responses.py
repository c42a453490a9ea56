"""Canned occupancy endpoint responses.

The remote "pending" endpoint returns a JSON array of in-flight jobs;
an empty array means a free slot.
"""

PENDING_URL = "https://video.example.com/backend-api/v1/video/pending"
SUBMIT_URL = "https://video.example.com/backend-api/v1/video/create"
OTHER_URL = "https://video.example.com/backend-api/v1/user/profile"

PENDING_EMPTY = "[]"
PENDING_ONE = '[{"id": "task_01", "status": "running"}]'
PENDING_THREE = (
    '[{"id": "task_01", "status": "running"},'
    ' {"id": "task_02", "status": "queued"},'
    ' {"id": "task_03", "status": "queued"}]'
)

# Signal noise: must be ignored without emitting a snapshot
NOT_JSON = "<html><body>Service unavailable</body></html>"
JSON_OBJECT = '{"detail": "not an array"}'
JSON_NULL = "null"


def pending_of(size: int) -> str:
    """Build a pending body with ``size`` in-flight jobs."""
    jobs = ", ".join(f'{{"id": "task_{i:02d}"}}' for i in range(size))
    return f"[{jobs}]"
