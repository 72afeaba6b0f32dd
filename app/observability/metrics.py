"""
Prometheus metrics for the claim intake service.
"""

from prometheus_client import Counter, Histogram


# ── Claims ───────────────────────────────────────────────────
claims_created_total = Counter(
    "claims_created_total",
    "Total bare claims created without an accident detail",
)

claims_submitted_total = Counter(
    "claims_submitted_total",
    "Total claims submitted with accident detail and photos",
)

claims_resubmitted_total = Counter(
    "claims_resubmitted_total",
    "Total claim resubmissions after a correction request",
)

claim_transitions_total = Counter(
    "claim_transitions_total",
    "Claim status changes",
    ["from_status", "to_status"],
)

damage_images_stored_total = Counter(
    "damage_images_stored_total",
    "Evaluation images inserted by submission or resubmission",
)

# ── Annotations ──────────────────────────────────────────────
annotation_sets_saved_total = Counter(
    "annotation_sets_saved_total",
    "Annotation replace-set saves",
    ["is_annotated"],
)

annotation_boxes_saved_total = Counter(
    "annotation_boxes_saved_total",
    "Annotation boxes written by replace-set saves",
)

# ── Transactions ─────────────────────────────────────────────
transaction_failures_total = Counter(
    "transaction_failures_total",
    "Transactions rolled back because of a database error",
    ["operation"],
)

operation_duration_seconds = Histogram(
    "operation_duration_seconds",
    "Time spent inside a transactional operation",
    ["operation"],
    buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5],
)
