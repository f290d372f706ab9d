from prometheus_client import Counter, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response

router = APIRouter()

# Metrics Definitions
JOBS_CREATED = Counter('washq_jobs_created_total', 'Jobs admitted and created', ['business_id'])
ADMISSION_REJECTED = Counter(
    'washq_admission_rejected_total',
    'Job creation requests refused by the capacity policy',
    ['business_id', 'capacity'] # capacity=SINGLE|MULTIPLE
)

STATUS_TRANSITIONS = Counter(
    'washq_status_transitions_total',
    'Accepted job status changes',
    ['business_id', 'to_status']
)

INVALID_TRANSITIONS = Counter(
    'washq_invalid_transitions_total',
    'Rejected job status change requests',
    ['business_id']
)

ACTIVE_JOBS = Gauge(
    "washq_active_jobs",
    "Jobs currently occupying a bay (last observed at admission time)",
    ["business_id"]
)

@router.get("/metrics")
async def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
