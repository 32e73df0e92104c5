from fastapi import APIRouter
from ...observability.metrics import metrics_endpoint

router = APIRouter(tags=["metrics"])
router.add_api_route("/metrics", metrics_endpoint, methods=["GET"], include_in_schema=False)
