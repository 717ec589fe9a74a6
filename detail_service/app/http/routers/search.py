from typing import Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from detail_service.core.logging import logger

router = APIRouter(tags=["search"])


@router.get("/search")
async def search(
    request: Request,
    query: Optional[str] = Query(None, description="The search query."),
    api_key: Optional[str] = Query(None, alias="apiKey", description="Optional Tavily key overriding the server key."),
):
    """Proxy a query to the search provider and return its normalized results."""
    if not query or not query.strip():
        return JSONResponse({"error": "Query parameter is required"}, status_code=400)

    svc = request.app.state.answer_svc
    try:
        data = await svc.search(query.strip(), api_key=api_key)
    except Exception as e:
        logger.exception(f"Search API error: {e}")
        return JSONResponse(
            {"error": "Failed to fetch search results", "details": str(e) or type(e).__name__},
            status_code=500,
        )
    return {"results": data.get("results", [])}
