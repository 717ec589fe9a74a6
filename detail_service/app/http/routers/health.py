from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/healthz")
def healthz():
    return {"ok": True}


@router.get("/readyz")
async def readyz(request: Request):
    """
    Store: can list conversations.
    Chat: at least one provider is configured.
    """
    svc = request.app.state.answer_svc
    try:
        await svc.store.list_conversations()
    except Exception as e:
        return {"ready": False, "store": False, "providers": None, "error": str(e)}

    providers = svc.chat.names()
    return {"ready": bool(providers), "store": True, "providers": providers}
