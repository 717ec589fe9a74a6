from detail_service.app.http.api import create_app

__all__ = ["create_app"]


def __getattr__(name):
    # uvicorn imports "detail_service.app:app"; build it on first access only
    if name == "app":
        app = create_app()
        globals()["app"] = app
        return app
    raise AttributeError(name)
