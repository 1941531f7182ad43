from fastapi.middleware.cors import CORSMiddleware

from outreach.apiserver import flags


def setup(app):
    """Registers middleware with the FastAPI app."""
    # Requests authenticate with a bearer token rather than cookies, so browsers never need to send credentials.
    app.add_middleware(
        CORSMiddleware,
        allow_credentials=False,
        allow_headers=["Authorization", "Content-Type"],
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_origins=flags.CORS_ORIGINS,
        max_age=7200,  # https://developer.mozilla.org/en-US/docs/Web/HTTP/Headers/Access-Control-Max-Age
    )
