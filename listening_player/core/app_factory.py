"""Application factory for creating and configuring the FastAPI app."""

from fastapi import FastAPI

from listening_player import __version__
from listening_player.config import get_settings
from listening_player.core.lifespan import lifespan
from listening_player.core.middleware import setup_middleware
from listening_player.middleware.error_handlers import register_error_handlers
from listening_player.routers import auth_router, health_router, player_router


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    settings = get_settings()

    app = FastAPI(
        title="Listening Player",
        description="""
        Browse and control Spotify playback from the browser.

        ## Login
        Visit `/login` to sign in with Spotify. The session cookie set by
        `/auth/spotify/callback` authenticates every other endpoint.

        ## Playback
        - `POST /play_track` and `POST /play_playlist` take `{uri, device_id}`
        - The device must be one of your available Spotify devices

        ## Rate Limits
        - Most endpoints: 60 requests/minute per IP
        - Play commands: 30 requests/minute per IP
        """,
        version=__version__,
        lifespan=lifespan,
        license_info={"name": "MIT"},
    )

    setup_middleware(app, settings)
    register_error_handlers(app)

    # Pages and play commands - no prefix, the browser code uses these paths
    app.include_router(player_router.router, tags=["player"])
    app.include_router(auth_router.router, tags=["auth"])
    app.include_router(health_router.router, tags=["health"])

    return app
