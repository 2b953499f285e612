"""Unit tests for exceptions and the error handlers."""

import json

import pytest
from starlette.requests import Request

from listening_player.exceptions import (
    AccountError,
    DeviceNotFoundException,
    DeviceUnavailableError,
    ErrorCode,
    ListeningPlayerException,
    PlayerError,
    SdkLoadTimeoutError,
    SpotifyAPIException,
    SpotifyAuthException,
    SpotifyNotAuthenticatedException,
    TokenMissingError,
    TrackOrDeviceNotFoundError,
)
from listening_player.middleware.error_handlers import general_exception_handler, player_exception_handler


def make_request(path="/play_track?code=secret"):
    path, _, query = path.partition("?")
    return Request(
        {
            "type": "http",
            "method": "POST",
            "path": path,
            "query_string": query.encode(),
            "headers": [],
            "scheme": "http",
            "server": ("testserver", 80),
        }
    )


def test_base_exception_defaults():
    exc = ListeningPlayerException("Something broke")

    assert exc.message == "Something broke"
    assert exc.code is ErrorCode.PLAYER_APP_ERROR
    assert exc.status_code == 500
    assert exc.details == {}
    assert str(exc) == "Something broke"


@pytest.mark.parametrize(
    "exc,status,code",
    [
        (SpotifyAuthException(), 401, ErrorCode.SPOTIFY_AUTH_ERROR),
        (SpotifyNotAuthenticatedException(), 401, ErrorCode.SPOTIFY_NOT_AUTHENTICATED),
        (DeviceNotFoundException(), 404, ErrorCode.DEVICE_NOT_FOUND),
        (SpotifyAPIException("upstream", status_code=503), 503, ErrorCode.SPOTIFY_API_ERROR),
    ],
)
def test_spotify_exception_statuses(exc, status, code):
    assert exc.status_code == status
    assert exc.code is code


@pytest.mark.parametrize(
    "exc_class,error_type,status",
    [
        (TokenMissingError, "token_missing", 401),
        (SdkLoadTimeoutError, "sdk_load", 504),
        (AccountError, "account", 403),
        (DeviceUnavailableError, "device", 409),
        (TrackOrDeviceNotFoundError, "not_found", 404),
    ],
)
def test_player_error_types(exc_class, error_type, status):
    exc = exc_class("message")

    assert isinstance(exc, PlayerError)
    assert exc.error_type == error_type
    assert exc.status_code == status


@pytest.mark.asyncio
async def test_player_exception_handler_merges_details():
    exc = DeviceNotFoundException(details={"message": "Pick another", "devices": [{"id": "d1", "name": "Laptop"}]})

    response = await player_exception_handler(make_request(), exc)

    assert response.status_code == 404
    assert json.loads(response.body) == {
        "error": "Device not found",
        "code": "DEVICE_NOT_FOUND",
        "message": "Pick another",
        "devices": [{"id": "d1", "name": "Laptop"}],
    }


@pytest.mark.asyncio
async def test_general_exception_handler_hides_details():
    response = await general_exception_handler(make_request(), RuntimeError("database password is hunter2"))

    assert response.status_code == 500
    assert json.loads(response.body) == {"error": "Internal server error", "code": "INTERNAL_ERROR"}
