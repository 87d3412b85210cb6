"""Error taxonomy for the provider REST API."""

from sacloudenv.errors import SacloudEnvError


class ApiError(SacloudEnvError):
    """Base class for everything raised by the resource client."""


# ── Transport / protocol ──────────────────────────────────────────


class RequestFailed(ApiError):
    """The HTTP request did not produce a response (DNS, TLS, connection)."""


class InvalidResponseJson(ApiError):
    """A 2xx response whose body is not JSON."""


class InvalidResourceObject(ApiError):
    """The response envelope has no object under the expected resource key."""


class InvalidStatus(ApiError):
    """The response envelope reports failure via ``is_ok`` or ``Success``."""


class InvalidStatusDataType(ApiError):
    """``is_ok`` / ``Success`` is present but has an unexpected type."""


class InvalidSearchResponse(ApiError):
    """A search page is missing ``Total``/``From``/``Count`` or the resource array."""


class SearchIndexMismatch(InvalidSearchResponse):
    """The provider echoed a ``From`` different from the requested one."""


class ResourceDeserializationFailed(ApiError):
    """A resource object lacks the fields needed to build an entity."""


class RequiredFieldMissing(ApiError):
    """A request body was built without one of its required fields."""


# ── Resolution ────────────────────────────────────────────────────


class ResourceNotFound(ApiError):
    """A resource that must exist could not be found."""


class TooManyResources(ApiError):
    """A lookup expected at most one resource but found several."""


# ── Status waits ──────────────────────────────────────────────────


class WaitStatusNotFound(ApiError):
    """The polled resource has no status field."""


class WaitStatusFailed(ApiError):
    """The polled resource reached a failure status."""


class WaitStatusUnknown(ApiError):
    """The polled resource reported a status outside every known set."""


class WaitStatusTimeout(ApiError):
    """The polled resource did not reach a terminal status in time."""


# ── HTTP status codes ─────────────────────────────────────────────


class ApiStatusError(ApiError):
    """Non-2xx HTTP response."""

    status_code: int | None = None

    def __init__(self, path: str, body=None, status_code: int | None = None, response=None) -> None:
        status_code = status_code if status_code is not None else self.status_code
        super().__init__(
            f"{type(self).__name__}: HTTP {status_code} on {path}",
            path=path,
            body=body,
            status_code=status_code,
            response=response,
        )
        self.path = path
        self.body = body
        self.status_code = status_code


class ApiBadRequest(ApiStatusError):
    status_code = 400


class ApiUnauthorized(ApiStatusError):
    status_code = 401


class ApiForbidden(ApiStatusError):
    status_code = 403


class ApiNotFound(ApiStatusError):
    status_code = 404


class ApiMethodNotAllowed(ApiStatusError):
    status_code = 405


class ApiNotAcceptable(ApiStatusError):
    status_code = 406


class ApiRequestTimeout(ApiStatusError):
    status_code = 408


class ApiConflict(ApiStatusError):
    status_code = 409


class ApiLengthRequired(ApiStatusError):
    status_code = 411


class ApiPayloadTooLarge(ApiStatusError):
    status_code = 413


class ApiUnsupportedMediaType(ApiStatusError):
    status_code = 415


class ApiInternalServerError(ApiStatusError):
    status_code = 500


class ApiServiceUnavailable(ApiStatusError):
    status_code = 503


class ApiUnknownStatusCode(ApiStatusError):
    """Any status code that is neither accepted nor explicitly mapped."""


SUCCESS_STATUS_CODES = frozenset({200, 201, 202, 204})

STATUS_CODE_ERRORS = {
    cls.status_code: cls
    for cls in (
        ApiBadRequest,
        ApiUnauthorized,
        ApiForbidden,
        ApiNotFound,
        ApiMethodNotAllowed,
        ApiNotAcceptable,
        ApiRequestTimeout,
        ApiConflict,
        ApiLengthRequired,
        ApiPayloadTooLarge,
        ApiUnsupportedMediaType,
        ApiInternalServerError,
        ApiServiceUnavailable,
    )
}


def error_for_status(status_code: int, path: str, body=None, response=None) -> ApiStatusError:
    """Map an HTTP status code to its error instance."""
    cls = STATUS_CODE_ERRORS.get(status_code, ApiUnknownStatusCode)
    return cls(path, body, status_code=status_code, response=response)
