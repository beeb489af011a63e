"""HTTP gateway for the remote meal service."""

from dataclasses import dataclass
from enum import StrEnum
from functools import lru_cache
from typing import Any, Protocol, TypeVar
from uuid import UUID

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from frindr_sync.adapters.wire_models import ImageUploadResponse

API_PREFIX = "api/v1"

T = TypeVar("T")


class ApiError(Exception):
    """Base class for classified remote failures."""

    @property
    def is_network_error(self) -> bool:
        return False


class NetworkUnavailable(ApiError):
    """The transport could not complete the request."""

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or "Network unavailable")

    @property
    def is_network_error(self) -> bool:
        return True


class Unauthorized(ApiError):
    """The bearer token was rejected."""

    def __init__(self) -> None:
        super().__init__("Authentication failed")


class NotFound(ApiError):
    """The addressed resource does not exist remotely."""

    def __init__(self) -> None:
        super().__init__("Resource not found")


class ClientError(ApiError):
    """A 4xx response other than 401 and 404."""

    def __init__(self, status_code: int | None, message: str | None = None) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(message or f"Client error ({status_code})")


class InvalidResponse(ClientError):
    """The response body could not be decoded into the expected shape."""

    def __init__(self, message: str | None = None) -> None:
        super().__init__(None, message or "Invalid response from server")


class ServerError(ApiError):
    """A 5xx response."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"Server error ({status_code})")


class UnknownStatus(ApiError):
    """A status outside the handled ranges."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(f"Unknown error ({status_code})")


class HttpMethod(StrEnum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


@dataclass(frozen=True)
class Endpoint:
    """Resource path relative to the API prefix."""

    path: str

    @classmethod
    def meals(cls) -> "Endpoint":
        return cls("meals")

    @classmethod
    def meal(cls, meal_id: UUID) -> "Endpoint":
        return cls(f"meals/{meal_id}")

    @classmethod
    def meal_eaten(cls, meal_id: UUID) -> "Endpoint":
        return cls(f"meals/{meal_id}/eaten")

    @classmethod
    def family_members(cls) -> "Endpoint":
        return cls("family-members")

    @classmethod
    def family_member(cls, member_id: UUID) -> "Endpoint":
        return cls(f"family-members/{member_id}")

    @classmethod
    def favorite(cls, member_id: UUID, meal_id: UUID) -> "Endpoint":
        return cls(f"family-members/{member_id}/favorites/{meal_id}")

    @classmethod
    def image_upload(cls) -> "Endpoint":
        return cls("images/upload")

    @classmethod
    def image(cls, key: str) -> "Endpoint":
        return cls(f"images/{key}")


class ApiClient(Protocol):
    """Interface for the remote REST service."""

    async def request(
        self,
        endpoint: Endpoint,
        method: HttpMethod,
        body: BaseModel | None = None,
        *,
        response_model: Any,
    ) -> Any:
        """Send a request and decode the body into ``response_model``."""

    async def request_no_content(
        self, endpoint: Endpoint, method: HttpMethod, body: BaseModel | None = None
    ) -> None:
        """Send a request whose response body is ignored."""

    async def upload_image(
        self, data: bytes, filename: str = "image.jpg"
    ) -> ImageUploadResponse:
        """Upload image bytes as multipart form data."""

    async def is_reachable(self) -> bool:
        """Return whether the service answers a health probe."""


@dataclass
class HttpxApiClient(ApiClient):
    """HTTPX-backed gateway with bearer authentication."""

    base_url: str
    token: str
    http_client: httpx.AsyncClient
    reachability_timeout: float = 5.0

    @classmethod
    def create(
        cls,
        base_url: str,
        token: str,
        timeout: float = 30.0,
        reachability_timeout: float = 5.0,
    ) -> "HttpxApiClient":
        """Create a gateway with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            token=token,
            http_client=httpx.AsyncClient(timeout=timeout),
            reachability_timeout=reachability_timeout,
        )

    async def request(
        self,
        endpoint: Endpoint,
        method: HttpMethod,
        body: BaseModel | None = None,
        *,
        response_model: type[T] | Any,
    ) -> T:
        """Send a JSON request and decode a successful response."""
        response = await self._send(method, endpoint, json=_encode(body))
        _raise_for_status(response)
        return _decode(response, response_model)

    async def request_no_content(
        self, endpoint: Endpoint, method: HttpMethod, body: BaseModel | None = None
    ) -> None:
        """Send a JSON request and only check its status."""
        response = await self._send(method, endpoint, json=_encode(body))
        _raise_for_status(response)

    async def upload_image(
        self, data: bytes, filename: str = "image.jpg"
    ) -> ImageUploadResponse:
        """Upload an image using the ``file`` multipart field."""
        response = await self._send(
            HttpMethod.POST,
            Endpoint.image_upload(),
            files={"file": (filename, data, "image/jpeg")},
        )
        _raise_for_status(response)
        return _decode(response, ImageUploadResponse)

    async def is_reachable(self) -> bool:
        """Probe ``HEAD /health`` with a short timeout."""
        try:
            response = await self.http_client.head(
                f"{self.base_url}/health",
                headers=self._headers(),
                timeout=self.reachability_timeout,
            )
        except httpx.HTTPError:
            return False
        return response.status_code == httpx.codes.OK

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    def url_for(self, endpoint: Endpoint) -> str:
        return f"{self.base_url}/{API_PREFIX}/{endpoint.path}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/json",
        }

    async def _send(
        self, method: HttpMethod, endpoint: Endpoint, **kwargs: Any
    ) -> httpx.Response:
        try:
            return await self.http_client.request(
                method.value,
                self.url_for(endpoint),
                headers=self._headers(),
                **kwargs,
            )
        except httpx.TransportError as exc:
            raise NetworkUnavailable(str(exc) or None) from exc


def _encode(body: BaseModel | None) -> object | None:
    if body is None:
        return None
    return body.model_dump(mode="json", by_alias=True)


@lru_cache(maxsize=32)
def _adapter(model: Any) -> TypeAdapter[Any]:
    return TypeAdapter(model)


def _decode(response: httpx.Response, model: Any) -> Any:
    try:
        return _adapter(model).validate_json(response.content)
    except ValidationError as exc:
        raise InvalidResponse(str(exc)) from exc


def _raise_for_status(response: httpx.Response) -> None:
    """Classify a response status into the error taxonomy."""
    status_code = response.status_code
    if 200 <= status_code < 300:  # noqa: PLR2004
        return
    if status_code == httpx.codes.UNAUTHORIZED:
        raise Unauthorized
    if status_code == httpx.codes.NOT_FOUND:
        raise NotFound
    if 400 <= status_code < 500:  # noqa: PLR2004
        raise ClientError(status_code, response.text or None)
    if 500 <= status_code < 600:  # noqa: PLR2004
        raise ServerError(status_code)
    raise UnknownStatus(status_code)
