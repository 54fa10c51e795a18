"""Cross-origin resource sharing policy for proxy responses.

A :class:`CorsPolicy` is static deployment configuration. It computes the
``access-control-*`` headers for a request's ``origin`` and writes them on a
:class:`~lambda_rest.response.Response`. Requests from origins that are not
allowed get no CORS headers at all, which browsers treat as a refusal.
"""

from typing import Dict, List, Literal, Optional, Union
import os

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import (
    HDR_ACCESS_CONTROL_ALLOW_CREDENTIALS,
    HDR_ACCESS_CONTROL_ALLOW_HEADERS,
    HDR_ACCESS_CONTROL_ALLOW_METHODS,
    HDR_ACCESS_CONTROL_ALLOW_ORIGIN,
    HDR_ACCESS_CONTROL_EXPOSE_HEADERS,
    HDR_ACCESS_CONTROL_MAX_AGE,
    HDR_VARY,
)
from .request import Request
from .response import Response

# Either every origin, or an explicit list of them
AccessControlValue = Union[Literal["*"], List[str]]


class CorsPolicy(BaseModel):
    """CORS headers to attach to responses.

    Attributes:
        allow_origins (AccessControlValue): ``"*"`` or the list of allowed origins.
        allow_methods (AccessControlValue): Methods announced on preflight.
        allow_headers (Optional[AccessControlValue]): Request headers announced on preflight.
        expose_headers (Optional[AccessControlValue]): Response headers readable by scripts.
        allow_credentials (bool): Allow cookies and authorization headers.
        max_age (Optional[int]): Seconds a preflight result may be cached.

    Example:
        .. code-block:: python

            cors = CorsPolicy(
                allow_origins=["https://app.example.com"],
                allow_headers=["Authorization", "Content-Type"],
                allow_credentials=True,
                max_age=600,
            )

            cors.apply(request, response, preflight=request.get_method() == "OPTIONS")
    """

    model_config = ConfigDict(frozen=True)

    allow_origins: AccessControlValue = Field(default_factory=list, description="Allowed origins")
    allow_methods: AccessControlValue = Field(
        default_factory=lambda: ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        description="Methods announced on preflight",
    )
    allow_headers: Optional[AccessControlValue] = Field(None, description="Request headers announced on preflight")
    expose_headers: Optional[AccessControlValue] = Field(None, description="Response headers exposed to scripts")
    allow_credentials: bool = Field(False, description="Whether credentials are allowed")
    max_age: Optional[int] = Field(None, description="Preflight cache lifetime in seconds")

    @field_validator("allow_methods", mode="after")
    @classmethod
    def uppercase_methods(cls, value: AccessControlValue) -> AccessControlValue:
        if value == "*":
            return value
        return [m.upper() for m in value]

    @classmethod
    def from_environment(cls) -> "CorsPolicy":
        """Build a policy from ``CORS_ALLOW_ORIGINS``, ``CORS_ALLOW_CREDENTIALS`` and ``CORS_MAX_AGE``."""
        origins = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
        if origins == "*":
            allow_origins: AccessControlValue = "*"
        else:
            allow_origins = [o.strip() for o in origins.split(",") if o.strip()]

        try:
            max_age: Optional[int] = int(os.environ["CORS_MAX_AGE"])
        except (KeyError, ValueError):
            max_age = None

        return cls(
            allow_origins=allow_origins,
            allow_credentials=os.getenv("CORS_ALLOW_CREDENTIALS", "false").lower() in ("true", "1", "yes"),
            max_age=max_age,
        )

    def _allowed_origin(self, origin: str) -> Optional[str]:
        if self.allow_origins == "*":
            # A wildcard cannot be combined with credentials, echo the caller instead
            if self.allow_credentials and origin:
                return origin
            return "*"
        if origin and origin in self.allow_origins:
            return origin
        return None

    @staticmethod
    def _join(value: AccessControlValue) -> str:
        return value if isinstance(value, str) else ", ".join(value)

    def headers_for(self, request: Request) -> Dict[str, str]:
        """Return the CORS headers for a simple (non-preflight) response."""
        origin = request.get_origin()
        allowed = self._allowed_origin(origin)
        if allowed is None:
            return {}

        headers = {HDR_ACCESS_CONTROL_ALLOW_ORIGIN: allowed}
        if allowed != "*":
            headers[HDR_VARY] = "Origin"
        if self.allow_credentials:
            headers[HDR_ACCESS_CONTROL_ALLOW_CREDENTIALS] = "true"
        if self.expose_headers:
            headers[HDR_ACCESS_CONTROL_EXPOSE_HEADERS] = self._join(self.expose_headers)
        return headers

    def preflight_headers_for(self, request: Request) -> Dict[str, str]:
        """Return the CORS headers for a preflight ``OPTIONS`` response."""
        headers = self.headers_for(request)
        if not headers:
            return headers

        headers[HDR_ACCESS_CONTROL_ALLOW_METHODS] = self._join(self.allow_methods)
        if self.allow_headers:
            headers[HDR_ACCESS_CONTROL_ALLOW_HEADERS] = self._join(self.allow_headers)
        if self.max_age is not None:
            headers[HDR_ACCESS_CONTROL_MAX_AGE] = str(self.max_age)
        return headers

    def apply(self, request: Request, response: Response, preflight: bool = False) -> Response:
        """Write the CORS headers for ``request`` on ``response``."""
        headers = self.preflight_headers_for(request) if preflight else self.headers_for(request)
        for name, value in headers.items():
            response.set_header(name, value)
        return response
