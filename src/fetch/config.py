"""Configuration models for the HTTP fetch layer."""

from dataclasses import dataclass, field
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.fetch.constants import DEFAULT_MAX_RESPONSE_SIZE_BYTES, DEFAULT_USER_AGENT
from src.fetch.models import RetryPolicy


_CREDENTIAL_HEADERS = frozenset({"authorization", "cookie", "x-api-key"})


class HostProfile(BaseModel):
    """Request settings for one site and all of its subdomains.

    Extraction batches often hit many pages of the same municipal or
    news site at once. A profile can cap how many of those requests are
    in flight together, and adjust headers, timeout and body size limit
    for hosts that need it. Unset values inherit from FetchConfig.

    Attributes:
        host: Registrable host, e.g. ``lehi-ut.gov``. Also matches
            ``www.lehi-ut.gov`` and other subdomains.
        headers: Extra request headers (never credentials).
        timeout_seconds: Per-request timeout override.
        max_response_size_bytes: Body size limit override.
        max_concurrent_requests: Cap on simultaneous requests to the host.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    host: Annotated[str, Field(min_length=1, max_length=253)]
    headers: dict[str, str] = Field(default_factory=dict)
    timeout_seconds: Annotated[float | None, Field(ge=1.0, le=300.0)] = None
    max_response_size_bytes: Annotated[
        int | None, Field(ge=1024, le=100 * 1024 * 1024)
    ] = None
    max_concurrent_requests: Annotated[int | None, Field(ge=1, le=64)] = None

    @field_validator("host")
    @classmethod
    def normalize_host(cls, v: str) -> str:
        """Lower-case the host and reject URLs or paths."""
        host = v.strip().lower().rstrip(".")
        if not host or "/" in host or ":" in host or " " in host:
            msg = f"Expected a bare host name, got '{v}'"
            raise ValueError(msg)
        return host

    @field_validator("headers")
    @classmethod
    def validate_no_auth_headers(cls, v: dict[str, str]) -> dict[str, str]:
        """Ensure no credentials are stored in config."""
        for key in v:
            if key.lower() in _CREDENTIAL_HEADERS:
                msg = f"Header '{key}' must not be stored in fetch config"
                raise ValueError(msg)
        return v

    def applies_to(self, host: str) -> bool:
        """Check whether a request host is this host or a subdomain of it."""
        host = host.lower()
        return host == self.host or host.endswith(f".{self.host}")


@dataclass(frozen=True)
class RequestSettings:
    """Effective settings for requests to one host."""

    headers: dict[str, str] = field(default_factory=dict)
    timeout_seconds: float = 30.0
    max_response_size_bytes: int = DEFAULT_MAX_RESPONSE_SIZE_BYTES
    max_concurrent_requests: int | None = None
    profile_host: str | None = None


class FetchConfig(BaseModel):
    """Configuration for the HTTP fetch layer."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_agent: Annotated[str, Field(min_length=1, max_length=500)] = (
        DEFAULT_USER_AGENT
    )
    default_timeout_seconds: Annotated[float, Field(ge=1.0, le=300.0)] = 30.0
    max_response_size_bytes: Annotated[int, Field(ge=1024, le=100 * 1024 * 1024)] = (
        DEFAULT_MAX_RESPONSE_SIZE_BYTES
    )
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
    host_profiles: list[HostProfile] = Field(default_factory=list)

    def profile_for(self, host: str) -> HostProfile | None:
        """Return the most specific profile covering a host, if any."""
        matches = [profile for profile in self.host_profiles if profile.applies_to(host)]
        if not matches:
            return None
        return max(matches, key=lambda profile: len(profile.host))

    def settings_for(self, host: str) -> RequestSettings:
        """Resolve the effective request settings for a host."""
        profile = self.profile_for(host)
        if profile is None:
            return RequestSettings(
                timeout_seconds=self.default_timeout_seconds,
                max_response_size_bytes=self.max_response_size_bytes,
            )
        return RequestSettings(
            headers=dict(profile.headers),
            timeout_seconds=profile.timeout_seconds or self.default_timeout_seconds,
            max_response_size_bytes=(
                profile.max_response_size_bytes or self.max_response_size_bytes
            ),
            max_concurrent_requests=profile.max_concurrent_requests,
            profile_host=profile.host,
        )
