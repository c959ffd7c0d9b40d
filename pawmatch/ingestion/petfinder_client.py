"""
Petfinder API client for the breed/type/color vocabularies used by the
preference quiz and the listing form.

API:   https://api.petfinder.com/v2
Docs:  https://www.petfinder.com/developers/v2/docs/

Credential setup (.env, gitignored):
  PAWMATCH_PETFINDER_CLIENT_ID=your_client_id
  PAWMATCH_PETFINDER_CLIENT_SECRET=your_client_secret

OAuth2 flow:
  Client credentials grant, no user interaction.
  POST {base}/oauth2/token
    → Form body: grant_type=client_credentials, client_id, client_secret
    → Returns: {"access_token": "...", "expires_in": 3600}
  The token is reused until 60 seconds before it expires.

Endpoints:
  GET /types                    → {"types": [{"name": "Dog"}, ...]}
  GET /types/{type}/breeds      → {"breeds": [{"name": "Beagle"}, ...]}

Lookups go through a ``CacheStore`` (keys ``types``, ``breeds-{type}``,
``colors``). Any failure (HTTP error, missing credentials, malformed body,
unwritable cache) is logged and answered from the static vocabularies
below, so callers always get a usable list.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, ClassVar, Optional
from urllib.parse import quote

import httpx

from pawmatch.config import MetadataConfig
from pawmatch.exceptions import MetadataError
from pawmatch.ingestion.cache import CacheStore, JsonFileCacheStore
from pawmatch.taxonomy.pet_taxonomy import AGES, ATTRIBUTES, ENVIRONMENTS, GENDERS, SIZES
from pawmatch.utils.time_utils import utc_epoch_seconds

logger = logging.getLogger(__name__)

# ── Static vocabularies ────────────────────────────────────────────────────────

FALLBACK_TYPES: list[str] = [
    "Dog",
    "Cat",
    "Rabbit",
    "Small & Furry",
    "Horse",
    "Bird",
    "Scales, Fins & Other",
    "Barnyard",
]

FALLBACK_BREEDS: dict[str, list[str]] = {
    "Dog": [
        "Siberian Husky",
        "Labrador Retriever",
        "German Shepherd",
        "Golden Retriever",
        "Beagle",
        "Mixed Breed",
    ],
    "Cat": [
        "Siamese",
        "Persian",
        "Maine Coon",
        "Ragdoll",
        "Sphynx",
        "Domestic Short Hair",
        "Domestic Long Hair",
    ],
    "Rabbit": ["Holland Lop", "Netherland Dwarf", "Lionhead", "Mini Rex", "Mixed Breed"],
    "Small & Furry": ["Hamster", "Guinea Pig", "Ferret", "Chinchilla", "Gerbil", "Rat", "Mouse"],
    "Horse": ["Quarter Horse", "Thoroughbred", "Arabian", "Paint", "Appaloosa", "Mixed Breed"],
    "Bird": ["Parakeet", "Cockatiel", "Canary", "Finch", "Parrot", "Mixed Breed"],
    "Scales, Fins & Other": ["Goldfish", "Turtle", "Snake", "Lizard", "Mixed Breed"],
    "Barnyard": ["Chicken", "Goat", "Pig", "Sheep", "Duck", "Mixed Breed"],
}

DEFAULT_BREEDS: list[str] = ["Mixed Breed"]

# Petfinder has no colors endpoint; this list is served (and cached) instead.
COMMON_COLORS: list[str] = [
    "Black", "White", "Brown", "Gray", "Golden",
    "Cream", "Red", "Blue", "Chocolate", "Silver",
    "Tan", "Brindle", "Merle", "Tricolor", "Bicolor",
    "Orange", "Yellow", "Sable", "Fawn", "Buff",
]

FALLBACK_COLORS: list[str] = ["Black", "White", "Brown", "Gray", "Golden", "Mixed"]

TOKEN_SAFETY_MARGIN_SECONDS = 60

_RECOVERABLE = (httpx.HTTPError, MetadataError, OSError, ValueError)


# ── Client ─────────────────────────────────────────────────────────────────────

class PetfinderClient:
    """Cached Petfinder metadata lookups with static fallbacks.

    Usage::

        cache = MemoryCacheStore()
        with PetfinderClient(client_id, client_secret, cache) as client:
            client.get_types()           # ["Dog", "Cat", ...]
            client.get_breeds("Dog")     # ["Affenpinscher", ...]

    Args:
        client_id:     OAuth2 client id; ``None`` means every remote lookup
                       falls back.
        client_secret: OAuth2 client secret.
        cache:         Where lookups are cached.
        http_client:   Optional ``httpx.Client`` (tests pass one built on
                       ``httpx.MockTransport``). Owned and closed by this
                       client only when created here.
        base_url:      API root.
        timeout:       Request timeout in seconds for the default client.
        clock:         Epoch-seconds source for token expiry.
    """

    DEFAULT_BASE_URL: ClassVar[str] = "https://api.petfinder.com/v2"

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        cache: CacheStore,
        http_client: Optional[httpx.Client] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 15.0,
        clock: Callable[[], float] = utc_epoch_seconds,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.cache = cache
        self.base_url = base_url.rstrip("/")
        self.clock = clock
        self._owns_http = http_client is None
        self._http = http_client if http_client is not None else httpx.Client(timeout=timeout)
        self._access_token: Optional[str] = None
        self._token_expiry: float = 0.0

    @classmethod
    def from_config(
        cls,
        config: MetadataConfig,
        cache: Optional[CacheStore] = None,
    ) -> "PetfinderClient":
        """Build a client from ``[metadata]`` with a file cache by default."""
        if cache is None:
            cache = JsonFileCacheStore(
                config.cache_file,
                ttl_seconds=config.cache_ttl_days * 24 * 60 * 60,
            )
        return cls(
            config.client_id,
            config.client_secret,
            cache,
            base_url=config.base_url,
            timeout=config.timeout_seconds,
        )

    # ── Remote vocabularies ────────────────────────────────────────────────────

    def get_types(self) -> list[str]:
        try:
            return self._cached_or_fetch("types", self._fetch_types)
        except _RECOVERABLE as exc:
            logger.error("Failed to fetch animal types from Petfinder: %s", exc)
            return list(FALLBACK_TYPES)

    def get_breeds(self, animal_type: Optional[str]) -> list[str]:
        """Breed names for ``animal_type``; ``[]`` when no type is given."""
        if not animal_type:
            return []
        try:
            return self._cached_or_fetch(
                f"breeds-{animal_type}",
                lambda: self._fetch_breeds(animal_type),
            )
        except _RECOVERABLE as exc:
            logger.error("Failed to fetch breeds for %s: %s", animal_type, exc)
            return list(FALLBACK_BREEDS.get(animal_type, DEFAULT_BREEDS))

    def get_colors(self) -> list[str]:
        try:
            return self._cached_or_fetch("colors", lambda: list(COMMON_COLORS))
        except _RECOVERABLE as exc:
            logger.error("Failed to load colors: %s", exc)
            return list(FALLBACK_COLORS)

    # ── Static vocabularies ────────────────────────────────────────────────────

    def get_ages(self) -> list[str]:
        return list(AGES)

    def get_genders(self) -> list[str]:
        return list(GENDERS)

    def get_sizes(self) -> list[str]:
        return list(SIZES)

    def get_environments(self) -> list[str]:
        return list(ENVIRONMENTS)

    def get_attributes(self) -> list[str]:
        return list(ATTRIBUTES)

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Petfinder cache cleared")

    # ── Lifecycle ──────────────────────────────────────────────────────────────

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "PetfinderClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ── Internals ──────────────────────────────────────────────────────────────

    def _cached_or_fetch(self, key: str, fetch: Callable[[], list[str]]) -> list[str]:
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)
        value = fetch()
        self.cache.set(key, value)
        return list(value)

    def _fetch_types(self) -> list[str]:
        data = self._request("/types")
        types = data.get("types")
        if not isinstance(types, list):
            raise MetadataError("Petfinder /types response has no 'types' list")
        return [t["name"] for t in types if isinstance(t, dict) and t.get("name")]

    def _fetch_breeds(self, animal_type: str) -> list[str]:
        data = self._request(f"/types/{quote(animal_type.lower(), safe='')}/breeds")
        breeds = data.get("breeds")
        if not isinstance(breeds, list):
            return []
        return [b["name"] for b in breeds if isinstance(b, dict) and b.get("name")]

    def _request(self, endpoint: str) -> dict[str, Any]:
        """Authenticated GET returning the decoded JSON body.

        Raises:
            httpx.HTTPStatusError: On non-2xx response.
            MetadataError: If the body is not a JSON object.
        """
        token = self._ensure_token()
        resp = self._http.get(
            f"{self.base_url}{endpoint}",
            headers={"Authorization": f"Bearer {token}"},
        )
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise MetadataError(f"Unexpected response body from {endpoint}")
        return data

    def _ensure_token(self) -> str:
        """Return a valid access token, requesting a new one when expired.

        Raises:
            MetadataError: If credentials are missing or no token is returned.
            httpx.HTTPStatusError: If the token endpoint returns non-2xx.
        """
        if self._access_token is not None and self.clock() < self._token_expiry:
            return self._access_token

        if not self.client_id or not self.client_secret:
            raise MetadataError(
                "PAWMATCH_PETFINDER_CLIENT_ID and PAWMATCH_PETFINDER_CLIENT_SECRET must be set."
            )

        resp = self._http.post(
            f"{self.base_url}/oauth2/token",
            data={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
        )
        resp.raise_for_status()
        body = resp.json()
        token = body.get("access_token") if isinstance(body, dict) else None
        if not token:
            raise MetadataError("Petfinder token response has no access_token")

        self._access_token = token
        self._token_expiry = self.clock() + float(body.get("expires_in", 0)) - TOKEN_SAFETY_MARGIN_SECONDS
        logger.info("Petfinder OAuth2 token obtained")
        return token
