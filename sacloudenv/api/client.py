"""Async client for the Sakura Cloud REST API.

All calls go through :meth:`ApiClient.request`, which maps HTTP status codes
to :mod:`sacloudenv.api.errors`. Searches are paginated with ``From``/``Count``
and status waits poll a resource until it reaches a terminal value.
"""

import asyncio
import json
import logging
import time
from urllib.parse import quote

import httpx

from sacloudenv.api.errors import (
    ApiNotFound,
    InvalidResourceObject,
    InvalidResponseJson,
    InvalidSearchResponse,
    InvalidStatus,
    InvalidStatusDataType,
    RequestFailed,
    SearchIndexMismatch,
    SUCCESS_STATUS_CODES,
    TooManyResources,
    WaitStatusFailed,
    WaitStatusNotFound,
    WaitStatusTimeout,
    WaitStatusUnknown,
    error_for_status,
)
from sacloudenv.api.types import AVAILABILITY_WORKING, AVAILABLE, FAILED

logger = logging.getLogger(__name__)

API_BASE_URL_TEMPLATE = "https://secure.sakura.ad.jp/cloud/zone/{zone}/api/cloud/1.1/"
DEFAULT_PAGE_COUNT = 50
DEFAULT_POLL_INTERVAL = 2
AVAILABILITY_TIMEOUT = 30 * 60
POWER_TIMEOUT = 10 * 60
DELETE_TIMEOUT = 30 * 60


def _is_uint(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def availability_of(resource: dict):
    return resource.get("Availability")


def instance_status_of(resource: dict):
    instance = resource.get("Instance")
    if not isinstance(instance, dict):
        return None
    return instance.get("Status")


class ApiClient:
    """Thin async wrapper over ``httpx.AsyncClient`` with provider conventions.

    Args:
        zone: zone identifier substituted into the base URL (e.g. ``is1a``).
        access_token / secret_token: HTTP Basic credentials.
        base_url: overrides the zone-derived URL (tests).
        transport: optional ``httpx`` transport (tests use ``MockTransport``).
        poll_interval: seconds between status polls.
    """

    def __init__(
        self,
        zone,
        access_token,
        secret_token,
        base_url=None,
        transport=None,
        poll_interval=DEFAULT_POLL_INTERVAL,
        timeout=60,
    ):
        self.base_url = base_url or API_BASE_URL_TEMPLATE.format(zone=zone)
        self.poll_interval = poll_interval
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            auth=(access_token, secret_token),
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @classmethod
    def from_config(cls, config, **kwargs):
        return cls(config.zone, config.access_token, config.secret_token, **kwargs)

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    # ── Raw requests ──────────────────────────────────────────────

    async def request(self, method, path, query=None, body=None) -> dict:
        """Issue one API call and return the decoded JSON document.

        *query* is serialized as JSON and sent as the raw query string, which is
        how the provider expects search parameters.
        """
        url = path
        if query is not None:
            url = f"{path}?{quote(json.dumps(query, separators=(',', ':')), safe='')}"
        logger.debug(f"API request: method={method} path={path} query={query} body={body}")

        try:
            response = await self._client.request(method, url, json=body)
        except httpx.HTTPError as e:
            logger.debug(f"API request failed: {e!r}")
            raise RequestFailed(f"{method} {path} failed: {e}", path=path, body=body) from e

        if response.status_code not in SUCCESS_STATUS_CODES:
            logger.debug(f"API error response: status={response.status_code} text={response.text}")
            raise error_for_status(response.status_code, path, body, response=response.text)

        if not response.content:
            return {}
        try:
            value = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidResponseJson(
                f"{method} {path} returned a non-JSON body", path=path, body=body, response=response.text
            ) from e
        logger.debug(f"API response: {value}")
        return value

    async def request_resource(self, method, path, resource_name=None, body=None):
        """Call the API and validate the response envelope.

        Both ``is_ok`` (bool) and ``Success`` (bool or ``"Accepted"``) are
        checked when present. With *resource_name*, the object under that key
        is returned; otherwise the whole envelope.
        """
        value = await self.request(method, path, body=body)

        if "is_ok" in value:
            is_ok = value["is_ok"]
            if not isinstance(is_ok, bool):
                raise InvalidStatusDataType(
                    f"'is_ok' is not a boolean on {path}", field="is_ok", value=value, path=path, body=body
                )
            if not is_ok:
                raise InvalidStatus(f"'is_ok' is false on {path}", value=value, path=path, body=body)

        if "Success" in value:
            success = value["Success"]
            if isinstance(success, bool):
                if not success:
                    raise InvalidStatus(f"'Success' is false on {path}", value=value, path=path, body=body)
            elif isinstance(success, str):
                if success != "Accepted":
                    raise InvalidStatus(
                        f"'Success' is '{success}' on {path}", value=value, path=path, body=body
                    )
            else:
                raise InvalidStatusDataType(
                    f"'Success' has unexpected type on {path}", field="Success", value=value, path=path, body=body
                )

        if resource_name is None:
            return value
        resource = value.get(resource_name)
        if not isinstance(resource, dict):
            raise InvalidResourceObject(
                f"no '{resource_name}' object in response from {path}", path=path, body=body, value=value
            )
        return resource

    async def create(self, path, resource_name, body):
        return await self.request_resource("POST", path, resource_name, body)

    async def fetch(self, path, resource_name):
        return await self.request_resource("GET", path, resource_name)

    async def update(self, path, body=None):
        return await self.request_resource("PUT", path, None, body)

    async def delete(self, path, body=None):
        return await self.request_resource("DELETE", path, None, body)

    # ── Search ────────────────────────────────────────────────────

    async def search(self, path, resource_name, filter=None, sort=None, other=None, page_count=DEFAULT_PAGE_COUNT):
        """Fetch every page of a search and return the concatenated resources.

        Pages are requested with increasing ``From`` until
        ``From + Count >= Total``. Malformed pages are fatal.
        """
        resources = []
        index_from = 0
        while True:
            query = dict(other or {})
            query["From"] = index_from
            query["Count"] = page_count
            if filter is not None:
                query["Filter"] = filter
            if sort is not None:
                query["Sort"] = sort

            value = await self.request("GET", path, query=query)

            total = value.get("Total")
            if not _is_uint(total):
                raise InvalidSearchResponse(
                    f"invalid 'Total' in search response from {path}", field="Total", path=path, query=query, value=value
                )
            response_from = value.get("From")
            if not _is_uint(response_from):
                raise InvalidSearchResponse(
                    f"invalid 'From' in search response from {path}", field="From", path=path, query=query, value=value
                )
            if response_from != index_from:
                raise SearchIndexMismatch(
                    f"search response from {path} starts at {response_from}, requested {index_from}",
                    field="From",
                    requested=index_from,
                    received=response_from,
                    path=path,
                    query=query,
                    value=value,
                )
            count = value.get("Count")
            if not _is_uint(count):
                raise InvalidSearchResponse(
                    f"invalid 'Count' in search response from {path}", field="Count", path=path, query=query, value=value
                )
            page = value.get(resource_name)
            if not isinstance(page, list):
                raise InvalidSearchResponse(
                    f"invalid '{resource_name}' array in search response from {path}",
                    field=resource_name,
                    path=path,
                    query=query,
                    value=value,
                )
            resources.extend(page)

            if index_from + count >= total:
                break
            if count == 0:
                raise InvalidSearchResponse(
                    f"empty page before reaching 'Total' in search response from {path}",
                    field="Count",
                    path=path,
                    query=query,
                    value=value,
                )
            index_from += count
        return resources

    async def search_single(self, path, resource_name, filter, match=None):
        """Search expecting at most one match; more than one is an error.

        *match* narrows the provider's results before counting; the
        provider's ``Name`` filter is a partial match.
        """
        resources = await self.search(path, resource_name, filter=filter)
        if match is not None:
            resources = [r for r in resources if match(r)]
        if len(resources) > 1:
            raise TooManyResources(
                f"{len(resources)} {resource_name} match {filter}",
                resource=resource_name,
                count=len(resources),
                filter=filter,
            )
        if not resources:
            return None
        return resources[0]

    # ── Status waits ──────────────────────────────────────────────

    async def wait_status(self, path, resource_name, accessor, working, success, failed, timeout=None):
        """Poll *path* until *accessor* yields a value in *success*.

        Values in *failed* raise ``WaitStatusFailed``; values in none of the
        three sets raise ``WaitStatusUnknown`` without polling again.
        """
        started = time.monotonic()
        while True:
            resource = await self.fetch(path, resource_name)
            status = accessor(resource)
            if status is None:
                raise WaitStatusNotFound(f"no status on {path}", path=path, value=resource)
            if status in failed:
                raise WaitStatusFailed(f"{path} reached status '{status}'", path=path, status=status, value=resource)
            if status in success:
                return resource
            if status not in working:
                raise WaitStatusUnknown(
                    f"{path} reported unknown status '{status}'", path=path, status=status, value=resource
                )
            if timeout is not None and time.monotonic() - started > timeout:
                raise WaitStatusTimeout(
                    f"{path} still '{status}' after {timeout}s", path=path, status=status, timeout=timeout
                )
            await asyncio.sleep(self.poll_interval)

    async def wait_available(self, path, resource_name, timeout=AVAILABILITY_TIMEOUT):
        return await self.wait_status(
            path, resource_name, availability_of, AVAILABILITY_WORKING, {AVAILABLE}, {FAILED}, timeout
        )

    async def wait_up(self, path, resource_name, timeout=POWER_TIMEOUT):
        return await self.wait_status(path, resource_name, instance_status_of, {"cleaning"}, {"up"}, {"down"}, timeout)

    async def wait_down(self, path, resource_name, timeout=POWER_TIMEOUT):
        return await self.wait_status(path, resource_name, instance_status_of, {"up", "cleaning"}, {"down"}, set(), timeout)

    async def wait_deleted(self, path, resource_name, timeout=DELETE_TIMEOUT):
        """Poll until GET on *path* answers 404; other errors propagate."""
        started = time.monotonic()
        while True:
            try:
                await self.request("GET", path)
            except ApiNotFound:
                return
            if time.monotonic() - started > timeout:
                raise WaitStatusTimeout(f"{path} still exists after {timeout}s", path=path, timeout=timeout)
            await asyncio.sleep(self.poll_interval)
