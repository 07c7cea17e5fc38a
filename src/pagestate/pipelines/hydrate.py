"""
State assembler: from a page URL to a normalized state snapshot.

This module orchestrates one hydration per call. Steps run in a fixed order
and each declares its failure policy through :func:`run_step`:

1. **Classify** the URL into a :data:`PageIntent`.
2. **Content** (required): posts/account listings or a thread, via the
   :class:`ContentAggregator`; nothing for unrecognized pages.
3. **Community** (best effort): metadata when the tag names a community
   (``hive-<digits>``). Community data is decorative.
4. **Profile** (best effort, full render only): the acting account's
   profile, kept only when it carries a ``name``.
5. **Topics** (required, full render only): the trending topics list.
6. **Normalize** (required): the injected state cleaner.

Every step is timed through the shared :class:`TimingRegistry`, scoped by the
caller's request id, so concurrent hydrations never touch each other's spans.
Any failure of a required step is logged with the URL and request id and
re-raised as :class:`HydrationError`.
"""

from __future__ import annotations

import json
import re
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar

from pagestate.backend.client import BackendClient
from pagestate.core.contracts.intent import NoIntent, PageIntent, ThreadIntent
from pagestate.core.contracts.state import StateSnapshot
from pagestate.core.result import Result
from pagestate.core.settings import Settings, get_logger
from pagestate.core.timing.registry import RequestTimer, TimingRegistry, TimingSink
from pagestate.routing.classifier import classify

from .aggregator import AggregateResult, BridgeCaller, ContentAggregator, empty_result
from .cleaner import StateCleaner, clean_state
from .steps import StepPolicy, run_step

#: Tags in the alternate community namespace, e.g. ``hive-123456``.
COMMUNITY_TAG = re.compile(r"^hive-\d+")

#: Number of trending topics attached in full render mode.
TRENDING_TOPICS_LIMIT = 12

_HYDRATE_PHASE = "hydrate_ms"

T = TypeVar("T")

logger = get_logger(__name__)


def is_community(tag: str | None) -> bool:
    """Return True if ``tag`` names a community rather than a plain tag."""
    return tag is not None and COMMUNITY_TAG.match(tag) is not None


class HydrationError(RuntimeError):
    """A required hydration step failed.

    Attributes
    ----------
    url:
        The URL being hydrated.
    request_id:
        The caller's request identifier, if any.
    cause:
        The original exception (also chained as ``__cause__``).
    """

    def __init__(self, url: str, request_id: str | None, cause: BaseException) -> None:
        super().__init__(f"Failed to hydrate {url!r} (request_id={request_id}): {cause!r}")
        self.url = url
        self.request_id = request_id
        self.cause = cause


class StateAssembler:
    """Build a :class:`StateSnapshot` for a URL.

    Parameters
    ----------
    client:
        Backend RPC surface (see :class:`BridgeCaller`).
    timing:
        Instrumentation service shared by every request of the process.
    cleaner:
        Normalization pass applied last; defaults to :func:`clean_state`.
    on_network_error:
        Endpoint-reset hook, called once per :class:`NetworkError`.
    """

    def __init__(
        self,
        client: BridgeCaller,
        timing: TimingRegistry,
        *,
        cleaner: StateCleaner = clean_state,
        on_network_error: Callable[[], None] | None = None,
    ) -> None:
        self._client = client
        self._timing = timing
        self._cleaner = cleaner
        self._on_network_error = on_network_error
        self._aggregator = ContentAggregator(client, timing)

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        sink: TimingSink | None = None,
        cleaner: StateCleaner = clean_state,
    ) -> StateAssembler:
        """Wire a backend client and timing registry from configuration.

        The client's :meth:`~BackendClient.reset_endpoint` becomes the
        endpoint-reset hook.
        """
        client = BackendClient.from_settings(settings)
        timing = TimingRegistry.from_settings(settings, sink=sink)
        return cls(client, timing, cleaner=cleaner, on_network_error=client.reset_endpoint)

    @property
    def timing(self) -> TimingRegistry:
        return self._timing

    # --------------------------------------------------------------------- #
    # Public API
    # --------------------------------------------------------------------- #
    async def hydrate(
        self,
        url: str,
        observer: str | None = None,
        full_render: bool = False,
        request_id: str | None = None,
        request_timer: RequestTimer | None = None,
    ) -> StateSnapshot:
        """Return the normalized state snapshot for ``url``.

        Parameters
        ----------
        url:
            Page path, optionally with a query string.
        observer:
            Viewing account passed to backend calls; empty means anonymous.
        full_render:
            Also fetch the profile and trending topics (server render).
        request_id:
            Scopes timer labels to this request.
        request_timer:
            Receives the ``hydrate_ms`` phase when timing is enabled.

        Raises
        ------
        HydrationError
            If classification, content, topics or normalization fails.
        """
        self._timing.start_phase(request_timer, _HYDRATE_PHASE)
        try:
            return await self._hydrate(url, observer or None, full_render, request_id)
        except Exception as exc:
            logger.error(
                "hydrate failed: %s",
                json.dumps({"url": url, "request_id": request_id, "error": repr(exc)}),
            )
            raise HydrationError(url, request_id, exc) from exc
        finally:
            self._timing.stop_phase(request_timer, _HYDRATE_PHASE)

    # --------------------------------------------------------------------- #
    # Steps
    # --------------------------------------------------------------------- #
    async def _hydrate(
        self,
        url: str,
        observer: str | None,
        full_render: bool,
        request_id: str | None,
    ) -> StateSnapshot:
        intent = classify(url)
        logger.debug(
            "hydrate url=%s page=%s observer=%s full_render=%s request_id=%s",
            url,
            intent.page,
            observer,
            full_render,
            request_id,
        )

        loaded = await self._load_content(intent, observer, request_id)

        community: dict[str, Any] = {}
        tag = intent.tag
        if tag and is_community(tag):
            info = await self._run(
                "community",
                f"get_community_{tag}",
                lambda: self._client.call_bridge(
                    "get_community", {"name": tag, "observer": observer}
                ),
                StepPolicy.BEST_EFFORT,
                request_id,
            )
            if info.is_ok():
                community[tag] = info.unwrap()

        profiles: dict[str, Any] = {}
        account = intent.acting_account
        if full_render and account:
            profile = await self._load_profile(account, request_id)
            if profile is not None:
                profiles[account] = profile

        topics: list[Any] | None = None
        if full_render:
            fetched = await self._run(
                "topics",
                "get_trending_topics",
                lambda: self._client.call_bridge(
                    "get_trending_topics", {"limit": TRENDING_TOPICS_LIMIT}
                ),
                StepPolicy.REQUIRED,
                request_id,
            )
            topics = list(fetched.unwrap() or [])

        snapshot = StateSnapshot(
            content=loaded["content"],
            discussion_idx=loaded["discussion_idx"],
            community=community,
            profiles=profiles,
            topics=topics,
        )

        async def _normalize() -> StateSnapshot:
            return self._cleaner(snapshot)

        cleaned = await self._run(
            "normalize", "state_cleaner", _normalize, StepPolicy.REQUIRED, request_id
        )
        return cleaned.unwrap()

    async def _load_content(
        self, intent: PageIntent, observer: str | None, request_id: str | None
    ) -> AggregateResult:
        if isinstance(intent, NoIntent):
            return empty_result()

        if isinstance(intent, ThreadIntent):
            label = f"load_thread_{intent.key[0]}_{intent.key[1]}"
        else:
            label = f"load_posts_{intent.sort}_{intent.tag}"

        loaded = await self._run(
            "content",
            label,
            lambda: self._aggregator.load(intent, observer, request_id),
            StepPolicy.REQUIRED,
            request_id,
        )
        return loaded.unwrap()

    async def _load_profile(self, account: str, request_id: str | None) -> dict[str, Any] | None:
        fetched = await self._run(
            "profile",
            f"get_profile_{account}",
            lambda: self._client.call_bridge("get_profile", {"account": account}),
            StepPolicy.BEST_EFFORT,
            request_id,
        )
        if fetched.is_err():
            return None

        profile = fetched.unwrap()
        if isinstance(profile, Mapping) and profile.get("name"):
            return dict(profile)

        logger.warning(
            "dropping malformed profile for %s (request_id=%s): %r",
            account,
            request_id,
            profile,
        )
        return None

    async def _run(
        self,
        step: str,
        label: str,
        operation: Callable[[], Awaitable[T]],
        policy: StepPolicy,
        request_id: str | None,
    ) -> Result[T, Exception]:
        return await run_step(
            step,
            operation,
            policy=policy,
            timing=self._timing,
            label=label,
            request_id=request_id,
            on_network_error=self._on_network_error,
        )


__all__ = [
    "COMMUNITY_TAG",
    "TRENDING_TOPICS_LIMIT",
    "HydrationError",
    "StateAssembler",
    "is_community",
]
