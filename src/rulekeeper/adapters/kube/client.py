"""Object-store adapter backed by a Kubernetes-style API server."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from rulekeeper.adapters.http_resilience import ResilientClient
from rulekeeper.config.reconcile import OWNERSHIP_ANNOTATION
from rulekeeper.domain.errors import ConflictError, NotFoundError, StoreError
from rulekeeper.domain.ports import ObjectStore

from .schema import PodListPayload, PodPayload, RuleSetListPayload, RuleSetPayload, StatusPayload
from .translator import (
    annotation_patch,
    finalizers_patch,
    parse_ruleset,
    parse_target,
    status_patch,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from pydantic import BaseModel

    from rulekeeper.config.http_resilience import ResilienceConfig
    from rulekeeper.config.kube import KubeConfig
    from rulekeeper.domain.model import LabelSelector, ObjectKey, RuleSet, Target

log = getLogger(__name__)

MERGE_PATCH = "application/merge-patch+json"


class KubeAPIError(StoreError):
    """Raised when the API server returns an unexpected response."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class KubeClient:
    """Low-level JSON calls with API errors mapped onto store errors."""

    config: KubeConfig
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    def get[M: BaseModel](
        self,
        path: str,
        model: type[M],
        *,
        kind: str,
        key: ObjectKey | None = None,
        params: dict[str, str] | None = None,
    ) -> M:
        return asyncio.run(self._request("GET", path, model, kind=kind, key=key, params=params))

    def patch[M: BaseModel](
        self,
        path: str,
        model: type[M],
        body: dict[str, Any],
        *,
        kind: str,
        key: ObjectKey,
    ) -> M:
        return asyncio.run(self._request("PATCH", path, model, kind=kind, key=key, body=body))

    async def _request[M: BaseModel](
        self,
        method: str,
        path: str,
        model: type[M],
        *,
        kind: str,
        key: ObjectKey | None,
        params: dict[str, str] | None = None,
        body: dict[str, Any] | None = None,
    ) -> M:
        async with self.client_factory(self.config.resilience) as client:
            try:
                if body is None:
                    response = await client.request(method, path, params=params)
                else:
                    response = await client.request(
                        method,
                        path,
                        content=json.dumps(body),
                        headers={"Content-Type": MERGE_PATCH},
                    )
            except httpx.HTTPError as exc:
                raise KubeAPIError(f"{method} {path} failed: {exc}") from exc

        self._raise_for_status(response, kind=kind, key=key)
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise KubeAPIError(f"Unexpected {kind} payload from {method} {path}") from exc

    def _raise_for_status(
        self,
        response: httpx.Response,
        *,
        kind: str,
        key: ObjectKey | None,
    ) -> None:
        if response.is_success:
            return
        message = _error_message(response)
        if key is not None and response.status_code == httpx.codes.NOT_FOUND:
            raise NotFoundError(kind, key)
        if key is not None and response.status_code == httpx.codes.CONFLICT:
            raise ConflictError(kind, key, message)
        log.error("API server returned %s for %s: %s", response.status_code, kind, message)
        raise KubeAPIError(message, status_code=response.status_code)


def _error_message(response: httpx.Response) -> str:
    try:
        payload = StatusPayload.model_validate(response.json())
    except (ValueError, ValidationError):
        return f"HTTP {response.status_code}"
    return payload.message or payload.reason or f"HTTP {response.status_code}"


class KubeRuleSetRepository:
    kind = "RuleSet"

    def __init__(self, client: KubeClient) -> None:
        self._client = client
        self._prefix = client.config.ruleset_api_prefix

    def _path(self, namespace: str, name: str | None = None, *, status: bool = False) -> str:
        path = f"{self._prefix}/namespaces/{namespace}/rulesets"
        if name is not None:
            path = f"{path}/{name}"
        if status:
            path = f"{path}/status"
        return path

    def get(self, key: ObjectKey) -> RuleSet:
        payload = self._client.get(
            self._path(key.namespace, key.name), RuleSetPayload, kind=self.kind, key=key
        )
        return parse_ruleset(payload)

    def list_in_namespace(self, namespace: str) -> list[RuleSet]:
        payload = self._client.get(self._path(namespace), RuleSetListPayload, kind=self.kind)
        return [parse_ruleset(item) for item in payload.items]

    def update(self, ruleset: RuleSet) -> RuleSet:
        payload = self._client.patch(
            self._path(ruleset.namespace, ruleset.name),
            RuleSetPayload,
            finalizers_patch(ruleset),
            kind=self.kind,
            key=ruleset.key,
        )
        return parse_ruleset(payload)

    def update_status(self, ruleset: RuleSet) -> RuleSet:
        payload = self._client.patch(
            self._path(ruleset.namespace, ruleset.name, status=True),
            RuleSetPayload,
            status_patch(ruleset),
            kind=self.kind,
            key=ruleset.key,
        )
        return parse_ruleset(payload)


class KubeTargetRepository:
    """Pods as targets.

    ``update`` only persists the ownership annotation; it is the single field the
    reconcile core changes on a target.
    """

    kind = "Pod"

    def __init__(self, client: KubeClient, *, annotation: str = OWNERSHIP_ANNOTATION) -> None:
        self._client = client
        self._annotation = annotation

    @staticmethod
    def _path(namespace: str, name: str | None = None) -> str:
        path = f"/api/v1/namespaces/{namespace}/pods"
        return path if name is None else f"{path}/{name}"

    def get(self, key: ObjectKey) -> Target:
        payload = self._client.get(
            self._path(key.namespace, key.name), PodPayload, kind=self.kind, key=key
        )
        return parse_target(payload)

    def list_by_selector(self, namespace: str, selector: LabelSelector) -> list[Target]:
        params = {"labelSelector": selector.render()} if not selector.is_empty else None
        payload = self._client.get(
            self._path(namespace), PodListPayload, kind=self.kind, params=params
        )
        return [parse_target(item) for item in payload.items]

    def update(self, target: Target) -> Target:
        payload = self._client.patch(
            self._path(target.namespace, target.name),
            PodPayload,
            annotation_patch(target, self._annotation),
            kind=self.kind,
            key=target.key,
        )
        return parse_target(payload)


def build_kube_object_store(
    config: KubeConfig,
    *,
    annotation: str = OWNERSHIP_ANNOTATION,
    client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
) -> ObjectStore:
    client = KubeClient(config, client_factory or _default_client_factory)
    return ObjectStore(
        rulesets=KubeRuleSetRepository(client),
        targets=KubeTargetRepository(client, annotation=annotation),
    )
