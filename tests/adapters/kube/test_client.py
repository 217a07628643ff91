from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import httpx
import pytest

from rulekeeper.adapters.kube import KubeAPIError, build_kube_object_store
from rulekeeper.config.reconcile import OWNERSHIP_ANNOTATION
from rulekeeper.domain.errors import ConflictError, NotFoundError
from rulekeeper.domain.model import Detail, ObjectKey, RejectInfo, RuleSetStatus

from tests.support.kube import (
    error_response,
    make_client_factory,
    parsed_pod,
    parsed_ruleset,
    pod_payload,
    ruleset_payload,
)

if TYPE_CHECKING:
    from rulekeeper.config.kube import KubeConfig

RULESETS = "/apis/apps.rulekeeper.io/v1alpha1/namespaces/default/rulesets"
PODS = "/api/v1/namespaces/default/pods"


def test_get_ruleset_parses_payload(kube_config: KubeConfig) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=ruleset_payload(finalizers=["keep"]))

    store = build_kube_object_store(kube_config, client_factory=make_client_factory(handler))

    ruleset = store.rulesets.get(ObjectKey("default", "policy"))

    assert seen[0].url.path == f"{RULESETS}/policy"
    assert seen[0].headers["Authorization"] == "Bearer token"
    assert ruleset.resource_version == "10"
    assert ruleset.generation == 3
    assert ruleset.finalizers == ["keep"]
    assert ruleset.selector.matches({"app": "web", "env": "prod"})
    assert not ruleset.selector.matches({"app": "web", "env": "dev"})
    assert ruleset.rules == [{"name": "check-image", "stage": "pre-check"}]


def test_list_pods_sends_label_selector(kube_config: KubeConfig) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"items": [pod_payload("pod-a"), pod_payload("pod-b")]})

    store = build_kube_object_store(kube_config, client_factory=make_client_factory(handler))
    ruleset = parsed_ruleset()

    targets = store.targets.list_by_selector("default", ruleset.selector)

    assert seen[0].url.path == PODS
    assert seen[0].url.params["labelSelector"] == "app=web,env in (prod)"
    assert [target.name for target in targets] == ["pod-a", "pod-b"]
    assert targets[0].resource_version == "20"


def test_update_status_sends_merge_patch_with_version(kube_config: KubeConfig) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        body = json.loads(request.content)
        return httpx.Response(
            200, json=ruleset_payload(resource_version="11", status=body["status"])
        )

    store = build_kube_object_store(kube_config, client_factory=make_client_factory(handler))
    ruleset = parsed_ruleset()
    ruleset.status = RuleSetStatus(
        targets=["pod-a"],
        observed_generation=3,
        details=[
            Detail(name="pod-a", stage="canary", reject_info=[RejectInfo("r1", "crashing")]),
        ],
        update_time=datetime(2024, 5, 1, 12, tzinfo=UTC),
    )

    updated = store.rulesets.update_status(ruleset)

    request = seen[0]
    assert request.method == "PATCH"
    assert request.url.path == f"{RULESETS}/policy/status"
    assert request.headers["Content-Type"] == "application/merge-patch+json"
    body = json.loads(request.content)
    assert body["metadata"] == {"resourceVersion": "10"}
    assert body["status"]["updateTime"] == "2024-05-01T12:00:00Z"
    assert body["status"]["details"][0] == {
        "name": "pod-a",
        "stage": "canary",
        "passed": False,
        "passedRules": [],
        "rejectInfo": [{"ruleName": "r1", "reason": "crashing"}],
    }
    assert updated.resource_version == "11"
    assert updated.status.details[0].reject_info == [RejectInfo("r1", "crashing")]
    assert not updated.status.details[0].passed


def test_update_patches_only_finalizers(kube_config: KubeConfig) -> None:
    seen: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json=ruleset_payload(resource_version="11", finalizers=["f"]))

    store = build_kube_object_store(kube_config, client_factory=make_client_factory(handler))
    ruleset = parsed_ruleset()
    ruleset.add_finalizer("f")

    store.rulesets.update(ruleset)

    assert seen == [{"metadata": {"resourceVersion": "10", "finalizers": ["f"]}}]


def test_target_update_removes_annotation_with_null(kube_config: KubeConfig) -> None:
    seen: list[dict[str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(
                200, json=pod_payload("pod-a", annotations={OWNERSHIP_ANNOTATION: '["policy"]'})
            )
        seen.append(json.loads(request.content))
        return httpx.Response(200, json=pod_payload("pod-a", resource_version="21"))

    store = build_kube_object_store(kube_config, client_factory=make_client_factory(handler))
    target = store.targets.get(ObjectKey("default", "pod-a"))
    target.set_owners(OWNERSHIP_ANNOTATION, [])

    updated = store.targets.update(target)

    assert seen == [
        {"metadata": {"resourceVersion": "20", "annotations": {OWNERSHIP_ANNOTATION: None}}}
    ]
    assert updated.resource_version == "21"


@pytest.mark.parametrize(
    ("status_code", "error"),
    [(404, NotFoundError), (409, ConflictError), (422, KubeAPIError)],
)
def test_error_statuses_map_to_store_errors(
    kube_config: KubeConfig,
    status_code: int,
    error: type[Exception],
) -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return error_response(status_code, "Failure", "the object has been modified")

    store = build_kube_object_store(kube_config, client_factory=make_client_factory(handler))

    with pytest.raises(error):
        store.rulesets.update(parsed_ruleset())


def test_conflict_carries_server_message(kube_config: KubeConfig) -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return error_response(409, "Conflict", "the object has been modified")

    store = build_kube_object_store(kube_config, client_factory=make_client_factory(handler))

    with pytest.raises(ConflictError, match="the object has been modified"):
        store.targets.update(parsed_pod())


def test_list_failure_is_api_error(kube_config: KubeConfig) -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, text="not json")

    store = build_kube_object_store(kube_config, client_factory=make_client_factory(handler))

    with pytest.raises(KubeAPIError) as excinfo:
        store.rulesets.list_in_namespace("default")

    assert excinfo.value.status_code == 404


def test_transport_error_is_api_error(kube_config: KubeConfig) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    store = build_kube_object_store(kube_config, client_factory=make_client_factory(handler))

    with pytest.raises(KubeAPIError, match="connection refused"):
        store.rulesets.get(ObjectKey("default", "policy"))
