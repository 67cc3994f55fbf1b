import asyncio
import itertools
import json

import httpx
import pytest

from schoolvote.client.ballot import (
    LOAD_FAILED,
    NO_CANDIDATES,
    REFRESH_FAILED,
    VOTER_GROUP_NOT_FOUND,
    VOTER_ID_REQUIRED,
    BallotWorkflow,
    display_position,
)
from schoolvote.client.errors import IncompleteBallotError
from schoolvote.client.storage import VOTER_ID_KEY

BALLOT = {
    "Senior Prefect": [
        {"id": "c1", "name": "Abena Owusu", "position": "Senior Prefect", "votes": 0},
        {"id": "c2", "name": "Yaw Boateng", "position": "Senior Prefect", "votes": 0},
    ],
    "Sports Prefect": [
        {"id": "c3", "name": "Kwame Asante", "position": "Sports Prefect", "votes": 0},
    ],
}


def ballot_handler(payload=BALLOT, status=200, seen=None):
    def handler(request):
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, json=payload)

    return handler


def loaded_workflow(make_api, store, payload=BALLOT):
    store.set(VOTER_ID_KEY, "V1")
    workflow = BallotWorkflow(make_api(ballot_handler(payload)), store)
    asyncio.run(workflow.load())
    return workflow


def test_missing_voter_id_blocks_without_request(make_api, store):
    seen = []
    workflow = BallotWorkflow(make_api(ballot_handler(seen=seen)), store)
    asyncio.run(workflow.load())
    assert workflow.error == VOTER_ID_REQUIRED
    assert workflow.positions == []
    assert seen == []


def test_fetch_sends_no_cache_headers_and_timeout(make_api, store):
    seen = []
    store.set(VOTER_ID_KEY, "V1")
    workflow = BallotWorkflow(make_api(ballot_handler(seen=seen)), store)
    asyncio.run(workflow.load())

    (request,) = seen
    assert request.url.path == "/api/candidates/for-voter"
    assert request.url.params["voterId"] == "V1"
    assert request.headers["Cache-Control"] == "no-cache"
    assert request.headers["Pragma"] == "no-cache"
    assert request.extensions["timeout"]["read"] == 15.0
    assert workflow.positions == ["Senior Prefect", "Sports Prefect"]
    assert workflow.error == ""
    assert workflow.last_updated is not None
    assert workflow.loading is False


def test_empty_ballot_is_its_own_error(make_api, store):
    workflow = loaded_workflow(make_api, store, payload={})
    assert workflow.error == NO_CANDIDATES
    assert workflow.positions == []


@pytest.mark.parametrize("status,message", [(404, VOTER_GROUP_NOT_FOUND), (500, LOAD_FAILED)])
def test_http_failures(make_api, store, status, message):
    store.set(VOTER_ID_KEY, "V1")
    workflow = BallotWorkflow(make_api(ballot_handler({"detail": "x"}, status=status)), store)
    asyncio.run(workflow.load())
    assert workflow.error == message
    assert workflow.loading is False


def test_refresh_failure_message(make_api, store):
    store.set(VOTER_ID_KEY, "V1")

    def handler(request):
        raise httpx.ConnectError("server down", request=request)

    workflow = BallotWorkflow(make_api(handler), store)
    asyncio.run(workflow.refresh())
    assert workflow.error == REFRESH_FAILED


def test_selecting_and_abstaining_are_mutually_exclusive(make_api, store):
    workflow = loaded_workflow(make_api, store)

    workflow.abstain("Senior Prefect")
    workflow.select("Senior Prefect", "c2")
    assert workflow.selected_candidate_ids == {"Senior Prefect": "c2"}
    assert not workflow.none_selected.get("Senior Prefect")

    workflow.abstain("Senior Prefect")
    assert "Senior Prefect" not in workflow.selected_candidate_ids
    assert workflow.none_selected["Senior Prefect"] is True


def test_select_rejects_unknown_choices(make_api, store):
    workflow = loaded_workflow(make_api, store)
    with pytest.raises(ValueError):
        workflow.select("Head Girl", "c1")
    with pytest.raises(ValueError):
        workflow.select("Senior Prefect", "c3")
    with pytest.raises(ValueError):
        workflow.abstain("Head Girl")


def test_submission_allowed_iff_every_position_covered(make_api, store):
    workflow = loaded_workflow(make_api, store)
    choices = {"Senior Prefect": [None, "c1", "abstain"], "Sports Prefect": [None, "c3", "abstain"]}

    for senior, sports in itertools.product(*choices.values()):
        workflow.selected_candidate_ids = {}
        workflow.none_selected = {}
        for position, choice in zip(choices, (senior, sports)):
            if choice == "abstain":
                workflow.abstain(position)
            elif choice:
                workflow.select(position, choice)
        complete = senior is not None and sports is not None
        assert workflow.can_submit is complete
        if complete:
            workflow.confirm()
        else:
            with pytest.raises(IncompleteBallotError):
                workflow.confirm()


def test_incomplete_ballot_reports_positions_verbatim(make_api, store):
    workflow = loaded_workflow(make_api, store)
    workflow.select("Senior Prefect", "c1")
    with pytest.raises(IncompleteBallotError) as excinfo:
        workflow.confirm()
    assert excinfo.value.positions == ["Sports Prefect"]
    assert workflow.error == "Please make a selection for each position: Sports Prefect"
    assert workflow.selected_candidate_ids == {"Senior Prefect": "c1"}


def test_confirmation_rebuilds_candidates_and_drops_unresolved(make_api, store):
    workflow = loaded_workflow(make_api, store)
    workflow.select("Senior Prefect", "c2")
    workflow.abstain("Sports Prefect")

    confirmation = workflow.confirm()
    assert confirmation.voter_id == "V1"
    assert confirmation.selected_candidates["Senior Prefect"]["name"] == "Yaw Boateng"
    assert confirmation.none_selected == {"Sports Prefect": True}

    workflow.selected_candidate_ids["Senior Prefect"] = "withdrawn"
    assert workflow.confirm().selected_candidates == {}


def test_search_filters_display_only(make_api, store):
    workflow = loaded_workflow(make_api, store)
    workflow.select("Senior Prefect", "c1")

    assert list(workflow.filtered("YAW")) == ["Senior Prefect"]
    assert [c["id"] for c in workflow.filtered("yaw")["Senior Prefect"]] == ["c2"]
    assert list(workflow.filtered("sports")) == ["Sports Prefect"]
    assert workflow.filtered("zzz") == {}
    assert workflow.filtered("") == BALLOT
    assert workflow.selected_candidate_ids == {"Senior Prefect": "c1"}


def test_refresh_resets_selections(make_api, store):
    workflow = loaded_workflow(make_api, store)
    workflow.select("Senior Prefect", "c1")
    workflow.abstain("Sports Prefect")
    asyncio.run(workflow.refresh())
    assert workflow.selected_candidate_ids == {}
    assert workflow.none_selected == {}
    assert workflow.positions == ["Senior Prefect", "Sports Prefect"]


def test_refresh_cancels_inflight_fetch(make_api, store):
    store.set(VOTER_ID_KEY, "V1")
    stale = {"Old Position": [{"id": "old", "name": "Gone", "position": "Old Position"}]}

    async def run():
        first_started = asyncio.Event()
        calls = []

        async def handler(request):
            calls.append(request)
            if len(calls) == 1:
                first_started.set()
                await asyncio.sleep(10)
                return httpx.Response(200, json=stale)
            return httpx.Response(200, json=BALLOT)

        workflow = BallotWorkflow(make_api(handler), store)
        mount = asyncio.create_task(workflow.load())
        await first_started.wait()
        await workflow.refresh()
        await asyncio.wait_for(mount, timeout=1)
        return workflow, calls

    workflow, calls = asyncio.run(run())
    assert len(calls) == 2
    assert workflow.positions == ["Senior Prefect", "Sports Prefect"]
    assert workflow.loading is False
    assert workflow.error == ""


def test_submit_posts_ballot_and_forgets_voter(make_api, store):
    store.set(VOTER_ID_KEY, "V1")
    posted = []

    def handler(request):
        if request.method == "POST":
            posted.append(request)
            return httpx.Response(200, json={"message": "Vote cast successfully!"})
        return httpx.Response(200, json=BALLOT)

    async def run():
        workflow = BallotWorkflow(make_api(handler), store)
        await workflow.load()
        workflow.select("Senior Prefect", "c1")
        workflow.abstain("Sports Prefect")
        receipt = await workflow.submit(workflow.confirm())
        return workflow, receipt

    workflow, receipt = asyncio.run(run())
    assert receipt["message"] == "Vote cast successfully!"
    (request,) = posted
    assert request.url.path == "/api/votes"
    assert json.loads(request.content) == {
        "voterId": "V1",
        "selections": {"Senior Prefect": "c1"},
        "noneSelected": {"Sports Prefect": True},
    }
    assert store.get(VOTER_ID_KEY) is None
    assert workflow.positions == []


def test_submit_failure_keeps_state(make_api, store):
    store.set(VOTER_ID_KEY, "V1")

    def handler(request):
        if request.method == "POST":
            return httpx.Response(400, json={"detail": "Voter has already voted."})
        return httpx.Response(200, json=BALLOT)

    async def run():
        workflow = BallotWorkflow(make_api(handler), store)
        await workflow.load()
        workflow.abstain("Senior Prefect")
        workflow.abstain("Sports Prefect")
        return workflow, await workflow.submit(workflow.confirm())

    workflow, receipt = asyncio.run(run())
    assert receipt is None
    assert workflow.error == "Voter has already voted."
    assert store.get(VOTER_ID_KEY) == "V1"
    assert workflow.none_selected == {"Senior Prefect": True, "Sports Prefect": True}


def test_display_position():
    assert display_position("") == "General Position"
    assert display_position("undefined") == "General Position"
    assert display_position("Head Boy") == "Head Boy"


def test_stale_response_is_dropped_when_superseded_after_it_arrived(make_api, store):
    store.set(VOTER_ID_KEY, "V1")
    stale = {"Old Position": [{"id": "old", "name": "Gone", "position": "Old Position"}]}

    async def run():
        calls = []
        first_request_task = []
        refreshes = []

        async def handler(request):
            calls.append(request)
            if len(calls) == 1:
                first_request_task.append(asyncio.current_task())
                # The refresh starts after this response resolves but before load() resumes
                refreshes.append(asyncio.ensure_future(workflow.refresh()))
                return httpx.Response(200, json=stale)
            return httpx.Response(200, json=BALLOT)

        workflow = BallotWorkflow(make_api(handler), store)
        await asyncio.wait_for(workflow.load(), timeout=1)
        await asyncio.wait_for(refreshes[0], timeout=1)
        return workflow, calls, first_request_task[0]

    workflow, calls, first_request = asyncio.run(run())
    assert len(calls) == 2
    assert not first_request.cancelled()
    assert workflow.positions == ["Senior Prefect", "Sports Prefect"]
    assert workflow.loading is False


def test_submit_discards_fetch_in_flight(make_api, store):
    store.set(VOTER_ID_KEY, "V1")

    async def run():
        gets = []
        second_started = asyncio.Event()

        async def handler(request):
            if request.method == "POST":
                return httpx.Response(200, json={"message": "Vote cast successfully!"})
            gets.append(request)
            if len(gets) == 2:
                second_started.set()
                await asyncio.sleep(10)
            return httpx.Response(200, json=BALLOT)

        workflow = BallotWorkflow(make_api(handler), store)
        await workflow.load()
        workflow.abstain("Senior Prefect")
        workflow.abstain("Sports Prefect")
        confirmation = workflow.confirm()

        pending = asyncio.create_task(workflow.refresh())
        await second_started.wait()
        receipt = await workflow.submit(confirmation)
        await asyncio.wait_for(pending, timeout=1)
        return workflow, receipt

    workflow, receipt = asyncio.run(run())
    assert receipt["message"] == "Vote cast successfully!"
    assert workflow.positions == []
    assert workflow.loading is False
    assert store.get(VOTER_ID_KEY) is None


def test_non_json_success_body_degrades_to_load_error(make_api, store):
    store.set(VOTER_ID_KEY, "V1")
    html_page = lambda request: httpx.Response(200, text="<!doctype html><div id=root></div>")
    workflow = BallotWorkflow(make_api(html_page), store)
    asyncio.run(workflow.load())
    assert workflow.error == LOAD_FAILED
    assert workflow.positions == []
    assert workflow.loading is False


def test_ballot_of_wrong_shape_keeps_selections(make_api, store):
    workflow = loaded_workflow(make_api, store)
    workflow.select("Senior Prefect", "c1")
    workflow.api = make_api(ballot_handler(payload=[{"id": "c1"}]))
    asyncio.run(workflow.refresh())
    assert workflow.error == REFRESH_FAILED
    assert workflow.selected_candidate_ids == {"Senior Prefect": "c1"}
    assert workflow.positions == ["Senior Prefect", "Sports Prefect"]
