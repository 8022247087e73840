"""Batch jobs: scheduler registry, run locking, evaluation and health endpoints."""

import logging

import pytest

from app.models import db as _db
from app.models.evaluation import Event
from app.models.org import Team
from app.models.scheduling import ScheduledJob
from app.services import scheduler_service
from app.services.scheduler_service import (
    SchedulerService,
    get_registered_jobs,
    job_lock,
)


@pytest.fixture()
def manager(org, make_profile):
    return make_profile("boss@djt.test", roles=("gerente_djt",))


@pytest.fixture()
def batch(org, make_profile, make_event):
    """One DJTB submitter, two DJTV evaluators, three pending events."""
    submitter = make_profile("sub@djt.test", roles=("colaborador",), team_id="DJTB-CUB")
    evaluators = [
        make_profile("v1@djt.test", roles=("lider_equipe",), team_id="DJTV-JUN"),
        make_profile("v2@djt.test", roles=("lider_equipe",), team_id="DJTV-ITA"),
    ]
    events = [make_event(submitter, team_id="DJTB-CUB") for _ in range(3)]
    return {"submitter": submitter, "evaluators": evaluators, "events": events}


# ── Registry ─────────────────────────────────────────────────────────────


def test_jobs_are_registered():
    assert {"evaluator_assignment", "org_hierarchy_integrity"} <= set(get_registered_jobs())


def test_ensure_jobs_registered_is_idempotent():
    created = SchedulerService.ensure_jobs_registered()
    assert {j.job_name for j in created} >= {"evaluator_assignment", "org_hierarchy_integrity"}
    assert SchedulerService.ensure_jobs_registered() == []


def test_unknown_job():
    run = SchedulerService.run_job("nope")
    assert run["status"] == "error"


# ── run_job ──────────────────────────────────────────────────────────────


def test_run_assignment_records_history(batch):
    SchedulerService.ensure_jobs_registered()
    run = SchedulerService.run_job("evaluator_assignment")

    assert run["status"] == "success"
    assert run["result"]["assigned"] == 3
    record = ScheduledJob.query.filter_by(job_name="evaluator_assignment").one()
    assert record.run_count == 1
    assert record.last_run_status == "success"
    assert record.last_run_result["considered"] == 3


def test_first_run_creates_job_record(batch):
    assert ScheduledJob.query.filter_by(job_name="evaluator_assignment").first() is None

    run = SchedulerService.run_job("evaluator_assignment")

    assert run["status"] == "success"
    record = ScheduledJob.query.filter_by(job_name="evaluator_assignment").one()
    assert record.run_count == 1
    assert record.last_run_status == "success"


def test_concurrent_trigger_is_skipped(batch, caplog):
    lock = job_lock("evaluator_assignment")
    assert lock.acquire(blocking=False)
    try:
        with caplog.at_level(logging.WARNING, logger="app.services.scheduler_service"):
            run = SchedulerService.run_job("evaluator_assignment")
    finally:
        lock.release()

    assert run["status"] == "skipped"
    assert run["error"] == "already running"
    assert all(e.assigned_evaluator_id is None for e in Event.query.all())


def test_disabled_job_is_skipped(batch):
    SchedulerService.toggle_job("evaluator_assignment", False)

    run = SchedulerService.run_job("evaluator_assignment")
    assert run["status"] == "skipped"
    assert run["error"] == "disabled"
    assert ScheduledJob.query.filter_by(job_name="evaluator_assignment").one().status == "paused"


def test_failed_job_is_recorded(monkeypatch):
    SchedulerService.ensure_jobs_registered()

    def boom(app):
        raise RuntimeError("exploded")

    monkeypatch.setitem(scheduler_service._job_registry, "evaluator_assignment", boom)
    run = SchedulerService.run_job("evaluator_assignment")

    assert run["status"] == "failed"
    assert run["error"] == "exploded"
    record = ScheduledJob.query.filter_by(job_name="evaluator_assignment").one()
    assert record.error_count == 1
    assert record.last_error == "exploded"


def test_integrity_job_reports_dangling_links(org, fk_off):
    _db.session.add(Team(id="DJTB-ORF", name="Órfã", coord_id="DJTB-GONE"))
    _db.session.commit()

    run = SchedulerService.run_job("org_hierarchy_integrity")
    assert run["status"] == "success"
    assert run["result"]["issues_found"] == 1
    assert run["result"]["issues"][0]["id"] == "DJTB-ORF"


def test_list_jobs():
    jobs = {j["job_name"]: j for j in SchedulerService.list_jobs()}
    assert jobs["evaluator_assignment"]["db_record"]["is_enabled"] is True


def test_toggle_unknown_job():
    assert SchedulerService.toggle_job("nope", False) is None


# ── POST /api/v1/evaluations/assign ──────────────────────────────────────


def test_assign_endpoint_runs_batch(client, batch, manager, auth_headers):
    res = client.post("/api/v1/evaluations/assign", headers=auth_headers(manager.id))
    assert res.status_code == 200
    data = res.get_json()
    assert data["status"] == "success"
    assert data["result"]["assigned"] == 3
    evaluator_ids = {e.id for e in batch["evaluators"]}
    assert {p["evaluator_id"] for p in data["result"]["pairs"]} == evaluator_ids


def test_assign_endpoint_requires_manager(client, batch, make_profile, auth_headers):
    coord = make_profile("coord@djt.test", roles=("coordenador_djtx",), team_id="DJTB-STO")
    res = client.post("/api/v1/evaluations/assign", headers=auth_headers(coord.id))
    assert res.status_code == 403
    assert all(e.assigned_evaluator_id is None for e in Event.query.all())


def test_assign_endpoint_conflicts_while_running(client, batch, manager, auth_headers):
    lock = job_lock("evaluator_assignment")
    assert lock.acquire(blocking=False)
    try:
        res = client.post("/api/v1/evaluations/assign", headers=auth_headers(manager.id))
    finally:
        lock.release()
    assert res.status_code == 409
    assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"


# ── /api/v1/evaluations/jobs ─────────────────────────────────────────────


def test_jobs_endpoint_lists_registered_jobs(client, manager, auth_headers):
    res = client.get("/api/v1/evaluations/jobs", headers=auth_headers(manager.id))
    assert res.status_code == 200
    names = {j["job_name"] for j in res.get_json()["jobs"]}
    assert {"evaluator_assignment", "org_hierarchy_integrity"} <= names


def test_jobs_endpoint_requires_manager(client, org, make_profile, auth_headers):
    coord = make_profile("coord@djt.test", roles=("coordenador_djtx",), team_id="DJTB-STO")
    assert client.get("/api/v1/evaluations/jobs", headers=auth_headers(coord.id)).status_code == 403
    res = client.patch(
        "/api/v1/evaluations/jobs/evaluator_assignment/toggle",
        json={"enabled": False},
        headers=auth_headers(coord.id),
    )
    assert res.status_code == 403


def test_disabled_job_blocks_assign_endpoint(client, batch, manager, auth_headers):
    res = client.patch(
        "/api/v1/evaluations/jobs/evaluator_assignment/toggle",
        json={"enabled": False},
        headers=auth_headers(manager.id),
    )
    assert res.status_code == 200
    assert res.get_json()["is_enabled"] is False

    res = client.post("/api/v1/evaluations/assign", headers=auth_headers(manager.id))
    assert res.status_code == 409
    assert all(e.assigned_evaluator_id is None for e in Event.query.all())


def test_toggle_requires_boolean(client, manager, auth_headers):
    res = client.patch(
        "/api/v1/evaluations/jobs/evaluator_assignment/toggle",
        json={"enabled": "no"},
        headers=auth_headers(manager.id),
    )
    assert res.status_code == 422


def test_toggle_unknown_job_is_not_found(client, manager, auth_headers):
    res = client.patch("/api/v1/evaluations/jobs/nope/toggle", json={"enabled": True}, headers=auth_headers(manager.id))
    assert res.status_code == 404


# ── GET /api/v1/evaluations/workload ─────────────────────────────────────


def test_workload_scoped_to_caller(client, batch, make_profile, auth_headers):
    client.post("/api/v1/evaluations/assign", headers=auth_headers(make_profile("b@djt.test", roles=("admin",)).id))
    coord = make_profile("coord@djt.test", roles=("coordenador_djtx",), team_id="DJTV-JUN")

    res = client.get("/api/v1/evaluations/workload", headers=auth_headers(coord.id))
    assert res.status_code == 200
    items = res.get_json()["items"]
    # DJTV coordinator sees both DJTV evaluators, plus itself as a pool member
    by_id = {i["evaluator_id"]: i for i in items}
    v1, v2 = batch["evaluators"]
    assert by_id[v1.id]["open_items"] + by_id[v2.id]["open_items"] == 3
    assert by_id[coord.id]["open_items"] == 0
    assert all(i["division_id"] == "DJTV" for i in items)


def test_workload_hidden_from_other_division(client, batch, make_profile, auth_headers):
    coord = make_profile("coord@djt.test", roles=("coordenador_djtx",), team_id="DJTB-STO")
    res = client.get("/api/v1/evaluations/workload", headers=auth_headers(coord.id))
    ids = {i["evaluator_id"] for i in res.get_json()["items"]}
    assert not ids & {e.id for e in batch["evaluators"]}


def test_workload_requires_coordinator(client, batch, auth_headers):
    leader = batch["evaluators"][0]
    res = client.get("/api/v1/evaluations/workload", headers=auth_headers(leader.id))
    assert res.status_code == 403


# ── Health ───────────────────────────────────────────────────────────────


def test_health_ready(client):
    res = client.get("/api/v1/health/ready")
    assert res.status_code == 200
    assert res.get_json() == {"status": "ok"}


def test_health_live(client):
    res = client.get("/api/v1/health/live")
    assert res.status_code == 200
    data = res.get_json()
    assert data["checks"]["database"]["status"] == "ok"
    assert "evaluator_assignment" in data["checks"]["jobs"]["registered"]
