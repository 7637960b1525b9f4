"""
Canvas API tests

Tests cover:
  - Canvas load order: snapshot → RCDO layout → default seed
  - Snapshot upsert and session info
  - Markdown import: preview, end-to-end write, validation (422, no writes),
    destructive-import confirmation (409), lock_all, step failure rollback
"""

import pytest

from cadence.canvas.layout import default_layout
from cadence.models import db
from cadence.models.canvas import CanvasSnapshot
from cadence.models.rcdo import DefiningObjective, RallyingCry, StrategicInitiative
from cadence.services import strategy_import_service


STRATEGY_MD = """\
# Strategy H1 2026

## Rallying Cry — H1 2026
> **Win the mid-market**

## DO #1 — Grow revenue (Owner: Ada)
**Definition**
Expand paid accounts in the mid-market segment.
**Primary Success Metric**
* ARR up 30 %
### Strategic Initiatives
1. **Launch partner program (Owner: grace@example.com)**
* Sign ten partners
* Publish the partner playbook
2. **Refresh pricing**
* Introduce annual plans

## DO #2 — Retain customers
**Definition**
Keep the customers we win.
**Primary Success Metric**
* Net retention 110 %
### Strategic Initiatives
"""


@pytest.fixture()
def canvas_url(cycle):
    return f"/api/v1/cycles/{cycle['id']}/canvas"


def _import(client, canvas_url, headers, markdown=STRATEGY_MD, **flags):
    return client.post(f"{canvas_url}/import", json={"markdown": markdown, **flags}, headers=headers)


def _kinds(nodes):
    return [n["type"] for n in nodes]


# ═══════════════════════════════════════════════════════════════
# Load / save
# ═══════════════════════════════════════════════════════════════

class TestCanvasLoad:
    def test_default_then_rcdo_then_snapshot(self, client, cycle, canvas_url, admin_headers):
        default = client.get(canvas_url, headers=admin_headers).get_json()
        assert default["source"] == "default"
        assert default["room"] == f"strategy-canvas-{cycle['id']}"
        assert (len(default["nodes"]), len(default["edges"])) == (5, 4)

        client.put(f"/api/v1/cycles/{cycle['id']}/rallying-cry", json={"title": "Win"}, headers=admin_headers)
        from_rcdo = client.get(canvas_url, headers=admin_headers).get_json()
        assert from_rcdo["source"] == "rcdo"
        assert from_rcdo["nodes"][0]["data"]["rallyCandidates"] == ["Win"]

        nodes = [{"id": "root", "type": "rally", "position": {"x": 0, "y": 0}, "data": {}}]
        saved = client.put(canvas_url, json={"nodes": nodes, "edges": []}, headers=admin_headers)
        assert saved.status_code == 200
        snapshot = client.get(canvas_url, headers=admin_headers).get_json()
        assert snapshot["source"] == "snapshot"
        assert snapshot["nodes"] == nodes

    @pytest.mark.parametrize("seeded", ["template", "empty"])
    def test_unusable_snapshot_falls_back_to_rcdo(self, client, cycle, canvas_url, admin_headers, seeded):
        nodes, edges = default_layout() if seeded == "template" else ([], [])
        assert client.put(canvas_url, json={"nodes": nodes, "edges": edges}, headers=admin_headers).status_code == 200
        client.put(f"/api/v1/cycles/{cycle['id']}/rallying-cry", json={"title": "Win"}, headers=admin_headers)

        body = client.get(canvas_url, headers=admin_headers).get_json()
        assert body["source"] == "rcdo"
        assert body["nodes"][0]["data"]["rallyCandidates"] == ["Win"]

    def test_template_snapshot_without_rcdo_gives_default(self, client, canvas_url, admin_headers):
        nodes, edges = default_layout()
        client.put(canvas_url, json={"nodes": nodes, "edges": edges}, headers=admin_headers)
        assert client.get(canvas_url, headers=admin_headers).get_json()["source"] == "default"

    def test_save_is_an_upsert(self, client, canvas_url, admin_headers):
        client.put(canvas_url, json={"nodes": [], "edges": []}, headers=admin_headers)
        client.put(canvas_url, json={"nodes": [{"id": "a"}], "edges": []}, headers=admin_headers)
        assert CanvasSnapshot.query.count() == 1

    def test_save_validation(self, client, canvas_url, admin_headers):
        assert client.put(canvas_url, json=[], headers=admin_headers).status_code == 400
        assert client.put(canvas_url, json={"nodes": "x", "edges": []}, headers=admin_headers).status_code == 422
        assert client.put(canvas_url, json={"nodes": [{"type": "do"}], "edges": []}, headers=admin_headers).status_code == 422

    def test_outsider(self, client, canvas_url, outsider_headers):
        assert client.get(canvas_url, headers=outsider_headers).status_code == 403

    def test_session_info(self, client, cycle, canvas_url, member_headers):
        info = client.get(f"{canvas_url}/session", headers=member_headers).get_json()
        assert info == {
            "room": f"strategy-canvas-{cycle['id']}",
            "url": "",
            "enabled": False,
            "save_debounce_seconds": 0.8,
        }


# ═══════════════════════════════════════════════════════════════
# Markdown import
# ═══════════════════════════════════════════════════════════════

class TestImportPreview:
    def test_preview_reports_without_writing(self, client, canvas_url, admin_headers):
        res = client.post(f"{canvas_url}/import/preview", json={"markdown": STRATEGY_MD}, headers=admin_headers)
        assert res.status_code == 200
        body = res.get_json()
        assert body["valid"] is True
        assert body["objective_count"] == 2
        assert body["requires_confirmation"] is False
        assert [s["label"] for s in body["steps"]] == ["Rallying Cry", "Grow revenue", "Retain customers"]
        assert {s["status"] for s in body["steps"]} == {"pending"}
        assert RallyingCry.query.count() == 0

    def test_markdown_required(self, client, canvas_url, admin_headers):
        assert client.post(f"{canvas_url}/import/preview", json={}, headers=admin_headers).status_code == 400
        assert client.post(f"{canvas_url}/import", json={"markdown": "  "}, headers=admin_headers).status_code == 400


class TestImport:
    def test_end_to_end(self, client, canvas_url, admin_user, member_user, admin_headers):
        res = _import(client, canvas_url, admin_headers)
        assert res.status_code == 201
        body = res.get_json()
        assert body["live_published"] is False
        assert [s["status"] for s in body["steps"]] == ["success"] * 4
        assert body["steps"][-1]["label"] == "Rendering canvas"

        db.session.expire_all()
        rc = RallyingCry.query.one()
        assert rc.title == "Win the mid-market"
        assert rc.owner_user_id == admin_user.id
        grow, retain = rc.objectives
        assert grow.owner_user_id == admin_user.id
        assert grow.hypothesis == "<p>Expand paid accounts in the mid-market segment.</p>"
        assert [(m.name, m.type) for m in grow.metrics] == [("ARR up 30 %", "lagging")]
        partner, pricing = grow.initiatives
        assert partner.owner_user_id == member_user.id
        assert partner.description == "<ul><li>Sign ten partners</li><li>Publish the partner playbook</li></ul>"
        assert pricing.owner_user_id == admin_user.id
        assert retain.initiatives == []

        nodes = body["nodes"]
        assert _kinds(nodes).count("rally") == 1
        assert _kinds(nodes).count("do") == 2
        assert _kinds(nodes).count("sai") == 2
        assert [len(n["data"]["saiItems"]) for n in nodes if n["type"] == "do"] == [2, 0]
        assert len(body["edges"]) == 4

        snapshot = client.get(canvas_url, headers=admin_headers).get_json()
        assert snapshot["source"] == "snapshot"
        assert snapshot["nodes"] == nodes

    def test_invalid_markdown_writes_nothing(self, client, canvas_url, admin_headers):
        res = _import(client, canvas_url, admin_headers, markdown="# Nothing here\n")
        assert res.status_code == 422
        assert "No Rallying Cry found in the markdown file" in res.get_json()["details"]["errors"]
        assert RallyingCry.query.count() == 0
        assert CanvasSnapshot.query.count() == 0

    def test_objective_without_initiatives_section_writes_nothing(self, client, canvas_url, admin_headers):
        # drop the section heading of the last objective
        markdown = STRATEGY_MD.rsplit("### Strategic Initiatives", 1)[0]
        res = _import(client, canvas_url, admin_headers, markdown=markdown)
        assert res.status_code == 422
        assert 'DO #2 "Retain customers" has no "### Strategic Initiatives" section' in res.get_json()["details"]["errors"]
        db.session.expire_all()
        assert RallyingCry.query.count() == 0
        assert DefiningObjective.query.count() == 0
        assert CanvasSnapshot.query.count() == 0

    def test_reimport_needs_confirmation(self, client, canvas_url, admin_headers):
        assert _import(client, canvas_url, admin_headers).status_code == 201

        blocked = _import(client, canvas_url, admin_headers)
        assert blocked.status_code == 409
        assert blocked.get_json()["code"] == "ERR_CONFIRMATION_REQUIRED"

        confirmed = _import(client, canvas_url, admin_headers, confirm=True)
        assert confirmed.status_code == 201
        db.session.expire_all()
        assert RallyingCry.query.count() == 1
        assert DefiningObjective.query.count() == 2

    @pytest.mark.parametrize("flag", ["false", "0", 1, "true"])
    def test_only_literal_true_confirms(self, client, canvas_url, admin_headers, flag):
        assert _import(client, canvas_url, admin_headers).status_code == 201
        res = _import(client, canvas_url, admin_headers, confirm=flag)
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFIRMATION_REQUIRED"

    def test_string_lock_all_does_not_lock(self, client, canvas_url, admin_headers):
        assert _import(client, canvas_url, admin_headers, lock_all="false").status_code == 201
        db.session.expire_all()
        assert {o.status for o in DefiningObjective.query.all()} != {"final"}
        assert all(o.locked_at is None for o in DefiningObjective.query.all())

    def test_lock_all(self, client, canvas_url, admin_headers):
        body = _import(client, canvas_url, admin_headers, lock_all=True).get_json()
        db.session.expire_all()
        assert {o.status for o in DefiningObjective.query.all()} == {"final"}
        assert all(o.locked_at is not None for o in DefiningObjective.query.all())
        assert all(si.locked_at is not None for si in StrategicInitiative.query.all())
        assert {n["data"]["status"] for n in body["nodes"] if n["type"] == "do"} == {"final"}

    def test_failed_step_rolls_back(self, client, canvas_url, admin_headers, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("constraint violated")

        monkeypatch.setattr(strategy_import_service, "_create_objective", broken)
        res = _import(client, canvas_url, admin_headers)
        assert res.status_code == 422
        steps = res.get_json()["details"]["steps"]
        assert [s["status"] for s in steps] == ["success", "error", "pending"]
        db.session.expire_all()
        assert RallyingCry.query.count() == 0
        assert CanvasSnapshot.query.count() == 0

    def test_member_can_import(self, client, canvas_url, member_headers):
        assert _import(client, canvas_url, member_headers).status_code == 201
