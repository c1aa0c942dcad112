"""
Kanban reordering tests: move_task and every other write that changes a
task's (status, sort_order) position.

After each operation every (org, status) column must read 0..N-1.
"""

import random

import pytest

from clienthub.models.project import TASK_STATUSES, Task
from clienthub.services.task_service import create_task, delete_task, move_task, update_task


def _column(org_id, status):
    """Titles of one column in board order."""
    rows = (Task.query_for_org(org_id).filter_by(status=status)
            .order_by(Task.sort_order, Task.id).all())
    return [t.title for t in rows]


def _assert_dense(org_id):
    for status in TASK_STATUSES:
        orders = [t.sort_order for t in Task.query_for_org(org_id).filter_by(status=status)
                  .order_by(Task.sort_order).all()]
        assert orders == list(range(len(orders))), f"{status} not dense: {orders}"


@pytest.fixture()
def board(workspace):
    """todo: A B C, done: D."""
    org_id = workspace["org"].id
    ids = {}
    for title, status in (("A", "todo"), ("B", "todo"), ("C", "todo"), ("D", "done")):
        result = create_task(org_id, {"title": title, "status": status})
        assert result.ok, result
        ids[title] = result.data["id"]
    return org_id, ids


class TestCreatePlacement:

    def test_new_tasks_append_to_column(self, board):
        """create_task appends at len(column)."""
        org_id, ids = board
        assert _column(org_id, "todo") == ["A", "B", "C"]
        assert _column(org_id, "done") == ["D"]
        _assert_dense(org_id)


class TestMoveAcrossColumns:

    def test_move_to_top_of_other_column(self, board):
        """B → done@0: todo closes the gap, done opens a slot."""
        org_id, ids = board
        result = move_task(org_id, ids["B"], "done", 0)

        assert result.ok
        assert result.data["status"] == "done"
        assert result.data["sort_order"] == 0
        assert _column(org_id, "todo") == ["A", "C"]
        assert _column(org_id, "done") == ["B", "D"]
        _assert_dense(org_id)

    def test_move_from_middle_into_populated_column(self, workspace):
        """todo T0..T4, done X Y Z: T2 → done@0 shifts T3 T4 up and X Y Z down."""
        org_id = workspace["org"].id
        ids = {}
        for title, status in [(f"T{n}", "todo") for n in range(5)] + [(t, "done") for t in "XYZ"]:
            ids[title] = create_task(org_id, {"title": title, "status": status}).data["id"]
        assert Task.query_for_org(org_id).filter_by(id=ids["T2"]).one().sort_order == 2

        result = move_task(org_id, ids["T2"], "done", 0)

        assert result.data["sort_order"] == 0
        assert _column(org_id, "todo") == ["T0", "T1", "T3", "T4"]
        assert _column(org_id, "done") == ["T2", "X", "Y", "Z"]
        orders = {t.title: t.sort_order for t in Task.query_for_org(org_id).all()}
        assert [orders[t] for t in ("T0", "T1", "T3", "T4")] == [0, 1, 2, 3]
        assert [orders[t] for t in ("T2", "X", "Y", "Z")] == [0, 1, 2, 3]

    def test_move_to_end_of_other_column(self, board):
        """Position equal to the column length appends."""
        org_id, ids = board
        move_task(org_id, ids["A"], "done", 1)
        assert _column(org_id, "done") == ["D", "A"]
        assert _column(org_id, "todo") == ["B", "C"]
        _assert_dense(org_id)

    def test_position_past_end_is_clamped(self, board):
        """Out-of-range positions land at the end, never leave a gap."""
        org_id, ids = board
        result = move_task(org_id, ids["A"], "review", 50)
        assert result.data["sort_order"] == 0
        assert _column(org_id, "review") == ["A"]
        _assert_dense(org_id)

    def test_move_into_empty_column(self, board):
        """The first task in a column gets sort_order 0."""
        org_id, ids = board
        move_task(org_id, ids["C"], "in_progress", 0)
        assert _column(org_id, "in_progress") == ["C"]
        assert _column(org_id, "todo") == ["A", "B"]


class TestMoveWithinColumn:

    def test_move_down(self, board):
        """A → todo@2: B and C shift up by one."""
        org_id, ids = board
        move_task(org_id, ids["A"], "todo", 2)
        assert _column(org_id, "todo") == ["B", "C", "A"]
        _assert_dense(org_id)

    def test_move_up(self, board):
        """C → todo@0: A and B shift down by one."""
        org_id, ids = board
        move_task(org_id, ids["C"], "todo", 0)
        assert _column(org_id, "todo") == ["C", "A", "B"]
        _assert_dense(org_id)

    def test_same_position_is_noop(self, board):
        """Moving to the current slot changes nothing."""
        org_id, ids = board
        result = move_task(org_id, ids["B"], "todo", 1)
        assert result.ok
        assert _column(org_id, "todo") == ["A", "B", "C"]

    def test_clamped_within_column(self, board):
        """A large position inside the same column moves to the end."""
        org_id, ids = board
        move_task(org_id, ids["A"], "todo", 99)
        assert _column(org_id, "todo") == ["B", "C", "A"]


class TestMoveValidation:

    @pytest.mark.parametrize("position", [-1, "1", 1.5, True])
    def test_bad_position(self, board, position):
        """Negative and non-integer positions are rejected."""
        org_id, ids = board
        result = move_task(org_id, ids["A"], "todo", position)
        assert result.kind == "VALIDATION_ERROR"
        assert _column(org_id, "todo") == ["A", "B", "C"]

    def test_missing_position(self, board):
        """position is required."""
        org_id, ids = board
        assert move_task(org_id, ids["A"], "done", None).kind == "VALIDATION_ERROR"

    @pytest.mark.parametrize("status", [None, "blocked"])
    def test_bad_status(self, board, status):
        """Status must be one of the board columns."""
        org_id, ids = board
        assert move_task(org_id, ids["A"], status, 0).kind == "VALIDATION_ERROR"

    def test_unknown_task(self, board):
        """Missing task → NOT_FOUND."""
        org_id, _ = board
        assert move_task(org_id, 9999, "done", 0).kind == "NOT_FOUND"

    def test_task_from_other_org(self, board, make_org):
        """Tasks are invisible through another organization."""
        _, ids = board
        other = make_org("Other Co")
        assert move_task(other.id, ids["A"], "done", 0).kind == "NOT_FOUND"


class TestOtherWrites:

    def test_delete_closes_gap(self, board):
        """Deleting B renumbers the remaining todo column."""
        org_id, ids = board
        assert delete_task(org_id, ids["B"]).ok
        assert _column(org_id, "todo") == ["A", "C"]
        _assert_dense(org_id)

    def test_status_update_appends(self, board):
        """update_task with a new status places the task last in that column."""
        org_id, ids = board
        result = update_task(org_id, ids["A"], {"status": "done"})
        assert result.data["sort_order"] == 1
        assert _column(org_id, "done") == ["D", "A"]
        assert _column(org_id, "todo") == ["B", "C"]
        _assert_dense(org_id)

    def test_field_update_keeps_position(self, board):
        """Edits without a status change leave ordering alone."""
        org_id, ids = board
        update_task(org_id, ids["B"], {"title": "B2", "priority": "high"})
        assert _column(org_id, "todo") == ["A", "B2", "C"]

    def test_columns_are_per_org(self, board, make_org):
        """Another organization's todo column is numbered independently."""
        org_id, _ = board
        other = make_org("Other Co")
        result = create_task(other.id, {"title": "X"})
        assert result.data["sort_order"] == 0
        assert _column(org_id, "todo") == ["A", "B", "C"]


class TestRandomSequence:

    def test_invariant_holds_across_many_moves(self, board):
        """Random moves, updates and deletes keep every column dense."""
        org_id, ids = board
        rng = random.Random(7)
        for n in range(6):
            ids[f"N{n}"] = create_task(org_id, {"title": f"N{n}",
                                                "status": rng.choice(TASK_STATUSES)}).data["id"]

        live = dict(ids)
        for step in range(60):
            title = rng.choice(sorted(live))
            action = rng.random()
            if action < 0.75:
                result = move_task(org_id, live[title], rng.choice(TASK_STATUSES), rng.randint(0, 6))
            elif action < 0.9:
                result = update_task(org_id, live[title], {"status": rng.choice(TASK_STATUSES)})
            elif len(live) > 3:
                result = delete_task(org_id, live.pop(title))
            else:
                continue
            assert result.ok, (step, result)
            _assert_dense(org_id)

        assert Task.query_for_org(org_id).count() == len(live)


class TestMoveEndpoint:

    def test_move_over_http(self, client, board, workspace, auth_headers):
        """POST /tasks/<id>/move applies the move and returns the task."""
        org_id, ids = board
        res = client.post(f"/api/v1/orgs/{org_id}/tasks/{ids['C']}/move",
                          json={"status": "done", "position": 0},
                          headers=auth_headers(workspace["member"]))
        assert res.status_code == 200
        assert res.get_json()["sort_order"] == 0
        assert _column(org_id, "done") == ["C", "D"]

    def test_negative_position_over_http(self, client, board, workspace, auth_headers):
        """Validation failures map to 400."""
        org_id, ids = board
        res = client.post(f"/api/v1/orgs/{org_id}/tasks/{ids['C']}/move",
                          json={"status": "done", "position": -2},
                          headers=auth_headers(workspace["member"]))
        assert res.status_code == 400
        assert res.get_json()["code"] == "VALIDATION_ERROR"
