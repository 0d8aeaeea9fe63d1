from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
import logging
import threading
from time import perf_counter

from timegrid.core.exceptions import CellOccupied, FacultyConflict, Infeasible, SearchAborted
from timegrid.services.conflict_index import FacultyConflictIndex
from timegrid.services.grid import Entry, Grid
from timegrid.services.rotation import RotationPlan
from timegrid.services.sections import Requirement, Section

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionTask:
    task_id: int
    section_index: int
    section_key: str
    requirement: Requirement
    block_size: int
    sessions: int
    rotation: RotationPlan | None

    def describe(self) -> str:
        return f"{self.requirement.subject_name} ({self.requirement.faculty_id}) in {self.section_key}"


@dataclass(frozen=True)
class Transaction:
    task_id: int
    cells: tuple[tuple[str, int], ...]
    previous_last_order: int


@dataclass
class SearchFrame:
    task_id: int
    candidates: list[tuple[str, int]]
    cursor: int = 0
    token: Transaction | None = None


@dataclass
class SearchStats:
    nodes_visited: int = 0
    backtracks: int = 0
    max_depth: int = 0
    runtime_ms: int = 0


class BacktrackingSearch:
    """Depth-first assignment of requirement sessions to grid cells.

    The search owns ``grids`` and ``index`` for its whole run. Every placement
    is a transaction over both; a dead end undoes the transaction before the
    next candidate is tried. On success the grids hold the complete assignment;
    on failure their content is undefined and must be discarded.
    """

    def __init__(
        self,
        sections: Sequence[Section],
        grids: Sequence[Grid],
        index: FacultyConflictIndex,
        rotation_plans: dict[tuple[int, str], RotationPlan] | None = None,
        *,
        node_budget: int | None = None,
        time_limit_seconds: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        if len(sections) != len(grids):
            raise ValueError("Each section needs exactly one grid")
        self.sections = list(sections)
        self.grids = list(grids)
        self.index = index
        self.rotation_plans = rotation_plans or {}
        self.node_budget = node_budget
        self.time_limit_seconds = time_limit_seconds
        self.cancel_event = cancel_event

        self.tasks = self._build_tasks()
        self.remaining = [task.sessions for task in self.tasks]
        self.last_order = [-1] * len(self.tasks)
        self.pending_sessions = sum(self.remaining)
        self.stats = SearchStats()
        self._blockers: Counter[tuple[str, str]] = Counter()
        self._blocker_reasons: dict[tuple[str, str], tuple[str, dict]] = {}
        self._started = 0.0

    def _build_tasks(self) -> list[SessionTask]:
        tasks: list[SessionTask] = []
        for section_index, section in enumerate(self.sections):
            for requirement in section.requirements:
                block_size = section.block_size(requirement)
                tasks.append(
                    SessionTask(
                        task_id=len(tasks),
                        section_index=section_index,
                        section_key=section.key,
                        requirement=requirement,
                        block_size=block_size,
                        sessions=requirement.weekly_hours // block_size,
                        rotation=self.rotation_plans.get((section_index, requirement.subject_name)),
                    )
                )
        return tasks

    def run(self) -> SearchStats:
        self._started = perf_counter()
        logger.info(
            "Search start sections=%s tasks=%s sessions=%s node_budget=%s",
            len(self.sections),
            len(self.tasks),
            self.pending_sessions,
            self.node_budget,
        )
        if self.pending_sessions == 0:
            return self._finish()

        root = self._expand()
        if root is None:
            raise self._infeasible()
        stack: list[SearchFrame] = [root]

        while stack:
            self._check_limits()
            frame = stack[-1]
            if frame.token is not None:
                self._rollback(frame.token)
                frame.token = None
                self.stats.backtracks += 1
            if frame.cursor >= len(frame.candidates):
                stack.pop()
                continue

            day, period = frame.candidates[frame.cursor]
            frame.cursor += 1
            token = self._apply(self.tasks[frame.task_id], day, period)
            if token is None:
                continue
            frame.token = token
            self.stats.nodes_visited += 1
            if self.pending_sessions == 0:
                return self._finish()

            child = self._expand()
            if child is not None:
                stack.append(child)
                self.stats.max_depth = max(self.stats.max_depth, len(stack))

        raise self._infeasible()

    def _finish(self) -> SearchStats:
        self.stats.runtime_ms = int((perf_counter() - self._started) * 1000)
        logger.info(
            "Search complete nodes=%s backtracks=%s depth=%s runtime_ms=%s",
            self.stats.nodes_visited,
            self.stats.backtracks,
            self.stats.max_depth,
            self.stats.runtime_ms,
        )
        return self.stats

    def _elapsed_ms(self) -> int:
        return int((perf_counter() - self._started) * 1000)

    def _check_limits(self) -> None:
        reason = None
        if self.cancel_event is not None and self.cancel_event.is_set():
            reason = "cancelled"
        elif self.node_budget is not None and self.stats.nodes_visited >= self.node_budget:
            reason = "node_budget"
        elif self.time_limit_seconds is not None and perf_counter() - self._started > self.time_limit_seconds:
            reason = "time_limit"
        if reason is not None:
            logger.warning(
                "Search aborted reason=%s nodes=%s pending_sessions=%s",
                reason,
                self.stats.nodes_visited,
                self.pending_sessions,
            )
            raise SearchAborted(reason, self.stats.nodes_visited, self._elapsed_ms())

    def candidates(self, task: SessionTask) -> list[tuple[str, int]]:
        grid = self.grids[task.section_index]
        faculty_id = task.requirement.faculty_id
        after = self.last_order[task.task_id]
        result: list[tuple[str, int]] = []
        for order, (day, period) in enumerate(grid.slots()):
            if order <= after:
                continue
            if not grid.block_fits(day, period, task.block_size):
                continue
            if all(self.index.is_free(day, period + offset, faculty_id) for offset in range(task.block_size)):
                result.append((day, period))
        return result

    def _expand(self) -> SearchFrame | None:
        best: SessionTask | None = None
        best_candidates: list[tuple[str, int]] = []
        section_demand: Counter[int] = Counter()
        faculty_demand: Counter[str] = Counter()
        faculty_tasks: dict[str, list[SessionTask]] = defaultdict(list)

        for task in self.tasks:
            remaining = self.remaining[task.task_id]
            if remaining == 0:
                continue
            options = self.candidates(task)
            if len(options) < remaining:
                self._record_blocker(
                    ("requirement", str(task.task_id)),
                    f"{task.describe()} has {len(options)} usable slot(s) for {remaining} remaining session(s)",
                    {
                        "section": task.section_key,
                        "subject": task.requirement.subject_name,
                        "faculty_id": task.requirement.faculty_id,
                        "remaining_sessions": remaining,
                        "usable_slots": len(options),
                    },
                )
                return None
            if best is None or len(options) < len(best_candidates):
                best = task
                best_candidates = options
            periods = remaining * task.block_size
            section_demand[task.section_index] += periods
            faculty_demand[task.requirement.faculty_id] += periods
            faculty_tasks[task.requirement.faculty_id].append(task)

        for section_index, demand in section_demand.items():
            available = len(self.grids[section_index].open_slots())
            if demand > available:
                section_key = self.sections[section_index].key
                self._record_blocker(
                    ("section", section_key),
                    f"{section_key} needs {demand} more period(s) but only {available} are open",
                    {"section": section_key, "required_periods": demand, "open_periods": available},
                )
                return None

        for faculty_id, demand in faculty_demand.items():
            free_slots: set[tuple[str, int]] = set()
            for section_index in {task.section_index for task in faculty_tasks[faculty_id]}:
                for day, period in self.grids[section_index].open_slots():
                    if self.index.is_free(day, period, faculty_id):
                        free_slots.add((day, period))
            if demand > len(free_slots):
                self._record_blocker(
                    ("faculty", faculty_id),
                    f"faculty {faculty_id} needs {demand} more period(s) but only {len(free_slots)} slot(s) are free",
                    {"faculty_id": faculty_id, "required_periods": demand, "free_slots": len(free_slots)},
                )
                return None

        if best is None:
            return None
        return SearchFrame(task_id=best.task_id, candidates=best_candidates)

    def _entry_for(self, task: SessionTask) -> Entry:
        requirement = task.requirement
        if not requirement.is_lab:
            return Entry.lecture(requirement.subject_name, requirement.faculty_id)
        week_offset = task.sessions - self.remaining[task.task_id]
        if task.rotation is None:
            raise ValueError(f"No rotation plan for lab {task.describe()}")
        return Entry.lab_session(requirement.subject_name, requirement.faculty_id, task.rotation.label(week_offset))

    def _apply(self, task: SessionTask, day: str, period: int) -> Transaction | None:
        grid = self.grids[task.section_index]
        faculty_id = task.requirement.faculty_id
        entry = self._entry_for(task)
        placed: list[tuple[str, int]] = []
        reserved: list[tuple[str, int]] = []
        try:
            for offset in range(task.block_size):
                cell = (day, period + offset)
                grid.place(*cell, entry)
                placed.append(cell)
                self.index.reserve(*cell, faculty_id, task.section_key)
                reserved.append(cell)
        except (CellOccupied, FacultyConflict):
            for cell in reserved:
                self.index.release(*cell, faculty_id)
            for cell in placed:
                grid.remove(*cell)
            return None

        token = Transaction(
            task_id=task.task_id,
            cells=tuple(placed),
            previous_last_order=self.last_order[task.task_id],
        )
        self.remaining[task.task_id] -= 1
        self.last_order[task.task_id] = grid.shape.slot_order(day, period)
        self.pending_sessions -= 1
        return token

    def _rollback(self, token: Transaction) -> None:
        task = self.tasks[token.task_id]
        grid = self.grids[task.section_index]
        for cell in reversed(token.cells):
            self.index.release(*cell, task.requirement.faculty_id)
            grid.remove(*cell)
        self.remaining[task.task_id] += 1
        self.last_order[task.task_id] = token.previous_last_order
        self.pending_sessions += 1

    def _record_blocker(self, key: tuple[str, str], reason: str, details: dict) -> None:
        self._blockers[key] += 1
        self._blocker_reasons.setdefault(key, (reason, details))

    def _infeasible(self) -> Infeasible:
        elapsed = self._elapsed_ms()
        if self._blockers:
            key, hits = self._blockers.most_common(1)[0]
            reason, details = self._blocker_reasons[key]
            details = {**details, "kind": key[0], "dead_ends": hits}
        else:
            reason, details = "no candidate ordering satisfies every requirement", {"kind": "exhausted"}
        details["nodes_visited"] = self.stats.nodes_visited
        details["elapsed_ms"] = elapsed
        logger.warning("Search infeasible nodes=%s reason=%s", self.stats.nodes_visited, reason)
        return Infeasible(reason, details=details)
