"""Tests for ProjectManager (step progression and reconciliation)."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock, patch

from homeassistant.core import HomeAssistant
import pytest

from custom_components.momentum import const
from custom_components.momentum.exceptions import StorageWriteError
from custom_components.momentum.helpers.write_helpers import async_delete_with_item
from custom_components.momentum.managers.project_manager import ProjectManager
from tests.helpers import step_payloads


@pytest.fixture
def manager(hass: HomeAssistant, mock_coordinator: MagicMock) -> ProjectManager:
    """ProjectManager wired to a real store."""
    return ProjectManager(hass, mock_coordinator)


async def get_steps(manager: ProjectManager, project_id: str) -> list[dict[str, Any]]:
    """Steps of a project in order."""
    steps = await manager.store.async_query(
        const.DATA_PROJECT_STEPS, filters={const.FIELD_PROJECT_ID: project_id}
    )
    return sorted(steps, key=lambda step: step[const.FIELD_ORDER_NUMBER])


async def complete_task(
    manager: ProjectManager, task_id: str, project_id: str
) -> dict[str, Any] | None:
    """Mark a task completed and run the step follow-up."""
    await manager.store.async_update(
        const.DATA_TASKS, task_id, {const.FIELD_STATUS: const.TASK_STATUS_COMPLETED}
    )
    return await manager.async_handle_task_completion(task_id, project_id)


async def test_create_converts_first_step(manager: ProjectManager) -> None:
    """Only the first step gets a task; it starts on deck."""
    project = await manager.async_create_project(
        "Paint room", step_payloads("Buy paint", "Tape edges", "Paint")
    )
    project_id = project[const.FIELD_ID]

    steps = await get_steps(manager, project_id)
    assert [s[const.FIELD_IS_CONVERTED] for s in steps] == [True, False, False]
    assert all(s[const.FIELD_STATUS] == const.STEP_STATUS_PENDING for s in steps)
    assert project[const.FIELD_CURRENT_STEP] == steps[0][const.FIELD_ID]
    assert project[const.FIELD_PROGRESS] == 0

    task = await manager.store.async_get(
        const.DATA_TASKS, steps[0][const.FIELD_CONVERTED_TASK_ID]
    )
    assert task[const.FIELD_TITLE] == "Buy paint"
    assert task[const.FIELD_STATUS] == const.TASK_STATUS_ON_DECK
    assert task[const.FIELD_PROJECT_ID] == project_id


async def test_three_step_progression(manager: ProjectManager) -> None:
    """Completing each step advances the frontier until the project completes."""
    project = await manager.async_create_project("Trip", step_payloads("A", "B", "C"))
    project_id = project[const.FIELD_ID]

    for expected_progress in (33, 67):
        steps = await get_steps(manager, project_id)
        current = next(
            s
            for s in steps
            if s[const.FIELD_IS_CONVERTED]
            and s[const.FIELD_STATUS] != const.STEP_STATUS_COMPLETED
        )
        project = await complete_task(
            manager, current[const.FIELD_CONVERTED_TASK_ID], project_id
        )
        assert project[const.FIELD_PROGRESS] == expected_progress
        assert project[const.FIELD_STATUS] == const.PROJECT_STATUS_ACTIVE

    last = (await get_steps(manager, project_id))[-1]
    assert last[const.FIELD_IS_CONVERTED]
    project = await complete_task(
        manager, last[const.FIELD_CONVERTED_TASK_ID], project_id
    )

    assert project[const.FIELD_STATUS] == const.PROJECT_STATUS_COMPLETED
    assert project[const.FIELD_PROGRESS] == 100
    assert project[const.FIELD_COMPLETED_AT]


async def test_completion_for_unknown_task(manager: ProjectManager) -> None:
    """A task that no step owns is ignored."""
    project = await manager.async_create_project("Trip", step_payloads("A"))

    assert (
        await manager.async_handle_task_completion("unknown", project[const.FIELD_ID])
        is None
    )


async def test_deleted_task_is_replaced(manager: ProjectManager) -> None:
    """Deleting a step's task unlinks it and the sync converts it again."""
    project = await manager.async_create_project("Trip", step_payloads("A", "B"))
    project_id = project[const.FIELD_ID]
    first = (await get_steps(manager, project_id))[0]
    old_task_id = first[const.FIELD_CONVERTED_TASK_ID]

    await async_delete_with_item(manager.store, const.DATA_TASKS, old_task_id)
    step = await manager.async_handle_task_deletion(old_task_id)

    assert step[const.FIELD_IS_CONVERTED]
    assert step[const.FIELD_CONVERTED_TASK_ID] not in (None, old_task_id)
    assert await manager.store.async_exists(
        const.DATA_TASKS, step[const.FIELD_CONVERTED_TASK_ID]
    )


async def test_deleted_task_on_hold_not_replaced(manager: ProjectManager) -> None:
    """On-hold projects only unlink; resuming fills the frontier again."""
    project = await manager.async_create_project("Trip", step_payloads("A", "B"))
    project_id = project[const.FIELD_ID]
    task_id = (await get_steps(manager, project_id))[0][const.FIELD_CONVERTED_TASK_ID]
    await manager.async_set_project_status(project_id, const.PROJECT_STATUS_ON_HOLD)

    await async_delete_with_item(manager.store, const.DATA_TASKS, task_id)
    step = await manager.async_handle_task_deletion(task_id)

    assert not step[const.FIELD_IS_CONVERTED]
    assert await manager.store.async_query(const.DATA_TASKS) == []

    await manager.async_set_project_status(project_id, const.PROJECT_STATUS_ACTIVE)

    first = (await get_steps(manager, project_id))[0]
    assert first[const.FIELD_IS_CONVERTED]
    assert len(await manager.store.async_query(const.DATA_TASKS)) == 1


async def test_sync_completes_step_when_task_completed(
    manager: ProjectManager,
) -> None:
    """Task completed outside the normal flow: the step catches up."""
    project = await manager.async_create_project("Trip", step_payloads("A", "B"))
    project_id = project[const.FIELD_ID]
    first = (await get_steps(manager, project_id))[0]
    await manager.store.async_update(
        const.DATA_TASKS,
        first[const.FIELD_CONVERTED_TASK_ID],
        {const.FIELD_STATUS: const.TASK_STATUS_COMPLETED},
    )

    project = await manager.async_sync_project_steps(project_id)

    steps = await get_steps(manager, project_id)
    assert steps[0][const.FIELD_STATUS] == const.STEP_STATUS_COMPLETED
    assert steps[1][const.FIELD_IS_CONVERTED]
    assert project[const.FIELD_PROGRESS] == 50


async def test_sync_completes_task_when_step_completed(
    manager: ProjectManager,
) -> None:
    """Step completed but its task still open: the task catches up."""
    project = await manager.async_create_project("Trip", step_payloads("A", "B"))
    project_id = project[const.FIELD_ID]
    first = (await get_steps(manager, project_id))[0]
    await manager.store.async_update(
        const.DATA_PROJECT_STEPS,
        first[const.FIELD_ID],
        {const.FIELD_STATUS: const.STEP_STATUS_COMPLETED},
    )

    await manager.async_sync_project_steps(project_id)

    task = await manager.store.async_get(
        const.DATA_TASKS, first[const.FIELD_CONVERTED_TASK_ID]
    )
    assert task[const.FIELD_STATUS] == const.TASK_STATUS_COMPLETED
    assert task[const.FIELD_COMPLETED_AT]


async def test_sync_resets_dangling_reference(manager: ProjectManager) -> None:
    """A step pointing at a vanished task is reset and converted again."""
    project = await manager.async_create_project("Trip", step_payloads("A"))
    project_id = project[const.FIELD_ID]
    first = (await get_steps(manager, project_id))[0]
    await manager.store.async_update(
        const.DATA_PROJECT_STEPS,
        first[const.FIELD_ID],
        {const.FIELD_STATUS: const.STEP_STATUS_IN_PROGRESS},
    )
    await async_delete_with_item(
        manager.store, const.DATA_TASKS, first[const.FIELD_CONVERTED_TASK_ID]
    )

    await manager.async_sync_project_steps(project_id)

    step = (await get_steps(manager, project_id))[0]
    assert step[const.FIELD_STATUS] == const.STEP_STATUS_PENDING
    assert step[const.FIELD_IS_CONVERTED]
    assert step[const.FIELD_CONVERTED_TASK_ID] != first[const.FIELD_CONVERTED_TASK_ID]


async def test_uncomplete_reopens_project(manager: ProjectManager) -> None:
    """Uncompleting the last step's task reopens the completed project."""
    project = await manager.async_create_project("Trip", step_payloads("A"))
    project_id = project[const.FIELD_ID]
    task_id = (await get_steps(manager, project_id))[0][const.FIELD_CONVERTED_TASK_ID]
    await complete_task(manager, task_id, project_id)

    step = await manager.async_handle_task_uncomplete(task_id)

    assert step[const.FIELD_STATUS] == const.STEP_STATUS_IN_PROGRESS
    project = await manager.store.async_get(const.DATA_PROJECTS, project_id)
    assert project[const.FIELD_STATUS] == const.PROJECT_STATUS_ACTIVE
    assert project[const.FIELD_PROGRESS] == 0
    assert project[const.FIELD_COMPLETED_AT] is None


async def test_uncomplete_keeps_downstream_tasks(manager: ProjectManager) -> None:
    """Forward progress is not undone when an earlier step reopens."""
    project = await manager.async_create_project("Trip", step_payloads("A", "B"))
    project_id = project[const.FIELD_ID]
    task_id = (await get_steps(manager, project_id))[0][const.FIELD_CONVERTED_TASK_ID]
    await complete_task(manager, task_id, project_id)

    await manager.async_handle_task_uncomplete(task_id)

    steps = await get_steps(manager, project_id)
    assert steps[1][const.FIELD_IS_CONVERTED]
    assert len(await manager.async_get_project_tasks(project_id)) == 2


async def test_get_project_tasks(manager: ProjectManager) -> None:
    """Converted steps are returned joined with their tasks."""
    project = await manager.async_create_project("Trip", step_payloads("A", "B"))

    pairs = await manager.async_get_project_tasks(project[const.FIELD_ID])

    assert len(pairs) == 1
    assert pairs[0]["task"][const.FIELD_ID] == (
        pairs[0]["step"][const.FIELD_CONVERTED_TASK_ID]
    )


async def test_failed_conversion_rolls_back(manager: ProjectManager) -> None:
    """When the last write fails, the task, its item and the link are undone."""
    project = await manager.async_create_project(
        "Trip", step_payloads("A"), status=const.PROJECT_STATUS_ON_HOLD
    )
    project_id = project[const.FIELD_ID]
    step = (await get_steps(manager, project_id))[0]
    original_update = manager.store.async_update

    async def fail_projects(
        bucket: str, record_id: str, changes: dict[str, Any]
    ) -> dict[str, Any]:
        if bucket == const.DATA_PROJECTS:
            raise StorageWriteError("update", bucket, "disk full")
        return await original_update(bucket, record_id, changes)

    with (
        patch.object(manager.store, "async_update", side_effect=fail_projects),
        pytest.raises(StorageWriteError),
    ):
        await manager.async_create_task_for_step(step, project_id)

    assert await manager.store.async_query(const.DATA_TASKS) == []
    items = await manager.store.async_query(const.DATA_ITEMS)
    assert [i[const.FIELD_ITEM_TYPE] for i in items] == [const.ITEM_TYPE_PROJECT]
    step = (await get_steps(manager, project_id))[0]
    assert not step[const.FIELD_IS_CONVERTED]
    assert step[const.FIELD_CONVERTED_TASK_ID] is None


async def test_create_task_for_step_is_idempotent(manager: ProjectManager) -> None:
    """Converting an already converted step returns its existing task."""
    project = await manager.async_create_project("Trip", step_payloads("A"))
    step = (await get_steps(manager, project[const.FIELD_ID]))[0]

    task_id = await manager.async_create_task_for_step(step, project[const.FIELD_ID])

    assert task_id == step[const.FIELD_CONVERTED_TASK_ID]
    assert len(await manager.store.async_query(const.DATA_TASKS)) == 1
