"""Dialog coordinator — synchronises triggering actions with native dialogs.

A click that opens ``alert``/``confirm``/``prompt`` may not resolve until the
dialog is handled, so the dialog wait is always armed before the action is
issued and the two run concurrently. The dialog listener is a scoped
registration: it is attached immediately before the trigger and detached on
every exit path.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from playwright.async_api import Dialog, Page

from src.models.config import ExecutionConfig
from src.models.test_plan import DialogStep

from .action_runner import perform_with_navigation
from .errors import (
    DialogCountMismatch,
    DialogKindMismatch,
    DialogNotTriggered,
    UnexpectedDialog,
)

logger = logging.getLogger(__name__)

Trigger = Callable[[], Awaitable[None]]
CaptureFn = Callable[[str], Awaitable[str]]


class DialogListener:
    """Scoped ``page.on("dialog")`` registration."""

    def __init__(self, page: Page, handler: Callable[[Dialog], None]):
        self.page = page
        self.handler = handler

    def __enter__(self) -> "DialogListener":
        self.page.on("dialog", self.handler)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            self.page.remove_listener("dialog", self.handler)
        except Exception as e:
            logger.warning("Failed to deregister dialog listener: %s", e)
        return False


def _log_orphaned_action(task: asyncio.Future) -> None:
    """Retrieve the outcome of a trigger nobody awaits any more."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Triggering action finished with error after dialog handling: %s", exc)


async def _settle(task: asyncio.Future) -> Optional[BaseException]:
    """Await ``task`` and return its exception instead of raising it."""
    try:
        await task
    except Exception as e:
        return e
    return None


async def _no_trigger() -> None:
    return None


class DialogCoordinator:
    """Runs trigger+dialog units against one page."""

    def __init__(
        self,
        page: Page,
        config: ExecutionConfig,
        capture: CaptureFn | None = None,
    ):
        self.page = page
        self.config = config
        self.capture = capture
        self._remaining = 0  # dialogs the active scope still expects
        self._claimed: list[Dialog] = []

    @property
    def awaiting_dialog(self) -> bool:
        return self._remaining > 0

    def owns(self, dialog: Dialog) -> bool:
        """Whether ``dialog`` was taken by one of this coordinator's waits."""
        return any(d is dialog for d in self._claimed)

    # ------------------------------------------------------------------
    # Single dialog
    # ------------------------------------------------------------------

    async def run_with_dialog(
        self,
        trigger: Trigger,
        expectation: DialogStep,
        context: str = "",
    ) -> list[str]:
        """Issue ``trigger`` and handle the one dialog it is expected to open.

        Returns screenshot paths captured for the dialog (possibly empty).
        """
        loop = asyncio.get_running_loop()
        observed: asyncio.Future = loop.create_future()
        expected = expectation.expected_kind or "any"
        timeout_ms = self.config.action_timeout

        def _on_dialog(dialog: Dialog) -> None:
            if self._remaining > 0 and not observed.done():
                self._remaining -= 1
                self._claimed.append(dialog)
                observed.set_result(dialog)

        logger.debug("Arming dialog listener (%s dialog)%s", expected,
                     f" for {context}" if context else "")
        self._remaining = 1
        screenshots: list[str] = []
        with DialogListener(self.page, _on_dialog):
            action_task = asyncio.ensure_future(trigger())
            try:
                dialog = await self._await_first_dialog(observed, action_task, timeout_ms)
                if dialog is None:
                    self._remaining = 0
                    action_error = await _settle(action_task)
                    if action_error is not None:
                        raise DialogNotTriggered(
                            f"Action failed and expected {expected} dialog did not appear: "
                            f"{action_error}"
                        ) from action_error
                    raise DialogNotTriggered(
                        f"Expected {expected} dialog did not appear within {timeout_ms}ms"
                    )

                logger.info("Dialog appeared: %s (%s)", dialog.type, dialog.message)
                self._check_kind(dialog, expectation)
                await self._resolve(dialog, expectation)
            finally:
                self._remaining = 0
                action_task.add_done_callback(_log_orphaned_action)

        screenshots.extend(await self._capture(f"dialog-{dialog.type}"))
        return screenshots

    async def handle_dialog(self, expectation: DialogStep, context: str = "") -> list[str]:
        """Wait for a dialog that no declared action triggers and handle it."""
        return await self.run_with_dialog(_no_trigger, expectation, context)

    async def _await_first_dialog(
        self,
        observed: asyncio.Future,
        action_task: asyncio.Future,
        timeout_ms: int,
    ) -> Optional[Dialog]:
        """Wait until the dialog is observed, the action fails, or time runs out.

        An action that completes cleanly does not end the wait: the dialog may
        still be opened asynchronously by the page.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_ms / 1000
        waiting_on = {observed, action_task}
        while not observed.done():
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            done, _ = await asyncio.wait(
                waiting_on, timeout=remaining, return_when=asyncio.FIRST_COMPLETED,
            )
            if observed in done:
                break
            if action_task in done:
                if action_task.cancelled() or action_task.exception() is not None:
                    break
                waiting_on = {observed}
        if observed.done() and not observed.cancelled():
            return observed.result()
        observed.cancel()
        return None

    # ------------------------------------------------------------------
    # Sequential dialogs
    # ------------------------------------------------------------------

    async def run_with_dialogs(
        self,
        trigger: Trigger,
        expectations: list[DialogStep],
        context: str = "",
    ) -> list[str]:
        """Issue ``trigger`` and consume an ordered sequence of dialogs."""
        if len(expectations) == 1:
            return await self.run_with_dialog(trigger, expectations[0], context)

        total = len(expectations)
        queue: asyncio.Queue = asyncio.Queue()
        timeout_ms = self.config.action_timeout

        def _on_dialog(dialog: Dialog) -> None:
            if self._remaining > 0:
                self._remaining -= 1
                self._claimed.append(dialog)
                queue.put_nowait(dialog)

        logger.debug("Arming dialog listener for %d sequential dialogs%s", total,
                     f" for {context}" if context else "")
        self._remaining = total
        screenshots: list[str] = []
        with DialogListener(self.page, _on_dialog):
            action_task = asyncio.ensure_future(trigger())
            try:
                for index, expectation in enumerate(expectations, 1):
                    dialog = await self._next_dialog(queue, action_task, timeout_ms)
                    if dialog is None:
                        self._remaining = 0
                        message = f"Expected {total} dialogs but observed {index - 1}"
                        action_error = await _settle(action_task) if action_task.done() else None
                        if action_error is not None:
                            raise DialogCountMismatch(
                                f"{message}; action failed: {action_error}"
                            ) from action_error
                        raise DialogCountMismatch(message)

                    logger.info("Dialog %d/%d appeared: %s (%s)",
                                index, total, dialog.type, dialog.message)
                    self._check_kind(dialog, expectation, label=f"Dialog {index} ")
                    await self._resolve(dialog, expectation)
                    screenshots.extend(await self._capture(f"dialog-{index}-{dialog.type}"))
            finally:
                self._remaining = 0
                action_task.add_done_callback(_log_orphaned_action)

        return screenshots

    async def _next_dialog(
        self,
        queue: asyncio.Queue,
        action_task: asyncio.Future,
        timeout_ms: int,
    ) -> Optional[Dialog]:
        if not queue.empty():
            return queue.get_nowait()
        if action_task.done():
            return None

        getter = asyncio.ensure_future(queue.get())
        try:
            done, _ = await asyncio.wait(
                {getter, action_task},
                timeout=timeout_ms / 1000,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if getter in done:
                return getter.result()
            if not queue.empty():
                return queue.get_nowait()
            return None
        finally:
            if not getter.done():
                getter.cancel()

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_kind(dialog: Dialog, expectation: DialogStep, label: str = "Dialog ") -> None:
        # A mismatched dialog is left open: dismissing it could hide a real defect.
        if expectation.expected_kind and dialog.type != expectation.expected_kind:
            raise DialogKindMismatch(
                f'{label}type mismatch: expected "{expectation.expected_kind}" '
                f'but got "{dialog.type}"'
            )

    async def _resolve(self, dialog: Dialog, expectation: DialogStep) -> None:
        async def _do() -> None:
            if expectation.action == "accept":
                if dialog.type == "prompt" and expectation.prompt_value is not None:
                    await dialog.accept(expectation.prompt_value)
                else:
                    await dialog.accept()
                logger.info("Dialog accepted")
            else:
                await dialog.dismiss()
                logger.info("Dialog dismissed")

        await perform_with_navigation(
            self.page, _do,
            expectation.wait_for_navigation, expectation.post_navigation_wait,
            self.config,
        )

    async def _capture(self, stage: str) -> list[str]:
        if self.capture is None:
            return []
        path = await self.capture(stage)
        return [path] if path else []


class UnexpectedDialogGuard:
    """Test-wide listener that records dialogs no declared step expects.

    Such dialogs are dismissed so the page does not stay blocked, and the
    test is failed through ``raise_if_triggered``.
    """

    def __init__(self, page: Page, coordinator: DialogCoordinator):
        self.coordinator = coordinator
        self.seen: list[str] = []
        self._listener = DialogListener(page, self._on_dialog)

    def __enter__(self) -> "UnexpectedDialogGuard":
        self._listener.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        return self._listener.__exit__(exc_type, exc, tb)

    def _on_dialog(self, dialog: Dialog) -> None:
        if self.coordinator.awaiting_dialog or self.coordinator.owns(dialog):
            return
        self.seen.append(f"{dialog.type} ('{dialog.message}')")
        logger.warning("Unexpected %s dialog outside a dialog step: %s",
                       dialog.type, dialog.message)
        task = asyncio.ensure_future(dialog.dismiss())
        task.add_done_callback(_log_orphaned_action)

    def raise_if_triggered(self) -> None:
        if self.seen:
            raise UnexpectedDialog(
                f"Unexpected {self.seen[0]} dialog appeared outside a declared dialog step"
            )
