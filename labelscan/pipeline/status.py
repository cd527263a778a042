"""Read-only telemetry about which stage each record is currently attempting."""

from collections.abc import Callable

from labelscan.logging.logger import Log
from labelscan.records.models import Stage

StageListener = Callable[[str, Stage | None], None]

STAGE_LABELS = {
    Stage.UPLOADING: "Uploading image...",
    Stage.EXTRACTING: "Extracting text from image...",
    Stage.ANALYZING: "Analyzing ingredients...",
}


class StageStatus:
    """Observable map of record id to the stage currently being attempted.

    Listeners are called with ``(record_id, stage)``; ``stage`` is None once
    the record has no stage in flight. Listener errors are logged and never
    reach the pipeline.
    """

    def __init__(self) -> None:
        self._current: dict[str, Stage] = {}
        self._listeners: list[StageListener] = []

    def get(self, record_id: str) -> Stage | None:
        return self._current.get(record_id)

    def active(self) -> dict[str, Stage]:
        return dict(self._current)

    def subscribe(self, listener: StageListener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, record_id: str, stage: Stage | None) -> None:
        if stage is not None and not stage.is_in_flight:
            stage = None
        if self._current.get(record_id) is stage:
            return
        if stage is None:
            del self._current[record_id]
        else:
            self._current[record_id] = stage
        for listener in list(self._listeners):
            try:
                listener(record_id, stage)
            except Exception as exc:  # noqa: BLE001
                Log.warning(f"Stage listener failed: {exc}", record_id=record_id)


class StatusNotifier:
    """Turns stage changes into a transient status line ("Uploading image...").

    Messages are tracked per record; the line shows the most recently started
    stage and hides only once no record has a stage in flight. ``render``
    receives the line whenever it changes, or an empty string to hide it.
    """

    def __init__(self, render: Callable[[str], None] | None = None) -> None:
        self._render = render
        self._messages: dict[str, str] = {}

    @property
    def message(self) -> str:
        return next(reversed(self._messages.values()), "")

    @property
    def is_visible(self) -> bool:
        return bool(self.message)

    def attach(self, status: StageStatus) -> Callable[[], None]:
        return status.subscribe(self.on_stage)

    def on_stage(self, record_id: str, stage: Stage | None) -> None:
        shown = self.message
        self._messages.pop(record_id, None)
        label = STAGE_LABELS.get(stage) if stage is not None else None
        if label:
            self._messages[record_id] = label
            Log.info(label, record_id=record_id)
        if self._render is not None and self.message != shown:
            self._render(self.message)
