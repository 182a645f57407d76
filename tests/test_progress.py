import pytest

from exrview.progress import NoopProgress, ProgressSink, UiProgress


class FakeUi:
    def __init__(self):
        self.progress_value = 0.0
        self.status_text = ""

    def set_progress_value(self, value):
        self.progress_value = value

    def set_status_text(self, text):
        self.status_text = text


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class Scheduler:
    def __init__(self):
        self.calls = []

    def __call__(self, delay, callback):
        self.calls.append((delay, callback))


@pytest.fixture
def setup():
    ui = FakeUi()
    clock = FakeClock()
    scheduler = Scheduler()
    progress = UiProgress(ui, clock=clock, schedule=scheduler)
    return ui, clock, scheduler, progress


def test_start_indeterminate(setup):
    ui, _, _, progress = setup
    progress.start_indeterminate("Opening EXR file...")
    assert ui.progress_value == -1.0
    assert ui.status_text == "Opening EXR file..."


def test_set_clamps_and_forces(setup):
    ui, _, _, progress = setup
    progress.set(1.5)
    assert ui.progress_value == 1.0
    progress.set(-2.0)
    assert ui.progress_value == 0.0


def test_message_forces_update(setup):
    ui, _, _, progress = setup
    progress.set(0.3, "step")
    progress.set(0.45, "Cache created, processing...")
    assert ui.progress_value == 0.45
    assert ui.status_text == "Cache created, processing..."


def test_throttling(setup):
    ui, clock, _, progress = setup
    progress.set(0.5)
    assert ui.progress_value == 0.5
    clock.now = 0.01
    progress.set(0.6)
    assert ui.progress_value == 0.5
    clock.now = 0.2
    progress.set(0.7)
    assert ui.progress_value == 0.7


def test_finish_schedules_reset(setup):
    ui, _, scheduler, progress = setup
    progress.finish("Ready")
    assert ui.progress_value == 1.0
    assert ui.status_text == "Ready"
    assert len(scheduler.calls) == 1
    delay, callback = scheduler.calls[0]
    assert delay == UiProgress.RESET_DELAY
    callback()
    assert ui.progress_value == 0.0


def test_reset(setup):
    ui, _, _, progress = setup
    progress.set(0.9, "x")
    progress.reset()
    assert ui.progress_value == 0.0


def test_gone_ui_schedules_nothing():
    ui = FakeUi()
    scheduler = Scheduler()
    progress = UiProgress(ui, schedule=scheduler)
    del ui
    progress.finish("Ready")
    assert scheduler.calls == []


def test_sink_is_abstract():
    with pytest.raises(TypeError):
        ProgressSink()


def test_noop_is_a_sink_that_returns_nothing():
    sink = NoopProgress()
    results = [sink.start_indeterminate("a"), sink.set(0.5, "b"), sink.finish("c"), sink.reset()]
    assert results == [None, None, None, None]
    assert isinstance(sink, ProgressSink)