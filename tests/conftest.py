"""
Shared fixtures for the deep-search test suite.

Provides test fixtures for:
- An in-memory FileService with read accounting
- Temporary workspace creation on disk
- Event recording for workflow and coordinator runs
"""

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest

from deep_search.config import SearchConfig
from deep_search.errors import FileReadError, FileTooLargeError
from deep_search.workflow.events import WorkflowEvent
from deep_search.workflow.search_workflow import SearchWorkflow


class FakeFileService:
    """In-memory FileService.

    ``too_large`` files raise FileTooLargeError unless the size limit is
    ignored; ``failing`` files raise FileReadError on every read.
    """

    def __init__(
        self,
        files: dict[str, str] | None = None,
        too_large: set[str] | None = None,
        failing: set[str] | None = None,
    ):
        self.files = dict(files or {})
        self.too_large = set(too_large or ())
        self.failing = set(failing or ())
        self.reads: list[str] = []
        self.lookups: list[tuple[str | None, str | None]] = []
        self.lookup_error: Exception | None = None

    async def find_files(self, include: str | None, exclude: str | None) -> list[str]:
        self.lookups.append((include, exclude))
        await asyncio.sleep(0)
        if self.lookup_error is not None:
            raise self.lookup_error
        return sorted(self.files)

    async def read_file(self, file_id: str, ignore_size_limit: bool = False) -> str:
        await asyncio.sleep(0)
        if file_id in self.failing:
            raise FileReadError(file_id, "permission denied")
        if file_id in self.too_large and not ignore_size_limit:
            raise FileTooLargeError(file_id, 2 * 1048576, 1048576)
        self.reads.append(file_id)
        return self.files[file_id]

    def read_count(self, file_id: str) -> int:
        return self.reads.count(file_id)


class EventRecorder:
    """Listener that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: list[WorkflowEvent] = []

    def __call__(self, event: WorkflowEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> list:
        return [event for event in self.events if isinstance(event, event_type)]

    @property
    def kinds(self) -> list[str]:
        return [event.kind for event in self.events]

    def clear(self) -> None:
        self.events.clear()


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the event loop until ``predicate`` holds."""

    async def poll() -> None:
        while not predicate():
            await asyncio.sleep(0)

    await asyncio.wait_for(poll(), timeout=timeout)


@pytest.fixture()
def fake_service() -> FakeFileService:
    return FakeFileService(
        {
            "/ws/a.txt": "hello world\nfoo bar\n",
            "/ws/b.txt": "nothing here\n",
            "/ws/c.txt": "Hello again\nhello hello\n",
        }
    )


@pytest.fixture()
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture()
def make_workflow(recorder):
    """Factory for a SearchWorkflow over a FakeFileService with recording."""

    def factory(service: FakeFileService, **config_overrides) -> SearchWorkflow:
        config = SearchConfig(**config_overrides)
        workflow = SearchWorkflow(service, config=config)
        workflow.subscribe(recorder)
        return workflow

    return factory


@pytest.fixture()
def workspace(tmp_path_factory) -> Path:
    """Create a temporary workspace with a few text files and an ignored dir."""
    root = tmp_path_factory.mktemp("workspace")

    (root / "src").mkdir()
    (root / "src" / "app.py").write_text(
        'def greet(name):\n    return f"hello {name}"\n\n\ndef main():\n    greet("world")\n'
    )
    (root / "src" / "util.py").write_text("HELLO = 'Hello'\n")
    (root / "README.md").write_text("# Demo\n\nSay hello to the app.\n")
    (root / "notes.txt").write_text("nothing to see\n")

    (root / "build").mkdir()
    (root / "build" / "out.txt").write_text("hello from build output\n")
    (root / ".gitignore").write_text("build/\n")

    (root / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\nhello")

    return root
