"""
Integration tests against the real filesystem observer
"""
import asyncio
import errno
import os
import sys
import time

import pytest

from xmlwatcher.errors import EventSourceError, WatchDirectoryError
from xmlwatcher.watchdog.events import EventType, FileEvent
from xmlwatcher.watchdog.watcher import DirectoryWatcher


async def wait_until(predicate, timeout=5.0, interval=0.05):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        await asyncio.sleep(interval)
    return predicate()


def test_missing_root_is_fatal(tmp_path):
    watcher = DirectoryWatcher(tmp_path / "nope")

    with pytest.raises(WatchDirectoryError):
        asyncio.run(watcher.start())
    assert not watcher.is_watching


def test_events_before_start_is_an_error(tmp_path):
    async def run():
        async for _ in DirectoryWatcher(tmp_path).events():
            pass

    with pytest.raises(RuntimeError):
        asyncio.run(run())


def test_reports_created_files_and_new_subdirectories(tmp_path):
    async def run():
        watcher = DirectoryWatcher(tmp_path, health_interval=0.1)
        await watcher.start()
        seen = []

        async def collect():
            async for event in watcher.events():
                seen.append(event)

        task = asyncio.create_task(collect())
        await asyncio.sleep(0.2)

        (tmp_path / "a.xml").write_text("<a/>")
        sub = tmp_path / "later"
        sub.mkdir()
        await asyncio.sleep(0.5)
        (sub / "b.xml").write_text("<b/>")

        expected = {tmp_path / "a.xml", sub / "b.xml"}
        found = await wait_until(lambda: expected <= {e.path for e in seen})

        await watcher.stop()
        await asyncio.wait_for(task, timeout=5)
        return found, seen

    found, seen = asyncio.run(run())

    assert found
    assert all(isinstance(e, FileEvent) for e in seen)
    assert (tmp_path / "later") not in {e.path for e in seen}


def test_move_into_tree_is_reported(tmp_path):
    outside = tmp_path / "outside"
    watched = tmp_path / "watched"
    outside.mkdir()
    watched.mkdir()
    source = outside / "a.xml"
    source.write_text("<a/>")

    async def run():
        watcher = DirectoryWatcher(watched, health_interval=0.1)
        await watcher.start()
        seen = []

        async def collect():
            async for event in watcher.events():
                seen.append(event)

        task = asyncio.create_task(collect())
        await asyncio.sleep(0.2)
        source.rename(watched / "a.xml")

        found = await wait_until(lambda: any(e.path == watched / "a.xml" for e in seen))
        await watcher.stop()
        await asyncio.wait_for(task, timeout=5)
        return found

    assert asyncio.run(run())


def test_stream_cannot_be_restarted(tmp_path):
    async def run():
        watcher = DirectoryWatcher(tmp_path, health_interval=0.1)
        await watcher.start()
        await watcher.stop()
        async for _ in watcher.events():
            pass
        with pytest.raises(RuntimeError):
            async for _ in watcher.events():
                pass

    asyncio.run(run())


def test_dead_observer_raises(tmp_path):
    async def run():
        watcher = DirectoryWatcher(tmp_path, health_interval=0.05)
        await watcher.start()
        observer = watcher.observer
        observer.stop()
        await asyncio.get_running_loop().run_in_executor(None, observer.join, 5)

        try:
            with pytest.raises(EventSourceError):
                async for _ in watcher.events():
                    pass
        finally:
            await watcher.stop()

    asyncio.run(run())


@pytest.mark.skipif(not sys.platform.startswith("linux"), reason="inotify backend only")
def test_exhausted_watches_for_new_directory_raise(tmp_path, monkeypatch):
    from watchdog.observers import inotify_c

    real_add_watch = inotify_c.Inotify._add_watch

    def add_watch(self, path, mask):
        if os.path.basename(path) == b"overflow":
            raise OSError(errno.ENOSPC, "inotify watch limit reached")
        return real_add_watch(self, path, mask)

    monkeypatch.setattr(inotify_c.Inotify, "_add_watch", add_watch)

    async def run():
        watcher = DirectoryWatcher(tmp_path, health_interval=0.1)
        await watcher.start()

        async def collect():
            async for _ in watcher.events():
                pass

        task = asyncio.create_task(collect())
        await asyncio.sleep(0.2)
        (tmp_path / "overflow").mkdir()
        try:
            with pytest.raises(EventSourceError, match="overflow"):
                await asyncio.wait_for(task, timeout=5)
        finally:
            await watcher.stop()
        return watcher

    watcher = asyncio.run(run())

    assert watcher.get_status()['stats']['watch_failures'] >= 1
    with pytest.raises(EventSourceError):
        watcher.check_health()


def test_directory_moved_in_from_outside_is_watched(tmp_path):
    outside = tmp_path / "outside"
    watched = tmp_path / "watched"
    (outside / "batch").mkdir(parents=True)
    watched.mkdir()

    async def run():
        watcher = DirectoryWatcher(watched, health_interval=0.1)
        await watcher.start()
        seen = []

        async def collect():
            async for event in watcher.events():
                seen.append(event)

        task = asyncio.create_task(collect())
        await asyncio.sleep(0.2)
        (outside / "batch").rename(watched / "batch")
        await asyncio.sleep(1.0)
        (watched / "batch" / "a.xml").write_text("<a/>")

        found = await wait_until(lambda: any(e.path == watched / "batch" / "a.xml" for e in seen))
        await watcher.stop()
        await asyncio.wait_for(task, timeout=5)
        return found

    assert asyncio.run(run())


def test_vanished_directory_is_not_a_watch_failure(tmp_path):
    async def run():
        watcher = DirectoryWatcher(tmp_path)
        await watcher.start()
        try:
            watcher.ensure_watched(str(tmp_path / "gone"))
        finally:
            await watcher.stop()
        return watcher

    watcher = asyncio.run(run())

    assert watcher.failure is None


def test_stop_logs_queued_events_it_drops(tmp_path, caplog):
    async def run():
        watcher = DirectoryWatcher(tmp_path)
        await watcher.start()
        for name in ("a.xml", "b.xml"):
            watcher.queue.put_nowait(FileEvent(path=tmp_path / name, kind=EventType.CREATED))
        await watcher.stop()
        return [event async for event in watcher.events()]

    assert asyncio.run(run()) == []
    assert "Dropped 2 queued events" in caplog.text
