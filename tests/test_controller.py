import asyncio
import threading

from dirsweep.controller import (
    AtomicFlag,
    PauseFlag,
    spawn_terminal_input_handler,
    terminal_input_handler,
)

from conftest import idle_reader


def scripted_reader(keys, complete):
    keys = iter(keys)

    def read(timeout):
        try:
            return next(keys)
        except StopIteration:
            complete.set()
            return None

    return read


def test_toggle_twice_restores_value():
    flag = AtomicFlag()
    assert flag.toggle() is True
    assert flag.toggle() is False
    assert not flag.is_set()


def test_enter_toggles_and_other_keys_are_ignored():
    pause, complete = PauseFlag(), AtomicFlag()
    terminal_input_handler(pause, complete, scripted_reader(["\n", "x", "q"], complete))
    assert pause.is_set()

    pause, complete = PauseFlag(), AtomicFlag()
    terminal_input_handler(pause, complete, scripted_reader(["\n", "a", "\n"], complete))
    assert not pause.is_set()


def test_handler_only_exits_on_completion():
    pause, complete = PauseFlag(), AtomicFlag()
    ticks = []

    def read(timeout):
        ticks.append(timeout)
        if len(ticks) == 5:
            complete.set()
        return None

    terminal_input_handler(pause, complete, read, interval=0.01)
    assert len(ticks) == 5
    assert ticks[0] == 0.01


def test_toggles_are_visible_across_threads():
    pause = PauseFlag()

    def worker():
        for _ in range(100):
            pause.toggle()

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    # 400 toggles in total
    assert not pause.is_set()


def test_handler_runs_off_the_event_loop():
    async def go():
        pause, complete = PauseFlag(), AtomicFlag()
        fut = spawn_terminal_input_handler(pause, complete, idle_reader, interval=0.01)
        # the loop keeps scheduling while the handler blocks in its thread
        await asyncio.sleep(0.05)
        assert not fut.done()
        complete.set()
        await asyncio.wait_for(fut, 1)

    asyncio.run(go())


def test_wait_while_paused():
    async def go():
        pause = PauseFlag(True)
        waiter = asyncio.create_task(pause.wait_while_paused(interval=0.01))
        await asyncio.sleep(0.05)
        assert not waiter.done()
        pause.toggle()
        await asyncio.wait_for(waiter, 1)

    asyncio.run(go())
