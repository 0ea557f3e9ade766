import asyncio
import os

import pytest

from supaflow import ConnectionState, SupaFlow

##################################################################
import logging

logging.basicConfig(
    level=logging.DEBUG,
    format="%(levelname)s [%(asctime)s] %(name)s - %(message)s",
)

# httpcore es el motor interno de httpx
logging.getLogger("httpcore").setLevel(logging.DEBUG)
logging.getLogger("httpx").setLevel(logging.DEBUG)
##################################################################


@pytest.mark.integration
@pytest.mark.asyncio
async def test_live_stream_receives_first_event() -> None:
    url = os.environ["SUPAFLOW_TEST_URL"]
    received: list[object] = []

    async with SupaFlow(url, debug=True, heartbeat={"enabled": False}) as flow:

        def on_any(data: object) -> None:
            received.append(data)
            flow.close()

        flow.on("message", on_any)
        await asyncio.wait_for(flow.connect(), timeout=60)

    assert received
    assert flow.get_state() is ConnectionState.DISCONNECTED
    assert len(flow.get_buffer()) >= 1


@pytest.mark.integration
@pytest.mark.asyncio
async def test_live_stream_state_transitions() -> None:
    url = os.environ["SUPAFLOW_TEST_URL"]
    states: list[ConnectionState] = []

    flow = SupaFlow(url, on_state_change=states.append)
    task = asyncio.create_task(flow.connect())
    try:
        for _ in range(600):
            if flow.get_state() is ConnectionState.CONNECTED:
                break
            await asyncio.sleep(0.05)
    finally:
        await flow.aclose()
        await asyncio.wait_for(task, timeout=5)

    assert states[0] is ConnectionState.CONNECTING
    assert ConnectionState.CONNECTED in states
    assert states[-1] is ConnectionState.DISCONNECTED
