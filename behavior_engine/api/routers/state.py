"""
/state — current state vector endpoint + WebSocket stream.
"""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, Query, Request, WebSocket, WebSocketDisconnect

from ...api.schemas import StateVectorOut

router = APIRouter(prefix="/state", tags=["state"])


def _get_actor(request: Request):
    return request.app.state.actor


@router.get("", response_model=StateVectorOut)
async def get_state(
    fresh: bool = Query(default=False, description="Build a new vector instead of the last emitted one"),
    actor=Depends(_get_actor),
):
    """Return the latest published state vector."""
    latest = actor.aggregator.publisher.latest
    if fresh or latest is None:
        latest = await actor.call(actor.aggregator.build_state_vector, "request")
    return latest.to_dict()


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/ws")
async def state_websocket(websocket: WebSocket):
    """
    WebSocket stream — sends the current state on connect, then every vector
    the publisher emits (5s/60s ticks, heartbeat, debounced activity, clears).
    """
    actor = websocket.app.state.actor
    publisher = actor.aggregator.publisher
    await websocket.accept()
    queue = publisher.subscribe()
    disconnected = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        current = await actor.call(actor.aggregator.build_state_vector, "request")
        await websocket.send_json(current.to_dict())
        while True:
            getter = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait(
                {getter, disconnected}, return_when=asyncio.FIRST_COMPLETED
            )
            if disconnected in done:
                getter.cancel()
                break
            await websocket.send_json(getter.result().to_dict())
    except WebSocketDisconnect:
        pass
    finally:
        disconnected.cancel()
        publisher.unsubscribe(queue)
