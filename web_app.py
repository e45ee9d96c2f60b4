from __future__ import annotations

import asyncio
import base64
import concurrent.futures
import json
import logging
import time
from typing import Any, Optional

import cv2
import numpy as np
from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from squatcoach.config import CoachConfig, SmootherConfig
from squatcoach.pose import VideoClock, create_pose_detector, process_frame
from squatcoach.session import SquatSession

# Ensure calibration, rep and cue logging is visible when running under uvicorn
logging.getLogger("squatcoach.session").setLevel(logging.INFO)
logging.getLogger("squatcoach.fsm").setLevel(logging.INFO)
logging.getLogger("squatcoach.calibration").setLevel(logging.INFO)
logger = logging.getLogger("squatcoach.web")

app = FastAPI(title="Squat Coach")

# One worker: frames of a connection are processed strictly in order
_LIVE_EXECUTOR = concurrent.futures.ThreadPoolExecutor(max_workers=1)


def _snapshot_json(state: dict[str, Any]) -> dict[str, Any]:
    out = dict(state)
    cue = out.pop("cue", None)
    out["cue"] = {"kind": cue.kind.value, "message": cue.message} if cue is not None else None
    return out


def _decode_and_detect(image_data: str, pose, timestamp: float, clock: VideoClock):
    """Decode a (data-URL) base64 JPEG/PNG and run pose detection on it."""
    if image_data.startswith("data:"):
        image_data = image_data.split(",", 1)[1]
    try:
        img_bytes = base64.b64decode(image_data)
    except ValueError:
        return None
    frame_bgr = cv2.imdecode(np.frombuffer(img_bytes, np.uint8), cv2.IMREAD_COLOR)
    if frame_bgr is None:
        return None
    return process_frame(frame_bgr, pose, timestamp, clock)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.websocket("/ws/live")
async def live_socket(websocket: WebSocket) -> None:
    """
    Per message: {"image": <base64>} or {"keypoints": [[x, y, visibility], ...]},
    optionally with "t" (seconds). Control: {"type": "reset"} starts a new
    session (camera changed); {"type": "stop"} returns a summary and closes.
    Malformed frames get {"type": "error"} and the connection stays open.
    """
    await websocket.accept()
    config = CoachConfig.from_env()
    smoother_config = SmootherConfig.from_env()
    session = SquatSession(config, smoother_config)
    pose = None
    # The detector lives as long as the connection, across session resets
    video_clock = VideoClock()
    t0 = time.perf_counter()
    frames = 0
    loop = asyncio.get_running_loop()
    logger.info("live: session started")
    try:
        while True:
            msg = await websocket.receive_text()
            try:
                payload = json.loads(msg)
            except json.JSONDecodeError:
                continue
            if not isinstance(payload, dict):
                await websocket.send_text(json.dumps({"type": "error", "detail": "expected a JSON object"}))
                continue
            kind = payload.get("type")
            if kind == "reset":
                logger.info("live: reset after %s frames (rep_count=%s)", frames, session.rep_count)
                session = SquatSession(config, smoother_config)
                await websocket.send_text(json.dumps({"type": "reset", "ok": True}))
                continue
            if kind == "stop":
                await websocket.send_text(json.dumps({
                    "type": "summary",
                    "rep_count": session.rep_count,
                    "calibrated": session.calibrated,
                    "cues": [{"t": t, "kind": c.kind.value, "message": c.message} for t, c in session.cue_history],
                }))
                await websocket.close()
                return

            ts = payload.get("t")
            ts = float(ts) if isinstance(ts, (int, float)) else time.perf_counter() - t0
            keypoints: Optional[list] = payload.get("keypoints")
            image_data = payload.get("image")
            try:
                if keypoints is None and isinstance(image_data, str) and image_data:
                    if pose is None:
                        pose = await loop.run_in_executor(_LIVE_EXECUTOR, create_pose_detector)
                    keypoints = await loop.run_in_executor(
                        _LIVE_EXECUTOR, _decode_and_detect, image_data, pose, ts, video_clock,
                    )
                state = await loop.run_in_executor(_LIVE_EXECUTOR, session.process, keypoints, ts)
            except (ValueError, TypeError, IndexError) as e:
                logger.warning("live: rejected frame: %s", e)
                await websocket.send_text(json.dumps({"type": "error", "detail": str(e)}))
                continue
            frames += 1
            await websocket.send_text(json.dumps(_snapshot_json(state)))
    except WebSocketDisconnect:
        logger.info("live: client disconnected (frames=%s, rep_count=%s)", frames, session.rep_count)
    except Exception as e:
        # Normal client close (e.g. code 1000) can surface as ConnectionClosedError from websockets
        if "ConnectionClosed" in type(e).__name__ or "1000" in str(e):
            logger.info("live: connection closed (frames=%s, rep_count=%s)", frames, session.rep_count)
            return
        logger.exception("live: handler failed after %s frames", frames)
        raise


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("web_app:app", host="0.0.0.0", port=8000, reload=True)
