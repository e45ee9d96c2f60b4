"""
Live webcam loop: capture, pose, session, overlay window, spoken cues.
Keys: q=quit, r=reset session, c=switch camera (new session), s=snapshot.
"""
from __future__ import annotations

import logging
import os
import time
from typing import Optional

import cv2

from .config import CoachConfig, SmootherConfig
from .io_stream import webcam_frames
from .overlay import draw_realtime_overlay
from .pose import VideoClock, create_pose_detector, process_frame
from .session import SquatSession
from .speech import CueSpeaker

logger = logging.getLogger(__name__)

# Target resize width for faster inference (keypoints are normalized, so no rescale back)
LIVE_RESIZE_WIDTH = 960
# How long a cue banner stays on screen
BANNER_SEC = 0.9


def run_live_pipeline(
    camera_id: int = 0,
    num_cameras: int = 2,
    target_fps: float = 30,
    config: Optional[CoachConfig] = None,
    smoother_config: Optional[SmootherConfig] = None,
    speak: bool = True,
    output_dir: str = "outputs",
) -> None:
    os.makedirs(output_dir, exist_ok=True)
    pose = create_pose_detector()
    # One clock for the whole run: the detector outlives every session
    video_clock = VideoClock()
    t0 = time.perf_counter()
    speaker = CueSpeaker() if speak else None
    win_name = "Squat Coach (q=quit, r=reset, c=camera, s=snapshot)"
    cv2.namedWindow(win_name, cv2.WINDOW_NORMAL)

    banner: Optional[str] = None
    banner_until = 0.0
    quit_requested = False
    try:
        while not quit_requested:
            session = SquatSession(config, smoother_config)
            logger.info("live: session started on camera %s", camera_id)
            switch_camera = False
            fps_est = float(target_fps)
            t_prev: Optional[float] = None
            for frame_bgr, frame_idx, ts in webcam_frames(camera_id, target_fps=target_fps, t0=t0):
                if t_prev is not None and ts > t_prev:
                    fps_est = 0.9 * fps_est + 0.1 * (1.0 / (ts - t_prev))
                t_prev = ts

                h, w = frame_bgr.shape[:2]
                if w > LIVE_RESIZE_WIDTH:
                    small = cv2.resize(frame_bgr, (LIVE_RESIZE_WIDTH, int(round(h * LIVE_RESIZE_WIDTH / w))))
                else:
                    small = frame_bgr
                keypoints = process_frame(small, pose, ts, video_clock)
                state = session.process(keypoints, ts)

                cue = state.get("cue")
                now = time.perf_counter()
                if cue is not None:
                    banner = cue.message
                    banner_until = now + BANNER_SEC
                    if speaker is not None:
                        speaker.speak(cue.message)
                if banner and now > banner_until:
                    banner = None

                out_frame = frame_bgr.copy()
                draw_realtime_overlay(
                    out_frame,
                    session.last_keypoints if keypoints else None,
                    state,
                    fps=fps_est,
                    banner=banner,
                )
                cv2.imshow(win_name, out_frame)
                key = cv2.waitKey(1) & 0xFF
                if key == ord("q"):
                    quit_requested = True
                    break
                if key == ord("r"):
                    logger.info("live: reset (reps=%s)", session.rep_count)
                    break
                if key == ord("c"):
                    camera_id = (camera_id + 1) % max(1, num_cameras)
                    switch_camera = True
                    break
                if key == ord("s"):
                    snap_path = os.path.join(output_dir, f"snapshot_{frame_idx}.jpg")
                    cv2.imwrite(snap_path, out_frame)
                    logger.info("live: saved %s", snap_path)
            else:
                # Camera stream ended on its own
                quit_requested = True
            logger.info(
                "live: session ended (reps=%s cues=%s switch_camera=%s)",
                session.rep_count, len(session.cue_history), switch_camera,
            )
    finally:
        cv2.destroyAllWindows()
        if speaker is not None:
            speaker.close()
